from __future__ import annotations

import ast
from pathlib import Path

import pytest

PACKAGE_DIR = Path(__file__).resolve().parents[1] / "traffic_monitor"

EXPECTED_PACKAGE_FILES = {
    "__init__.py",
    "dashboard.py",
    "feed_errors.py",
    "feed_sync.py",
    "insight_extractor.py",
    "logging_utils.py",
    "main.py",
    "metrics_store.py",
    "models.py",
    "payload_normalizer.py",
    "settings.py",
    "spatial_enricher.py",
    "speed_bands.py",
    "traffic_view.py",
}


def _all_package_paths() -> list[Path]:
    return sorted(path for path in PACKAGE_DIR.glob("*.py") if path.is_file())


def test_package_inventory_is_complete() -> None:
    discovered = {path.name for path in _all_package_paths()}
    assert discovered == EXPECTED_PACKAGE_FILES


@pytest.mark.parametrize("module_path", _all_package_paths(), ids=lambda p: p.name)
def test_package_module_parses(module_path: Path) -> None:
    source = module_path.read_text(encoding="utf-8")
    ast.parse(source, filename=str(module_path))
