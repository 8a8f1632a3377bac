from __future__ import annotations

import logging
from pathlib import Path
from tempfile import gettempdir
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from .settings import settings

LOGGER_NAME = "traffic_monitor"
LOG_FILE_NAME = "traffic.log.jsonl"
SERVICE_NAME = "sg-traffic-monitor"


def _parse_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _resolve_log_dir(configured_out_dir: str) -> Path | None:
    candidates = (
        Path(configured_out_dir) / "logs",
        Path.cwd() / "out" / "logs",
        Path(gettempdir()) / "traffic-monitor" / "logs",
    )
    for log_dir in candidates:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            probe = log_dir / ".writetest"
            probe.touch(exist_ok=True)
            probe.unlink(missing_ok=True)
            return log_dir
        except OSError:
            continue
    return None


def build_formatter() -> JsonFormatter:
    """One JSON object per line: ts, level, logger, message, service plus event fields."""
    return JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={"asctime": "ts", "levelname": "level", "name": "logger"},
        static_fields={"service": SERVICE_NAME},
    )


def get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)

    # Reloaders import the app twice; handlers are attached once.
    if getattr(logger, "_configured", False):
        return logger

    logger.setLevel(_parse_level(settings.log_level))
    logger.propagate = False

    formatter = build_formatter()

    sh = logging.StreamHandler()
    sh.setFormatter(formatter)
    logger.addHandler(sh)

    log_dir = _resolve_log_dir(settings.out_dir)
    if log_dir is not None:
        try:
            fh = logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
            fh.setFormatter(formatter)
            logger.addHandler(fh)
        except OSError:
            pass

    logger._configured = True  # type: ignore[attr-defined]
    return logger


LOGGER: logging.Logger | None = None


def log_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    global LOGGER
    if LOGGER is None:
        LOGGER = get_logger()
    LOGGER.log(level, event, extra={"event": event, **fields})


def log_feed_event(
    feed: str,
    event: str,
    *,
    version: int | None = None,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """``log_event`` tagged with the feed name and, when known, its data version."""
    if version is not None:
        fields["version"] = version
    log_event(event, level=level, feed=feed, **fields)
