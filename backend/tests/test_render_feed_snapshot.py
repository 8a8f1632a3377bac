from __future__ import annotations

import json
from pathlib import Path

import pytest

from scripts.render_feed_snapshot import build_parser, main, run_render_snapshot


def test_parser_defaults() -> None:
    args = build_parser().parse_args([])
    assert args.roads is None
    assert args.limit == 6
    assert args.output is None


def test_render_snapshot_from_saved_payloads(tmp_path: Path) -> None:
    roads = tmp_path / "roads.json"
    roads.write_text(
        json.dumps(
            [
                {
                    "rows": [
                        {
                            "RoadName": "ORCHARD ROAD",
                            "SpeedBand": 3,
                            "MinimumSpeed": 20,
                            "MaximumSpeed": 29,
                            "StartLat": 1.304,
                            "StartLon": 103.832,
                            "EndLat": 1.305,
                            "EndLon": 103.834,
                        }
                    ]
                }
            ]
        ),
        encoding="utf-8",
    )
    incidents = tmp_path / "incidents.json"
    incidents.write_text(json.dumps([{"Lat": 1.3045, "Lon": 103.833, "Type": "Roadwork"}]), encoding="utf-8")
    output = tmp_path / "out" / "snapshot.json"

    args = build_parser().parse_args(
        ["--roads", str(roads), "--incidents", str(incidents), "--output", str(output)]
    )
    payload = run_render_snapshot(args)

    assert payload["shapes"] == {"roads": "array_wrapped", "incidents": "bare"}
    assert payload["map"]["incidents"][0]["nearestRoadName"] == "ORCHARD ROAD"
    assert payload["dashboard"]["stats"]["totalRoads"] == 1
    assert payload["insights"]["structuredSource"] == "none"
    assert json.loads(output.read_text(encoding="utf-8")) == payload


def test_missing_payload_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        main(["--roads", str(tmp_path / "nope.json")])
