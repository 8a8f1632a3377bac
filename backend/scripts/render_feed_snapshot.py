from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Sequence

from traffic_monitor.dashboard import band_distribution, map_bounds, map_segments, road_stats, slowest_segments
from traffic_monitor.insight_extractor import extract_insights
from traffic_monitor.payload_normalizer import detect_shape, normalize_incidents, normalize_road_segments
from traffic_monitor.spatial_enricher import enrich_incidents


def _load_json(path: Path | None) -> Any:
    if path is None:
        return None
    if not path.exists():
        raise ValueError(f"required JSON file not found: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON file: {path}") from e


def run_render_snapshot(args: argparse.Namespace) -> dict[str, Any]:
    roads_raw = _load_json(Path(args.roads).resolve() if args.roads else None)
    incidents_raw = _load_json(Path(args.incidents).resolve() if args.incidents else None)
    insights_raw = _load_json(Path(args.insights).resolve() if args.insights else None)

    segments = normalize_road_segments(roads_raw)
    incidents = normalize_incidents(incidents_raw)
    enrichment = enrich_incidents(segments, incidents)
    summary = extract_insights(insights_raw)

    payload: dict[str, Any] = {
        "shapes": {
            "roads": detect_shape(roads_raw).value,
            "incidents": detect_shape(incidents_raw).value,
        },
        "map": {
            "segments": [s.model_dump(mode="json", by_alias=True) for s in map_segments(segments)],
            "incidents": [i.model_dump(mode="json", by_alias=True) for i in enrichment.incidents],
            "speedMin": enrichment.speed_min,
            "speedMax": enrichment.speed_max,
            "bounds": map_bounds(segments, incidents).model_dump(mode="json", by_alias=True),
        },
        "dashboard": {
            "stats": road_stats(segments, incidents).model_dump(mode="json", by_alias=True),
            "bandDistribution": {str(band): count for band, count in band_distribution(segments).items()},
            "slowest": [s.model_dump(mode="json", by_alias=True) for s in slowest_segments(segments, args.limit)],
        },
        "insights": summary.model_dump(mode="json", by_alias=True),
    }

    if args.output:
        output_path = Path(args.output).resolve()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return payload


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Normalize, enrich and summarize saved feed payloads without starting the API."
    )
    parser.add_argument("--roads", default=None, help="Speed-band payload JSON file.")
    parser.add_argument("--incidents", default=None, help="Incident payload JSON file.")
    parser.add_argument("--insights", default=None, help="AI analysis payload JSON file.")
    parser.add_argument("--limit", type=int, default=6, help="Number of slowest segments to list.")
    parser.add_argument("--output", default=None)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    payload = run_render_snapshot(args)
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
