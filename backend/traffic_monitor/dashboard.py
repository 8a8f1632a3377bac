from __future__ import annotations

from collections.abc import Sequence

from .models import DashboardStats, Incident, Legend, LegendBand, MapBounds, MapSegment, RoadSegment, SlowSegment
from .spatial_enricher import gradient_stops
from .speed_bands import (
    ALERT_COLOR,
    BAND_COLORS,
    BAND_LABELS,
    BAND_RANGES_KMH,
    CONGESTED_MAX_BAND,
    FLOWING_MIN_BAND,
    band_color,
    band_label,
)

# Whole-island view used when there is nothing to fit the map to.
DEFAULT_BOUNDS = MapBounds(south_west=(1.16, 103.60), north_east=(1.48, 104.12))


def _avg_speed(segment: RoadSegment) -> float:
    # Missing speeds count as 0 so every link contributes to the averages.
    if segment.min_speed is None or segment.max_speed is None:
        return 0.0
    return (segment.min_speed + segment.max_speed) / 2.0


def road_stats(segments: Sequence[RoadSegment], incidents: Sequence[Incident]) -> DashboardStats:
    total = len(segments)
    avg = sum(_avg_speed(s) for s in segments) / total if total else 0.0
    return DashboardStats(
        total_roads=total,
        active_incidents=len(incidents),
        avg_speed_kmh=int(round(avg)),
        congested=sum(1 for s in segments if s.speed_band is not None and s.speed_band <= CONGESTED_MAX_BAND),
        flowing=sum(1 for s in segments if s.speed_band is not None and s.speed_band >= FLOWING_MIN_BAND),
    )


def band_distribution(segments: Sequence[RoadSegment]) -> dict[int, int]:
    counts = {band: 0 for band in BAND_COLORS}
    for s in segments:
        if s.speed_band in counts:
            counts[s.speed_band] += 1
    return counts


def slowest_segments(segments: Sequence[RoadSegment], limit: int = 6) -> list[SlowSegment]:
    ranked = sorted(segments, key=_avg_speed)
    return [
        SlowSegment(road=s.road_name or "Unnamed", avg_speed_kmh=_avg_speed(s), link_id=s.link_id)
        for s in ranked[: max(0, int(limit))]
    ]


def map_segments(segments: Sequence[RoadSegment]) -> list[MapSegment]:
    """Segments with their band colour; unknown bands get the neutral grey."""
    return [
        MapSegment(**s.model_dump(), color=band_color(s.speed_band), band_label=band_label(s.speed_band))
        for s in segments
    ]


def map_bounds(segments: Sequence[RoadSegment], incidents: Sequence[Incident]) -> MapBounds:
    lats: list[float] = []
    lons: list[float] = []
    for s in segments:
        lats.extend((s.start_lat, s.end_lat))
        lons.extend((s.start_lon, s.end_lon))
    for inc in incidents:
        lats.append(inc.lat)
        lons.append(inc.lon)

    if not lats:
        return DEFAULT_BOUNDS
    return MapBounds(south_west=(min(lats), min(lons)), north_east=(max(lats), max(lons)))


def legend(speed_min: float | None = None, speed_max: float | None = None) -> Legend:
    return Legend(
        bands=[
            LegendBand(
                band=band,
                color=color,
                range_kmh=BAND_RANGES_KMH[band],
                label=BAND_LABELS[band],
            )
            for band, color in BAND_COLORS.items()
        ],
        gradient=gradient_stops(),
        speed_min=speed_min,
        speed_max=speed_max,
        alert_color=ALERT_COLOR,
    )
