from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from .models import EnrichedIncident, EnrichmentResult, Incident, RoadSegment
from .speed_bands import ALERT_COLOR, incident_radius, severity_color

HUE_SLOWEST = 0.0
HUE_FASTEST = 120.0
HUE_NEUTRAL = 60.0
SATURATION_PCT = 85
LIGHTNESS_PCT = 45

DEFAULT_SPEED_RANGE: tuple[float, float] = (0.0, 1.0)


@dataclass(frozen=True)
class RepresentativePoint:
    lat: float
    lon: float
    speed_kmh: float
    segment: RoadSegment


def _segment_speed(segment: RoadSegment) -> float:
    if segment.min_speed is None or segment.max_speed is None:
        return math.nan
    return (segment.min_speed + segment.max_speed) / 2.0


def representative_points(segments: Sequence[RoadSegment]) -> list[RepresentativePoint]:
    """Segment midpoints paired with their mid speed, in segment order.

    Segments without both min and max speed have no representative speed and
    are left out.
    """
    points: list[RepresentativePoint] = []
    for seg in segments:
        speed = _segment_speed(seg)
        if not math.isfinite(speed):
            continue
        points.append(
            RepresentativePoint(
                lat=(seg.start_lat + seg.end_lat) / 2.0,
                lon=(seg.start_lon + seg.end_lon) / 2.0,
                speed_kmh=speed,
                segment=seg,
            )
        )
    return points


def speed_range(points: Sequence[RepresentativePoint]) -> tuple[float, float]:
    if not points:
        return DEFAULT_SPEED_RANGE
    speeds = [p.speed_kmh for p in points]
    return min(speeds), max(speeds)


def nearest_point(lat: float, lon: float, points: Sequence[RepresentativePoint]) -> RepresentativePoint | None:
    # Brute force over a city-scale snapshot; strict "<" keeps the first of equidistant points.
    best: RepresentativePoint | None = None
    best_d2 = math.inf
    for p in points:
        d_lat = p.lat - lat
        d_lon = p.lon - lon
        d2 = d_lat * d_lat + d_lon * d_lon
        if d2 < best_d2:
            best = p
            best_d2 = d2
    return best


def speed_to_hue(speed: float | None, speed_min: float, speed_max: float) -> float | None:
    """Hue in degrees: 0 at the slowest observed speed, 120 at the fastest.

    Returns ``None`` (never an extrapolated hue) for missing, non-finite or
    out-of-range speeds.
    """
    if speed is None or not math.isfinite(speed):
        return None
    if not (math.isfinite(speed_min) and math.isfinite(speed_max)):
        return None
    if speed < speed_min or speed > speed_max:
        return None
    span = speed_max - speed_min
    if span <= 0:
        return HUE_NEUTRAL
    t = (speed - speed_min) / span
    return HUE_SLOWEST + t * (HUE_FASTEST - HUE_SLOWEST)


def speed_to_color(speed: float | None, speed_min: float, speed_max: float) -> str:
    hue = speed_to_hue(speed, speed_min, speed_max)
    if hue is None:
        return ALERT_COLOR
    return f"hsl({round(hue, 1):g}, {SATURATION_PCT}%, {LIGHTNESS_PCT}%)"


def gradient_stops(steps: int = 6) -> list[str]:
    """Evenly spaced colors from slowest to fastest, for the legend gradient."""
    steps = max(2, int(steps))
    return [speed_to_color(float(i), 0.0, float(steps - 1)) for i in range(steps)]


def enrich_incidents(
    segments: Sequence[RoadSegment],
    incidents: Sequence[Incident],
) -> EnrichmentResult:
    points = representative_points(segments)
    lo, hi = speed_range(points)

    enriched: list[EnrichedIncident] = []
    for inc in incidents:
        marker = {"radius": incident_radius(inc.severity), "severity_color": severity_color(inc.severity)}
        nearest = nearest_point(inc.lat, inc.lon, points)
        if nearest is None:
            enriched.append(EnrichedIncident(**inc.model_dump(), **marker, display_color=ALERT_COLOR))
            continue
        enriched.append(
            EnrichedIncident(
                **inc.model_dump(),
                **marker,
                nearest_speed_kmh=nearest.speed_kmh,
                nearest_band=nearest.segment.speed_band,
                nearest_road_name=nearest.segment.road_name,
                display_color=speed_to_color(nearest.speed_kmh, lo, hi),
            )
        )

    return EnrichmentResult(incidents=enriched, speed_min=lo, speed_max=hi, point_count=len(points))
