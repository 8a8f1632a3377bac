from __future__ import annotations

import math

from traffic_monitor.models import Incident, RoadSegment
from traffic_monitor.spatial_enricher import (
    enrich_incidents,
    gradient_stops,
    representative_points,
    speed_range,
    speed_to_color,
    speed_to_hue,
)
from traffic_monitor.speed_bands import ALERT_COLOR


def _segment(lat: float, lon: float, speed: float | None, *, name: str, band: int | None = None) -> RoadSegment:
    return RoadSegment(
        road_name=name,
        start_lat=lat,
        start_lon=lon,
        end_lat=lat,
        end_lon=lon,
        speed_band=band,
        min_speed=speed,
        max_speed=speed,
    )


def test_representative_points_skip_segments_without_speeds() -> None:
    segments = [
        RoadSegment(start_lat=1.0, start_lon=103.0, end_lat=2.0, end_lon=104.0, min_speed=10, max_speed=20),
        RoadSegment(start_lat=1.0, start_lon=103.0, end_lat=2.0, end_lon=104.0, min_speed=10),
    ]

    (point,) = representative_points(segments)

    assert point.lat == 1.5
    assert point.lon == 103.5
    assert point.speed_kmh == 15.0
    assert point.segment is segments[0]


def test_speed_range_defaults_when_empty() -> None:
    assert speed_range([]) == (0.0, 1.0)


def test_hue_spans_red_to_green() -> None:
    assert speed_to_hue(0, 0, 60) == 0.0
    assert speed_to_hue(30, 0, 60) == 60.0
    assert speed_to_hue(60, 0, 60) == 120.0

    assert speed_to_color(0, 0, 60) == "hsl(0, 85%, 45%)"
    assert speed_to_color(30, 0, 60) == "hsl(60, 85%, 45%)"
    assert speed_to_color(60, 0, 60) == "hsl(120, 85%, 45%)"


def test_invalid_speeds_use_alert_color() -> None:
    assert speed_to_hue(math.nan, 0, 60) is None
    assert speed_to_hue(None, 0, 60) is None
    assert speed_to_hue(61, 0, 60) is None
    assert speed_to_color(math.inf, 0, 60) == ALERT_COLOR
    assert speed_to_color(-1, 0, 60) == ALERT_COLOR


def test_degenerate_range_gives_neutral_hue() -> None:
    assert speed_to_hue(40, 40, 40) == 60.0
    assert speed_to_color(40, 40, 40) == "hsl(60, 85%, 45%)"


def test_gradient_runs_slowest_to_fastest() -> None:
    stops = gradient_stops()
    assert len(stops) == 6
    assert stops[0] == "hsl(0, 85%, 45%)"
    assert stops[-1] == "hsl(120, 85%, 45%)"


def test_enrichment_picks_nearest_segment_and_colors_by_speed() -> None:
    segments = [
        _segment(1.30, 103.80, 0, name="SLOW ROAD", band=1),
        _segment(1.40, 103.90, 30, name="MID ROAD", band=3),
        _segment(1.50, 104.00, 60, name="FAST ROAD", band=6),
    ]
    incidents = [
        Incident(lat=1.301, lon=103.801, severity=5),
        Incident(lat=1.499, lon=103.999),
    ]

    result = enrich_incidents(segments, incidents)

    assert (result.speed_min, result.speed_max) == (0.0, 60.0)
    assert result.point_count == 3

    slow, fast = result.incidents
    assert slow.nearest_road_name == "SLOW ROAD"
    assert slow.nearest_speed_kmh == 0.0
    assert slow.nearest_band == 1
    assert slow.display_color == "hsl(0, 85%, 45%)"
    assert slow.severity == 5
    assert slow.radius == 21
    assert slow.severity_color == "#bd0026"

    assert fast.nearest_road_name == "FAST ROAD"
    assert fast.display_color == "hsl(120, 85%, 45%)"


def test_equidistant_segments_resolve_to_the_first() -> None:
    segments = [
        _segment(1.5, 103.5, 20, name="FIRST ROAD"),
        _segment(1.5, 104.0, 50, name="SECOND ROAD"),
    ]

    result = enrich_incidents(segments, [Incident(lat=1.5, lon=103.75)])

    assert result.incidents[0].nearest_road_name == "FIRST ROAD"
    assert result.incidents[0].nearest_speed_kmh == 20.0


def test_no_usable_segments_gives_alert_color_and_placeholder_range() -> None:
    segments = [RoadSegment(start_lat=1.3, start_lon=103.8, end_lat=1.3, end_lon=103.8)]

    result = enrich_incidents(segments, [Incident(lat=1.3, lon=103.8, incident_type="Accident")])

    assert (result.speed_min, result.speed_max) == (0.0, 1.0)
    assert result.point_count == 0
    (incident,) = result.incidents
    assert incident.display_color == ALERT_COLOR
    assert incident.nearest_speed_kmh is None
    assert incident.nearest_band is None
    assert incident.incident_type == "Accident"
    assert incident.radius == 9
    assert incident.severity_color == "#feb24c"
