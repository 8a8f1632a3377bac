from __future__ import annotations

from traffic_monitor.dashboard import (
    DEFAULT_BOUNDS,
    band_distribution,
    legend,
    map_bounds,
    map_segments,
    road_stats,
    slowest_segments,
)
from traffic_monitor.models import Incident, RoadSegment
from traffic_monitor.speed_bands import ALERT_COLOR, band_color, band_label, incident_radius, severity_color


def _segments() -> list[RoadSegment]:
    return [
        RoadSegment(
            link_id=1,
            road_name="KENT ROAD",
            start_lat=1.31,
            start_lon=103.85,
            end_lat=1.32,
            end_lon=103.86,
            speed_band=2,
            min_speed=10,
            max_speed=19,
        ),
        RoadSegment(
            link_id=2,
            road_name="BUKIT TIMAH ROAD",
            start_lat=1.33,
            start_lon=103.80,
            end_lat=1.34,
            end_lon=103.81,
            speed_band=5,
            min_speed=40,
            max_speed=49,
        ),
        RoadSegment(link_id=3, start_lat=1.35, start_lon=103.90, end_lat=1.36, end_lon=103.91),
    ]


def test_road_stats_counts_and_average() -> None:
    stats = road_stats(_segments(), [Incident(lat=1.3, lon=103.8)])

    assert stats.total_roads == 3
    assert stats.active_incidents == 1
    # (14.5 + 44.5 + 0) / 3
    assert stats.avg_speed_kmh == 20
    assert stats.congested == 1
    assert stats.flowing == 1


def test_road_stats_empty() -> None:
    stats = road_stats([], [])
    assert stats.total_roads == 0
    assert stats.avg_speed_kmh == 0


def test_band_distribution_has_every_band() -> None:
    assert band_distribution(_segments()) == {1: 0, 2: 1, 3: 0, 4: 0, 5: 1, 6: 0}


def test_slowest_segments_orders_by_average_speed() -> None:
    slowest = slowest_segments(_segments(), limit=2)

    assert [(s.road, s.avg_speed_kmh, s.link_id) for s in slowest] == [
        ("Unnamed", 0.0, 3),
        ("KENT ROAD", 14.5, 1),
    ]
    assert slowest_segments(_segments(), limit=0) == []


def test_map_segments_carry_band_palette() -> None:
    kent, bukit, unnamed = map_segments(_segments())

    assert (kent.color, kent.band_label) == ("#fc8d59", "very slow")
    assert (bukit.color, bukit.band_label) == ("#91cf60", "fast")
    assert (unnamed.color, unnamed.band_label) == ("#888888", "")
    assert kent.road_name == "KENT ROAD"
    assert kent.link_id == 1


def test_map_bounds_fit_data_or_fall_back() -> None:
    bounds = map_bounds(_segments(), [Incident(lat=1.20, lon=104.00)])
    assert bounds.south_west == (1.20, 103.80)
    assert bounds.north_east == (1.36, 104.00)

    assert map_bounds([], []) == DEFAULT_BOUNDS
    assert DEFAULT_BOUNDS.south_west == (1.16, 103.60)
    assert DEFAULT_BOUNDS.north_east == (1.48, 104.12)


def test_legend_lists_bands_and_gradient() -> None:
    out = legend(0.0, 60.0)

    assert [b.band for b in out.bands] == [1, 2, 3, 4, 5, 6]
    assert out.bands[0].label == "gridlock"
    assert out.bands[0].range_kmh == "0–9"
    assert out.bands[5].color == band_color(6)
    assert len(out.gradient) == 6
    assert out.alert_color == ALERT_COLOR
    assert (out.speed_min, out.speed_max) == (0.0, 60.0)
    assert legend().speed_min is None


def test_speed_band_helpers() -> None:
    assert band_color(None) == "#888888"
    assert band_color(9) == "#888888"
    assert band_label(3) == "slow"
    assert band_label(None) == ""
    assert incident_radius(1) == 9
    assert incident_radius(None) == 9
    assert incident_radius(10) == 26
    assert severity_color(5) == "#bd0026"
    assert severity_color(0) == "#feb24c"
