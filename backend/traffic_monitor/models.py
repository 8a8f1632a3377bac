from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

StructuredSource = Literal["fenced_json", "fenced", "truncated_fence", "brace_scan", "repaired", "none"]
InspectMode = Literal["rows", "meta", "raw"]


class _Record(BaseModel):
    """Immutable record serialised with camelCase keys for the map/summary views."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class RoadSegment(_Record):
    link_id: str | int | None = None
    road_name: str | None = None
    road_category: str | int | None = None
    start_lat: float
    start_lon: float
    end_lat: float
    end_lon: float
    speed_band: int | None = Field(default=None, ge=1, le=6)
    min_speed: float | None = None
    max_speed: float | None = None


class MapSegment(RoadSegment):
    """A segment as drawn on the map: band palette colour and label."""

    color: str
    band_label: str = ""


class Incident(_Record):
    lat: float
    lon: float
    severity: int = Field(default=1, ge=1)
    title: str | None = None
    incident_type: str | None = Field(default=None, alias="type")
    message: str | None = None
    timestamp: str | None = None
    id: str | int | None = None


class EnrichedIncident(Incident):
    nearest_speed_kmh: float | None = None
    nearest_band: int | None = Field(default=None, ge=1, le=6)
    display_color: str
    nearest_road_name: str | None = None
    # Marker size and fill follow severity; ``display_color`` follows nearby speed.
    radius: int
    severity_color: str


class EnrichmentResult(_Record):
    incidents: list[EnrichedIncident] = Field(default_factory=list)
    speed_min: float = 0.0
    speed_max: float = 1.0
    # Segments that contributed a representative speed; 0 means the range is the placeholder.
    point_count: int = 0


class InsightHotspot(_Record):
    road: str | None = None
    band: int = Field(default=1, ge=1, le=6)
    band_label: str | None = None
    avg_min: float | None = None
    avg_max: float | None = None
    works: int = Field(default=0, ge=0)
    incidents: int = Field(default=0, ge=0)


class InsightAdvice(_Record):
    road: str | None = None
    action: str = ""
    # True when ``road`` came from the all-caps text heuristic rather than structured data.
    inferred: bool = False


class InsightSummary(_Record):
    prose: str = ""
    generated_at: str | None = None
    hotspots: list[InsightHotspot] = Field(default_factory=list)
    advice: list[InsightAdvice] = Field(default_factory=list)
    structured_source: StructuredSource = "none"


class FeedErrorView(_Record):
    message: str
    reason_code: str
    status_code: int | None = None


class FeedSnapshot(_Record):
    name: str
    url: str
    loading: bool
    error: FeedErrorView | None = None
    last_updated_at: datetime | None = None
    has_data: bool = False
    version: int = 0
    polling_interval_ms: int = 0


class DashboardStats(_Record):
    total_roads: int = 0
    active_incidents: int = 0
    avg_speed_kmh: int = 0
    congested: int = 0
    flowing: int = 0


class SlowSegment(_Record):
    road: str
    avg_speed_kmh: float
    link_id: str | int | None = None


class LegendBand(_Record):
    band: int
    color: str
    range_kmh: str
    label: str


class Legend(_Record):
    bands: list[LegendBand]
    gradient: list[str]
    speed_min: float | None = None
    speed_max: float | None = None
    alert_color: str


class MapBounds(_Record):
    south_west: tuple[float, float]
    north_east: tuple[float, float]


class MapView(_Record):
    segments: list[MapSegment] = Field(default_factory=list)
    incidents: list[EnrichedIncident] = Field(default_factory=list)
    speed_min: float = 0.0
    speed_max: float = 1.0
    bounds: MapBounds
    legend: Legend
    feeds: list[FeedSnapshot] = Field(default_factory=list)


class InsightView(_Record):
    summary: InsightSummary
    feed: FeedSnapshot


class DashboardView(_Record):
    stats: DashboardStats
    band_distribution: dict[int, int]
    slowest: list[SlowSegment] = Field(default_factory=list)
    feeds: list[FeedSnapshot] = Field(default_factory=list)


class FeedListResponse(_Record):
    feeds: list[FeedSnapshot]
