"""Schema-tolerant normalization of road speed-band and incident payloads.

The same logical payload has been observed as ``{"rows": [...]}``, as
``[{"rows": [...]}]`` and as a bare ``[...]`` of entries. Field names also
drift between producer versions (``LAT`` / ``Lat`` / ``latitude``), so every
field is looked up through an ordered alias list.

Nothing here raises on bad input: unknown wrappers give an empty sequence and
records missing required coordinates are dropped.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping, Sequence
from enum import Enum
from typing import Any

from .models import Incident, InspectMode, RoadSegment
from .speed_bands import is_valid_band

COLLECTION_KEY = "rows"
META_KEY = "metaData"


class PayloadShape(str, Enum):
    WRAPPED = "wrapped"
    ARRAY_WRAPPED = "array_wrapped"
    BARE = "bare"
    UNKNOWN = "unknown"


_SEGMENT_ALIASES: dict[str, tuple[str, ...]] = {
    "link_id": ("LINK_ID", "LinkID", "linkId", "link_id"),
    "road_name": ("ROAD_NAME", "RoadName", "roadName", "road_name"),
    "road_category": ("ROAD_CATEGORY", "RoadCategory", "roadCategory", "road_category"),
    "start_lat": ("START_LAT", "StartLat", "startLat", "start_lat"),
    "start_lon": ("START_LON", "StartLon", "startLon", "start_lon"),
    "end_lat": ("END_LAT", "EndLat", "endLat", "end_lat"),
    "end_lon": ("END_LON", "EndLon", "endLon", "end_lon"),
    "speed_band": ("SPEED_BAND", "SpeedBand", "speedBand", "speed_band"),
    "min_speed": ("MINIMUM_SPEED", "MinimumSpeed", "minSpeed", "min_speed"),
    "max_speed": ("MAXIMUM_SPEED", "MaximumSpeed", "maxSpeed", "max_speed"),
}

_INCIDENT_ALIASES: dict[str, tuple[str, ...]] = {
    "lat": ("LAT", "Lat", "lat", "LATITUDE", "Latitude", "latitude"),
    "lon": ("LON", "Lon", "lon", "LNG", "Lng", "lng", "LONGITUDE", "Longitude", "longitude"),
    "severity": ("SEVERITY", "Severity", "severity"),
    "type": ("INCIDENT_TYPE", "IncidentType", "incidentType", "TYPE", "Type", "type"),
    "title": ("TITLE", "Title", "title", "ROAD_KEY"),
    "message": ("MESSAGE", "Message", "message"),
    "timestamp": ("TIMESTAMP", "Timestamp", "timestamp", "TIME", "time"),
    "id": ("ID", "Id", "id", "INCIDENT_ID", "IncidentID"),
}

# Order matters: the first keyword found in the type text decides the severity.
SEVERITY_KEYWORDS: tuple[tuple[str, int], ...] = (
    ("accident", 5),
    ("heavy traffic", 3),
    ("vehicle breakdown", 2),
    ("roadwork", 1),
)
DEFAULT_SEVERITY = 1


# ---------------------------------------------------------------------------
# shape dispatch
# ---------------------------------------------------------------------------


def _root_candidate(raw: Any) -> Any:
    if isinstance(raw, list):
        return raw[0] if raw else None
    return raw


def _has_collection(candidate: Any) -> bool:
    return isinstance(candidate, Mapping) and isinstance(candidate.get(COLLECTION_KEY), list)


def detect_shape(raw: Any) -> PayloadShape:
    root = _root_candidate(raw)
    if _has_collection(root):
        return PayloadShape.ARRAY_WRAPPED if isinstance(raw, list) else PayloadShape.WRAPPED
    if isinstance(raw, list):
        return PayloadShape.BARE
    return PayloadShape.UNKNOWN


def _extract_wrapped(raw: Any) -> list[Any]:
    return list(raw[COLLECTION_KEY])


def _extract_array_wrapped(raw: Any) -> list[Any]:
    return list(raw[0][COLLECTION_KEY])


def _extract_bare(raw: Any) -> list[Any]:
    return list(raw)


def _extract_nothing(_raw: Any) -> list[Any]:
    return []


_EXTRACTORS: dict[PayloadShape, Callable[[Any], list[Any]]] = {
    PayloadShape.WRAPPED: _extract_wrapped,
    PayloadShape.ARRAY_WRAPPED: _extract_array_wrapped,
    PayloadShape.BARE: _extract_bare,
    PayloadShape.UNKNOWN: _extract_nothing,
}


def extract_entries(raw: Any) -> list[dict[str, Any]]:
    """Return the record-shaped entries of ``raw`` in their original order."""
    entries = _EXTRACTORS[detect_shape(raw)](raw)
    return [entry for entry in entries if isinstance(entry, Mapping)]


# ---------------------------------------------------------------------------
# field coercion
# ---------------------------------------------------------------------------


def _pick(entry: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    for key in aliases:
        value = entry.get(key)
        if value is not None:
            return value
    return None


def coerce_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    elif not isinstance(value, (int, float)):
        return None
    try:
        out = float(value)
    except (ValueError, OverflowError):
        return None
    return out if math.isfinite(out) else None


def coerce_text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _as_identifier(value: Any) -> str | int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return coerce_text(value)


def _as_band(value: Any) -> int | None:
    number = coerce_float(value)
    if number is None or not number.is_integer():
        return None
    band = int(number)
    return band if is_valid_band(band) else None


def severity_from_type(type_text: str | None) -> int:
    if not type_text:
        return DEFAULT_SEVERITY
    lowered = type_text.lower()
    for keyword, severity in SEVERITY_KEYWORDS:
        if keyword in lowered:
            return severity
    return DEFAULT_SEVERITY


def _resolve_severity(explicit: Any, type_text: str | None) -> int:
    number = coerce_float(explicit)
    if number is not None and number >= 1:
        return int(number)
    return severity_from_type(type_text)


# ---------------------------------------------------------------------------
# record normalization
# ---------------------------------------------------------------------------


def _road_segment(entry: Mapping[str, Any]) -> RoadSegment | None:
    coords = {
        name: coerce_float(_pick(entry, _SEGMENT_ALIASES[name]))
        for name in ("start_lat", "start_lon", "end_lat", "end_lon")
    }
    if any(value is None for value in coords.values()):
        return None
    return RoadSegment(
        link_id=_as_identifier(_pick(entry, _SEGMENT_ALIASES["link_id"])),
        road_name=coerce_text(_pick(entry, _SEGMENT_ALIASES["road_name"])),
        road_category=_as_identifier(_pick(entry, _SEGMENT_ALIASES["road_category"])),
        speed_band=_as_band(_pick(entry, _SEGMENT_ALIASES["speed_band"])),
        min_speed=coerce_float(_pick(entry, _SEGMENT_ALIASES["min_speed"])),
        max_speed=coerce_float(_pick(entry, _SEGMENT_ALIASES["max_speed"])),
        **coords,
    )


def _incident(entry: Mapping[str, Any]) -> Incident | None:
    lat = coerce_float(_pick(entry, _INCIDENT_ALIASES["lat"]))
    lon = coerce_float(_pick(entry, _INCIDENT_ALIASES["lon"]))
    if lat is None or lon is None:
        return None

    incident_type = coerce_text(_pick(entry, _INCIDENT_ALIASES["type"]))
    message = coerce_text(_pick(entry, _INCIDENT_ALIASES["message"]))
    severity = _resolve_severity(_pick(entry, _INCIDENT_ALIASES["severity"]), incident_type)
    return Incident(
        lat=lat,
        lon=lon,
        severity=severity,
        title=coerce_text(_pick(entry, _INCIDENT_ALIASES["title"])),
        incident_type=incident_type,
        message=message,
        timestamp=coerce_text(_pick(entry, _INCIDENT_ALIASES["timestamp"])),
        id=_as_identifier(_pick(entry, _INCIDENT_ALIASES["id"])),
    )


def normalize_road_segments(raw: Any) -> list[RoadSegment]:
    out: list[RoadSegment] = []
    for entry in extract_entries(raw):
        segment = _road_segment(entry)
        if segment is not None:
            out.append(segment)
    return out


def normalize_incidents(raw: Any) -> list[Incident]:
    out: list[Incident] = []
    for entry in extract_entries(raw):
        incident = _incident(entry)
        if incident is not None:
            out.append(incident)
    return out


def inspect_payload(raw: Any, mode: InspectMode = "rows") -> Any:
    """Views of an untransformed payload for the raw-data inspector."""
    if mode == "rows":
        return _EXTRACTORS[detect_shape(raw)](raw)
    if mode == "meta":
        root = _root_candidate(raw)
        meta = root.get(META_KEY) if isinstance(root, Mapping) else None
        return meta if isinstance(meta, list) else []
    return raw if raw is not None else {}
