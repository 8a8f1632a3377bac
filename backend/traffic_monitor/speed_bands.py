from __future__ import annotations

# LTA speed bands bucket average link speed into 10 km/h ranges.
BAND_COLORS: dict[int, str] = {
    1: "#d73027",
    2: "#fc8d59",
    3: "#fee08b",
    4: "#d9ef8b",
    5: "#91cf60",
    6: "#1a9850",
}

BAND_RANGES_KMH: dict[int, str] = {
    1: "0–9",
    2: "10–19",
    3: "20–29",
    4: "30–39",
    5: "40–49",
    6: "50–59",
}

BAND_LABELS: dict[int, str] = {
    1: "gridlock",
    2: "very slow",
    3: "slow",
    4: "moderate",
    5: "fast",
    6: "very fast",
}

UNKNOWN_BAND_COLOR = "#888888"
ALERT_COLOR = "#dc2626"

CONGESTED_MAX_BAND = 2
FLOWING_MIN_BAND = 5


def is_valid_band(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value in BAND_COLORS


def band_color(band: int | None) -> str:
    if band is None:
        return UNKNOWN_BAND_COLOR
    return BAND_COLORS.get(band, UNKNOWN_BAND_COLOR)


def band_label(band: int | None) -> str:
    if band is None:
        return ""
    return BAND_LABELS.get(band, "")


def incident_radius(severity: int | None) -> int:
    """Marker radius in pixels; grows with severity and caps at 26."""
    sev = severity if severity and severity > 0 else 1
    return min(6 + 3 * sev, 26)


def severity_color(severity: int | None) -> str:
    sev = severity if severity and severity > 0 else 1
    if sev >= 4:
        return "#bd0026"
    if sev >= 3:
        return "#f03b20"
    if sev >= 2:
        return "#fd8d3c"
    return "#feb24c"
