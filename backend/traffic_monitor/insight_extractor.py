"""Turn the AI analysis feed into a summary, hotspots and advice.

The analysis arrives as one text field mixing prose with JSON that may be
fenced, unfenced or cut off mid-object. Extraction is best effort and never
raises: at worst the result is empty prose with no hotspots and no advice.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator, Mapping
from typing import Any

from .models import InsightAdvice, InsightHotspot, InsightSummary, StructuredSource
from .payload_normalizer import coerce_float, coerce_text
from .speed_bands import BAND_LABELS, is_valid_band

TEXT_FIELDS: tuple[str, ...] = ("output", "text")
HOTSPOT_KEYS: tuple[str, ...] = ("topHotspots", "hotspots")
STRUCTURED_KEYS: tuple[str, ...] = ("generatedAt", "topHotspots", "hotspots", "advice")

_FENCE_JSON_RE = re.compile(r"```json[ \t]*\n?(.*?)```", re.IGNORECASE | re.DOTALL)
_FENCE_ANY_RE = re.compile(r"```[A-Za-z0-9_+-]*[ \t]*\n?(.*?)```", re.DOTALL)
_FENCE_OPEN_RE = re.compile(r"```[A-Za-z0-9_+-]*[ \t]*\n?")
_STRUCTURED_TAIL_RE = re.compile(
    r"\{?\s*\"(?:" + "|".join(STRUCTURED_KEYS) + r")\"\s*:",
)
_ADVICE_HEADER_RE = re.compile(
    r"(?:#{1,6}[ \t]*)?(?:\*\*|__)?[ \t]*Actionable\s+Advice",
    re.IGNORECASE,
)
_HEADING_RE = re.compile(r"^\s*#{1,6}\s")
_BULLET_RE = re.compile(r"^\s*(?:[-*•+]|\d+[.)])\s+(.*)$")

_ROAD_PHRASE = r"[A-Z][A-Z0-9'&/\-]*(?:[ \t]+[A-Z0-9][A-Z0-9'&/\-]*)*"
_PREPOSITION_ROAD_RE = re.compile(
    r"\b(?i:on|along|near|via|towards)[ \t]+(" + _ROAD_PHRASE + r")(?![A-Za-z0-9])"
)
_ROAD_RE = re.compile(r"(?<![A-Za-z0-9])(" + _ROAD_PHRASE + r")(?![A-Za-z0-9])")
_LEADING_ARTICLE_RE = re.compile(r"^(?:A|I)[ \t]+")
_ROAD_LEAD_SEPARATOR_RE = re.compile(r"^[ \t]*[:\-–—][ \t]*")
MIN_ROAD_NAME_LEN = 4


# ---------------------------------------------------------------------------
# locating the text and its structured part
# ---------------------------------------------------------------------------


def insight_text(raw: Any) -> str:
    root = raw[0] if isinstance(raw, list) and raw else raw
    if isinstance(root, str):
        return root
    if not isinstance(root, Mapping):
        return ""
    for field in TEXT_FIELDS:
        value = root.get(field)
        if value is not None:
            if isinstance(value, str):
                return value
            if isinstance(value, (dict, list)):
                return json.dumps(value, ensure_ascii=False)
            return str(value)
    return ""


def _strip_closed_fences(text: str) -> str:
    return _FENCE_ANY_RE.sub("", text)


def _unterminated_fence_body(text: str) -> str | None:
    """Body of a fence that was opened but never closed (truncated output)."""
    remainder = _strip_closed_fences(text)
    m = _FENCE_OPEN_RE.search(remainder)
    if m is None:
        return None
    return remainder[m.end():]


def close_truncated_json(text: str) -> str | None:
    """Cut a truncated JSON object back to its last complete value and close it.

    ``{"a": [{"x": 1}, {"x": 2}, {"x"`` becomes ``{"a": [{"x": 1}, {"x": 2}]}``.
    Returns ``None`` when nothing complete can be salvaged.
    """
    start = text.find("{")
    if start < 0:
        return None

    stack: list[str] = []
    in_string = False
    escaped = False
    last_cut: tuple[int, tuple[str, ...]] | None = None

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            stack.append("}")
        elif ch == "[":
            stack.append("]")
        elif ch in "}]":
            if not stack or stack[-1] != ch:
                return None
            stack.pop()
            if not stack:
                return text[start : i + 1]
            last_cut = (i, tuple(stack))

    if last_cut is None:
        return None
    cut_at, open_closers = last_cut
    return text[start : cut_at + 1] + "".join(reversed(open_closers))


def _candidates(text: str) -> Iterator[tuple[StructuredSource, str]]:
    for m in _FENCE_JSON_RE.finditer(text):
        yield "fenced_json", m.group(1)
    for m in _FENCE_ANY_RE.finditer(text):
        yield "fenced", m.group(1)

    body = _unterminated_fence_body(text)
    if body is not None:
        yield "truncated_fence", body
        repaired = close_truncated_json(body)
        if repaired is not None:
            yield "repaired", repaired

    a = text.find("{")
    b = text.rfind("}")
    if a >= 0 and b > a:
        yield "brace_scan", text[a : b + 1]

    repaired = close_truncated_json(text)
    if repaired is not None:
        yield "repaired", repaired


def _parse_object(candidate: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(candidate)
    except (ValueError, RecursionError):
        return None
    return parsed if isinstance(parsed, dict) else None


def find_structured(text: str) -> tuple[dict[str, Any], StructuredSource]:
    """First candidate that parses to a JSON object, in fixed priority order."""
    seen: set[str] = set()
    for source, candidate in _candidates(text):
        key = candidate.strip()
        if not key or key in seen:
            continue
        seen.add(key)
        parsed = _parse_object(key)
        if parsed is not None:
            return parsed, source
    return {}, "none"


# ---------------------------------------------------------------------------
# prose
# ---------------------------------------------------------------------------


def tidy_text(text: str) -> str:
    out = text.replace("\r\n", "\n")
    out = re.sub(r"[ \t]+\n", "\n", out)
    out = re.sub(r"\n{3,}", "\n\n", out)
    out = re.sub(r"[ \t]+([,.;:!?])", r"\1", out)
    out = re.sub(r"([,;:!?])(?=[A-Za-z])", r"\1 ", out)
    # A capital after the period marks a new sentence; decimals and times stay intact.
    out = re.sub(r"\.(?=[A-Z])", ". ", out)
    out = re.sub(r"[ \t]{2,}", " ", out)
    return out.strip()


def derive_prose(text: str) -> str:
    out = _strip_closed_fences(text)
    m = _FENCE_OPEN_RE.search(out)
    if m is not None:
        out = out[: m.start()]
    m = _STRUCTURED_TAIL_RE.search(out)
    if m is not None:
        out = out[: m.start()]
    m = _ADVICE_HEADER_RE.search(out)
    if m is not None:
        out = out[: m.start()]
    return tidy_text(out)


# ---------------------------------------------------------------------------
# structured records
# ---------------------------------------------------------------------------


def _count(value: Any) -> int:
    number = coerce_float(value)
    if number is None or number < 0:
        return 0
    return int(number)


def _band(value: Any) -> int:
    number = coerce_float(value)
    if number is None or not number.is_integer() or not is_valid_band(int(number)):
        return 1
    return int(number)


def _hotspot(item: Any) -> InsightHotspot | None:
    if not isinstance(item, Mapping):
        return None
    band = _band(item.get("band"))
    return InsightHotspot(
        road=coerce_text(item.get("road")),
        band=band,
        band_label=coerce_text(item.get("bandLabel")) or BAND_LABELS[band],
        avg_min=coerce_float(item.get("avgMin")),
        avg_max=coerce_float(item.get("avgMax")),
        works=_count(item.get("works")),
        incidents=_count(item.get("incidents")),
    )


def hotspots_from(structured: Mapping[str, Any]) -> list[InsightHotspot]:
    for key in HOTSPOT_KEYS:
        items = structured.get(key)
        if isinstance(items, list):
            return [h for h in (_hotspot(item) for item in items) if h is not None]
    return []


def infer_road(line: str) -> str | None:
    """Best-effort road name: an all-caps phrase of at least 4 characters.

    Phrases following on/along/near/via/towards are preferred. This is a
    heuristic; short codes such as "PIE" or "CTE" are deliberately not matched
    and the caller keeps the full line as the action when nothing is found.
    """
    for pattern in (_PREPOSITION_ROAD_RE, _ROAD_RE):
        for m in pattern.finditer(line):
            phrase = _LEADING_ARTICLE_RE.sub("", m.group(1)).strip(" -/'&")
            if len(phrase) >= MIN_ROAD_NAME_LEN:
                return phrase
    return None


def _advice_from_line(line: str) -> InsightAdvice:
    road = infer_road(line)
    action = line
    if road is not None and line.startswith(road):
        remainder = _ROAD_LEAD_SEPARATOR_RE.sub("", line[len(road):], count=1).strip()
        if remainder:
            action = remainder
    return InsightAdvice(road=road, action=action, inferred=road is not None)


def _structured_advice_item(item: Any) -> InsightAdvice | None:
    if isinstance(item, str):
        text = item.strip()
        return _advice_from_line(text) if text else None
    if not isinstance(item, Mapping):
        return None
    road = coerce_text(item.get("road"))
    action = coerce_text(item.get("action")) or ""
    if road is None and not action:
        return None
    if road is None:
        inferred = infer_road(action)
        return InsightAdvice(road=inferred, action=action, inferred=inferred is not None)
    return InsightAdvice(road=road, action=action)


def advice_from(items: list[Any]) -> list[InsightAdvice]:
    return [a for a in (_structured_advice_item(item) for item in items) if a is not None]


def _strip_leaked_json(line: str) -> str:
    cut = len(line)
    for marker in ("```", '{"'):
        idx = line.find(marker)
        if idx >= 0:
            cut = min(cut, idx)
    m = _STRUCTURED_TAIL_RE.search(line)
    if m is not None:
        cut = min(cut, m.start())
    return line[:cut]


def fallback_advice(text: str) -> list[InsightAdvice]:
    """Rebuild advice from the bullet lines under the "Actionable Advice" header."""
    header = _ADVICE_HEADER_RE.search(text)
    if header is None:
        return []
    newline = text.find("\n", header.end())
    if newline < 0:
        return []

    out: list[InsightAdvice] = []
    for line in text[newline + 1 :].splitlines():
        if _HEADING_RE.match(line):
            break
        m = _BULLET_RE.match(line)
        if m is None:
            continue
        body = _strip_leaked_json(m.group(1))
        body = body.replace("**", "").replace("__", "").strip()
        if body:
            out.append(_advice_from_line(body))
    return out


def extract_insights(raw: Any) -> InsightSummary:
    text = insight_text(raw)
    if not text.strip():
        return InsightSummary()

    structured, source = find_structured(text)
    advice_items = structured.get("advice")
    if isinstance(advice_items, list):
        advice = advice_from(advice_items)
    else:
        advice = fallback_advice(text)

    return InsightSummary(
        prose=derive_prose(text),
        generated_at=coerce_text(structured.get("generatedAt")),
        hotspots=hotspots_from(structured),
        advice=advice,
        structured_source=source,
    )
