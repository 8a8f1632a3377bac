from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import httpx

from .dashboard import band_distribution, legend, map_bounds, map_segments, road_stats, slowest_segments
from .feed_sync import FeedState, FeedSynchronizer, Fetcher
from .insight_extractor import extract_insights
from .logging_utils import log_feed_event
from .models import (
    DashboardView,
    EnrichmentResult,
    FeedSnapshot,
    Incident,
    InsightSummary,
    InsightView,
    MapView,
    RoadSegment,
)
from .payload_normalizer import detect_shape, extract_entries, normalize_incidents, normalize_road_segments
from .settings import FEED_NAMES, FeedConfig
from .spatial_enricher import enrich_incidents


class TrafficView:
    """The three live feeds plus everything derived from their latest payloads.

    Derived records are rebuilt only when a feed applies new data; between
    updates every view reads the same immutable snapshot.
    """

    def __init__(
        self,
        configs: Mapping[str, FeedConfig],
        *,
        client: httpx.AsyncClient | None = None,
        fetcher: Fetcher | None = None,
    ) -> None:
        missing = [name for name in FEED_NAMES if name not in configs]
        if missing:
            raise ValueError(f"missing feed configuration: {', '.join(missing)}")

        self.feeds: dict[str, FeedSynchronizer] = {
            name: FeedSynchronizer(
                name,
                configs[name],
                client=client,
                fetcher=fetcher,
                on_update=self._on_feed_update,
            )
            for name in FEED_NAMES
        }

        self._segments: list[RoadSegment] = []
        self._incidents: list[Incident] = []
        self._enrichment = EnrichmentResult()
        self._summary = InsightSummary()

    @property
    def roads(self) -> FeedSynchronizer:
        return self.feeds["roads"]

    @property
    def incidents(self) -> FeedSynchronizer:
        return self.feeds["incidents"]

    @property
    def insights(self) -> FeedSynchronizer:
        return self.feeds["insights"]

    def feed(self, name: str) -> FeedSynchronizer | None:
        return self.feeds.get(name)

    def mount(self) -> None:
        for feed in self.feeds.values():
            feed.mount()

    async def unmount(self) -> None:
        await asyncio.gather(*(feed.unmount() for feed in self.feeds.values()))

    # -- derivation ---------------------------------------------------------

    def _on_feed_update(self, name: str, state: FeedState) -> None:
        if name == "roads":
            self._segments = normalize_road_segments(state.data)
            self._refresh_enrichment()
            self._log_normalized(name, state.data, len(self._segments), state.version)
        elif name == "incidents":
            self._incidents = normalize_incidents(state.data)
            self._refresh_enrichment()
            self._log_normalized(name, state.data, len(self._incidents), state.version)
        elif name == "insights":
            self._summary = extract_insights(state.data)
            log_feed_event(
                name,
                "insights_extracted",
                version=state.version,
                structured_source=self._summary.structured_source,
                hotspot_count=len(self._summary.hotspots),
                advice_count=len(self._summary.advice),
            )

    def _refresh_enrichment(self) -> None:
        self._enrichment = enrich_incidents(self._segments, self._incidents)

    def _log_normalized(self, name: str, raw: Any, kept: int, version: int) -> None:
        received = len(extract_entries(raw))
        log_feed_event(
            name,
            "feed_normalized",
            version=version,
            shape=detect_shape(raw).value,
            received=received,
            kept=kept,
            dropped=received - kept,
        )

    # -- views --------------------------------------------------------------

    def _snapshots(self, *names: str) -> list[FeedSnapshot]:
        return [self.feeds[n].snapshot() for n in names]

    @property
    def segments(self) -> list[RoadSegment]:
        return self._segments

    @property
    def normalized_incidents(self) -> list[Incident]:
        return self._incidents

    @property
    def enrichment(self) -> EnrichmentResult:
        return self._enrichment

    @property
    def summary(self) -> InsightSummary:
        return self._summary

    def map_view(self) -> MapView:
        enrichment = self._enrichment
        has_speeds = enrichment.point_count > 0
        return MapView(
            segments=map_segments(self._segments),
            incidents=enrichment.incidents,
            speed_min=enrichment.speed_min,
            speed_max=enrichment.speed_max,
            bounds=map_bounds(self._segments, self._incidents),
            legend=legend(
                enrichment.speed_min if has_speeds else None,
                enrichment.speed_max if has_speeds else None,
            ),
            feeds=self._snapshots("roads", "incidents"),
        )

    def insight_view(self) -> InsightView:
        return InsightView(summary=self._summary, feed=self.insights.snapshot())

    def dashboard_view(self, *, slowest_limit: int = 6) -> DashboardView:
        return DashboardView(
            stats=road_stats(self._segments, self._incidents),
            band_distribution=band_distribution(self._segments),
            slowest=slowest_segments(self._segments, limit=slowest_limit),
            feeds=self._snapshots("roads", "incidents"),
        )
