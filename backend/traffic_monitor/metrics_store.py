from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from threading import Lock
from typing import Literal

FetchOutcome = Literal["ok", "error", "cancelled"]


@dataclass
class FeedFetchStats:
    attempt_count: int = 0
    ok_count: int = 0
    error_count: int = 0
    cancelled_count: int = 0
    total_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    last_outcome: str | None = None


class FeedMetricsStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._created_at = datetime.now(UTC).isoformat()
        self._feeds: dict[str, FeedFetchStats] = {}

    def record(self, feed: str, *, outcome: FetchOutcome, duration_ms: float) -> None:
        name = feed.strip() or "unknown"
        d_ms = max(float(duration_ms), 0.0)

        with self._lock:
            stats = self._feeds.setdefault(name, FeedFetchStats())
            stats.attempt_count += 1
            if outcome == "ok":
                stats.ok_count += 1
            elif outcome == "error":
                stats.error_count += 1
            else:
                stats.cancelled_count += 1
            stats.last_outcome = outcome
            # Cancelled attempts never finished a request; keep them out of latency figures.
            if outcome != "cancelled":
                stats.total_duration_ms += d_ms
                if d_ms > stats.max_duration_ms:
                    stats.max_duration_ms = d_ms

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            feeds: dict[str, dict[str, float | int | str | None]] = {}
            total_attempts = 0
            total_errors = 0

            for name in sorted(self._feeds):
                stats = self._feeds[name]
                total_attempts += stats.attempt_count
                total_errors += stats.error_count
                completed = stats.ok_count + stats.error_count
                avg_duration_ms = stats.total_duration_ms / completed if completed else 0.0
                feeds[name] = {
                    "attempt_count": stats.attempt_count,
                    "ok_count": stats.ok_count,
                    "error_count": stats.error_count,
                    "cancelled_count": stats.cancelled_count,
                    "avg_duration_ms": round(avg_duration_ms, 3),
                    "max_duration_ms": round(stats.max_duration_ms, 3),
                    "last_outcome": stats.last_outcome,
                }

            return {
                "created_at": self._created_at,
                "total_attempts": total_attempts,
                "total_errors": total_errors,
                "feed_count": len(feeds),
                "feeds": feeds,
            }

    def reset(self) -> None:
        with self._lock:
            self._created_at = datetime.now(UTC).isoformat()
            self._feeds.clear()


METRICS = FeedMetricsStore()


def record_fetch(feed: str, *, outcome: FetchOutcome, duration_ms: float) -> None:
    METRICS.record(feed, outcome=outcome, duration_ms=duration_ms)


def metrics_snapshot() -> dict[str, object]:
    return METRICS.snapshot()


def reset_metrics() -> None:
    METRICS.reset()
