"""Fetch/cancel/poll lifecycle for one JSON feed.

Each ``FeedSynchronizer`` owns a single ``FeedState``. At most one request is
in flight per feed: a new fetch (mount, manual refresh or timer tick) cancels
the previous task and bumps a generation counter. A completing attempt only
touches state while its generation is still the current one, so a superseded
response can never overwrite a newer one.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import partial
from typing import Any

import httpx

from .feed_errors import FeedFetchError, from_status, from_transport
from .logging_utils import log_feed_event
from .metrics_store import FetchOutcome, record_fetch
from .models import FeedErrorView, FeedSnapshot
from .settings import FeedConfig

Fetcher = Callable[[str], Awaitable[Any]]
UpdateListener = Callable[[str, "FeedState"], None]


async def fetch_json(client: httpx.AsyncClient, url: str) -> Any:
    try:
        resp = await client.get(url, headers={"cache-control": "no-cache"})
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise from_transport(e) from e

    if not resp.is_success:
        raise from_status(resp)

    try:
        return resp.json()
    except ValueError as e:
        raise FeedFetchError(
            f"invalid JSON payload ({resp.status_code})",
            reason_code="feed_invalid_json",
            status_code=resp.status_code,
        ) from e


@dataclass
class FeedState:
    # Last successfully parsed payload; kept while a refresh is loading or has failed.
    data: Any = None
    loading: bool = False
    error: FeedFetchError | None = None
    last_updated_at: datetime | None = None
    version: int = 0


class FeedSynchronizer:
    def __init__(
        self,
        name: str,
        config: FeedConfig,
        *,
        client: httpx.AsyncClient | None = None,
        fetcher: Fetcher | None = None,
        on_update: UpdateListener | None = None,
    ) -> None:
        if fetcher is None:
            if client is None:
                raise ValueError("FeedSynchronizer needs an httpx client or a fetcher")
            fetcher = partial(fetch_json, client)

        self.name = name
        self.config = config
        self.state = FeedState(loading=config.fetch_on_mount)
        self._fetcher = fetcher
        self._on_update = on_update

        self._generation = 0
        self._inflight: asyncio.Task[None] | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._mounted = False
        self._closed = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def closed(self) -> bool:
        return self._closed

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def mount(self) -> None:
        """Start the feed: one fetch when configured, then polling when enabled."""
        if self._closed:
            raise RuntimeError(f"feed {self.name!r} was unmounted")
        if self._mounted:
            return
        self._mounted = True

        if self.config.fetch_on_mount:
            self.refresh()
        if self.config.polling_enabled:
            self._poll_task = asyncio.create_task(self._poll_loop(), name=f"feed-poll:{self.name}")

    def refresh(self) -> asyncio.Task[None] | None:
        """Cancel any in-flight request and issue a new one.

        Returns the attempt's task, or ``None`` once the feed is unmounted.
        """
        if self._closed:
            return None

        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

        self._generation += 1
        generation = self._generation
        self.state.loading = True
        self.state.error = None

        self._inflight = asyncio.create_task(
            self._attempt(generation),
            name=f"feed-fetch:{self.name}:{generation}",
        )
        return self._inflight

    async def refresh_and_wait(self) -> FeedSnapshot:
        task = self.refresh()
        if task is not None:
            # asyncio.wait does not raise if a later refresh cancels this attempt.
            await asyncio.wait({task})
        return self.snapshot()

    async def unmount(self) -> None:
        if self._closed:
            return
        self._closed = True

        pending = [t for t in (self._poll_task, self._inflight) if t is not None and not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._poll_task = None
        self._inflight = None

    async def _poll_loop(self) -> None:
        interval_s = self.config.refresh_interval_ms / 1000.0
        while not self._closed:
            await asyncio.sleep(interval_s)
            self.refresh()

    async def _attempt(self, generation: int) -> None:
        t0 = time.perf_counter()
        outcome: FetchOutcome = "cancelled"
        try:
            payload = await self._fetcher(self.config.url)
        except FeedFetchError as e:
            if self._is_current(generation):
                self.state.error = e
                outcome = "error"
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._is_current(generation):
                self.state.error = FeedFetchError(
                    f"{type(e).__name__}: {e}",
                    reason_code="feed_fetch_failed",
                )
                outcome = "error"
        else:
            if self._is_current(generation):
                self.state.data = payload
                self.state.last_updated_at = datetime.now(UTC)
                self.state.version += 1
                outcome = "ok"
        finally:
            if self._is_current(generation):
                self.state.loading = False
            duration_ms = round((time.perf_counter() - t0) * 1000, 2)
            record_fetch(self.name, outcome=outcome, duration_ms=duration_ms)
            self._log_attempt(generation, outcome, duration_ms)

        if outcome == "ok" and self._on_update is not None:
            self._on_update(self.name, self.state)

    def _log_attempt(self, generation: int, outcome: FetchOutcome, duration_ms: float) -> None:
        fields: dict[str, Any] = {
            "generation": generation,
            "outcome": outcome,
            "duration_ms": duration_ms,
        }
        level = logging.INFO
        if outcome == "error" and self.state.error is not None:
            fields["reason_code"] = self.state.error.reason_code
            fields["status_code"] = self.state.error.status_code
            fields["error"] = str(self.state.error)
            level = logging.WARNING
        log_feed_event(self.name, "feed_fetch", version=self.state.version, level=level, **fields)

    def snapshot(self) -> FeedSnapshot:
        err = self.state.error
        return FeedSnapshot(
            name=self.name,
            url=self.config.url,
            loading=self.state.loading,
            error=(
                FeedErrorView(message=str(err), reason_code=err.reason_code, status_code=err.status_code)
                if err is not None
                else None
            ),
            last_updated_at=self.state.last_updated_at,
            has_data=self.state.data is not None,
            version=self.state.version,
            polling_interval_ms=self.config.refresh_interval_ms,
        )
