from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Annotated, Any

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from .feed_sync import FeedSynchronizer
from .logging_utils import log_event, log_feed_event
from .metrics_store import metrics_snapshot
from .models import DashboardView, FeedListResponse, FeedSnapshot, InsightView, InspectMode, MapView
from .payload_normalizer import inspect_payload
from .settings import settings
from .traffic_view import TrafficView


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.feed_request_timeout_s),
        follow_redirects=True,
        headers={"accept": "application/json"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = build_http_client()
    view = TrafficView(settings.feed_configs(), client=client)
    app.state.view = view
    view.mount()
    log_event("view_mounted", feeds=sorted(view.feeds))
    try:
        yield
    finally:
        await view.unmount()
        await client.aclose()
        app.state.view = None
        log_event("view_unmounted")


app = FastAPI(title="Singapore Traffic Monitor", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def traffic_view(request: Request) -> TrafficView:
    view: TrafficView | None = getattr(request.app.state, "view", None)  # type: ignore[attr-defined]
    if view is None:
        raise HTTPException(status_code=503, detail="traffic view not initialised")
    return view


ViewDep = Annotated[TrafficView, Depends(traffic_view)]


def _feed_or_404(view: TrafficView, name: str) -> FeedSynchronizer:
    feed = view.feed(name)
    if feed is None:
        raise HTTPException(status_code=404, detail=f"unknown feed: {name}")
    return feed


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Backend is running. Visit /docs for the API UI.", "docs": "/docs"}


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/feeds", response_model=FeedListResponse)
async def list_feeds(view: ViewDep) -> FeedListResponse:
    return FeedListResponse(feeds=[feed.snapshot() for feed in view.feeds.values()])


@app.get("/feeds/{name}/raw")
async def feed_raw(name: str, view: ViewDep, mode: InspectMode = "rows") -> Any:
    feed = _feed_or_404(view, name)
    return inspect_payload(feed.state.data, mode)


@app.post("/feeds/{name}/refresh", response_model=FeedSnapshot)
async def refresh_feed(name: str, view: ViewDep) -> FeedSnapshot:
    feed = _feed_or_404(view, name)
    t0 = time.perf_counter()
    snapshot = await feed.refresh_and_wait()
    log_feed_event(
        name,
        "feed_refresh_request",
        version=snapshot.version,
        failed=snapshot.error is not None,
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return snapshot


@app.get("/map", response_model=MapView)
async def map_view(view: ViewDep) -> MapView:
    t0 = time.perf_counter()
    out = view.map_view()
    log_event(
        "map_request",
        segment_count=len(out.segments),
        incident_count=len(out.incidents),
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return out


@app.get("/insights", response_model=InsightView)
async def insights(view: ViewDep) -> InsightView:
    return view.insight_view()


@app.get("/dashboard", response_model=DashboardView)
async def dashboard(view: ViewDep) -> DashboardView:
    return view.dashboard_view(slowest_limit=settings.slowest_segments_limit)


@app.get("/metrics")
async def metrics() -> dict[str, object]:
    return metrics_snapshot()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("traffic_monitor.main:app", host="0.0.0.0", port=8000)
