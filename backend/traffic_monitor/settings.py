from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

FEED_NAMES: tuple[str, ...] = ("roads", "incidents", "insights")


def _default_out_dir() -> str:
    # Keep logs in backend/out by default to avoid polluting the source tree.
    return str(Path(__file__).resolve().parents[1] / "out")


class FeedConfig(BaseModel):
    """Source URL and refresh policy for one polled feed."""

    url: str
    refresh_interval_ms: int = Field(default=0, ge=0)
    fetch_on_mount: bool = True

    @property
    def polling_enabled(self) -> bool:
        return self.refresh_interval_ms > 0


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping feed locations out of code."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    road_feed_url: str = Field(
        default="http://localhost:5678/webhook/speed-bands",
        alias="ROAD_FEED_URL",
    )
    incident_feed_url: str = Field(
        default="http://localhost:5678/webhook/traffic-incidents",
        alias="INCIDENT_FEED_URL",
    )
    insight_feed_url: str = Field(
        default="http://localhost:5678/webhook/traffic-insights",
        alias="INSIGHT_FEED_URL",
    )

    # 0 disables polling: the feed is fetched once on mount and then only on manual refresh.
    road_refresh_interval_ms: int = Field(default=60_000, ge=0, alias="ROAD_REFRESH_INTERVAL_MS")
    incident_refresh_interval_ms: int = Field(default=60_000, ge=0, alias="INCIDENT_REFRESH_INTERVAL_MS")
    insight_refresh_interval_ms: int = Field(default=0, ge=0, alias="INSIGHT_REFRESH_INTERVAL_MS")
    fetch_on_mount: bool = Field(default=True, alias="FETCH_ON_MOUNT")

    feed_request_timeout_s: float = Field(default=30.0, ge=1.0, le=300.0, alias="FEED_REQUEST_TIMEOUT_S")

    out_dir: str = Field(default_factory=_default_out_dir, alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    slowest_segments_limit: int = Field(default=6, ge=1, le=100, alias="SLOWEST_SEGMENTS_LIMIT")

    def feed_configs(self) -> dict[str, FeedConfig]:
        return {
            "roads": FeedConfig(
                url=self.road_feed_url,
                refresh_interval_ms=self.road_refresh_interval_ms,
                fetch_on_mount=self.fetch_on_mount,
            ),
            "incidents": FeedConfig(
                url=self.incident_feed_url,
                refresh_interval_ms=self.incident_refresh_interval_ms,
                fetch_on_mount=self.fetch_on_mount,
            ),
            "insights": FeedConfig(
                url=self.insight_feed_url,
                refresh_interval_ms=self.insight_refresh_interval_ms,
                fetch_on_mount=self.fetch_on_mount,
            ),
        }


settings = Settings()
