from __future__ import annotations

from typing import Any

import httpx

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        "feed_http_status",
        "feed_transport_error",
        "feed_invalid_json",
        "feed_fetch_failed",
    }
)


class FeedFetchError(RuntimeError):
    """A feed request failed at the transport level.

    This is the only failure that reaches a feed's visible ``error`` state.
    Shape and field problems in a payload are handled by dropping data instead.
    """

    def __init__(
        self,
        message: str,
        *,
        reason_code: str = "feed_fetch_failed",
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.reason_code = normalize_reason_code(reason_code)
        self.status_code = status_code
        self.details = details

    def __str__(self) -> str:
        return self.message


def normalize_reason_code(reason_code: str, *, default: str = "feed_fetch_failed") -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default


def from_status(resp: httpx.Response) -> FeedFetchError:
    reason = (resp.reason_phrase or "").strip()
    message = f"{resp.status_code} {reason}".strip()
    return FeedFetchError(message, reason_code="feed_http_status", status_code=resp.status_code)


def from_transport(exc: Exception) -> FeedFetchError:
    # httpx exceptions can stringify to "" (e.g. some timeouts), so include the type.
    msg = str(exc).strip()
    detail = f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__
    return FeedFetchError(detail, reason_code="feed_transport_error")
