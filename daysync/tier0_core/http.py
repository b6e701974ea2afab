"""
daysync.tier0_core.http
────────────────────────
HTTP status constants and the mapping from a response status onto the
daysync error taxonomy. The api client and the sync coordinator share
these so that 401/403 are classified identically everywhere.
"""
from __future__ import annotations

from typing import Any

from daysync.tier0_core.errors import (
    AuthRequiredError,
    ForbiddenError,
    TimeSyncError,
    UpstreamError,
)


# ── Status code constants ──────────────────────────────────────────────────

class HTTP:
    """HTTP status codes the time authority is expected to return."""

    # 2xx
    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    # 4xx
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    UNPROCESSABLE_ENTITY = 422
    TOO_MANY_REQUESTS = 429

    # 5xx
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504


def is_success(status: int) -> bool:
    return 200 <= status < 300


def error_for_status(status: int, *, url: str = "", body: Any = None) -> TimeSyncError:
    """Return the taxonomy error for a non-2xx *status*."""
    detail = f"HTTP {status} from {url}" if url else f"HTTP {status}"
    if status == HTTP.UNAUTHORIZED:
        return AuthRequiredError(user_message="Sign in to sync time.", detail=detail, url=url)
    if status == HTTP.FORBIDDEN:
        return ForbiddenError(user_message="Not allowed to read server time.", detail=detail, url=url)
    return UpstreamError(
        user_message="Time authority returned an error.",
        detail=detail,
        url=url,
        status=status,
        body=body,
    )


__all__ = ["HTTP", "is_success", "error_for_status"]
