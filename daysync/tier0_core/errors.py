"""
daysync.tier0_core.errors
──────────────────────────
Error taxonomy for time synchronization. Every error carries a stable
machine-readable code, a user-safe message, and internal detail.

Background sync absorbs every error below except UserCommandError, which
is the only one surfaced to callers (explicit developer action).

Optional capture backend: DAYSYNC_ERROR_BACKEND=sentry|none
"""
from __future__ import annotations

import os
from typing import Any


# ── Base error ────────────────────────────────────────────────────────────────

class TimeSyncError(Exception):
    """
    Base class for all daysync errors. Every error has:
    - code: stable machine-readable string (snake_case)
    - user_message: safe to surface to end users
    - detail: internal context, never shown to users
    - status_code: HTTP-equivalent status for classification
    """

    status_code: int = 500
    code: str = "time_sync_error"
    counts_toward_ceiling: bool = True

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "Time synchronization failed.",
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        self.code = code or self.__class__.code
        self.user_message = user_message
        self.detail = detail or user_message
        self.metadata = metadata
        super().__init__(self.detail)
        _capture(self)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.user_message,
            }
        }


# ── Typed error classes ───────────────────────────────────────────────────────

class AuthRequiredError(TimeSyncError):
    """The authority rejected the session. Stay on local time silently."""
    status_code = 401
    code = "auth_required"
    counts_toward_ceiling = False


class ForbiddenError(AuthRequiredError):
    """Session is authenticated but not allowed to read server time."""
    status_code = 403
    code = "forbidden"


class NetworkUnavailableError(TimeSyncError):
    """The authority could not be reached."""
    status_code = 503
    code = "network_unavailable"


class SyncTimeoutError(NetworkUnavailableError):
    """The request was aborted after the sync timeout elapsed."""
    status_code = 504
    code = "sync_timeout"


class UpstreamError(TimeSyncError):
    """The authority answered with an unexpected status or body."""
    status_code = 502
    code = "upstream_error"


class ContractViolationError(TimeSyncError):
    """The authority's response is missing required fields."""
    status_code = 422
    code = "contract_violation"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "Time authority response failed validation.",
        fields: dict | None = None,
        payload: Any = None,
        **metadata: Any,
    ) -> None:
        self.fields = fields or {}
        self.payload = payload
        super().__init__(code, user_message, **metadata)

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.fields:
            d["error"]["fields"] = self.fields
        return d


class UserCommandError(TimeSyncError):
    """A foreground developer command (mock date set/clear) failed."""
    status_code = 400
    code = "user_command_failed"


class ConfigurationError(TimeSyncError):
    """Misconfiguration detected at startup."""
    status_code = 500
    code = "configuration_error"
    counts_toward_ceiling = False


# ── Error capture backend ─────────────────────────────────────────────────────

def _capture(error: TimeSyncError) -> None:
    """Send error to the configured backend. Called by TimeSyncError.__init__."""
    backend = os.getenv("DAYSYNC_ERROR_BACKEND", "none").lower()
    if backend == "sentry":
        _capture_sentry(error)


def _capture_sentry(error: TimeSyncError) -> None:
    import sentry_sdk
    if error.status_code >= 500:
        sentry_sdk.capture_exception(error)
    else:
        sentry_sdk.capture_message(
            str(error),
            level="warning",
        )


def configure_sentry(dsn: str, **kwargs: Any) -> None:
    """Initialize Sentry. Call once at application startup."""
    import sentry_sdk
    sentry_sdk.init(dsn=dsn, **kwargs)
    os.environ["DAYSYNC_ERROR_BACKEND"] = "sentry"


__all__ = [
    "TimeSyncError",
    "AuthRequiredError",
    "ForbiddenError",
    "NetworkUnavailableError",
    "SyncTimeoutError",
    "UpstreamError",
    "ContractViolationError",
    "UserCommandError",
    "ConfigurationError",
    "configure_sentry",
]
