"""
daysync.tier3_platform.mock_override
─────────────────────────────────────
Developer-only control of the authority's simulated date.

Unlike background sync, every failure here reaches the caller as
UserCommandError: the command is a foreground action whose result the
developer tool has to report.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable

from daysync.tier0_core.config import TimeSyncConfig
from daysync.tier0_core.errors import TimeSyncError, UserCommandError
from daysync.tier0_core.logging import get_logger
from daysync.tier0_core.snapshot import TimeSnapshot
from daysync.tier3_platform.api_client import TimeApiClient
from daysync.tier3_platform.sync import SyncCoordinator

logger = get_logger(__name__)


def _normalize_iso(value: str) -> str:
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise UserCommandError(
            user_message=f"Not an ISO-8601 date/time: {value!r}",
            detail=f"invalid mock datetime {value!r}: {exc}",
        ) from exc
    return value


class MockOverrideController:
    """
    Usage::

        controller = MockOverrideController(client, coordinator, config,
                                            is_authenticated=lambda: True)
        await controller.set_mock_datetime("2025-06-15T10:00:00")
        await controller.set_mock_datetime(None)   # back to real time
    """

    def __init__(
        self,
        client: TimeApiClient,
        coordinator: SyncCoordinator,
        config: TimeSyncConfig,
        *,
        is_authenticated: Callable[[], bool],
    ) -> None:
        self._client = client
        self._coordinator = coordinator
        self._config = config
        self._is_authenticated = is_authenticated

    async def set_mock_datetime(self, iso_or_none: str | None) -> TimeSnapshot | None:
        """Pin (or with None, release) the authority's clock, then resync."""
        action = "clear" if iso_or_none is None else "set"
        if not self._config.mock_override_allowed:
            raise UserCommandError(
                user_message="Mock dates are disabled in this environment.",
                detail=f"mock override {action} refused: disabled by config",
            )
        if not self._is_authenticated():
            raise UserCommandError(
                user_message="Sign in before changing the mock date.",
                detail=f"mock override {action} refused: anonymous session",
            )

        path = self._config.mock_time_path
        try:
            if iso_or_none is None:
                await self._client.delete(path, timeout=self._config.sync_timeout_seconds)
            else:
                await self._client.post_json(
                    path,
                    {"mock_datetime": _normalize_iso(iso_or_none)},
                    timeout=self._config.sync_timeout_seconds,
                )
            snapshot = await self._coordinator.sync(force=True, raise_errors=True)
        except UserCommandError:
            raise
        except TimeSyncError as exc:
            logger.error("mock_override.failed", action=action, error=str(exc), code=exc.code)
            raise UserCommandError(
                user_message=(
                    "Failed to reset to real time."
                    if iso_or_none is None
                    else "Failed to set mock date."
                ),
                detail=f"mock override {action} failed: {exc}",
                cause_code=exc.code,
            ) from exc

        logger.info(
            "mock_override.applied",
            action=action,
            requested=iso_or_none,
            date=snapshot.user_date if snapshot else None,
            is_mock=snapshot.is_mock_date if snapshot else None,
        )
        return snapshot


__all__ = ["MockOverrideController"]
