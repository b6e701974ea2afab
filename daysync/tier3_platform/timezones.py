"""
daysync.tier3_platform.timezones
─────────────────────────────────
Auxiliary time authority endpoints: timezone detection and manual change,
the timezone catalogue, week metadata and the drift check.

These calls are best-effort. Each one degrades to a neutral default
(False, [] or None) instead of raising, and any call that changes what
the authority considers "today" is followed by a forced resync.
"""
from __future__ import annotations

from typing import Any, Callable

from pydantic import BaseModel, ConfigDict

from daysync.tier0_core.config import TimeSyncConfig
from daysync.tier0_core.logging import get_logger
from daysync.tier1_runtime.clock import Clock, format_utc
from daysync.tier1_runtime.retry import call_with_retry
from daysync.tier1_runtime.validate import validate_input
from daysync.tier2_reliability.fallback import with_fallback
from daysync.tier3_platform.api_client import TimeApiClient
from daysync.tier3_platform.sync import SyncCoordinator

logger = get_logger(__name__)

DETECT_PATH = "/time/detect"
TIMEZONE_PATH = "/time/timezone"
TIMEZONES_PATH = "/time/timezones"
WEEK_INFO_PATH = "/time/week-info"
SYNC_CHECK_PATH = "/time/sync-check"


# ── Response models ───────────────────────────────────────────────────────────

class TimezoneInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    current_time: str
    offset: str
    display_name: str


class WeekInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    week_start: str
    week_end: str
    week_number: int
    days_in_week: list[str]


class TimeSyncCheck(BaseModel):
    model_config = ConfigDict(extra="ignore")

    is_synchronized: bool
    time_difference_seconds: float
    recommendation: str
    backend_time: str
    frontend_time: str


# ── Endpoint wrapper ──────────────────────────────────────────────────────────

class TimezoneEndpoints:
    """
    Usage::

        endpoints = TimezoneEndpoints(client, coordinator, config, clock,
                                      local_timezone=lambda: "Europe/Paris")
        if await endpoints.update_user_timezone("Asia/Tokyo"):
            ...
    """

    def __init__(
        self,
        client: TimeApiClient,
        coordinator: SyncCoordinator,
        config: TimeSyncConfig,
        clock: Clock,
        *,
        local_timezone: Callable[[], str],
    ) -> None:
        self._client = client
        self._coordinator = coordinator
        self._config = config
        self._clock = clock
        self._local_timezone = local_timezone

    @property
    def _timeout(self) -> float:
        return self._config.sync_timeout_seconds

    async def _get(self, path: str) -> Any:
        return await call_with_retry(
            self._client.get_json,
            path,
            timeout=self._timeout,
            max_attempts=self._config.aux_retry_attempts,
            min_wait=0.2,
            max_wait=2.0,
            jitter=0.2,
        )

    @with_fallback(default=False)
    async def detect_and_set_timezone(self, language: str = "en-US") -> bool:
        """Report the runtime timezone to the authority and adopt it."""
        tz_name = self._local_timezone()
        await self._client.post_json(
            DETECT_PATH,
            {"browser_timezone": tz_name, "language": language, "confidence": "high"},
            timeout=self._timeout,
        )
        logger.info("timezone.detected", timezone=tz_name)
        await self._coordinator.sync(force=True)
        return True

    @with_fallback(default=False)
    async def update_user_timezone(self, tz_name: str) -> bool:
        """Set the user's timezone manually; the user date may change with it."""
        await self._client.post_json(
            TIMEZONE_PATH,
            {"timezone": tz_name, "method": "manual"},
            timeout=self._timeout,
        )
        logger.info("timezone.updated", timezone=tz_name)
        await self._coordinator.sync(force=True)
        return True

    @with_fallback(default=[])
    async def get_available_timezones(self) -> list[TimezoneInfo]:
        body = await self._get(TIMEZONES_PATH)
        if not isinstance(body, list):
            body = (body or {}).get("timezones", [])
        return [validate_input(TimezoneInfo, item) for item in body]

    @with_fallback(default=None)
    async def get_week_info(self) -> WeekInfo | None:
        return validate_input(WeekInfo, await self._get(WEEK_INFO_PATH))

    @with_fallback(default=None)
    async def check_sync_status(self) -> TimeSyncCheck | None:
        """Compare device time with the authority; resync when they drift apart."""
        body = await self._client.post_json(
            SYNC_CHECK_PATH,
            {
                "frontend_timestamp": format_utc(self._clock.now()),
                "frontend_timezone": self._local_timezone(),
            },
            timeout=self._timeout,
        )
        check = validate_input(TimeSyncCheck, body)
        if not check.is_synchronized:
            logger.warning(
                "timezone.drift_detected",
                difference_seconds=check.time_difference_seconds,
                recommendation=check.recommendation,
            )
            await self._coordinator.sync(force=True)
        return check


__all__ = [
    "TimezoneInfo",
    "WeekInfo",
    "TimeSyncCheck",
    "TimezoneEndpoints",
]
