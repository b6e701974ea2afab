"""
daysync.service
────────────────
TimeService: the one object consumers ask "what day is it for this user?"

Reads (get_current_date, get_current_date_time, get_user_timezone,
is_mock_date, is_ready) are synchronous and never fail: they return the
last committed snapshot, or a device-clock fallback before initialize().
Every network interaction happens in coroutines (initialize, sync,
set_authentication_status, set_mock_datetime, the timezone endpoints)
whose failures are absorbed, except set_mock_datetime which raises
UserCommandError.

Construct one instance per process and pass it by reference::

    async with TimeService() as time_service:
        await time_service.initialize(is_authenticated=True)
        time_service.add_day_change_listener(on_new_day)
        today = time_service.get_current_date()
"""
from __future__ import annotations

import re
from typing import Any, Mapping

from daysync.tier0_core.config import TimeSyncConfig, get_config
from daysync.tier0_core.logging import get_logger
from daysync.tier0_core.snapshot import DayChangeEvent, SyncState, SyncStateStore, TimeSnapshot
from daysync.tier1_runtime import dates
from daysync.tier1_runtime.clock import Clock, resolve_local_timezone
from daysync.tier2_reliability.cache import DateKeyedCache
from daysync.tier2_reliability.fallback import build_fallback_snapshot
from daysync.tier3_platform.api_client import TimeApiClient
from daysync.tier3_platform.connectivity import ConnectivityMonitor
from daysync.tier3_platform.events import ChangeListener, DayChangeListener, EventBus, Unsubscribe
from daysync.tier3_platform.mock_override import MockOverrideController
from daysync.tier3_platform.scheduler import PeriodicScheduler
from daysync.tier3_platform.sync import SyncCoordinator
from daysync.tier3_platform.timezones import (
    TimeSyncCheck,
    TimezoneEndpoints,
    TimezoneInfo,
    WeekInfo,
)

logger = get_logger(__name__)


class TimeService:
    """Process-wide time authority facade. See module docstring."""

    def __init__(
        self,
        config: TimeSyncConfig | None = None,
        *,
        client: TimeApiClient | None = None,
        clock: Clock | None = None,
        cache: DateKeyedCache | None = None,
    ) -> None:
        self._config = config or get_config()
        self._clock = clock or Clock()
        self._cache = cache
        self._owns_client = client is None
        self._client = client or TimeApiClient(
            self._config.api_base_url, timeout=self._config.sync_timeout_seconds
        )
        self._timezone = resolve_local_timezone(self._config.local_timezone)

        self._authenticated = False
        self._initialized = False
        self._destroyed = False

        self._store = SyncStateStore()
        self._bus = EventBus()
        self._coordinator = SyncCoordinator(
            self._client,
            self._store,
            self._bus,
            self._config,
            self._clock,
            is_authenticated=lambda: self._authenticated,
            fallback=self._build_fallback,
        )
        self._scheduler = PeriodicScheduler(
            self._scheduled_sync, self._config.sync_interval_seconds
        )
        self._monitor = ConnectivityMonitor(self._handle_online, self._handle_offline)
        self._mock = MockOverrideController(
            self._client,
            self._coordinator,
            self._config,
            is_authenticated=lambda: self._authenticated,
        )
        self._endpoints = TimezoneEndpoints(
            self._client,
            self._coordinator,
            self._config,
            self._clock,
            local_timezone=lambda: self._timezone,
        )
        self._bus.add_day_change_listener(self._invalidate_date_caches)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def initialize(self, is_authenticated: bool = False) -> None:
        """Seed a fallback snapshot, then sync and schedule if authenticated. Idempotent."""
        if self._initialized:
            logger.debug("time_service.already_initialized")
            return
        self._initialized = True
        self._authenticated = is_authenticated
        self._coordinator.ensure_snapshot()

        if is_authenticated:
            await self._sync_quietly("initialize")
            self._start_scheduler()
        if self._config.connectivity_probe_url:
            self._monitor.start_probe(
                self._client,
                self._config.connectivity_probe_url,
                self._config.connectivity_probe_interval_seconds,
            )
        logger.info(
            "time_service.initialized",
            authenticated=is_authenticated,
            date=self.get_current_date(),
            timezone=self.get_user_timezone(),
        )

    async def set_authentication_status(self, is_authenticated: bool) -> None:
        if is_authenticated == self._authenticated:
            return
        self._authenticated = is_authenticated

        if is_authenticated:
            logger.info("time_service.authenticated")
            if self._initialized:
                await self._sync_quietly("login")
                self._start_scheduler()
            return

        logger.info("time_service.deauthenticated")
        await self._scheduler.stop()
        self._coordinator.invalidate()
        self._store.update(current_time=self._build_fallback(), last_sync_at=None)
        await self._bus.publish_change()

    async def destroy(self) -> None:
        """Stop background work, drop listeners and close an owned HTTP client."""
        if self._destroyed:
            return
        self._destroyed = True
        await self._scheduler.stop()
        await self._monitor.stop_probe()
        await self._coordinator.cancel()
        self._bus.clear()
        if self._owns_client:
            await self._client.aclose()
        logger.info("time_service.destroyed")

    async def __aenter__(self) -> "TimeService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.destroy()

    # ── Reads ─────────────────────────────────────────────────────────────────

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    def is_ready(self) -> bool:
        return self._store.state.is_ready

    def get_state(self) -> SyncState:
        """Current SyncState. Frozen, so callers can hold on to it safely."""
        return self._store.state

    def get_current_date(self) -> str:
        return self._snapshot().user_date

    def get_current_date_time(self) -> str:
        return self._snapshot().user_datetime

    def get_user_timezone(self) -> str:
        return self._snapshot().user_timezone

    def is_mock_date(self) -> bool:
        current = self._store.state.current_time
        return current is not None and current.is_mock_date

    def _snapshot(self) -> TimeSnapshot:
        state = self._store.state
        if state.is_ready and state.current_time is not None:
            return state.current_time
        logger.warning("time_service.read_before_ready", fallback_timezone=self._timezone)
        return self._build_fallback()

    def _build_fallback(self) -> TimeSnapshot:
        return build_fallback_snapshot(self._clock, self._timezone)

    # ── Derived dates ─────────────────────────────────────────────────────────

    def get_date_range(self, filter: dates.TimeFilter | str) -> dates.DateRange:
        return dates.get_date_range(filter, self.get_current_date())

    def get_start_of_week(self) -> str:
        return dates.get_start_of_week(self.get_current_date())

    def get_start_of_month(self) -> str:
        return dates.get_start_of_month(self.get_current_date())

    def format_user_date(self, value: str, options: Mapping[str, Any] | None = None) -> str:
        return dates.format_user_date(value, self.get_user_timezone(), options)

    def format_relative_date(self, value: str) -> str:
        return dates.format_relative_date(value, self.get_current_date())

    # ── Listeners ─────────────────────────────────────────────────────────────

    def add_event_listener(self, listener: ChangeListener) -> Unsubscribe:
        return self._bus.add_listener(listener)

    def remove_event_listener(self, listener: ChangeListener) -> None:
        self._bus.remove_listener(listener)

    def add_day_change_listener(self, listener: DayChangeListener) -> Unsubscribe:
        return self._bus.add_day_change_listener(listener)

    def remove_day_change_listener(self, listener: DayChangeListener) -> None:
        self._bus.remove_day_change_listener(listener)

    # ── Synchronization ───────────────────────────────────────────────────────

    async def sync(self, force: bool = False) -> TimeSnapshot | None:
        """Refresh from the authority now. Failures are absorbed; the snapshot in force is returned."""
        return await self._coordinator.sync(force=force)

    async def set_mock_datetime(self, iso_or_none: str | None) -> TimeSnapshot | None:
        """Pin the authority to *iso_or_none*, or release it with None. Raises UserCommandError."""
        return await self._mock.set_mock_datetime(iso_or_none)

    async def report_connectivity(self, online: bool) -> None:
        await self._monitor.report(online)

    async def _sync_quietly(self, trigger: str, *, force: bool = True) -> None:
        try:
            await self._coordinator.sync(force=force)
        except Exception as exc:
            logger.error(
                "time_service.sync_failed",
                trigger=trigger,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def _scheduled_sync(self) -> None:
        await self._coordinator.sync()

    def _start_scheduler(self) -> None:
        if self._authenticated and self._store.state.is_online:
            self._scheduler.start()

    async def _handle_online(self) -> None:
        self._store.update(is_online=True)
        self._coordinator.reset_error_count()
        if self._initialized and self._authenticated:
            self._start_scheduler()
            await self._sync_quietly("reconnect", force=False)

    async def _handle_offline(self) -> None:
        self._store.update(is_online=False)
        await self._scheduler.stop()

    async def _invalidate_date_caches(self, event: DayChangeEvent) -> None:
        if self._cache is None:
            return
        dropped = 0
        for prefix in self._config.date_cache_prefixes:
            dropped += await self._cache.invalidate_pattern(f"^{re.escape(prefix)}")
        logger.info(
            "time_service.date_caches_invalidated",
            old_date=event.old_date,
            new_date=event.new_date,
            entries=dropped,
        )

    # ── Auxiliary endpoints ───────────────────────────────────────────────────

    async def detect_and_set_timezone(self, language: str = "en-US") -> bool:
        return await self._endpoints.detect_and_set_timezone(language)

    async def update_user_timezone(self, tz_name: str) -> bool:
        return await self._endpoints.update_user_timezone(tz_name)

    async def get_available_timezones(self) -> list[TimezoneInfo]:
        return await self._endpoints.get_available_timezones()

    async def get_week_info(self) -> WeekInfo | None:
        return await self._endpoints.get_week_info()

    async def check_sync_status(self) -> TimeSyncCheck | None:
        return await self._endpoints.check_sync_status()


__all__ = ["TimeService"]
