"""
daysync.tier3_platform.sync
────────────────────────────
Sync coordinator: owns the one outstanding request to the time authority.

Guarantees:
  - single flight: concurrent callers join the in-flight request (one
    asyncio.Task, awaited through asyncio.shield) and all receive the same
    outcome;
  - recency guard: a snapshot younger than freshness_seconds is returned
    without a request unless the caller forces one;
  - atomic commit: the new snapshot and its bookkeeping land in one
    SyncStateStore.update before any listener runs;
  - graceful failure: errors are recorded on the outcome, never raised to
    background callers; the last good snapshot (or a fallback) stays in force.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable

from daysync.tier0_core.config import TimeSyncConfig
from daysync.tier0_core.errors import TimeSyncError
from daysync.tier0_core.logging import get_logger
from daysync.tier0_core.metrics import (
    sync_consecutive_errors,
    sync_duration_seconds,
    sync_total,
)
from daysync.tier0_core.snapshot import DayChangeEvent, SyncStateStore, TimeSnapshot
from daysync.tier1_runtime.clock import Clock
from daysync.tier1_runtime.validate import ContractViolation, parse_time_payload
from daysync.tier3_platform.api_client import TimeApiClient
from daysync.tier3_platform.events import EventBus

logger = get_logger(__name__)


@dataclass(frozen=True)
class SyncOutcome:
    """Result shared by every caller of one sync round."""
    snapshot: TimeSnapshot | None
    error: TimeSyncError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncCoordinator:
    """
    Usage::

        coordinator = SyncCoordinator(client, store, bus, config, clock,
                                      is_authenticated=lambda: True,
                                      fallback=make_fallback)
        snapshot = await coordinator.sync()
    """

    def __init__(
        self,
        client: TimeApiClient,
        store: SyncStateStore,
        bus: EventBus,
        config: TimeSyncConfig,
        clock: Clock,
        *,
        is_authenticated: Callable[[], bool],
        fallback: Callable[[], TimeSnapshot],
    ) -> None:
        self._client = client
        self._store = store
        self._bus = bus
        self._config = config
        self._clock = clock
        self._is_authenticated = is_authenticated
        self._fallback = fallback
        self._pending: asyncio.Task[SyncOutcome] | None = None
        self._epoch = 0
        self._ceiling_logged = False

    @property
    def in_flight(self) -> bool:
        return self._pending is not None

    # ── Public API ────────────────────────────────────────────────────────────

    async def sync(self, *, force: bool = False, raise_errors: bool = False) -> TimeSnapshot | None:
        """
        Refresh the snapshot from the authority and return the snapshot in
        force afterwards. *force* skips the recency guard and never reuses a
        request that started before this call. *raise_errors* re-raises the
        round's error to this caller only.
        """
        outcome = await self.sync_outcome(force=force)
        if raise_errors and outcome.error is not None:
            raise outcome.error
        return outcome.snapshot

    async def sync_outcome(self, *, force: bool = False) -> SyncOutcome:
        if not self._is_authenticated():
            return SyncOutcome(self.ensure_snapshot())

        if force:
            while self._pending is not None:
                await asyncio.shield(self._pending)
            if not self._is_authenticated():
                return SyncOutcome(self.ensure_snapshot())
        elif self._pending is not None:
            logger.debug("time_sync.joined_in_flight")
            return await asyncio.shield(self._pending)
        elif self._is_fresh():
            logger.debug("time_sync.cache_hit", age_seconds=self._age_seconds())
            return SyncOutcome(self._store.state.current_time)

        self._store.update(sync_in_progress=True)
        self._pending = asyncio.create_task(self._perform(self._epoch))
        return await asyncio.shield(self._pending)

    def ensure_snapshot(self) -> TimeSnapshot:
        """Return the current snapshot, installing a fallback one if none exists."""
        current = self._store.state.current_time
        if current is None:
            current = self._fallback()
            self._store.update(current_time=current, is_ready=True)
        return current

    def invalidate(self) -> None:
        """Discard the result of any request that is still in flight."""
        self._epoch += 1

    def reset_error_count(self) -> None:
        self._ceiling_logged = False
        self._store.update(consecutive_sync_errors=0)
        sync_consecutive_errors().set(0)

    async def cancel(self) -> None:
        """Abort the in-flight request, if any. Joined callers see CancelledError."""
        task = self._pending
        if task is None:
            return
        self.invalidate()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        finally:
            self._release()

    # ── Request lifecycle ─────────────────────────────────────────────────────

    def _age_seconds(self) -> float | None:
        last = self._store.state.last_sync_at
        return None if last is None else self._clock.seconds_since(last)

    def _is_fresh(self) -> bool:
        state = self._store.state
        age = self._age_seconds()
        return (
            state.current_time is not None
            and age is not None
            and age < self._config.freshness_seconds
        )

    def _release(self) -> None:
        self._pending = None
        self._store.update(sync_in_progress=False)

    async def _perform(self, epoch: int) -> SyncOutcome:
        logger.info("time_sync.started", path=self._config.current_time_path)
        started = time.monotonic()
        try:
            try:
                payload = await self._client.get_json(
                    self._config.current_time_path,
                    timeout=self._config.sync_timeout_seconds,
                )
            finally:
                sync_duration_seconds().observe(time.monotonic() - started)

            parsed = parse_time_payload(payload, self._clock)
            if isinstance(parsed, ContractViolation):
                logger.error(
                    "time_sync.contract_violation",
                    fields=parsed.error.fields,
                    payload=parsed.error.payload,
                )
                return self._fail(parsed.error, epoch)

            if epoch != self._epoch:
                return self._discard(epoch)
            return await self._commit(parsed.snapshot)
        except TimeSyncError as exc:
            return self._fail(exc, epoch)
        finally:
            if self._pending is asyncio.current_task():
                self._release()

    def _discard(self, epoch: int, error: TimeSyncError | None = None) -> SyncOutcome:
        logger.info("time_sync.discarded", reason="session changed during sync", epoch=epoch)
        self._release()
        return SyncOutcome(self._store.state.current_time, error)

    async def _commit(self, snapshot: TimeSnapshot) -> SyncOutcome:
        previous = self._store.state.current_time
        self._pending = None
        self._store.update(
            current_time=snapshot,
            last_sync_at=self._clock.now(),
            consecutive_sync_errors=0,
            sync_in_progress=False,
            is_ready=True,
        )
        self._ceiling_logged = False
        sync_total(outcome="success").inc()
        sync_consecutive_errors().set(0)
        logger.info(
            "time_sync.completed",
            date=snapshot.user_date,
            timezone=snapshot.user_timezone,
            is_mock=snapshot.is_mock_date,
        )

        # day changes are only meaningful between authoritative snapshots
        if (
            previous is not None
            and previous.is_authoritative
            and previous.user_date != snapshot.user_date
        ):
            event = DayChangeEvent(
                old_date=previous.user_date,
                new_date=snapshot.user_date,
                timezone=snapshot.user_timezone,
            )
            logger.info(
                "time_sync.day_changed",
                old_date=event.old_date,
                new_date=event.new_date,
                timezone=event.timezone,
            )
            await self._bus.publish_day_change(event)

        await self._bus.publish_change()
        return SyncOutcome(snapshot)

    def _fail(self, error: TimeSyncError, epoch: int) -> SyncOutcome:
        if epoch != self._epoch:
            return self._discard(epoch, error)

        state = self._store.state
        changes: dict = {"sync_in_progress": False}
        if state.current_time is None:
            changes["current_time"] = self._fallback()
            changes["is_ready"] = True

        if not error.counts_toward_ceiling:
            sync_total(outcome="auth_required").inc()
            logger.info("time_sync.auth_required", code=error.code)
        else:
            errors = state.consecutive_sync_errors + 1
            changes["consecutive_sync_errors"] = errors
            sync_total(outcome=error.code).inc()
            sync_consecutive_errors().set(errors)
            ceiling = self._config.max_sync_errors
            if errors < ceiling:
                logger.warning(
                    "time_sync.failed",
                    error=str(error),
                    code=error.code,
                    consecutive_errors=errors,
                    max_errors=ceiling,
                )
            elif not self._ceiling_logged:
                self._ceiling_logged = True
                logger.error(
                    "time_sync.degraded",
                    error=str(error),
                    code=error.code,
                    consecutive_errors=errors,
                    max_errors=ceiling,
                )
            else:
                logger.debug("time_sync.failed", code=error.code, consecutive_errors=errors)

        self._pending = None
        self._store.update(**changes)
        return SyncOutcome(self._store.state.current_time, error)


__all__ = ["SyncCoordinator", "SyncOutcome"]
