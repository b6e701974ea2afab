"""
daysync.tier3_platform.scheduler
─────────────────────────────────
Periodic re-invocation of the sync coordinator. One asyncio task per
scheduler: start() always tears down the previous loop first, so
authentication or connectivity transitions never leave two schedules
running side by side.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from daysync.tier0_core.logging import get_logger

logger = get_logger(__name__)


class PeriodicScheduler:
    """
    Usage::

        scheduler = PeriodicScheduler(coordinator.sync, interval_seconds=1800)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        *,
        name: str = "time-sync",
    ) -> None:
        self._callback = callback
        self._interval = interval_seconds
        self._name = name
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """(Re)create the loop. Must be called from a running event loop."""
        if self._task is not None:
            self._task.cancel()
        self._task = asyncio.create_task(self._run(), name=self._name)
        logger.debug("scheduler.started", name=self._name, interval_seconds=self._interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        if task is asyncio.current_task():
            # stopped from inside its own tick; cancellation lands at the next await
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("scheduler.stopped", name=self._name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self._callback()
            except Exception as exc:
                logger.error(
                    "scheduler.tick_failed",
                    name=self._name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )


__all__ = ["PeriodicScheduler"]
