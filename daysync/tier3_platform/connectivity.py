"""
daysync.tier3_platform.connectivity
────────────────────────────────────
Online/offline tracking. Platform adapters push signals through report();
only transitions reach the handlers. Optionally the monitor probes a URL
itself (HEAD every probe interval) for hosts without a connectivity signal.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from daysync.tier0_core.errors import NetworkUnavailableError
from daysync.tier0_core.http import is_success
from daysync.tier0_core.logging import get_logger
from daysync.tier3_platform.api_client import TimeApiClient

TransitionHandler = Callable[[], Awaitable[Any]]

logger = get_logger(__name__)

_PROBE_TIMEOUT_SECONDS = 5.0


class ConnectivityMonitor:
    """
    Usage::

        monitor = ConnectivityMonitor(on_online=service_online, on_offline=service_offline)
        await monitor.report(False)   # platform said: offline
        await monitor.report(True)    # back online → on_online runs
    """

    def __init__(
        self,
        on_online: TransitionHandler,
        on_offline: TransitionHandler,
        *,
        initially_online: bool = True,
    ) -> None:
        self._on_online = on_online
        self._on_offline = on_offline
        self._online = initially_online
        self._probe_task: asyncio.Task[None] | None = None

    @property
    def is_online(self) -> bool:
        return self._online

    async def report(self, online: bool) -> None:
        """Feed a platform connectivity signal. Repeats are ignored."""
        if online == self._online:
            return
        self._online = online
        if online:
            logger.info("connectivity.online")
            await self._on_online()
        else:
            logger.info("connectivity.offline")
            await self._on_offline()

    # ── Active probing ────────────────────────────────────────────────────────

    @property
    def probing(self) -> bool:
        return self._probe_task is not None and not self._probe_task.done()

    def start_probe(self, client: TimeApiClient, url: str, interval_seconds: float) -> None:
        if self._probe_task is not None:
            self._probe_task.cancel()
        self._probe_task = asyncio.create_task(
            self._probe_loop(client, url, interval_seconds), name="connectivity-probe"
        )

    async def stop_probe(self) -> None:
        task, self._probe_task = self._probe_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def probe_once(self, client: TimeApiClient, url: str) -> bool:
        try:
            status = await client.head(url, timeout=_PROBE_TIMEOUT_SECONDS)
        except NetworkUnavailableError as exc:
            logger.debug("connectivity.probe_failed", url=url, error=str(exc))
            return False
        return is_success(status)

    async def _probe_loop(self, client: TimeApiClient, url: str, interval_seconds: float) -> None:
        while True:
            try:
                await self.report(await self.probe_once(client, url))
            except Exception as exc:
                logger.error(
                    "connectivity.probe_error",
                    url=url,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            await asyncio.sleep(interval_seconds)


__all__ = ["ConnectivityMonitor", "TransitionHandler"]
