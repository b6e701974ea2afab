"""
daysync.tier3_platform.events
──────────────────────────────
Observer registry for snapshot refreshes. Two channels:

  - change listeners:     fn() after every successful refresh
  - day-change listeners: fn(DayChangeEvent) when the user's date advances

The sync coordinator commits the new snapshot before publishing, and
publishes the day change before the generic change, so every listener
reads a complete, current snapshot.
"""
from __future__ import annotations

import inspect
from typing import Any, Callable

from daysync.tier0_core.logging import get_logger
from daysync.tier0_core.snapshot import DayChangeEvent

ChangeListener = Callable[[], Any]
DayChangeListener = Callable[[DayChangeEvent], Any]
Unsubscribe = Callable[[], None]

logger = get_logger(__name__)


class EventBus:
    """
    Usage::

        bus = EventBus()
        unsubscribe = bus.add_listener(lambda: print("refreshed"))
        bus.add_day_change_listener(lambda e: print(e.old_date, "->", e.new_date))
        ...
        unsubscribe()
    """

    def __init__(self) -> None:
        # dicts keep insertion order and make duplicate adds idempotent
        self._listeners: dict[ChangeListener, None] = {}
        self._day_listeners: dict[DayChangeListener, None] = {}

    def add_listener(self, listener: ChangeListener) -> Unsubscribe:
        self._listeners[listener] = None
        return lambda: self.remove_listener(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        self._listeners.pop(listener, None)

    def add_day_change_listener(self, listener: DayChangeListener) -> Unsubscribe:
        self._day_listeners[listener] = None
        return lambda: self.remove_day_change_listener(listener)

    def remove_day_change_listener(self, listener: DayChangeListener) -> None:
        self._day_listeners.pop(listener, None)

    @property
    def listener_count(self) -> int:
        return len(self._listeners) + len(self._day_listeners)

    def clear(self) -> None:
        self._listeners.clear()
        self._day_listeners.clear()

    async def publish_day_change(self, event: DayChangeEvent) -> None:
        for listener in list(self._day_listeners):
            await self._invoke(listener, event)

    async def publish_change(self) -> None:
        for listener in list(self._listeners):
            await self._invoke(listener)

    @staticmethod
    async def _invoke(listener: Callable[..., Any], *args: Any) -> None:
        try:
            result = listener(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.error(
                "time_sync.listener_failed",
                listener=getattr(listener, "__qualname__", repr(listener)),
                error=str(exc),
                error_type=type(exc).__name__,
            )


__all__ = [
    "EventBus",
    "ChangeListener",
    "DayChangeListener",
    "Unsubscribe",
]
