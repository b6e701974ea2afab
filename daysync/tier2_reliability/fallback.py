"""
daysync.tier2_reliability.fallback
───────────────────────────────────
Degraded-but-functional answers when the time authority is unavailable.

  - build_fallback_snapshot: a TimeSnapshot derived from the device clock,
    used before the first sync, for anonymous sessions, and after logout.
  - with_fallback: decorator for async auxiliary calls that should return
    a default value instead of raising.
"""
from __future__ import annotations

import functools
from datetime import datetime, time, timedelta
from typing import Any, Awaitable, Callable, TypeVar
from zoneinfo import ZoneInfo

from daysync.tier0_core.logging import get_logger
from daysync.tier0_core.snapshot import DayBoundaries, SnapshotSource, TimeSnapshot
from daysync.tier1_runtime.clock import Clock, format_utc

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

logger = get_logger(__name__)


def build_fallback_snapshot(clock: Clock, tz_name: str) -> TimeSnapshot:
    """Compute a TimeSnapshot for *tz_name* from the device clock."""
    tz = ZoneInfo(tz_name)
    local_now = clock.now().astimezone(tz)
    today = local_now.date()

    day_start = datetime.combine(today, time.min, tzinfo=tz)
    day_end = datetime.combine(today + timedelta(days=1), time.min, tzinfo=tz)

    return TimeSnapshot(
        user_date=today.isoformat(),
        user_datetime=local_now.replace(microsecond=0, tzinfo=None).isoformat(),
        user_timezone=tz_name,
        utc_datetime=format_utc(local_now),
        is_mock_date=False,
        day_of_week=local_now.strftime("%A"),
        week_number=today.isocalendar()[1],
        is_weekend=today.weekday() >= 5,
        day_boundaries=DayBoundaries(
            start_utc=format_utc(day_start),
            end_utc=format_utc(day_end),
        ),
        source=SnapshotSource.FALLBACK,
    )


def with_fallback(
    default: Any,
    *,
    log_errors: bool = True,
    reraise: type[Exception] | tuple[type[Exception], ...] | None = None,
) -> Callable[[F], F]:
    """
    Decorator for coroutines: on any exception, return *default* instead of
    raising. Mutable defaults are copied per call.

    Usage::

        @with_fallback(default=[])
        async def get_available_timezones(self) -> list[TimezoneInfo]: ...
    """
    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await fn(*args, **kwargs)
            except Exception as exc:
                if reraise and isinstance(exc, reraise):
                    raise
                if log_errors:
                    logger.warning(
                        "fallback_triggered",
                        function=fn.__qualname__,
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                return list(default) if isinstance(default, list) else default

        return wrapper  # type: ignore[return-value]

    return decorator


__all__ = ["build_fallback_snapshot", "with_fallback"]
