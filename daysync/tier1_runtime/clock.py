"""
daysync.tier1_runtime.clock
────────────────────────────
Mockable device clock and runtime timezone resolution. The fallback
generator, last_sync_at and the freshness guard all read time through a
Clock instance, so tests control device time without patching datetime.

The device clock is only ever a fallback: consumers read the date from the
TimeService snapshot, never from here.
"""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_LOCALTIME_LINK = Path("/etc/localtime")


# ── Clock implementation ───────────────────────────────────────────────────

class Clock:
    """Mockable clock. Override now_fn to control time in tests."""

    def __init__(self, now_fn: Callable[[], datetime] | None = None) -> None:
        self._now_fn = now_fn or (lambda: datetime.now(tz=timezone.utc))

    def now(self) -> datetime:
        """Return the current UTC datetime."""
        return self._now_fn()

    def seconds_since(self, earlier: datetime) -> float:
        return (self.now() - earlier).total_seconds()

    def freeze(self, dt: datetime) -> "Clock":
        """Return a new Clock frozen at the given datetime."""
        return Clock(now_fn=lambda: dt)

    def advance(self, seconds: float) -> "Clock":
        """Return a new Clock advanced by *seconds* from current time."""
        base = self.now()
        return Clock(now_fn=lambda: base + timedelta(seconds=seconds))


def format_utc(dt: datetime) -> str:
    """ISO-8601 UTC timestamp with a trailing Z and second precision."""
    return dt.astimezone(timezone.utc).replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ")


# ── Timezone resolution ────────────────────────────────────────────────────

def is_valid_timezone(name: str | None) -> bool:
    if not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def _timezone_from_localtime_link(link: Path) -> str | None:
    try:
        target = str(link.resolve())
    except OSError:
        return None
    marker = "zoneinfo/"
    if marker not in target:
        return None
    return target.split(marker, 1)[1]


def resolve_local_timezone(
    configured: str | None = None,
    *,
    localtime_link: Path = _LOCALTIME_LINK,
) -> str:
    """
    Return the IANA timezone of the runtime, trying in order: the configured
    name, $TZ, the /etc/localtime zoneinfo link. Defaults to "UTC".
    """
    candidates = [
        configured,
        os.getenv("TZ", "").lstrip(":") or None,
        _timezone_from_localtime_link(localtime_link),
    ]
    for name in candidates:
        if is_valid_timezone(name):
            return name  # type: ignore[return-value]
    return "UTC"


__all__ = ["Clock", "format_utc", "is_valid_timezone", "resolve_local_timezone"]
