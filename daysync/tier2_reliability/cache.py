"""
daysync.tier2_reliability.cache
────────────────────────────────
Date-keyed cache boundary. On a day change the TimeService asks the host
application's cache to drop entries whose keys embed the old date;
anything implementing DateKeyedCache can be plugged in.

MemoryCache is the in-process implementation used in development and
tests. Stampede protection via mutex on cache miss.
"""
from __future__ import annotations

import asyncio
import inspect
import re
import time
from typing import Any, Callable, Protocol, runtime_checkable


@runtime_checkable
class DateKeyedCache(Protocol):
    """What the time sync core needs from the host's cache."""

    async def invalidate_pattern(self, pattern: str) -> int: ...


class MemoryCache:
    """Async-safe in-process cache with TTL."""

    def __init__(self) -> None:
        self._store: dict[str, tuple[Any, float]] = {}  # key → (value, expires_at)
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at and time.monotonic() > expires_at:
            del self._store[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        expires_at = (time.monotonic() + ttl) if ttl else 0.0
        self._store[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def get_or_set(
        self, key: str, fn: Callable[[], Any], ttl: float | None = None
    ) -> Any:
        """Get from cache or call fn() and cache the result. Stampede-safe."""
        val = await self.get(key)
        if val is not None:
            return val
        async with self._lock_for(key):
            val = await self.get(key)
            if val is not None:
                return val
            val = await fn() if inspect.iscoroutinefunction(fn) else fn()
            await self.set(key, val, ttl)
            return val

    async def invalidate_pattern(self, pattern: str) -> int:
        """Delete every key matching the regex *pattern*. Returns the count."""
        regex = re.compile(pattern)
        doomed = [key for key in self._store if regex.search(key)]
        for key in doomed:
            del self._store[key]
            self._locks.pop(key, None)
        return len(doomed)

    async def clear(self) -> None:
        self._store.clear()
        self._locks.clear()

    def __len__(self) -> int:
        return len(self._store)


__all__ = ["DateKeyedCache", "MemoryCache"]
