"""Tests for tier2_reliability modules."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from daysync.tier0_core.errors import NetworkUnavailableError, UserCommandError
from daysync.tier0_core.snapshot import SnapshotSource
from daysync.tier1_runtime.clock import Clock
from daysync.tier2_reliability.cache import DateKeyedCache, MemoryCache
from daysync.tier2_reliability.fallback import build_fallback_snapshot, with_fallback


# ── fallback snapshot ──────────────────────────────────────────────────────

class TestFallbackSnapshot:
    def test_uses_device_clock_in_local_zone(self):
        clock = Clock().freeze(datetime(2025, 3, 1, 23, 30, tzinfo=timezone.utc))
        snap = build_fallback_snapshot(clock, "Europe/Paris")
        assert snap.user_date == "2025-03-02"
        assert snap.user_datetime == "2025-03-02T00:30:00"
        assert snap.user_timezone == "Europe/Paris"
        assert snap.utc_datetime == "2025-03-01T23:30:00Z"

    def test_calendar_facts(self):
        clock = Clock().freeze(datetime(2025, 3, 1, 23, 30, tzinfo=timezone.utc))
        snap = build_fallback_snapshot(clock, "Europe/Paris")
        assert snap.day_of_week == "Sunday"
        assert snap.week_number == 9
        assert snap.is_weekend is True

    def test_weekday_is_not_weekend(self):
        clock = Clock().freeze(datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc))
        snap = build_fallback_snapshot(clock, "UTC")
        assert snap.day_of_week == "Monday"
        assert snap.is_weekend is False

    def test_day_boundaries_are_local_midnights_in_utc(self):
        clock = Clock().freeze(datetime(2025, 3, 1, 23, 30, tzinfo=timezone.utc))
        snap = build_fallback_snapshot(clock, "Europe/Paris")
        assert snap.day_boundaries.start_utc == "2025-03-01T23:00:00Z"
        assert snap.day_boundaries.end_utc == "2025-03-02T23:00:00Z"

    def test_never_mock_and_marked_as_fallback(self):
        snap = build_fallback_snapshot(Clock(), "UTC")
        assert snap.is_mock_date is False
        assert snap.source is SnapshotSource.FALLBACK
        assert not snap.is_authoritative


# ── with_fallback ──────────────────────────────────────────────────────────

class TestWithFallback:
    @pytest.mark.asyncio
    async def test_returns_default_on_error(self):
        @with_fallback(default=False)
        async def update() -> bool:
            raise NetworkUnavailableError(user_message="down")

        assert await update() is False

    @pytest.mark.asyncio
    async def test_passes_through_success(self):
        @with_fallback(default=None)
        async def fetch(x: int) -> int:
            return x * 2

        assert await fetch(21) == 42

    @pytest.mark.asyncio
    async def test_list_default_is_copied(self):
        @with_fallback(default=[])
        async def listing() -> list:
            raise RuntimeError("boom")

        first = await listing()
        first.append("mutated")
        assert await listing() == []

    @pytest.mark.asyncio
    async def test_reraise_lets_selected_errors_through(self):
        @with_fallback(default=None, reraise=UserCommandError)
        async def command() -> None:
            raise UserCommandError(user_message="nope")

        with pytest.raises(UserCommandError):
            await command()

    def test_preserves_name(self):
        @with_fallback(default=None)
        async def get_week_info() -> None: ...

        assert get_week_info.__name__ == "get_week_info"


# ── cache ──────────────────────────────────────────────────────────────────

class TestMemoryCache:
    def test_satisfies_date_keyed_cache(self):
        assert isinstance(MemoryCache(), DateKeyedCache)

    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        cache = MemoryCache()
        await cache.set("statistics-2025-03-01", {"streak": 4})
        assert await cache.get("statistics-2025-03-01") == {"streak": 4}
        await cache.delete("statistics-2025-03-01")
        assert await cache.get("statistics-2025-03-01") is None

    @pytest.mark.asyncio
    async def test_ttl_expiry(self):
        cache = MemoryCache()
        await cache.set("k", "v", ttl=0.01)
        await asyncio.sleep(0.03)
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_invalidate_pattern(self):
        cache = MemoryCache()
        await cache.set("habit-completions-2025-03-01", 1)
        await cache.set("habit-completions-2025-03-02", 2)
        await cache.set("statistics-2025-03-01", 3)
        await cache.set("profile", 4)
        dropped = await cache.invalidate_pattern(r"^habit-completions-")
        assert dropped == 2
        assert len(cache) == 2
        assert await cache.get("profile") == 4

    @pytest.mark.asyncio
    async def test_get_or_set_is_stampede_safe(self):
        cache = MemoryCache()
        calls = []

        async def load() -> str:
            calls.append(1)
            await asyncio.sleep(0.01)
            return "loaded"

        results = await asyncio.gather(*(cache.get_or_set("k", load) for _ in range(5)))
        assert results == ["loaded"] * 5
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_get_or_set_accepts_sync_callable(self):
        cache = MemoryCache()
        assert await cache.get_or_set("k", lambda: 7) == 7
        assert await cache.get("k") == 7

    @pytest.mark.asyncio
    async def test_clear(self):
        cache = MemoryCache()
        await cache.set("a", 1)
        await cache.clear()
        assert len(cache) == 0
