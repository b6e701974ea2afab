"""
daysync test configuration.

All tests run against an in-process fake time authority (httpx.MockTransport)
and a hand-driven clock, so no test touches the network or the wall clock.
Override by setting environment variables before running pytest.
"""
from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

# ── Force test configuration for all tests ─────────────────────────────────
# These must be set before any daysync modules are imported.

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("APP_NAME", "daysync-test")
os.environ.setdefault("DAYSYNC_API_BASE_URL", "http://authority.test/api")
os.environ.setdefault("DAYSYNC_ERROR_BACKEND", "none")
os.environ.setdefault("DAYSYNC_LOG_LEVEL", "WARNING")
os.environ.setdefault("DAYSYNC_LOG_FORMAT", "console")

BASE_URL = "http://authority.test/api"
START = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


# ── Helpers ────────────────────────────────────────────────────────────────

def time_payload(
    user_date: str = "2025-03-01",
    *,
    timezone_id: str = "Europe/Paris",
    clock_time: str = "10:00:00",
    is_mock: bool = False,
    **overrides: Any,
) -> dict[str, Any]:
    """A well-formed GET /time/current body."""
    body: dict[str, Any] = {
        "user_date": user_date,
        "user_datetime": f"{user_date}T{clock_time}",
        "timezone_id": timezone_id,
        "server_utc": f"{user_date}T09:00:00Z",
        "is_mock_enabled": is_mock,
        "day_of_week": "Saturday",
        "week_number": 9,
        "is_weekend": True,
        "day_boundaries": {
            "start_utc": f"{user_date}T00:00:00Z",
            "end_utc": f"{user_date}T23:59:59Z",
        },
    }
    body.update(overrides)
    return body


class ManualClock:
    """now_fn for Clock that only moves when a test says so."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeAuthority:
    """
    In-process time authority behind httpx.MockTransport.

    GET /time/current serves `current` (or a mock-date body once
    POST /time/mock pinned one). `routes[(method, path)]` overrides any
    endpoint: a dict is returned as JSON, an int as a bare status, an
    exception instance is raised, a callable is called with the request.
    Set `gate` to an asyncio.Event to hold every response until it is set.
    """

    def __init__(self) -> None:
        self.current: dict[str, Any] = time_payload()
        self.mock_datetime: str | None = None
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []
        self.gate: asyncio.Event | None = None

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str, path: str) -> int:
        return sum(
            1 for r in self.requests
            if r.method == method and r.url.path == f"/api{path}"
        )

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()

        path = request.url.path.removeprefix("/api")
        route = self.routes.get((request.method, path))
        if route is not None:
            return self._respond(route, request)

        if request.method == "GET" and path == "/time/current":
            return httpx.Response(200, json=self._current_body())
        if request.method == "POST" and path == "/time/mock":
            self.mock_datetime = json.loads(request.content)["mock_datetime"]
            return httpx.Response(200, json={"mock_datetime": self.mock_datetime})
        if request.method == "DELETE" and path == "/time/mock":
            self.mock_datetime = None
            return httpx.Response(204)
        return httpx.Response(404, json={"detail": "not found"})

    def _current_body(self) -> dict[str, Any]:
        if self.mock_datetime is None:
            return self.current
        user_date, _, clock_time = self.mock_datetime.partition("T")
        return time_payload(
            user_date,
            timezone_id=self.current["timezone_id"],
            clock_time=clock_time[:8] or "00:00:00",
            is_mock=True,
        )

    @staticmethod
    def _respond(route: Any, request: httpx.Request) -> httpx.Response:
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        if isinstance(route, int):
            return httpx.Response(route)
        return httpx.Response(200, json=route)


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def reset_config():
    """Each test gets a config built from the current environment."""
    from daysync.tier0_core.config import _reset_config

    _reset_config()
    yield
    _reset_config()


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def clock(manual_clock):
    from daysync.tier1_runtime.clock import Clock
    return Clock(now_fn=manual_clock)


@pytest.fixture
def authority() -> FakeAuthority:
    return FakeAuthority()


@pytest.fixture
def config():
    from daysync.tier0_core.config import TimeSyncConfig
    return TimeSyncConfig(
        environment="test",
        api_base_url=BASE_URL,
        local_timezone="Europe/Paris",
        sync_interval_seconds=1800,
        sync_timeout_seconds=1.0,
        freshness_seconds=300,
        max_sync_errors=3,
    )


@pytest.fixture
def client(authority):
    from daysync.tier3_platform.api_client import TimeApiClient
    return TimeApiClient(BASE_URL, timeout=1.0, transport=authority.transport())


@pytest.fixture
def service(config, client, clock):
    from daysync.tier2_reliability.cache import MemoryCache
    from daysync.service import TimeService
    return TimeService(config, client=client, clock=clock, cache=MemoryCache())


@pytest.fixture
def make_payload():
    """Factory for well-formed GET /time/current bodies."""
    return time_payload
