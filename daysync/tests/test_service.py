"""End-to-end tests for the TimeService facade."""
from __future__ import annotations

import asyncio
import re

import httpx
import pytest

from daysync import TimeService
from daysync.tier0_core.errors import UserCommandError
from daysync.tier0_core.snapshot import SnapshotSource
from daysync.tier2_reliability.cache import MemoryCache

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class TestReadsBeforeInitialize:
    def test_current_date_never_throws(self, service):
        assert not service.is_ready()
        assert DATE_RE.match(service.get_current_date())
        assert service.get_user_timezone() == "Europe/Paris"
        assert service.get_current_date_time().startswith(service.get_current_date())
        assert service.is_mock_date() is False

    def test_reads_do_not_install_state(self, service):
        service.get_current_date()
        assert service.get_state().current_time is None


class TestInitialize:
    @pytest.mark.asyncio
    async def test_anonymous_session_makes_no_requests(self, service, authority):
        await service.initialize(is_authenticated=False)
        assert service.is_ready()
        assert service.get_current_date() == "2025-03-01"
        assert service.get_state().current_time.source is SnapshotSource.FALLBACK
        assert not service._scheduler.running
        await service.sync(force=True)
        assert authority.requests == []
        await service.destroy()

    @pytest.mark.asyncio
    async def test_authenticated_session_syncs_and_schedules(self, service, authority):
        await service.initialize(is_authenticated=True)
        assert service.get_current_date() == "2025-03-01"
        assert service.get_state().current_time.is_authoritative
        assert service._scheduler.running
        assert authority.calls("GET", "/time/current") == 1
        await service.destroy()

    @pytest.mark.asyncio
    async def test_second_initialize_is_a_no_op(self, service, authority):
        await service.initialize(is_authenticated=True)
        await service.initialize(is_authenticated=True)
        assert authority.calls("GET", "/time/current") == 1
        await service.destroy()

    @pytest.mark.asyncio
    async def test_unreachable_authority_does_not_fail_initialize(self, service, authority):
        authority.routes[("GET", "/time/current")] = 503
        await service.initialize(is_authenticated=True)
        assert service.is_ready()
        assert DATE_RE.match(service.get_current_date())
        assert service.get_state().consecutive_sync_errors == 1
        # retries continue on the normal cadence
        assert service._scheduler.running
        await service.destroy()


class TestSync:
    @pytest.mark.asyncio
    async def test_concurrent_refreshes_share_one_request(self, service, authority):
        await service.initialize(is_authenticated=False)
        await service.set_authentication_status(True)
        authority.requests.clear()

        authority.gate = asyncio.Event()
        first = asyncio.create_task(service.sync(force=True))
        await asyncio.sleep(0.01)
        second = asyncio.create_task(service.sync())
        third = asyncio.create_task(service.sync())
        await asyncio.sleep(0.01)
        authority.gate.set()
        results = await asyncio.gather(first, second, third)
        assert authority.calls("GET", "/time/current") == 1
        assert results[0] is results[1] is results[2]
        await service.destroy()

    @pytest.mark.asyncio
    async def test_refresh_within_freshness_window(self, service, authority, manual_clock):
        await service.initialize(is_authenticated=True)
        manual_clock.advance(1)
        await service.sync()
        assert authority.calls("GET", "/time/current") == 1
        await service.destroy()

    @pytest.mark.asyncio
    async def test_contract_violation_leaves_snapshot(self, service, authority, make_payload):
        await service.initialize(is_authenticated=True)
        before = service.get_state().current_time
        broken = make_payload("2025-03-02")
        del broken["timezone_id"]
        authority.current = broken

        await service.sync(force=True)
        assert service.get_state().current_time is before
        assert service.get_state().consecutive_sync_errors == 1
        assert service.get_current_date() == "2025-03-01"
        await service.destroy()

    @pytest.mark.asyncio
    async def test_undecodable_body_is_absorbed(self, service, authority):
        await service.initialize(is_authenticated=True)
        before = service.get_state().current_time
        authority.routes[("GET", "/time/current")] = httpx.DecodingError("bad gzip")

        await service.sync(force=True)
        assert service.get_state().current_time is before
        assert service.get_state().consecutive_sync_errors == 1
        await service.destroy()


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_logout_degrades_to_fallback(self, service, authority):
        await service.initialize(is_authenticated=True)
        await service.set_mock_datetime("2025-06-15T10:00:00")
        assert service.is_mock_date()

        await service.set_authentication_status(False)
        state = service.get_state()
        assert state.current_time.source is SnapshotSource.FALLBACK
        assert state.last_sync_at is None
        assert service.is_mock_date() is False
        assert service.is_ready()
        assert service.get_current_date() == "2025-03-01"
        assert not service._scheduler.running
        await service.destroy()

    @pytest.mark.asyncio
    async def test_logout_notifies_listeners(self, service):
        await service.initialize(is_authenticated=True)
        calls = []
        service.add_event_listener(lambda: calls.append(service.get_state().current_time.source))
        await service.set_authentication_status(False)
        assert calls == [SnapshotSource.FALLBACK]
        await service.destroy()

    @pytest.mark.asyncio
    async def test_forced_sync_queued_behind_logout_stays_anonymous(self, service, authority):
        await service.initialize(is_authenticated=True)
        authority.gate = asyncio.Event()
        first = asyncio.create_task(service.sync(force=True))
        await asyncio.sleep(0.01)
        second = asyncio.create_task(service.sync(force=True))
        await asyncio.sleep(0.01)

        await service.set_authentication_status(False)
        authority.gate.set()
        await asyncio.gather(first, second)

        assert service.get_state().current_time.source is SnapshotSource.FALLBACK
        # the initial sync plus the one already in flight at logout
        assert authority.calls("GET", "/time/current") == 2
        await service.destroy()

    @pytest.mark.asyncio
    async def test_login_after_anonymous_start_syncs(self, service, authority):
        await service.initialize(is_authenticated=False)
        await service.set_authentication_status(True)
        assert authority.calls("GET", "/time/current") == 1
        assert service.get_state().current_time.is_authoritative
        assert service._scheduler.running
        await service.destroy()

    @pytest.mark.asyncio
    async def test_repeated_status_is_ignored(self, service, authority):
        await service.initialize(is_authenticated=True)
        await service.set_authentication_status(True)
        assert authority.calls("GET", "/time/current") == 1
        await service.destroy()

    @pytest.mark.asyncio
    async def test_status_before_initialize_only_records(self, service, authority):
        await service.set_authentication_status(True)
        assert service.is_authenticated
        assert authority.requests == []
        assert not service.is_ready()


class TestMockDate:
    @pytest.mark.asyncio
    async def test_round_trip(self, service):
        await service.initialize(is_authenticated=True)
        await service.set_mock_datetime("2025-06-15T10:00:00")
        assert service.get_current_date() == "2025-06-15"
        assert service.is_mock_date() is True

        await service.set_mock_datetime(None)
        await service.sync()
        assert service.is_mock_date() is False
        assert service.get_current_date() == "2025-03-01"
        await service.destroy()

    @pytest.mark.asyncio
    async def test_mock_date_flows_into_derived_dates(self, service):
        await service.initialize(is_authenticated=True)
        await service.set_mock_datetime("2025-06-15T10:00:00")
        assert service.get_start_of_week() == "2025-06-09"
        assert service.get_start_of_month() == "2025-06-01"
        assert service.get_date_range("M") == {"start": "2025-06-01", "end": "2025-06-30"}
        assert service.format_relative_date("2025-06-16") == "Tomorrow"
        assert service.format_user_date("2025-06-15", {"weekday": "long"}) == "Sunday, June 15, 2025"
        await service.destroy()

    @pytest.mark.asyncio
    async def test_undecodable_mock_response_is_a_command_error(self, service, authority):
        await service.initialize(is_authenticated=True)
        authority.routes[("POST", "/time/mock")] = httpx.DecodingError("bad gzip")
        with pytest.raises(UserCommandError):
            await service.set_mock_datetime("2025-06-15T10:00:00")
        assert service.is_mock_date() is False
        await service.destroy()

    @pytest.mark.asyncio
    async def test_anonymous_mock_command_raises(self, service):
        await service.initialize(is_authenticated=False)
        with pytest.raises(UserCommandError):
            await service.set_mock_datetime("2025-06-15T10:00:00")
        await service.destroy()


class TestDayChange:
    @pytest.mark.asyncio
    async def test_day_change_event_and_cache_invalidation(self, config, client, clock, authority, make_payload):
        cache = MemoryCache()
        await cache.set("habit-completions-2025-03-01", [1])
        await cache.set("statistics-week-9", {"count": 3})
        await cache.set("mood-entries-2025-03-01", [])
        await cache.set("profile", {"name": "sam"})

        async with TimeService(config, client=client, clock=clock, cache=cache) as service:
            events = []
            service.add_day_change_listener(events.append)
            await service.initialize(is_authenticated=True)

            authority.current = make_payload("2025-03-02")
            await service.sync(force=True)

            assert len(events) == 1
            assert (events[0].old_date, events[0].new_date) == ("2025-03-01", "2025-03-02")
            assert len(cache) == 1
            assert await cache.get("profile") == {"name": "sam"}

    @pytest.mark.asyncio
    async def test_removed_listener_is_not_called(self, service, authority, make_payload):
        events = []
        service.add_day_change_listener(events.append)
        service.remove_day_change_listener(events.append)
        await service.initialize(is_authenticated=True)
        authority.current = make_payload("2025-03-02")
        await service.sync(force=True)
        assert events == []
        await service.destroy()


class TestConnectivity:
    @pytest.mark.asyncio
    async def test_offline_stops_schedule(self, service):
        await service.initialize(is_authenticated=True)
        await service.report_connectivity(False)
        assert service.get_state().is_online is False
        assert not service._scheduler.running
        # the snapshot in force is kept
        assert service.get_state().current_time.is_authoritative
        await service.destroy()

    @pytest.mark.asyncio
    async def test_reconnect_resets_errors_and_resyncs(self, service, authority, manual_clock):
        authority.routes[("GET", "/time/current")] = 503
        await service.initialize(is_authenticated=True)
        await service.report_connectivity(False)
        assert service.get_state().consecutive_sync_errors == 1

        del authority.routes[("GET", "/time/current")]
        manual_clock.advance(600)
        await service.report_connectivity(True)
        state = service.get_state()
        assert state.is_online is True
        assert state.consecutive_sync_errors == 0
        assert state.current_time.is_authoritative
        assert service._scheduler.running
        assert authority.calls("GET", "/time/current") == 2
        await service.destroy()

    @pytest.mark.asyncio
    async def test_reconnect_while_anonymous_does_not_sync(self, service, authority):
        await service.initialize(is_authenticated=False)
        await service.report_connectivity(False)
        await service.report_connectivity(True)
        assert authority.requests == []
        assert not service._scheduler.running
        await service.destroy()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_destroy_tears_down(self, service):
        await service.initialize(is_authenticated=True)
        service.add_event_listener(lambda: None)
        await service.destroy()
        assert not service._scheduler.running
        assert service._bus.listener_count == 0
        # reads keep working on the last snapshot
        assert service.is_ready()
        assert service.get_current_date() == "2025-03-01"

    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self, config, clock):
        async with TimeService(config, clock=clock) as service:
            owned = service._client
        assert owned._client.is_closed

    @pytest.mark.asyncio
    async def test_injected_client_stays_open(self, config, client, clock):
        async with TimeService(config, client=client, clock=clock):
            pass
        assert not client._client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_auxiliary_calls_are_exposed(self, service, authority):
        authority.routes[("GET", "/time/timezones")] = []
        authority.routes[("GET", "/time/week-info")] = {"week_number": "nine"}
        await service.initialize(is_authenticated=True)
        assert await service.get_available_timezones() == []
        assert await service.get_week_info() is None
        await service.destroy()
