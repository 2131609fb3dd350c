"""Tests for the idle shutdown monitor."""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from skysession.clients.teardown import AuthenticatedDeleteClient
from skysession.config import IdleSettings, TeardownSettings
from skysession.errors import MissingCredentials, TransportError
from skysession.idle_shutdown import IdlePhase, IdleShutdownMonitor
from skysession.schemas import AuthScheme, ConnectionEvent, ConnectionState, DeleteOutcome
from skysession.tests.mocks.clock import FakeClock

DELETE_URL = "https://api.edgegap.com/v1/self/stop/abc"
TOKEN = "delete-token"  # noqa: S105

STARTED = ConnectionEvent(state=ConnectionState.STARTED, client_id=1)
STOPPED = ConnectionEvent(state=ConnectionState.STOPPED, client_id=1)


def ok_outcome() -> DeleteOutcome:
    return DeleteOutcome(ok=True, status_code=204, attempts=1, scheme=AuthScheme.RAW)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def delete_client():
    client = AsyncMock()
    client.delete.return_value = ok_outcome()
    return client


@pytest.fixture
def monitor(clock, delete_client):
    return IdleShutdownMonitor(
        delete_client,
        idle_seconds=30.0,
        clock=clock,
        teardown_settings=lambda: TeardownSettings(delete_url=DELETE_URL, delete_token=TOKEN),
    )


async def tick_at(monitor: IdleShutdownMonitor, clock: FakeClock, when: float):
    clock.set(when)
    task = monitor.tick()
    if task is not None:
        await task
    return task


class TestConnectionCounting:
    def test_started_and_stopped(self, monitor):
        monitor.handle_event(STARTED)
        monitor.handle_event(STARTED)
        assert monitor.active_clients == 2
        assert monitor.ever_had_client

        monitor.handle_event(STOPPED)
        assert monitor.active_clients == 1

    def test_stopped_floors_at_zero(self, monitor):
        monitor.handle_event(STOPPED)
        monitor.handle_event(STOPPED)
        assert monitor.active_clients == 0
        assert not monitor.ever_had_client

    def test_local_connections_ignored_by_default(self, monitor):
        monitor.handle_event(ConnectionEvent(state=ConnectionState.STARTED, is_local=True))
        assert monitor.active_clients == 0
        assert not monitor.ever_had_client

    def test_local_connections_counted_when_enabled(self, clock, delete_client):
        monitor = IdleShutdownMonitor(delete_client, clock=clock, count_local_connections=True)
        monitor.handle_event(ConnectionEvent(state=ConnectionState.STARTED, is_local=True))
        assert monitor.active_clients == 1


class TestIdleCountdown:
    @pytest.mark.asyncio
    async def test_no_teardown_before_threshold(self, monitor, clock, delete_client):
        monitor.handle_event(STARTED)
        await tick_at(monitor, clock, 0.0)
        monitor.handle_event(STOPPED)
        await tick_at(monitor, clock, 0.0)

        assert await tick_at(monitor, clock, 29.9) is None
        delete_client.delete.assert_not_awaited()
        assert monitor.phase is IdlePhase.COUNTDOWN_STARTED

    @pytest.mark.asyncio
    async def test_teardown_once_at_threshold(self, monitor, clock, delete_client):
        monitor.handle_event(STARTED)
        await tick_at(monitor, clock, 0.0)
        monitor.handle_event(STOPPED)
        await tick_at(monitor, clock, 0.0)

        assert await tick_at(monitor, clock, 30.0) is not None
        for when in (30.5, 60.0, 600.0):
            assert await tick_at(monitor, clock, when) is None

        delete_client.delete.assert_awaited_once_with(DELETE_URL, TOKEN)
        assert monitor.stop_requested
        assert monitor.stop_attempted

    @pytest.mark.asyncio
    async def test_reconnect_resets_countdown(self, monitor, clock, delete_client):
        monitor.handle_event(STARTED)
        await tick_at(monitor, clock, 0.0)
        monitor.handle_event(STOPPED)
        await tick_at(monitor, clock, 0.0)

        monitor.handle_event(STARTED)
        await tick_at(monitor, clock, 15.0)
        assert monitor.empty_since is None
        assert monitor.phase is IdlePhase.IDLE

        monitor.handle_event(STOPPED)
        await tick_at(monitor, clock, 16.0)
        await tick_at(monitor, clock, 30.0)
        delete_client.delete.assert_not_awaited()

        await tick_at(monitor, clock, 46.0)
        delete_client.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_never_had_client(self, monitor, clock, delete_client):
        for when in (0.0, 30.0, 3600.0, 86400.0):
            assert await tick_at(monitor, clock, when) is None

        delete_client.delete.assert_not_awaited()
        assert monitor.phase is IdlePhase.IDLE

    @pytest.mark.asyncio
    async def test_first_idle_tick_only_starts_countdown(self, monitor, clock, delete_client):
        monitor.handle_event(STARTED)
        monitor.handle_event(STOPPED)

        # empty since long ago, but the countdown starts at the first idle tick
        await tick_at(monitor, clock, 1000.0)
        assert monitor.empty_since == 1000.0
        await tick_at(monitor, clock, 1029.0)
        delete_client.delete.assert_not_awaited()


class TestTeardownLatch:
    @pytest.mark.asyncio
    async def test_tick_during_inflight_teardown_does_not_fire_again(self, monitor, clock):
        release = asyncio.Event()
        calls = []

        async def slow_delete(url, token):
            calls.append((url, token))
            await release.wait()
            return ok_outcome()

        monitor._delete_client.delete = slow_delete
        monitor.handle_event(STARTED)
        monitor.handle_event(STOPPED)
        await tick_at(monitor, clock, 0.0)

        clock.set(30.0)
        task = monitor.tick()
        assert task is not None
        await asyncio.sleep(0)
        assert monitor.phase is IdlePhase.SHUTDOWN_REQUESTED

        clock.set(31.0)
        assert monitor.tick() is None

        release.set()
        await task
        assert calls == [(DELETE_URL, TOKEN)]
        assert monitor.phase is IdlePhase.SHUTDOWN_ATTEMPTED

    @pytest.mark.asyncio
    async def test_failed_teardown_is_not_retried(self, monitor, clock, delete_client):
        delete_client.delete.side_effect = TransportError("connection reset")
        monitor.handle_event(STARTED)
        monitor.handle_event(STOPPED)
        await tick_at(monitor, clock, 0.0)

        task = await tick_at(monitor, clock, 30.0)

        assert task.result() is None
        assert monitor.stop_attempted
        assert await tick_at(monitor, clock, 120.0) is None
        delete_client.delete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unsuccessful_status_still_latches(self, monitor, clock, delete_client):
        delete_client.delete.return_value = DeleteOutcome(
            ok=False, status_code=403, attempts=1, scheme=AuthScheme.RAW, body="forbidden"
        )
        monitor.handle_event(STARTED)
        monitor.handle_event(STOPPED)
        await tick_at(monitor, clock, 0.0)

        task = await tick_at(monitor, clock, 30.0)

        assert not task.result().ok
        assert monitor.stop_attempted


class TestTeardownConfiguration:
    @pytest.mark.asyncio
    async def test_settings_read_at_teardown_time(self, clock, monkeypatch):
        monkeypatch.delenv("ARBITRIUM_DELETE_URL", raising=False)
        monkeypatch.delenv("ARBITRIUM_DELETE_TOKEN", raising=False)
        delete_client = AsyncMock()
        delete_client.delete.return_value = ok_outcome()
        monitor = IdleShutdownMonitor(delete_client, idle_seconds=5.0, clock=clock)

        monitor.handle_event(STARTED)
        monitor.handle_event(STOPPED)
        await tick_at(monitor, clock, 0.0)

        monkeypatch.setenv("ARBITRIUM_DELETE_URL", DELETE_URL)
        monkeypatch.setenv("ARBITRIUM_DELETE_TOKEN", TOKEN)
        await tick_at(monitor, clock, 5.0)

        delete_client.delete.assert_awaited_once_with(DELETE_URL, TOKEN)

    @pytest.mark.asyncio
    async def test_missing_credentials_latches_without_request(self, clock):
        delete_client = AsyncMock()
        delete_client.delete.side_effect = MissingCredentials("not configured")
        monitor = IdleShutdownMonitor(
            delete_client,
            idle_seconds=5.0,
            clock=clock,
            teardown_settings=lambda: TeardownSettings(delete_url="", delete_token=""),
        )
        monitor.handle_event(STARTED)
        monitor.handle_event(STOPPED)
        await tick_at(monitor, clock, 0.0)

        task = await tick_at(monitor, clock, 5.0)

        assert task.result() is None
        assert monitor.stop_attempted


class TestRun:
    @pytest.mark.asyncio
    async def test_run_consumes_events_and_tears_down(self, clock, delete_client):
        monitor = IdleShutdownMonitor(
            delete_client,
            idle_seconds=3.0,
            clock=clock,
            tick_interval=1.0,
            teardown_settings=lambda: TeardownSettings(delete_url=DELETE_URL, delete_token=TOKEN),
        )
        monitor.events.put_nowait(STARTED)
        monitor.events.put_nowait(STOPPED)

        outcome = await monitor.run()

        assert outcome is not None and outcome.ok
        assert monitor.stop_attempted
        assert clock.now() == pytest.approx(3.0)
        delete_client.delete.assert_awaited_once_with(DELETE_URL, TOKEN)

    @pytest.mark.asyncio
    async def test_run_stops_on_event(self, clock, delete_client):
        monitor = IdleShutdownMonitor(delete_client, clock=clock, tick_interval=1.0)
        stop = asyncio.Event()
        stop.set()

        assert await monitor.run(stop) is None
        delete_client.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_run_with_no_clients_waits_for_stop(self, clock, delete_client):
        monitor = IdleShutdownMonitor(delete_client, clock=clock, tick_interval=1.0)
        stop = asyncio.Event()

        async def stop_later():
            while clock.now() < 100.0:
                await asyncio.sleep(0)
            stop.set()

        stopper = asyncio.create_task(stop_later())
        assert await monitor.run(stop) is None
        await stopper
        delete_client.delete.assert_not_awaited()


def test_from_settings(clock, delete_client):
    settings = IdleSettings(window_seconds=12.5, tick_interval_seconds=0.25, count_local_connections=True)

    monitor = IdleShutdownMonitor.from_settings(delete_client, settings, clock=clock)

    assert monitor.idle_seconds == 12.5
    assert monitor.tick_interval == 0.25
    assert monitor.count_local_connections is True


class TestUnsendableTeardown:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("url", "token"),
        [("http://[::1", TOKEN), (DELETE_URL, "tok•en")],
        ids=["malformed_url", "non_ascii_token"],
    )
    async def test_run_logs_and_latches(self, clock, url, token):
        async with httpx.AsyncClient() as http:
            monitor = IdleShutdownMonitor(
                AuthenticatedDeleteClient(http),
                idle_seconds=2.0,
                clock=clock,
                tick_interval=1.0,
                teardown_settings=lambda: TeardownSettings(delete_url=url, delete_token=token),
            )
            monitor.events.put_nowait(STARTED)
            monitor.events.put_nowait(STOPPED)

            assert await monitor.run() is None

        assert monitor.stop_attempted
