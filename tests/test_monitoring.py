"""Tests for the active-SOS monitoring loop."""

from __future__ import annotations

import asyncio

import pytest

from config.settings import settings
from src.models import SosAlert, SosStatus
from src.services.errors import TransportError
from src.services.monitoring import SosMonitor


class FakeFeed:
    """Scripted fetcher: returns (or raises) the queued results in order.

    Once the script is exhausted the last result is repeated.
    """

    def __init__(self, *results: list[SosAlert] | Exception, delay: float = 0.0) -> None:
        self._results = list(results)
        self._delay = delay
        self.calls = 0

    async def __call__(self) -> list[SosAlert]:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, Exception):
            raise result
        return list(result)


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def first_alert() -> SosAlert:
    return SosAlert(reporter_ref="S1")


@pytest.fixture
def second_alert() -> SosAlert:
    return SosAlert(reporter_ref="S2")


# ---------------------------------------------------------------------------
# Refresh semantics
# ---------------------------------------------------------------------------


class TestRefresh:
    async def test_first_snapshot_is_baseline(self, first_alert: SosAlert, second_alert: SosAlert) -> None:
        announced: list[list[SosAlert]] = []
        feed = FakeFeed([first_alert], [first_alert, second_alert])
        monitor = SosMonitor(feed, interval=60, on_new_alerts=announced.append)

        await monitor.refresh()
        assert announced == [], "the baseline snapshot must not be announced"
        assert [a.id for a in monitor.snapshot] == [first_alert.id]

        await monitor.refresh()
        assert [[a.id for a in batch] for batch in announced] == [[second_alert.id]]
        assert monitor.refresh_count == 2
        assert monitor.last_refreshed_at is not None

    async def test_responding_alerts_not_announced(self, first_alert: SosAlert, second_alert: SosAlert) -> None:
        announced: list[list[SosAlert]] = []
        responding = second_alert.model_copy(update={"status": SosStatus.RESPONDING})
        feed = FakeFeed([first_alert], [first_alert, responding])
        monitor = SosMonitor(feed, interval=60, on_new_alerts=announced.append)

        await monitor.refresh()
        await monitor.refresh()
        assert announced == []
        assert len(monitor.snapshot) == 2

    async def test_async_callback(self, first_alert: SosAlert, second_alert: SosAlert) -> None:
        seen: list[str] = []

        async def ring(alerts: list[SosAlert]) -> None:
            seen.extend(a.id for a in alerts)

        monitor = SosMonitor(FakeFeed([first_alert], [first_alert, second_alert]), interval=60, on_new_alerts=ring)
        await monitor.refresh()
        await monitor.refresh()
        assert seen == [second_alert.id]

    async def test_callback_error_does_not_break_refresh(self, first_alert: SosAlert, second_alert: SosAlert) -> None:
        def broken(_: list[SosAlert]) -> None:
            raise RuntimeError("speaker unplugged")

        monitor = SosMonitor(FakeFeed([], [second_alert]), interval=60, on_new_alerts=broken)
        await monitor.refresh()
        result = await monitor.refresh()
        assert [a.id for a in result] == [second_alert.id]

    async def test_snapshot_replaced_wholesale(self, first_alert: SosAlert, second_alert: SosAlert) -> None:
        monitor = SosMonitor(FakeFeed([first_alert, second_alert], [second_alert]), interval=60)
        await monitor.refresh()
        await monitor.refresh()
        assert [a.id for a in monitor.snapshot] == [second_alert.id]

    async def test_transport_error_keeps_previous_snapshot(self, first_alert: SosAlert) -> None:
        monitor = SosMonitor(
            FakeFeed([first_alert], TransportError("store down"), [first_alert]),
            interval=60,
        )
        await monitor.refresh()

        retained = await monitor.refresh()
        assert [a.id for a in retained] == [first_alert.id]
        assert monitor.last_error is not None
        assert monitor.refresh_count == 1

        await monitor.refresh()
        assert monitor.last_error is None, "a successful refresh clears the error"

    async def test_concurrent_refreshes_coalesce(self, first_alert: SosAlert) -> None:
        feed = FakeFeed([first_alert], delay=0.05)
        monitor = SosMonitor(feed, interval=60)

        results = await asyncio.gather(monitor.refresh(), monitor.refresh(), monitor.refresh())
        assert feed.calls == 1, "overlapping refreshes must share one fetch"
        assert all([a.id for a in r] == [first_alert.id] for r in results)

    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            SosMonitor(FakeFeed([]), interval=0)

    def test_default_interval_from_settings(self) -> None:
        assert SosMonitor(FakeFeed([])).interval == settings.sos_refresh_interval_seconds


# ---------------------------------------------------------------------------
# Background loop
# ---------------------------------------------------------------------------


class TestLoop:
    async def test_context_manager_runs_and_stops(self, first_alert: SosAlert, second_alert: SosAlert) -> None:
        announced: list[str] = []
        feed = FakeFeed([first_alert], [first_alert], [first_alert, second_alert])

        async with SosMonitor(
            feed,
            interval=0.01,
            on_new_alerts=lambda alerts: announced.extend(a.id for a in alerts),
        ) as monitor:
            assert monitor.is_running
            await _wait_for(lambda: monitor.refresh_count >= 3)

        assert not monitor.is_running
        assert announced == [second_alert.id]

        calls = feed.calls
        await asyncio.sleep(0.05)
        assert feed.calls == calls, "no refresh may run after stop"

    async def test_transport_errors_do_not_stop_loop(self, first_alert: SosAlert) -> None:
        feed = FakeFeed(TransportError("down"), TransportError("down"), [first_alert])
        async with SosMonitor(feed, interval=0.01) as monitor:
            await _wait_for(lambda: monitor.refresh_count >= 1)
            assert monitor.is_running
        assert [a.id for a in monitor.snapshot] == [first_alert.id]

    async def test_unexpected_error_stops_loop(self) -> None:
        monitor = SosMonitor(FakeFeed(RuntimeError("bug")), interval=0.01)
        monitor.start()
        await asyncio.wait_for(monitor.join(), timeout=2)
        assert not monitor.is_running
        await monitor.stop()

    async def test_stop_cancels_slow_fetch(self, first_alert: SosAlert) -> None:
        feed = FakeFeed([first_alert], delay=5)
        monitor = SosMonitor(feed, interval=0.01)
        monitor.start()
        await _wait_for(lambda: feed.calls == 1)

        await asyncio.wait_for(monitor.stop(), timeout=2)
        assert not monitor.is_running
        assert monitor.refresh_count == 0
