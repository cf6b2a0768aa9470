"""Tests for the in-process refresh scheduler."""

import asyncio
from datetime import datetime, timezone

from stockviewer.services.refresh import RefreshResult
from stockviewer.services.scheduler import RefreshScheduler


def _ok(upserted: int = 1) -> RefreshResult:
    now = datetime.now(timezone.utc)
    return RefreshResult(
        success=True,
        company="Ralhum",
        location="Feeder Stores",
        started_at=now,
        completed_at=now,
        upserted_count=upserted,
    )


async def test_overlapping_refresh_returns_previous_result():
    gate = asyncio.Event()
    calls = 0

    async def slow_refresh() -> RefreshResult:
        nonlocal calls
        calls += 1
        await gate.wait()
        return _ok(calls)

    scheduler = RefreshScheduler(slow_refresh)

    first = asyncio.create_task(scheduler.refresh())
    await asyncio.sleep(0)
    assert scheduler.is_refreshing

    overlapping = await scheduler.refresh()
    assert not overlapping.success
    assert overlapping.error == "Refresh already in progress"

    gate.set()
    result = await first
    assert result.success
    assert calls == 1
    assert not scheduler.is_refreshing

    gate.clear()
    second = asyncio.create_task(scheduler.refresh())
    await asyncio.sleep(0)
    assert (await scheduler.refresh()) is result
    gate.set()
    await second
    assert calls == 2


async def test_failures_are_recorded():
    async def boom() -> RefreshResult:
        raise RuntimeError("tally offline")

    scheduler = RefreshScheduler(boom)
    result = await scheduler.refresh()

    assert not result.success
    status = scheduler.status()
    assert status.last_error == "tally offline"
    assert status.last_result is result
    assert not status.is_refreshing


async def test_success_clears_last_error():
    outcomes = [RefreshResult.failed("nope", company="Ralhum", location=None), _ok()]

    async def refresh() -> RefreshResult:
        return outcomes.pop(0)

    scheduler = RefreshScheduler(refresh)
    await scheduler.refresh()
    assert scheduler.last_error == "nope"
    await scheduler.refresh()
    assert scheduler.last_error is None


async def test_disabled_scheduler_does_not_start():
    async def refresh() -> RefreshResult:
        return _ok()

    scheduler = RefreshScheduler(refresh, enabled=False)
    assert scheduler.start() is False
    assert not scheduler.status().scheduler_running


async def test_timer_refreshes_on_start_and_stops():
    ran = asyncio.Event()

    async def refresh() -> RefreshResult:
        ran.set()
        return _ok()

    scheduler = RefreshScheduler(refresh, interval_seconds=3600, refresh_on_start=True)
    assert scheduler.start() is True
    assert scheduler.start() is False

    await asyncio.wait_for(ran.wait(), timeout=2)
    assert scheduler.running

    await scheduler.stop()
    assert not scheduler.running
    assert scheduler.last_result is not None


async def test_timer_ticks_on_interval():
    calls = 0

    async def refresh() -> RefreshResult:
        nonlocal calls
        calls += 1
        return _ok()

    scheduler = RefreshScheduler(refresh, interval_seconds=0.01)
    scheduler.start()
    await asyncio.sleep(0.1)
    await scheduler.stop()

    assert calls >= 2
