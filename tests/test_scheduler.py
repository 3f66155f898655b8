"""Tests for the recurring task schedulers."""

import asyncio
from datetime import datetime, timedelta

import pytest

from monitoring.scheduler import AsyncioScheduler, ManualScheduler


def test_manual_scheduler_runs_due_tasks() -> None:
    scheduler = ManualScheduler(datetime(2026, 1, 1))
    hits = []
    scheduler.every(timedelta(milliseconds=500), lambda: hits.append(scheduler.now))

    assert scheduler.advance(0.4) == 0
    assert scheduler.advance(1.6) == 4
    assert hits[0] == datetime(2026, 1, 1) + timedelta(milliseconds=500)
    assert scheduler.now == datetime(2026, 1, 1) + timedelta(seconds=2)


def test_tasks_fire_in_due_order() -> None:
    scheduler = ManualScheduler(datetime(2026, 1, 1))
    order = []
    scheduler.every(timedelta(seconds=3), lambda: order.append("slow"))
    scheduler.every(timedelta(seconds=1), lambda: order.append("fast"))

    scheduler.advance(3)
    assert order == ["fast", "fast", "fast", "slow"] or order == ["fast", "fast", "slow", "fast"]
    assert order.count("fast") == 3


def test_cancel_stops_task() -> None:
    scheduler = ManualScheduler()
    hits = []
    handle = scheduler.every(timedelta(seconds=1), lambda: hits.append(1))
    scheduler.advance(2)
    handle.cancel()
    handle.cancel()
    scheduler.advance(5)

    assert len(hits) == 2
    assert handle.cancelled is True
    assert scheduler.active_tasks() == 0


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ManualScheduler().every(timedelta(0), lambda: None)


def test_asyncio_scheduler_runs_on_loop_and_cancels() -> None:
    async def main():
        scheduler = AsyncioScheduler()
        hits = []
        handle = scheduler.every(timedelta(milliseconds=10), lambda: hits.append(1))
        await asyncio.sleep(0.08)
        handle.cancel()
        seen = len(hits)
        await asyncio.sleep(0.05)
        return seen, len(hits), scheduler.active_tasks()

    seen, after, active = asyncio.run(main())
    assert seen >= 1
    assert after == seen
    assert active == 0


def test_raising_task_stays_scheduled() -> None:
    scheduler = ManualScheduler(datetime(2026, 1, 1))
    calls = []

    def flaky():
        calls.append(scheduler.now)
        if len(calls) == 1:
            raise RuntimeError("transient")

    scheduler.every(timedelta(seconds=1), flaky)
    with pytest.raises(RuntimeError):
        scheduler.advance(1)

    scheduler.advance(2)
    assert len(calls) == 3
    assert scheduler.active_tasks() == 1
