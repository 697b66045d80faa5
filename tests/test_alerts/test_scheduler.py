"""Tests for SweepScheduler — escalation cycles, daily cleanup, failure tolerance."""

from __future__ import annotations

import asyncio
import datetime
from unittest.mock import AsyncMock, MagicMock

from alertops.alerts.scheduler import SweepScheduler
from alertops.core.exceptions import TransientStoreError

# 03:10 UTC: inside the default cleanup hour.
T0 = datetime.datetime(2026, 3, 1, 3, 10, tzinfo=datetime.UTC)


class FakeClock:
    def __init__(self, start: datetime.datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kw: float) -> None:
        self.now += datetime.timedelta(**kw)


def _manager(escalated: int = 0) -> MagicMock:
    manager = MagicMock()
    manager.check_escalation = AsyncMock(return_value=escalated)
    manager.cleanup = AsyncMock(return_value=0)
    return manager


class TestRunOnce:
    async def test_sweeps_and_cleans_once_per_day(self) -> None:
        clock = FakeClock()
        manager = _manager(escalated=2)
        sched = SweepScheduler(manager, cleanup_hour_utc=3, retention_days=90, clock=clock)

        assert await sched.run_once() == 2
        manager.cleanup.assert_awaited_once_with(90)

        clock.advance(minutes=1)
        await sched.run_once()
        assert manager.cleanup.await_count == 1

        clock.advance(days=1)
        await sched.run_once()
        assert manager.cleanup.await_count == 2

    async def test_no_cleanup_outside_hour(self) -> None:
        clock = FakeClock(T0.replace(hour=12))
        manager = _manager()
        sched = SweepScheduler(manager, cleanup_hour_utc=3, clock=clock)
        await sched.run_once()
        manager.cleanup.assert_not_awaited()

    async def test_cleanup_disabled(self) -> None:
        manager = _manager()
        sched = SweepScheduler(manager, cleanup_hour_utc=None, clock=FakeClock())
        await sched.run_once()
        manager.cleanup.assert_not_awaited()

    async def test_transient_error_is_tolerated(self) -> None:
        clock = FakeClock()
        manager = _manager()
        manager.check_escalation = AsyncMock(side_effect=TransientStoreError("down"))
        sched = SweepScheduler(manager, clock=clock)
        assert await sched.run_once() == 0
        # Cleanup still attempted.
        manager.cleanup.assert_awaited_once()

    async def test_failed_cleanup_retried(self) -> None:
        clock = FakeClock()
        manager = _manager()
        manager.cleanup = AsyncMock(side_effect=[TransientStoreError("down"), 3])
        sched = SweepScheduler(manager, clock=clock)
        await sched.run_once()
        clock.advance(minutes=1)
        await sched.run_once()
        assert manager.cleanup.await_count == 2

    async def test_unexpected_error_is_tolerated(self) -> None:
        manager = _manager()
        manager.check_escalation = AsyncMock(side_effect=RuntimeError("boom"))
        sched = SweepScheduler(manager, cleanup_hour_utc=None, clock=FakeClock())
        assert await sched.run_once() == 0


class TestLifecycle:
    async def test_start_and_stop(self) -> None:
        manager = _manager()
        sched = SweepScheduler(manager, interval_secs=0.01, cleanup_hour_utc=None)
        await sched.start()
        assert sched.running is True
        await asyncio.sleep(0.05)
        await sched.stop()
        assert sched.running is False
        assert manager.check_escalation.await_count >= 1

    async def test_start_twice_is_noop(self) -> None:
        sched = SweepScheduler(_manager(), interval_secs=10, cleanup_hour_utc=None)
        await sched.start()
        task = sched._task
        await sched.start()
        assert sched._task is task
        await sched.stop()

    async def test_stop_without_start(self) -> None:
        sched = SweepScheduler(_manager())
        await sched.stop()
        assert sched.running is False
