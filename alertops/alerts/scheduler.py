"""Background sweeps — periodic escalation checks and daily retention cleanup."""

from __future__ import annotations

import asyncio
import datetime

import structlog

from alertops.alerts.manager import AlertManager
from alertops.core.exceptions import TransientStoreError
from alertops.core.types import Clock, utc_now

logger = structlog.get_logger(__name__)


class SweepScheduler:
    """Runs the escalation sweep every *interval_secs* and cleanup once a day.

    Usage::

        scheduler = SweepScheduler(manager, interval_secs=60, cleanup_hour_utc=3)
        await scheduler.start()
        # ...
        await scheduler.stop()

    A failed cycle is logged and retried on the next tick; store outages
    never stop the loop. Stopping cancels between alerts at worst, which
    simply leaves them for the next cycle.
    """

    def __init__(
        self,
        manager: AlertManager,
        interval_secs: float = 60.0,
        cleanup_hour_utc: int | None = 3,
        retention_days: int | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._manager = manager
        self._interval_secs = interval_secs
        self._cleanup_hour_utc = cleanup_hour_utc
        self._retention_days = retention_days
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._last_cleanup_date: datetime.date | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def run_once(self) -> int:
        """One escalation sweep plus the daily cleanup if due.

        Returns the number of alerts escalated (0 on a failed sweep).
        """
        escalated = 0
        try:
            escalated = await self._manager.check_escalation()
        except TransientStoreError as exc:
            logger.warning("escalation_sweep_deferred", error=str(exc))
        except Exception:
            logger.exception("escalation_sweep_error")

        if self._cleanup_due():
            try:
                await self._manager.cleanup(self._retention_days)
                self._last_cleanup_date = self._clock().date()
            except TransientStoreError as exc:
                logger.warning("cleanup_deferred", error=str(exc))
            except Exception:
                logger.exception("cleanup_error")
        return escalated

    def _cleanup_due(self) -> bool:
        if self._cleanup_hour_utc is None:
            return False
        now = self._clock()
        return now.hour == self._cleanup_hour_utc and self._last_cleanup_date != now.date()

    # ── Internal loop ───────────────────────────────────────────

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                return
            await asyncio.sleep(self._interval_secs)
