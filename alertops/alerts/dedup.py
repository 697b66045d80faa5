"""Deduplicator — suppresses repeats of a recent active alert at ingest."""

from __future__ import annotations

import datetime

import structlog

from alertops.core.config import DeduplicationConfig
from alertops.core.types import AlertQuery, AlertStatus, Clock, utc_now
from alertops.store.base import AlertStore

logger = structlog.get_logger(__name__)


class Deduplicator:
    """Decides whether an incoming alert duplicates a recent one.

    A duplicate is an ``active`` alert with the same component, type and
    message created within the window. Duplicates are dropped by the
    caller, not counted; counting is the Aggregator's job.
    """

    def __init__(
        self,
        store: AlertStore,
        config: DeduplicationConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._config = config or DeduplicationConfig()
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    async def is_duplicate(
        self,
        component: str,
        alert_type: str,
        message: str,
        window_minutes: int | None = None,
    ) -> bool:
        if not self._config.enabled:
            return False
        window = self._config.window_minutes if window_minutes is None else window_minutes
        since = self._clock() - datetime.timedelta(minutes=window)
        matches = await self._store.find(
            AlertQuery(
                component=component,
                alert_type=alert_type,
                message=message,
                status=AlertStatus.ACTIVE,
                created_after=since,
                limit=1,
            ),
        )
        return bool(matches)
