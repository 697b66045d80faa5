"""Aggregator — grouped counts and statistics for dashboards and reports."""

from __future__ import annotations

import datetime
from collections import defaultdict

from alertops.core.config import AggregationConfig
from alertops.core.types import (
    AggregateRow,
    Alert,
    AlertQuery,
    AlertStatus,
    Clock,
    StatsRow,
    as_utc,
    utc_now,
)
from alertops.store.base import AlertStore


class Aggregator:
    """Read-only reporting over the alert store.

    Empty results are normal and return empty lists.
    """

    def __init__(
        self,
        store: AlertStore,
        config: AggregationConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._config = config or AggregationConfig()
        self._clock = clock

    async def aggregate(
        self,
        component: str | None = None,
        window_minutes: int | None = None,
    ) -> list[AggregateRow]:
        """Active alerts in the window grouped by (component, severity, type).

        Ordered by count descending, then most recent alert descending.
        """
        window = self._config.window_minutes if window_minutes is None else window_minutes
        since = self._clock() - datetime.timedelta(minutes=window)
        alerts = await self._store.find(
            AlertQuery(
                component=component,
                status=AlertStatus.ACTIVE,
                created_after=since,
            ),
        )

        groups: dict[tuple[str, str, str], list[Alert]] = defaultdict(list)
        for alert in alerts:
            groups[(alert.component, alert.severity, alert.alert_type)].append(alert)

        rows = [
            AggregateRow(
                component=members[0].component,
                severity=members[0].severity,
                alert_type=members[0].alert_type,
                count=len(members),
                latest_created_at=max(as_utc(a.created_at) for a in members),
            )
            for members in groups.values()
        ]
        rows.sort(key=lambda r: (r.count, r.latest_created_at), reverse=True)
        return rows

    async def stats(self, component: str | None = None) -> list[StatsRow]:
        """All alerts grouped by (component, severity, status).

        Counted by the store, so no alert rows are loaded here.
        """
        return await self._store.stats(component or None)

    async def history(
        self,
        component: str,
        days: int = 7,
        limit: int | None = 100,
    ) -> list[Alert]:
        """Alerts of every status for *component* over the last *days*."""
        since = self._clock() - datetime.timedelta(days=days)
        return await self._store.find(
            AlertQuery(component=component, created_after=since, limit=limit),
        )
