"""In-memory AlertStore with the same semantics as the SQL store."""

from __future__ import annotations

import asyncio
import datetime
from collections import defaultdict
from typing import Any

import structlog

from alertops.core.types import (
    ALLOWED_TRANSITIONS,
    Alert,
    AlertQuery,
    AlertStatus,
    Clock,
    StatsRow,
    as_utc,
    parse_severity,
    utc_now,
)
from alertops.store.base import AlertStore

logger = structlog.get_logger(__name__)


class MemoryAlertStore(AlertStore):
    """Dict-backed store for tests, dry runs and single-process use.

    All mutations are serialised by one asyncio.Lock so status changes
    are compare-and-set just like the SQL implementation.
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._alerts: dict[str, Alert] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._alerts)

    async def create(self, alert: Alert) -> str:
        severity = parse_severity(alert.severity)
        stored = alert.model_copy(
            update={
                "severity": severity,
                "status": AlertStatus.ACTIVE,
                "created_at": self._clock(),
                "resolved_at": None,
                "metadata": dict(alert.metadata),
            },
        )
        async with self._lock:
            self._alerts[stored.id] = stored
        return stored.id

    async def get(self, alert_id: str) -> Alert | None:
        alert = self._alerts.get(alert_id)
        return alert.model_copy(deep=True) if alert is not None else None

    async def update_status(
        self,
        alert_id: str,
        new_status: AlertStatus,
        actor: str,
    ) -> bool:
        allowed = ALLOWED_TRANSITIONS.get(new_status, frozenset())
        async with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None or alert.status not in allowed:
                return False
            now = self._clock()
            metadata = dict(alert.metadata)
            update: dict[str, Any] = {"status": new_status}
            if new_status == AlertStatus.ACKNOWLEDGED:
                metadata["acknowledged_by"] = actor
                metadata["acknowledged_at"] = now.isoformat()
            elif new_status == AlertStatus.RESOLVED:
                metadata["resolved_by"] = actor
                metadata["resolved_at"] = now.isoformat()
                update["resolved_at"] = now
            update["metadata"] = metadata
            self._alerts[alert_id] = alert.model_copy(update=update)
        return True

    async def merge_metadata(self, alert_id: str, partial: dict[str, Any]) -> bool:
        async with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                return False
            self._alerts[alert_id] = alert.model_copy(
                update={"metadata": {**alert.metadata, **partial}},
            )
        return True

    async def record_escalation(
        self,
        alert_id: str,
        level: int,
        partial: dict[str, Any],
    ) -> bool:
        async with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None or not alert.is_active or alert.escalation_level >= level:
                return False
            self._alerts[alert_id] = alert.model_copy(
                update={
                    "escalation_level": level,
                    "metadata": {**alert.metadata, **partial},
                },
            )
        return True

    async def find(self, query: AlertQuery) -> list[Alert]:
        matched = [a for a in self._alerts.values() if query.matches(a)]
        matched.sort(key=lambda a: as_utc(a.created_at), reverse=True)
        if query.limit is not None:
            matched = matched[: query.limit]
        return [a.model_copy(deep=True) for a in matched]

    async def stats(self, component: str | None = None) -> list[StatsRow]:
        groups: dict[tuple[str, str, str], list[datetime.datetime]] = defaultdict(list)
        for alert in self._alerts.values():
            if component is None or alert.component == component:
                key = (alert.component, alert.severity, alert.status)
                groups[key].append(as_utc(alert.created_at))

        return [
            StatsRow(
                component=comp,
                severity=severity,
                status=status,
                count=len(created),
                first_created_at=min(created),
                last_created_at=max(created),
            )
            for (comp, severity, status), created in sorted(groups.items())
        ]

    async def delete_resolved_older_than(self, retention_days: int) -> int:
        cutoff = self._clock() - datetime.timedelta(days=retention_days)
        async with self._lock:
            doomed = [
                alert_id
                for alert_id, alert in self._alerts.items()
                if alert.status == AlertStatus.RESOLVED
                and as_utc(alert.created_at) <= cutoff
            ]
            for alert_id in doomed:
                del self._alerts[alert_id]
        logger.debug("memory_store_cleanup", deleted=len(doomed))
        return len(doomed)
