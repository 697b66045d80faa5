"""AlertStore — persistence contract consumed by the alert engine."""

from __future__ import annotations

import abc
from typing import Any

from alertops.core.types import Alert, AlertQuery, AlertStatus, StatsRow


class AlertStore(abc.ABC):
    """Async persistence contract for alert records.

    Mutations that depend on current state (status changes, escalation)
    are compare-and-set: they return False rather than raising when the
    alert is missing or no longer eligible, so batch callers can carry on.
    Connectivity problems raise TransientStoreError.
    """

    @abc.abstractmethod
    async def create(self, alert: Alert) -> str:
        """Insert *alert* as ``active`` with a store-assigned created_at.

        Returns the new alert id.
        """

    @abc.abstractmethod
    async def get(self, alert_id: str) -> Alert | None:
        """Return the alert, or None if unknown."""

    @abc.abstractmethod
    async def update_status(
        self,
        alert_id: str,
        new_status: AlertStatus,
        actor: str,
    ) -> bool:
        """Atomically move an alert to *new_status* if the transition is legal."""

    @abc.abstractmethod
    async def merge_metadata(self, alert_id: str, partial: dict[str, Any]) -> bool:
        """Merge *partial* into the alert's metadata; False if unknown."""

    @abc.abstractmethod
    async def record_escalation(
        self,
        alert_id: str,
        level: int,
        partial: dict[str, Any],
    ) -> bool:
        """Raise the escalation level of a still-active alert.

        Succeeds only when the alert is ``active`` and its current level is
        below *level*; merges *partial* into metadata on success.
        """

    @abc.abstractmethod
    async def find(self, query: AlertQuery) -> list[Alert]:
        """Return matching alerts, newest first."""

    @abc.abstractmethod
    async def stats(self, component: str | None = None) -> list[StatsRow]:
        """Count every alert grouped by (component, severity, status).

        Rows are ordered by those keys. Grouping happens in the store so
        the caller never loads the alert rows themselves.
        """

    @abc.abstractmethod
    async def delete_resolved_older_than(self, retention_days: int) -> int:
        """Delete resolved alerts created more than *retention_days* ago."""

    async def close(self) -> None:
        """Release resources (connection pools, etc.)."""
