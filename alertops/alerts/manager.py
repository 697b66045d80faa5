"""AlertManager — the lifecycle surface used by the CLI and scheduler."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog

from alertops.alerts.aggregation import Aggregator
from alertops.alerts.dedup import Deduplicator
from alertops.alerts.escalation import Escalator
from alertops.alerts.routing import Router
from alertops.core.config import Settings, get_settings
from alertops.core.exceptions import AlertValidationError
from alertops.core.types import (
    AggregateRow,
    Alert,
    AlertQuery,
    AlertStatus,
    Clock,
    EscalationStep,
    IngestResult,
    StatsRow,
    parse_alert_id,
    parse_severity,
    parse_status,
    utc_now,
)
from alertops.notify.dispatcher import AlertDispatcher
from alertops.notify.formatters import build_notification
from alertops.store.base import AlertStore

logger = structlog.get_logger(__name__)

_IngestKey = tuple[str, str, str]


class AlertManager:
    """Orchestrates ingest, status changes, escalation and reporting.

    Usage::

        manager = AlertManager(store, router, dispatcher=dispatcher)
        result = await manager.ingest("INGESTION", "critical", "system_down", "db down")
        await manager.acknowledge(result.alert.id, "alice")

    Not-found and illegal transitions come back as False/None; invalid
    input raises AlertValidationError; store outages raise
    TransientStoreError.

    Deduplication is exact only within one process: ingest holds an
    in-process lock around check-then-create, so two processes reporting
    the same condition at the same instant can both store it. Status
    changes and escalation are compare-and-set in the store and stay
    safe across processes.
    """

    def __init__(
        self,
        store: AlertStore,
        router: Router | None = None,
        dispatcher: AlertDispatcher | None = None,
        settings: Settings | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._router = router or Router(self._settings.routing)
        self._dispatcher = dispatcher
        self._clock = clock
        self._service_name = self._settings.notifications.service_name

        self._dedup = Deduplicator(store, self._settings.deduplication, clock)
        self._escalator = Escalator(
            store,
            self._router,
            self._settings.escalation,
            dispatcher,
            clock,
            service_name=self._service_name,
        )
        self._aggregator = Aggregator(store, self._settings.aggregation, clock)

        # Per-(component, type, message) locks around check+create, refcounted.
        self._ingest_locks: dict[_IngestKey, tuple[asyncio.Lock, int]] = {}

    @property
    def store(self) -> AlertStore:
        return self._store

    @property
    def router(self) -> Router:
        return self._router

    @property
    def dispatcher(self) -> AlertDispatcher | None:
        return self._dispatcher

    @property
    def service_name(self) -> str:
        return self._service_name

    @property
    def escalator(self) -> Escalator:
        return self._escalator

    @property
    def deduplicator(self) -> Deduplicator:
        return self._dedup

    # ── Ingest ──────────────────────────────────────────────────

    async def ingest(
        self,
        component: str,
        severity: str,
        alert_type: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> IngestResult:
        """Deduplicate, store, route and notify one reported condition."""
        level = parse_severity(severity)
        if not component.strip() or not alert_type.strip() or not message.strip():
            raise AlertValidationError("component, alert type and message are required")

        async with self._ingest_lock((component, alert_type, message)):
            if await self._dedup.is_duplicate(component, alert_type, message):
                logger.info(
                    "alert_deduplicated",
                    component=component,
                    alert_type=alert_type,
                )
                return IngestResult(deduplicated=True)

            draft = Alert(
                component=component,
                severity=level,
                alert_type=alert_type,
                message=message,
                metadata=dict(metadata or {}),
            )
            alert_id = await self._store.create(draft)

        alert = await self._store.get(alert_id) or draft
        logger.info(
            "alert_stored",
            alert_id=alert_id,
            component=component,
            severity=level.value,
            alert_type=alert_type,
        )

        recipients = self._router.resolve(component, level, alert_type)
        if not recipients:
            logger.debug("alert_without_recipients", alert_id=alert_id, severity=level.value)
        elif self._dispatcher is not None:
            await self._dispatcher.dispatch(
                build_notification(
                    alert,
                    recipients,
                    service_name=self._service_name,
                    extra=alert.metadata or None,
                    timestamp=alert.created_at,
                ),
            )
        return IngestResult(alert=alert, recipients=recipients)

    @asynccontextmanager
    async def _ingest_lock(self, key: _IngestKey) -> AsyncIterator[None]:
        """Serialise ingest of one (component, type, message) in this process.

        The lock lives in this manager only. Other processes sharing the
        store are not excluded.
        """
        lock, refs = self._ingest_locks.get(key, (asyncio.Lock(), 0))
        self._ingest_locks[key] = (lock, refs + 1)
        try:
            async with lock:
                yield
        finally:
            lock, refs = self._ingest_locks[key]
            if refs <= 1:
                del self._ingest_locks[key]
            else:
                self._ingest_locks[key] = (lock, refs - 1)

    # ── Queries ─────────────────────────────────────────────────

    async def list_alerts(
        self,
        component: str | None = None,
        status: str | None = AlertStatus.ACTIVE,
        limit: int | None = 100,
    ) -> list[Alert]:
        query = AlertQuery(
            component=component or None,
            status=parse_status(status) if status else None,
            limit=limit,
        )
        return await self._store.find(query)

    async def show(self, alert_id: str) -> Alert | None:
        return await self._store.get(parse_alert_id(alert_id))

    async def aggregate(
        self,
        component: str | None = None,
        window_minutes: int | None = None,
    ) -> list[AggregateRow]:
        return await self._aggregator.aggregate(component, window_minutes)

    async def history(self, component: str, days: int = 7) -> list[Alert]:
        return await self._aggregator.history(component, days)

    async def stats(self, component: str | None = None) -> list[StatsRow]:
        return await self._aggregator.stats(component)

    # ── Status transitions ──────────────────────────────────────

    async def acknowledge(self, alert_id: str, user: str = "system") -> bool:
        return await self._transition(alert_id, AlertStatus.ACKNOWLEDGED, user)

    async def resolve(self, alert_id: str, user: str = "system") -> bool:
        return await self._transition(alert_id, AlertStatus.RESOLVED, user)

    async def _transition(self, alert_id: str, status: AlertStatus, user: str) -> bool:
        canonical = parse_alert_id(alert_id)
        ok = await self._store.update_status(canonical, status, user or "system")
        if ok:
            logger.info("alert_status_changed", alert_id=canonical, status=status.value, user=user)
        else:
            logger.warning(
                "alert_status_unchanged",
                alert_id=canonical,
                status=status.value,
                reason="not found or already resolved",
            )
        return ok

    # ── Escalation ──────────────────────────────────────────────

    async def check_escalation(self, component: str | None = None) -> int:
        return await self._escalator.check_escalation(component)

    async def escalate(self, alert_id: str, level: int | None = None) -> bool:
        return await self._escalator.escalate(parse_alert_id(alert_id), level)

    def escalation_rules(self) -> list[EscalationStep]:
        return self._escalator.describe_rules()

    # ── Routing ─────────────────────────────────────────────────

    def route(self, component: str, severity: str, alert_type: str) -> list[str]:
        return self._router.resolve(component, severity, alert_type)

    # ── Retention ───────────────────────────────────────────────

    async def cleanup(self, retention_days: int | None = None) -> int:
        """Delete resolved alerts older than the retention window."""
        days = self._settings.retention.days if retention_days is None else retention_days
        if days < 0:
            raise AlertValidationError(f"Retention days must be >= 0, got {days}")
        deleted = await self._store.delete_resolved_older_than(days)
        logger.info("alerts_cleaned_up", deleted=deleted, retention_days=days)
        return deleted
