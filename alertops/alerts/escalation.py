"""Escalator — age-based escalation state machine for active alerts."""

from __future__ import annotations

import structlog

from alertops.alerts.routing import Router
from alertops.core.config import EscalationConfig
from alertops.core.types import (
    MAX_ESCALATION_LEVEL,
    Alert,
    AlertQuery,
    AlertStatus,
    Clock,
    EscalationStep,
    Severity,
    utc_now,
)
from alertops.notify.dispatcher import AlertDispatcher
from alertops.notify.formatters import build_notification
from alertops.store.base import AlertStore

logger = structlog.get_logger(__name__)

# Warning thresholds are this multiple of the critical ones.
_WARNING_FACTOR = 2


class Escalator:
    """Advances an alert's escalation level (0..3) as it ages unattended.

    Only ``active`` alerts escalate; acknowledging or resolving an alert
    takes it out of consideration without resetting its level. The
    automatic target is the highest level the alert's age justifies, so a
    long-forgotten alert jumps straight to level 3.

    Usage::

        escalator = Escalator(store, router, config, dispatcher)
        escalated = await escalator.check_escalation()
    """

    def __init__(
        self,
        store: AlertStore,
        router: Router,
        config: EscalationConfig | None = None,
        dispatcher: AlertDispatcher | None = None,
        clock: Clock = utc_now,
        service_name: str = "Alert Monitoring",
    ) -> None:
        self._store = store
        self._router = router
        self._config = config or EscalationConfig()
        self._dispatcher = dispatcher
        self._clock = clock
        self._service_name = service_name

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    # ── Transition function (pure) ──────────────────────────────

    def thresholds_for(self, severity: Severity | str) -> tuple[int, int, int] | None:
        """Minute thresholds for levels 1-3, or None if the severity never escalates."""
        t1, t2, t3 = self._config.thresholds()
        if severity == Severity.CRITICAL:
            return (t1, t2, t3)
        if severity == Severity.WARNING:
            return (t1 * _WARNING_FACTOR, t2 * _WARNING_FACTOR, t3 * _WARNING_FACTOR)
        return None

    def target_level(self, alert: Alert) -> int | None:
        """Level the alert's age justifies, if above its current level."""
        if not self._config.enabled or alert.status != AlertStatus.ACTIVE:
            return None
        thresholds = self.thresholds_for(alert.severity)
        if thresholds is None:
            return None
        age = alert.age_minutes(self._clock())
        current = alert.escalation_level
        for level in range(MAX_ESCALATION_LEVEL, 0, -1):
            if age >= thresholds[level - 1] and current < level:
                return level
        return None

    def needs_escalation(self, alert: Alert) -> bool:
        return self.target_level(alert) is not None

    def recipients_for(self, level: int) -> list[str]:
        """Per-level recipients, falling back to the router's admin address."""
        return list(self._config.recipients_for(level)) or self._router.fallback_recipients()

    def describe_rules(self) -> list[EscalationStep]:
        return [
            EscalationStep(
                level=level,
                critical_minutes=minutes,
                warning_minutes=minutes * _WARNING_FACTOR,
                recipients=self.recipients_for(level),
            )
            for level, minutes in enumerate(self._config.thresholds(), start=1)
        ]

    # ── Transition action ───────────────────────────────────────

    async def escalate(self, alert_id: str, target_level: int | None = None) -> bool:
        """Escalate one alert.

        Without *target_level* the alert must currently need escalation and
        goes to the age-justified level. An explicit level must lie between
        the current level + 1 and 3. Returns False (and logs) when nothing
        was done.
        """
        alert = await self._store.get(alert_id)
        if alert is None:
            logger.warning("escalation_alert_not_found", alert_id=alert_id)
            return False

        if target_level is None:
            target_level = self.target_level(alert)
            if target_level is None:
                logger.warning(
                    "escalation_not_needed",
                    alert_id=alert_id,
                    level=alert.escalation_level,
                )
                return False
        elif not 1 <= target_level <= MAX_ESCALATION_LEVEL:
            logger.error("escalation_level_invalid", alert_id=alert_id, level=target_level)
            return False
        elif target_level <= alert.escalation_level:
            logger.warning(
                "escalation_level_not_higher",
                alert_id=alert_id,
                current=alert.escalation_level,
                requested=target_level,
            )
            return False

        return await self._apply(alert, target_level)

    async def check_escalation(self, component: str | None = None) -> int:
        """Sweep active alerts and escalate those that need it.

        Each alert is re-read and handled on its own; a failure on one is
        logged and the sweep moves on. Returns the number escalated.
        """
        if not self._config.enabled:
            logger.debug("escalation_disabled")
            return 0

        snapshot = await self._store.find(
            AlertQuery(component=component, status=AlertStatus.ACTIVE),
        )
        escalated = 0
        for alert_id in [a.id for a in snapshot]:
            try:
                alert = await self._store.get(alert_id)
                if alert is None:
                    continue
                target = self.target_level(alert)
                if target is None:
                    continue
                if await self._apply(alert, target):
                    escalated += 1
            except Exception:
                logger.exception("escalation_alert_error", alert_id=alert_id)

        logger.info(
            "escalation_sweep_completed",
            component=component,
            checked=len(snapshot),
            escalated=escalated,
        )
        return escalated

    # ── Internal ────────────────────────────────────────────────

    async def _apply(self, alert: Alert, level: int) -> bool:
        recipients = self.recipients_for(level)
        now = self._clock()
        recorded = await self._store.record_escalation(
            alert.id,
            level,
            {
                "escalation_level": level,
                "escalated_at": now.isoformat(),
                "escalation_recipients": ",".join(recipients),
            },
        )
        if not recorded:
            # Acknowledged, resolved or escalated by someone else meanwhile.
            logger.info("escalation_skipped", alert_id=alert.id, level=level)
            return False

        logger.info(
            "alert_escalated",
            alert_id=alert.id,
            component=alert.component,
            severity=alert.severity.value,
            level=level,
            recipients=recipients,
        )

        if self._dispatcher is not None and recipients:
            notification = build_notification(
                alert,
                recipients,
                service_name=self._service_name,
                alert_type=f"escalation_{level}",
                message=f"Alert escalated to level {level}: {alert.message}",
                extra={"alert_id": alert.id, "escalation_level": level},
                timestamp=now,
            )
            await self._dispatcher.dispatch(notification)
        return True
