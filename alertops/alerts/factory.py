"""Convenience factory for wiring the alert engine from settings."""

from __future__ import annotations

from alertops.alerts.manager import AlertManager
from alertops.alerts.routing import Router
from alertops.alerts.rule_file import RuleFile
from alertops.alerts.scheduler import SweepScheduler
from alertops.core.config import Settings
from alertops.notify.factory import create_dispatcher
from alertops.store.base import AlertStore
from alertops.store.sql import SqlAlertStore


def create_store(settings: Settings) -> SqlAlertStore:
    return SqlAlertStore(
        settings.database.url,
        echo=settings.database.echo,
        operation_timeout_secs=settings.database.operation_timeout_secs,
    )


def create_alert_stack(
    settings: Settings,
    store: AlertStore | None = None,
) -> tuple[AlertManager, SweepScheduler]:
    """Build a manager (router loaded from the rules file) plus its scheduler.

    Returns:
        (manager, scheduler)
    """
    rules = RuleFile(settings.routing.rules_file).load()
    router = Router(settings.routing, rules)
    dispatcher = create_dispatcher(settings.notifications)
    manager = AlertManager(
        store=store or create_store(settings),
        router=router,
        dispatcher=dispatcher,
        settings=settings,
    )
    scheduler = SweepScheduler(
        manager,
        interval_secs=settings.escalation.check_interval_secs,
        cleanup_hour_utc=settings.retention.cleanup_hour_utc,
        retention_days=settings.retention.days,
    )
    return manager, scheduler
