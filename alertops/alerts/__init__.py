"""Alert lifecycle engine — dedup, routing, escalation, aggregation."""

from alertops.alerts.aggregation import Aggregator
from alertops.alerts.dedup import Deduplicator
from alertops.alerts.escalation import Escalator
from alertops.alerts.factory import create_alert_stack, create_store
from alertops.alerts.manager import AlertManager
from alertops.alerts.routing import Router
from alertops.alerts.rule_file import RuleFile, parse_rule_line
from alertops.alerts.scheduler import SweepScheduler
from alertops.alerts.templates import TemplateStore

__all__ = [
    "AlertManager",
    "Aggregator",
    "Deduplicator",
    "Escalator",
    "Router",
    "RuleFile",
    "SweepScheduler",
    "TemplateStore",
    "create_alert_stack",
    "create_store",
    "parse_rule_line",
]
