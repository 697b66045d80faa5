"""Core module — config, types, exceptions, logging."""

from alertops.core.config import (
    Settings,
    get_settings,
    load_settings,
    reset_settings,
    validate_settings,
)
from alertops.core.exceptions import (
    AlertError,
    AlertValidationError,
    TransientStoreError,
)
from alertops.core.logging import setup_logging
from alertops.core.types import (
    AggregateRow,
    Alert,
    AlertQuery,
    AlertStatus,
    IngestResult,
    RoutingRule,
    Severity,
    StatsRow,
)

__all__ = [
    "AggregateRow",
    "Alert",
    "AlertError",
    "AlertQuery",
    "AlertStatus",
    "AlertValidationError",
    "IngestResult",
    "RoutingRule",
    "Settings",
    "Severity",
    "StatsRow",
    "TransientStoreError",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
    "validate_settings",
]
