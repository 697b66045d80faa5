"""Domain types for the alert lifecycle."""

from __future__ import annotations

import datetime
import uuid
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from alertops.core.exceptions import AlertValidationError

# Returns the current time as an aware UTC datetime.
Clock = Callable[[], datetime.datetime]

WILDCARD = "*"
MAX_ESCALATION_LEVEL = 3


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def as_utc(value: datetime.datetime) -> datetime.datetime:
    """Attach UTC to naive datetimes (some drivers drop the zone)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value.astimezone(datetime.UTC)


class Severity(StrEnum):
    """Alert severity (closed set)."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class AlertStatus(StrEnum):
    """Alert lifecycle status (closed set)."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


# Legal status transitions: target → statuses it may be entered from.
ALLOWED_TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.ACTIVE}),
    AlertStatus.RESOLVED: frozenset({AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED}),
}

# Legacy level names accepted at ingest.
_SEVERITY_ALIASES: dict[str, Severity] = {
    "error": Severity.CRITICAL,
}


def parse_severity(value: str | Severity) -> Severity:
    """Normalise and validate a severity string.

    Raises:
        AlertValidationError: If the value is not a known severity.
    """
    if isinstance(value, Severity):
        return value
    key = str(value).strip().lower()
    if key in _SEVERITY_ALIASES:
        return _SEVERITY_ALIASES[key]
    try:
        return Severity(key)
    except ValueError:
        raise AlertValidationError(f"Invalid alert severity: {value!r}") from None


def parse_status(value: str | AlertStatus) -> AlertStatus:
    """Validate a status string.

    Raises:
        AlertValidationError: If the value is not a known status.
    """
    if isinstance(value, AlertStatus):
        return value
    try:
        return AlertStatus(str(value).strip().lower())
    except ValueError:
        raise AlertValidationError(f"Invalid alert status: {value!r}") from None


def parse_alert_id(value: str) -> str:
    """Validate an alert id (UUID) and return its canonical form.

    Raises:
        AlertValidationError: If the value is not a UUID.
    """
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise AlertValidationError(f"Malformed alert id: {value!r}") from None


def new_alert_id() -> str:
    return str(uuid.uuid4())


class Alert(BaseModel):
    """A stored record of a detected abnormal condition."""

    id: str = Field(default_factory=new_alert_id)
    component: str
    severity: Severity
    alert_type: str
    message: str
    status: AlertStatus = AlertStatus.ACTIVE
    created_at: datetime.datetime = Field(default_factory=utc_now)
    resolved_at: datetime.datetime | None = None
    escalation_level: int = Field(default=0, ge=0, le=MAX_ESCALATION_LEVEL)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status == AlertStatus.ACTIVE

    def age_minutes(self, now: datetime.datetime) -> int:
        """Whole minutes elapsed since creation (never negative)."""
        elapsed = (as_utc(now) - as_utc(self.created_at)).total_seconds()
        return max(int(elapsed // 60), 0)


class AlertQuery(BaseModel):
    """Filters for AlertStore.find — all optional, combined with AND."""

    component: str | None = None
    status: AlertStatus | None = None
    severity: Severity | None = None
    alert_type: str | None = None
    message: str | None = None
    created_after: datetime.datetime | None = None
    created_before: datetime.datetime | None = None
    limit: int | None = None

    def matches(self, alert: Alert) -> bool:
        """In-memory evaluation of the filter (used by the memory store)."""
        if self.component is not None and alert.component != self.component:
            return False
        if self.status is not None and alert.status != self.status:
            return False
        if self.severity is not None and alert.severity != self.severity:
            return False
        if self.alert_type is not None and alert.alert_type != self.alert_type:
            return False
        if self.message is not None and alert.message != self.message:
            return False
        created = as_utc(alert.created_at)
        if self.created_after is not None and created <= as_utc(self.created_after):
            return False
        if self.created_before is not None and created >= as_utc(self.created_before):
            return False
        return True


class RoutingRule(BaseModel):
    """Maps a (component, severity, type) pattern to recipients.

    Any of the three match fields may be the wildcard ``*``.
    """

    model_config = ConfigDict(frozen=True)

    component: str
    severity: str
    alert_type: str
    recipients: tuple[str, ...]

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.component, self.severity, self.alert_type)

    def format_line(self) -> str:
        """Render in the legacy ``component:severity:type:recipients`` form."""
        return ":".join([*self.key, ",".join(self.recipients)])


class IngestResult(BaseModel):
    """Outcome of AlertManager.ingest."""

    alert: Alert | None = None
    deduplicated: bool = False
    recipients: list[str] = Field(default_factory=list)


class AggregateRow(BaseModel):
    """Active alerts grouped by (component, severity, type) in a window."""

    component: str
    severity: Severity
    alert_type: str
    count: int
    latest_created_at: datetime.datetime


class StatsRow(BaseModel):
    """All alerts grouped by (component, severity, status)."""

    component: str
    severity: Severity
    status: AlertStatus
    count: int
    first_created_at: datetime.datetime
    last_created_at: datetime.datetime


class EscalationStep(BaseModel):
    """One configured escalation level, for display."""

    level: int
    critical_minutes: int
    warning_minutes: int
    recipients: list[str]
