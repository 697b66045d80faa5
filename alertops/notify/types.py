"""Domain types for outbound notifications."""

from __future__ import annotations

import datetime
from typing import Any

from pydantic import BaseModel, Field

from alertops.core.types import Severity, utc_now


class Notification(BaseModel):
    """Rendered alert ready for delivery to channels."""

    alert_id: str | None = None
    component: str
    severity: Severity
    alert_type: str
    message: str
    recipients: list[str] = Field(default_factory=list)
    subject: str
    body: str = ""
    extra: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime.datetime = Field(default_factory=utc_now)
