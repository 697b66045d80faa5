"""Pure functions that render alerts into subjects and bodies."""

from __future__ import annotations

import datetime
import json
from html import escape as html_escape
from typing import Any

from alertops.core.types import Alert, Severity, utc_now
from alertops.notify.types import Notification

# Left-border colours for HTML mail, keyed by severity.
_HTML_COLORS: dict[str, str] = {
    Severity.CRITICAL: "#dc3545",  # red
    Severity.WARNING: "#ffc107",   # yellow
    Severity.INFO: "#17a2b8",      # blue
}
_DEFAULT_COLOR = "#6c757d"


def format_subject(
    severity: Severity | str,
    component: str,
    alert_type: str,
    service_name: str,
) -> str:
    return f"[{str(severity).upper()}] {service_name}: {component} - {alert_type}"


def format_text(
    component: str,
    severity: Severity | str,
    alert_type: str,
    message: str,
    timestamp: datetime.datetime,
    service_name: str,
) -> str:
    return (
        f"Component: {component}\n"
        f"Alert Level: {severity}\n"
        f"Alert Type: {alert_type}\n"
        f"Message: {message}\n"
        f"Timestamp: {timestamp.isoformat(timespec='seconds')}\n"
        f"\n"
        f"This is an automated alert from {service_name}."
    )


def format_html(notification: Notification) -> str:
    """Self-contained HTML document for mail clients."""
    color = _HTML_COLORS.get(notification.severity, _DEFAULT_COLOR)
    header = html_escape(
        f"[{notification.severity.upper()}] {notification.component}"
        f" - {notification.alert_type}",
    )
    meta = ""
    if notification.extra:
        meta = (
            '<div class="metadata">Metadata: '
            f"{html_escape(json.dumps(notification.extra, sort_keys=True))}</div>"
        )
    return (
        "<!DOCTYPE html>\n"
        "<html>\n<head>\n<meta charset=\"UTF-8\">\n<style>\n"
        "body { font-family: Arial, sans-serif; }\n"
        f".alert {{ border-left: 4px solid {color}; padding: 10px; margin: 10px 0; }}\n"
        ".header { font-weight: bold; font-size: 1.2em; }\n"
        ".metadata { font-size: 0.9em; color: #666; }\n"
        "</style>\n</head>\n<body>\n"
        '<div class="alert">\n'
        f'<div class="header">{header}</div>\n'
        f"<div>{html_escape(notification.message)}</div>\n"
        f'<div class="metadata">Timestamp: '
        f"{notification.timestamp.isoformat(timespec='seconds')}</div>\n"
        f"{meta}\n"
        "</div>\n</body>\n</html>\n"
    )


def format_json(notification: Notification) -> str:
    payload = {
        "component": notification.component,
        "alert_level": notification.severity.value,
        "alert_type": notification.alert_type,
        "message": notification.message,
        "timestamp": notification.timestamp.isoformat(timespec="seconds"),
        "metadata": notification.extra or None,
    }
    if notification.alert_id:
        payload["alert_id"] = notification.alert_id
    return json.dumps(payload, indent=2)


def build_notification(
    alert: Alert,
    recipients: list[str],
    service_name: str,
    alert_type: str | None = None,
    message: str | None = None,
    extra: dict[str, Any] | None = None,
    timestamp: datetime.datetime | None = None,
) -> Notification:
    """Render *alert* for *recipients*.

    *alert_type* / *message* override the alert's own values (used for
    escalation notices, which keep the alert's component and severity).
    """
    kind = alert_type or alert.alert_type
    text = message or alert.message
    ts = timestamp or utc_now()
    return Notification(
        alert_id=alert.id,
        component=alert.component,
        severity=alert.severity,
        alert_type=kind,
        message=text,
        recipients=list(recipients),
        subject=format_subject(alert.severity, alert.component, kind, service_name),
        body=format_text(alert.component, alert.severity, kind, text, ts, service_name),
        extra=dict(extra or {}),
        timestamp=ts,
    )
