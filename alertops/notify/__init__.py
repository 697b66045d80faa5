"""Notification rendering and delivery."""

from alertops.notify.channels import EmailChannel, NotificationChannel, SlackChannel
from alertops.notify.dispatcher import AlertDispatcher
from alertops.notify.factory import create_dispatcher
from alertops.notify.formatters import (
    build_notification,
    format_html,
    format_json,
    format_subject,
    format_text,
)
from alertops.notify.types import Notification

__all__ = [
    "AlertDispatcher",
    "EmailChannel",
    "Notification",
    "NotificationChannel",
    "SlackChannel",
    "build_notification",
    "create_dispatcher",
    "format_html",
    "format_json",
    "format_subject",
    "format_text",
]
