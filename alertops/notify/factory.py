"""Convenience factory for wiring the notification stack."""

from __future__ import annotations

from alertops.core.config import NotificationsConfig
from alertops.notify.channels import EmailChannel, NotificationChannel, SlackChannel
from alertops.notify.dispatcher import AlertDispatcher


def create_dispatcher(config: NotificationsConfig) -> AlertDispatcher:
    """Build a dispatcher with every enabled channel."""
    channels: list[NotificationChannel] = []

    if config.email.enabled:
        channels.append(EmailChannel(config.email))

    if config.slack.enabled:
        channels.append(SlackChannel(config.slack))

    return AlertDispatcher(channels=channels)
