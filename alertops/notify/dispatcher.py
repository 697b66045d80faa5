"""Central alert dispatcher — fans notifications out to channels."""

from __future__ import annotations

import structlog

from alertops.notify.channels import NotificationChannel
from alertops.notify.types import Notification

# Dedicated structured logger for delivery decisions.
alert_logger = structlog.get_logger("alert_log")

logger = structlog.get_logger(__name__)


class AlertDispatcher:
    """Delivers notifications to every configured channel.

    - Every notification is logged via *alert_logger* first.
    - A channel that raises or reports failure never blocks the others.
    """

    def __init__(self, channels: list[NotificationChannel] | None = None) -> None:
        self._channels: list[NotificationChannel] = channels or []

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._channels)

    async def dispatch(self, notification: Notification) -> int:
        """Send to all channels; returns how many reported success."""
        self._log_decision(notification)
        delivered = 0
        for ch in self._channels:
            try:
                if await ch.send(notification):
                    delivered += 1
            except Exception:
                logger.exception(
                    "channel_dispatch_error",
                    channel=type(ch).__name__,
                    subject=notification.subject,
                )
        return delivered

    def _log_decision(self, notification: Notification) -> None:
        alert_logger.info(
            "notification",
            alert_id=notification.alert_id,
            severity=notification.severity.value,
            component=notification.component,
            alert_type=notification.alert_type,
            subject=notification.subject,
            recipients=notification.recipients,
            extra=notification.extra,
        )

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for ch in self._channels:
            try:
                await ch.close()
            except Exception:
                logger.exception("channel_close_error", channel=type(ch).__name__)
