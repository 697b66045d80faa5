"""Notification channels — Slack webhook and SMTP e-mail delivery."""

from __future__ import annotations

import abc
import asyncio
import smtplib
from email.message import EmailMessage

import aiohttp
import structlog

from alertops.core.config import EmailConfig, SlackConfig
from alertops.core.types import Severity
from alertops.notify.formatters import format_html
from alertops.notify.types import Notification

logger = structlog.get_logger(__name__)

# Slack attachment colours keyed by severity.
_SLACK_COLORS: dict[str, str] = {
    Severity.CRITICAL: "danger",
    Severity.WARNING: "warning",
    Severity.INFO: "good",
}


class NotificationChannel(abc.ABC):
    """Base class for alert delivery channels."""

    @abc.abstractmethod
    async def send(self, notification: Notification) -> bool:
        """Deliver a notification. Returns True on success."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class SlackChannel(NotificationChannel):
    """Delivers alerts via a Slack incoming webhook."""

    def __init__(self, config: SlackConfig) -> None:
        self._webhook_url = config.webhook_url.get_secret_value()
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=10),
            )
        return self._session

    async def send(self, notification: Notification) -> bool:
        attachment = {
            "color": _SLACK_COLORS.get(notification.severity, "#6c757d"),
            "title": notification.subject,
            "text": notification.message,
            "fields": [
                {"title": "Component", "value": notification.component, "short": True},
                {"title": "Type", "value": notification.alert_type, "short": True},
            ],
            "ts": int(notification.timestamp.timestamp()),
        }
        payload = {"attachments": [attachment]}

        try:
            session = self._get_session()
            async with session.post(self._webhook_url, json=payload) as resp:
                if resp.status == 200:
                    return True
                body = await resp.text()
                logger.warning(
                    "slack_send_failed",
                    status=resp.status,
                    body=body[:200],
                )
                return False
        except Exception:
            logger.exception("slack_send_error")
            return False

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class EmailChannel(NotificationChannel):
    """Delivers alerts by SMTP to the notification's recipients.

    smtplib is blocking, so each send runs in a worker thread.
    """

    def __init__(self, config: EmailConfig) -> None:
        self._config = config

    def _build_message(self, notification: Notification) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = notification.subject
        msg["From"] = self._config.sender
        msg["To"] = ", ".join(notification.recipients)
        msg.set_content(notification.body)
        msg.add_alternative(format_html(notification), subtype="html")
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        cfg = self._config
        with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.timeout_secs) as server:
            if cfg.use_tls:
                server.starttls()
            if cfg.username:
                server.login(cfg.username, cfg.password.get_secret_value())
            server.send_message(msg)

    async def send(self, notification: Notification) -> bool:
        if not notification.recipients:
            return False
        try:
            await asyncio.to_thread(self._send_sync, self._build_message(notification))
        except Exception:
            logger.exception(
                "email_send_error",
                recipients=notification.recipients,
                subject=notification.subject,
            )
            return False
        logger.info("email_sent", recipients=notification.recipients)
        return True

    async def close(self) -> None:
        return None
