"""Tests for notification channels — Slack HTTP mocking, SMTP mocking, error handling."""

from __future__ import annotations

import datetime
from unittest.mock import AsyncMock, MagicMock, patch

from pydantic import SecretStr

from alertops.core.config import EmailConfig, SlackConfig
from alertops.core.types import Severity
from alertops.notify.channels import EmailChannel, SlackChannel
from alertops.notify.types import Notification


# ── Helpers ─────────────────────────────────────────────────────


def _note(**kw: object) -> Notification:
    defaults: dict[str, object] = {
        "alert_id": "a1",
        "component": "INGESTION",
        "severity": Severity.CRITICAL,
        "alert_type": "system_down",
        "message": "db down",
        "recipients": ["oncall@example.com"],
        "subject": "[CRITICAL] svc: INGESTION - system_down",
        "body": "Component: INGESTION",
        "timestamp": datetime.datetime(2026, 3, 1, 9, 0, tzinfo=datetime.UTC),
    }
    defaults.update(kw)
    return Notification(**defaults)  # type: ignore[arg-type]


def _slack_config(**kw: object) -> SlackConfig:
    defaults: dict[str, object] = {
        "enabled": True,
        "webhook_url": SecretStr("https://hooks.slack.com/services/fake"),
    }
    defaults.update(kw)
    return SlackConfig(**defaults)  # type: ignore[arg-type]


def _email_config(**kw: object) -> EmailConfig:
    defaults: dict[str, object] = {
        "enabled": True,
        "smtp_host": "smtp.example.com",
        "smtp_port": 2525,
        "sender": "alerts@example.com",
        "username": "bot",
        "password": SecretStr("pw"),
    }
    defaults.update(kw)
    return EmailConfig(**defaults)  # type: ignore[arg-type]


def _mock_response(status: int = 200, text: str = "ok") -> AsyncMock:
    resp = AsyncMock()
    resp.status = status
    resp.text = AsyncMock(return_value=text)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp


def _mock_session(resp: AsyncMock) -> MagicMock:
    session = MagicMock()
    session.post = MagicMock(return_value=resp)
    session.closed = False
    return session


# ── SlackChannel ────────────────────────────────────────────────


class TestSlackChannel:
    async def test_send_success(self) -> None:
        ch = SlackChannel(_slack_config())
        session = _mock_session(_mock_response(200))
        ch._session = session

        assert await ch.send(_note()) is True
        session.post.assert_called_once()
        call_args = session.post.call_args
        assert call_args[0][0] == "https://hooks.slack.com/services/fake"
        attachment = call_args[1]["json"]["attachments"][0]
        assert attachment["color"] == "danger"
        assert attachment["title"].startswith("[CRITICAL]")
        assert attachment["text"] == "db down"

    async def test_send_failure_status(self) -> None:
        ch = SlackChannel(_slack_config())
        ch._session = _mock_session(_mock_response(500, "error"))
        assert await ch.send(_note()) is False

    async def test_send_exception(self) -> None:
        ch = SlackChannel(_slack_config())
        session = MagicMock()
        session.post = MagicMock(side_effect=ConnectionError("network down"))
        session.closed = False
        ch._session = session
        assert await ch.send(_note()) is False

    async def test_warning_colour(self) -> None:
        ch = SlackChannel(_slack_config())
        session = _mock_session(_mock_response(200))
        ch._session = session
        await ch.send(_note(severity=Severity.WARNING))
        attachment = session.post.call_args[1]["json"]["attachments"][0]
        assert attachment["color"] == "warning"

    async def test_close(self) -> None:
        ch = SlackChannel(_slack_config())
        session = MagicMock()
        session.closed = False
        session.close = AsyncMock()
        ch._session = session
        await ch.close()
        session.close.assert_awaited_once()
        assert ch._session is None


# ── EmailChannel ───────────────────────────────────────────────


class TestEmailChannel:
    async def test_send_success(self) -> None:
        ch = EmailChannel(_email_config())
        with patch("alertops.notify.channels.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            assert await ch.send(_note()) is True

        smtp_cls.assert_called_once_with("smtp.example.com", 2525, timeout=10.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot", "pw")
        msg = server.send_message.call_args[0][0]
        assert msg["To"] == "oncall@example.com"
        assert msg["From"] == "alerts@example.com"
        assert msg["Subject"].startswith("[CRITICAL]")

    async def test_no_tls_no_login(self) -> None:
        ch = EmailChannel(_email_config(use_tls=False, username=""))
        with patch("alertops.notify.channels.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            assert await ch.send(_note()) is True
        server.starttls.assert_not_called()
        server.login.assert_not_called()

    async def test_no_recipients(self) -> None:
        ch = EmailChannel(_email_config())
        with patch("alertops.notify.channels.smtplib.SMTP") as smtp_cls:
            assert await ch.send(_note(recipients=[])) is False
        smtp_cls.assert_not_called()

    async def test_smtp_error(self) -> None:
        ch = EmailChannel(_email_config())
        with patch(
            "alertops.notify.channels.smtplib.SMTP",
            side_effect=OSError("connection refused"),
        ):
            assert await ch.send(_note()) is False

    def test_message_has_html_alternative(self) -> None:
        msg = EmailChannel(_email_config())._build_message(_note())
        assert msg.is_multipart()
        types = [part.get_content_type() for part in msg.iter_parts()]
        assert types == ["text/plain", "text/html"]
