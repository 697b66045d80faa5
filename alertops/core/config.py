"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, SecretStr, model_validator

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class DatabaseConfig(BaseModel):
    """Relational alert store configuration."""

    url: str = "sqlite+aiosqlite:///alerts.db"
    echo: bool = False
    operation_timeout_secs: float = 10.0


class DeduplicationConfig(BaseModel):
    """Ingest-time duplicate suppression."""

    enabled: bool = True
    window_minutes: int = 60


class EscalationConfig(BaseModel):
    """Age-based escalation thresholds (critical severity) and recipients.

    Warning alerts use twice these thresholds; info alerts never escalate.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    level1_minutes: int = 15
    level2_minutes: int = 30
    level3_minutes: int = 60
    level1_recipients: list[str] = []
    level2_recipients: list[str] = []
    level3_recipients: list[str] = []
    check_interval_secs: float = 60.0

    @model_validator(mode="after")
    def _thresholds_increase(self) -> EscalationConfig:
        if not 0 < self.level1_minutes < self.level2_minutes < self.level3_minutes:
            raise ValueError(
                "escalation thresholds must satisfy 0 < level1 < level2 < level3"
            )
        return self

    def thresholds(self) -> tuple[int, int, int]:
        return (self.level1_minutes, self.level2_minutes, self.level3_minutes)

    def recipients_for(self, level: int) -> list[str]:
        """Configured recipients for an escalation level (may be empty)."""
        return {
            1: self.level1_recipients,
            2: self.level2_recipients,
            3: self.level3_recipients,
        }.get(level, [])


class RoutingConfig(BaseModel):
    """Default recipients by severity and rule/template locations."""

    model_config = ConfigDict(frozen=True)

    admin_email: str = "admin@example.com"
    critical_recipients: list[str] = []
    warning_recipients: list[str] = []
    info_recipients: list[str] = []
    rules_file: str = "config/alert_rules.conf"
    templates_dir: str = "config/alert_templates"


class AggregationConfig(BaseModel):
    """Reporting window for grouped active alerts."""

    window_minutes: int = 15


class RetentionConfig(BaseModel):
    """Resolved-alert retention."""

    days: int = 180
    cleanup_hour_utc: int = 3


class SlackConfig(BaseModel):
    """Slack incoming-webhook channel."""

    enabled: bool = False
    webhook_url: SecretStr = SecretStr("")


class EmailConfig(BaseModel):
    """SMTP e-mail channel."""

    enabled: bool = False
    smtp_host: str = ""
    smtp_port: int = 587
    sender: str = "alerts@example.com"
    username: str = ""
    password: SecretStr = SecretStr("")
    use_tls: bool = True
    timeout_secs: float = 10.0


class NotificationsConfig(BaseModel):
    """Container for notification channel configurations."""

    service_name: str = "Alert Monitoring"
    slack: SlackConfig = SlackConfig()
    email: EmailConfig = EmailConfig()


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class Settings(BaseModel):
    """Root settings container."""

    database: DatabaseConfig = DatabaseConfig()
    deduplication: DeduplicationConfig = DeduplicationConfig()
    escalation: EscalationConfig = EscalationConfig()
    routing: RoutingConfig = RoutingConfig()
    aggregation: AggregationConfig = AggregationConfig()
    retention: RetentionConfig = RetentionConfig()
    notifications: NotificationsConfig = NotificationsConfig()
    logging: LoggingConfig = LoggingConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None


def validate_settings(settings: Settings) -> list[str]:
    """Return startup warnings for latent misconfigurations.

    None of these are fatal: routing always falls back to the admin
    address, and a disabled channel is simply skipped.
    """
    warnings: list[str] = []
    if not settings.routing.admin_email.strip():
        warnings.append("routing.admin_email is empty; fallback routing has no target")
    slack = settings.notifications.slack
    if slack.enabled and not slack.webhook_url.get_secret_value():
        warnings.append("notifications.slack is enabled without a webhook_url")
    email = settings.notifications.email
    if email.enabled and not email.smtp_host:
        warnings.append("notifications.email is enabled without an smtp_host")
    return warnings
