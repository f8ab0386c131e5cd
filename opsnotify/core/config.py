"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, SecretStr

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")

# (section, provider, field) → environment variable consulted when YAML leaves it empty.
_ENV_FALLBACKS: dict[tuple[str, str, str], str] = {
    ("alerts", "pagerduty", "routing_key"): "PAGERDUTY_ROUTING_KEY",
    ("alerts", "opsgenie", "api_key"): "OPSGENIE_API_KEY",
    ("alerts", "slack", "webhook_url"): "SLACK_WEBHOOK_URL",
    ("alerts", "discord", "webhook_url"): "DISCORD_WEBHOOK_URL",
}


class PagerDutyConfig(BaseModel):
    """PagerDuty Events API v2 configuration."""

    routing_key: SecretStr = SecretStr("")
    events_url: str = "https://events.pagerduty.com/v2/enqueue"

    @property
    def configured(self) -> bool:
        return bool(self.routing_key.get_secret_value())


class OpsgenieConfig(BaseModel):
    """Opsgenie Alert API configuration."""

    api_key: SecretStr = SecretStr("")
    alerts_url: str = "https://api.opsgenie.com/v2/alerts"
    default_tags: list[str] = ["devops-dashboard"]

    @property
    def configured(self) -> bool:
        return bool(self.api_key.get_secret_value())


class SlackConfig(BaseModel):
    """Slack incoming-webhook configuration."""

    webhook_url: SecretStr = SecretStr("")

    @property
    def configured(self) -> bool:
        return bool(self.webhook_url.get_secret_value())


class DiscordConfig(BaseModel):
    """Discord webhook configuration."""

    webhook_url: SecretStr = SecretStr("")
    footer_text: str = "DevOps AI Dashboard"

    @property
    def configured(self) -> bool:
        return bool(self.webhook_url.get_secret_value())


class AlertsConfig(BaseModel):
    """External alert fan-out configuration."""

    pagerduty: PagerDutyConfig = PagerDutyConfig()
    opsgenie: OpsgenieConfig = OpsgenieConfig()
    slack: SlackConfig = SlackConfig()
    discord: DiscordConfig = DiscordConfig()
    source_name: str = "DevOps AI Dashboard"
    request_timeout_secs: float = 10.0


class NotificationsConfig(BaseModel):
    """In-app notification history configuration."""

    max_history: int = 100
    default_list_limit: int = 50
    max_list_limit: int = 100
    max_active_alerts: int = 100


class PushServerConfig(BaseModel):
    """WebSocket push server + HTTP query API configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    ws_path: str = "/ws"
    enable_http_api: bool = True
    heartbeat_secs: float = 30.0
    # Users allowed to broadcast and to dispatch or resolve provider alerts.
    admin_user_ids: list[int] = []


class PushClientConfig(BaseModel):
    """WebSocket push client reconnect behaviour."""

    url: str = "ws://localhost:8080/ws"
    auto_reconnect: bool = True
    reconnect_interval_secs: float = 5.0
    max_reconnect_attempts: int = 5
    connect_timeout_secs: float = 10.0


class TeamsConfig(BaseModel):
    """Team membership lookup (host-provided HTTP endpoint)."""

    membership_url: str = ""
    request_timeout_secs: float = 5.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class Settings(BaseModel):
    """Root settings container."""

    alerts: AlertsConfig = AlertsConfig()
    notifications: NotificationsConfig = NotificationsConfig()
    push_server: PushServerConfig = PushServerConfig()
    push_client: PushClientConfig = PushClientConfig()
    teams: TeamsConfig = TeamsConfig()
    logging: LoggingConfig = LoggingConfig()


def _apply_env_fallbacks(data: dict[str, Any]) -> dict[str, Any]:
    """Fill empty provider credentials from the environment."""
    for (section, provider, field), env_var in _ENV_FALLBACKS.items():
        value = os.environ.get(env_var, "")
        if not value:
            continue
        section_data = data.setdefault(section, {})
        provider_data = section_data.setdefault(provider, {})
        if not provider_data.get(field):
            provider_data[field] = value
    return data


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

    _settings = Settings(**_apply_env_fallbacks(data))
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
