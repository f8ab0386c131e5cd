"""Domain types shared by the alerting, notification and push packages."""

from __future__ import annotations

import random
import string
import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

_ID_ALPHABET = string.ascii_lowercase + string.digits


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# ── Alert Types ────────────────────────────────────────────────


class AlertSeverity(StrEnum):
    """Paging severity — ordered critical > error > warning > info."""

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: dict[AlertSeverity, int] = {
    AlertSeverity.INFO: 0,
    AlertSeverity.WARNING: 1,
    AlertSeverity.ERROR: 2,
    AlertSeverity.CRITICAL: 3,
}


class Channel(StrEnum):
    """External delivery target."""

    PAGERDUTY = "pagerduty"  # pager
    OPSGENIE = "opsgenie"  # incident
    SLACK = "slack"  # chat primary
    DISCORD = "discord"  # chat secondary


class AlertLink(BaseModel):
    """Action link attached to an alert."""

    model_config = ConfigDict(frozen=True)

    href: str
    text: str


class Alert(BaseModel):
    """Immutable alert handed to the external dispatcher."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str = ""
    severity: AlertSeverity
    source: str
    dedup_key: str = ""
    details: dict[str, str] = Field(default_factory=dict)
    links: list[AlertLink] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _default_dedup_key(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("dedup_key"):
            data = dict(data)
            data["dedup_key"] = f"{data.get('source', '')}-{data.get('title', '')}"
        return data


class ChannelResult(BaseModel):
    """Outcome of one channel send/resolve attempt."""

    model_config = ConfigDict(frozen=True)

    channel: Channel
    success: bool
    dedup_key: str = ""
    message_id: str | None = None
    error: str | None = None


class ActiveAlertCategory(StrEnum):
    """Category of a dashboard-raised (in-process) alert."""

    POD_CRASH = "pod_crash"
    HIGH_CPU = "high_cpu"
    HIGH_MEMORY = "high_memory"
    CONTAINER_STOPPED = "container_stopped"
    DEPLOYMENT_FAILED = "deployment_failed"


class ActiveAlert(BaseModel):
    """Alert raised by the dashboard itself and shown until acknowledged."""

    id: str
    severity: AlertSeverity
    category: ActiveAlertCategory
    title: str
    message: str
    resource: str | None = None
    namespace: str | None = None
    timestamp: int = Field(default_factory=now_ms)
    acknowledged: bool = False


class MetricThreshold(BaseModel):
    """Warning/critical percentage thresholds for a resource metric."""

    name: str
    metric_type: str
    resource_type: str = "cluster"
    warning_threshold: float
    critical_threshold: float
    enabled: bool = True


# ── Notification Types ─────────────────────────────────────────


class NotificationCategory(StrEnum):
    """In-app notification category."""

    SECURITY = "security"
    DEPLOYMENT = "deployment"
    SCALING = "scaling"
    ERROR = "error"
    TEAM = "team"
    SYSTEM = "system"
    AUDIT = "audit"


class NotificationPriority(StrEnum):
    """In-app display urgency (separate scale from AlertSeverity)."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


def new_notification_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"notif_{now_ms()}_{suffix}"


class Notification(BaseModel):
    """In-app notification. Only ``read`` changes after creation."""

    id: str = Field(default_factory=new_notification_id)
    category: NotificationCategory
    priority: NotificationPriority
    title: str
    message: str
    timestamp: int = Field(default_factory=now_ms)
    data: dict[str, Any] | None = None
    action_url: str | None = None
    read: bool = False
    user_id: int | None = None
    team_id: int | None = None

    def mark_read(self) -> bool:
        """Flip to read. Returns True only on the false→true transition."""
        if self.read:
            return False
        self.read = True
        return True


# ── Producer Events ────────────────────────────────────────────


class AuditEvent(BaseModel):
    """An audit-log entry handed over by the audit subsystem."""

    id: int
    action: str
    resource_type: str | None = None
    resource_name: str | None = None
    risk_level: str = "low"
    status: str = "success"
    user_id: int | None = None
    team_id: int | None = None
    description: str | None = None


class DeploymentStarted(BaseModel):
    deployment_id: str
    application_name: str
    version: str
    environment: str
    user_id: int
    team_id: int | None = None


class DeploymentCompleted(BaseModel):
    deployment_id: str
    application_name: str
    version: str
    environment: str
    success: bool
    duration_ms: int
    user_id: int
    team_id: int | None = None


class SecurityAlertType(StrEnum):
    FAILED_LOGIN = "failed_login"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    UNAUTHORIZED_ACCESS = "unauthorized_access"
    SECRET_ACCESSED = "secret_accessed"


class SecurityAlertEvent(BaseModel):
    alert_type: SecurityAlertType
    description: str
    ip_address: str | None = None
    user_id: int | None = None
    team_id: int | None = None


class ScalingEvent(BaseModel):
    resource_type: str
    resource_name: str
    previous_replicas: int
    new_replicas: int
    reason: str
    user_id: int | None = None
    team_id: int | None = None


class SystemErrorEvent(BaseModel):
    error_type: str
    message: str
    stack: str | None = None
    component: str | None = None
    user_id: int | None = None
    team_id: int | None = None


# ── Push Transport Types ───────────────────────────────────────


class PushMessageType(StrEnum):
    """Category of a server→client push frame."""

    CONTAINER_STATUS = "container_status"
    POD_STATUS = "pod_status"
    LOGS = "logs"
    METRICS = "metrics"
    NOTIFICATION = "notification"
    ALERT = "alert"


class PushMessage(BaseModel):
    """Wire frame: ``{type, payload, timestamp}`` (timestamp in epoch ms)."""

    type: PushMessageType
    payload: Any = None
    timestamp: int = Field(default_factory=now_ms)


class ControlAction(StrEnum):
    """Client→server control verbs."""

    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    PING = "ping"
    ACKNOWLEDGE_ALERT = "acknowledge_alert"


class ControlMessage(BaseModel):
    action: ControlAction
    channel: str | None = None
    alert_id: str | None = None


class ConnectionState(StrEnum):
    """Client push-connection lifecycle."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECT_PENDING = "reconnect_pending"
    GAVE_UP = "gave_up"
