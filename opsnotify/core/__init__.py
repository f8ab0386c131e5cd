"""Core module — config, types, logging."""

from opsnotify.core.config import Settings, get_settings, load_settings, reset_settings
from opsnotify.core.locks import StripedLock
from opsnotify.core.logging import setup_logging
from opsnotify.core.types import (
    ActiveAlert,
    Alert,
    AlertLink,
    AlertSeverity,
    Channel,
    ChannelResult,
    ConnectionState,
    Notification,
    NotificationCategory,
    NotificationPriority,
    PushMessage,
    PushMessageType,
)

__all__ = [
    "ActiveAlert",
    "Alert",
    "AlertLink",
    "AlertSeverity",
    "Channel",
    "ChannelResult",
    "ConnectionState",
    "Notification",
    "NotificationCategory",
    "NotificationPriority",
    "PushMessage",
    "PushMessageType",
    "Settings",
    "StripedLock",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
