"""In-app notifications: connection registry, bounded history, delivery."""

from opsnotify.notifications.events import EventNotifier
from opsnotify.notifications.exceptions import (
    NotificationError,
    PusherAlreadyAttachedError,
    TeamLookupError,
)
from opsnotify.notifications.registry import ConnectionRegistry
from opsnotify.notifications.service import (
    NotificationService,
    Pusher,
    create_notification,
)
from opsnotify.notifications.store import MAX_HISTORY_SIZE, NotificationStore
from opsnotify.notifications.teams import (
    HttpTeamDirectory,
    StaticTeamDirectory,
    TeamDirectory,
)

__all__ = [
    "MAX_HISTORY_SIZE",
    "ConnectionRegistry",
    "EventNotifier",
    "HttpTeamDirectory",
    "NotificationError",
    "NotificationService",
    "NotificationStore",
    "Pusher",
    "PusherAlreadyAttachedError",
    "StaticTeamDirectory",
    "TeamDirectory",
    "TeamLookupError",
    "create_notification",
]
