"""Exception hierarchy for in-app notification delivery."""

from __future__ import annotations


class NotificationError(Exception):
    """Base exception for notification errors."""


class PusherAlreadyAttachedError(NotificationError):
    """A live-delivery pusher was attached twice."""


class TeamLookupError(NotificationError):
    """Team membership could not be resolved."""
