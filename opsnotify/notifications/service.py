"""Notification delivery — history first, then live push if the user is online."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol

import structlog

from opsnotify.core.types import (
    Notification,
    NotificationCategory,
    NotificationPriority,
)
from opsnotify.notifications.exceptions import PusherAlreadyAttachedError
from opsnotify.notifications.registry import ConnectionRegistry
from opsnotify.notifications.store import NotificationStore
from opsnotify.notifications.teams import TeamDirectory

logger = structlog.get_logger(__name__)


class Pusher(Protocol):
    """Live-delivery capability supplied by the push transport."""

    async def push(self, user_id: int, notification: Notification) -> bool:
        """Send live; True when at least one socket took the frame."""
        ...


def create_notification(
    category: NotificationCategory,
    priority: NotificationPriority,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
    action_url: str | None = None,
    user_id: int | None = None,
    team_id: int | None = None,
) -> Notification:
    """Build an unread notification with a fresh id and timestamp."""
    return Notification(
        category=category,
        priority=priority,
        title=title,
        message=message,
        data=data,
        action_url=action_url,
        user_id=user_id,
        team_id=team_id,
    )


def _addressed_to(notification: Notification, user_id: int) -> Notification:
    """Per-recipient copy so read state is tracked per user."""
    return notification.model_copy(update={"user_id": user_id}, deep=True)


class NotificationService:
    """Stores notifications per user and pushes them to live connections.

    ``send_to_user`` / ``send_to_team`` always write history; ``broadcast``
    only reaches users that are online right now and leaves no history for
    anyone else.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        store: NotificationStore,
        teams: TeamDirectory | None = None,
        pusher: Pusher | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._teams = teams
        self._pusher = pusher

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def store(self) -> NotificationStore:
        return self._store

    def attach_pusher(self, pusher: Pusher) -> None:
        """Set the live-delivery pusher. Allowed once per service."""
        if self._pusher is not None:
            raise PusherAlreadyAttachedError("A pusher is already attached")
        self._pusher = pusher

    # ── Delivery ────────────────────────────────────────────────

    async def send_to_user(self, user_id: int, notification: Notification) -> bool:
        """Record in *user_id*'s history and push if online.

        Returns True only when a live push reached at least one socket.
        """
        if notification.user_id != user_id:
            notification = _addressed_to(notification, user_id)
        self._store.append(user_id, notification)

        if self._pusher is None or not self._registry.is_online(user_id):
            return False
        try:
            pushed = await self._pusher.push(user_id, notification)
        except Exception:
            logger.exception(
                "notification_push_error",
                user_id=user_id,
                notification_id=notification.id,
            )
            return False
        return bool(pushed)

    async def send_to_team(self, team_id: int, notification: Notification) -> int:
        """Send to every team member. Returns how many were pushed live."""
        if self._teams is None:
            logger.warning("team_directory_missing", team_id=team_id)
            return 0
        try:
            members = await self._teams.members(team_id)
        except Exception:
            logger.exception("team_lookup_error", team_id=team_id)
            return 0

        delivered = 0
        for member_id in members:
            if await self.send_to_user(member_id, _addressed_to(notification, member_id)):
                delivered += 1
        return delivered

    async def broadcast(self, notification: Notification) -> int:
        """Push to every online user. Offline users get no history entry."""
        delivered = 0
        for user_id in sorted(self._registry.online_users()):
            if await self.send_to_user(user_id, _addressed_to(notification, user_id)):
                delivered += 1
        return delivered

    async def deliver(self, notification: Notification) -> int:
        """Route by address: team, else user, else broadcast."""
        if notification.team_id is not None:
            delivered = await self.send_to_team(notification.team_id, notification)
        elif notification.user_id is not None:
            delivered = int(await self.send_to_user(notification.user_id, notification))
        else:
            delivered = await self.broadcast(notification)

        logger.info(
            "notification_delivered",
            notification_id=notification.id,
            category=notification.category.value,
            priority=notification.priority.value,
            user_id=notification.user_id,
            team_id=notification.team_id,
            delivered=delivered,
        )
        return delivered

    # ── History / read state ────────────────────────────────────

    def list_notifications(
        self,
        user_id: int,
        limit: int | None = None,
        unread_only: bool = False,
        categories: Iterable[NotificationCategory] | None = None,
        priorities: Iterable[NotificationPriority] | None = None,
    ) -> list[Notification]:
        return self._store.query(
            user_id,
            limit=limit,
            unread_only=unread_only,
            categories=categories,
            priorities=priorities,
        )

    def unread_count(self, user_id: int) -> int:
        return self._store.unread_count(user_id)

    def mark_read(self, user_id: int, notification_id: str) -> bool:
        return self._store.mark_read(user_id, notification_id)

    def mark_all_read(self, user_id: int) -> int:
        return self._store.mark_all_read(user_id)

    def clear(self, user_id: int) -> None:
        self._store.clear(user_id)
