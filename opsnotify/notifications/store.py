"""Bounded per-user notification history with read state."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

from opsnotify.core.locks import StripedLock
from opsnotify.core.types import Notification, NotificationCategory, NotificationPriority

MAX_HISTORY_SIZE = 100
DEFAULT_LIST_LIMIT = 50


class NotificationStore:
    """Newest-first history per user, capped at *max_history* entries.

    Appending past the cap evicts the oldest entry. Read flags only move
    from unread to read.
    """

    def __init__(self, max_history: int = MAX_HISTORY_SIZE, stripes: int = 64) -> None:
        self._max_history = max_history
        self._history: dict[int, deque[Notification]] = {}
        self._locks = StripedLock(stripes)

    @property
    def max_history(self) -> int:
        return self._max_history

    def append(self, user_id: int, notification: Notification) -> None:
        with self._locks.for_key(user_id):
            history = self._history.get(user_id)
            if history is None:
                history = deque(maxlen=self._max_history)
                self._history[user_id] = history
            history.appendleft(notification)

    def query(
        self,
        user_id: int,
        limit: int | None = None,
        unread_only: bool = False,
        categories: Iterable[NotificationCategory] | None = None,
        priorities: Iterable[NotificationPriority] | None = None,
    ) -> list[Notification]:
        """Filtered view of a user's history, newest first."""
        category_set = set(categories or ())
        priority_set = set(priorities or ())
        with self._locks.for_key(user_id):
            items = list(self._history.get(user_id, ()))

        if unread_only:
            items = [n for n in items if not n.read]
        if category_set:
            items = [n for n in items if n.category in category_set]
        if priority_set:
            items = [n for n in items if n.priority in priority_set]
        if limit is None:
            limit = DEFAULT_LIST_LIMIT
        return items[: max(limit, 0)]

    def get(self, user_id: int, notification_id: str) -> Notification | None:
        with self._locks.for_key(user_id):
            return next(
                (n for n in self._history.get(user_id, ()) if n.id == notification_id),
                None,
            )

    def mark_read(self, user_id: int, notification_id: str) -> bool:
        """Mark one notification read. Returns False if it is not in history."""
        with self._locks.for_key(user_id):
            for notification in self._history.get(user_id, ()):
                if notification.id == notification_id:
                    notification.mark_read()
                    return True
        return False

    def mark_all_read(self, user_id: int) -> int:
        """Mark every entry read. Returns how many were previously unread."""
        with self._locks.for_key(user_id):
            return sum(1 for n in self._history.get(user_id, ()) if n.mark_read())

    def unread_count(self, user_id: int) -> int:
        with self._locks.for_key(user_id):
            return sum(1 for n in self._history.get(user_id, ()) if not n.read)

    def history_size(self, user_id: int) -> int:
        with self._locks.for_key(user_id):
            return len(self._history.get(user_id, ()))

    def clear(self, user_id: int) -> None:
        with self._locks.for_key(user_id):
            self._history.pop(user_id, None)

    def users(self) -> set[int]:
        return set(self._history)
