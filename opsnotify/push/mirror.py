"""Client-side mirror of notifications and alerts received over push."""

from __future__ import annotations

from collections import deque

import structlog
from pydantic import ValidationError

from opsnotify.core.types import ActiveAlert, Notification, PushMessage, PushMessageType
from opsnotify.push.client import PushClient

logger = structlog.get_logger(__name__)


class NotificationMirror:
    """Keeps the latest pushed notifications and alerts, newest first.

    Notifications are deduplicated by id, so a replayed unread backlog after
    a reconnect does not double up. Alerts are upserted by id so an
    acknowledgement replaces the open copy.
    """

    def __init__(self, max_notifications: int = 100, max_alerts: int = 50) -> None:
        self._notifications: deque[Notification] = deque(maxlen=max_notifications)
        self._alerts: deque[ActiveAlert] = deque(maxlen=max_alerts)

    def attach(self, client: PushClient) -> None:
        client.on(PushMessageType.NOTIFICATION, self.handle_notification)
        client.on(PushMessageType.ALERT, self.handle_alert)

    def handle_notification(self, message: PushMessage) -> None:
        # The server greeting carries only a message and no id.
        if not isinstance(message.payload, dict) or "id" not in message.payload:
            return
        try:
            notification = Notification.model_validate(message.payload)
        except ValidationError:
            logger.warning("mirror_notification_invalid")
            return
        if any(n.id == notification.id for n in self._notifications):
            return
        self._notifications.appendleft(notification)

    def handle_alert(self, message: PushMessage) -> None:
        try:
            alert = ActiveAlert.model_validate(message.payload)
        except ValidationError:
            logger.warning("mirror_alert_invalid")
            return
        for index, existing in enumerate(self._alerts):
            if existing.id == alert.id:
                self._alerts[index] = alert
                return
        self._alerts.appendleft(alert)

    def notifications(self, unread_only: bool = False) -> list[Notification]:
        if unread_only:
            return [n for n in self._notifications if not n.read]
        return list(self._notifications)

    def alerts(self, include_acknowledged: bool = False) -> list[ActiveAlert]:
        if include_acknowledged:
            return list(self._alerts)
        return [a for a in self._alerts if not a.acknowledged]

    def unread_count(self) -> int:
        return sum(1 for n in self._notifications if not n.read)

    def mark_read(self, notification_id: str) -> bool:
        """Local read flag only; the server side is updated via the HTTP API."""
        for notification in self._notifications:
            if notification.id == notification_id:
                notification.mark_read()
                return True
        return False

    def mark_all_read(self) -> int:
        return sum(1 for n in self._notifications if n.mark_read())

    def clear(self) -> None:
        self._notifications.clear()
