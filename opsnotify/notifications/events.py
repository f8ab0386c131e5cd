"""Producer-facing entry points: domain events in, routed notifications out."""

from __future__ import annotations

import structlog

from opsnotify.core.types import (
    AuditEvent,
    DeploymentCompleted,
    DeploymentStarted,
    Notification,
    ScalingEvent,
    SecurityAlertEvent,
    SystemErrorEvent,
)
from opsnotify.notifications.formatters import (
    format_audit_event,
    format_deployment_completed,
    format_deployment_started,
    format_scaling_event,
    format_security_alert,
    format_system_error,
)
from opsnotify.notifications.service import NotificationService

logger = structlog.get_logger(__name__)


class EventNotifier:
    """Formats producer events and hands them to the notification service.

    Each entry point returns the number of live pushes made.
    """

    def __init__(self, service: NotificationService) -> None:
        self._service = service

    # ── Callback entry points ───────────────────────────────────

    async def on_audit_event(self, event: AuditEvent) -> int:
        notification = format_audit_event(event)
        if notification is None:
            logger.debug("audit_event_skipped", audit_log_id=event.id, risk=event.risk_level)
            return 0
        return await self._deliver(notification)

    async def on_deployment_started(self, event: DeploymentStarted) -> int:
        return await self._deliver(format_deployment_started(event))

    async def on_deployment_completed(self, event: DeploymentCompleted) -> int:
        return await self._deliver(format_deployment_completed(event))

    async def on_security_alert(self, event: SecurityAlertEvent) -> int:
        return await self._deliver(format_security_alert(event))

    async def on_scaling_event(self, event: ScalingEvent) -> int:
        return await self._deliver(format_scaling_event(event))

    async def on_system_error(self, event: SystemErrorEvent) -> int:
        return await self._deliver(format_system_error(event))

    async def _deliver(self, notification: Notification) -> int:
        try:
            return await self._service.deliver(notification)
        except Exception:
            logger.exception("event_notification_error", notification_id=notification.id)
            return 0
