"""Tests for EventNotifier — producer events routed through the service."""

from __future__ import annotations

from unittest.mock import AsyncMock

from opsnotify.core.types import (
    AuditEvent,
    DeploymentCompleted,
    Notification,
    ScalingEvent,
    SystemErrorEvent,
)
from opsnotify.notifications.events import EventNotifier
from opsnotify.notifications.registry import ConnectionRegistry
from opsnotify.notifications.service import NotificationService
from opsnotify.notifications.store import NotificationStore
from opsnotify.notifications.teams import StaticTeamDirectory


class FakePusher:
    def __init__(self) -> None:
        self.pushed: list[tuple[int, Notification]] = []

    async def push(self, user_id: int, notification: Notification) -> bool:
        self.pushed.append((user_id, notification))
        return True


def _notifier(online: tuple[int, ...] = ()) -> tuple[EventNotifier, NotificationService]:
    registry = ConnectionRegistry()
    for user_id in online:
        registry.register(user_id, f"conn-{user_id}")
    service = NotificationService(
        registry,
        NotificationStore(),
        teams=StaticTeamDirectory({9: [1, 2]}),
        pusher=FakePusher(),
    )
    return EventNotifier(service), service


class TestEventNotifier:
    async def test_skipped_audit_event_delivers_nothing(self) -> None:
        notifier, service = _notifier(online=(3,))
        count = await notifier.on_audit_event(AuditEvent(id=1, action="page.view", user_id=3))
        assert count == 0
        assert service.store.history_size(3) == 0

    async def test_high_risk_audit_goes_to_user(self) -> None:
        notifier, service = _notifier(online=(3,))
        count = await notifier.on_audit_event(
            AuditEvent(id=2, action="secret.read", risk_level="high", user_id=3)
        )
        assert count == 1
        assert service.unread_count(3) == 1

    async def test_team_deployment_reaches_members(self) -> None:
        notifier, service = _notifier(online=(1,))
        count = await notifier.on_deployment_completed(
            DeploymentCompleted(
                deployment_id="d-1",
                application_name="api",
                version="2.0",
                environment="prod",
                success=True,
                duration_ms=1000,
                user_id=1,
                team_id=9,
            )
        )
        assert count == 1
        assert service.store.history_size(1) == 1
        assert service.store.history_size(2) == 1

    async def test_unaddressed_event_broadcasts(self) -> None:
        notifier, service = _notifier(online=(1, 2))
        count = await notifier.on_scaling_event(
            ScalingEvent(
                resource_type="deployment",
                resource_name="api",
                previous_replicas=1,
                new_replicas=3,
                reason="load",
            )
        )
        assert count == 2

    async def test_service_error_swallowed(self) -> None:
        notifier, service = _notifier()
        service.deliver = AsyncMock(side_effect=RuntimeError("boom"))  # type: ignore[method-assign]
        count = await notifier.on_system_error(SystemErrorEvent(error_type="X", message="y"))
        assert count == 0
