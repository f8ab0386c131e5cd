"""Pure functions that convert producer events into Notification objects."""

from __future__ import annotations

from opsnotify.core.types import (
    AuditEvent,
    DeploymentCompleted,
    DeploymentStarted,
    Notification,
    NotificationCategory,
    NotificationPriority,
    ScalingEvent,
    SecurityAlertEvent,
    SystemErrorEvent,
)
from opsnotify.notifications.service import create_notification

# ── Audit mappings ──────────────────────────────────────────────

_AUDIT_PRIORITY: dict[str, NotificationPriority] = {
    "critical": NotificationPriority.CRITICAL,
    "high": NotificationPriority.HIGH,
}

# First matching action keyword wins.
_AUDIT_CATEGORY_KEYWORDS: tuple[tuple[tuple[str, ...], NotificationCategory], ...] = (
    (("deploy",), NotificationCategory.DEPLOYMENT),
    (("scale",), NotificationCategory.SCALING),
    (("login", "secret"), NotificationCategory.SECURITY),
    (("team",), NotificationCategory.TEAM),
)


def _audit_category(event: AuditEvent) -> NotificationCategory:
    action = event.action.lower()
    for keywords, category in _AUDIT_CATEGORY_KEYWORDS:
        if any(k in action for k in keywords):
            return category
    if event.status == "failure":
        return NotificationCategory.ERROR
    return NotificationCategory.AUDIT


# ── Formatters ──────────────────────────────────────────────────


def format_audit_event(event: AuditEvent) -> Notification | None:
    """Notify only on high/critical risk or failed actions; None otherwise."""
    if event.risk_level not in _AUDIT_PRIORITY and event.status != "failure":
        return None

    return create_notification(
        category=_audit_category(event),
        priority=_AUDIT_PRIORITY.get(event.risk_level, NotificationPriority.MEDIUM),
        title=f"{event.action} - {event.status}",
        message=event.description or f"{event.action} on {event.resource_type or 'resource'}",
        data={
            "audit_log_id": event.id,
            "action": event.action,
            "resource_type": event.resource_type,
            "resource_name": event.resource_name,
        },
        action_url=f"/audit-log?id={event.id}",
        user_id=event.user_id,
        team_id=event.team_id,
    )


def format_deployment_started(event: DeploymentStarted) -> Notification:
    return create_notification(
        category=NotificationCategory.DEPLOYMENT,
        priority=NotificationPriority.MEDIUM,
        title="Deployment Started",
        message=(
            f"Deploying {event.application_name} v{event.version} "
            f"to {event.environment}"
        ),
        data=event.model_dump(mode="json"),
        action_url=f"/deployments/{event.deployment_id}",
        user_id=event.user_id,
        team_id=event.team_id,
    )


def format_deployment_completed(event: DeploymentCompleted) -> Notification:
    outcome = "deployed" if event.success else "failed"
    return create_notification(
        category=NotificationCategory.DEPLOYMENT,
        priority=NotificationPriority.INFO if event.success else NotificationPriority.CRITICAL,
        title="Deployment Successful" if event.success else "Deployment Failed",
        message=(
            f"{event.application_name} v{event.version} {outcome} to "
            f"{event.environment} ({round(event.duration_ms / 1000)}s)"
        ),
        data=event.model_dump(mode="json"),
        action_url=f"/deployments/{event.deployment_id}",
        user_id=event.user_id,
        team_id=event.team_id,
    )


def format_security_alert(event: SecurityAlertEvent) -> Notification:
    return create_notification(
        category=NotificationCategory.SECURITY,
        priority=NotificationPriority.CRITICAL,
        title="Security Alert",
        message=event.description,
        data=event.model_dump(mode="json"),
        action_url="/audit-log?risk=critical",
        user_id=event.user_id,
        team_id=event.team_id,
    )


def format_scaling_event(event: ScalingEvent) -> Notification:
    direction = "up" if event.new_replicas > event.previous_replicas else "down"
    return create_notification(
        category=NotificationCategory.SCALING,
        priority=NotificationPriority.MEDIUM,
        title=f"Scaled {direction}",
        message=(
            f"{event.resource_name}: {event.previous_replicas} → "
            f"{event.new_replicas} replicas ({event.reason})"
        ),
        data=event.model_dump(mode="json"),
        action_url="/autoscaling",
        user_id=event.user_id,
        team_id=event.team_id,
    )


def format_system_error(event: SystemErrorEvent) -> Notification:
    return create_notification(
        category=NotificationCategory.ERROR,
        priority=NotificationPriority.HIGH,
        title=f"System Error: {event.error_type}",
        message=event.message,
        data=event.model_dump(mode="json"),
        action_url="/logs",
        user_id=event.user_id,
        team_id=event.team_id,
    )
