"""In-process active alert board with acknowledgement."""

from __future__ import annotations

import asyncio
import itertools
from collections import deque
from collections.abc import Awaitable, Callable

import structlog

from opsnotify.core.types import (
    ActiveAlert,
    ActiveAlertCategory,
    AlertSeverity,
    MetricThreshold,
    PushMessage,
    PushMessageType,
)

logger = structlog.get_logger(__name__)

# Receives every new or changed alert as a ready-to-send push frame.
AlertPublisher = Callable[[PushMessage], Awaitable[None] | None]

_METRIC_CATEGORIES: dict[str, ActiveAlertCategory] = {
    "cpu": ActiveAlertCategory.HIGH_CPU,
    "memory": ActiveAlertCategory.HIGH_MEMORY,
}


def evaluate_threshold(threshold: MetricThreshold, value: float) -> AlertSeverity | None:
    """Return CRITICAL/WARNING when *value* crosses a threshold, else None."""
    if not threshold.enabled:
        return None
    if value >= threshold.critical_threshold:
        return AlertSeverity.CRITICAL
    if value >= threshold.warning_threshold:
        return AlertSeverity.WARNING
    return None


class ActiveAlertBoard:
    """Bounded, newest-first list of dashboard alerts.

    Alerts stay until acknowledged; a repeat of an open alert for the same
    category and resource is folded into the existing one.
    """

    def __init__(
        self,
        publisher: AlertPublisher | None = None,
        max_alerts: int = 100,
    ) -> None:
        self._alerts: deque[ActiveAlert] = deque(maxlen=max_alerts)
        self._ids = itertools.count(1)
        self._publishers: list[AlertPublisher] = [publisher] if publisher else []

    def on_change(self, publisher: AlertPublisher) -> None:
        """Register a callback for new and acknowledged alerts."""
        self._publishers.append(publisher)

    def alerts(self, include_acknowledged: bool = False) -> list[ActiveAlert]:
        if include_acknowledged:
            return list(self._alerts)
        return [a for a in self._alerts if not a.acknowledged]

    def get(self, alert_id: str) -> ActiveAlert | None:
        return next((a for a in self._alerts if a.id == alert_id), None)

    def find_open(
        self,
        category: ActiveAlertCategory,
        resource: str | None = None,
    ) -> ActiveAlert | None:
        return next(
            (
                a for a in self._alerts
                if not a.acknowledged and a.category == category and a.resource == resource
            ),
            None,
        )

    def counts(self) -> dict[str, int]:
        open_alerts = self.alerts()
        counts = {"total": len(open_alerts)}
        for severity in AlertSeverity:
            counts[severity.value] = sum(1 for a in open_alerts if a.severity == severity)
        return counts

    async def raise_alert(
        self,
        severity: AlertSeverity,
        category: ActiveAlertCategory,
        title: str,
        message: str,
        resource: str | None = None,
        namespace: str | None = None,
    ) -> ActiveAlert:
        existing = self.find_open(category, resource)
        if existing is not None:
            return existing

        alert = ActiveAlert(
            id=f"alert-{next(self._ids)}",
            severity=severity,
            category=category,
            title=title,
            message=message,
            resource=resource,
            namespace=namespace,
        )
        self._alerts.appendleft(alert)
        logger.info(
            "active_alert_raised",
            alert_id=alert.id,
            severity=severity.value,
            category=category.value,
            title=title,
        )
        await self._publish(alert)
        return alert

    async def check_threshold(self, threshold: MetricThreshold, value: float) -> ActiveAlert | None:
        """Raise a HIGH_CPU / HIGH_MEMORY alert if *value* crosses *threshold*."""
        category = _METRIC_CATEGORIES.get(threshold.metric_type)
        if category is None:
            return None
        severity = evaluate_threshold(threshold, value)
        if severity is None:
            return None
        metric = threshold.metric_type.upper()
        title = (
            f"Critical {metric} Usage"
            if severity == AlertSeverity.CRITICAL
            else f"High {metric} Usage"
        )
        return await self.raise_alert(
            severity=severity,
            category=category,
            title=title,
            message=f"{threshold.name}: {value:.1f}%",
        )

    async def acknowledge(self, alert_id: str) -> bool:
        alert = self.get(alert_id)
        if alert is None:
            return False
        if not alert.acknowledged:
            alert.acknowledged = True
            await self._publish(alert)
        return True

    async def acknowledge_all(self) -> int:
        count = 0
        for alert in self.alerts():
            alert.acknowledged = True
            count += 1
            await self._publish(alert)
        return count

    async def _publish(self, alert: ActiveAlert) -> None:
        message = PushMessage(
            type=PushMessageType.ALERT,
            payload=alert.model_dump(mode="json"),
        )
        for publisher in self._publishers:
            try:
                result = publisher(message)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("active_alert_publish_error", alert_id=alert.id)
