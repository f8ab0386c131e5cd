"""Central alert dispatcher — fans alerts out to channels by severity."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Protocol

import structlog

from opsnotify.alerting.channels import AlertChannel
from opsnotify.alerting.policy import RESOLVE_CHANNELS, channels_for
from opsnotify.core.types import (
    Alert,
    AlertSeverity,
    Channel,
    ChannelResult,
    Notification,
    NotificationCategory,
    NotificationPriority,
)
from opsnotify.notifications.service import create_notification

# Dedicated structured logger for decision records.
decision_logger = structlog.get_logger("decision_log")

logger = structlog.get_logger(__name__)


class InAppNotifier(Protocol):
    async def broadcast(self, notification: Notification) -> int: ...


class AlertDispatcher:
    """Routes alerts to external channels according to the severity policy.

    - Every dispatch/resolve is logged via *decision_logger*.
    - All channels for one alert are called concurrently; results come back
      in policy order whatever the completion order.
    - A failing or missing channel never stops the others.
    """

    def __init__(
        self,
        channels: Iterable[AlertChannel] | None = None,
        notifier: InAppNotifier | None = None,
        source_name: str = "DevOps AI Dashboard",
    ) -> None:
        self._channels: dict[Channel, AlertChannel] = {
            ch.channel: ch for ch in (channels or [])
        }
        self._notifier = notifier
        self._source_name = source_name

    @property
    def channels(self) -> dict[Channel, AlertChannel]:
        return dict(self._channels)

    # ── Public operations ───────────────────────────────────────

    async def dispatch(self, alert: Alert) -> list[ChannelResult]:
        """Send *alert* to every channel its severity maps to."""
        targets = channels_for(alert.severity)
        self._log_decision("dispatch", alert.dedup_key, targets, alert=alert)
        results = await asyncio.gather(
            *(self._send_one(channel, alert) for channel in targets)
        )
        self._log_outcome("dispatch", alert.dedup_key, results)
        return list(results)

    async def resolve(self, dedup_key: str) -> list[ChannelResult]:
        """Resolve *dedup_key* on every resolve-capable provider.

        A resolution confirmation is always posted to the info channels and,
        when an in-app notifier is wired, broadcast to online users.
        """
        self._log_decision("resolve", dedup_key, RESOLVE_CHANNELS)
        results = list(
            await asyncio.gather(
                *(self._resolve_one(channel, dedup_key) for channel in RESOLVE_CHANNELS)
            )
        )

        confirmation = Alert(
            title="✅ Alert Resolved",
            description=f"Alert {dedup_key} has been resolved",
            severity=AlertSeverity.INFO,
            source=self._source_name,
            dedup_key=dedup_key,
        )
        info_channels = channels_for(AlertSeverity.INFO)
        results.extend(
            await asyncio.gather(
                *(self._send_one(channel, confirmation) for channel in info_channels)
            )
        )
        await self._notify_in_app(dedup_key)

        self._log_outcome("resolve", dedup_key, results)
        return results

    # ── Internal routing ────────────────────────────────────────

    async def _send_one(self, channel: Channel, alert: Alert) -> ChannelResult:
        sender = self._channels.get(channel)
        if sender is None:
            return _unwired(channel, alert.dedup_key)
        try:
            return await sender.send(alert)
        except Exception as exc:
            logger.exception(
                "channel_dispatch_error",
                channel=channel.value,
                title=alert.title,
            )
            return ChannelResult(
                channel=channel,
                success=False,
                dedup_key=alert.dedup_key,
                error=str(exc) or type(exc).__name__,
            )

    async def _resolve_one(self, channel: Channel, dedup_key: str) -> ChannelResult:
        sender = self._channels.get(channel)
        if sender is None:
            return _unwired(channel, dedup_key)
        if not sender.supports_resolve:
            return ChannelResult(
                channel=channel,
                success=False,
                dedup_key=dedup_key,
                error=f"{channel.value} does not support resolve",
            )
        try:
            return await sender.resolve(dedup_key)
        except Exception as exc:
            logger.exception("channel_resolve_error", channel=channel.value, dedup_key=dedup_key)
            return ChannelResult(
                channel=channel,
                success=False,
                dedup_key=dedup_key,
                error=str(exc) or type(exc).__name__,
            )

    async def _notify_in_app(self, dedup_key: str) -> None:
        if self._notifier is None:
            return
        notification = create_notification(
            category=NotificationCategory.SYSTEM,
            priority=NotificationPriority.INFO,
            title="Alert Resolved",
            message=f"Alert {dedup_key} has been resolved",
            data={"dedup_key": dedup_key},
        )
        try:
            await self._notifier.broadcast(notification)
        except Exception:
            logger.exception("resolve_notification_error", dedup_key=dedup_key)

    def _log_decision(
        self,
        op: str,
        dedup_key: str,
        targets: Iterable[Channel],
        alert: Alert | None = None,
    ) -> None:
        decision_logger.info(
            "decision",
            op=op,
            dedup_key=dedup_key,
            channels=[c.value for c in targets],
            severity=alert.severity.value if alert else None,
            title=alert.title if alert else None,
            source=alert.source if alert else None,
        )

    def _log_outcome(self, op: str, dedup_key: str, results: Iterable[ChannelResult]) -> None:
        results = list(results)
        failed = [r.channel.value for r in results if not r.success]
        log = logger.warning if failed else logger.info
        log(
            "alert_fanout_complete",
            op=op,
            dedup_key=dedup_key,
            attempted=len(results),
            failed=failed,
        )

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        for ch in self._channels.values():
            try:
                await ch.close()
            except Exception:
                logger.exception("channel_close_error", channel=ch.channel.value)


def _unwired(channel: Channel, dedup_key: str) -> ChannelResult:
    return ChannelResult(
        channel=channel,
        success=False,
        dedup_key=dedup_key,
        error=f"{channel.value} channel not configured",
    )
