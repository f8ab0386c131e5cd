"""Convenience factory for wiring the alerting stack."""

from __future__ import annotations

from opsnotify.alerting.channels import (
    AlertChannel,
    DiscordChannel,
    OpsgenieChannel,
    PagerDutyChannel,
    SlackChannel,
)
from opsnotify.alerting.dispatcher import AlertDispatcher, InAppNotifier
from opsnotify.core.config import AlertsConfig


def create_alerting_stack(
    config: AlertsConfig,
    notifier: InAppNotifier | None = None,
) -> AlertDispatcher:
    """Build a dispatcher with every provider channel wired.

    Unconfigured providers are still wired: they answer each send with a
    failed ChannelResult naming the missing setting.
    """
    timeout = config.request_timeout_secs
    channels: list[AlertChannel] = [
        PagerDutyChannel(config.pagerduty, timeout_secs=timeout),
        OpsgenieChannel(config.opsgenie, timeout_secs=timeout, source_name=config.source_name),
        SlackChannel(config.slack, timeout_secs=timeout),
        DiscordChannel(config.discord, timeout_secs=timeout),
    ]
    return AlertDispatcher(
        channels=channels,
        notifier=notifier,
        source_name=config.source_name,
    )
