"""Tests for the alerting factory — every provider wired, config propagated."""

from __future__ import annotations

from pydantic import SecretStr

from opsnotify.alerting.channels import (
    DiscordChannel,
    OpsgenieChannel,
    PagerDutyChannel,
    SlackChannel,
)
from opsnotify.alerting.factory import create_alerting_stack
from opsnotify.core.config import AlertsConfig, PagerDutyConfig
from opsnotify.core.types import Alert, AlertSeverity, Channel


class TestCreateAlertingStack:
    def test_all_channels_wired(self) -> None:
        disp = create_alerting_stack(AlertsConfig())
        channels = disp.channels
        assert isinstance(channels[Channel.PAGERDUTY], PagerDutyChannel)
        assert isinstance(channels[Channel.OPSGENIE], OpsgenieChannel)
        assert isinstance(channels[Channel.SLACK], SlackChannel)
        assert isinstance(channels[Channel.DISCORD], DiscordChannel)

    def test_configured_flags_follow_config(self) -> None:
        config = AlertsConfig(pagerduty=PagerDutyConfig(routing_key=SecretStr("rk")))
        channels = create_alerting_stack(config).channels
        assert channels[Channel.PAGERDUTY].configured is True
        assert channels[Channel.SLACK].configured is False

    async def test_unconfigured_stack_returns_failed_results(self) -> None:
        disp = create_alerting_stack(AlertsConfig())
        alert = Alert(title="Disk full", severity=AlertSeverity.ERROR, source="node-3")

        results = await disp.dispatch(alert)

        assert [r.channel for r in results] == [Channel.OPSGENIE, Channel.SLACK]
        assert [r.error for r in results] == [
            "OPSGENIE_API_KEY not configured",
            "SLACK_WEBHOOK_URL not configured",
        ]
        await disp.close()
