"""Tests for the severity → channel routing table."""

from __future__ import annotations

import pytest

from opsnotify.alerting.exceptions import AlertingError, UnknownSeverityError
from opsnotify.alerting.policy import RESOLVE_CHANNELS, channels_for
from opsnotify.core.types import AlertSeverity, Channel


class TestChannelsFor:
    def test_critical(self) -> None:
        assert channels_for(AlertSeverity.CRITICAL) == (
            Channel.PAGERDUTY,
            Channel.OPSGENIE,
            Channel.SLACK,
        )

    def test_error(self) -> None:
        assert channels_for(AlertSeverity.ERROR) == (Channel.OPSGENIE, Channel.SLACK)

    def test_warning(self) -> None:
        assert channels_for(AlertSeverity.WARNING) == (Channel.SLACK, Channel.DISCORD)

    def test_info(self) -> None:
        assert channels_for(AlertSeverity.INFO) == (Channel.SLACK,)

    def test_accepts_raw_string(self) -> None:
        assert channels_for("warning") == (Channel.SLACK, Channel.DISCORD)

    def test_every_severity_routes_somewhere(self) -> None:
        for severity in AlertSeverity:
            targets = channels_for(severity)
            assert targets
            assert len(set(targets)) == len(targets)

    def test_pager_only_for_critical(self) -> None:
        paged = [s for s in AlertSeverity if Channel.PAGERDUTY in channels_for(s)]
        assert paged == [AlertSeverity.CRITICAL]

    def test_unknown_severity_raises(self) -> None:
        with pytest.raises(UnknownSeverityError, match="fatal"):
            channels_for("fatal")

    def test_unknown_severity_is_alerting_error(self) -> None:
        with pytest.raises(AlertingError):
            channels_for("")


class TestResolveChannels:
    def test_pager_and_incident_only(self) -> None:
        assert RESOLVE_CHANNELS == (Channel.PAGERDUTY, Channel.OPSGENIE)
