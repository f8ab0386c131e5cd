"""Severity → channel routing table."""

from __future__ import annotations

from opsnotify.alerting.exceptions import UnknownSeverityError
from opsnotify.core.types import AlertSeverity, Channel

_POLICY: dict[AlertSeverity, tuple[Channel, ...]] = {
    AlertSeverity.CRITICAL: (Channel.PAGERDUTY, Channel.OPSGENIE, Channel.SLACK),
    AlertSeverity.ERROR: (Channel.OPSGENIE, Channel.SLACK),
    AlertSeverity.WARNING: (Channel.SLACK, Channel.DISCORD),
    AlertSeverity.INFO: (Channel.SLACK,),
}

# Providers that accept a resolve/close call keyed by dedup key.
RESOLVE_CHANNELS: tuple[Channel, ...] = (Channel.PAGERDUTY, Channel.OPSGENIE)


def channels_for(severity: AlertSeverity | str) -> tuple[Channel, ...]:
    """Return the ordered channels that must receive an alert of *severity*.

    Raises:
        UnknownSeverityError: *severity* is not one of the four known levels.
    """
    try:
        return _POLICY[AlertSeverity(severity)]
    except (KeyError, ValueError) as exc:
        raise UnknownSeverityError(f"Unknown alert severity: {severity!r}") from exc
