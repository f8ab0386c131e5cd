"""External alert routing, provider channels and the active alert board."""

from opsnotify.alerting.board import ActiveAlertBoard, evaluate_threshold
from opsnotify.alerting.channels import (
    AlertChannel,
    DiscordChannel,
    OpsgenieChannel,
    PagerDutyChannel,
    SlackChannel,
)
from opsnotify.alerting.dispatcher import AlertDispatcher
from opsnotify.alerting.exceptions import AlertingError, UnknownSeverityError
from opsnotify.alerting.factory import create_alerting_stack
from opsnotify.alerting.policy import RESOLVE_CHANNELS, channels_for

__all__ = [
    "RESOLVE_CHANNELS",
    "ActiveAlertBoard",
    "AlertChannel",
    "AlertDispatcher",
    "AlertingError",
    "DiscordChannel",
    "OpsgenieChannel",
    "PagerDutyChannel",
    "SlackChannel",
    "UnknownSeverityError",
    "channels_for",
    "create_alerting_stack",
    "evaluate_threshold",
]
