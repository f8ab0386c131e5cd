"""Exception hierarchy for the alerting subsystem."""

from __future__ import annotations


class AlertingError(Exception):
    """Base exception for all alerting errors."""


class UnknownSeverityError(AlertingError):
    """A severity outside the closed set reached the routing policy."""
