"""Exception hierarchy for the push transport."""

from __future__ import annotations


class PushTransportError(Exception):
    """Base exception for push transport errors."""


class PushConnectError(PushTransportError):
    """Opening the push connection failed."""
