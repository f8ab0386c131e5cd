"""Alert channels — PagerDuty, Opsgenie, Slack and Discord delivery."""

from __future__ import annotations

import abc
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import aiohttp
import structlog

from opsnotify.alerting import formatters
from opsnotify.core.config import (
    DiscordConfig,
    OpsgenieConfig,
    PagerDutyConfig,
    SlackConfig,
)
from opsnotify.core.types import Alert, Channel, ChannelResult

logger = structlog.get_logger(__name__)


@dataclass
class _HttpReply:
    status: int
    body: str
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _parse_json(body: str) -> dict[str, Any]:
    try:
        data = json.loads(body) if body else {}
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _error_text(reply: _HttpReply) -> str:
    """Provider error message: JSON ``message`` field, else the raw body."""
    message = _parse_json(reply.body).get("message")
    if message:
        return str(message)
    return reply.body or f"HTTP {reply.status}"


class AlertChannel(abc.ABC):
    """Base class for external alert delivery channels.

    Neither ``send`` nor ``resolve`` raise: every failure comes back as a
    ``ChannelResult`` with ``success=False``.
    """

    channel: Channel
    supports_resolve: bool = False

    @property
    @abc.abstractmethod
    def configured(self) -> bool:
        """Whether the credential / endpoint for this channel is set."""

    @abc.abstractmethod
    async def send(self, alert: Alert) -> ChannelResult:
        """Deliver *alert* to the provider."""

    async def resolve(self, dedup_key: str) -> ChannelResult:
        """Resolve a previously triggered alert. Unsupported by default."""
        return self._failed(dedup_key, f"{self.channel.value} does not support resolve")

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""

    def _ok(self, dedup_key: str, message_id: str | None = None) -> ChannelResult:
        return ChannelResult(
            channel=self.channel,
            success=True,
            dedup_key=dedup_key,
            message_id=message_id,
        )

    def _failed(self, dedup_key: str, error: str) -> ChannelResult:
        return ChannelResult(
            channel=self.channel,
            success=False,
            dedup_key=dedup_key,
            error=error,
        )


class _HttpChannel(AlertChannel):
    """Shared aiohttp session handling for webhook/REST channels."""

    def __init__(self, timeout_secs: float = 10.0) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout_secs)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _post(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> _HttpReply:
        session = self._get_session()
        async with session.post(url, json=payload, headers=headers, params=params) as resp:
            body = await resp.text()
            return _HttpReply(status=resp.status, body=body, headers=resp.headers)

    async def _deliver(
        self,
        op: str,
        dedup_key: str,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> ChannelResult:
        try:
            reply = await self._post(url, payload, headers=headers, params=params)
        except Exception as exc:
            logger.exception(
                "channel_request_error",
                channel=self.channel.value,
                op=op,
                dedup_key=dedup_key,
            )
            return self._failed(dedup_key, str(exc) or type(exc).__name__)

        if reply.ok:
            return self._ok(dedup_key, self._message_id(reply))

        error = _error_text(reply)
        logger.warning(
            "channel_request_failed",
            channel=self.channel.value,
            op=op,
            status=reply.status,
            body=reply.body[:200],
        )
        return self._failed(dedup_key, error)

    def _message_id(self, reply: _HttpReply) -> str | None:
        """Provider-assigned id extracted from a successful reply."""
        return None

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class PagerDutyChannel(_HttpChannel):
    """Pages via the PagerDuty Events API v2 (trigger + resolve)."""

    channel = Channel.PAGERDUTY
    supports_resolve = True

    def __init__(self, config: PagerDutyConfig, timeout_secs: float = 10.0) -> None:
        super().__init__(timeout_secs)
        self._routing_key = config.routing_key.get_secret_value()
        self._url = config.events_url

    @property
    def configured(self) -> bool:
        return bool(self._routing_key)

    async def send(self, alert: Alert) -> ChannelResult:
        if not self.configured:
            return self._failed(alert.dedup_key, "PAGERDUTY_ROUTING_KEY not configured")
        payload = formatters.pagerduty_trigger_payload(alert, self._routing_key)
        return await self._deliver("trigger", alert.dedup_key, self._url, payload)

    async def resolve(self, dedup_key: str) -> ChannelResult:
        if not self.configured:
            return self._failed(dedup_key, "PAGERDUTY_ROUTING_KEY not configured")
        payload = formatters.pagerduty_resolve_payload(dedup_key, self._routing_key)
        return await self._deliver("resolve", dedup_key, self._url, payload)

    def _message_id(self, reply: _HttpReply) -> str | None:
        value = _parse_json(reply.body).get("dedup_key")
        return str(value) if value else None


class OpsgenieChannel(_HttpChannel):
    """Opens and closes Opsgenie alerts, aliased by dedup key."""

    channel = Channel.OPSGENIE
    supports_resolve = True

    def __init__(
        self,
        config: OpsgenieConfig,
        timeout_secs: float = 10.0,
        source_name: str = "DevOps AI Dashboard",
    ) -> None:
        super().__init__(timeout_secs)
        self._source_name = source_name
        self._api_key = config.api_key.get_secret_value()
        self._url = config.alerts_url.rstrip("/")
        self._default_tags = list(config.default_tags)

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"GenieKey {self._api_key}"}

    async def send(self, alert: Alert) -> ChannelResult:
        if not self.configured:
            return self._failed(alert.dedup_key, "OPSGENIE_API_KEY not configured")
        payload = formatters.opsgenie_alert_payload(alert, self._default_tags)
        return await self._deliver(
            "create", alert.dedup_key, self._url, payload, headers=self._headers()
        )

    async def resolve(self, dedup_key: str) -> ChannelResult:
        if not self.configured:
            return self._failed(dedup_key, "OPSGENIE_API_KEY not configured")
        url = f"{self._url}/{quote(dedup_key, safe='')}/close"
        return await self._deliver(
            "close",
            dedup_key,
            url,
            {"source": self._source_name},
            headers=self._headers(),
            params={"identifierType": "alias"},
        )

    def _message_id(self, reply: _HttpReply) -> str | None:
        value = _parse_json(reply.body).get("requestId")
        return str(value) if value else None


class SlackChannel(_HttpChannel):
    """Posts Block Kit messages to a Slack incoming webhook."""

    channel = Channel.SLACK

    def __init__(self, config: SlackConfig, timeout_secs: float = 10.0) -> None:
        super().__init__(timeout_secs)
        self._webhook_url = config.webhook_url.get_secret_value()

    @property
    def configured(self) -> bool:
        return bool(self._webhook_url)

    async def send(self, alert: Alert) -> ChannelResult:
        if not self.configured:
            return self._failed(alert.dedup_key, "SLACK_WEBHOOK_URL not configured")
        payload = formatters.slack_payload(alert)
        return await self._deliver("post", alert.dedup_key, self._webhook_url, payload)

    def _message_id(self, reply: _HttpReply) -> str | None:
        # Incoming webhooks answer "ok"; the request id header is the only handle.
        return reply.headers.get("x-slack-req-id") or None


class DiscordChannel(_HttpChannel):
    """Delivers alerts via a Discord webhook with colour-coded embeds."""

    channel = Channel.DISCORD

    def __init__(self, config: DiscordConfig, timeout_secs: float = 10.0) -> None:
        super().__init__(timeout_secs)
        self._webhook_url = config.webhook_url.get_secret_value()
        self._footer_text = config.footer_text

    @property
    def configured(self) -> bool:
        return bool(self._webhook_url)

    async def send(self, alert: Alert) -> ChannelResult:
        if not self.configured:
            return self._failed(alert.dedup_key, "DISCORD_WEBHOOK_URL not configured")
        payload = formatters.discord_payload(alert, self._footer_text)
        # wait=true makes Discord return the created message (and its id).
        return await self._deliver(
            "post",
            alert.dedup_key,
            self._webhook_url,
            payload,
            params={"wait": "true"},
        )

    def _message_id(self, reply: _HttpReply) -> str | None:
        value = _parse_json(reply.body).get("id")
        return str(value) if value else None
