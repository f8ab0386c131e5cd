"""Tests for provider channels — HTTP mocking, error results, session management."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

from pydantic import SecretStr

from opsnotify.alerting.channels import (
    DiscordChannel,
    OpsgenieChannel,
    PagerDutyChannel,
    SlackChannel,
)
from opsnotify.core.config import DiscordConfig, OpsgenieConfig, PagerDutyConfig, SlackConfig
from opsnotify.core.types import Alert, AlertSeverity, Channel


# ── Helpers ─────────────────────────────────────────────────────


def _alert(**kw: object) -> Alert:
    defaults: dict[str, object] = {
        "title": "Database down",
        "description": "Primary is unreachable",
        "severity": AlertSeverity.CRITICAL,
        "source": "db-monitor",
        "dedup_key": "db-1",
    }
    defaults.update(kw)
    return Alert(**defaults)  # type: ignore[arg-type]


def _mock_response(
    status: int = 200,
    text: str = "ok",
    headers: dict[str, str] | None = None,
) -> AsyncMock:
    resp = AsyncMock()
    resp.status = status
    resp.text = AsyncMock(return_value=text)
    resp.headers = headers or {}
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp


def _mock_session(resp: AsyncMock) -> MagicMock:
    session = MagicMock()
    session.post = MagicMock(return_value=resp)
    session.closed = False
    session.close = AsyncMock()
    return session


def _pd() -> PagerDutyChannel:
    return PagerDutyChannel(PagerDutyConfig(routing_key=SecretStr("rk-1")))


def _og() -> OpsgenieChannel:
    return OpsgenieChannel(OpsgenieConfig(api_key=SecretStr("og-key")))


def _slack() -> SlackChannel:
    return SlackChannel(SlackConfig(webhook_url=SecretStr("https://hooks.slack.com/x")))


def _discord() -> DiscordChannel:
    return DiscordChannel(DiscordConfig(webhook_url=SecretStr("https://discord.com/api/webhooks/x")))


# ── PagerDuty ───────────────────────────────────────────────────


class TestPagerDutyChannel:
    async def test_send_success_returns_dedup_key(self) -> None:
        ch = _pd()
        body = json.dumps({"status": "success", "dedup_key": "db-1"})
        session = _mock_session(_mock_response(202, body))
        ch._session = session

        result = await ch.send(_alert())

        assert result.success is True
        assert result.channel == Channel.PAGERDUTY
        assert result.message_id == "db-1"
        url = session.post.call_args[0][0]
        payload = session.post.call_args[1]["json"]
        assert url == "https://events.pagerduty.com/v2/enqueue"
        assert payload["event_action"] == "trigger"
        assert payload["routing_key"] == "rk-1"

    async def test_send_failure_status(self) -> None:
        ch = _pd()
        body = json.dumps({"status": "invalid event", "message": "Event object is invalid"})
        ch._session = _mock_session(_mock_response(400, body))

        result = await ch.send(_alert())

        assert result.success is False
        assert result.error == "Event object is invalid"

    async def test_send_exception_returns_failed_result(self) -> None:
        ch = _pd()
        session = MagicMock()
        session.post = MagicMock(side_effect=ConnectionError("boom"))
        session.closed = False
        ch._session = session

        result = await ch.send(_alert())
        assert result.success is False
        assert result.error == "boom"

    async def test_unconfigured_makes_no_request(self) -> None:
        ch = PagerDutyChannel(PagerDutyConfig())
        with patch("aiohttp.ClientSession") as session_cls:
            result = await ch.send(_alert())
        session_cls.assert_not_called()
        assert result.success is False
        assert result.error == "PAGERDUTY_ROUTING_KEY not configured"
        assert ch.configured is False

    async def test_resolve(self) -> None:
        ch = _pd()
        session = _mock_session(_mock_response(202, '{"dedup_key": "db-1"}'))
        ch._session = session

        result = await ch.resolve("db-1")

        assert result.success is True
        payload = session.post.call_args[1]["json"]
        assert payload == {"routing_key": "rk-1", "event_action": "resolve", "dedup_key": "db-1"}


# ── Opsgenie ────────────────────────────────────────────────────


class TestOpsgenieChannel:
    async def test_send_uses_genie_key(self) -> None:
        ch = _og()
        session = _mock_session(_mock_response(202, '{"requestId": "req-9"}'))
        ch._session = session

        result = await ch.send(_alert())

        assert result.success is True
        assert result.message_id == "req-9"
        kwargs = session.post.call_args[1]
        assert kwargs["headers"] == {"Authorization": "GenieKey og-key"}
        assert kwargs["json"]["alias"] == "db-1"
        assert kwargs["json"]["priority"] == "P1"

    async def test_resolve_closes_by_alias(self) -> None:
        ch = _og()
        session = _mock_session(_mock_response(202, '{"requestId": "req-10"}'))
        ch._session = session

        result = await ch.resolve("db/1")

        assert result.success is True
        url = session.post.call_args[0][0]
        kwargs = session.post.call_args[1]
        assert url == "https://api.opsgenie.com/v2/alerts/db%2F1/close"
        assert kwargs["params"] == {"identifierType": "alias"}
        assert kwargs["json"] == {"source": "DevOps AI Dashboard"}

    async def test_failure_falls_back_to_body(self) -> None:
        ch = _og()
        ch._session = _mock_session(_mock_response(500, "upstream exploded"))
        result = await ch.send(_alert())
        assert result.success is False
        assert result.error == "upstream exploded"

    async def test_unconfigured(self) -> None:
        ch = OpsgenieChannel(OpsgenieConfig())
        result = await ch.resolve("db-1")
        assert result.success is False
        assert result.error == "OPSGENIE_API_KEY not configured"


# ── Slack ───────────────────────────────────────────────────────


class TestSlackChannel:
    async def test_send_success_uses_request_id_header(self) -> None:
        ch = _slack()
        session = _mock_session(_mock_response(200, "ok", {"x-slack-req-id": "abc123"}))
        ch._session = session

        result = await ch.send(_alert())

        assert result.success is True
        assert result.message_id == "abc123"
        assert "attachments" in session.post.call_args[1]["json"]

    async def test_send_failure(self) -> None:
        ch = _slack()
        ch._session = _mock_session(_mock_response(404, "no_service"))
        result = await ch.send(_alert())
        assert result.success is False
        assert result.error == "no_service"

    async def test_resolve_not_supported(self) -> None:
        ch = _slack()
        result = await ch.resolve("db-1")
        assert ch.supports_resolve is False
        assert result.success is False
        assert result.error == "slack does not support resolve"


# ── Discord ─────────────────────────────────────────────────────


class TestDiscordChannel:
    async def test_send_waits_for_message_id(self) -> None:
        ch = _discord()
        session = _mock_session(_mock_response(200, '{"id": "112233"}'))
        ch._session = session

        result = await ch.send(_alert(severity=AlertSeverity.WARNING))

        assert result.success is True
        assert result.message_id == "112233"
        kwargs = session.post.call_args[1]
        assert kwargs["params"] == {"wait": "true"}
        assert kwargs["json"]["embeds"][0]["color"] == 0xFFC107

    async def test_empty_error_body_uses_status(self) -> None:
        ch = _discord()
        ch._session = _mock_session(_mock_response(429, ""))
        result = await ch.send(_alert())
        assert result.success is False
        assert result.error == "HTTP 429"

    async def test_unconfigured(self) -> None:
        ch = DiscordChannel(DiscordConfig())
        result = await ch.send(_alert())
        assert result.error == "DISCORD_WEBHOOK_URL not configured"


# ── Session management ──────────────────────────────────────────


class TestSessionManagement:
    async def test_close_closes_session(self) -> None:
        ch = _slack()
        session = _mock_session(_mock_response())
        ch._session = session

        await ch.close()

        session.close.assert_awaited_once()
        assert ch._session is None

    async def test_close_without_session_is_noop(self) -> None:
        ch = _slack()
        await ch.close()
        assert ch._session is None

    async def test_session_created_lazily(self) -> None:
        ch = _slack()
        assert ch._session is None
        with patch("aiohttp.ClientSession") as session_cls:
            session_cls.return_value = _mock_session(_mock_response())
            await ch.send(_alert())
        session_cls.assert_called_once()
