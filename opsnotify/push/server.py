"""WebSocket push server — live delivery of notifications and alert frames."""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

import aiohttp
import structlog
from aiohttp import web
from pydantic import ValidationError

from opsnotify.alerting.board import ActiveAlertBoard
from opsnotify.core.types import (
    ControlAction,
    ControlMessage,
    Notification,
    PushMessage,
    PushMessageType,
)
from opsnotify.notifications.service import NotificationService

logger = structlog.get_logger(__name__)

WELCOME_MESSAGE = "Connected to DevOps AI Dashboard"
DEFAULT_CHANNEL = "all"
ALERTS_CHANNEL = "alerts"

# Maps an incoming upgrade request to a user id, or None to reject it.
UserResolver = Callable[[web.Request], int | None]

# Decides whether an identified user may perform a privileged HTTP action.
Authorizer = Callable[[web.Request, int, str], bool]

ACTION_BROADCAST = "broadcast"
ACTION_DISPATCH = "dispatch"
ACTION_RESOLVE = "resolve"


def header_user_resolver(request: web.Request) -> int | None:
    """Read the user id from ``X-User-Id`` or the ``user_id`` query parameter."""
    raw = request.headers.get("X-User-Id") or request.query.get("user_id")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def admin_authorizer(admin_user_ids: Iterable[int]) -> Authorizer:
    """Allow privileged actions only for the listed admin users."""
    admins = frozenset(admin_user_ids)

    def authorize(request: web.Request, user_id: int, action: str) -> bool:
        return user_id in admins

    return authorize


@dataclass
class _Client:
    id: str
    user_id: int
    ws: web.WebSocketResponse
    subscriptions: set[str] = field(default_factory=lambda: {DEFAULT_CHANNEL})


class PushServer:
    """Owns the live sockets; implements the service's ``Pusher`` capability.

    Each accepted socket is registered with the connection registry for its
    user, greeted, and sent the user's unread backlog oldest first. The
    registry entry is removed when the socket closes, however it closes.
    """

    def __init__(
        self,
        service: NotificationService,
        board: ActiveAlertBoard | None = None,
        user_resolver: UserResolver = header_user_resolver,
        heartbeat_secs: float | None = 30.0,
    ) -> None:
        self._service = service
        self._board = board
        self._resolve_user = user_resolver
        self._heartbeat = heartbeat_secs
        self._clients: dict[str, _Client] = {}

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def resolve_user(self, request: web.Request) -> int | None:
        return self._resolve_user(request)

    # ── WebSocket endpoint ──────────────────────────────────────

    async def handle_ws(self, request: web.Request) -> web.StreamResponse:
        user_id = self.resolve_user(request)
        if user_id is None:
            logger.warning("push_ws_rejected", remote=request.remote, reason="no_user")
            return web.json_response({"error": "user id required"}, status=401)

        ws = web.WebSocketResponse(heartbeat=self._heartbeat)
        await ws.prepare(request)

        client = _Client(id=uuid.uuid4().hex, user_id=user_id, ws=ws)
        self._clients[client.id] = client
        self._service.registry.register(user_id, client.id)
        logger.info("push_client_connected", user_id=user_id, connection_id=client.id)

        try:
            await self._greet(client)
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._handle_control(client, msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.warning(
                        "push_ws_error",
                        connection_id=client.id,
                        error=str(ws.exception()),
                    )
        finally:
            self._clients.pop(client.id, None)
            self._service.registry.unregister(user_id, client.id)
            logger.info("push_client_disconnected", user_id=user_id, connection_id=client.id)

        return ws

    async def _greet(self, client: _Client) -> None:
        await self._send(
            client,
            PushMessage(
                type=PushMessageType.NOTIFICATION,
                payload={"message": WELCOME_MESSAGE},
            ),
        )

        unread = self._service.list_notifications(
            client.user_id,
            limit=self._service.store.max_history,
            unread_only=True,
        )
        for notification in reversed(unread):
            await self._send(client, _notification_frame(notification))

        if self._board is not None:
            for alert in reversed(self._board.alerts()):
                await self._send(
                    client,
                    PushMessage(type=PushMessageType.ALERT, payload=alert.model_dump(mode="json")),
                )

    async def _handle_control(self, client: _Client, raw: str) -> None:
        try:
            control = ControlMessage.model_validate_json(raw)
        except ValidationError:
            logger.warning("push_control_invalid", connection_id=client.id, raw=raw[:200])
            return

        if control.action == ControlAction.SUBSCRIBE and control.channel:
            client.subscriptions.add(control.channel)
        elif control.action == ControlAction.UNSUBSCRIBE and control.channel:
            client.subscriptions.discard(control.channel)
        elif control.action == ControlAction.PING:
            await _send_json(client, {"type": "pong"})
        elif control.action == ControlAction.ACKNOWLEDGE_ALERT and control.alert_id:
            if self._board is None:
                return
            if not await self._board.acknowledge(control.alert_id):
                logger.info(
                    "push_ack_unknown_alert",
                    connection_id=client.id,
                    alert_id=control.alert_id,
                )
        else:
            logger.debug("push_control_ignored", connection_id=client.id, action=control.action)

    # ── Outbound ────────────────────────────────────────────────

    async def push(self, user_id: int, notification: Notification) -> bool:
        """Send *notification* to every live socket of *user_id*.

        Returns True when at least one socket accepted the frame.
        """
        frame = _notification_frame(notification)
        sent = False
        for connection_id in self._service.registry.connections(user_id):
            client = self._clients.get(connection_id)
            if client is not None and await self._send(client, frame):
                sent = True
        return sent

    async def publish(self, channel: str, message: PushMessage) -> int:
        """Send *message* to sockets subscribed to *channel* or to ``all``."""
        sent = 0
        for client in list(self._clients.values()):
            if channel in client.subscriptions or DEFAULT_CHANNEL in client.subscriptions:
                if await self._send(client, message):
                    sent += 1
        return sent

    async def publish_alert(self, message: PushMessage) -> None:
        """Board publisher hook: fan alert frames out on the alerts channel."""
        await self.publish(ALERTS_CHANNEL, message)

    async def close(self) -> None:
        for client in list(self._clients.values()):
            await client.ws.close(code=aiohttp.WSCloseCode.GOING_AWAY, message=b"server shutdown")

    async def _send(self, client: _Client, message: PushMessage) -> bool:
        return await _send_json(client, message.model_dump(mode="json"))


def _notification_frame(notification: Notification) -> PushMessage:
    return PushMessage(
        type=PushMessageType.NOTIFICATION,
        payload=notification.model_dump(mode="json"),
    )


async def _send_json(client: _Client, data: dict[str, Any]) -> bool:
    if client.ws.closed:
        return False
    try:
        await client.ws.send_str(json.dumps(data))
    except (ConnectionResetError, RuntimeError) as exc:
        logger.warning("push_send_failed", connection_id=client.id, error=str(exc))
        return False
    return True
