"""WebSocket push client with typed dispatch and capped reconnect backoff."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from types import TracebackType
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, ValidationError
from websockets.asyncio.client import connect as ws_connect

from opsnotify.core.config import PushClientConfig, get_settings
from opsnotify.core.types import (
    ConnectionState,
    ControlAction,
    ControlMessage,
    PushMessage,
    PushMessageType,
)
from opsnotify.push.exceptions import PushConnectError
from opsnotify.push.scheduling import LoopScheduler, Scheduler, TimerHandle

logger = structlog.get_logger(__name__)

BACKOFF_FACTOR = 1.5

CONNECTION_FAILED = "Push connection failed - real-time updates unavailable"
GAVE_UP = "Unable to establish push connection after multiple attempts"

MessageHandler = Callable[[PushMessage], Awaitable[None] | None]
LifecycleCallback = Callable[[], Awaitable[None] | None]
ErrorCallback = Callable[[str], Awaitable[None] | None]


class PushConnection(Protocol):
    """The slice of a WebSocket connection the client relies on."""

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...


Connector = Callable[[str], Awaitable[PushConnection]]


async def websockets_connector(url: str) -> PushConnection:
    """Default connector backed by the ``websockets`` client."""
    try:
        return await ws_connect(url)
    except Exception as exc:
        raise PushConnectError(f"Failed to connect to {url}") from exc


def backoff_delay(base_secs: float, attempt: int) -> float:
    """Delay before reconnect attempt number *attempt* (0-based)."""
    return base_secs * BACKOFF_FACTOR ** attempt


async def _call(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if asyncio.iscoroutine(result):
        await result


class PushClient:
    """Persistent push connection modelled as an explicit state machine.

    ``DISCONNECTED → CONNECTING → OPEN``; a close or failure goes back to
    ``DISCONNECTED`` and, with auto-reconnect on, to ``RECONNECT_PENDING``
    with a timer of ``interval × 1.5^attempt``. Once the attempt cap is hit
    the client parks in ``GAVE_UP`` and reports ``connection_error`` until
    :meth:`reset_reconnect` / :meth:`reconnect`.

    Usage::

        client = PushClient()
        client.on(PushMessageType.NOTIFICATION, handle_notification)
        async with client:
            await client.subscribe("alerts")
            await asyncio.sleep(60)
    """

    def __init__(
        self,
        config: PushClientConfig | None = None,
        connector: Connector | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        cfg = config or get_settings().push_client
        self._config = cfg
        self._connector: Connector = connector or websockets_connector
        self._scheduler: Scheduler = scheduler or LoopScheduler()

        self._state = ConnectionState.DISCONNECTED
        self._attempts = 0
        self._closing = False
        self._connection: PushConnection | None = None
        self._reader: asyncio.Task[None] | None = None
        self._retry_timer: TimerHandle | None = None
        self._retry_task: asyncio.Task[bool] | None = None
        self._connection_error: str | None = None
        self._last_message: PushMessage | None = None

        self._handlers: dict[PushMessageType, list[MessageHandler]] = {}
        self._message_handlers: list[MessageHandler] = []
        self._connect_callbacks: list[LifecycleCallback] = []
        self._disconnect_callbacks: list[LifecycleCallback] = []
        self._error_callbacks: list[ErrorCallback] = []

    # ── Properties ────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state == ConnectionState.OPEN

    @property
    def attempts(self) -> int:
        """Reconnect attempts scheduled since the last successful open."""
        return self._attempts

    @property
    def connection_error(self) -> str | None:
        return self._connection_error

    @property
    def last_message(self) -> PushMessage | None:
        return self._last_message

    # ── Subscriptions ─────────────────────────────────────────────

    def on(self, message_type: PushMessageType, handler: MessageHandler) -> None:
        """Register a handler for one message type."""
        self._handlers.setdefault(message_type, []).append(handler)

    def on_message(self, handler: MessageHandler) -> None:
        """Register a handler for every valid message."""
        self._message_handlers.append(handler)

    def on_connect(self, callback: LifecycleCallback) -> None:
        self._connect_callbacks.append(callback)

    def on_disconnect(self, callback: LifecycleCallback) -> None:
        self._disconnect_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback) -> None:
        self._error_callbacks.append(callback)

    # ── Lifecycle ────────────────────────────────────────────────

    async def connect(self) -> bool:
        """Open the connection. Returns True once the socket is open."""
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            return self._state == ConnectionState.OPEN
        if self._state == ConnectionState.GAVE_UP:
            logger.info("push_connect_refused", reason="gave_up", attempts=self._attempts)
            return False

        self._cancel_retry_timer()
        self._closing = False
        self._state = ConnectionState.CONNECTING
        logger.debug("push_connecting", url=self._config.url, attempt=self._attempts)

        try:
            connection = await asyncio.wait_for(
                self._connector(self._config.url),
                timeout=self._config.connect_timeout_secs,
            )
        except asyncio.CancelledError:
            self._state = ConnectionState.DISCONNECTED
            raise
        except Exception as exc:
            logger.warning(
                "push_connect_failed",
                url=self._config.url,
                error=str(exc) or type(exc).__name__,
                attempt=self._attempts,
            )
            await self._report_error(CONNECTION_FAILED)
            await self._handle_closed()
            return False

        if self._closing:
            await self._close_quietly(connection)
            self._state = ConnectionState.DISCONNECTED
            return False

        self._connection = connection
        self._state = ConnectionState.OPEN
        self._attempts = 0
        self._connection_error = None
        logger.info("push_connected", url=self._config.url)
        await self._fire(self._connect_callbacks)
        self._reader = asyncio.create_task(self._read_loop(connection))
        return True

    async def disconnect(self) -> None:
        """Close the connection and cancel any pending retry. Idempotent."""
        self._closing = True
        self._cancel_retry_timer()

        current = asyncio.current_task()
        for task in (self._retry_task, self._reader):
            if task is None or task.done() or task is current:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._retry_task = None
        self._reader = None

        connection, self._connection = self._connection, None
        if connection is not None:
            await self._close_quietly(connection)

        if self._state != ConnectionState.GAVE_UP:
            self._state = ConnectionState.DISCONNECTED

    def reset_reconnect(self) -> None:
        """Clear the attempt counter and any gave-up error."""
        self._attempts = 0
        self._connection_error = None
        if self._state == ConnectionState.GAVE_UP:
            self._state = ConnectionState.DISCONNECTED

    async def reconnect(self) -> bool:
        """Manual reconnect: reset the backoff and connect again."""
        await self.disconnect()
        self.reset_reconnect()
        return await self.connect()

    async def __aenter__(self) -> PushClient:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.disconnect()

    # ── Outbound ─────────────────────────────────────────────────

    async def send(self, payload: Any) -> bool:
        """Best-effort send. Returns False (and drops the payload) unless open."""
        connection = self._connection
        if self._state != ConnectionState.OPEN or connection is None:
            logger.debug("push_send_dropped", state=self._state.value)
            return False

        if isinstance(payload, BaseModel):
            data = payload.model_dump_json(exclude_none=True)
        elif isinstance(payload, str):
            data = payload
        else:
            data = json.dumps(payload)

        try:
            await connection.send(data)
        except Exception as exc:
            logger.warning("push_send_failed", error=str(exc) or type(exc).__name__)
            return False
        return True

    async def subscribe(self, channel: str) -> bool:
        return await self.send(ControlMessage(action=ControlAction.SUBSCRIBE, channel=channel))

    async def unsubscribe(self, channel: str) -> bool:
        return await self.send(ControlMessage(action=ControlAction.UNSUBSCRIBE, channel=channel))

    async def acknowledge_alert(self, alert_id: str) -> bool:
        return await self.send(
            ControlMessage(action=ControlAction.ACKNOWLEDGE_ALERT, alert_id=alert_id)
        )

    # ── Internals ────────────────────────────────────────────────

    async def _read_loop(self, connection: PushConnection) -> None:
        try:
            async for raw in connection:
                await self._handle_frame(raw)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("push_connection_error", error=str(exc) or type(exc).__name__)
            await self._report_error(CONNECTION_FAILED)

        if self._connection is connection:
            self._connection = None
        self._reader = None
        await self._handle_closed()

    async def _handle_frame(self, raw: str | bytes) -> None:
        """Parse one inbound frame and dispatch it; bad frames are dropped."""
        try:
            message = PushMessage.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "push_frame_invalid",
                raw=str(raw)[:200],
                errors=exc.error_count(),
            )
            return

        self._last_message = message
        handlers = [*self._message_handlers, *self._handlers.get(message.type, ())]
        for handler in handlers:
            try:
                await _call(handler, message)
            except Exception:
                logger.exception("push_handler_error", message_type=message.type.value)

    async def _handle_closed(self) -> None:
        if self._closing:
            self._state = ConnectionState.DISCONNECTED
            return

        self._state = ConnectionState.DISCONNECTED
        logger.info("push_disconnected", url=self._config.url)
        await self._fire(self._disconnect_callbacks)

        if not self._config.auto_reconnect or self._closing:
            return

        if self._attempts < self._config.max_reconnect_attempts:
            delay = backoff_delay(self._config.reconnect_interval_secs, self._attempts)
            self._attempts += 1
            self._state = ConnectionState.RECONNECT_PENDING
            logger.info(
                "push_reconnect_scheduled",
                delay=delay,
                attempt=self._attempts,
                max_attempts=self._config.max_reconnect_attempts,
            )
            self._retry_timer = self._scheduler.call_later(delay, self._on_retry_timer)
        else:
            self._state = ConnectionState.GAVE_UP
            logger.warning("push_reconnect_gave_up", attempts=self._attempts)
            await self._report_error(GAVE_UP)

    def _on_retry_timer(self) -> None:
        self._retry_timer = None
        if self._closing or self._state != ConnectionState.RECONNECT_PENDING:
            return
        self._retry_task = asyncio.ensure_future(self.connect())

    def _cancel_retry_timer(self) -> None:
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None

    async def _report_error(self, message: str) -> None:
        self._connection_error = message
        for callback in self._error_callbacks:
            try:
                await _call(callback, message)
            except Exception:
                logger.exception("push_callback_error", callback="on_error")

    async def _fire(self, callbacks: list[LifecycleCallback]) -> None:
        for callback in callbacks:
            try:
                await _call(callback)
            except Exception:
                logger.exception("push_callback_error")

    async def _close_quietly(self, connection: PushConnection) -> None:
        try:
            await connection.close()
        except Exception:
            logger.debug("push_close_error", exc_info=True)
