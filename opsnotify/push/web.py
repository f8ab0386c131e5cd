"""aiohttp application: WebSocket endpoint plus the notification/alert HTTP API.

Exposes:
- ``GET  {ws_path}``                         → push WebSocket
- ``GET  /api/notifications``                → caller's history (filters via query)
- ``GET  /api/notifications/unread-count``
- ``POST /api/notifications/{id}/read``
- ``POST /api/notifications/read-all``
- ``DELETE /api/notifications``
- ``POST /api/notifications/test``
- ``POST /api/notifications/broadcast``
- ``GET  /api/alerts``                       → open active alerts
- ``GET  /api/alerts/counts``
- ``POST /api/alerts/{id}/acknowledge``
- ``POST /api/alerts/acknowledge-all``
- ``POST /api/alerts/dispatch`` / ``POST /api/alerts/resolve`` (dispatcher wired)

The caller is identified with the same resolver as the WebSocket endpoint.
Broadcast, dispatch and resolve additionally pass through the authorizer
(by default only ``push_server.admin_user_ids``).
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from aiohttp import web
from pydantic import BaseModel, ValidationError

from opsnotify.alerting.board import ActiveAlertBoard
from opsnotify.alerting.dispatcher import AlertDispatcher
from opsnotify.core.config import NotificationsConfig, PushServerConfig
from opsnotify.core.types import (
    Alert,
    NotificationCategory,
    NotificationPriority,
)
from opsnotify.notifications.service import NotificationService, create_notification
from opsnotify.push.server import (
    ACTION_BROADCAST,
    ACTION_DISPATCH,
    ACTION_RESOLVE,
    Authorizer,
    PushServer,
    admin_authorizer,
)

logger = structlog.get_logger(__name__)

SERVICE_KEY = web.AppKey("service", NotificationService)
PUSH_SERVER_KEY = web.AppKey("push_server", PushServer)
BOARD_KEY = web.AppKey("board", ActiveAlertBoard)
DISPATCHER_KEY = web.AppKey("dispatcher", AlertDispatcher)
LIMITS_KEY = web.AppKey("limits", NotificationsConfig)
AUTHORIZER_KEY = web.AppKey("authorizer", Authorizer)


class _TestNotification(BaseModel):
    category: NotificationCategory = NotificationCategory.SYSTEM
    priority: NotificationPriority = NotificationPriority.INFO
    title: str = "Test Notification"
    message: str = "This is a test notification"


class _BroadcastRequest(BaseModel):
    category: NotificationCategory
    priority: NotificationPriority
    title: str
    message: str
    action_url: str | None = None


class _ResolveRequest(BaseModel):
    dedup_key: str


# ── Helpers ─────────────────────────────────────────────────────


def _error_body(message: str) -> dict[str, str]:
    return {"text": json.dumps({"error": message}), "content_type": "application/json"}


def _bad_request(message: str) -> web.HTTPBadRequest:
    return web.HTTPBadRequest(**_error_body(message))


def _require_user(request: web.Request) -> int:
    push_server = request.app[PUSH_SERVER_KEY]
    user_id = push_server.resolve_user(request)
    if user_id is None:
        raise web.HTTPUnauthorized(**_error_body("user id required"))
    return user_id


def _require_action(request: web.Request, action: str) -> int:
    user_id = _require_user(request)
    if not request.app[AUTHORIZER_KEY](request, user_id, action):
        logger.warning("http_action_forbidden", user_id=user_id, action=action)
        raise web.HTTPForbidden(**_error_body(f"not allowed to {action}"))
    return user_id


def _parse_enum_list(raw: str | None, enum_type: Any, name: str) -> list[Any] | None:
    if not raw:
        return None
    try:
        return [enum_type(value.strip()) for value in raw.split(",") if value.strip()]
    except ValueError:
        raise _bad_request(f"invalid {name}") from None


def _parse_limit(raw: str | None, limits: NotificationsConfig) -> int:
    if raw is None:
        return limits.default_list_limit
    try:
        limit = int(raw)
    except ValueError:
        raise _bad_request("limit must be an integer") from None
    if not 1 <= limit <= limits.max_list_limit:
        raise _bad_request(f"limit must be between 1 and {limits.max_list_limit}")
    return limit


async def _read_model(request: web.Request, model: type[BaseModel]) -> Any:
    if request.can_read_body:
        try:
            body = await request.json()
        except ValueError:
            raise _bad_request("body must be JSON") from None
    else:
        body = {}
    try:
        return model.model_validate(body)
    except ValidationError:
        raise _bad_request("invalid request body") from None


# ── Notification routes ─────────────────────────────────────────


async def _handle_list(request: web.Request) -> web.Response:
    user_id = _require_user(request)
    service = request.app[SERVICE_KEY]
    query = request.query
    notifications = service.list_notifications(
        user_id,
        limit=_parse_limit(query.get("limit"), request.app[LIMITS_KEY]),
        unread_only=query.get("unread_only", "").lower() in ("1", "true", "yes"),
        categories=_parse_enum_list(query.get("category"), NotificationCategory, "category"),
        priorities=_parse_enum_list(query.get("priority"), NotificationPriority, "priority"),
    )
    return web.json_response(
        {
            "notifications": [n.model_dump(mode="json") for n in notifications],
            "unread_count": service.unread_count(user_id),
        }
    )


async def _handle_unread_count(request: web.Request) -> web.Response:
    user_id = _require_user(request)
    return web.json_response({"count": request.app[SERVICE_KEY].unread_count(user_id)})


async def _handle_mark_read(request: web.Request) -> web.Response:
    user_id = _require_user(request)
    notification_id = request.match_info["notification_id"]
    found = request.app[SERVICE_KEY].mark_read(user_id, notification_id)
    if not found:
        raise web.HTTPNotFound(**_error_body("notification not found"))
    return web.json_response({"success": True})


async def _handle_mark_all_read(request: web.Request) -> web.Response:
    user_id = _require_user(request)
    count = request.app[SERVICE_KEY].mark_all_read(user_id)
    return web.json_response({"marked_count": count})


async def _handle_clear(request: web.Request) -> web.Response:
    user_id = _require_user(request)
    request.app[SERVICE_KEY].clear(user_id)
    return web.json_response({"success": True})


async def _handle_send_test(request: web.Request) -> web.Response:
    user_id = _require_user(request)
    body: _TestNotification = await _read_model(request, _TestNotification)
    notification = create_notification(
        category=body.category,
        priority=body.priority,
        title=body.title,
        message=body.message,
        user_id=user_id,
    )
    delivered = await request.app[SERVICE_KEY].send_to_user(user_id, notification)
    return web.json_response(
        {
            "success": True,
            "delivered": delivered,
            "notification": notification.model_dump(mode="json"),
        }
    )


async def _handle_broadcast(request: web.Request) -> web.Response:
    user_id = _require_action(request, ACTION_BROADCAST)
    body: _BroadcastRequest = await _read_model(request, _BroadcastRequest)
    notification = create_notification(
        category=body.category,
        priority=body.priority,
        title=body.title,
        message=body.message,
        action_url=body.action_url,
    )
    sent = await request.app[SERVICE_KEY].broadcast(notification)
    logger.info("http_broadcast", user_id=user_id, sent_count=sent)
    return web.json_response({"success": True, "sent_count": sent})


# ── Alert routes ────────────────────────────────────────────────


async def _handle_alerts(request: web.Request) -> web.Response:
    _require_user(request)
    board = request.app[BOARD_KEY]
    include_ack = request.query.get("include_acknowledged", "").lower() in ("1", "true", "yes")
    alerts = board.alerts(include_acknowledged=include_ack)
    return web.json_response({"alerts": [a.model_dump(mode="json") for a in alerts]})


async def _handle_alert_counts(request: web.Request) -> web.Response:
    _require_user(request)
    return web.json_response(request.app[BOARD_KEY].counts())


async def _handle_acknowledge(request: web.Request) -> web.Response:
    _require_user(request)
    alert_id = request.match_info["alert_id"]
    if not await request.app[BOARD_KEY].acknowledge(alert_id):
        raise web.HTTPNotFound(**_error_body("alert not found"))
    return web.json_response({"success": True})


async def _handle_acknowledge_all(request: web.Request) -> web.Response:
    _require_user(request)
    count = await request.app[BOARD_KEY].acknowledge_all()
    return web.json_response({"acknowledged_count": count})


async def _handle_dispatch(request: web.Request) -> web.Response:
    _require_action(request, ACTION_DISPATCH)
    alert: Alert = await _read_model(request, Alert)
    results = await request.app[DISPATCHER_KEY].dispatch(alert)
    return web.json_response({"results": [r.model_dump(mode="json") for r in results]})


async def _handle_resolve(request: web.Request) -> web.Response:
    _require_action(request, ACTION_RESOLVE)
    body: _ResolveRequest = await _read_model(request, _ResolveRequest)
    results = await request.app[DISPATCHER_KEY].resolve(body.dedup_key)
    return web.json_response({"results": [r.model_dump(mode="json") for r in results]})


# ── Application ─────────────────────────────────────────────────


def create_app(
    service: NotificationService,
    push_server: PushServer,
    board: ActiveAlertBoard | None = None,
    dispatcher: AlertDispatcher | None = None,
    config: PushServerConfig | None = None,
    limits: NotificationsConfig | None = None,
    authorizer: Authorizer | None = None,
) -> web.Application:
    """Create the aiohttp application."""
    cfg = config or PushServerConfig()
    app = web.Application()
    app[SERVICE_KEY] = service
    app[PUSH_SERVER_KEY] = push_server
    app[LIMITS_KEY] = limits or NotificationsConfig()
    app[AUTHORIZER_KEY] = authorizer or admin_authorizer(cfg.admin_user_ids)

    app.router.add_get(cfg.ws_path, push_server.handle_ws)

    async def _on_shutdown(app: web.Application) -> None:
        await push_server.close()

    app.on_shutdown.append(_on_shutdown)

    if not cfg.enable_http_api:
        return app

    app.router.add_get("/api/notifications", _handle_list)
    app.router.add_delete("/api/notifications", _handle_clear)
    app.router.add_get("/api/notifications/unread-count", _handle_unread_count)
    app.router.add_post("/api/notifications/read-all", _handle_mark_all_read)
    app.router.add_post("/api/notifications/test", _handle_send_test)
    app.router.add_post("/api/notifications/broadcast", _handle_broadcast)
    app.router.add_post("/api/notifications/{notification_id}/read", _handle_mark_read)

    if board is not None:
        app[BOARD_KEY] = board
        app.router.add_get("/api/alerts", _handle_alerts)
        app.router.add_get("/api/alerts/counts", _handle_alert_counts)
        app.router.add_post("/api/alerts/acknowledge-all", _handle_acknowledge_all)
        app.router.add_post("/api/alerts/{alert_id}/acknowledge", _handle_acknowledge)

    if dispatcher is not None:
        app[DISPATCHER_KEY] = dispatcher
        app.router.add_post("/api/alerts/dispatch", _handle_dispatch)
        app.router.add_post("/api/alerts/resolve", _handle_resolve)

    return app


async def start_push_server(
    app: web.Application,
    host: str = "0.0.0.0",
    port: int = 8080,
) -> web.AppRunner:
    """Start serving *app*. Returns the runner for cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    return runner
