"""Live push transport: WebSocket server, HTTP API and reconnecting client."""

from opsnotify.push.client import PushClient, backoff_delay, websockets_connector
from opsnotify.push.exceptions import PushConnectError, PushTransportError
from opsnotify.push.factory import PushStack, create_push_stack
from opsnotify.push.mirror import NotificationMirror
from opsnotify.push.scheduling import LoopScheduler, ManualScheduler, Scheduler
from opsnotify.push.server import PushServer, admin_authorizer, header_user_resolver
from opsnotify.push.web import create_app, start_push_server

__all__ = [
    "LoopScheduler",
    "ManualScheduler",
    "NotificationMirror",
    "PushClient",
    "PushConnectError",
    "PushServer",
    "PushStack",
    "PushTransportError",
    "Scheduler",
    "admin_authorizer",
    "backoff_delay",
    "create_app",
    "create_push_stack",
    "header_user_resolver",
    "start_push_server",
    "websockets_connector",
]
