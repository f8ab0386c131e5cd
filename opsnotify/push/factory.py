"""Convenience factory for wiring the notification + push server stack."""

from __future__ import annotations

from dataclasses import dataclass

from aiohttp import web

from opsnotify.alerting.board import ActiveAlertBoard
from opsnotify.alerting.dispatcher import AlertDispatcher
from opsnotify.alerting.factory import create_alerting_stack
from opsnotify.core.config import Settings
from opsnotify.notifications.events import EventNotifier
from opsnotify.notifications.registry import ConnectionRegistry
from opsnotify.notifications.service import NotificationService
from opsnotify.notifications.store import NotificationStore
from opsnotify.notifications.teams import HttpTeamDirectory, TeamDirectory
from opsnotify.push.server import Authorizer, PushServer, UserResolver, header_user_resolver
from opsnotify.push.web import create_app


@dataclass
class PushStack:
    service: NotificationService
    server: PushServer
    board: ActiveAlertBoard
    dispatcher: AlertDispatcher
    events: EventNotifier
    app: web.Application
    teams: TeamDirectory | None = None

    async def close(self) -> None:
        await self.dispatcher.close()
        if isinstance(self.teams, HttpTeamDirectory):
            await self.teams.close()


def create_push_stack(
    settings: Settings,
    teams: TeamDirectory | None = None,
    user_resolver: UserResolver = header_user_resolver,
    authorizer: Authorizer | None = None,
) -> PushStack:
    """Build registry, store, service, push server, board and dispatcher.

    The push server is attached as the service's pusher and as the board's
    publisher; the dispatcher broadcasts resolutions in-app through the
    service. Without an explicit *teams* directory, an HTTP directory is
    used when ``teams.membership_url`` is set. Without an *authorizer*, only
    ``push_server.admin_user_ids`` may broadcast or page over HTTP.
    """
    if teams is None and settings.teams.membership_url:
        teams = HttpTeamDirectory(settings.teams)

    service = NotificationService(
        registry=ConnectionRegistry(),
        store=NotificationStore(max_history=settings.notifications.max_history),
        teams=teams,
    )
    board = ActiveAlertBoard(max_alerts=settings.notifications.max_active_alerts)
    server = PushServer(
        service,
        board=board,
        user_resolver=user_resolver,
        heartbeat_secs=settings.push_server.heartbeat_secs,
    )
    service.attach_pusher(server)
    board.on_change(server.publish_alert)

    dispatcher = create_alerting_stack(settings.alerts, notifier=service)
    app = create_app(
        service,
        server,
        board=board,
        dispatcher=dispatcher,
        config=settings.push_server,
        limits=settings.notifications,
        authorizer=authorizer,
    )
    return PushStack(
        service=service,
        server=server,
        board=board,
        dispatcher=dispatcher,
        events=EventNotifier(service),
        app=app,
        teams=teams,
    )
