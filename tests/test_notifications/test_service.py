"""Tests for NotificationService — history-first delivery, team copies, broadcast."""

from __future__ import annotations

import pytest

from opsnotify.core.types import Notification, NotificationCategory, NotificationPriority
from opsnotify.notifications.exceptions import PusherAlreadyAttachedError, TeamLookupError
from opsnotify.notifications.registry import ConnectionRegistry
from opsnotify.notifications.service import NotificationService, create_notification
from opsnotify.notifications.store import NotificationStore
from opsnotify.notifications.teams import StaticTeamDirectory


# ── Helpers ─────────────────────────────────────────────────────


class FakePusher:
    def __init__(self, fail: bool = False, accepted: bool = True) -> None:
        self.pushed: list[tuple[int, Notification]] = []
        self._fail = fail
        self._accepted = accepted

    async def push(self, user_id: int, notification: Notification) -> bool:
        if self._fail:
            raise ConnectionResetError("socket closed")
        self.pushed.append((user_id, notification))
        return self._accepted


class BrokenTeams:
    async def members(self, team_id: int) -> list[int]:
        raise TeamLookupError("membership api down")


def _n(**kw: object) -> Notification:
    defaults: dict[str, object] = {
        "category": NotificationCategory.DEPLOYMENT,
        "priority": NotificationPriority.MEDIUM,
        "title": "Deployment Started",
        "message": "Deploying api v1.2 to prod",
    }
    defaults.update(kw)
    return create_notification(**defaults)  # type: ignore[arg-type]


def _service(
    online: dict[int, str] | None = None,
    teams: StaticTeamDirectory | BrokenTeams | None = None,
    pusher: FakePusher | None = None,
) -> tuple[NotificationService, FakePusher]:
    registry = ConnectionRegistry()
    for user_id, conn in (online or {}).items():
        registry.register(user_id, conn)
    pusher = pusher or FakePusher()
    svc = NotificationService(registry, NotificationStore(), teams=teams, pusher=pusher)
    return svc, pusher


# ── create_notification ─────────────────────────────────────────


class TestCreateNotification:
    def test_fresh_unread(self) -> None:
        n = _n(user_id=3, action_url="/deployments/7")
        assert n.read is False
        assert n.user_id == 3
        assert n.action_url == "/deployments/7"
        assert n.id.startswith("notif_")


# ── send_to_user ────────────────────────────────────────────────


class TestSendToUser:
    async def test_offline_user_gets_history_only(self) -> None:
        svc, pusher = _service()
        before = svc.store.history_size(5)

        delivered = await svc.send_to_user(5, _n())

        assert delivered is False
        assert svc.store.history_size(5) == before + 1
        assert pusher.pushed == []

    async def test_online_user_pushed(self) -> None:
        svc, pusher = _service(online={5: "c1"})
        n = _n(user_id=5)

        assert await svc.send_to_user(5, n) is True
        assert pusher.pushed == [(5, n)]
        assert svc.unread_count(5) == 1

    async def test_push_failure_keeps_history(self) -> None:
        svc, _ = _service(online={5: "c1"}, pusher=FakePusher(fail=True))

        assert await svc.send_to_user(5, _n()) is False
        assert svc.store.history_size(5) == 1

    async def test_no_socket_accepted_frame(self) -> None:
        svc, pusher = _service(online={5: "c1"}, pusher=FakePusher(accepted=False))

        assert await svc.send_to_user(5, _n()) is False
        assert len(pusher.pushed) == 1
        assert svc.unread_count(5) == 1

    async def test_no_pusher_attached(self) -> None:
        svc = NotificationService(ConnectionRegistry(), NotificationStore())
        svc.registry.register(5, "c1")
        assert await svc.send_to_user(5, _n()) is False
        assert svc.store.history_size(5) == 1

    async def test_stamped_with_recipient(self) -> None:
        svc, _ = _service()
        original = _n()
        await svc.send_to_user(8, original)
        stored = svc.list_notifications(8)[0]
        assert stored.user_id == 8
        assert original.user_id is None


# ── send_to_team ────────────────────────────────────────────────


class TestSendToTeam:
    async def test_each_member_gets_own_copy(self) -> None:
        teams = StaticTeamDirectory({10: [1, 2, 3]})
        svc, pusher = _service(online={1: "c1", 3: "c3"}, teams=teams)
        n = _n(team_id=10)

        delivered = await svc.send_to_team(10, n)

        assert delivered == 2
        assert sorted(uid for uid, _ in pusher.pushed) == [1, 3]
        for uid in (1, 2, 3):
            assert svc.store.history_size(uid) == 1
            assert svc.list_notifications(uid)[0].user_id == uid

        # Read state is independent per recipient.
        copy_for_1 = svc.list_notifications(1)[0]
        svc.mark_read(1, copy_for_1.id)
        assert svc.unread_count(1) == 0
        assert svc.unread_count(2) == 1

    async def test_no_directory(self) -> None:
        svc, _ = _service()
        assert await svc.send_to_team(10, _n()) == 0

    async def test_lookup_failure_returns_zero(self) -> None:
        svc, _ = _service(teams=BrokenTeams())  # type: ignore[arg-type]
        assert await svc.send_to_team(10, _n()) == 0


# ── broadcast ───────────────────────────────────────────────────


class TestBroadcast:
    async def test_no_online_users_no_history(self) -> None:
        svc, pusher = _service()

        assert await svc.broadcast(_n()) == 0
        assert pusher.pushed == []
        assert svc.store.users() == set()

    async def test_only_online_users_reached(self) -> None:
        svc, pusher = _service(online={1: "a", 2: "b"})

        assert await svc.broadcast(_n()) == 2
        assert svc.store.users() == {1, 2}
        assert svc.store.history_size(3) == 0

    async def test_offline_user_misses_broadcast_permanently(self) -> None:
        svc, _ = _service(online={1: "a"})
        await svc.broadcast(_n())
        svc.registry.register(2, "late")
        assert svc.list_notifications(2) == []


# ── deliver routing ─────────────────────────────────────────────


class TestDeliver:
    async def test_team_wins_over_user(self) -> None:
        teams = StaticTeamDirectory({10: [1, 2]})
        svc, _ = _service(online={1: "a", 2: "b"}, teams=teams)
        assert await svc.deliver(_n(user_id=1, team_id=10)) == 2

    async def test_user_addressed(self) -> None:
        svc, _ = _service(online={4: "a"})
        assert await svc.deliver(_n(user_id=4)) == 1
        assert svc.store.users() == {4}

    async def test_unaddressed_broadcasts(self) -> None:
        svc, _ = _service(online={1: "a", 2: "b"})
        assert await svc.deliver(_n()) == 2


# ── attach_pusher ───────────────────────────────────────────────


class TestAttachPusher:
    def test_attach_once(self) -> None:
        svc = NotificationService(ConnectionRegistry(), NotificationStore())
        svc.attach_pusher(FakePusher())
        with pytest.raises(PusherAlreadyAttachedError):
            svc.attach_pusher(FakePusher())


# ── Read-state passthroughs ─────────────────────────────────────


class TestReadState:
    async def test_mark_all_and_clear(self) -> None:
        svc, _ = _service()
        await svc.send_to_user(1, _n())
        await svc.send_to_user(1, _n())

        assert svc.mark_all_read(1) == 2
        assert svc.unread_count(1) == 0
        svc.clear(1)
        assert svc.list_notifications(1) == []
