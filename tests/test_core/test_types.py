"""Tests for domain types — defaults, immutability, id format, read monotonicity."""

from __future__ import annotations

import re

import pytest
from pydantic import ValidationError

from opsnotify.core.locks import StripedLock
from opsnotify.core.types import (
    Alert,
    AlertSeverity,
    Channel,
    ChannelResult,
    Notification,
    NotificationCategory,
    NotificationPriority,
    PushMessage,
    PushMessageType,
    new_notification_id,
)


def _notification(**kw: object) -> Notification:
    defaults: dict[str, object] = {
        "category": NotificationCategory.SYSTEM,
        "priority": NotificationPriority.INFO,
        "title": "Hello",
        "message": "World",
    }
    defaults.update(kw)
    return Notification(**defaults)  # type: ignore[arg-type]


class TestAlert:
    def test_dedup_key_defaults_to_source_and_title(self) -> None:
        alert = Alert(title="DB down", severity=AlertSeverity.CRITICAL, source="db")
        assert alert.dedup_key == "db-DB down"

    def test_explicit_dedup_key_kept(self) -> None:
        alert = Alert(
            title="DB down", severity=AlertSeverity.CRITICAL, source="db", dedup_key="db-1"
        )
        assert alert.dedup_key == "db-1"

    def test_alert_is_frozen(self) -> None:
        alert = Alert(title="x", severity=AlertSeverity.INFO, source="s")
        with pytest.raises(ValidationError):
            alert.title = "y"  # type: ignore[misc]

    def test_unknown_severity_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Alert(title="x", severity="fatal", source="s")  # type: ignore[arg-type]

    def test_severity_rank_order(self) -> None:
        ranks = [s.rank for s in (
            AlertSeverity.INFO,
            AlertSeverity.WARNING,
            AlertSeverity.ERROR,
            AlertSeverity.CRITICAL,
        )]
        assert ranks == sorted(ranks)
        assert len(set(ranks)) == 4


class TestChannelResult:
    def test_frozen(self) -> None:
        result = ChannelResult(channel=Channel.SLACK, success=True)
        with pytest.raises(ValidationError):
            result.success = False  # type: ignore[misc]


class TestNotification:
    def test_id_format(self) -> None:
        assert re.fullmatch(r"notif_\d+_[0-9a-z]{9}", new_notification_id())

    def test_ids_unique(self) -> None:
        ids = {_notification().id for _ in range(200)}
        assert len(ids) == 200

    def test_defaults(self) -> None:
        n = _notification()
        assert n.read is False
        assert n.user_id is None
        assert n.timestamp > 0

    def test_mark_read_is_monotonic(self) -> None:
        n = _notification()
        assert n.mark_read() is True
        assert n.read is True
        assert n.mark_read() is False
        assert n.read is True


class TestPushMessage:
    def test_round_trip_json(self) -> None:
        msg = PushMessage(type=PushMessageType.ALERT, payload={"id": "alert-1"})
        parsed = PushMessage.model_validate_json(msg.model_dump_json())
        assert parsed.type == PushMessageType.ALERT
        assert parsed.payload == {"id": "alert-1"}
        assert parsed.timestamp == msg.timestamp

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PushMessage.model_validate_json('{"type": "bogus", "payload": null}')


class TestStripedLock:
    def test_same_key_same_lock(self) -> None:
        locks = StripedLock(8)
        assert locks.for_key(42) is locks.for_key(42)
        assert len(locks) == 8

    def test_rejects_zero_stripes(self) -> None:
        with pytest.raises(ValueError):
            StripedLock(0)
