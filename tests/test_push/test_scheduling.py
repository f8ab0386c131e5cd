"""Tests for the timer schedulers — virtual clock ordering and cancellation."""

from __future__ import annotations

import asyncio

from opsnotify.push.scheduling import LoopScheduler, ManualScheduler


class TestManualScheduler:
    def test_fires_in_due_order(self) -> None:
        scheduler = ManualScheduler()
        fired: list[str] = []
        scheduler.call_later(3.0, lambda: fired.append("late"))
        scheduler.call_later(1.0, lambda: fired.append("early"))

        assert scheduler.advance(2.0) == 1
        assert fired == ["early"]
        assert scheduler.pending() == [1.0]
        assert scheduler.advance(1.0) == 1
        assert fired == ["early", "late"]
        assert scheduler.now == 3.0

    def test_cancelled_timer_never_fires(self) -> None:
        scheduler = ManualScheduler()
        fired: list[int] = []
        handle = scheduler.call_later(1.0, lambda: fired.append(1))
        handle.cancel()

        assert scheduler.pending() == []
        assert scheduler.advance(10.0) == 0
        assert fired == []

    def test_history_records_requested_delays(self) -> None:
        scheduler = ManualScheduler()
        scheduler.call_later(5.0, lambda: None)
        scheduler.call_later(7.5, lambda: None)
        assert scheduler.history == [5.0, 7.5]


class TestLoopScheduler:
    async def test_runs_on_event_loop(self) -> None:
        fired = asyncio.Event()
        LoopScheduler().call_later(0.01, fired.set)
        await asyncio.wait_for(fired.wait(), timeout=1.0)

    async def test_cancel(self) -> None:
        fired: list[int] = []
        handle = LoopScheduler().call_later(0.01, lambda: fired.append(1))
        handle.cancel()
        await asyncio.sleep(0.05)
        assert fired == []
