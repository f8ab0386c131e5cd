"""Timer scheduling for the push client — real event loop or virtual clock."""

from __future__ import annotations

import asyncio
import heapq
import itertools
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs *callback* once after *delay* seconds."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopScheduler:
    """Schedules on the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class ManualTimer:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock: timers fire only when :meth:`advance` moves time past them.

    Usage::

        scheduler = ManualScheduler()
        client = PushClient(config, connector=fake, scheduler=scheduler)
        scheduler.advance(5.0)  # fires every timer due within 5s
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._seq = itertools.count()
        self._timers: list[tuple[float, int, ManualTimer]] = []
        self.history: list[float] = []  # delay requested by each call_later

    @property
    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self._now + delay, callback)
        heapq.heappush(self._timers, (timer.when, next(self._seq), timer))
        self.history.append(delay)
        return timer

    def pending(self) -> list[float]:
        """Remaining delays of live timers, soonest first."""
        return sorted(t.when - self._now for _, _, t in self._timers if not t.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward and run due callbacks. Returns how many fired."""
        target = self._now + seconds
        fired = 0
        while self._timers and self._timers[0][0] <= target:
            when, _, timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._now = when
            timer.callback()
            fired += 1
        self._now = target
        return fired
