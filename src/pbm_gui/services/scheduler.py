"""Timer scheduling for settle delays and bounded fallbacks.

The engine never sleeps; every delay (detection settle, resume fallback,
initialisation settle) goes through a ``Scheduler``. Two implementations:

 - ``ManualScheduler``: deterministic virtual clock advanced explicitly. Used in
   headless runs and tests.
 - ``pbm_gui.views.qt_scheduler.QtScheduler``: ``QTimer`` backed, used when a
   QApplication event loop is running.

``TimerGroup`` tracks handles registered on behalf of one owner (a tour session
or one highlighted step) so the owner can cancel all of them synchronously.
"""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable, List, Protocol

__all__ = ["TimerHandle", "Scheduler", "ManualScheduler", "TimerGroup"]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...  # pragma: no cover - structural

    @property
    def active(self) -> bool: ...  # pragma: no cover - structural


class Scheduler(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


@dataclass(order=True)
class _ManualTimer:
    due_ms: int
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)
    fired: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)


class ManualScheduler:
    """Virtual-time scheduler.

    ``advance(ms)`` runs every timer due within the window in due order,
    including timers scheduled by callbacks while advancing.
    """

    def __init__(self) -> None:
        self._now = 0
        self._queue: List[_ManualTimer] = []
        self._seq = itertools.count()

    @property
    def now_ms(self) -> int:
        return self._now

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(self._now + max(0, int(delay_ms)), next(self._seq), callback)
        heapq.heappush(self._queue, timer)
        return timer

    def pending_count(self) -> int:
        return sum(1 for t in self._queue if t.active)

    def advance(self, ms: int) -> None:
        target = self._now + max(0, int(ms))
        while self._queue and self._queue[0].due_ms <= target:
            timer = heapq.heappop(self._queue)
            if not timer.active:
                continue
            self._now = timer.due_ms
            timer.fired = True
            timer.callback()
        self._now = target

    def run_all(self, limit: int = 10_000) -> None:
        """Drain the queue regardless of due time (bounded against runaway loops)."""
        for _ in range(limit):
            live = [t for t in self._queue if t.active]
            if not live:
                return
            self.advance(min(t.due_ms for t in live) - self._now)
        raise RuntimeError("ManualScheduler.run_all exceeded iteration limit")


class TimerGroup:
    """Handles registered for one owner, cancellable in one call."""

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._handles: List[TimerHandle] = []

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        self._handles = [h for h in self._handles if h.active]
        handle = self._scheduler.call_later(delay_ms, callback)
        self._handles.append(handle)
        return handle

    def cancel_all(self) -> None:
        handles, self._handles = self._handles, []
        for h in handles:
            h.cancel()

    def __len__(self) -> int:
        return sum(1 for h in self._handles if h.active)
