"""Synchronous publish/subscribe for tour lifecycle notifications.

Producers (sequencer, progress store, logging service) publish ``TourEvent``
names with a small dict payload; consumers (help menu, diagnostics panel,
tests) subscribe. Handlers run on the publishing thread, in subscription
order, after the subscriber list has been copied so a handler may
(un)subscribe while being dispatched. A failing handler is recorded in
``errors`` and does not stop the remaining handlers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from threading import RLock
from time import perf_counter
from typing import Any, Dict, List, Protocol

__all__ = ["TourEvent", "Event", "EventBus", "EventHandler", "Subscription"]


class TourEvent(str, Enum):
    TOUR_STARTED = "tour_started"
    STEP_SHOWN = "step_shown"
    ACTION_DETECTED = "action_detected"
    ACTION_BLOCKED = "action_blocked"
    TOUR_PAUSED = "tour_paused"
    TOUR_RESUMED = "tour_resumed"
    TOUR_COMPLETED = "tour_completed"
    TOUR_ABORTED = "tour_aborted"
    PROGRESS_SAVED = "progress_saved"
    STORAGE_DEGRADED = "storage_degraded"
    LANGUAGE_CHANGED = "language_changed"
    LOG_RECORD_ADDED = "log_record_added"


@dataclass
class Event:
    name: str
    payload: Any
    timestamp: float


class EventHandler(Protocol):
    def __call__(self, event: Event) -> None: ...  # pragma: no cover - structural


@dataclass
class Subscription:
    event: str
    handler: EventHandler
    once: bool
    active: bool = True

    def cancel(self) -> None:
        self.active = False


def _key(name: str | TourEvent) -> str:
    return name.value if isinstance(name, TourEvent) else name


class EventBus:
    def __init__(self) -> None:
        self._lock = RLock()
        self._subs: Dict[str, List[Subscription]] = {}
        self._errors: List[tuple[Event, BaseException]] = []

    def subscribe(
        self, name: str | TourEvent, handler: EventHandler, *, once: bool = False
    ) -> Subscription:
        sub = Subscription(event=_key(name), handler=handler, once=once)
        with self._lock:
            self._subs.setdefault(sub.event, []).append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            bucket = self._subs.get(sub.event, [])
            self._subs[sub.event] = [s for s in bucket if s is not sub]
            if not self._subs[sub.event]:
                del self._subs[sub.event]
        sub.active = False

    def publish(self, name: str | TourEvent, payload: Any = None) -> Event:
        evt = Event(name=_key(name), payload=payload, timestamp=perf_counter())
        with self._lock:
            subs = list(self._subs.get(evt.name, ()))
        for sub in subs:
            if not sub.active:
                continue
            if sub.once:
                self.unsubscribe(sub)
            try:
                sub.handler(evt)
            except Exception as exc:  # noqa: BLE001 - isolate subscriber failures
                with self._lock:
                    self._errors.append((evt, exc))
        return evt

    def subscriber_count(self, name: str | TourEvent) -> int:
        with self._lock:
            return sum(1 for s in self._subs.get(_key(name), ()) if s.active)

    @property
    def errors(self) -> List[tuple[Event, BaseException]]:
        with self._lock:
            return list(self._errors)

    def clear(self) -> None:
        with self._lock:
            self._subs.clear()
            self._errors.clear()
