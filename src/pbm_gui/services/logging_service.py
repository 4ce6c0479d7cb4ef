"""In-process log capture for tour diagnostics.

Attaches a ring-buffer handler to the ``pbm_gui`` logger so a diagnostics
panel (or a bug report) can show what the tour engine decided recently:
fallback resumes after a missing target, discarded stale callbacks, storage
degradation. Each captured record is also published as
``TourEvent.LOG_RECORD_ADDED`` when an event bus is available.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from pathlib import Path
from threading import RLock
from typing import Deque, List, Optional

from .event_bus import EventBus, TourEvent
from .service_locator import services

__all__ = ["LogEntry", "LoggingService", "get_logging_service"]

ENGINE_LOGGER = "pbm_gui"


@dataclass(frozen=True)
class LogEntry:
    level: str
    name: str
    message: str
    created: float
    lineno: int


class _RingBufferHandler(logging.Handler):
    def __init__(self, svc: "LoggingService") -> None:
        super().__init__(level=logging.DEBUG)
        self._svc = svc

    def emit(self, record: logging.LogRecord) -> None:
        self._svc._ingest(record)


class LoggingService:
    def __init__(self, capacity: int = 300, event_bus: EventBus | None = None) -> None:
        self._lock = RLock()
        self._entries: Deque[LogEntry] = deque(maxlen=max(1, capacity))
        self._handler = _RingBufferHandler(self)
        self._event_bus = event_bus
        self._attached_to: logging.Logger | None = None

    def attach(self, logger_name: str = ENGINE_LOGGER) -> None:
        if self._attached_to is not None:
            return
        logger = logging.getLogger(logger_name)
        logger.addHandler(self._handler)
        if logger.level == logging.NOTSET or logger.level > logging.DEBUG:
            logger.setLevel(logging.DEBUG)
        self._attached_to = logger

    def detach(self) -> None:
        if self._attached_to is None:
            return
        self._attached_to.removeHandler(self._handler)
        self._attached_to = None

    def _ingest(self, record: logging.LogRecord) -> None:
        entry = LogEntry(
            level=record.levelname,
            name=record.name,
            message=record.getMessage(),
            created=record.created,
            lineno=record.lineno,
        )
        with self._lock:
            self._entries.append(entry)
        bus = self._event_bus or services.try_get("event_bus")
        if isinstance(bus, EventBus):
            bus.publish(
                TourEvent.LOG_RECORD_ADDED,
                {"level": entry.level, "name": entry.name, "message": entry.message[:120]},
            )

    def recent(self, limit: Optional[int] = None) -> List[LogEntry]:
        with self._lock:
            data = list(self._entries)
        return data[-limit:] if limit is not None else data

    def filter(self, *, level: str | None = None, name_contains: str | None = None) -> List[LogEntry]:
        return [
            e
            for e in self.recent()
            if (not level or e.level == level) and (not name_contains or name_contains in e.name)
        ]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def export_jsonl(self, path: str | Path, *, level: str | None = None) -> int:
        """Write captured entries as JSON Lines; returns the number written."""
        entries = self.filter(level=level)
        with open(path, "w", encoding="utf-8") as f:
            for e in entries:
                f.write(json.dumps(asdict(e), sort_keys=True) + "\n")
        return len(entries)


def get_logging_service() -> LoggingService:
    return services.get_typed("logging_service", LoggingService)
