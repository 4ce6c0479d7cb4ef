"""Per (user, company) tour progress and its persistence.

A ``ProgressRecord`` is immutable; the operations below return updated copies.
``ProgressStore`` keeps the record for the active identity in ``current``,
serialises it as JSON under ``tour_<userId>_<companyId>`` and survives any
storage failure by continuing in memory for the rest of the session.

Availability rule: the catalog root (``basics``) is always available; every
other legacy tour needs the root completed plus its own prerequisite;
workflow guides only need their own prerequisite.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from ..tours.models import TourCatalog
from .errors import StorageUnavailableError
from .event_bus import EventBus, TourEvent

__all__ = ["ProgressRecord", "ProgressStore", "COMPLETE_SENTINEL", "storage_key"]

_logger = logging.getLogger(__name__)

COMPLETE_SENTINEL = 999


def storage_key(user_id: Any, company_id: Any) -> Optional[str]:
    if user_id in (None, "") or company_id in (None, ""):
        return None
    return f"tour_{user_id}_{company_id}"


@dataclass(frozen=True)
class ProgressRecord:
    completed_tours: Tuple[str, ...] = ()
    tour_progress: Mapping[str, int] = field(default_factory=dict)
    tour_enabled: bool = True
    auto_start_enabled: bool = True
    has_seen_welcome: bool = False
    last_active_tour: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "completedTours": list(self.completed_tours),
            "tourProgress": dict(self.tour_progress),
            "tourEnabled": self.tour_enabled,
            "autoStartEnabled": self.auto_start_enabled,
            "hasSeenWelcome": self.has_seen_welcome,
            "lastActiveTour": self.last_active_tour,
        }

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "ProgressRecord":
        """Stored fields override defaults; unknown or mistyped fields are ignored."""
        base = cls()
        completed = obj.get("completedTours", base.completed_tours)
        progress = obj.get("tourProgress", {})
        return cls(
            completed_tours=tuple(dict.fromkeys(str(t) for t in completed)) if isinstance(completed, list) else (),
            tour_progress={str(k): int(v) for k, v in progress.items() if isinstance(v, int)}
            if isinstance(progress, Mapping)
            else {},
            tour_enabled=bool(obj.get("tourEnabled", base.tour_enabled)),
            auto_start_enabled=bool(obj.get("autoStartEnabled", base.auto_start_enabled)),
            has_seen_welcome=bool(obj.get("hasSeenWelcome", base.has_seen_welcome)),
            last_active_tour=obj.get("lastActiveTour"),
        )


class ProgressStore:
    def __init__(self, storage: Any, catalog: TourCatalog, event_bus: Optional[EventBus] = None) -> None:
        self._storage = storage
        self._catalog = catalog
        self._bus = event_bus
        self._key: Optional[str] = None
        self._memory: Dict[str, ProgressRecord] = {}
        self.degraded = False
        self.current = ProgressRecord()

    @property
    def key(self) -> Optional[str]:
        return self._key

    def _degrade(self, exc: StorageUnavailableError) -> None:
        if not self.degraded:
            _logger.warning("Tour progress storage unavailable, continuing in memory: %s", exc)
            self.degraded = True
            if self._bus is not None:
                self._bus.publish(TourEvent.STORAGE_DEGRADED, {"key": self._key, "error": str(exc)})

    # persistence -------------------------------------------------------
    def load(self, user_id: Any, company_id: Any) -> ProgressRecord:
        """Load (or default) the record for an identity and make it current."""
        self._key = storage_key(user_id, company_id)
        record = ProgressRecord()
        if self._key is None:
            self.current = record
            return record
        if self._key in self._memory:
            record = self._memory[self._key]
        elif not self.degraded:
            try:
                raw = self._storage.get(self._key)
            except StorageUnavailableError as exc:
                self._degrade(exc)
                raw = None
            if raw:
                try:
                    data = json.loads(raw)
                    if not isinstance(data, dict):
                        raise ValueError("progress document is not an object")
                    record = ProgressRecord.from_json(data)
                except (ValueError, TypeError) as exc:
                    _logger.warning("Discarding unreadable tour progress for %s: %s", self._key, exc)
        self.current = record
        return record

    def save(self, record: ProgressRecord) -> bool:
        """Make ``record`` current and persist it; never raises.

        Returns True when the write reached storage.
        """
        self.current = record
        if self._key is None:
            return False
        self._memory[self._key] = record
        if self.degraded:
            return False
        try:
            self._storage.set(self._key, json.dumps(record.to_json()))
        except StorageUnavailableError as exc:
            self._degrade(exc)
            return False
        if self._bus is not None:
            self._bus.publish(TourEvent.PROGRESS_SAVED, {"key": self._key})
        return True

    # queries -----------------------------------------------------------
    def is_completed(self, tour_id: str, record: Optional[ProgressRecord] = None) -> bool:
        record = record or self.current
        return tour_id in record.completed_tours

    def is_available(self, tour_id: str, record: Optional[ProgressRecord] = None) -> bool:
        record = record or self.current
        tour = self._catalog.find(tour_id)
        if tour is None:
            return False
        if tour.id == self._catalog.root_tour_id:
            return True
        if not tour.is_workflow_guide and self._catalog.root_tour_id not in record.completed_tours:
            return False
        if tour.prerequisite:
            return tour.prerequisite in record.completed_tours
        return True

    def progress_percent(self, tour_id: str, record: Optional[ProgressRecord] = None) -> int:
        record = record or self.current
        if tour_id in record.completed_tours:
            return 100
        tour = self._catalog.find(tour_id)
        total = tour.step_count if tour else 0
        if total == 0:
            return 0
        return round(record.tour_progress.get(tour_id, 0) / total * 100)

    # updates -----------------------------------------------------------
    @staticmethod
    def mark_completed(tour_id: str, record: ProgressRecord) -> ProgressRecord:
        completed = record.completed_tours
        if tour_id not in completed:
            completed = completed + (tour_id,)
        progress = dict(record.tour_progress)
        progress[tour_id] = COMPLETE_SENTINEL
        return replace(record, completed_tours=completed, tour_progress=progress)

    @staticmethod
    def update_step_progress(tour_id: str, step: int, record: ProgressRecord) -> ProgressRecord:
        progress = dict(record.tour_progress)
        progress[tour_id] = step
        return replace(record, tour_progress=progress)

    @staticmethod
    def reset() -> ProgressRecord:
        """Back to defaults; the welcome flag stays set."""
        return ProgressRecord(has_seen_welcome=True)
