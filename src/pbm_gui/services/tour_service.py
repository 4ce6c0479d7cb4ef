"""UI-facing tour API.

``TourService`` is what menus, forms and the main window talk to. It wraps
the sequencer and the progress store and adds the surrounding behaviour:

 - identity switches reload progress for the new (user, company) pair;
 - ``broadcast`` forwards live-context updates only while a tour runs;
 - tour lists for the help menu, localized to the active language;
 - reset / enable / auto-start toggles;
 - first-run auto-start of the root tour for oil-trading companies.

No method raises for an unavailable tour or failing storage; callers get a
boolean or an empty result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional

from ..i18n.direction import Localization
from ..tours.models import GUIDE_CATEGORIES, TourCatalog, TourDefinition
from .event_bus import EventBus, TourEvent
from .live_context import LiveContextTracker
from .scheduler import Scheduler, TimerHandle
from .settings_service import TourSettings
from .tour_progress import ProgressRecord, ProgressStore
from .tour_sequencer import TourSequencer, TourState

__all__ = ["TourService", "TourSummary", "AUTO_START_BUSINESS_TYPE"]

_logger = logging.getLogger(__name__)

AUTO_START_BUSINESS_TYPE = "oil"


@dataclass(frozen=True)
class TourSummary:
    id: str
    name: str
    description: str
    available: bool
    completed: bool
    progress: int
    step_count: int
    prerequisite: Optional[str] = None
    icon: Optional[str] = None
    category: Optional[str] = None
    estimated_time: Optional[str] = None


class TourService:
    def __init__(
        self,
        sequencer: TourSequencer,
        progress: ProgressStore,
        tracker: LiveContextTracker,
        catalog: TourCatalog,
        localization: Localization,
        scheduler: Scheduler,
        *,
        event_bus: Optional[EventBus] = None,
        settings: Optional[TourSettings] = None,
    ) -> None:
        self.sequencer = sequencer
        self._progress = progress
        self._tracker = tracker
        self._catalog = catalog
        self._l10n = localization
        self._scheduler = scheduler
        self._bus = event_bus
        self._settings = settings or TourSettings.instance
        self._business_type: Optional[str] = None
        self._role: Optional[str] = None
        self._auto_start_triggered = False
        self._auto_start_timer: Optional[TimerHandle] = None
        self._l10n.subscribe(self._on_language_changed)

    # identity ----------------------------------------------------------
    def set_identity(
        self,
        user_id: Any,
        company_id: Any,
        *,
        business_type: Optional[str] = None,
        role: Optional[str] = None,
    ) -> ProgressRecord:
        """Switch user/company; a running tour stops and progress reloads."""
        if self.sequencer.is_running:
            self.sequencer.stop()
        self._cancel_auto_start()
        self._business_type = business_type
        self._role = role
        self._tracker.reset()
        record = self._progress.load(user_id, company_id)
        _logger.debug("Loaded tour progress for %s", self._progress.key or "anonymous session")
        return record

    @property
    def role(self) -> Optional[str]:
        return self._role

    @property
    def record(self) -> ProgressRecord:
        return self._progress.current

    # running tour -------------------------------------------------------
    @property
    def is_running(self) -> bool:
        return self.sequencer.is_running

    @property
    def current_tour_id(self) -> Optional[str]:
        return self.sequencer.current_tour_id

    @property
    def current_index(self) -> Optional[int]:
        return self.sequencer.current_index

    @property
    def state(self) -> TourState:
        return self.sequencer.state

    def start_tour(self, tour_id: str) -> bool:
        return self.sequencer.start(tour_id)

    def stop_tour(self) -> None:
        self.sequencer.stop()

    def skip_tour(self) -> None:
        self.sequencer.skip()

    def broadcast(self, partial: Optional[Mapping[str, Any]] = None, **fields: Any) -> bool:
        """Report live context from a form or modal; ignored when no tour runs."""
        if not self.sequencer.is_running:
            return False
        self._tracker.update(partial, **fields)
        return True

    # queries -------------------------------------------------------------
    def is_tour_available(self, tour_id: str) -> bool:
        return self._progress.is_available(tour_id)

    def is_tour_completed(self, tour_id: str) -> bool:
        return self._progress.is_completed(tour_id)

    def get_tour_progress(self, tour_id: str) -> int:
        return self._progress.progress_percent(tour_id)

    def _summary(self, tour: TourDefinition) -> TourSummary:
        lang = self._l10n.current_language
        return TourSummary(
            id=tour.id,
            name=tour.name.get(lang),
            description=tour.description.get(lang),
            available=self._progress.is_available(tour.id),
            completed=self._progress.is_completed(tour.id),
            progress=self._progress.progress_percent(tour.id),
            step_count=tour.step_count,
            prerequisite=tour.prerequisite,
            icon=tour.icon,
            category=tour.category,
            estimated_time=tour.estimated_time,
        )

    def get_tours_list(self) -> List[TourSummary]:
        return [self._summary(t) for t in self._catalog.legacy_tours()]

    def get_workflow_guides_by_category(self, role: Optional[str] = None) -> Dict[str, List[TourSummary]]:
        """Guides visible to ``role`` (default: the identity's role), grouped by category."""
        grouped = self._catalog.guides_by_category(role if role is not None else self._role)
        return {cat: [self._summary(g) for g in grouped.get(cat, [])] for cat in GUIDE_CATEGORIES}

    # preferences -----------------------------------------------------------
    def reset_all_tours(self) -> None:
        if self.sequencer.is_running:
            self.sequencer.stop()
        self._progress.save(ProgressStore.reset())

    def toggle_tour_enabled(self) -> bool:
        record = replace(self.record, tour_enabled=not self.record.tour_enabled)
        self._progress.save(record)
        if not record.tour_enabled and self.sequencer.is_running:
            self.sequencer.stop()
        return record.tour_enabled

    def toggle_auto_start(self) -> bool:
        record = replace(self.record, auto_start_enabled=not self.record.auto_start_enabled)
        self._progress.save(record)
        return record.auto_start_enabled

    def mark_welcome_seen(self) -> None:
        self._progress.save(replace(self.record, has_seen_welcome=True))

    # auto-start ------------------------------------------------------------
    def should_auto_start_basics(self) -> bool:
        record = self.record
        return (
            record.tour_enabled
            and record.auto_start_enabled
            and not record.has_seen_welcome
            and self._catalog.root_tour_id not in record.completed_tours
            and self._business_type == AUTO_START_BUSINESS_TYPE
        )

    def maybe_auto_start(self) -> bool:
        """Schedule the first-run tour once per session; True when scheduled."""
        if self._auto_start_triggered or not self.should_auto_start_basics():
            return False
        self._auto_start_triggered = True
        self._auto_start_timer = self._scheduler.call_later(self._settings.auto_start_delay_ms, self._auto_start)
        return True

    def _auto_start(self) -> None:
        self._auto_start_timer = None
        self.mark_welcome_seen()
        self.start_tour(self._catalog.root_tour_id)

    def _cancel_auto_start(self) -> None:
        timer, self._auto_start_timer = self._auto_start_timer, None
        if timer is not None:
            timer.cancel()

    # language ----------------------------------------------------------------
    def set_language(self, language: str) -> bool:
        return self._l10n.set_language(language)

    def _on_language_changed(self, language: str) -> None:
        self.sequencer.refresh_language(language)
        if self._bus is not None:
            self._bus.publish(TourEvent.LANGUAGE_CHANGED, {"language": language, "rtl": self._l10n.is_rtl})
