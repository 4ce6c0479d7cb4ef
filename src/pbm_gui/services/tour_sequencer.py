"""Step sequencer: the tour state machine.

One ``TourSequencer`` owns at most one ``TourSession``. Every mutation goes
through the transitions below and runs on the UI thread:

    IDLE -> INITIALIZING -> ACTIVE / WAITING_FOR_ACTION
                                  |  next / previous / detection / auto-advance
                                  v
                         PAUSED_FOR_INTERACTION -> (resume) -> ACTIVE ...
                                  |
                                  v
                         COMPLETED | ABORTED

Each session gets a generation number. Every deferred callback (timers,
element listeners, overlay buttons) captures the generation and the step index
it was registered for; once the session is torn down or the index has moved,
the callback is discarded. Teardown cancels timers and detaches listeners
synchronously, so nothing registered for a superseded tour can run against
the next one.

While paused no overlay exists. A single completion listener on the step's
target element resumes the tour at ``resume_index``; when the target is
missing a bounded fallback timer resumes anyway.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Optional

from ..i18n.direction import Localization
from ..tours.models import TourCatalog, TourDefinition, localize_step
from .context_matcher import first_valid_index, is_valid
from .element_host import (
    Detach,
    ElementHost,
    OverlayCallbacks,
    OverlayFactory,
    PointerEvent,
    StepView,
    TourElement,
    TourOverlay,
)
from .errors import StaleCallbackError, TargetNotFoundError, TourNotAvailableError
from .event_bus import EventBus, TourEvent
from .interaction_detector import InteractionDetector
from .live_context import LiveContext, LiveContextTracker
from .routing import Router, route_satisfied
from .scheduler import Scheduler, TimerGroup
from .scroll_coordinator import ScrollCoordinator
from .settings_service import TourSettings
from .tour_progress import ProgressStore

__all__ = ["TourState", "TourSession", "TourSequencer"]

_logger = logging.getLogger(__name__)

_STEP_KEY = "step"
_RESUME_KEY = "resume"


class TourState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    ACTIVE = "active"
    WAITING_FOR_ACTION = "waiting_for_action"
    PAUSED_FOR_INTERACTION = "paused_for_interaction"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class TourSession:
    tour: TourDefinition
    generation: int
    current_index: int = 0
    resume_index: Optional[int] = None
    is_paused: bool = False
    action_detected: bool = False
    displayed: bool = False

    @property
    def tour_id(self) -> str:
        return self.tour.id

    @property
    def total_steps(self) -> int:
        return self.tour.step_count

    @property
    def is_workflow_guide(self) -> bool:
        return self.tour.is_workflow_guide

    @property
    def is_last_step(self) -> bool:
        return self.current_index >= self.total_steps - 1


class TourSequencer:
    def __init__(
        self,
        catalog: TourCatalog,
        progress: ProgressStore,
        tracker: LiveContextTracker,
        router: Router,
        host: ElementHost,
        overlay_factory: OverlayFactory,
        scheduler: Scheduler,
        localization: Localization,
        *,
        event_bus: Optional[EventBus] = None,
        settings: Optional[TourSettings] = None,
        detector: Optional[InteractionDetector] = None,
        scroller: Optional[ScrollCoordinator] = None,
    ) -> None:
        self._catalog = catalog
        self._progress = progress
        self._tracker = tracker
        self._router = router
        self._host = host
        self._overlay_factory = overlay_factory
        self._scheduler = scheduler
        self._l10n = localization
        self._bus = event_bus
        self._settings = settings or TourSettings.instance
        self._detector = detector or InteractionDetector(host, scheduler, self._settings)
        self._scroller = scroller or ScrollCoordinator(host)

        self._session: Optional[TourSession] = None
        self._generation = 0
        self._state = TourState.IDLE
        self._overlay: Optional[TourOverlay] = None
        self._session_timers = TimerGroup(scheduler)
        self._step_timers = TimerGroup(scheduler)
        self._dismiss_detach: Optional[Detach] = None
        self._context_unsub: Optional[Callable[[], None]] = None
        self._route_unsub: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # introspection
    @property
    def state(self) -> TourState:
        return self._state

    @property
    def session(self) -> Optional[TourSession]:
        return self._session

    @property
    def is_running(self) -> bool:
        return self._session is not None

    @property
    def current_tour_id(self) -> Optional[str]:
        return self._session.tour_id if self._session else None

    @property
    def current_index(self) -> Optional[int]:
        return self._session.current_index if self._session else None

    @property
    def overlay(self) -> Optional[TourOverlay]:
        return self._overlay

    def _set_state(self, state: TourState) -> None:
        if state is not self._state:
            _logger.debug(
                "Tour %s: %s -> %s", self.current_tour_id or "-", self._state.value, state.value
            )
            self._state = state

    def _publish(self, event: TourEvent, **payload: Any) -> None:
        if self._bus is not None:
            self._bus.publish(event, payload)

    def _ensure_fresh(self, generation: int, index: Optional[int], what: str) -> None:
        session = self._session
        stale = session is None or session.generation != generation
        if not stale and index is not None:
            stale = session.current_index != index or session.is_paused
        if stale:
            raise StaleCallbackError(f"Discarded {what} for generation {generation} index {index}")

    def _is_stale(self, generation: int, index: Optional[int] = None, what: str = "callback") -> bool:
        try:
            self._ensure_fresh(generation, index, what)
        except StaleCallbackError as exc:
            _logger.debug("%s", exc)
            return True
        return False

    # ------------------------------------------------------------------
    # start
    def _check_available(self, tour_id: str) -> TourDefinition:
        tour = self._catalog.find(tour_id)
        if tour is None:
            raise TourNotAvailableError(tour_id, "unknown tour")
        record = self._progress.current
        if not record.tour_enabled:
            raise TourNotAvailableError(tour_id, "tours are disabled")
        if not self._progress.is_available(tour_id, record):
            missing = tour.prerequisite or self._catalog.root_tour_id
            raise TourNotAvailableError(tour_id, f"prerequisite {missing} not completed")
        if tour.step_count == 0:
            raise TourNotAvailableError(tour_id, "tour has no steps")
        return tour

    def start(self, tour_id: str) -> bool:
        """Start ``tour_id``; returns False (and changes nothing) when unavailable."""
        try:
            tour = self._check_available(tour_id)
        except TourNotAvailableError as exc:
            _logger.info("%s", exc)
            return False
        if self._session is not None:
            if self._session.tour_id == tour_id:
                return True
            self._teardown()

        self._progress.save(replace(self._progress.current, last_active_tour=tour_id))
        self._generation += 1
        session = TourSession(tour=tour, generation=self._generation)
        self._session = session
        self._session_timers = TimerGroup(self._scheduler)
        self._set_state(TourState.INITIALIZING)
        self._context_unsub = self._tracker.subscribe(self._on_context_changed)
        self._publish(TourEvent.TOUR_STARTED, tour_id=tour_id, guide=tour.is_workflow_guide)

        route = self._required_route(session)
        if route and not route_satisfied(route, self._router.current_path()):
            self._navigate_then_init(session.generation, route)
        else:
            self._session_timers.call_later(self._settings.init_delay_ms, lambda: self._initialize(session.generation))
        return True

    def _start_index(self, session: TourSession) -> int:
        if not session.is_workflow_guide:
            return 0
        index = first_valid_index(session.tour.steps, self._tracker.snapshot)
        return index if index != -1 else 0

    def _required_route(self, session: TourSession) -> Optional[str]:
        index = self._start_index(session)
        if index == 0:
            return session.tour.first_route()
        return session.tour.steps[index].route

    def _navigate_then_init(self, generation: int, route: str) -> None:
        waiting = {"done": False}

        def _on_route(_path: str) -> None:
            if waiting["done"] or self._is_stale(generation, what="navigation"):
                return
            waiting["done"] = True
            self._clear_route_wait()
            self._session_timers.call_later(self._settings.init_delay_ms, lambda: self._initialize(generation))

        self._clear_route_wait()
        self._route_unsub = self._router.subscribe(_on_route)
        _logger.debug("Navigating to %s before initialising", route)
        self._router.navigate(route)
        if not waiting["done"] and route_satisfied(route, self._router.current_path()):
            _on_route(self._router.current_path())

    def _clear_route_wait(self) -> None:
        unsub, self._route_unsub = self._route_unsub, None
        if unsub is not None:
            unsub()

    def _initialize(self, generation: int) -> None:
        if self._is_stale(generation, what="initialisation"):
            return
        session = self._session
        if session is None:
            return
        self._create_overlay(generation)
        self._highlight(self._start_index(session))

    def _create_overlay(self, generation: int) -> TourOverlay:
        def guarded(action: Callable[[], Any]) -> Callable[[], None]:
            def _run() -> None:
                if not self._is_stale(generation, what="overlay action"):
                    action()

            return _run

        overlay = self._overlay_factory(
            OverlayCallbacks(
                on_next=guarded(self.next),
                on_previous=guarded(self.previous),
                on_close=guarded(self.stop),
                on_skip=guarded(self.skip),
                on_pause=guarded(self.pause),
            )
        )
        self._overlay = overlay
        return overlay

    # ------------------------------------------------------------------
    # step display
    def _clear_step(self) -> None:
        self._step_timers.cancel_all()
        self._detector.detach(_STEP_KEY)
        self._scroller.stop_forwarding()
        dismiss, self._dismiss_detach = self._dismiss_detach, None
        if dismiss is not None:
            dismiss()

    def _highlight(self, index: int) -> None:
        session = self._session
        if session is None:
            return
        self._clear_step()
        session.current_index = index
        session.action_detected = False
        session.displayed = False
        step = session.tour.steps[index]
        if step.route and not route_satisfied(step.route, self._router.current_path()):
            generation = session.generation
            self._router.navigate(step.route)
            self._step_timers.call_later(self._settings.init_delay_ms, lambda: self._show(generation, index))
            return
        self._show(session.generation, index)

    def build_view(self, index: int) -> StepView:
        session = self._session
        if session is None:
            raise RuntimeError("No tour is running")
        step = localize_step(session.tour.steps[index], self._l10n.current_language)
        tr = self._l10n.translate
        total = session.total_steps
        is_last = index >= total - 1
        rtl = self._l10n.is_rtl
        classes = ["pbm-tour-popover"]
        if rtl:
            classes.append("rtl")
        if step.context is not None and step.context.require_modal:
            classes.append("in-modal")
        return StepView(
            index=index,
            total=total,
            selector=step.element,
            title=step.title,
            body=step.description,
            side=step.definition.popover.side,
            align=step.definition.popover.align,
            progress_text=tr("tour.progress", current=index + 1, total=total),
            next_label=tr("tour.done") if is_last else tr("tour.next"),
            previous_label=tr("tour.previous"),
            close_label=tr("tour.close"),
            skip_label=tr("tour.skip"),
            pause_label=tr("tour.got_it"),
            show_next=not step.waits_for_click,
            show_previous=index > 0,
            show_pause=not is_last,
            action_hint=tr("tour.action_hint") if step.waits_for_click else None,
            rtl=rtl,
            popover_class=" ".join(classes),
        )

    def _show(self, generation: int, index: int) -> None:
        if self._is_stale(generation, index, "step display"):
            return
        session = self._session
        if session is None:
            return
        overlay = self._overlay
        if overlay is None:
            overlay = self._create_overlay(generation)
        overlay.render(self.build_view(index))
        session.displayed = True
        step = session.tour.steps[index]
        self._set_state(TourState.WAITING_FOR_ACTION if step.waits_for_click else TourState.ACTIVE)
        self._publish(TourEvent.STEP_SHOWN, tour_id=session.tour_id, index=index, total=session.total_steps)

        selector = step.element
        s = self._settings

        def _scroll() -> None:
            if self._is_stale(generation, index, "scroll"):
                return
            self._scroller.ensure_visible(selector)
            self._scroller.forward_wheel(selector)

        self._step_timers.call_later(s.scroll_delay_ms, _scroll)
        if index < session.total_steps - 1:
            self._step_timers.call_later(s.listener_attach_delay_ms, lambda: self._arm_step(generation, index, selector))

    def _arm_step(self, generation: int, index: int, selector: str) -> None:
        if self._is_stale(generation, index, "listener attach"):
            return
        self._detector.attach(
            selector, lambda interaction: self._on_detected(generation, index, interaction), key=_STEP_KEY
        )
        self._step_timers.call_later(
            self._settings.dismiss_arm_delay_ms, lambda: self._arm_dismiss(generation, index, selector)
        )

    def _arm_dismiss(self, generation: int, index: int, selector: str) -> None:
        if self._is_stale(generation, index, "dismiss arm"):
            return
        self._dismiss_detach = self._host.listen_clicks(
            lambda event: self._on_document_click(generation, index, selector, event)
        )

    # ------------------------------------------------------------------
    # advancing
    def _record_progress(self, index: int) -> None:
        session = self._session
        if session is None:
            return
        record = ProgressStore.update_step_progress(session.tour_id, index, self._progress.current)
        if index % self._settings.progress_save_every == 0:
            self._progress.save(record)
        else:
            self._progress.current = record

    def _advance(self, index: int) -> None:
        self._record_progress(index)
        self._highlight(index)

    def _on_detected(self, generation: int, index: int, interaction: str) -> None:
        if self._is_stale(generation, index, "detection"):
            return
        session = self._session
        if session is None:
            return
        session.action_detected = True
        self._publish(TourEvent.ACTION_DETECTED, tour_id=session.tour_id, index=index, interaction=interaction)
        if index + 1 < session.total_steps:
            self._advance(index + 1)

    def next(self) -> bool:
        """Explicit "Next"; blocked while a waiting step's action is outstanding."""
        session = self._session
        if session is None or session.is_paused or self._overlay is None or not session.displayed:
            return False
        index = session.current_index
        step = session.tour.steps[index]
        if step.waits_for_click and not session.action_detected:
            self._overlay.show_warning(self._l10n.translate("tour.action_required"))
            generation = session.generation
            self._step_timers.call_later(
                self._settings.warning_duration_ms, lambda: self._clear_warning(generation, index)
            )
            self._publish(TourEvent.ACTION_BLOCKED, tour_id=session.tour_id, index=index)
            return False
        if session.is_last_step:
            self._teardown(completed=True)
            return True
        self._advance(index + 1)
        return True

    def _clear_warning(self, generation: int, index: int) -> None:
        if not self._is_stale(generation, index, "warning clear") and self._overlay is not None:
            self._overlay.clear_warning()

    def previous(self) -> bool:
        session = self._session
        if session is None or session.is_paused or self._overlay is None or session.current_index == 0:
            return False
        self._highlight(session.current_index - 1)
        return True

    def _on_context_changed(self, ctx: LiveContext) -> None:
        session = self._session
        if session is None or not session.is_workflow_guide or session.is_paused or not session.displayed:
            return
        if self._overlay is None:
            return
        index = session.current_index
        if not session.tour.steps[index].waits_for_click or index >= session.total_steps - 1:
            return
        if is_valid(session.tour.steps[index + 1], ctx):
            _logger.debug("Context reached step %d of %s, advancing", index + 1, session.tour_id)
            self._advance(index + 1)

    # ------------------------------------------------------------------
    # pause / resume
    def _on_document_click(self, generation: int, index: int, selector: str, event: PointerEvent) -> None:
        if self._is_stale(generation, index, "outside click") or self._overlay is None:
            return
        target = event.target
        if target is not None and self._overlay.contains(target):
            return
        event.stop_propagation()
        highlighted = self._host.query(selector)
        on_highlighted = target is not None and highlighted is not None and highlighted.contains(target)
        self.pause(redispatch_to=target if on_highlighted else None)

    def _require_target(self, selector: str) -> TourElement:
        element = self._host.query(selector)
        if element is None:
            raise TargetNotFoundError(selector)
        return element

    def pause(self, redispatch_to: Optional[TourElement] = None) -> bool:
        """Remove the overlay so the page is freely usable, resuming at the next step."""
        session = self._session
        if session is None or session.is_paused or self._overlay is None or not session.displayed:
            return False
        generation = session.generation
        index = session.current_index
        selector = session.tour.steps[index].element
        self._clear_step()
        session.is_paused = True
        session.resume_index = index + 1
        overlay, self._overlay = self._overlay, None
        overlay.destroy()
        self._set_state(TourState.PAUSED_FOR_INTERACTION)
        self._publish(TourEvent.TOUR_PAUSED, tour_id=session.tour_id, index=index, resume_index=index + 1)

        try:
            self._require_target(selector)
        except TargetNotFoundError as exc:
            _logger.warning("%s; resuming %s in %d ms", exc, session.tour_id, self._settings.resume_fallback_ms)
            self._session_timers.call_later(self._settings.resume_fallback_ms, lambda: self._resume(generation))
        else:
            self._detector.attach(selector, lambda _interaction: self._resume(generation), key=_RESUME_KEY)
            if redispatch_to is not None:
                target = redispatch_to
                self._session_timers.call_later(
                    self._settings.redispatch_delay_ms, lambda: self._redispatch(generation, target)
                )
        return True

    def _redispatch(self, generation: int, target: TourElement) -> None:
        if not self._is_stale(generation, what="click re-dispatch"):
            target.dispatch_click()

    def _resume(self, generation: int) -> None:
        session = self._session
        if self._is_stale(generation, what="resume") or session is None or not session.is_paused:
            return
        self._detector.detach(_RESUME_KEY)
        resume = session.resume_index if session.resume_index is not None else session.current_index + 1
        session.is_paused = False
        session.resume_index = None
        if resume >= session.total_steps:
            session.current_index = session.total_steps - 1
            self._teardown(completed=True)
            return
        self._set_state(TourState.INITIALIZING)
        self._session_timers.call_later(self._settings.resume_delay_ms, lambda: self._reinitialize(generation, resume))

    def _reinitialize(self, generation: int, index: int) -> None:
        if self._is_stale(generation, what="re-initialisation"):
            return
        session = self._session
        if session is None:
            return
        self._create_overlay(generation)
        self._record_progress(index)
        self._highlight(index)
        self._publish(TourEvent.TOUR_RESUMED, tour_id=session.tour_id, index=index)

    # ------------------------------------------------------------------
    # teardown
    def stop(self) -> None:
        """Close the tour: completed when on the final step, aborted otherwise."""
        self._teardown()

    def skip(self) -> None:
        self._teardown()

    def refresh_language(self, _language: Optional[str] = None) -> None:
        """Re-render the current step in the active language; index and state are kept."""
        session = self._session
        if session is None or self._overlay is None or session.is_paused or not session.displayed:
            return
        self._overlay.render(self.build_view(session.current_index))

    def _teardown(self, completed: Optional[bool] = None) -> None:
        session = self._session
        if session is None:
            return
        if completed is None:
            completed = session.displayed and session.is_last_step
        self._clear_step()
        self._session_timers.cancel_all()
        self._detector.detach_all()
        self._clear_route_wait()
        unsub, self._context_unsub = self._context_unsub, None
        if unsub is not None:
            unsub()
        overlay, self._overlay = self._overlay, None
        if overlay is not None:
            overlay.destroy()
        self._session = None

        if completed:
            self._progress.save(ProgressStore.mark_completed(session.tour_id, self._progress.current))
            self._state = TourState.COMPLETED
            _logger.debug("Tour %s completed", session.tour_id)
            self._publish(TourEvent.TOUR_COMPLETED, tour_id=session.tour_id)
        else:
            self._progress.save(self._progress.current)
            self._state = TourState.ABORTED
            _logger.debug("Tour %s aborted at step %d", session.tour_id, session.current_index)
            self._publish(TourEvent.TOUR_ABORTED, tour_id=session.tour_id, index=session.current_index)
