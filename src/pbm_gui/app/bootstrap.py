"""Compose the tour engine and register it in the service locator.

``create_app`` builds every collaborator once and returns them in an
``AppContext``. Headless mode (tests, scripted runs) takes an element host and
overlay factory from the caller and drives time with a ``ManualScheduler``;
the desktop mode builds the demo window and the PyQt6 adapters around it.

Registered service keys: ``event_bus``, ``tour_settings``, ``logging_service``,
``tour_storage``, ``tour_catalog``, ``localization``, ``router``,
``live_context``, ``tour_progress``, ``tour_sequencer``, ``tour_service``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from ..i18n.direction import Localization, apply_qt_direction
from ..services.element_host import ElementHost, OverlayFactory
from ..services.event_bus import EventBus
from ..services.live_context import LiveContextTracker
from ..services.logging_service import LoggingService
from ..services.routing import InMemoryRouter
from ..services.scheduler import ManualScheduler, Scheduler
from ..services.service_locator import ServiceLocator, services
from ..services.settings_service import TourSettings
from ..services.tour_progress import ProgressStore
from ..services.tour_sequencer import TourSequencer
from ..services.tour_service import TourService
from ..tours.loader import load_catalog
from ..tours.models import TourCatalog
from .storage import JsonFileStorage, KeyValueStorage

__all__ = ["AppContext", "create_app"]

_logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: TourSettings
    event_bus: EventBus
    logging_service: LoggingService
    storage: KeyValueStorage
    catalog: TourCatalog
    localization: Localization
    router: InMemoryRouter
    tracker: LiveContextTracker
    progress: ProgressStore
    scheduler: Scheduler
    host: ElementHost
    sequencer: TourSequencer
    tour_service: TourService
    window: Any = None
    services: ServiceLocator = services

    def shutdown(self) -> None:
        self.sequencer.stop()
        self.tracker.detach_router()
        self.logging_service.detach()


def create_app(
    headless: Optional[bool] = None,
    rtl: Optional[bool] = None,
    storage_dir: Optional[str] = None,
    user_id: Any = None,
    company_id: Any = None,
    *,
    host: Optional[ElementHost] = None,
    overlay_factory: Optional[OverlayFactory] = None,
    scheduler: Optional[Scheduler] = None,
    router: Optional[InMemoryRouter] = None,
    storage: Optional[KeyValueStorage] = None,
    catalog: Optional[TourCatalog] = None,
    settings: Optional[TourSettings] = None,
    language: str = "en",
    business_type: Optional[str] = None,
    role: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> AppContext:
    """Build and register the tour engine.

    ``headless`` defaults to True when a host is supplied. ``rtl`` forces the
    layout direction; None defers to the language and ``PBM_RTL``.
    """
    env = os.environ if env is None else env
    if headless is None:
        headless = host is not None
    if headless and (host is None or overlay_factory is None):
        raise ValueError("headless mode needs an element host and an overlay factory")
    settings = settings or TourSettings.from_env(env)
    if storage_dir is not None:
        settings = replace(settings, storage_dir=storage_dir)
    TourSettings.instance = settings

    bus = EventBus()
    services.register("event_bus", bus, allow_override=True, origin="bootstrap")
    services.register("tour_settings", settings, allow_override=True, origin="bootstrap")
    log_service = LoggingService(event_bus=bus)
    log_service.attach()
    services.register("logging_service", log_service, allow_override=True, origin="bootstrap")

    if storage is None:
        storage = JsonFileStorage(settings.storage_dir)
    if catalog is None:
        catalog = load_catalog()
    localization = Localization.from_env(env, language)
    if rtl is not None:
        localization = Localization(language, force_rtl=rtl)
    router = router or InMemoryRouter()
    tracker = LiveContextTracker()
    tracker.attach_router(router)
    progress = ProgressStore(storage, catalog, bus)

    window = None
    if headless:
        scheduler = scheduler or ManualScheduler()
    else:
        from PyQt6.QtWidgets import QApplication

        from ..views.demo_window import DemoWindow
        from ..views.qt_host import QtElementHost
        from ..views.qt_scheduler import QtScheduler
        from ..views.tour_overlay import qt_overlay_factory

        if QApplication.instance() is None:
            raise RuntimeError("create a QApplication before create_app(headless=False)")
        window = DemoWindow(router)
        apply_qt_direction(window, localization)
        host = host or QtElementHost(window)
        overlay_factory = overlay_factory or qt_overlay_factory(window, host)  # type: ignore[arg-type]
        scheduler = scheduler or QtScheduler(window)

    sequencer = TourSequencer(
        catalog,
        progress,
        tracker,
        router,
        host,
        overlay_factory,
        scheduler,
        localization,
        event_bus=bus,
        settings=settings,
    )
    tour_service = TourService(
        sequencer, progress, tracker, catalog, localization, scheduler, event_bus=bus, settings=settings
    )
    tour_service.set_identity(user_id, company_id, business_type=business_type, role=role)
    if window is not None:
        window.bind(tour_service)

    for key, value in (
        ("tour_storage", storage),
        ("tour_catalog", catalog),
        ("localization", localization),
        ("router", router),
        ("live_context", tracker),
        ("tour_progress", progress),
        ("tour_sequencer", sequencer),
        ("tour_service", tour_service),
    ):
        services.register(key, value, allow_override=True, origin="bootstrap")
    _logger.info("Tour engine ready (%d tours, headless=%s)", len(catalog), headless)

    return AppContext(
        settings=settings,
        event_bus=bus,
        logging_service=log_service,
        storage=storage,
        catalog=catalog,
        localization=localization,
        router=router,
        tracker=tracker,
        progress=progress,
        scheduler=scheduler,
        host=host,
        sequencer=sequencer,
        tour_service=tour_service,
        window=window,
    )
