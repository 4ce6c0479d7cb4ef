import pytest

from pbm_gui.app.bootstrap import create_app
from pbm_gui.app.storage import JsonFileStorage
from pbm_gui.services.event_bus import EventBus
from pbm_gui.services.service_locator import services
from pbm_gui.services.settings_service import TourSettings
from pbm_gui.services.tour_service import TourService


def test_services_registered(ctx):
    assert services.get("tour_service") is ctx.tour_service
    assert ctx.services.get_typed("event_bus", EventBus) is ctx.event_bus
    for key in ("tour_progress", "tour_sequencer", "live_context", "tour_catalog", "router", "localization"):
        assert services.try_get(key) is not None
    assert isinstance(services.get("tour_service"), TourService)


def test_headless_requires_host_and_overlay():
    with pytest.raises(ValueError):
        create_app(headless=True, env={})
    assert services.try_get("event_bus") is None


def test_rtl_from_argument_and_environment(make_ctx):
    assert make_ctx(rtl=True).localization.is_rtl
    assert make_ctx(env={"PBM_RTL": "1"}).localization.is_rtl
    assert not make_ctx(env={"PBM_RTL": "0"}).localization.is_rtl
    assert make_ctx(language="ar").localization.is_rtl


def test_settings_from_environment(make_ctx):
    ctx = make_ctx(env={"PBM_TOUR_INIT_DELAY_MS": "0"})
    assert ctx.settings.init_delay_ms == 0
    assert TourSettings.instance is ctx.settings


def test_json_storage_under_storage_dir(make_ctx, tmp_path, scheduler):
    ctx = make_ctx(storage=None, storage_dir=str(tmp_path))
    assert isinstance(ctx.storage, JsonFileStorage)
    ctx.tour_service.start_tour("basics")
    assert (tmp_path / "tour_storage.json").exists()


def test_engine_logs_are_captured(ctx):
    ctx.tour_service.start_tour("dashboard")
    messages = [e.message for e in ctx.logging_service.recent()]
    assert any("dashboard" in m and "not available" in m for m in messages)


def test_shutdown_detaches(ctx, scheduler):
    ctx.tour_service.start_tour("basics")
    ctx.shutdown()
    assert not ctx.sequencer.is_running
    ctx.router.navigate("/sales")
    assert ctx.tracker.snapshot.current_page == "/dashboard"
