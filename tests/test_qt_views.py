import pytest

pytest.importorskip("PyQt6.QtWidgets")

from PyQt6.QtTest import QTest  # noqa: E402
from PyQt6.QtWidgets import QComboBox, QLineEdit, QPushButton, QScrollArea, QVBoxLayout, QWidget  # noqa: E402

from pbm_gui.app.bootstrap import create_app  # noqa: E402
from pbm_gui.app.storage import MemoryStorage  # noqa: E402
from pbm_gui.services.element_host import OverlayCallbacks, Rect, StepView  # noqa: E402
from pbm_gui.services.interaction_detector import ElementKind, classify  # noqa: E402
from pbm_gui.services.settings_service import TourSettings  # noqa: E402
from pbm_gui.views.qt_host import QtElement, QtElementHost  # noqa: E402
from pbm_gui.views.qt_scheduler import QtScheduler  # noqa: E402
from pbm_gui.views.tour_overlay import POPOVER_OFFSET, place_popover, qt_overlay_factory  # noqa: E402


def _form(qtbot):
    root = QWidget()
    qtbot.addWidget(root)
    layout = QVBoxLayout(root)
    button = QPushButton("New Purchase Order")
    button.setProperty("tour", "new-po-button")
    combo = QComboBox()
    combo.addItems(["", "Gulf Oil Supply"])
    combo.setProperty("tour", "po-supplier-select")
    notes = QLineEdit()
    notes.setProperty("tour", "po-notes")
    scroll = QScrollArea()
    scroll.setObjectName("body")
    scroll.setProperty("tourClass", "modal-body")
    for w in (button, combo, notes, scroll):
        layout.addWidget(w)
    return root, button, combo, notes


def test_query_and_element_kinds(qtbot):
    root, button, combo, notes = _form(qtbot)
    host = QtElementHost(root)
    el = host.query('[data-tour="new-po-button"]')
    assert el.widget is button
    assert classify(el) is ElementKind.CLICKABLE
    assert classify(host.query('[data-tour="po-supplier-select"]')) is ElementKind.NATIVE_DROPDOWN
    assert classify(host.query('[data-tour="po-notes"]')) is ElementKind.TEXT_INPUT
    assert host.query("#body").class_names == ("modal-body",)
    assert host.query("#body").overflow_y() == "auto"
    assert host.query('[data-tour="ghost"]') is None
    assert host.query("div.unsupported") is None
    assert QtElement(root).contains(el)


def test_widget_listeners_detach(qtbot):
    root, button, combo, _notes = _form(qtbot)
    seen = []
    detach_click = QtElement(button).listen("click", lambda e: seen.append(e.type))
    detach_change = QtElement(combo).listen("change", lambda e: seen.append(e.type))
    button.click()
    combo.setCurrentIndex(1)
    detach_click()
    detach_change()
    button.click()
    combo.setCurrentIndex(0)
    assert seen == ["click", "change"]
    assert QtElement(combo).value() == ""


def test_qt_scheduler_fires_and_cancels(qtbot):
    scheduler = QtScheduler()
    fired = []
    scheduler.call_later(0, lambda: fired.append("a"))
    cancelled = scheduler.call_later(0, lambda: fired.append("b"))
    cancelled.cancel()
    assert not cancelled.active
    assert scheduler.pending_count == 1
    QTest.qWait(50)
    assert fired == ["a"]
    assert scheduler.pending_count == 0


def test_qt_scheduler_fires_when_handle_is_discarded(qtbot):
    scheduler = QtScheduler()
    fired = []
    for label in ("a", "b"):
        scheduler.call_later(5, lambda label=label: fired.append(label))
    QTest.qWait(60)
    assert sorted(fired) == ["a", "b"]


def _view(**overrides):
    base = dict(
        index=0,
        total=3,
        selector='[data-tour="new-po-button"]',
        title="Create New Purchase Order",
        body="Click to open the form.",
        side="bottom",
        align="center",
        progress_text="1 of 3",
        next_label="Next",
        previous_label="Previous",
        close_label="Close",
        skip_label="Skip Tour",
        pause_label="Got it",
        show_next=True,
        show_previous=False,
        show_pause=True,
        action_hint=None,
        rtl=False,
        popover_class="pbm-tour-popover",
    )
    base.update(overrides)
    return StepView(**base)


def test_overlay_renders_and_routes_buttons(qtbot):
    window, button, _combo, _notes = _form(qtbot)
    window.resize(800, 600)
    host = QtElementHost(window)
    calls = []
    callbacks = OverlayCallbacks(
        on_next=lambda: calls.append("next"),
        on_previous=lambda: calls.append("previous"),
        on_close=lambda: calls.append("close"),
        on_skip=lambda: calls.append("skip"),
        on_pause=lambda: calls.append("pause"),
    )
    overlay = qt_overlay_factory(window, host)(callbacks)
    overlay.render(_view(show_next=False, action_hint="Click the highlighted element to continue"))
    assert overlay.title_label.text() == "Create New Purchase Order"
    assert overlay.progress_label.text() == "1 of 3"
    assert overlay.previous_button.isHidden()
    assert overlay.next_button.isHidden()
    assert not overlay.hint_label.isHidden()

    overlay.render(_view(index=1, show_previous=True, rtl=True))
    overlay.next_button.click()
    overlay.previous_button.click()
    overlay.pause_button.click()
    overlay.skip_button.click()
    overlay.close_button.click()
    assert calls == ["next", "previous", "pause", "skip", "close"]

    assert overlay.contains(QtElement(overlay.next_button))
    assert not overlay.contains(QtElement(button))
    overlay.show_warning("Please click the highlighted element to continue")
    assert not overlay.warning_label.isHidden()
    overlay.clear_warning()
    assert overlay.warning_label.isHidden()
    overlay.destroy()
    assert overlay.frame.isHidden()


def test_place_popover_sides_and_clamping():
    target = Rect(100, 100, 50, 20)
    assert place_popover(target, (200, 80), "bottom", (800, 600)).y() == 120 + POPOVER_OFFSET
    assert place_popover(target, (200, 80), "right", (800, 600)).x() == 150 + POPOVER_OFFSET
    clamped = place_popover(Rect(100, 50, 50, 20), (200, 80), "top", (800, 600))
    assert clamped.y() == 0
    assert place_popover(Rect(700, 550, 50, 20), (200, 80), "bottom", (800, 600)).x() == 600


def test_demo_window_runs_basics_tour(qtbot):
    fast = TourSettings(
        init_delay_ms=0,
        scroll_delay_ms=0,
        listener_attach_delay_ms=0,
        dismiss_arm_delay_ms=0,
        auto_start_delay_ms=0,
    )
    ctx = create_app(
        headless=False,
        storage=MemoryStorage(),
        user_id="u1",
        company_id="c1",
        settings=fast,
        env={},
    )
    try:
        qtbot.addWidget(ctx.window)
        assert ctx.host.query('[data-tour="welcome"]') is not None
        assert ctx.tour_service.start_tour("basics")
        QTest.qWait(50)
        assert ctx.sequencer.current_index == 0
        assert ctx.sequencer.overlay is not None
        assert ctx.sequencer.next()
        assert ctx.sequencer.current_index == 1
    finally:
        ctx.shutdown()
