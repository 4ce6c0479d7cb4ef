from pbm_gui.services.element_host import Rect
from pbm_gui.services.scroll_coordinator import (
    ScrollCoordinator,
    find_scroll_container,
    find_wheel_container,
)

from tests.factories import FakeElement, FakeHost, sel


def _modal_body(host):
    return host.get("po-supplier-select").parent()


def test_scroll_container_is_overflowing_modal_body(host):
    body = _modal_body(host)
    assert find_scroll_container(host.get("po-submit-button")) is body
    assert find_scroll_container(host.get("po-table")) is None


def test_non_overflowing_ancestor_is_skipped():
    outer = FakeElement(rect=Rect(0, 0, 100, 300), overflow="auto", scroll_height=900)
    inner = outer.append(FakeElement(rect=Rect(0, 0, 100, 200), overflow="auto"))
    leaf = inner.append(FakeElement())
    assert find_scroll_container(leaf) is outer


def test_ensure_visible_centres_hidden_target(host):
    coordinator = ScrollCoordinator(host)
    assert coordinator.ensure_visible(sel("po-submit-button"))
    body = _modal_body(host)
    # offset 1200 within body, centred in a 400px viewport for a 30px target
    assert body.scroll_calls == [1200 - 200 + 15]


def test_ensure_visible_leaves_visible_target_alone(host):
    ScrollCoordinator(host).ensure_visible(sel("po-supplier-select"))
    assert _modal_body(host).scroll_calls == []


def test_ensure_visible_falls_back_to_scroll_into_view():
    host = FakeHost(viewport=600)
    far = host.add(FakeElement(tour="far", rect=Rect(0, 900, 100, 40)))
    near = host.add(FakeElement(tour="near", rect=Rect(0, 100, 100, 40)))
    coordinator = ScrollCoordinator(host)
    coordinator.ensure_visible(sel("far"))
    coordinator.ensure_visible(sel("near"))
    assert far.scrolled_into_view == 1
    assert near.scrolled_into_view == 0


def test_ensure_visible_missing_target():
    assert ScrollCoordinator(FakeHost()).ensure_visible(sel("ghost")) is False


def test_wheel_container_prefers_modal_body(host):
    body = _modal_body(host)
    assert find_wheel_container(host.get("po-notes")) is body
    modal = body.parent()
    header = modal.append(FakeElement())
    assert find_wheel_container(header) is body


def test_forward_wheel_scrolls_container_under_pointer(host):
    coordinator = ScrollCoordinator(host)
    coordinator.forward_wheel(sel("po-notes"))
    body = _modal_body(host)
    host.wheel(300, 200, 120)
    host.wheel(5, 5, 120)  # outside the container
    assert body.scroll_top() == 120
    coordinator.forward_wheel(sel("po-terms-select"))
    assert host.wheel_listener_count == 1
    coordinator.stop_forwarding()
    assert host.wheel_listener_count == 0
