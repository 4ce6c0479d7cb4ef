"""Keep the highlighted target visible inside nested scroll containers."""

from __future__ import annotations

import logging
from typing import Optional

from .element_host import Detach, ElementHost, TourElement, WheelEvent, iter_descendants

__all__ = ["ScrollCoordinator", "find_scroll_container", "find_wheel_container"]

_logger = logging.getLogger(__name__)

_SCROLLABLE = ("auto", "scroll")
MODAL_BODY = "modal-body"


def _has_overflow(element: TourElement) -> bool:
    return element.scroll_height() > element.client_height()


def find_scroll_container(element: TourElement) -> Optional[TourElement]:
    """Nearest ancestor that scrolls and actually overflows."""
    parent = element.parent()
    while parent is not None:
        if _has_overflow(parent) and (parent.overflow_y() in _SCROLLABLE or MODAL_BODY in parent.class_names):
            return parent
        parent = parent.parent()
    return None


def _closest(element: TourElement, predicate) -> Optional[TourElement]:
    node: Optional[TourElement] = element
    while node is not None:
        if predicate(node):
            return node
        node = node.parent()
    return None


def find_wheel_container(element: TourElement) -> Optional[TourElement]:
    """Container whose scrolling the overlay could swallow: a modal body first."""
    body = _closest(element, lambda n: MODAL_BODY in n.class_names)
    if body is not None:
        return body
    modal = _closest(element, lambda n: any("modal" in c for c in n.class_names))
    if modal is not None:
        for node in iter_descendants(modal):
            if MODAL_BODY in node.class_names:
                return node
    return _closest(element.parent() or element, lambda n: n.overflow_y() in _SCROLLABLE)


class ScrollCoordinator:
    def __init__(self, host: ElementHost) -> None:
        self._host = host
        self._wheel_detach: Optional[Detach] = None

    def ensure_visible(self, selector: str) -> bool:
        """Scroll the target to the vertical centre of its container if it is hidden.

        Returns False when no element matches.
        """
        element = self._host.query(selector)
        if element is None:
            return False
        rect = element.bounding_rect()
        container = find_scroll_container(element)
        if container is not None:
            box = container.bounding_rect()
            if rect.top < box.top or rect.bottom > box.bottom:
                offset = element.offset_top_within(container)
                target = offset - container.client_height() / 2 + rect.height / 2
                container.scroll_to(max(0, int(target)))
                _logger.debug("Scrolled container to %d for %s", max(0, int(target)), selector)
        elif rect.top < 0 or rect.bottom > self._host.viewport_height():
            element.scroll_into_view()
        return True

    def forward_wheel(self, selector: str) -> Detach:
        """Forward document wheel events over the target's container to it.

        Replaces any previous forwarding; the returned function stops it.
        """
        self.stop_forwarding()
        element = self._host.query(selector)
        container = find_wheel_container(element) if element is not None else None
        if container is None:
            return lambda: None

        def _on_wheel(event: WheelEvent) -> None:
            if _has_overflow(container) and container.bounding_rect().contains_point(event.x, event.y):
                container.scroll_to(container.scroll_top() + event.delta_y)

        detach = self._host.listen_wheel(_on_wheel)
        self._wheel_detach = detach
        return self.stop_forwarding

    def stop_forwarding(self) -> None:
        detach, self._wheel_detach = self._wheel_detach, None
        if detach is not None:
            detach()
