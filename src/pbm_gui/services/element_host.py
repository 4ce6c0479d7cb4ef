"""Protocols describing the host UI the tour engine drives.

The engine never imports a toolkit. It sees the application as a tree of
``TourElement`` objects resolved through an ``ElementHost`` and renders steps
through a ``TourOverlay``. ``pbm_gui.views.qt_host`` implements these over
PyQt6 widgets; tests use in-memory fakes.

Element vocabulary mirrors markup so catalog selectors stay portable:
``tag_name`` is one of ``button``, ``a``, ``select``, ``input``,
``textarea`` or ``div``; ``class_names`` carry styling/structure markers such
as ``modal-body`` or ``select-wrapper``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Protocol, Sequence

__all__ = [
    "Rect",
    "PointerEvent",
    "WheelEvent",
    "ElementEvent",
    "TourElement",
    "ElementHost",
    "StepView",
    "OverlayCallbacks",
    "TourOverlay",
    "OverlayFactory",
    "Detach",
    "iter_descendants",
]

Detach = Callable[[], None]


@dataclass(frozen=True)
class Rect:
    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    def contains_point(self, x: int, y: int) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom


@dataclass
class ElementEvent:
    type: str
    target: "TourElement"


@dataclass
class PointerEvent:
    """Document-level click seen in the capture phase."""

    target: Optional["TourElement"]
    x: int = 0
    y: int = 0
    stopped: bool = field(default=False)

    def stop_propagation(self) -> None:
        self.stopped = True


@dataclass
class WheelEvent:
    x: int
    y: int
    delta_y: int


class TourElement(Protocol):
    @property
    def tag_name(self) -> str: ...

    @property
    def class_names(self) -> Sequence[str]: ...

    def attribute(self, name: str) -> Optional[str]: ...

    def has_click_handler(self) -> bool: ...

    def value(self) -> Optional[str]: ...

    def text(self) -> Optional[str]: ...

    def parent(self) -> Optional["TourElement"]: ...

    def children(self) -> Sequence["TourElement"]: ...

    def contains(self, other: "TourElement") -> bool: ...

    def listen(self, event_type: str, handler: Callable[[ElementEvent], None]) -> Detach: ...

    def observe_mutations(self, callback: Callable[[], None]) -> Detach: ...

    def dispatch_click(self) -> None: ...

    # geometry / scrolling
    def bounding_rect(self) -> Rect: ...

    def overflow_y(self) -> str: ...

    def scroll_height(self) -> int: ...

    def client_height(self) -> int: ...

    def scroll_top(self) -> int: ...

    def scroll_to(self, top: int) -> None: ...

    def offset_top_within(self, ancestor: "TourElement") -> int: ...

    def scroll_into_view(self) -> None: ...


class ElementHost(Protocol):
    def query(self, selector: str) -> Optional[TourElement]: ...

    def viewport_height(self) -> int: ...

    def listen_clicks(self, handler: Callable[[PointerEvent], None]) -> Detach: ...

    def listen_wheel(self, handler: Callable[[WheelEvent], None]) -> Detach: ...


@dataclass(frozen=True)
class StepView:
    """Everything an overlay needs to render one step, already localized."""

    index: int
    total: int
    selector: str
    title: str
    body: str
    side: str
    align: str
    progress_text: str
    next_label: str
    previous_label: str
    close_label: str
    skip_label: str
    pause_label: str
    show_next: bool
    show_previous: bool
    show_pause: bool
    action_hint: Optional[str]
    rtl: bool
    popover_class: str


@dataclass
class OverlayCallbacks:
    on_next: Callable[[], None]
    on_previous: Callable[[], None]
    on_close: Callable[[], None]
    on_skip: Callable[[], None]
    on_pause: Callable[[], None]


class TourOverlay(Protocol):
    def render(self, view: StepView) -> None: ...

    def show_warning(self, text: str) -> None: ...

    def clear_warning(self) -> None: ...

    def contains(self, element: TourElement) -> bool: ...

    def destroy(self) -> None: ...


OverlayFactory = Callable[[OverlayCallbacks], TourOverlay]


def iter_descendants(element: TourElement) -> Iterator[TourElement]:
    """Depth-first, document order, excluding ``element`` itself."""
    stack: List[TourElement] = list(reversed(list(element.children())))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(list(node.children())))
