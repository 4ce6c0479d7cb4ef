from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence

from pbm_gui.services.element_host import (
    ElementEvent,
    OverlayCallbacks,
    PointerEvent,
    Rect,
    StepView,
    WheelEvent,
)

__all__ = [
    "FakeElement",
    "FakeHost",
    "RecordingOverlay",
    "OverlayRecorder",
    "build_erp_page",
    "sel",
]


def sel(tour: str) -> str:
    return f'[data-tour="{tour}"]'


class FakeElement:
    """Markup-like element: tag, classes, attributes, listeners, geometry."""

    def __init__(
        self,
        tag: str = "div",
        *,
        tour: Optional[str] = None,
        id: Optional[str] = None,
        classes: Sequence[str] = (),
        attrs: Optional[Dict[str, str]] = None,
        value: Optional[str] = None,
        text: Optional[str] = None,
        rect: Rect = Rect(0, 0, 100, 30),
        overflow: str = "visible",
        scroll_height: Optional[int] = None,
        click_handler: bool = False,
        children: Sequence["FakeElement"] = (),
    ) -> None:
        self.tag_name = tag
        self.class_names: List[str] = list(classes)
        self.attrs: Dict[str, str] = dict(attrs or {})
        if tour:
            self.attrs["data-tour"] = tour
        if id:
            self.attrs["id"] = id
        self._value = value
        self._text = text
        self.rect = rect
        self.overflow = overflow
        self._scroll_height = scroll_height
        self._scroll_top = 0
        self.scroll_calls: List[int] = []
        self.scrolled_into_view = 0
        self.click_handler = click_handler
        self._parent: Optional[FakeElement] = None
        self._children: List[FakeElement] = []
        self._listeners: Dict[str, List[Callable[[ElementEvent], None]]] = {}
        self._observers: List[Callable[[], None]] = []
        self.host: Optional["FakeHost"] = None
        for child in children:
            self.append(child)

    # tree ----------------------------------------------------------------
    def append(self, child: "FakeElement") -> "FakeElement":
        child._parent = self
        self._children.append(child)
        return child

    def remove(self) -> None:
        if self._parent is not None:
            self._parent._children.remove(self)
            self._parent = None

    def parent(self):
        return self._parent

    def children(self):
        return list(self._children)

    def contains(self, other) -> bool:
        node = other
        while node is not None:
            if node is self:
                return True
            node = node.parent()
        return False

    # attributes ------------------------------------------------------------
    def attribute(self, name: str):
        return self.attrs.get(name)

    def has_click_handler(self) -> bool:
        return self.click_handler

    def value(self):
        return self._value

    def text(self):
        return self._text

    # events ----------------------------------------------------------------
    def listen(self, event_type, handler):
        bucket = self._listeners.setdefault(event_type, [])
        bucket.append(handler)

        def _detach() -> None:
            if handler in bucket:
                bucket.remove(handler)

        return _detach

    def listener_count(self, event_type: Optional[str] = None) -> int:
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return sum(len(b) for b in self._listeners.values()) + len(self._observers)

    def emit(self, event_type: str, target: Optional["FakeElement"] = None) -> None:
        """Deliver an element event to this node and bubble it to ancestors."""
        target = target or self
        node: Optional[FakeElement] = self
        while node is not None:
            for handler in list(node._listeners.get(event_type, [])):
                handler(ElementEvent(event_type, target))
            node = node._parent

    def observe_mutations(self, callback):
        self._observers.append(callback)

        def _detach() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return _detach

    def mutate(self) -> None:
        """Signal a subtree change to observers on this node and its ancestors."""
        node: Optional[FakeElement] = self
        while node is not None:
            for callback in list(node._observers):
                callback()
            node = node._parent

    def dispatch_click(self) -> None:
        if self.host is not None:
            self.host.click(self)
        else:
            self.emit("click")

    # user simulation -------------------------------------------------------
    def choose(self, value: str) -> None:
        """Pick a value in a native dropdown."""
        self._value = value
        self.emit("change")

    def type_text(self, value: str, commit: str = "change") -> None:
        self._value = value
        self.emit(commit)

    def set_text(self, text: Optional[str]) -> None:
        self._text = text
        self.mutate()

    # geometry --------------------------------------------------------------
    def bounding_rect(self) -> Rect:
        return self.rect

    def overflow_y(self) -> str:
        return self.overflow

    def scroll_height(self) -> int:
        return self._scroll_height if self._scroll_height is not None else self.rect.height

    def client_height(self) -> int:
        return self.rect.height

    def scroll_top(self) -> int:
        return self._scroll_top

    def scroll_to(self, top: int) -> None:
        self._scroll_top = top
        self.scroll_calls.append(top)

    def offset_top_within(self, ancestor) -> int:
        return self.rect.top - ancestor.bounding_rect().top + ancestor.scroll_top()

    def scroll_into_view(self) -> None:
        self.scrolled_into_view += 1

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"<FakeElement {self.tag_name} {self.attrs.get('data-tour') or self.attrs.get('id') or ''}>"


class FakeHost:
    """Element host over a ``FakeElement`` tree with capture-phase click listeners."""

    def __init__(self, root: Optional[FakeElement] = None, viewport: int = 800) -> None:
        self.root = root or FakeElement(rect=Rect(0, 0, 1200, viewport))
        self.viewport = viewport
        self._click_handlers: List[Callable[[PointerEvent], None]] = []
        self._wheel_handlers: List[Callable[[WheelEvent], None]] = []
        self._adopt(self.root)

    def _adopt(self, element: FakeElement) -> None:
        element.host = self
        for child in element.children():
            self._adopt(child)

    def add(self, element: FakeElement, parent: Optional[FakeElement] = None) -> FakeElement:
        (parent or self.root).append(element)
        self._adopt(element)
        return element

    def _walk(self):
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children()))

    def query(self, selector: str):
        if selector.startswith("[data-tour="):
            name, want = "data-tour", selector[len("[data-tour=") : -1].strip("\"'")
        elif selector.startswith("#"):
            name, want = "id", selector[1:]
        else:
            return None
        for node in self._walk():
            if node.attribute(name) == want:
                return node
        return None

    def get(self, tour: str) -> FakeElement:
        element = self.query(sel(tour))
        assert element is not None, tour
        return element

    def viewport_height(self) -> int:
        return self.viewport

    def listen_clicks(self, handler):
        self._click_handlers.append(handler)

        def _detach() -> None:
            if handler in self._click_handlers:
                self._click_handlers.remove(handler)

        return _detach

    def listen_wheel(self, handler):
        self._wheel_handlers.append(handler)

        def _detach() -> None:
            if handler in self._wheel_handlers:
                self._wheel_handlers.remove(handler)

        return _detach

    @property
    def click_listener_count(self) -> int:
        return len(self._click_handlers)

    @property
    def wheel_listener_count(self) -> int:
        return len(self._wheel_handlers)

    def click(self, element: Optional[FakeElement]) -> PointerEvent:
        """Capture listeners first; the element sees the click unless it was stopped."""
        event = PointerEvent(target=element)
        for handler in list(self._click_handlers):
            handler(event)
            if event.stopped:
                break
        if not event.stopped and element is not None:
            element.emit("click")
        return event

    def wheel(self, x: int, y: int, delta_y: int) -> None:
        for handler in list(self._wheel_handlers):
            handler(WheelEvent(x, y, delta_y))


class RecordingOverlay:
    def __init__(self, callbacks: OverlayCallbacks) -> None:
        self.callbacks = callbacks
        self.views: List[StepView] = []
        self.warnings: List[str] = []
        self.warning: Optional[str] = None
        self.destroyed = False
        self.element = FakeElement(classes=("pbm-tour-popover",))
        self.next_button = self.element.append(FakeElement("button", classes=("next",)))

    @property
    def view(self) -> Optional[StepView]:
        return self.views[-1] if self.views else None

    def render(self, view: StepView) -> None:
        self.views.append(view)

    def show_warning(self, text: str) -> None:
        self.warning = text
        self.warnings.append(text)

    def clear_warning(self) -> None:
        self.warning = None

    def contains(self, element) -> bool:
        return self.element.contains(element)

    def destroy(self) -> None:
        self.destroyed = True


class OverlayRecorder:
    """Overlay factory keeping every overlay it created."""

    def __init__(self) -> None:
        self.created: List[RecordingOverlay] = []

    def __call__(self, callbacks: OverlayCallbacks) -> RecordingOverlay:
        overlay = RecordingOverlay(callbacks)
        self.created.append(overlay)
        return overlay

    @property
    def last(self) -> RecordingOverlay:
        return self.created[-1]

    @property
    def live(self) -> List[RecordingOverlay]:
        return [o for o in self.created if not o.destroyed]


def build_erp_page(host: FakeHost) -> FakeHost:
    """Populate ``host`` with the targets of the basics tour and the purchase-order guide."""
    header = host.add(FakeElement(tour="welcome", rect=Rect(0, 0, 1200, 60)))
    header.append(FakeElement(tour="company-info", text="Demo Petroleum LLC"))
    header.append(FakeElement(tour="main-navigation"))
    header.append(FakeElement("select", tour="language-switcher", value="en"))
    header.append(FakeElement("button", tour="help-menu"))
    host.add(FakeElement(tour="primary-stats", rect=Rect(0, 80, 1200, 120)))
    host.add(FakeElement(tour="page-header"))
    host.add(FakeElement(tour="pending-tasks"))
    host.add(FakeElement(tour="activity-feed"))
    host.add(FakeElement("button", tour="purchase-orders-tab"))
    host.add(FakeElement("button", tour="collections-tab"))
    host.add(FakeElement("button", tour="new-po-button", text="New Purchase Order"))
    host.add(FakeElement(tour="po-table", rect=Rect(0, 300, 1200, 300)))

    modal = host.add(FakeElement(classes=("modal",), rect=Rect(100, 50, 900, 600)))
    body = modal.append(
        FakeElement(classes=("modal-body",), rect=Rect(100, 100, 900, 400), overflow="auto", scroll_height=1400)
    )
    body.append(FakeElement("select", tour="po-supplier-select", value="", rect=Rect(120, 120, 400, 30)))
    branch = body.append(FakeElement(tour="po-branch-select", classes=("select-wrapper",), rect=Rect(120, 170, 400, 30)))
    control = branch.append(FakeElement(classes=("pbm-select__control",)))
    control.append(FakeElement(classes=("pbm-select__placeholder",), text="Select branch..."))
    body.append(FakeElement(tour="po-items-section", rect=Rect(120, 220, 800, 200)))
    body.append(FakeElement(tour="po-items-table", rect=Rect(120, 430, 800, 200)))
    body.append(FakeElement("select", tour="po-terms-select", value="", rect=Rect(120, 900, 400, 30)))
    body.append(FakeElement("textarea", tour="po-notes", rect=Rect(120, 1000, 800, 80)))
    body.append(FakeElement("button", tour="po-submit-button", rect=Rect(120, 1300, 200, 30)))
    host._adopt(host.root)
    return host
