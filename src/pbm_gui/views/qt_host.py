"""Expose a PyQt6 widget tree to the tour engine.

Widgets opt in to tours through dynamic properties, the Qt counterpart of
the web front end's ``data-tour`` attributes:

    button.setProperty("tour", "new-po-button")     # [data-tour="new-po-button"]
    body.setProperty("tourClass", "modal-body")     # class markers
    label.setProperty("tourTag", "a")               # override the derived tag

``#name`` selectors match ``objectName()``. Element kind is derived from the
widget class (``QComboBox`` is a ``select``, ``QLineEdit`` an ``input``...).

Document-level click and wheel listeners are application event filters, so
they see events before the target widget does; a click handler that calls
``stop_propagation()`` consumes the press.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from PyQt6.QtCore import QEvent, QObject, QPoint, QPointF, Qt, QTimer
from PyQt6.QtGui import QMouseEvent
from PyQt6.QtWidgets import (
    QAbstractButton,
    QAbstractScrollArea,
    QApplication,
    QComboBox,
    QLabel,
    QLineEdit,
    QPlainTextEdit,
    QScrollArea,
    QTextEdit,
    QWidget,
)

from ..services.element_host import Detach, ElementEvent, PointerEvent, Rect, WheelEvent

__all__ = ["QtElement", "QtElementHost", "MUTATION_POLL_MS"]

MUTATION_POLL_MS = 100

_ATTR_SELECTOR = re.compile(r'^\[data-tour=["\']?([^"\'\]]+)["\']?\]$')


class _EventFilter(QObject):
    def __init__(self, handler: Callable[[QObject, QEvent], bool], parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._handler = handler

    def eventFilter(self, obj, event):  # type: ignore[override]
        return bool(self._handler(obj, event))


def _wrap(widget: Optional[QWidget]) -> Optional["QtElement"]:
    return QtElement(widget) if widget is not None else None


class QtElement:
    def __init__(self, widget: QWidget) -> None:
        self.widget = widget

    def __eq__(self, other: object) -> bool:
        return isinstance(other, QtElement) and other.widget is self.widget

    def __hash__(self) -> int:
        return id(self.widget)

    # identity / structure ------------------------------------------------
    @property
    def tag_name(self) -> str:
        override = self.widget.property("tourTag")
        if override:
            return str(override)
        w = self.widget
        if isinstance(w, QComboBox):
            return "select"
        if isinstance(w, QAbstractButton):
            return "button"
        if isinstance(w, QLineEdit):
            return "input"
        if isinstance(w, (QTextEdit, QPlainTextEdit)):
            return "textarea"
        return "div"

    @property
    def class_names(self) -> Sequence[str]:
        raw = self.widget.property("tourClass") or ""
        return tuple(str(raw).split())

    def attribute(self, name: str) -> Optional[str]:
        value = self.widget.property(name)
        return None if value is None else str(value)

    def has_click_handler(self) -> bool:
        return isinstance(self.widget, QAbstractButton)

    def value(self) -> Optional[str]:
        w = self.widget
        if isinstance(w, QComboBox):
            return w.currentText() if w.currentIndex() >= 0 else ""
        if isinstance(w, QLineEdit):
            return w.text()
        if isinstance(w, (QTextEdit, QPlainTextEdit)):
            return w.toPlainText()
        value = w.property("value")
        return None if value is None else str(value)

    def text(self) -> Optional[str]:
        w = self.widget
        if isinstance(w, (QLabel, QAbstractButton)):
            return w.text()
        if isinstance(w, QComboBox):
            return w.currentText()
        return self.value()

    def parent(self) -> Optional["QtElement"]:
        return _wrap(self.widget.parentWidget())

    def children(self) -> Sequence["QtElement"]:
        kids = self.widget.findChildren(QWidget, options=Qt.FindChildOption.FindDirectChildrenOnly)
        return [QtElement(k) for k in kids]

    def contains(self, other) -> bool:
        target = getattr(other, "widget", None)
        return target is not None and (target is self.widget or self.widget.isAncestorOf(target))

    # events -------------------------------------------------------------
    def listen(self, event_type: str, handler: Callable[[ElementEvent], None]) -> Detach:
        w = self.widget

        def _emit(*_args) -> None:
            handler(ElementEvent(event_type, self))

        if event_type == "click" and isinstance(w, QAbstractButton):
            w.clicked.connect(_emit)
            return lambda: _safe_disconnect(w.clicked, _emit)
        if event_type == "change" and isinstance(w, QComboBox):
            w.currentIndexChanged.connect(_emit)
            return lambda: _safe_disconnect(w.currentIndexChanged, _emit)
        if event_type == "change" and isinstance(w, QLineEdit):
            w.editingFinished.connect(_emit)
            return lambda: _safe_disconnect(w.editingFinished, _emit)

        wanted = {
            "click": QEvent.Type.MouseButtonRelease,
            "blur": QEvent.Type.FocusOut,
            "change": QEvent.Type.FocusOut,
        }.get(event_type)
        if wanted is None:
            return lambda: None

        def _filter(_obj: QObject, event: QEvent) -> bool:
            if event.type() == wanted:
                _emit()
            return False

        flt = _EventFilter(_filter, w)
        w.installEventFilter(flt)

        def _detach() -> None:
            w.removeEventFilter(flt)
            flt.deleteLater()

        return _detach

    def observe_mutations(self, callback: Callable[[], None]) -> Detach:
        """Poll a snapshot of the subtree and call back when it changes."""
        last = {"snap": _snapshot(self.widget)}
        timer = QTimer(self.widget)
        timer.setInterval(MUTATION_POLL_MS)

        def _poll() -> None:
            snap = _snapshot(self.widget)
            if snap != last["snap"]:
                last["snap"] = snap
                callback()

        timer.timeout.connect(_poll)
        timer.start()

        def _detach() -> None:
            timer.stop()
            timer.deleteLater()

        return _detach

    def dispatch_click(self) -> None:
        w = self.widget
        if isinstance(w, QAbstractButton):
            w.click()
            return
        centre = QPointF(w.rect().center())
        global_pos = QPointF(w.mapToGlobal(w.rect().center()))
        for etype in (QEvent.Type.MouseButtonPress, QEvent.Type.MouseButtonRelease):
            event = QMouseEvent(
                etype,
                centre,
                global_pos,
                Qt.MouseButton.LeftButton,
                Qt.MouseButton.LeftButton,
                Qt.KeyboardModifier.NoModifier,
            )
            QApplication.sendEvent(w, event)

    # geometry -----------------------------------------------------------
    def bounding_rect(self) -> Rect:
        w = self.widget
        top_left = w.mapTo(w.window(), QPoint(0, 0))
        return Rect(top_left.x(), top_left.y(), w.width(), w.height())

    def overflow_y(self) -> str:
        return "auto" if isinstance(self.widget, QAbstractScrollArea) else "visible"

    def scroll_height(self) -> int:
        w = self.widget
        if isinstance(w, QScrollArea) and w.widget() is not None:
            return w.widget().height()
        return w.height()

    def client_height(self) -> int:
        w = self.widget
        if isinstance(w, QAbstractScrollArea):
            return w.viewport().height()
        return w.height()

    def scroll_top(self) -> int:
        w = self.widget
        if isinstance(w, QAbstractScrollArea):
            return w.verticalScrollBar().value()
        return 0

    def scroll_to(self, top: int) -> None:
        w = self.widget
        if isinstance(w, QAbstractScrollArea):
            w.verticalScrollBar().setValue(int(top))

    def offset_top_within(self, ancestor) -> int:
        anc = ancestor.widget
        if isinstance(anc, QScrollArea) and anc.widget() is not None:
            anc = anc.widget()
        if not anc.isAncestorOf(self.widget):
            return self.widget.y()
        return self.widget.mapTo(anc, QPoint(0, 0)).y()

    def scroll_into_view(self) -> None:
        parent = self.widget.parentWidget()
        while parent is not None:
            if isinstance(parent, QScrollArea):
                parent.ensureWidgetVisible(self.widget)
                return
            parent = parent.parentWidget()


def _safe_disconnect(signal, slot) -> None:
    try:
        signal.disconnect(slot)
    except (TypeError, RuntimeError):
        pass


def _snapshot(widget: QWidget) -> Tuple:
    items: List[Tuple] = []
    for w in [widget] + widget.findChildren(QWidget):
        el = QtElement(w)
        items.append((id(w), el.text(), el.value(), w.property("tourClass"), w.isVisible()))
    return tuple(items)


class _Dedup:
    """Ignore the re-deliveries Qt makes while propagating an unaccepted event to parents."""

    def __init__(self) -> None:
        self._last: Optional[Tuple] = None

    def repeat(self, event) -> bool:
        pos = event.globalPosition().toPoint()
        key = (event.type(), event.timestamp(), pos.x(), pos.y())
        if key == self._last:
            return True
        self._last = key
        return False


class QtElementHost:
    def __init__(self, root: QWidget) -> None:
        self.root = root
        self._filters: Dict[int, _EventFilter] = {}

    def _widgets(self) -> List[QWidget]:
        return [self.root] + self.root.findChildren(QWidget)

    def query(self, selector: str) -> Optional[QtElement]:
        selector = selector.strip()
        match = _ATTR_SELECTOR.match(selector)
        if match:
            name = match.group(1)
            found = [w for w in self._widgets() if w.property("tour") == name]
        elif selector.startswith("#"):
            found = [w for w in self._widgets() if w.objectName() == selector[1:]]
        else:
            return None
        visible = [w for w in found if w.isVisible()]
        pick = (visible or found or [None])[0]
        return _wrap(pick)

    def viewport_height(self) -> int:
        return self.root.window().height()

    def _in_window(self, obj: QObject) -> bool:
        return isinstance(obj, QWidget) and obj.window() is self.root.window()

    def _install(self, handler: Callable[[QObject, QEvent], bool]) -> Detach:
        app = QApplication.instance()
        if app is None:
            return lambda: None
        flt = _EventFilter(handler)
        app.installEventFilter(flt)
        self._filters[id(flt)] = flt

        def _detach() -> None:
            if self._filters.pop(id(flt), None) is not None:
                app.removeEventFilter(flt)
                flt.deleteLater()

        return _detach

    def listen_clicks(self, handler: Callable[[PointerEvent], None]) -> Detach:
        seen = _Dedup()

        def _filter(obj: QObject, event: QEvent) -> bool:
            if event.type() != QEvent.Type.MouseButtonPress or not self._in_window(obj):
                return False
            if seen.repeat(event):
                return False
            pos = obj.mapTo(obj.window(), event.position().toPoint())
            pointer = PointerEvent(target=QtElement(obj), x=pos.x(), y=pos.y())
            handler(pointer)
            return pointer.stopped

        return self._install(_filter)

    def listen_wheel(self, handler: Callable[[WheelEvent], None]) -> Detach:
        seen = _Dedup()

        def _filter(obj: QObject, event: QEvent) -> bool:
            if event.type() != QEvent.Type.Wheel or not self._in_window(obj):
                return False
            if seen.repeat(event):
                return False
            pos = obj.mapTo(obj.window(), event.position().toPoint())
            handler(WheelEvent(pos.x(), pos.y(), -event.angleDelta().y()))
            return False

        return self._install(_filter)

    def active_filter_count(self) -> int:
        return len(self._filters)
