"""Popover overlay rendering tour steps over a PyQt6 window.

The overlay is a plain child frame of the window (no modal dialog), placed
next to the highlighted widget according to the step's ``side``; a
mouse-transparent frame outlines the target. Everything else on the page stays
clickable, which is what lets the engine notice clicks outside the popover.
"""

from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import QPoint, Qt
from PyQt6.QtWidgets import QFrame, QHBoxLayout, QLabel, QPushButton, QVBoxLayout, QWidget

from ..services.element_host import OverlayCallbacks, OverlayFactory, Rect, StepView
from .qt_host import QtElementHost

__all__ = ["QtTourOverlay", "qt_overlay_factory", "POPOVER_OFFSET", "STAGE_PADDING"]

POPOVER_OFFSET = 12
STAGE_PADDING = 10
POPOVER_WIDTH = 340

_POPOVER_STYLE = """
QFrame#TourPopover { background: #1f2937; border-radius: 8px; }
QFrame#TourPopover QLabel { color: #f9fafb; }
QLabel#TourTitle { font-weight: bold; font-size: 14px; }
QLabel#TourHint { border: 1px dashed rgba(255,255,255,0.4); border-radius: 6px; padding: 8px; }
QLabel#TourWarning { background: rgba(255,100,100,0.4); border-radius: 6px; padding: 8px; }
"""


def place_popover(target: Rect, size: tuple, side: str, bounds: tuple) -> QPoint:
    """Top-left for a popover of ``size`` beside ``target``, clamped to ``bounds``."""
    width, height = size
    max_w, max_h = bounds
    if side == "top":
        x, y = target.left, target.top - height - POPOVER_OFFSET
    elif side == "left":
        x, y = target.left - width - POPOVER_OFFSET, target.top
    elif side == "right":
        x, y = target.right + POPOVER_OFFSET, target.top
    else:
        x, y = target.left, target.bottom + POPOVER_OFFSET
    x = min(max(0, x), max(0, max_w - width))
    y = min(max(0, y), max(0, max_h - height))
    return QPoint(int(x), int(y))


class QtTourOverlay:
    def __init__(self, callbacks: OverlayCallbacks, window: QWidget, host: QtElementHost) -> None:
        self._callbacks = callbacks
        self._window = window
        self._host = host
        self.view: Optional[StepView] = None

        self.stage = QFrame(window)
        self.stage.setObjectName("TourStage")
        self.stage.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents, True)
        self.stage.setStyleSheet("QFrame#TourStage { border: 2px solid #f59e0b; border-radius: 8px; }")

        self.frame = QFrame(window)
        self.frame.setObjectName("TourPopover")
        self.frame.setStyleSheet(_POPOVER_STYLE)
        self.frame.setFixedWidth(POPOVER_WIDTH)
        layout = QVBoxLayout(self.frame)

        header = QHBoxLayout()
        self.progress_label = QLabel()
        self.close_button = QPushButton("×")
        self.close_button.setFlat(True)
        header.addWidget(self.progress_label)
        header.addStretch(1)
        header.addWidget(self.close_button)
        layout.addLayout(header)

        self.title_label = QLabel()
        self.title_label.setObjectName("TourTitle")
        self.title_label.setWordWrap(True)
        self.body_label = QLabel()
        self.body_label.setWordWrap(True)
        self.hint_label = QLabel()
        self.hint_label.setObjectName("TourHint")
        self.hint_label.setWordWrap(True)
        self.warning_label = QLabel()
        self.warning_label.setObjectName("TourWarning")
        self.warning_label.setWordWrap(True)
        for w in (self.title_label, self.body_label, self.hint_label, self.warning_label):
            layout.addWidget(w)
        self.hint_label.hide()
        self.warning_label.hide()

        footer = QHBoxLayout()
        self.skip_button = QPushButton()
        self.skip_button.setFlat(True)
        self.pause_button = QPushButton()
        self.previous_button = QPushButton()
        self.next_button = QPushButton()
        footer.addWidget(self.skip_button)
        footer.addStretch(1)
        for b in (self.pause_button, self.previous_button, self.next_button):
            footer.addWidget(b)
        layout.addLayout(footer)

        self.close_button.clicked.connect(lambda: self._callbacks.on_close())
        self.skip_button.clicked.connect(lambda: self._callbacks.on_skip())
        self.pause_button.clicked.connect(lambda: self._callbacks.on_pause())
        self.previous_button.clicked.connect(lambda: self._callbacks.on_previous())
        self.next_button.clicked.connect(lambda: self._callbacks.on_next())

    def render(self, view: StepView) -> None:
        self.view = view
        direction = Qt.LayoutDirection.RightToLeft if view.rtl else Qt.LayoutDirection.LeftToRight
        self.frame.setLayoutDirection(direction)
        self.frame.setProperty("popoverClass", view.popover_class)
        self.progress_label.setText(view.progress_text)
        self.title_label.setText(view.title)
        self.body_label.setText(view.body)
        self.hint_label.setText(view.action_hint or "")
        self.hint_label.setVisible(bool(view.action_hint))
        self.warning_label.hide()
        self.close_button.setToolTip(view.close_label)
        self.skip_button.setText(view.skip_label)
        self.pause_button.setText(view.pause_label)
        self.pause_button.setVisible(view.show_pause)
        self.previous_button.setText(view.previous_label)
        self.previous_button.setVisible(view.show_previous)
        self.next_button.setText(view.next_label)
        self.next_button.setVisible(view.show_next)
        self._reposition(view)
        self.stage.show()
        self.frame.show()
        self.frame.raise_()

    def _reposition(self, view: StepView) -> None:
        self.frame.adjustSize()
        target = self._host.query(view.selector)
        if target is None:
            centre = self._window.rect().center()
            self.frame.move(centre.x() - self.frame.width() // 2, centre.y() - self.frame.height() // 2)
            self.stage.hide()
            return
        rect = target.bounding_rect()
        self.stage.setGeometry(
            rect.left - STAGE_PADDING,
            rect.top - STAGE_PADDING,
            rect.width + 2 * STAGE_PADDING,
            rect.height + 2 * STAGE_PADDING,
        )
        self.stage.raise_()
        pos = place_popover(
            rect,
            (self.frame.width(), self.frame.height()),
            view.side,
            (self._window.width(), self._window.height()),
        )
        self.frame.move(pos)

    def show_warning(self, text: str) -> None:
        self.warning_label.setText(text)
        self.warning_label.show()
        self.frame.adjustSize()

    def clear_warning(self) -> None:
        self.warning_label.hide()
        self.frame.adjustSize()

    def contains(self, element) -> bool:
        widget = getattr(element, "widget", None)
        return widget is not None and (widget is self.frame or self.frame.isAncestorOf(widget))

    def destroy(self) -> None:
        for w in (self.frame, self.stage):
            w.hide()
            w.deleteLater()


def qt_overlay_factory(window: QWidget, host: QtElementHost) -> OverlayFactory:
    def _create(callbacks: OverlayCallbacks) -> QtTourOverlay:
        return QtTourOverlay(callbacks, window, host)

    return _create
