"""``QTimer`` backed scheduler for use under a running QApplication."""

from __future__ import annotations

from typing import Callable, Optional, Set

from PyQt6.QtCore import QObject, QTimer

__all__ = ["QtScheduler", "QtTimerHandle"]


class QtTimerHandle:
    def __init__(
        self,
        timer: QTimer,
        callback: Callable[[], None],
        on_done: Optional[Callable[["QtTimerHandle"], None]] = None,
    ) -> None:
        self._timer = timer
        self._callback = callback
        self._on_done = on_done
        self._cancelled = False
        self._fired = False
        timer.timeout.connect(self._fire)

    def _finish(self) -> None:
        self._timer.deleteLater()
        if self._on_done is not None:
            self._on_done(self)

    def _fire(self) -> None:
        if self._cancelled or self._fired:
            return
        self._fired = True
        self._finish()
        self._callback()

    def cancel(self) -> None:
        if self._cancelled or self._fired:
            return
        self._cancelled = True
        self._timer.stop()
        self._finish()

    @property
    def active(self) -> bool:
        return not (self._cancelled or self._fired)


class QtScheduler:
    """Single-shot timers; pending handles are held here until they fire or are cancelled."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        self._parent = parent
        self._live: Set[QtTimerHandle] = set()

    @property
    def pending_count(self) -> int:
        return len(self._live)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> QtTimerHandle:
        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        handle = QtTimerHandle(timer, callback, self._live.discard)
        self._live.add(handle)
        timer.start(max(0, int(delay_ms)))
        return handle
