"""Active language and layout direction.

``Localization`` is the provider the tour engine consults for
``current_language``, ``is_rtl`` and ``translate(key, fallback)``. Arabic
switches the layout to right-to-left; ``PBM_RTL`` can force RTL for layout
testing while the language stays English.

No Qt dependency at import time (``apply_qt_direction`` imports lazily).
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, List, Literal, Mapping, Optional

from . import DEFAULT_LOCALE, SUPPORTED_LOCALES, translate

__all__ = ["Direction", "Localization", "direction_for", "apply_qt_direction"]

_logger = logging.getLogger(__name__)

Direction = Literal["ltr", "rtl"]
_RTL_LOCALES = {"ar"}
_TRUTHY = {"1", "true", "yes", "on"}

LanguageListener = Callable[[str], None]


def direction_for(language: str) -> Direction:
    return "rtl" if language in _RTL_LOCALES else "ltr"


class Localization:
    def __init__(self, language: str = DEFAULT_LOCALE, *, force_rtl: bool = False) -> None:
        if language not in SUPPORTED_LOCALES:
            raise ValueError(f"Unsupported language: {language!r} (expected one of {SUPPORTED_LOCALES})")
        self._language = language
        self._force_rtl = force_rtl
        self._listeners: List[LanguageListener] = []

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, language: str = DEFAULT_LOCALE) -> "Localization":
        """Honour ``PBM_RTL`` (truthy values: 1/true/yes/on)."""
        if env is None:
            env = os.environ
        raw = env.get("PBM_RTL") or ""
        return cls(language, force_rtl=raw.strip().lower() in _TRUTHY)

    @property
    def current_language(self) -> str:
        return self._language

    @property
    def direction(self) -> Direction:
        return "rtl" if self._force_rtl else direction_for(self._language)

    @property
    def is_rtl(self) -> bool:
        return self.direction == "rtl"

    def set_language(self, language: str) -> bool:
        """Switch language; returns False when unchanged. Listeners get the new code."""
        if language not in SUPPORTED_LOCALES:
            raise ValueError(f"Unsupported language: {language!r} (expected one of {SUPPORTED_LOCALES})")
        if language == self._language:
            return False
        self._language = language
        _logger.debug("Language switched to %s (%s)", language, self.direction)
        for listener in list(self._listeners):
            listener(language)
        return True

    def subscribe(self, listener: LanguageListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def translate(self, key: str, fallback: Optional[str] = None, **variables: Any) -> str:
        return translate(key, self._language, fallback, **variables)


def apply_qt_direction(target: Any, localization: Localization) -> None:  # pragma: no cover - UI side effect
    """Apply the layout direction to a QApplication or any ``setLayoutDirection`` owner."""
    from PyQt6.QtCore import Qt

    qt_dir = Qt.LayoutDirection.RightToLeft if localization.is_rtl else Qt.LayoutDirection.LeftToRight
    setter = getattr(target, "setLayoutDirection", None)
    if callable(setter):
        setter(qt_dir)
