"""Detect that the user performed the action a highlighted step asks for.

``attach(selector, on_detected)`` resolves the target element once, picks
listeners by element kind and calls ``on_detected(interaction)`` at most once
per attachment, after a settle delay so the UI change triggered by the action
(a modal opening, a list refreshing) is in place before the tour moves on.

Element kinds, checked in this order:

 - native dropdown (``select``): ``change`` to a non-empty value different
   from the one captured at attach time;
 - custom dropdown (``react-select`` / ``select-wrapper`` markers, or any
   descendant whose class mentions "select"): subtree mutations, reported the
   first time the extracted value differs from the baseline; opening the menu
   changes no value and therefore never counts;
 - clickable (``button``, ``a``, ``role="button"``, ``.btn``, click handler):
   ``click``;
 - text input (``input``, ``textarea``): ``change``/``blur`` with a non-empty
   value different from the baseline;
 - anything else: ``click``.

Attachments are keyed; attaching again under the same key detaches the
previous one first, including any settle timer it had pending.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional

from .element_host import Detach, ElementEvent, ElementHost, TourElement, iter_descendants
from .scheduler import Scheduler, TimerGroup
from .settings_service import TourSettings

__all__ = [
    "ElementKind",
    "InteractionDetector",
    "classify",
    "dropdown_value",
    "ValueExtractor",
]

_logger = logging.getLogger(__name__)

ValueExtractor = Callable[[TourElement], Optional[str]]
DetectionCallback = Callable[[str], None]


class ElementKind(str, Enum):
    NATIVE_DROPDOWN = "native_dropdown"
    CUSTOM_DROPDOWN = "custom_dropdown"
    CLICKABLE = "clickable"
    TEXT_INPUT = "text_input"
    GENERIC = "generic"


def _class_mentions(element: TourElement, *needles: str) -> bool:
    return any(needle in cls for cls in element.class_names for needle in needles)


def classify(element: TourElement) -> ElementKind:
    tag = element.tag_name.lower()
    if tag == "select":
        return ElementKind.NATIVE_DROPDOWN
    classes = set(element.class_names)
    if "react-select" in classes or "select-wrapper" in classes:
        return ElementKind.CUSTOM_DROPDOWN
    if any(_class_mentions(d, "select", "Select") for d in iter_descendants(element)):
        return ElementKind.CUSTOM_DROPDOWN
    if (
        tag in ("button", "a")
        or element.attribute("role") == "button"
        or "btn" in classes
        or element.has_click_handler()
    ):
        return ElementKind.CLICKABLE
    if tag in ("input", "textarea"):
        return ElementKind.TEXT_INPUT
    return ElementKind.GENERIC


def dropdown_value(element: TourElement) -> Optional[str]:
    """Normalised current value of a native or custom dropdown (None when unset)."""
    if element.tag_name.lower() == "select":
        return element.value() or None
    descendants = list(iter_descendants(element))
    for node in descendants:
        if _class_mentions(node, "singleValue"):
            text = (node.text() or "").strip()
            if text:
                return text
    for node in descendants:
        if _class_mentions(node, "selected") or "select-value" in node.class_names:
            text = (node.text() or "").strip()
            if text:
                return text
    for node in descendants:
        if node.tag_name.lower() == "input" and node.attribute("type") == "hidden" and node.value():
            return node.value()
    return None


def _input_value(element: TourElement) -> Optional[str]:
    return element.value()


_DEFAULT_EXTRACTORS: Dict[ElementKind, ValueExtractor] = {
    ElementKind.NATIVE_DROPDOWN: dropdown_value,
    ElementKind.CUSTOM_DROPDOWN: dropdown_value,
    ElementKind.TEXT_INPUT: _input_value,
}


class _Attachment:
    def __init__(self, key: str, element: TourElement, callback: DetectionCallback, timers: TimerGroup) -> None:
        self.key = key
        self.element = element
        self.callback = callback
        self.timers = timers
        self.detaches: List[Detach] = []
        self.fired = False
        self.active = True

    def fire(self, interaction: str, delay_ms: int) -> None:
        if self.fired or not self.active:
            return
        self.fired = True
        self.timers.call_later(delay_ms, lambda: self._deliver(interaction))

    def _deliver(self, interaction: str) -> None:
        if self.active:
            self.callback(interaction)

    def close(self) -> None:
        self.active = False
        self.timers.cancel_all()
        detaches, self.detaches = self.detaches, []
        for detach in detaches:
            detach()


class InteractionDetector:
    def __init__(
        self,
        host: ElementHost,
        scheduler: Scheduler,
        settings: Optional[TourSettings] = None,
        extractors: Optional[Mapping[ElementKind, ValueExtractor]] = None,
    ) -> None:
        self._host = host
        self._scheduler = scheduler
        self._settings = settings or TourSettings.instance
        self._extractors = dict(_DEFAULT_EXTRACTORS)
        if extractors:
            self._extractors.update(extractors)
        self._attachments: Dict[str, _Attachment] = {}

    def attach(self, selector: str, on_detected: DetectionCallback, *, key: Optional[str] = None) -> Detach:
        """Watch the element matching ``selector``.

        Returns a detach function; when no element matches the returned
        function does nothing and the caller handles the fallback.
        """
        key = key or selector
        self.detach(key)
        element = self._host.query(selector)
        if element is None:
            _logger.debug("No element for %s, nothing attached", selector)
            return lambda: None

        att = _Attachment(key, element, on_detected, TimerGroup(self._scheduler))
        kind = classify(element)
        s = self._settings
        if kind is ElementKind.NATIVE_DROPDOWN:
            self._watch_value(att, kind, ("change",), "change", s.change_settle_ms)
        elif kind is ElementKind.CUSTOM_DROPDOWN:
            self._watch_mutations(att, kind, s.select_settle_ms)
        elif kind is ElementKind.TEXT_INPUT:
            self._watch_value(att, kind, ("change", "blur"), "input", s.select_settle_ms)
        else:
            att.detaches.append(element.listen("click", lambda _e: att.fire("click", s.click_settle_ms)))
        self._attachments[key] = att
        _logger.debug("Attached %s listener to %s (key=%s)", kind.value, selector, key)

        def _detach() -> None:
            if self._attachments.get(key) is att:
                self.detach(key)
            else:
                att.close()

        return _detach

    def _watch_value(
        self, att: _Attachment, kind: ElementKind, events: tuple, interaction: str, delay_ms: int
    ) -> None:
        extract = self._extractors[kind]
        baseline = extract(att.element)

        def _on_event(_event: ElementEvent) -> None:
            current = extract(att.element)
            if current and current != baseline:
                att.fire(interaction, delay_ms)

        for event_type in events:
            att.detaches.append(att.element.listen(event_type, _on_event))

    def _watch_mutations(self, att: _Attachment, kind: ElementKind, delay_ms: int) -> None:
        extract = self._extractors[kind]
        baseline = extract(att.element)

        def _on_mutation() -> None:
            if att.fired:
                return
            current = extract(att.element)
            if current and current != baseline:
                att.fire("select", delay_ms)

        att.detaches.append(att.element.observe_mutations(_on_mutation))

    def detach(self, key: str) -> None:
        att = self._attachments.pop(key, None)
        if att is not None:
            att.close()

    def detach_all(self) -> None:
        for key in list(self._attachments):
            self.detach(key)

    def is_attached(self, key: str) -> bool:
        return key in self._attachments

    def active_count(self) -> int:
        return len(self._attachments)
