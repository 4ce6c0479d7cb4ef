"""Live application context consulted by workflow-guide steps.

The snapshot holds the current route, the open modal, opaque modal props, a
form-state map and the last user action. The router keeps ``current_page`` in
sync; forms and modals report the rest through ``update`` (usually via
``TourService.broadcast``).

``update`` only stores the merged value and notifies subscribers. While no
tour runs nobody is subscribed, so a high-frequency update costs a dict merge
and nothing else.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Dict, List, Mapping, Optional

from .routing import Router, split_path

__all__ = ["LiveContext", "LiveContextTracker", "ContextListener"]

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiveContext:
    current_page: Optional[str] = None
    current_modal: Optional[str] = None
    modal_props: Mapping[str, Any] = field(default_factory=dict)
    form_state: Mapping[str, Any] = field(default_factory=dict)
    last_action: Optional[str] = None


ContextListener = Callable[[LiveContext], None]

_FIELD_NAMES = {f.name for f in fields(LiveContext)}
_CAMEL_ALIASES = {
    "currentPage": "current_page",
    "currentModal": "current_modal",
    "modalProps": "modal_props",
    "formState": "form_state",
    "lastAction": "last_action",
}


def _normalize(partial: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in partial.items():
        name = _CAMEL_ALIASES.get(key, key)
        if name not in _FIELD_NAMES:
            _logger.debug("Ignoring unknown live context field %r", key)
            continue
        if name in ("modal_props", "form_state"):
            value = dict(value or {})
        out[name] = value
    return out


class LiveContextTracker:
    """Holds the current ``LiveContext`` and notifies subscribers on change.

    ``update`` is a shallow merge: a ``form_state`` entry replaces the whole
    form-state map, matching how forms report their complete state at once.
    Both snake_case and the web front end's camelCase keys are accepted.
    """

    def __init__(self, initial: Optional[LiveContext] = None) -> None:
        self._ctx = initial or LiveContext()
        self._listeners: List[ContextListener] = []
        self._router_unsub: Optional[Callable[[], None]] = None

    @property
    def snapshot(self) -> LiveContext:
        return self._ctx

    def update(self, partial: Optional[Mapping[str, Any]] = None, **fields_: Any) -> LiveContext:
        merged = dict(partial or {})
        merged.update(fields_)
        changes = _normalize(merged)
        if not changes:
            return self._ctx
        self._ctx = replace(self._ctx, **changes)
        if self._listeners:
            for listener in list(self._listeners):
                listener(self._ctx)
        return self._ctx

    def subscribe(self, listener: ContextListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def listener_count(self) -> int:
        return len(self._listeners)

    def attach_router(self, router: Router) -> None:
        """Follow ``router``: ``current_page`` tracks its pathname."""
        self.detach_router()
        self.update(current_page=split_path(router.current_path())[0])
        self._router_unsub = router.subscribe(self._on_route)

    def detach_router(self) -> None:
        if self._router_unsub is not None:
            self._router_unsub()
            self._router_unsub = None

    def _on_route(self, path: str) -> None:
        pathname = split_path(path)[0]
        if pathname != self._ctx.current_page:
            _logger.debug("Route changed to %s", pathname)
        self.update(current_page=pathname)

    def reset(self, keep_page: bool = True) -> None:
        """Forget modal/form state (e.g. on user or company switch)."""
        page = self._ctx.current_page if keep_page else None
        self._ctx = LiveContext(current_page=page)
