"""Route provider used by the tour engine.

Paths follow the web app convention (``/purchase?tab=orders``). The host
application owns navigation; the engine only needs ``current_path()``,
``navigate(path)`` and a change notification. ``InMemoryRouter`` is the
reference implementation used by the demo window and tests.
"""

from __future__ import annotations

from typing import Callable, List, Protocol

__all__ = ["Router", "InMemoryRouter", "split_path", "route_satisfied"]

RouteListener = Callable[[str], None]


class Router(Protocol):
    def current_path(self) -> str: ...

    def navigate(self, path: str) -> None: ...

    def subscribe(self, listener: RouteListener) -> Callable[[], None]: ...


def split_path(path: str) -> tuple[str, str]:
    """Return ``(pathname, query)`` with the ``?`` stripped from the query."""
    pathname, _, query = (path or "").partition("?")
    return pathname, query


def route_satisfied(required: str, current: str) -> bool:
    """Prefix match of the current path against a requirement minus its query."""
    return (current or "").startswith(split_path(required)[0])


class InMemoryRouter:
    def __init__(self, initial: str = "/dashboard") -> None:
        self._path = initial
        self._listeners: List[RouteListener] = []
        self.history: List[str] = [initial]

    def current_path(self) -> str:
        return self._path

    def pathname(self) -> str:
        return split_path(self._path)[0]

    def navigate(self, path: str) -> None:
        if path == self._path:
            return
        self._path = path
        self.history.append(path)
        for listener in list(self._listeners):
            listener(path)

    def subscribe(self, listener: RouteListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe
