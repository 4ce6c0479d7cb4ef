"""Service registry for the tour engine and its host adapters.

The bootstrap registers one instance per concern (event bus, settings,
storage, catalog, context tracker, sequencer, tour service) under a semantic
key; views resolve them lazily so tests can swap any collaborator:

    from pbm_gui.services.service_locator import services
    with services.override_context(tour_storage=MemoryStorage()):
        ...

A single lock guards the mapping. There is no disposal; the registry lives as
long as the process or until a test calls ``clear()``.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from threading import RLock
from typing import Any, Dict, Generator, Iterable, Type, TypeVar

T = TypeVar("T")

__all__ = ["ServiceLocator", "services", "ServiceAlreadyRegisteredError", "ServiceNotFoundError"]


class ServiceAlreadyRegisteredError(RuntimeError):
    """Raised when a key is registered twice without ``allow_override``."""


class ServiceNotFoundError(KeyError):
    """Raised when a requested service key is not present."""


@dataclass
class _Entry:
    value: Any
    origin: str | None = None


class ServiceLocator:
    def __init__(self) -> None:
        self._lock = RLock()
        self._entries: Dict[str, _Entry] = {}

    def register(
        self, key: str, value: Any, *, allow_override: bool = False, origin: str | None = None
    ) -> None:
        with self._lock:
            if key in self._entries and not allow_override:
                raise ServiceAlreadyRegisteredError(f"Service '{key}' already registered")
            self._entries[key] = _Entry(value, origin)

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            raise ServiceNotFoundError(key)
        return entry.value

    def get_typed(self, key: str, expected_type: Type[T]) -> T:
        """Resolve ``key`` and check it is an ``expected_type`` instance."""
        value = self.get(key)
        if not isinstance(value, expected_type):
            raise TypeError(
                f"Service '{key}' expected type {expected_type!r} but got {type(value)!r}"
            )
        return value

    def try_get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
        return entry.value if entry else default

    @contextmanager
    def override_context(self, **overrides: Any) -> Generator[None, None, None]:
        """Swap services for the duration of a block, restoring prior entries."""
        previous: Dict[str, _Entry | None] = {}
        with self._lock:
            for key, value in overrides.items():
                previous[key] = self._entries.get(key)
                self._entries[key] = _Entry(value, "override")
        try:
            yield
        finally:
            with self._lock:
                for key, prior in previous.items():
                    if prior is None:
                        self._entries.pop(key, None)
                    else:
                        self._entries[key] = prior

    def unregister(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def list_keys(self) -> Iterable[str]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


services = ServiceLocator()
