"""Persistent key/value storage for tour progress.

The progress store only needs ``get(key) -> str | None`` and
``set(key, str)``; values are JSON documents it serialises itself. Backends
raise ``StorageUnavailableError`` on any read/write failure and leave recovery
to the caller.

 - ``JsonFileStorage``: one JSON object file (``tour_storage.json``) mapping
   keys to strings, written via temp file + replace so a crash mid-write never
   leaves a truncated document.
 - ``MemoryStorage``: dict backed; ``fail_reads`` / ``fail_writes`` simulate a
   quota-exceeded or private-mode store in tests.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol

from ..services.errors import StorageUnavailableError

__all__ = ["KeyValueStorage", "JsonFileStorage", "MemoryStorage", "DEFAULT_FILENAME"]

_logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "tour_storage.json"


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class JsonFileStorage:
    def __init__(self, base_dir: str | Path | None = None, filename: str = DEFAULT_FILENAME) -> None:
        base = Path(base_dir) if base_dir else Path.cwd()
        self.path = base / filename

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StorageUnavailableError(f"Cannot read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageUnavailableError(f"{self.path} does not hold a JSON object")
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot write {self.path}: {exc}") from exc
        _logger.debug("Stored %s (%d bytes)", key, len(value))


class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})
        self.fail_reads = False
        self.fail_writes = False
        self.writes = 0

    def get(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise StorageUnavailableError("storage read disabled")
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageUnavailableError("storage quota exceeded")
        self.data[key] = value
        self.writes += 1
