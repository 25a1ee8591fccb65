"""Keyed string persistence: the store every cache writes through.

WHY: The reader remembers its text cache, its syllable trees and the
focused position across restarts. Where that lives depends on the
deployment (a test, a CLI run, a long-lived API process), so the engine
only talks to a three-method capability.

HOW: KeyValueStore is a Protocol with get/set/remove over strings.
MemoryStore keeps a dict. JsonFileStore keeps one JSON object on disk and
rewrites it atomically (temp file + os.replace) on every mutation.

RULES:
- get() returns None for unknown keys, never raises KeyError
- remove() of an unknown key is a no-op
- All mutations hold self._lock
- JsonFileStore treats a missing or unreadable file as empty
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Iterator, Optional, Protocol, Union

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self) -> Iterator[str]: ...


class MemoryStore:
    """Dict-backed store, used in tests and by the HTTP API sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)


class JsonFileStore:
    """Store persisted as a single JSON object file.

    Args:
        path: File to read on construction and rewrite on each mutation.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: Dict[str, str] = self._read()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            logger.warning("Could not read store file %s; starting empty", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Store file %s is not a JSON object; starting empty", self.path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        # Caller holds self._lock.
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".store_", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._flush()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()

    def keys(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._data))
