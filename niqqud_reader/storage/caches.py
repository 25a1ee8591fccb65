"""Typed caches layered over a KeyValueStore.

WHY: Three things outlive a reader session: the three-form text cache
(plus the last display mode), syllable trees keyed by text fingerprint,
and the focused navigation position. Each is stored as strings under
well-known keys, so a store shared with an older deployment stays
readable, and a corrupt entry must degrade to a cache miss instead of
an exception.

HOW: JSON entries are validated with jsonschema on load; anything that
fails to decode or validate is logged and treated as absent. Writes go
through _best_effort, which logs and swallows OSError so persistence
never interrupts the reader.

RULES:
- Text cache keys: niqqud_cache_original / _clean / _full
- Last display mode key: last_display_state
- Position key: syllables_current_position
- Syllable trees: syllables_cache_<fingerprint> → {text, data, timestamp}
- A syllable entry is returned only if its stored text equals the
  requested text (trimmed)
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional

import jsonschema

from niqqud_reader.core.fingerprint import fingerprint
from niqqud_reader.core.ir import DisplayMode, NavigationPosition, SyllablesData, TextCache
from niqqud_reader.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

TEXT_CACHE_ORIGINAL_KEY = "niqqud_cache_original"
TEXT_CACHE_CLEAN_KEY = "niqqud_cache_clean"
TEXT_CACHE_FULL_KEY = "niqqud_cache_full"
LAST_DISPLAY_STATE_KEY = "last_display_state"
POSITION_KEY = "syllables_current_position"
SYLLABLES_KEY_PREFIX = "syllables_cache_"

# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

SYLLABLES_DATA_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["words"],
    "properties": {
        "words": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["word", "syllables"],
                "properties": {
                    "word": {"type": "string"},
                    "syllables": {"type": "array", "items": {"type": "string"}},
                },
            },
        },
    },
}

SYLLABLES_ENTRY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["text", "data", "timestamp"],
    "properties": {
        "text": {"type": "string"},
        "data": SYLLABLES_DATA_SCHEMA,
        "timestamp": {"type": "number"},
    },
}

POSITION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["mode", "wordIndex"],
    "properties": {
        "mode": {"enum": ["words", "syllables", "letters"]},
        "wordIndex": {"type": "integer", "minimum": 0},
        "syllableIndex": {"type": "integer", "minimum": 0},
        "letterIndex": {"type": "integer", "minimum": 0},
    },
}


def _load_json(raw: Optional[str], schema: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    if raw is None:
        return None
    try:
        data = json.loads(raw)
        jsonschema.validate(instance=data, schema=schema)
    except (ValueError, jsonschema.ValidationError) as exc:
        logger.warning("Ignoring corrupt store entry %s: %s", key, exc)
        return None
    return data


def _best_effort(action: Callable[[], None], what: str) -> None:
    try:
        action()
    except OSError:
        logger.warning("Failed to persist %s", what, exc_info=True)


# ---------------------------------------------------------------------------
# Text cache
# ---------------------------------------------------------------------------


class TextCacheStore:
    """Persists the three-form TextCache and the last display mode."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def load(self) -> Optional[TextCache]:
        original = self._store.get(TEXT_CACHE_ORIGINAL_KEY)
        clean = self._store.get(TEXT_CACHE_CLEAN_KEY)
        if original is None or clean is None:
            return None
        return TextCache(original=original, clean=clean, full=self._store.get(TEXT_CACHE_FULL_KEY))

    def save(self, cache: Optional[TextCache]) -> None:
        if cache is None:
            self.clear()
            return

        def write() -> None:
            self._store.set(TEXT_CACHE_ORIGINAL_KEY, cache.original)
            self._store.set(TEXT_CACHE_CLEAN_KEY, cache.clean)
            if cache.full is not None:
                self._store.set(TEXT_CACHE_FULL_KEY, cache.full)
            else:
                self._store.remove(TEXT_CACHE_FULL_KEY)

        _best_effort(write, "text cache")

    def clear(self) -> None:
        def remove() -> None:
            for key in (TEXT_CACHE_ORIGINAL_KEY, TEXT_CACHE_CLEAN_KEY, TEXT_CACHE_FULL_KEY):
                self._store.remove(key)

        _best_effort(remove, "text cache removal")

    def load_display_mode(self) -> Optional[DisplayMode]:
        raw = self._store.get(LAST_DISPLAY_STATE_KEY)
        if raw is None:
            return None
        try:
            return DisplayMode(raw)
        except ValueError:
            logger.warning("Ignoring unknown display mode %r", raw)
            return None

    def save_display_mode(self, mode: Optional[DisplayMode]) -> None:
        if mode is None:
            _best_effort(lambda: self._store.remove(LAST_DISPLAY_STATE_KEY), "display mode removal")
        else:
            _best_effort(lambda: self._store.set(LAST_DISPLAY_STATE_KEY, mode.value), "display mode")


# ---------------------------------------------------------------------------
# Syllables cache
# ---------------------------------------------------------------------------


def syllables_key(text: str) -> str:
    return SYLLABLES_KEY_PREFIX + fingerprint(text)


class SyllablesCache:
    """Syllable trees keyed by the fingerprint of the text they divide.

    A tree may be stored under several texts (for instance a vocalized
    text and its clean form) so toggling vocalization keeps it reachable.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get(self, text: str) -> Optional[SyllablesData]:
        key = syllables_key(text)
        entry = _load_json(self._store.get(key), SYLLABLES_ENTRY_SCHEMA, key)
        if entry is None:
            return None
        if entry["text"].strip() != text.strip():
            logger.warning("Syllables cache entry %s belongs to a different text; ignoring", key)
            return None
        logger.info("Syllables cache hit for %s", key)
        return SyllablesData.from_dict(entry["data"])

    def put(self, text: str, data: SyllablesData, aliases: Iterable[str] = ()) -> None:
        timestamp = int(time.time() * 1000)
        texts = [text] + [a for a in aliases if a.strip() and a.strip() != text.strip()]

        def write() -> None:
            for t in texts:
                entry = {"text": t, "data": data.to_dict(), "timestamp": timestamp}
                self._store.set(syllables_key(t), json.dumps(entry, ensure_ascii=False))

        _best_effort(write, "syllables cache")

    def clear(self) -> int:
        """Remove every syllables entry. Returns the number removed."""
        keys = [k for k in self._store.keys() if k.startswith(SYLLABLES_KEY_PREFIX)]

        def remove() -> None:
            for key in keys:
                self._store.remove(key)

        _best_effort(remove, "syllables cache removal")
        return len(keys)


# ---------------------------------------------------------------------------
# Navigation position
# ---------------------------------------------------------------------------


class PositionStore:
    """Persists the focused NavigationPosition under one well-known key."""

    def __init__(self, store: KeyValueStore, key: str = POSITION_KEY) -> None:
        self._store = store
        self._key = key

    def load(self) -> Optional[NavigationPosition]:
        data = _load_json(self._store.get(self._key), POSITION_SCHEMA, self._key)
        if data is None:
            return None
        return NavigationPosition.from_dict(data)

    def save(self, position: NavigationPosition) -> None:
        raw = json.dumps(position.to_dict())
        _best_effort(lambda: self._store.set(self._key, raw), "navigation position")

    def clear(self) -> None:
        _best_effort(lambda: self._store.remove(self._key), "navigation position removal")
