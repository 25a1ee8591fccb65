"""Persistence for the reader: a keyed string store and the caches over it.

WHY: Text caches, syllable trees and the navigation position survive
restarts, but the engine must not care where they are kept.

HOW: kv.py defines the KeyValueStore capability with in-memory and
JSON-file implementations; caches.py layers typed, validated caches on
top of any store.
"""

from niqqud_reader.storage.caches import PositionStore, SyllablesCache, TextCacheStore
from niqqud_reader.storage.kv import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "PositionStore",
    "SyllablesCache",
    "TextCacheStore",
]
