"""Shared test fixtures for the niqqud_reader test suite.

WHY: Most test modules need the same Hebrew sample texts, an in-memory
store, a fake layout, a recording highlighter and a provider client that
never touches the network. Centralizing them keeps the samples
consistent across modules.

HOW: Sample texts are module-level constants (importable from tests) and
fixtures wrap the fakes. FakeProviderClient mimics ProviderClient's async
context manager and records every call. Each call yields to the event
loop once, so concurrent requests interleave as they would over HTTP.

RULES:
- No test reaches the network
- FULL_TEXT and PARTIAL_TEXT have the same letters as PLAIN_TEXT
- PARTIAL_TEXT vocalizes exactly one of its two words (50% → partial)
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence

import pytest

from niqqud_reader.api.models import SyllablesResult
from niqqud_reader.core.errors import ReaderError
from niqqud_reader.core.ir import NavigationPosition, SyllablesData, SyllableWord
from niqqud_reader.storage.kv import MemoryStore


# ---------------------------------------------------------------------------
# Sample texts
# ---------------------------------------------------------------------------

SHALOM = "שלום"
SHALOM_VOCALIZED = "שָׁלוֹם"
OLAM = "עולם"
OLAM_VOCALIZED = "עוֹלָם"

PLAIN_TEXT = "שלום עולם"
FULL_TEXT = "שָׁלוֹם עוֹלָם"
PARTIAL_TEXT = "שָׁלוֹם עולם"

# Syllable division of FULL_TEXT as a provider would answer it.
FULL_SYLLABLES_REPLY = "שָׁ-לוֹם\nעוֹ-לָם"

FULL_SYLLABLES = SyllablesData(words=[
    SyllableWord(word=SHALOM, syllables=["שָׁ", "לוֹם"]),
    SyllableWord(word=OLAM, syllables=["עוֹ", "לָם"]),
])


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeLayout:
    """Layout over explicit lines of word indices."""

    def __init__(self, lines: List[List[int]]) -> None:
        self.lines = lines

    def line_of(self, word_index: int) -> Optional[int]:
        for i, line in enumerate(self.lines):
            if word_index in line:
                return i
        return None

    def words_on_line(self, line_id: int) -> Sequence[int]:
        return self.lines[line_id] if 0 <= line_id < len(self.lines) else []


class RecordingHighlighter:
    def __init__(self) -> None:
        self.shown: List[tuple] = []
        self.cleared = 0

    def show(self, position: NavigationPosition, text: str) -> None:
        self.shown.append((position, text))

    def clear(self) -> None:
        self.cleared += 1


class FakeProviderClient:
    """Stands in for ProviderClient; answers from canned replies.

    vocalizations maps source text → reply (or a ReaderError to raise).
    syllables maps source text → raw reply (or a ReaderError to raise).
    """

    def __init__(
        self,
        vocalizations: Optional[Dict[str, object]] = None,
        syllables: Optional[Dict[str, object]] = None,
    ) -> None:
        self.vocalizations = vocalizations or {}
        self.syllables = syllables or {}
        self.vocalize_calls: List[tuple] = []
        self.syllable_calls: List[str] = []
        self.before_reply = None

    async def __aenter__(self) -> "FakeProviderClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def vocalize(self, text, settings, variant=None) -> str:
        self.vocalize_calls.append((text, variant))
        await asyncio.sleep(0)
        if self.before_reply is not None:
            self.before_reply()
        reply = self.vocalizations.get(text, "")
        if isinstance(reply, ReaderError):
            raise reply
        return reply

    async def divide_syllables(self, text, settings) -> SyllablesResult:
        from niqqud_reader.core.errors import ProviderUnparsableSyllablesError
        from niqqud_reader.core.parser import parse_syllables_response

        self.syllable_calls.append(text)
        await asyncio.sleep(0)
        if self.before_reply is not None:
            self.before_reply()
        reply = self.syllables.get(text, "")
        if isinstance(reply, ReaderError):
            raise reply
        data = parse_syllables_response(reply)
        if data is None:
            raise ProviderUnparsableSyllablesError()
        return SyllablesResult(data=data, raw_response=reply)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def highlighter():
    return RecordingHighlighter()


@pytest.fixture
def provider_env(monkeypatch):
    """Credentials for both providers, set through the environment."""
    monkeypatch.setenv("NIQQUD_API_KEY", "test-key")
    monkeypatch.delenv("SYLLABLES_API_KEY", raising=False)


@pytest.fixture
def fake_client():
    return FakeProviderClient(
        vocalizations={PLAIN_TEXT: FULL_TEXT, PARTIAL_TEXT: FULL_TEXT},
        syllables={FULL_TEXT: FULL_SYLLABLES_REPLY},
    )
