"""Tests for ReaderSession, the adapter between engine and I/O.

WHY: The session is where pure transitions meet the provider, the
caches and navigation. Request coalescing, stale-reply discarding and
the single user-facing error only exist once these pieces run together.

HOW: Sessions run over a MemoryStore with FakeProviderClient as the
client factory; async operations are driven with asyncio.run().
  - TestToggleFlow: full toggle cycles for plain and partial text
  - TestConcurrency: coalescing and stale discards
  - TestErrors: provider and configuration failures become session.error
  - TestSyllables: cached division, reconciliation, navigation content
  - TestRestore: a new session picks up the persisted cache

RULES:
- provider_env supplies credentials; no test reaches the network
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import FULL_SYLLABLES, FULL_TEXT, PARTIAL_TEXT, PLAIN_TEXT, FakeProviderClient
from niqqud_reader.core.errors import (
    EmptyInputError,
    ErrorKind,
    MissingCredentialError,
    ProviderHttpError,
)
from niqqud_reader.core.ir import DisplayMode, NavigationMode, PromptVariant, TargetState
from niqqud_reader.core.niqqud import contains_niqqud
from niqqud_reader.session import ReaderSession
from niqqud_reader.storage.caches import SyllablesCache, TextCacheStore


@pytest.fixture
def make_session(store, fake_client, provider_env):
    def make(text=PLAIN_TEXT, client=None, **kwargs):
        client = client or fake_client
        return ReaderSession(store, text, client_factory=lambda: client, **kwargs)

    return make


class TestToggleFlow:
    def test_plain_text_cycle(self, make_session, fake_client, store):
        session = make_session()
        asyncio.run(session.toggle_niqqud())
        assert fake_client.vocalize_calls == [(PLAIN_TEXT, PromptVariant.FRESH)]
        assert session.text == FULL_TEXT
        assert session.display_mode == DisplayMode.FULL
        assert TextCacheStore(store).load().full == FULL_TEXT

        asyncio.run(session.toggle_niqqud())
        assert session.text == PLAIN_TEXT
        assert session.display_mode == DisplayMode.CLEAN

        asyncio.run(session.toggle_niqqud())
        assert session.text == FULL_TEXT
        assert len(fake_client.vocalize_calls) == 1

    def test_partial_text_restores_original(self, make_session, fake_client):
        session = make_session(PARTIAL_TEXT)
        assert session.target_state == TargetState.ORIGINAL
        asyncio.run(session.toggle_niqqud())
        assert session.text == PLAIN_TEXT
        asyncio.run(session.toggle_niqqud())
        assert session.text == PARTIAL_TEXT
        assert fake_client.vocalize_calls == []

    def test_completion_sends_partial_original(self, make_session, fake_client):
        session = make_session(PARTIAL_TEXT)
        session.remove_niqqud()
        asyncio.run(session.complete_niqqud())
        assert fake_client.vocalize_calls == [(PARTIAL_TEXT, PromptVariant.COMPLETION)]
        assert session.text == FULL_TEXT
        assert session.cache.original == PARTIAL_TEXT

    def test_switches_and_restore(self, make_session):
        session = make_session(PARTIAL_TEXT)
        asyncio.run(session.add_niqqud())
        session.switch_to_clean()
        session.set_text(FULL_TEXT)
        session.restore_last_display_mode()
        assert session.display_mode == DisplayMode.CLEAN
        session.switch_to_original()
        assert session.text == PARTIAL_TEXT

    def test_clear_niqqud(self, make_session, store):
        session = make_session()
        asyncio.run(session.add_niqqud())
        session.clear_niqqud()
        assert session.text == ""
        assert session.cache is None
        assert TextCacheStore(store).load() is None
        assert TextCacheStore(store).load_display_mode() is None


class TestConcurrency:
    def test_concurrent_requests_are_coalesced(self, make_session, fake_client):
        session = make_session()

        async def both():
            await asyncio.gather(session.add_niqqud(), session.add_niqqud())

        asyncio.run(both())
        assert len(fake_client.vocalize_calls) == 1
        assert session.text == FULL_TEXT
        assert not session.is_loading

    def test_reply_for_edited_text_is_discarded(self, make_session, fake_client):
        session = make_session()
        edited = "שלום לכולם"
        fake_client.before_reply = lambda: session.set_text(edited)
        asyncio.run(session.add_niqqud())
        assert session.text == edited
        assert session.cache is None
        assert session.error is None
        assert not session.is_loading

    def test_concurrent_syllable_divisions_are_coalesced(self, make_session, fake_client):
        session = make_session(FULL_TEXT)

        async def both():
            return await asyncio.gather(session.divide_syllables(), session.divide_syllables())

        first, second = asyncio.run(both())
        assert fake_client.syllable_calls == [FULL_TEXT]
        assert first == FULL_SYLLABLES
        assert second is None

    def test_syllables_for_edited_text_are_discarded(self, make_session, fake_client, store):
        session = make_session(FULL_TEXT)
        edited = "שלום לכולם"
        fake_client.before_reply = lambda: session.set_text(edited)
        assert asyncio.run(session.divide_syllables()) is None
        assert session.syllables is None
        assert SyllablesCache(store).get(edited) is None

        fake_client.before_reply = None
        fake_client.syllables[edited] = "ש-לום\nל-כו-לם"
        tree = asyncio.run(session.divide_syllables())
        assert [w.word for w in tree.words] == ["שלום", "לכולם"]
        assert fake_client.syllable_calls == [FULL_TEXT, edited]


class TestErrors:
    def test_unvocalized_reply_recorded(self, store, provider_env):
        client = FakeProviderClient(vocalizations={PLAIN_TEXT: PLAIN_TEXT})
        session = ReaderSession(store, PLAIN_TEXT, client_factory=lambda: client)
        asyncio.run(session.add_niqqud())
        assert session.error.kind == ErrorKind.PROVIDER_NO_VOCALIZATION
        assert session.text == PLAIN_TEXT
        assert not session.is_loading

    def test_http_error_recorded(self, store, provider_env):
        client = FakeProviderClient(vocalizations={PLAIN_TEXT: ProviderHttpError(429, "slow down")})
        session = ReaderSession(store, PLAIN_TEXT, client_factory=lambda: client)
        asyncio.run(session.add_niqqud())
        assert isinstance(session.error, ProviderHttpError)
        assert session.error.status_code == 429

    def test_missing_key_makes_no_call(self, make_session, fake_client, monkeypatch):
        monkeypatch.delenv("NIQQUD_API_KEY")
        session = make_session()
        asyncio.run(session.add_niqqud())
        assert isinstance(session.error, MissingCredentialError)
        assert fake_client.vocalize_calls == []
        assert not session.is_loading

    def test_empty_text(self, make_session):
        session = make_session("")
        asyncio.run(session.add_niqqud())
        assert isinstance(session.error, EmptyInputError)
        asyncio.run(session.divide_syllables())
        assert isinstance(session.error, EmptyInputError)

    def test_next_operation_clears_error(self, make_session):
        session = make_session("")
        asyncio.run(session.add_niqqud())
        session.set_text(PLAIN_TEXT)
        assert session.error is None

    def test_unparsable_syllables(self, store, provider_env):
        client = FakeProviderClient(syllables={FULL_TEXT: "Here is the division:"})
        session = ReaderSession(store, FULL_TEXT, client_factory=lambda: client)
        assert asyncio.run(session.divide_syllables()) is None
        assert session.error.kind == ErrorKind.PROVIDER_UNPARSABLE_SYLLABLES


class TestSyllables:
    def test_division_drives_navigation(self, make_session):
        session = make_session(FULL_TEXT, navigation_mode=NavigationMode.SYLLABLES)
        asyncio.run(session.divide_syllables())
        assert session.raw_syllables_response == "שָׁ-לוֹם\nעוֹ-לָם"
        assert session.navigation.focus_next().syllable_index == 1

    def test_source_is_full_form_while_clean_shown(self, make_session, fake_client):
        session = make_session()
        asyncio.run(session.add_niqqud())
        session.remove_niqqud()
        assert session.syllables_source() == FULL_TEXT
        shown = asyncio.run(session.divide_syllables())
        assert fake_client.syllable_calls == [FULL_TEXT]
        assert all(not contains_niqqud(s) for w in shown.words for s in w.syllables)

    def test_cache_prevents_second_call(self, make_session, fake_client, store, provider_env):
        asyncio.run(make_session(FULL_TEXT).divide_syllables())
        again = ReaderSession(store, FULL_TEXT, client_factory=lambda: fake_client)
        assert again.syllables == FULL_SYLLABLES
        assert asyncio.run(again.divide_syllables()) == FULL_SYLLABLES
        assert len(fake_client.syllable_calls) == 1

    def test_clean_text_reaches_cached_tree(self, make_session, store, fake_client):
        asyncio.run(make_session(FULL_TEXT).divide_syllables())
        clean = ReaderSession(store, PLAIN_TEXT, client_factory=lambda: fake_client)
        assert clean.syllables is not None

    def test_clear_syllables(self, make_session):
        session = make_session(FULL_TEXT)
        asyncio.run(session.divide_syllables())
        assert session.clear_syllables() == 2
        assert session.syllables is None
        assert session.raw_syllables_response is None


class TestRestore:
    def test_empty_session_shows_persisted_form(self, make_session, store, fake_client):
        asyncio.run(make_session().add_niqqud())
        restored = ReaderSession(store, client_factory=lambda: fake_client)
        assert restored.text == FULL_TEXT
        assert restored.display_mode == DisplayMode.FULL
        assert restored.cache.original == PLAIN_TEXT

    def test_navigation_position_survives(self, make_session, store, fake_client):
        first = make_session(FULL_TEXT)
        first.navigation.focus_next()
        second = ReaderSession(store, FULL_TEXT, client_factory=lambda: fake_client)
        assert second.navigation.get_current_position().word_index == 1
