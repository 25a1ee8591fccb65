"""Tests for the three-form text-state machine.

WHY: The transitions decide which text the reader sees and when the
provider is called. Losing a partially vocalized original, calling the
provider twice, or applying a stale reply are all user-visible bugs.

HOW: Each class covers one group of transitions. Transitions are pure,
so tests build a TextState, apply a function and inspect the returned
state and intents.
  - TestExternalChange: echo detection, cache rebuild and drop
  - TestRemoveNiqqud: first use creates the cache
  - TestVocalizationRequests: intents, short-circuit and coalescing
  - TestAcceptVocalization: validation and stale discards
  - TestSwitches: pure cache reads and last display mode
  - TestToggle: the toggle decision table
  - TestRestoreState: start-up from a persisted cache
"""

from __future__ import annotations

import pytest

from conftest import FULL_TEXT, PARTIAL_TEXT, PLAIN_TEXT
from niqqud_reader.core import text_state as ts
from niqqud_reader.core.errors import (
    EmptyInputError,
    ProviderEmptyResponseError,
    ProviderNoVocalizationError,
    ProviderTextMismatchError,
)
from niqqud_reader.core.fingerprint import fingerprint
from niqqud_reader.core.ir import DisplayMode, PromptVariant, TargetState, TextCache


def _calls(transition):
    return [i for i in transition.intents if isinstance(i, ts.CallVocalizationProvider)]


def _vocalized_plain_state():
    """PLAIN_TEXT after a successful add: full form displayed."""
    state = ts.initial_state(PLAIN_TEXT)
    request = _calls(ts.add_niqqud(state))[0]
    pending = ts.add_niqqud(state).state
    return ts.accept_vocalization(pending, request, FULL_TEXT).state


class TestExternalChange:
    def test_plain_text_targets_full(self):
        t = ts.apply_external_text_change(ts.initial_state(), PLAIN_TEXT)
        assert t.state.cache is None
        assert t.state.target_state == TargetState.FULL

    def test_partial_text_targets_original(self):
        t = ts.apply_external_text_change(ts.initial_state(), PARTIAL_TEXT)
        assert t.state.cache is None
        assert t.state.target_state == TargetState.ORIGINAL

    def test_full_text_builds_cache(self):
        t = ts.apply_external_text_change(ts.initial_state(), FULL_TEXT)
        assert t.state.cache == TextCache(original=FULL_TEXT, clean=PLAIN_TEXT, full=FULL_TEXT)
        assert t.state.display_mode == DisplayMode.FULL
        assert t.state.target_state == TargetState.FULL
        assert ts.PersistTextCache(t.state.cache) in t.intents

    def test_echo_of_cached_full_keeps_partial_original(self):
        cache = TextCache(original=PARTIAL_TEXT, clean=PLAIN_TEXT, full=FULL_TEXT)
        state = ts.TextState(text=PLAIN_TEXT, cache=cache, display_mode=DisplayMode.CLEAN)
        t = ts.apply_external_text_change(state, FULL_TEXT)
        assert t.state.cache is cache
        assert t.state.display_mode == DisplayMode.FULL
        assert t.intents == ()

    def test_echo_of_cached_form_keeps_cache(self):
        cache = TextCache(original=PARTIAL_TEXT, clean=PLAIN_TEXT, full=None)
        state = ts.TextState(text=PARTIAL_TEXT, cache=cache)
        t = ts.apply_external_text_change(state, "  {}\n".format(PLAIN_TEXT))
        assert t.state.cache is cache
        assert t.state.display_mode == DisplayMode.CLEAN
        assert t.intents == ()

    def test_genuine_edit_drops_cache(self):
        cache = TextCache(original=PLAIN_TEXT, clean=PLAIN_TEXT, full=None)
        state = ts.TextState(text=PLAIN_TEXT, cache=cache)
        t = ts.apply_external_text_change(state, "שלום לכולם")
        assert t.state.cache is None
        assert t.intents == (ts.PersistTextCache(None),)
        assert t.state.target_state == TargetState.FULL

    def test_unchanged_text_is_noop(self):
        state = ts.initial_state(PLAIN_TEXT)
        assert ts.apply_external_text_change(state, PLAIN_TEXT).state is state

    def test_edit_clears_pending_request(self):
        state = ts.add_niqqud(ts.initial_state(PLAIN_TEXT)).state
        assert state.pending is not None
        t = ts.apply_external_text_change(state, "שלום לכולם")
        assert t.state.pending is None


class TestRemoveNiqqud:
    def test_first_use_creates_cache(self):
        t = ts.remove_niqqud_transition(ts.initial_state(PARTIAL_TEXT))
        assert t.state.text == PLAIN_TEXT
        assert t.state.cache == TextCache(original=PARTIAL_TEXT, clean=PLAIN_TEXT, full=None)
        assert t.state.display_mode == DisplayMode.CLEAN
        assert ts.PersistDisplayMode(DisplayMode.CLEAN) in t.intents

    def test_existing_cache_is_reused(self):
        state = _vocalized_plain_state()
        t = ts.remove_niqqud_transition(state)
        assert t.state.cache is state.cache
        assert t.state.text == PLAIN_TEXT


class TestVocalizationRequests:
    def test_add_emits_one_fresh_call(self):
        state = ts.initial_state(PLAIN_TEXT)
        t = ts.add_niqqud(state)
        calls = _calls(t)
        assert calls == [ts.CallVocalizationProvider(
            text=PLAIN_TEXT, variant=PromptVariant.FRESH, fingerprint=fingerprint(PLAIN_TEXT)
        )]
        assert t.state.pending == fingerprint(PLAIN_TEXT)
        assert t.state.is_loading

    def test_complete_uses_completion_variant(self):
        t = ts.complete_niqqud(ts.initial_state(PARTIAL_TEXT))
        assert _calls(t)[0].variant == PromptVariant.COMPLETION

    def test_complete_sends_partial_original_while_clean_is_shown(self):
        state = ts.remove_niqqud_transition(ts.initial_state(PARTIAL_TEXT)).state
        call = _calls(ts.complete_niqqud(state))[0]
        assert call.text == PARTIAL_TEXT
        assert call.fingerprint == fingerprint(PLAIN_TEXT)

    def test_second_request_is_coalesced(self):
        first = ts.add_niqqud(ts.initial_state(PLAIN_TEXT))
        second = ts.add_niqqud(first.state)
        assert _calls(second) == []
        assert second.state is first.state

    def test_cache_hit_short_circuits(self):
        state = ts.remove_niqqud_transition(_vocalized_plain_state()).state
        t = ts.add_niqqud(state)
        assert _calls(t) == []
        assert t.state.text == FULL_TEXT
        assert t.state.display_mode == DisplayMode.FULL

    def test_blank_text_raises(self):
        with pytest.raises(EmptyInputError):
            ts.add_niqqud(ts.initial_state("   "))


class TestAcceptVocalization:
    def _pending(self, text=PLAIN_TEXT):
        t = ts.add_niqqud(ts.initial_state(text))
        return t.state, _calls(t)[0]

    def test_accept_sets_full(self):
        state, request = self._pending()
        t = ts.accept_vocalization(state, request, FULL_TEXT)
        assert t.state.text == FULL_TEXT
        assert t.state.cache == TextCache(original=PLAIN_TEXT, clean=PLAIN_TEXT, full=FULL_TEXT)
        assert t.state.display_mode == DisplayMode.FULL
        assert t.state.target_state == TargetState.FULL
        assert t.state.pending is None
        assert ts.PersistTextCache(t.state.cache) in t.intents

    def test_reply_is_trimmed(self):
        state, request = self._pending()
        t = ts.accept_vocalization(state, request, "\n {} \n".format(FULL_TEXT))
        assert t.state.text == FULL_TEXT

    def test_empty_reply_rejected(self):
        state, request = self._pending()
        with pytest.raises(ProviderEmptyResponseError):
            ts.accept_vocalization(state, request, "  ")

    def test_changed_letters_rejected(self):
        state, request = self._pending()
        with pytest.raises(ProviderTextMismatchError):
            ts.accept_vocalization(state, request, "שָׁלוֹם לְכֻלָּם")

    def test_unvocalized_reply_rejected(self):
        state, request = self._pending()
        with pytest.raises(ProviderNoVocalizationError):
            ts.accept_vocalization(state, request, PLAIN_TEXT)

    def test_stale_reply_discarded(self):
        state, request = self._pending()
        edited = ts.apply_external_text_change(state, "שלום לכולם").state
        t = ts.accept_vocalization(edited, request, FULL_TEXT)
        assert t.discarded
        assert t.state is edited

    def test_abandon_clears_pending(self):
        state, request = self._pending()
        assert ts.abandon_request(state, request).pending is None

    def test_completion_keeps_partial_original(self):
        state = ts.remove_niqqud_transition(ts.initial_state(PARTIAL_TEXT)).state
        t = ts.complete_niqqud(state)
        accepted = ts.accept_vocalization(t.state, _calls(t)[0], FULL_TEXT)
        assert accepted.state.cache.original == PARTIAL_TEXT
        assert accepted.state.cache.full == FULL_TEXT


class TestSwitches:
    def test_switches_are_noops_without_cache(self):
        state = ts.initial_state(PLAIN_TEXT)
        for op in (ts.switch_to_original, ts.switch_to_clean, ts.switch_to_full):
            assert op(state).state is state

    def test_switch_to_full_needs_full_form(self):
        state = ts.remove_niqqud_transition(ts.initial_state(PARTIAL_TEXT)).state
        assert ts.switch_to_full(state).state is state

    def test_switch_to_original_sets_target(self):
        state = _vocalized_plain_state()
        t = ts.switch_to_original(state)
        assert t.state.text == PLAIN_TEXT
        assert t.state.target_state == TargetState.ORIGINAL
        assert t.state.last_display_mode == DisplayMode.ORIGINAL

    def test_restore_last_display_mode(self):
        state = ts.switch_to_clean(_vocalized_plain_state()).state
        state = ts.apply_external_text_change(state, FULL_TEXT).state
        t = ts.restore_last_display_mode(state)
        assert t.state.display_mode == DisplayMode.CLEAN

    def test_clear_forgets_everything(self):
        t = ts.clear_niqqud(_vocalized_plain_state())
        assert t.state.text == ""
        assert t.state.cache is None
        assert ts.PersistTextCache(None) in t.intents
        assert ts.PersistDisplayMode(None) in t.intents


class TestToggle:
    def test_vocalized_text_is_stripped(self):
        t = ts.toggle_niqqud(ts.initial_state(FULL_TEXT))
        assert t.state.display_mode == DisplayMode.CLEAN

    def test_plain_text_requests_fresh_vocalization(self):
        t = ts.toggle_niqqud(ts.initial_state(PLAIN_TEXT))
        assert _calls(t)[0].variant == PromptVariant.FRESH

    def test_cached_full_is_reused(self):
        state = ts.toggle_niqqud(_vocalized_plain_state()).state
        t = ts.toggle_niqqud(state)
        assert _calls(t) == []
        assert t.state.text == FULL_TEXT

    def test_partial_original_restores_original(self):
        state = ts.toggle_niqqud(ts.initial_state(PARTIAL_TEXT)).state
        assert state.text == PLAIN_TEXT
        t = ts.toggle_niqqud(state)
        assert t.state.text == PARTIAL_TEXT
        assert _calls(t) == []

    def test_partial_original_with_full_target_requests_completion(self):
        cache = TextCache(original=PARTIAL_TEXT, clean=PLAIN_TEXT)
        state = ts.TextState(
            text=PLAIN_TEXT,
            cache=cache,
            display_mode=DisplayMode.CLEAN,
            target_state=TargetState.FULL,
        )
        t = ts.toggle_niqqud(state)
        assert _calls(t)[0].variant == PromptVariant.COMPLETION


class TestRestoreState:
    def test_empty_text_shows_last_mode(self):
        cache = TextCache(original=PLAIN_TEXT, clean=PLAIN_TEXT, full=FULL_TEXT)
        state = ts.restore_state("", cache, DisplayMode.FULL)
        assert state.text == FULL_TEXT
        assert state.display_mode == DisplayMode.FULL

    def test_matching_text_keeps_cache(self):
        cache = TextCache(original=PARTIAL_TEXT, clean=PLAIN_TEXT, full=FULL_TEXT)
        state = ts.restore_state(PLAIN_TEXT, cache)
        assert state.cache is cache
        assert state.display_mode == DisplayMode.CLEAN

    def test_unrelated_text_ignores_cache(self):
        cache = TextCache(original=PLAIN_TEXT, clean=PLAIN_TEXT, full=FULL_TEXT)
        state = ts.restore_state("שלום לכולם", cache)
        assert state.cache is None
