"""Reader session: the adapter that runs the engine against real I/O.

WHY: The text-state engine is pure and only returns intents; the
navigation machine only needs a position store. Something has to hold
the current state, call the providers, write the caches, feed results
back, and keep one user-facing error. That is this module.

HOW: ReaderSession owns a TextState, a NavigationStateMachine, the
three caches over a single KeyValueStore, and a factory for
ProviderClient. Every text operation goes through _run(): compute the
transition, execute its intents (persist, or await the provider), then
refresh the syllable tree and the navigation content for whatever is
now displayed.

RULES:
- ReaderError is caught here and only here; it becomes self.error and
  leaves the state as it was before the failed step
- Every new operation clears the previous error
- No retries
- One in-flight vocalization per text fingerprint, one in-flight
  syllable division per source fingerprint
- A provider result for text that is no longer displayed is discarded
- Syllable trees are looked up in the cache before any provider call
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Set

from niqqud_reader.api.client import ProviderClient
from niqqud_reader.config import load_syllables_settings, load_vocalization_settings
from niqqud_reader.core import text_state as ts
from niqqud_reader.core.errors import CacheInconsistencyError, EmptyInputError, ReaderError
from niqqud_reader.core.fingerprint import fingerprint
from niqqud_reader.core.ir import (
    DisplayMode,
    NavigationMode,
    NiqqudStatus,
    SyllablesData,
    TargetState,
    TextCache,
)
from niqqud_reader.core.navigation import Highlighter, Layout, NavigationStateMachine
from niqqud_reader.core.niqqud import remove_niqqud
from niqqud_reader.core.reconciler import reconcile_or_raise
from niqqud_reader.storage.caches import PositionStore, SyllablesCache, TextCacheStore
from niqqud_reader.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], ProviderClient]


class ReaderSession:
    """One reader working on one text.

    Args:
        store: Persistence shared by the text cache, syllables cache and
            navigation position.
        text: Initial text. When empty, a persisted text cache is
            restored and its last displayed form shown.
        client_factory: Builds a ProviderClient per provider call.
        layout: Visual line lookup for focus_up/focus_down.
        highlighter: Receives navigation focus changes.
        navigation_mode: Initial navigation granularity.
        vocalization_model: Overrides NIQQUD_MODEL.
        syllables_model: Overrides SYLLABLES_MODEL.
    """

    def __init__(
        self,
        store: KeyValueStore,
        text: str = "",
        client_factory: ClientFactory = ProviderClient,
        layout: Optional[Layout] = None,
        highlighter: Optional[Highlighter] = None,
        navigation_mode: NavigationMode = NavigationMode.WORDS,
        vocalization_model: Optional[str] = None,
        syllables_model: Optional[str] = None,
    ) -> None:
        self._text_store = TextCacheStore(store)
        self._syllables_cache = SyllablesCache(store)
        self._client_factory = client_factory
        self.vocalization_model = vocalization_model
        self.syllables_model = syllables_model

        self.error: Optional[ReaderError] = None
        self.syllables: Optional[SyllablesData] = None
        self.raw_syllables_response: Optional[str] = None
        self._syllables_pending: Set[str] = set()

        self.navigation = NavigationStateMachine(
            PositionStore(store),
            layout=layout,
            highlighter=highlighter,
            mode=navigation_mode,
        )

        self._state = ts.restore_state(
            text,
            self._text_store.load(),
            self._text_store.load_display_mode(),
        )
        if self._state.cache is not None:
            logger.info("Restored text cache (display mode %s)", self._state.display_mode.value)
        self._refresh()

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def state(self) -> ts.TextState:
        return self._state

    @property
    def text(self) -> str:
        return self._state.text

    @property
    def cache(self) -> Optional[TextCache]:
        return self._state.cache

    @property
    def display_mode(self) -> DisplayMode:
        return self._state.display_mode

    @property
    def target_state(self) -> TargetState:
        return self._state.target_state

    @property
    def niqqud_status(self) -> NiqqudStatus:
        return self._state.niqqud_status

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading or bool(self._syllables_pending)

    def displayed_syllables(self) -> Optional[SyllablesData]:
        """The syllable tree matching the displayed form, or None.

        Raises:
            CacheInconsistencyError: the tree cannot be aligned with the
                displayed original text.
        """
        if self.syllables is None:
            return None
        return reconcile_or_raise(self.syllables, self._state.display_mode, self._state.cache)

    # ------------------------------------------------------------------
    # Text operations
    # ------------------------------------------------------------------

    def set_text(self, text: str) -> None:
        """Apply an edit made outside the session (typing, pasting)."""
        self._run_sync(lambda s: ts.apply_external_text_change(s, text))

    def remove_niqqud(self) -> None:
        self._run_sync(ts.remove_niqqud_transition)

    def switch_to_original(self) -> None:
        self._run_sync(ts.switch_to_original)

    def switch_to_clean(self) -> None:
        self._run_sync(ts.switch_to_clean)

    def switch_to_full(self) -> None:
        self._run_sync(ts.switch_to_full)

    def restore_last_display_mode(self) -> None:
        self._run_sync(ts.restore_last_display_mode)

    def clear_niqqud(self) -> None:
        """Forget the text, its cache and the persisted display mode."""
        self._run_sync(ts.clear_niqqud)

    async def add_niqqud(self) -> None:
        await self._run(ts.add_niqqud)

    async def complete_niqqud(self) -> None:
        await self._run(ts.complete_niqqud)

    async def toggle_niqqud(self) -> None:
        await self._run(ts.toggle_niqqud)

    # ------------------------------------------------------------------
    # Syllables
    # ------------------------------------------------------------------

    def syllables_source(self) -> str:
        """Text a syllable division is computed from: the full form if known."""
        cache = self._state.cache
        if cache is not None and cache.full is not None:
            return cache.full
        return self._state.text

    async def divide_syllables(self) -> Optional[SyllablesData]:
        """Divide the current text into syllables, from cache when possible.

        Returns:
            The tree for the displayed form, or None on failure (see error).
        """
        self.error = None
        source = self.syllables_source()
        if not source.strip():
            self.error = EmptyInputError()
            return None

        cached = self._syllables_cache.get(source)
        if cached is not None:
            self.syllables = cached
            self._refresh_navigation()
            return self._shown_syllables()

        fp = fingerprint(source)
        if fp in self._syllables_pending:
            logger.info("Syllable division already in flight for %s", fp)
            return None

        displayed = self._state.text
        self._syllables_pending.add(fp)
        try:
            settings = load_syllables_settings(self.syllables_model)
            async with self._client_factory() as client:
                result = await client.divide_syllables(source, settings)
        except ReaderError as exc:
            logger.warning("Syllable division failed: %s", exc.message)
            self.error = exc
            return None
        finally:
            self._syllables_pending.discard(fp)

        if fingerprint(self.syllables_source()) != fp:
            logger.warning("Discarding syllable division for %s; text changed meanwhile", fp)
            return None

        self._syllables_cache.put(
            source,
            result.data,
            aliases=(remove_niqqud(source), displayed),
        )
        self.syllables = result.data
        self.raw_syllables_response = result.raw_response
        self._refresh_navigation()
        return self._shown_syllables()

    def clear_syllables(self) -> int:
        """Drop every cached syllable tree. Returns the number of entries removed."""
        removed = self._syllables_cache.clear()
        self.syllables = None
        self.raw_syllables_response = None
        self._refresh_navigation()
        return removed

    # ------------------------------------------------------------------
    # Engine plumbing
    # ------------------------------------------------------------------

    def _execute(self, intent: ts.Intent) -> None:
        if isinstance(intent, ts.PersistTextCache):
            self._text_store.save(intent.cache)
        elif isinstance(intent, ts.PersistDisplayMode):
            self._text_store.save_display_mode(intent.mode)

    def _apply(self, transition: ts.Transition) -> list:
        """Adopt a transition's state and run its persistence intents.

        Returns the provider intents, which the caller awaits.
        """
        self._state = transition.state
        calls = []
        for intent in transition.intents:
            if isinstance(intent, ts.CallVocalizationProvider):
                calls.append(intent)
            else:
                self._execute(intent)
        return calls

    def _run_sync(self, operation: Callable[[ts.TextState], ts.Transition]) -> None:
        self.error = None
        try:
            transition = operation(self._state)
        except ReaderError as exc:
            self.error = exc
            return
        self._apply(transition)
        self._refresh()

    async def _run(self, operation: Callable[[ts.TextState], ts.Transition]) -> None:
        self.error = None
        try:
            transition = operation(self._state)
        except ReaderError as exc:
            self.error = exc
            return
        calls = self._apply(transition)
        self._refresh()
        for request in calls:
            await self._vocalize(request)

    async def _vocalize(self, request: ts.CallVocalizationProvider) -> None:
        try:
            settings = load_vocalization_settings(request.variant, self.vocalization_model)
            async with self._client_factory() as client:
                result = await client.vocalize(request.text, settings, request.variant)
            transition = ts.accept_vocalization(self._state, request, result)
        except ReaderError as exc:
            logger.warning("Vocalization failed: %s", exc.message)
            self._state = ts.abandon_request(self._state, request)
            self.error = exc
            return
        except Exception:
            logger.exception("Unexpected error while vocalizing %s", request.fingerprint)
            self._state = ts.abandon_request(self._state, request)
            raise

        if transition.discarded:
            self._state = ts.abandon_request(self._state, request)
            return
        self._apply(transition)
        self._refresh()

    def _refresh(self) -> None:
        self.syllables = self._lookup_syllables()
        if self.syllables is None:
            self.raw_syllables_response = None
        self._refresh_navigation()

    def _lookup_syllables(self) -> Optional[SyllablesData]:
        source = self.syllables_source()
        if not source.strip():
            return None
        return self._syllables_cache.get(source)

    def _shown_syllables(self) -> Optional[SyllablesData]:
        try:
            return self.displayed_syllables()
        except CacheInconsistencyError as exc:
            self.error = exc
            return None

    def _refresh_navigation(self) -> None:
        self.navigation.set_text(self._state.text, self._shown_syllables())
