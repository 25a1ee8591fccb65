"""Three-form text cache as a pure state machine.

WHY: A text can be shown without niqqud, as the user entered it (maybe
partially vocalized), or fully vocalized by a provider. Toggling between
these must never lose the user's original, must never call the provider
twice for the same text, and must survive the surrounding editor echoing
the displayed text back as an "external" change.

HOW: TextState is an immutable snapshot (displayed text, TextCache,
DisplayMode, TargetState, last display mode, in-flight request
fingerprint). Every operation is a function TextState → Transition; a
Transition holds the next state plus side-effect intents (call the
vocalization provider, persist the cache, persist the display mode).
An adapter executes the intents and feeds provider results back through
accept_vocalization / abandon_request.

RULES:
- External text equal to any cached form (trimmed) is an echo: cache kept
- Fully vocalized external text rebuilds the cache unless it is cache.full
- Any other external text drops the cache; TargetState becomes FULL for
  unvocalized text and ORIGINAL otherwise
- add/complete short-circuit to cache.full when present (no provider call)
- At most one outstanding provider request per text fingerprint
- A result whose request fingerprint no longer matches the displayed
  text is discarded
- A result is accepted only if non-empty, letter-identical to its
  source (whitespace-insensitive) and actually vocalized
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple, Union

from niqqud_reader.core.errors import (
    EmptyInputError,
    ProviderEmptyResponseError,
    ProviderNoVocalizationError,
    ProviderTextMismatchError,
)
from niqqud_reader.core.fingerprint import fingerprint
from niqqud_reader.core.ir import (
    DisplayMode,
    NiqqudStatus,
    PromptVariant,
    TargetState,
    TextCache,
)
from niqqud_reader.core.niqqud import (
    detect_niqqud,
    has_niqqud,
    normalize_whitespace,
    remove_niqqud,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CallVocalizationProvider:
    """Ask the adapter to vocalize text with the given prompt variant."""

    text: str
    variant: PromptVariant
    fingerprint: str


@dataclass(frozen=True)
class PersistTextCache:
    """Write (or, with None, remove) the persisted three-form cache."""

    cache: Optional[TextCache]


@dataclass(frozen=True)
class PersistDisplayMode:
    """Write (or, with None, remove) the persisted last display mode."""

    mode: Optional[DisplayMode]


Intent = Union[CallVocalizationProvider, PersistTextCache, PersistDisplayMode]


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextState:
    """Snapshot of the text engine.

    RULES:
    - text: the text currently displayed
    - cache: three-form cache, or None before the first toggle action
    - pending: fingerprint of the in-flight vocalization request, if any
    """

    text: str = ""
    cache: Optional[TextCache] = None
    display_mode: DisplayMode = DisplayMode.ORIGINAL
    target_state: TargetState = TargetState.ORIGINAL
    last_display_mode: Optional[DisplayMode] = None
    pending: Optional[str] = None

    @property
    def niqqud_status(self) -> NiqqudStatus:
        return detect_niqqud(self.text)

    @property
    def has_niqqud(self) -> bool:
        return has_niqqud(self.text)

    @property
    def original_status(self) -> NiqqudStatus:
        """Classifier status of the text as originally entered."""
        if self.cache is not None:
            return detect_niqqud(self.cache.original)
        return self.niqqud_status

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.text)

    @property
    def is_loading(self) -> bool:
        return self.pending is not None


@dataclass(frozen=True)
class Transition:
    """Result of one operation: the next state and what the adapter must do.

    discarded is True when a provider result was dropped as stale.
    """

    state: TextState
    intents: Tuple[Intent, ...] = ()
    discarded: bool = False


def _target_for(text: str) -> TargetState:
    # Unvocalized text restores to a full vocalization; anything the user
    # vocalized themselves restores to what they typed.
    if detect_niqqud(text) == NiqqudStatus.NONE:
        return TargetState.FULL
    return TargetState.ORIGINAL


def matching_mode(
    cache: TextCache,
    text: str,
    preferred: Optional[DisplayMode] = None,
) -> Optional[DisplayMode]:
    """The display mode whose cached form equals text (trimmed), if any.

    preferred wins when several forms are equal, e.g. an unvocalized
    original is also its own clean form.
    """
    candidate = text.strip()
    order = [DisplayMode.FULL, DisplayMode.ORIGINAL, DisplayMode.CLEAN]
    if preferred is not None:
        order.insert(0, preferred)
    for mode in order:
        form = cache.form(mode)
        if form is not None and form.strip() == candidate:
            return mode
    return None


def initial_state(text: str = "") -> TextState:
    return TextState(text=text, target_state=_target_for(text))


def restore_state(
    text: str,
    cache: Optional[TextCache],
    last_display_mode: Optional[DisplayMode] = None,
) -> TextState:
    """Rebuild state from a persisted cache at start-up.

    HOW: The cache is reused only if text is empty or equals one of its
    forms. With empty text the last display mode (or the original form)
    is shown. Otherwise the display mode is whichever form text equals.
    """
    if cache is None or (text.strip() and not cache.matches(text)):
        return initial_state(text)

    if not text.strip():
        mode = last_display_mode or DisplayMode.ORIGINAL
        if cache.form(mode) is None:
            mode = DisplayMode.ORIGINAL
        text = cache.form(mode) or ""
    else:
        mode = matching_mode(cache, text, last_display_mode) or DisplayMode.ORIGINAL

    if mode == DisplayMode.FULL:
        target = TargetState.FULL
    else:
        target = _target_for(cache.original)

    return TextState(
        text=text,
        cache=cache,
        display_mode=mode,
        target_state=target,
        last_display_mode=last_display_mode,
    )


# ---------------------------------------------------------------------------
# External edits
# ---------------------------------------------------------------------------


def apply_external_text_change(state: TextState, new_text: str) -> Transition:
    """React to the surrounding text changing independently of the engine."""
    if new_text == state.text:
        return Transition(state)

    pending = state.pending
    if pending is not None and pending != fingerprint(new_text):
        pending = None

    status = detect_niqqud(new_text)
    cache = state.cache

    if status == NiqqudStatus.FULL:
        if cache is not None and cache.full == new_text:
            # Keeps a previously recorded partially vocalized original.
            return Transition(replace(
                state,
                text=new_text,
                display_mode=DisplayMode.FULL,
                target_state=TargetState.FULL,
                pending=pending,
            ))
        new_cache = TextCache(original=new_text, clean=remove_niqqud(new_text), full=new_text)
        logger.debug("Fully vocalized text entered; rebuilding cache")
        return Transition(
            replace(
                state,
                text=new_text,
                cache=new_cache,
                display_mode=DisplayMode.FULL,
                target_state=TargetState.FULL,
                pending=pending,
            ),
            (PersistTextCache(new_cache),),
        )

    if cache is not None and cache.matches(new_text):
        mode = matching_mode(cache, new_text, state.display_mode) or state.display_mode
        return Transition(replace(state, text=new_text, display_mode=mode, pending=pending))

    intents: Tuple[Intent, ...] = ()
    if cache is not None:
        logger.debug("Text no longer matches any cached form; dropping cache")
        intents = (PersistTextCache(None),)

    return Transition(
        replace(
            state,
            text=new_text,
            cache=None,
            display_mode=DisplayMode.ORIGINAL,
            target_state=TargetState.FULL if status == NiqqudStatus.NONE else TargetState.ORIGINAL,
            pending=pending,
        ),
        intents,
    )


# ---------------------------------------------------------------------------
# Cache reads
# ---------------------------------------------------------------------------


def switch_to_original(state: TextState) -> Transition:
    if state.cache is None:
        return Transition(state)
    return Transition(
        replace(
            state,
            text=state.cache.original,
            display_mode=DisplayMode.ORIGINAL,
            target_state=TargetState.ORIGINAL,
            last_display_mode=DisplayMode.ORIGINAL,
        ),
        (PersistDisplayMode(DisplayMode.ORIGINAL),),
    )


def switch_to_clean(state: TextState) -> Transition:
    if state.cache is None:
        return Transition(state)
    return Transition(
        replace(
            state,
            text=state.cache.clean,
            display_mode=DisplayMode.CLEAN,
            last_display_mode=DisplayMode.CLEAN,
        ),
        (PersistDisplayMode(DisplayMode.CLEAN),),
    )


def switch_to_full(state: TextState) -> Transition:
    if state.cache is None or state.cache.full is None:
        return Transition(state)
    return Transition(
        replace(
            state,
            text=state.cache.full,
            display_mode=DisplayMode.FULL,
            target_state=TargetState.FULL,
            last_display_mode=DisplayMode.FULL,
        ),
        (PersistDisplayMode(DisplayMode.FULL),),
    )


def restore_last_display_mode(state: TextState) -> Transition:
    """Re-display the form the user last chose, if it is cached."""
    mode = state.last_display_mode
    if mode is None or state.cache is None:
        return Transition(state)
    if mode == DisplayMode.ORIGINAL:
        return switch_to_original(state)
    if mode == DisplayMode.CLEAN:
        return switch_to_clean(state)
    return switch_to_full(state)


# ---------------------------------------------------------------------------
# Vocalization toggles
# ---------------------------------------------------------------------------


def remove_niqqud_transition(state: TextState) -> Transition:
    """Display the clean form, creating the cache on first use."""
    if state.cache is not None:
        return switch_to_clean(state)

    clean = remove_niqqud(state.text)
    cache = TextCache(original=state.text, clean=clean, full=None)
    return Transition(
        replace(
            state,
            text=clean,
            cache=cache,
            display_mode=DisplayMode.CLEAN,
            last_display_mode=DisplayMode.CLEAN,
        ),
        (PersistTextCache(cache), PersistDisplayMode(DisplayMode.CLEAN)),
    )


def _request_vocalization(state: TextState, variant: PromptVariant) -> Transition:
    if state.cache is not None and state.cache.full is not None:
        logger.info("Fully vocalized form cached; skipping provider call")
        return switch_to_full(state)

    if not state.text.strip():
        raise EmptyInputError()

    fp = fingerprint(state.text)
    if state.pending == fp:
        logger.info("Vocalization already in flight for %s; not sending another", fp)
        return Transition(state)

    source = state.text
    if variant == PromptVariant.COMPLETION and state.cache is not None:
        # Completion works from the partially vocalized original, even
        # while the clean form is displayed.
        source = state.cache.original

    return Transition(
        replace(state, pending=fp),
        (CallVocalizationProvider(text=source, variant=variant, fingerprint=fp),),
    )


def add_niqqud(state: TextState) -> Transition:
    """Fully vocalize unvocalized text (fresh prompt)."""
    return _request_vocalization(state, PromptVariant.FRESH)


def complete_niqqud(state: TextState) -> Transition:
    """Complete partially vocalized text (completion prompt)."""
    return _request_vocalization(state, PromptVariant.COMPLETION)


def toggle_niqqud(state: TextState) -> Transition:
    """The single toggle button: strip marks, or restore toward TargetState."""
    if state.has_niqqud:
        return remove_niqqud_transition(state)

    if state.target_state == TargetState.ORIGINAL:
        return switch_to_original(state)

    if state.cache is not None and state.cache.full is not None:
        return switch_to_full(state)
    if state.original_status == NiqqudStatus.PARTIAL:
        return complete_niqqud(state)
    return add_niqqud(state)


def validate_vocalization(source: str, result: Optional[str]) -> str:
    """Check a provider result against the text it was asked to vocalize.

    Returns:
        The result, trimmed.

    Raises:
        ProviderEmptyResponseError: result is empty.
        ProviderTextMismatchError: letters differ from the source.
        ProviderNoVocalizationError: result carries no niqqud.
    """
    vocalized = (result or "").strip()
    if not vocalized:
        raise ProviderEmptyResponseError()
    if normalize_whitespace(remove_niqqud(vocalized)) != normalize_whitespace(remove_niqqud(source)):
        raise ProviderTextMismatchError()
    if not has_niqqud(vocalized):
        raise ProviderNoVocalizationError()
    return vocalized


def accept_vocalization(
    state: TextState,
    request: CallVocalizationProvider,
    result: Optional[str],
) -> Transition:
    """Apply a provider result, or discard it if the text moved on.

    Raises the validate_vocalization errors; callers then use
    abandon_request to clear the in-flight marker.
    """
    if request.fingerprint != fingerprint(state.text):
        logger.warning(
            "Discarding vocalization for %s; displayed text is now %s",
            request.fingerprint,
            fingerprint(state.text),
        )
        return Transition(state, discarded=True)

    vocalized = validate_vocalization(request.text, result)

    if state.cache is not None:
        cache = state.cache.with_full(vocalized)
    else:
        cache = TextCache(original=state.text, clean=remove_niqqud(state.text), full=vocalized)

    return Transition(
        replace(
            state,
            text=vocalized,
            cache=cache,
            display_mode=DisplayMode.FULL,
            target_state=TargetState.FULL,
            last_display_mode=DisplayMode.FULL,
            pending=None,
        ),
        (PersistTextCache(cache), PersistDisplayMode(DisplayMode.FULL)),
    )


def abandon_request(state: TextState, request: CallVocalizationProvider) -> TextState:
    """Clear the in-flight marker after a failed request."""
    if state.pending == request.fingerprint:
        return replace(state, pending=None)
    return state


def clear_niqqud(state: TextState) -> Transition:
    """Drop the cache, empty the text and forget every persisted form."""
    return Transition(
        initial_state(),
        (PersistTextCache(None), PersistDisplayMode(None)),
    )
