"""Hierarchical word / syllable / letter navigation.

WHY: A reader practising vocalized Hebrew steps through the text one
unit at a time, with the focused unit highlighted and remembered across
restarts. The same text can be walked at three granularities and the
reader can switch granularity without losing their place.

HOW: The navigable text is a list of words, each a list of syllables
(from a SyllablesData tree, or one syllable per whitespace token when no
tree is available). For the active mode we enumerate every valid unit in
reading order as index tuples: (w,), (w, s) or (w, s, l). Next/previous
is a step along that sequence, which gives the cascading rollover
(letter → syllable → word) for free and clamps at both ends. Up/down
ask an injected Layout for the visual lines. Every mutation is persisted
through an injected PositionStore and pushed to an injected Highlighter.

RULES:
- Empty or whitespace-only text: no position, every call returns None
- next/prev never wrap around
- letter_index counts Hebrew letters only; units without letters are
  skipped in letters mode
- Mode switch keeps word_index and resets deeper indices to 0
- A persisted position is reused only if its mode matches; it is clamped
"""

from __future__ import annotations

import bisect
import logging
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from niqqud_reader.core.ir import NavigationMode, NavigationPosition, SyllablesData
from niqqud_reader.core.niqqud import count_letters, letter_groups

logger = logging.getLogger(__name__)

Unit = Tuple[int, ...]


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


class Layout(Protocol):
    """Visual line lookup used by focus_up / focus_down."""

    def line_of(self, word_index: int) -> Optional[int]: ...

    def words_on_line(self, line_id: int) -> Sequence[int]: ...


class Highlighter(Protocol):
    """Receives the focused position; clear() removes every marker."""

    def show(self, position: NavigationPosition, text: str) -> None: ...

    def clear(self) -> None: ...


class PositionPersistence(Protocol):
    def load(self) -> Optional[NavigationPosition]: ...

    def save(self, position: NavigationPosition) -> None: ...

    def clear(self) -> None: ...


class NullHighlighter:
    def show(self, position: NavigationPosition, text: str) -> None:
        pass

    def clear(self) -> None:
        pass


class TextLineLayout:
    """Layout where each newline-separated line of the text is a visual line.

    Word indices count whitespace tokens across the whole text, so they
    line up with a syllable tree parsed from the same text.
    """

    def __init__(self, text: str) -> None:
        self._line_of: Dict[int, int] = {}
        self._lines: List[List[int]] = []
        index = 0
        for line in text.splitlines():
            tokens = line.split()
            if not tokens:
                continue
            words = list(range(index, index + len(tokens)))
            for w in words:
                self._line_of[w] = len(self._lines)
            self._lines.append(words)
            index += len(tokens)

    def line_of(self, word_index: int) -> Optional[int]:
        return self._line_of.get(word_index)

    def words_on_line(self, line_id: int) -> Sequence[int]:
        if 0 <= line_id < len(self._lines):
            return self._lines[line_id]
        return []


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def words_from_text(text: str) -> List[List[str]]:
    """One word per whitespace token, one syllable per word."""
    return [[token] for token in text.split()]


def words_from_syllables(data: SyllablesData) -> List[List[str]]:
    # A word with no syllables is still one navigable unit.
    return [list(w.syllables) or [w.word] for w in data.words]


def enumerate_units(words: List[List[str]], mode: NavigationMode) -> List[Unit]:
    """Every valid unit for mode, in reading order."""
    units: List[Unit] = []
    for w, syllables in enumerate(words):
        if mode == NavigationMode.WORDS:
            units.append((w,))
            continue
        for s, syllable in enumerate(syllables):
            if mode == NavigationMode.SYLLABLES:
                units.append((w, s))
                continue
            for l in range(count_letters(syllable)):
                units.append((w, s, l))
    return units


def unit_of(position: NavigationPosition) -> Unit:
    if position.mode == NavigationMode.WORDS:
        return (position.word_index,)
    if position.mode == NavigationMode.SYLLABLES:
        return (position.word_index, position.syllable_index or 0)
    return (position.word_index, position.syllable_index or 0, position.letter_index or 0)


def position_of(unit: Unit, mode: NavigationMode) -> NavigationPosition:
    return NavigationPosition(
        mode=mode,
        word_index=unit[0],
        syllable_index=unit[1] if len(unit) > 1 else None,
        letter_index=unit[2] if len(unit) > 2 else None,
    )


def snap(units: List[Unit], unit: Unit) -> Optional[Unit]:
    """The first unit at or after unit, else the last unit."""
    if not units:
        return None
    i = bisect.bisect_left(units, unit)
    if i < len(units):
        return units[i]
    return units[-1]


def unit_text(words: List[List[str]], unit: Unit) -> str:
    """Text of a unit; a letter unit includes the marks that follow it."""
    syllables = words[unit[0]]
    if len(unit) == 1:
        return "".join(syllables)
    syllable = syllables[unit[1]]
    if len(unit) == 2:
        return syllable
    groups = letter_groups(syllable)
    return groups[unit[2]][1] if unit[2] < len(groups) else ""


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


KEY_BINDINGS = {
    # Right-to-left text: the left arrow moves forward.
    ("ArrowLeft", False): "next",
    ("Tab", False): "next",
    ("ArrowRight", False): "prev",
    ("Tab", True): "prev",
    ("ArrowUp", False): "up",
    ("ArrowDown", False): "down",
}


class NavigationStateMachine:
    """Tracks, mutates, persists and highlights the focused unit.

    Args:
        store: Persistence for the current position (load/save/clear).
        layout: Line lookup for focus_up/focus_down. When omitted a
            TextLineLayout is derived from each text passed to set_text.
        highlighter: Receives every focus change.
        mode: Initial granularity.
    """

    def __init__(
        self,
        store: PositionPersistence,
        layout: Optional[Layout] = None,
        highlighter: Optional[Highlighter] = None,
        mode: NavigationMode = NavigationMode.WORDS,
    ) -> None:
        self._store = store
        self._injected_layout = layout
        self._layout: Optional[Layout] = layout
        self._highlighter: Highlighter = highlighter or NullHighlighter()
        self._mode = mode
        self._words: List[List[str]] = []
        self._units: List[Unit] = []
        self._position: Optional[NavigationPosition] = None

    # -- properties ---------------------------------------------------------

    @property
    def mode(self) -> NavigationMode:
        return self._mode

    @property
    def word_count(self) -> int:
        return len(self._words)

    @property
    def is_active(self) -> bool:
        return self._position is not None

    def get_current_position(self) -> Optional[NavigationPosition]:
        return self._position

    def current_text(self) -> Optional[str]:
        """Text of the focused unit, or None when nothing is focused."""
        if self._position is None:
            return None
        return unit_text(self._words, unit_of(self._position))

    # -- content ------------------------------------------------------------

    def set_text(self, text: str, syllables: Optional[SyllablesData] = None) -> Optional[NavigationPosition]:
        """Load the navigable content and activate navigation over it.

        Args:
            text: The displayed text.
            syllables: Tree for the displayed text; each whitespace token
                becomes a single-syllable word when omitted.

        Returns:
            The restored or initial position, or None for empty text.
        """
        if not text.strip():
            self._words = []
            self._units = []
            if self._position is not None:
                logger.debug("Text became empty; dropping navigation position")
            self._drop_position()
            return None

        self._words = words_from_syllables(syllables) if syllables else words_from_text(text)
        if self._injected_layout is None:
            self._layout = TextLineLayout(text)
        self._units = enumerate_units(self._words, self._mode)

        start = self._position
        if start is None:
            persisted = self._store.load()
            if persisted is not None and persisted.mode == self._mode:
                start = persisted
        if start is not None and start.mode != self._mode:
            start = None
        return self._move_to(unit_of(start) if start else None)

    def set_mode(self, mode: NavigationMode) -> Optional[NavigationPosition]:
        """Switch granularity, keeping the focused word."""
        word_index = self._position.word_index if self._position else 0
        self._mode = mode
        self._units = enumerate_units(self._words, mode)
        if not self._words:
            return None
        if mode == NavigationMode.WORDS:
            unit: Unit = (word_index,)
        elif mode == NavigationMode.SYLLABLES:
            unit = (word_index, 0)
        else:
            unit = (word_index, 0, 0)
        return self._move_to(unit)

    # -- movement -----------------------------------------------------------

    def focus_next(self) -> Optional[NavigationPosition]:
        return self._step(1)

    def focus_prev(self) -> Optional[NavigationPosition]:
        return self._step(-1)

    def focus_up(self) -> Optional[NavigationPosition]:
        return self._vertical(-1)

    def focus_down(self) -> Optional[NavigationPosition]:
        return self._vertical(1)

    def highlight(self, position: NavigationPosition) -> Optional[NavigationPosition]:
        """Jump to position (clamped), adopting its mode."""
        if not self._words:
            return None
        if position.mode != self._mode:
            self._mode = position.mode
            self._units = enumerate_units(self._words, self._mode)
        return self._move_to(unit_of(position))

    def reset_position(self) -> Optional[NavigationPosition]:
        if not self._words:
            return None
        return self._move_to(unit_of(NavigationPosition.start(self._mode)))

    def clear_highlight(self) -> None:
        self._drop_position()

    def navigate_key(self, key: str, shift: bool = False) -> Optional[NavigationPosition]:
        """Apply a keyboard key. Unbound keys leave the position alone."""
        action = KEY_BINDINGS.get((key, shift))
        if action is None:
            return self._position
        if action == "next":
            return self.focus_next()
        if action == "prev":
            return self.focus_prev()
        if action == "up":
            return self.focus_up()
        return self.focus_down()

    # -- internals ----------------------------------------------------------

    def _clamp(self, unit: Unit) -> Unit:
        last_word = len(self._words) - 1
        w = min(max(unit[0], 0), last_word)
        if len(unit) == 1:
            return (w,)
        s = min(max(unit[1], 0), len(self._words[w]) - 1)
        if len(unit) == 2:
            return (w, s)
        letters = count_letters(self._words[w][s])
        return (w, s, min(max(unit[2], 0), max(letters - 1, 0)))

    def _move_to(self, unit: Optional[Unit]) -> Optional[NavigationPosition]:
        if not self._units:
            # Letters mode over text with no Hebrew letters.
            self._drop_position()
            return None
        target = snap(self._units, self._clamp(unit)) if unit is not None else self._units[0]
        self._commit(position_of(target, self._mode))
        return self._position

    def _step(self, delta: int) -> Optional[NavigationPosition]:
        if self._position is None:
            return None
        current = unit_of(self._position)
        i = bisect.bisect_left(self._units, current)
        i = min(max(i + delta, 0), len(self._units) - 1)
        if self._units[i] != current:
            self._commit(position_of(self._units[i], self._mode))
        return self._position

    def _vertical(self, direction: int) -> Optional[NavigationPosition]:
        if self._position is None or self._layout is None:
            return self._position
        word = self._position.word_index
        line = self._layout.line_of(word)
        if line is None:
            return self._position
        on_line = list(self._layout.words_on_line(line))
        if word not in on_line:
            return self._position
        offset = on_line.index(word)

        neighbour = on_line[0] - 1 if direction < 0 else on_line[-1] + 1
        if neighbour < 0 or neighbour >= len(self._words):
            return self._position
        target_line = self._layout.line_of(neighbour)
        if target_line is None:
            return self._position
        target_words = list(self._layout.words_on_line(target_line))
        if not target_words:
            return self._position
        target = target_words[min(offset, len(target_words) - 1)]

        for unit in self._units:
            if unit[0] == target:
                self._commit(position_of(unit, self._mode))
                break
        return self._position

    def _commit(self, position: NavigationPosition) -> None:
        self._position = position
        self._store.save(position)
        self._highlighter.show(position, unit_text(self._words, unit_of(position)))

    def _drop_position(self) -> None:
        self._position = None
        self._store.clear()
        self._highlighter.clear()
