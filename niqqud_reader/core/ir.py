"""Intermediate representation: enums and dataclasses shared by the engine.

WHY: The text-state machine, the syllable parser, the reconciler and the
navigation machine all exchange the same few structures: a three-form
text cache, a word→syllables tree and a focus position. Typed, immutable
dataclasses make these contracts explicit and safe to pass around.

HOW: Enums inherit from str so values serialize cleanly to JSON and to
the persistence store. Each dataclass has to_dict()/from_dict() so the
storage layer can round-trip it without knowing its fields.

RULES:
- NiqqudStatus is derived from text, never stored on its own
- TextCache.clean is always remove_niqqud(original)
- When TextCache.full is set, remove_niqqud(full) matches clean
- SyllableWord.word is the niqqud-stripped canonical form
- NavigationPosition indices are >= 0; syllable_index/letter_index are
  present only in the modes that use them
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional


class NiqqudStatus(str, enum.Enum):
    """How much of a text carries vowel marks."""

    NONE = "none"
    PARTIAL = "partial"
    FULL = "full"


class DisplayMode(str, enum.Enum):
    """Which of the three TextCache forms is currently displayed."""

    ORIGINAL = "original"
    CLEAN = "clean"
    FULL = "full"


class TargetState(str, enum.Enum):
    """Which form "restore vocalization" should produce.

    Recorded because a user may have started from partially vocalized
    text: restoring then means going back to what they typed, not asking
    the provider for a full vocalization.
    """

    ORIGINAL = "original"
    FULL = "full"


class PromptVariant(str, enum.Enum):
    """Which vocalization prompt to send: fresh text or partial-niqqud completion."""

    FRESH = "fresh"
    COMPLETION = "completion"


class NavigationMode(str, enum.Enum):
    """Navigation granularity."""

    WORDS = "words"
    SYLLABLES = "syllables"
    LETTERS = "letters"


@dataclass(frozen=True)
class TextCache:
    """The three forms of one text.

    RULES:
    - original: the text as first seen by a vocalization-toggle action
    - clean: original with every niqqud mark removed
    - full: the fully vocalized form, or None until a provider produced it
    """

    original: str
    clean: str
    full: Optional[str] = None

    def form(self, mode: DisplayMode) -> Optional[str]:
        """Return the cached text for a display mode (None if absent)."""
        if mode == DisplayMode.ORIGINAL:
            return self.original
        if mode == DisplayMode.CLEAN:
            return self.clean
        return self.full

    def matches(self, text: str) -> bool:
        """True if text equals any cached form, compared trimmed."""
        candidate = text.strip()
        forms = (self.original, self.clean, self.full or "")
        return any(candidate == f.strip() for f in forms if f)

    def with_full(self, full: str) -> TextCache:
        return replace(self, full=full)

    def to_dict(self) -> Dict[str, Any]:
        return {"original": self.original, "clean": self.clean, "full": self.full}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TextCache:
        return cls(
            original=data["original"],
            clean=data["clean"],
            full=data.get("full"),
        )


@dataclass(frozen=True)
class SyllableWord:
    """One word of a syllable tree.

    RULES:
    - word: syllables concatenated with niqqud stripped (not guaranteed unique)
    - syllables: ordered, non-empty strings; may carry niqqud
    """

    word: str
    syllables: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"word": self.word, "syllables": list(self.syllables)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SyllableWord:
        return cls(word=data["word"], syllables=list(data["syllables"]))


@dataclass(frozen=True)
class SyllablesData:
    """An ordered word→syllables tree, as produced by the parser."""

    words: List[SyllableWord] = field(default_factory=list)

    @property
    def word_count(self) -> int:
        return len(self.words)

    def syllable_counts(self) -> List[int]:
        """Per-word syllable counts, used to check shape preservation."""
        return [len(w.syllables) for w in self.words]

    def to_dict(self) -> Dict[str, Any]:
        return {"words": [w.to_dict() for w in self.words]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SyllablesData:
        return cls(words=[SyllableWord.from_dict(w) for w in data["words"]])


@dataclass(frozen=True)
class NavigationPosition:
    """The focused unit of hierarchical navigation.

    RULES:
    - mode: the granularity this position addresses
    - word_index: always present
    - syllable_index: present in syllables and letters modes
    - letter_index: present in letters mode only; counts Hebrew letters
      (niqqud excluded) within the syllable
    """

    mode: NavigationMode
    word_index: int
    syllable_index: Optional[int] = None
    letter_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"mode": self.mode.value, "wordIndex": self.word_index}
        if self.syllable_index is not None:
            data["syllableIndex"] = self.syllable_index
        if self.letter_index is not None:
            data["letterIndex"] = self.letter_index
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> NavigationPosition:
        return cls(
            mode=NavigationMode(data["mode"]),
            word_index=data["wordIndex"],
            syllable_index=data.get("syllableIndex"),
            letter_index=data.get("letterIndex"),
        )

    @classmethod
    def start(cls, mode: NavigationMode) -> NavigationPosition:
        """The first position for a mode: every applicable index at 0."""
        return cls(
            mode=mode,
            word_index=0,
            syllable_index=0 if mode != NavigationMode.WORDS else None,
            letter_index=0 if mode == NavigationMode.LETTERS else None,
        )
