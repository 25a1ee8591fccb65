"""Hebrew niqqud (vowel mark) detection and removal.

WHY: Every other part of the engine needs to know whether a text, a word
or a syllable carries vowel marks: the text-state machine decides which
form to show, the reconciler decides which syllables keep their marks,
and navigation counts letters without their marks.

HOW: A niqqud mark is any code point in U+0591–U+05C7 (cantillation,
points and the other marks of the Hebrew block). Classification splits
text on whitespace, keeps tokens that contain Hebrew, and compares the
share of vocalized tokens against a fixed threshold.

RULES:
- is_niqqud_mark: code point in [U+0591, U+05C7]
- remove_niqqud: drops marks only; letters, punctuation and non-Hebrew
  script are preserved in order
- detect_niqqud: "none" if no Hebrew token is vocalized, "full" if at
  least 80% are, otherwise "partial"
- Empty, whitespace-only or non-Hebrew text is "none"
"""

from __future__ import annotations

from typing import List, Tuple

from niqqud_reader.core.ir import NiqqudStatus

NIQQUD_FIRST = 0x0591
NIQQUD_LAST = 0x05C7

HEBREW_BLOCK_FIRST = 0x0590
HEBREW_BLOCK_LAST = 0x05FF

FULL_NIQQUD_THRESHOLD = 0.8
"""Share of vocalized Hebrew words at which text counts as fully vocalized."""


def is_niqqud_mark(ch: str) -> bool:
    """Return True if ch is a single niqqud mark character."""
    if len(ch) != 1:
        return False
    return NIQQUD_FIRST <= ord(ch) <= NIQQUD_LAST


def is_hebrew_char(ch: str) -> bool:
    """Return True if ch lies anywhere in the Hebrew Unicode block."""
    return len(ch) == 1 and HEBREW_BLOCK_FIRST <= ord(ch) <= HEBREW_BLOCK_LAST


def is_hebrew_letter(ch: str) -> bool:
    """Return True for Hebrew letters (alef–tav and the Yiddish ligatures)."""
    if len(ch) != 1:
        return False
    code = ord(ch)
    return 0x05D0 <= code <= 0x05EA or 0x05EF <= code <= 0x05F2


def contains_niqqud(text: str) -> bool:
    """True if any character of text is a niqqud mark."""
    return any(is_niqqud_mark(ch) for ch in text)


def remove_niqqud(text: str) -> str:
    """Return text with every niqqud mark removed."""
    return "".join(ch for ch in text if not is_niqqud_mark(ch))


def detect_niqqud(text: str) -> NiqqudStatus:
    """Classify the niqqud density of text.

    HOW: Tokens are whitespace-separated. A token takes part only if its
    Hebrew-block projection is non-empty; it counts as vocalized if any
    of its characters is a niqqud mark.

    Args:
        text: Any text, Hebrew or not.

    Returns:
        NiqqudStatus.NONE, PARTIAL or FULL.
    """
    if not text or not text.strip():
        return NiqqudStatus.NONE

    hebrew_word_count = 0
    vocalized_count = 0
    for token in text.split():
        if not any(is_hebrew_char(ch) for ch in token):
            continue
        hebrew_word_count += 1
        if contains_niqqud(token):
            vocalized_count += 1

    if vocalized_count == 0:
        return NiqqudStatus.NONE

    ratio = vocalized_count / hebrew_word_count
    if ratio >= FULL_NIQQUD_THRESHOLD:
        return NiqqudStatus.FULL
    return NiqqudStatus.PARTIAL


def has_niqqud(text: str) -> bool:
    return detect_niqqud(text) != NiqqudStatus.NONE


def is_fully_niqqud(text: str) -> bool:
    return detect_niqqud(text) == NiqqudStatus.FULL


def letter_groups(text: str) -> List[Tuple[int, str]]:
    """Group each Hebrew letter with the niqqud marks that follow it.

    Navigation in letters mode moves over these groups, so a letter and
    its vowel are focused together.

    Returns:
        List of (start offset, group text) pairs, Hebrew letters only.
    """
    groups: List[Tuple[int, str]] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if is_hebrew_letter(ch):
            j = i + 1
            while j < len(text) and is_niqqud_mark(text[j]):
                j += 1
            groups.append((i, text[i:j]))
            i = j
        else:
            i += 1
    return groups


def count_letters(text: str) -> int:
    """Number of Hebrew letters (niqqud excluded) in text."""
    return sum(1 for ch in text if is_hebrew_letter(ch))


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return " ".join(text.split())
