"""Reproject a syllable tree onto the text form that is actually displayed.

WHY: Syllables are computed from the fully vocalized text, but the
reader may be looking at the clean form or at the partially vocalized
original. Highlighting must address what is on screen, so the tree's
syllables need the same niqqud as the displayed words, without
changing the shape of the tree that navigation indexes into.

HOW: "full" passes the tree through. "clean" strips every syllable.
"original" aligns the tree word-by-word with the original text: words
that carry niqqud in the original keep their vocalized syllables, the
rest are stripped.

RULES:
- Output word and syllable counts always equal the input counts
- If alignment is impossible (word counts differ) return None, never
  truncate or silently drop words
- Without a cache or a mode, the tree is returned unchanged
"""

from __future__ import annotations

from typing import List, Optional

from niqqud_reader.core.errors import CacheInconsistencyError
from niqqud_reader.core.ir import DisplayMode, SyllablesData, SyllableWord, TextCache
from niqqud_reader.core.niqqud import contains_niqqud, remove_niqqud


def _strip_word(word: SyllableWord) -> SyllableWord:
    return SyllableWord(word=word.word, syllables=[remove_niqqud(s) for s in word.syllables])


def apply_display_mode_to_syllables(
    data: SyllablesData,
    mode: Optional[DisplayMode],
    cache: Optional[TextCache],
) -> Optional[SyllablesData]:
    """Return a tree consistent with the displayed form, or None.

    Args:
        data: Tree parsed from the fully vocalized text.
        mode: The display mode currently shown.
        cache: The three-form text cache.

    Returns:
        A tree with the same shape as data, or None if the original
        text cannot be aligned with it.
    """
    if mode is None or cache is None or mode == DisplayMode.FULL:
        return data

    if mode == DisplayMode.CLEAN:
        return SyllablesData(words=[_strip_word(w) for w in data.words])

    original_words: List[str] = cache.original.split()
    # Word boundaries come from the vocalized form when we have it.
    reference_words = cache.full.split() if cache.full is not None else original_words
    if len(reference_words) != data.word_count or len(original_words) != data.word_count:
        return None

    words: List[SyllableWord] = []
    for entry, original_word in zip(data.words, original_words):
        if contains_niqqud(original_word):
            words.append(entry)
        else:
            words.append(_strip_word(entry))
    return SyllablesData(words=words)


def reconcile_or_raise(
    data: SyllablesData,
    mode: Optional[DisplayMode],
    cache: Optional[TextCache],
) -> SyllablesData:
    """Like apply_display_mode_to_syllables but raises CacheInconsistencyError."""
    result = apply_display_mode_to_syllables(data, mode, cache)
    if result is None:
        raise CacheInconsistencyError(
            "The original text has a different number of words than the "
            "syllable division ({}); syllables cannot be shown for it".format(data.word_count)
        )
    return result
