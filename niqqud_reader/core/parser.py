"""Lenient parser for syllable-division replies from a text-generation provider.

WHY: The syllabification provider is a language model asked to answer
with one word per line, syllables separated by hyphens. In practice the
reply arrives wrapped in a code fence, with an introductory sentence,
with several words on one line, or with asterisks instead of hyphens.
The engine needs a structured word→syllables tree regardless.

HOW: Unwrap a single enclosing code fence, split into trimmed non-empty
lines, drop commentary lines, split each remaining line on whitespace
into word tokens, split each token on its syllable delimiter and derive
the canonical word by stripping niqqud from the joined syllables.

RULES:
- Delimiter precedence per token: "-" > "*" > none (single syllable)
- Commentary: lines starting with "//" or "#", lines ending with ":",
  and lines containing an explanatory keyword
- Returns None when no word entries were produced
- More than one word, all single-syllable → warning only, data returned
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from niqqud_reader.core.ir import SyllablesData, SyllableWord
from niqqud_reader.core.niqqud import remove_niqqud

logger = logging.getLogger(__name__)

# A reply whose entire body is one fenced block, optionally tagged (```text).
_FENCED_BLOCK_RE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\r?\n?(.*?)\r?\n?```$", re.DOTALL)

_COMMENT_PREFIXES = ("//", "#")

# Matched case-insensitively as whole words.
_LATIN_KEYWORDS = ("note", "notes", "explanation", "here is", "here's", "syllable", "syllables")
_LATIN_KEYWORD_RE = re.compile(
    r"\b(?:{})\b".format("|".join(re.escape(k) for k in _LATIN_KEYWORDS)),
    re.IGNORECASE,
)

# Hebrew lead-ins models prepend: "note:", "explanation:", "below is", "syllable division".
_HEBREW_KEYWORDS = ("הערה", "הסבר", "להלן", "חלוקה להברות", "החלוקה")

SYLLABLE_DELIMITERS = ("-", "*")


def strip_code_fence(response: str) -> str:
    """Return the body of a single enclosing ``` fence, or the text unchanged."""
    text = response.strip()
    match = _FENCED_BLOCK_RE.match(text)
    if match:
        return match.group(1).strip()
    return text


def is_commentary(line: str) -> bool:
    """True for lines that explain the answer rather than carry words."""
    if line.startswith(_COMMENT_PREFIXES):
        return True
    if line.endswith(":"):
        return True
    if _LATIN_KEYWORD_RE.search(line):
        return True
    stripped = remove_niqqud(line)
    return any(keyword in stripped for keyword in _HEBREW_KEYWORDS)


def split_syllables(token: str) -> List[str]:
    """Split one word token into syllables by the first delimiter present."""
    for delimiter in SYLLABLE_DELIMITERS:
        if delimiter in token:
            return [s.strip() for s in token.split(delimiter) if s.strip()]
    return [token]


def canonical_word(syllables: List[str], token: str) -> str:
    """Niqqud-stripped concatenation of syllables.

    Falls back to the token with delimiters removed when the syllables
    carry nothing but marks.
    """
    word = remove_niqqud("".join(syllables))
    if word:
        return word
    fallback = token
    for delimiter in SYLLABLE_DELIMITERS:
        fallback = fallback.replace(delimiter, "")
    return fallback


def looks_undivided(data: SyllablesData) -> bool:
    """True if several words were parsed and none was divided.

    A provider that ignored the division instruction echoes the text
    back one word at a time.
    """
    return data.word_count > 1 and all(len(w.syllables) == 1 for w in data.words)


def parse_syllables_response(response: Optional[str]) -> Optional[SyllablesData]:
    """Parse a provider reply into a SyllablesData tree.

    Args:
        response: Raw reply text, e.g. "דַּ-נִי\\nקָם".

    Returns:
        SyllablesData with one SyllableWord per word token, or None if
        the reply held no usable word entries.
    """
    if not response or not response.strip():
        return None

    body = strip_code_fence(response)
    lines = [line.strip() for line in body.splitlines()]
    lines = [line for line in lines if line]

    words: List[SyllableWord] = []
    for line in lines:
        if is_commentary(line):
            logger.debug("Skipping commentary line: %r", line)
            continue
        for token in line.split():
            syllables = split_syllables(token)
            if not syllables:
                continue
            words.append(SyllableWord(word=canonical_word(syllables, token), syllables=syllables))

    if not words:
        return None

    data = SyllablesData(words=words)
    if looks_undivided(data):
        logger.warning(
            "All %d parsed words have a single syllable; the model probably "
            "ignored the division instruction",
            data.word_count,
        )
    return data
