"""Deterministic text fingerprints used as cache keys.

WHY: Syllable trees and in-flight provider requests are keyed by the text
they were computed for. The key must be stable across process restarts
(the store outlives the process) and must not collide for different
texts in practice. Cryptographic strength is not needed.

HOW: NFC-normalize and trim the text, hash its UTF-8 bytes with SHA-256
and keep the first 16 hex characters.

RULES:
- Same text (modulo leading/trailing whitespace) → same fingerprint
- Never use Python's hash(), it is salted per process
"""

from __future__ import annotations

import hashlib
import unicodedata

FINGERPRINT_LENGTH = 16


def normalize_for_fingerprint(text: str) -> str:
    return unicodedata.normalize("NFC", text).strip()


def fingerprint(text: str) -> str:
    """Return the 16-hex-character fingerprint of text."""
    digest = hashlib.sha256(normalize_for_fingerprint(text).encode("utf-8"))
    return digest.hexdigest()[:FINGERPRINT_LENGTH]
