"""Niqqud Reader — reading assistant engine for unvocalized Hebrew text.

WHY: Readers of Hebrew often face text without niqqud (vowel marks), or
with niqqud on only some words. This package classifies how vocalized a
text is, toggles between its three forms (clean, as entered, fully
vocalized) and lets a reader walk the vocalized text word by word,
syllable by syllable or letter by letter.

HOW: Three layers: a pure core (classifier, syllable parser, text-state
transitions, display-mode reconciler, navigation state machine), an
adapter layer (session.py) that performs the I/O the core asks for
(provider calls, persistence), and thin outer shells (CLI, HTTP API).

RULES:
- Core transitions never perform I/O; they return side-effect intents
- Provider calls are coalesced through caches keyed by text fingerprint
- A provider response for text that has since changed is discarded
- Persistence is best-effort; failures are logged, never raised
"""

__version__ = "0.1.0"
