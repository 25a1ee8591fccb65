"""Core engine modules — pure, I/O-free building blocks.

WHY: The core holds every invariant of the reader: niqqud classification,
the three-form text cache, syllable parsing, display-mode reconciliation
and hierarchical navigation. Keeping it free of network and storage code
makes each piece testable in isolation.

HOW: ir.py defines the data structures, niqqud.py classifies text,
parser.py turns provider replies into syllable trees, text_state.py and
navigation.py are the two state machines, reconciler.py reprojects a
syllable tree onto the displayed text form.

RULES:
- IR dataclasses are the contract between core, adapters and shells
- No module in core imports from api/, storage/ or server/
- Errors are raised as ReaderError subclasses from core/errors.py
"""
