"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation.

HOW: Request bodies and response payloads each have their own model.
Enums reuse the engine's str enums so values match internal constants
exactly. All fields carry Field descriptions for the /docs UI.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Enum values come from niqqud_reader.core.ir (single source of truth)
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from niqqud_reader.core.ir import DisplayMode, NavigationMode, NiqqudStatus, TargetState


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class NiqqudAction(str, Enum):
    """Text operations exposed under /sessions/{id}/niqqud/{action}."""

    toggle = "toggle"
    add = "add"
    complete = "complete"
    remove = "remove"
    original = "original"
    clean = "clean"
    full = "full"
    restore = "restore"
    clear = "clear"


class NavigationMove(str, Enum):
    """Relative moves exposed under /sessions/{id}/navigation/{move}."""

    next = "next"
    prev = "prev"
    up = "up"
    down = "down"
    reset = "reset"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class TextRequest(BaseModel):
    """A text to analyse or to load into a session."""

    text: str = Field(description="Hebrew text, with or without niqqud.")


class SessionCreateRequest(BaseModel):
    """Body of POST /sessions."""

    text: str = Field(default="", description="Initial text of the session.")
    navigation_mode: NavigationMode = Field(
        default=NavigationMode.WORDS,
        description="Initial navigation granularity.",
    )


class ParseRequest(BaseModel):
    """Raw provider reply to run through the syllable parser."""

    response: str = Field(description="Free-form syllable division reply.")


class NavigationModeRequest(BaseModel):
    mode: NavigationMode = Field(description="Navigation granularity to switch to.")


class PositionRequest(BaseModel):
    """Explicit focus jump; indices are clamped into range."""

    mode: NavigationMode = Field(description="Granularity of the position.")
    word_index: int = Field(ge=0, description="Word index.")
    syllable_index: Optional[int] = Field(default=None, ge=0, description="Syllable index within the word.")
    letter_index: Optional[int] = Field(default=None, ge=0, description="Letter index within the syllable.")


class KeyRequest(BaseModel):
    key: str = Field(description="Key name, e.g. 'ArrowLeft', 'Tab', 'ArrowUp'.")
    shift: bool = Field(default=False, description="Whether Shift is held.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class DetectResponse(BaseModel):
    status: NiqqudStatus = Field(description="Niqqud density of the text.")
    has_niqqud: bool = Field(description="True unless status is 'none'.")
    is_fully_niqqud: bool = Field(description="True when status is 'full'.")


class StripResponse(BaseModel):
    text: str = Field(description="The text with every niqqud mark removed.")


class SyllableWordModel(BaseModel):
    word: str = Field(description="Niqqud-stripped canonical word.")
    syllables: List[str] = Field(description="Ordered syllables, possibly vocalized.")


class SyllablesResponse(BaseModel):
    words: List[SyllableWordModel] = Field(description="Word entries in reading order.")


class PositionResponse(BaseModel):
    mode: NavigationMode = Field(description="Granularity of the position.")
    word_index: int = Field(description="Focused word.")
    syllable_index: Optional[int] = Field(default=None, description="Focused syllable.")
    letter_index: Optional[int] = Field(default=None, description="Focused letter.")
    text: Optional[str] = Field(default=None, description="Text of the focused unit.")


class TextCacheModel(BaseModel):
    original: str = Field(description="Text as first seen by a toggle action.")
    clean: str = Field(description="Original with niqqud removed.")
    full: Optional[str] = Field(default=None, description="Fully vocalized form, once known.")


class ErrorModel(BaseModel):
    kind: str = Field(description="Machine-readable error kind.")
    message: str = Field(description="Human-readable error message.")


class SessionResponse(BaseModel):
    """Full state of a reader session.

    RULES:
    - error carries the last failed operation, cleared by the next one
    - syllables is the tree for the displayed form, or None
    """

    id: str = Field(description="Session identifier (UUID).")
    text: str = Field(description="Currently displayed text.")
    niqqud_status: NiqqudStatus = Field(description="Niqqud density of the displayed text.")
    display_mode: DisplayMode = Field(description="Which cached form is displayed.")
    target_state: TargetState = Field(description="Which form restoring vocalization produces.")
    cache: Optional[TextCacheModel] = Field(default=None, description="Three-form text cache.")
    syllables: Optional[SyllablesResponse] = Field(default=None, description="Syllable tree for the displayed form.")
    position: Optional[PositionResponse] = Field(default=None, description="Focused navigation unit.")
    navigation_mode: NavigationMode = Field(description="Current navigation granularity.")
    error: Optional[ErrorModel] = Field(default=None, description="Current error, if any.")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "id": "550e8400e29b41d4a716446655440000",
                "text": "שָׁלוֹם עוֹלָם",
                "niqqud_status": "full",
                "display_mode": "full",
                "target_state": "full",
                "cache": {"original": "שלום עולם", "clean": "שלום עולם", "full": "שָׁלוֹם עוֹלָם"},
                "syllables": None,
                "position": {"mode": "words", "word_index": 0, "text": "שָׁלוֹם"},
                "navigation_mode": "words",
                "error": None,
            }
        ]
    }}


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - detail is always a human-readable error message
    - kind is set for engine errors
    """

    detail: str = Field(description="Human-readable error description.")
    kind: Optional[str] = Field(default=None, description="Machine-readable error kind.")
    extra: Optional[Dict[str, Any]] = Field(default=None, description="Additional error fields.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
