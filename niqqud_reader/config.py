"""Configuration constants, prompt templates, and .env loading.

WHY: Centralizes every configurable value (provider endpoints, model
ids, temperatures, prompt templates, the persistence file) so they are
easy to find, update, and override. Prompts are plain strings here, not
buried in the client, so they can be tuned without touching logic.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level strings and floats read from the environment. The
load_*_settings() functions assemble frozen settings objects and raise
typed errors when something required is missing.

RULES:
- API keys are loaded from .env via python-dotenv, never hardcoded
- SYLLABLES_API_KEY falls back to NIQQUD_API_KEY
- User prompt templates contain a {text} placeholder
- Model ids starting with "gemini" are routed to the Google endpoint
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from niqqud_reader.core.errors import (
    MissingCredentialError,
    MissingModelSelectionError,
    MissingPromptError,
)
from niqqud_reader.core.ir import PromptVariant

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Provider endpoints
# ---------------------------------------------------------------------------

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
GOOGLE_MODELS_URL = "https://generativelanguage.googleapis.com/v1beta/models"

MAX_OUTPUT_TOKENS = 4000
PROVIDER_TIMEOUT_S = float(os.getenv("PROVIDER_TIMEOUT_S", "120"))


def is_google_model(model: str) -> bool:
    """True for Gemini model ids, which use the Generative Language API."""
    return model.strip().lower().startswith("gemini")


def default_api_url(model: str) -> str:
    return GOOGLE_MODELS_URL if is_google_model(model) else OPENAI_CHAT_URL


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

DEFAULT_NIQQUD_SYSTEM_PROMPT = (
    "אתה מומחה בעברית. המשימה שלך היא להוסיף ניקוד מלא לטקסט עברי. "
    "החזר רק את הטקסט המנוקד ללא הסברים נוספים."
)
DEFAULT_NIQQUD_USER_PROMPT = "הוסף ניקוד מלא לטקסט הבא:\n\n{text}"

DEFAULT_COMPLETION_SYSTEM_PROMPT = (
    "אתה מומחה בעברית. המשימה שלך היא להשלים ניקוד חלקי לניקוד מלא. "
    "שמור על הניקוד הקיים, אל תשנה אותיות, והחזר רק את הטקסט המנוקד ללא הסברים נוספים."
)
DEFAULT_COMPLETION_USER_PROMPT = "השלם את הניקוד בטקסט הבא:\n\n{text}"

DEFAULT_SYLLABLES_SYSTEM_PROMPT = (
    "אתה מומחה בעברית. המשימה שלך היא לחלק טקסט עברי להברות. "
    "החזר רק את הטקסט המחולק להברות בפורמט המבוקש ללא הסברים נוספים."
)
DEFAULT_SYLLABLES_PROMPT = (
    "חלק את הטקסט הבא להברות. כתוב כל מילה בשורה נפרדת, "
    "והפרד בין ההברות במקף (-). שמור על הניקוד.\n\n{text}"
)

# ---------------------------------------------------------------------------
# Defaults (environment overridable)
# ---------------------------------------------------------------------------

NIQQUD_MODEL = os.getenv("NIQQUD_MODEL", "gpt-4o")
NIQQUD_API_URL = os.getenv("NIQQUD_API_URL", "")
NIQQUD_TEMPERATURE = float(os.getenv("NIQQUD_TEMPERATURE", "0.3"))
NIQQUD_SYSTEM_PROMPT = os.getenv("NIQQUD_SYSTEM_PROMPT", DEFAULT_NIQQUD_SYSTEM_PROMPT)
NIQQUD_USER_PROMPT = os.getenv("NIQQUD_USER_PROMPT", DEFAULT_NIQQUD_USER_PROMPT)
NIQQUD_COMPLETION_SYSTEM_PROMPT = os.getenv(
    "NIQQUD_COMPLETION_SYSTEM_PROMPT", DEFAULT_COMPLETION_SYSTEM_PROMPT
)
NIQQUD_COMPLETION_USER_PROMPT = os.getenv(
    "NIQQUD_COMPLETION_USER_PROMPT", DEFAULT_COMPLETION_USER_PROMPT
)

SYLLABLES_MODEL = os.getenv("SYLLABLES_MODEL", "gpt-4o")
SYLLABLES_API_URL = os.getenv("SYLLABLES_API_URL", "")
SYLLABLES_PROMPT = os.getenv("SYLLABLES_PROMPT", DEFAULT_SYLLABLES_PROMPT)
SYLLABLES_TEMPERATURE = float(os.getenv("SYLLABLES_TEMPERATURE", "1.0"))

READER_STORE_PATH = os.getenv("READER_STORE_PATH", ".niqqud_reader_store.json")


# ---------------------------------------------------------------------------
# Settings loaders
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VocalizationSettings:
    """Everything a vocalization request needs besides the text."""

    api_key: str
    model: str
    api_url: str
    temperature: float
    system_prompt: str
    user_prompt: str


@dataclass(frozen=True)
class SyllablesSettings:
    """Everything a syllabification request needs besides the text."""

    api_key: str
    model: str
    api_url: str
    temperature: float
    system_prompt: str
    prompt: str


def load_api_key(*names: str) -> str:
    """Return the first non-blank environment variable among names.

    RULES:
    - Raises MissingCredentialError if none is set
    - Never returns a default/placeholder value
    """
    for name in names:
        key = os.getenv(name, "").strip()
        if key:
            return key
    raise MissingCredentialError(
        "Provider API key not configured. Add {} to the .env file.".format(names[0])
    )


def _require_model(model: str) -> str:
    model = model.strip()
    if not model:
        raise MissingModelSelectionError()
    return model


def load_vocalization_settings(
    variant: PromptVariant = PromptVariant.FRESH,
    model: str | None = None,
) -> VocalizationSettings:
    """Build the settings for one vocalization prompt variant.

    Args:
        variant: FRESH for unvocalized text, COMPLETION for partial niqqud.
        model: Overrides NIQQUD_MODEL.

    Raises:
        MissingCredentialError: NIQQUD_API_KEY is unset.
        MissingModelSelectionError: the model id is blank.
    """
    api_key = load_api_key("NIQQUD_API_KEY")
    chosen = _require_model(model if model is not None else NIQQUD_MODEL)
    if variant == PromptVariant.COMPLETION:
        system_prompt, user_prompt = NIQQUD_COMPLETION_SYSTEM_PROMPT, NIQQUD_COMPLETION_USER_PROMPT
    else:
        system_prompt, user_prompt = NIQQUD_SYSTEM_PROMPT, NIQQUD_USER_PROMPT
    return VocalizationSettings(
        api_key=api_key,
        model=chosen,
        api_url=NIQQUD_API_URL or default_api_url(chosen),
        temperature=NIQQUD_TEMPERATURE,
        system_prompt=system_prompt,
        user_prompt=user_prompt,
    )


def load_syllables_settings(model: str | None = None) -> SyllablesSettings:
    """Build the settings for syllable division.

    Raises:
        MissingCredentialError: neither SYLLABLES_API_KEY nor NIQQUD_API_KEY is set.
        MissingModelSelectionError: the model id is blank.
        MissingPromptError: SYLLABLES_PROMPT is blank.
    """
    api_key = load_api_key("SYLLABLES_API_KEY", "NIQQUD_API_KEY")
    chosen = _require_model(model if model is not None else SYLLABLES_MODEL)
    if not SYLLABLES_PROMPT.strip():
        raise MissingPromptError()
    return SyllablesSettings(
        api_key=api_key,
        model=chosen,
        api_url=SYLLABLES_API_URL or default_api_url(chosen),
        temperature=SYLLABLES_TEMPERATURE,
        system_prompt=DEFAULT_SYLLABLES_SYSTEM_PROMPT,
        prompt=SYLLABLES_PROMPT,
    )
