"""Typed error hierarchy for the reader engine.

WHY: Every failure the reader can hit is user-facing and recoverable:
an empty text, a missing API key, a provider that answered with garbage.
Callers need to tell these apart (to show the right message, to pick an
HTTP status) without parsing strings.

HOW: ReaderError carries an ErrorKind (a str enum) plus a message.
Each concrete failure is a subclass that fixes its kind. Provider HTTP
failures additionally carry the status code, like the upstream API
client errors do.

RULES:
- All errors are recoverable; none should terminate the process
- No error triggers an automatic retry
- The session adapter is the single place that turns a raised error
  into the current error state
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    """Machine-readable error categories."""

    EMPTY_INPUT = "empty_input"
    MISSING_CREDENTIAL = "missing_credential"
    MISSING_MODEL_SELECTION = "missing_model_selection"
    MISSING_PROMPT = "missing_prompt"
    PROVIDER_HTTP_ERROR = "provider_http_error"
    PROVIDER_EMPTY_RESPONSE = "provider_empty_response"
    PROVIDER_NO_VOCALIZATION = "provider_no_vocalization"
    PROVIDER_TEXT_MISMATCH = "provider_text_mismatch"
    PROVIDER_UNPARSABLE_SYLLABLES = "provider_unparsable_syllables"
    CACHE_INCONSISTENCY = "cache_inconsistency"


class ReaderError(Exception):
    """Base class for all reader errors.

    Subclasses set ``kind`` and a default message; callers may pass a
    more specific message.
    """

    kind: ErrorKind = ErrorKind.EMPTY_INPUT
    default_message = "Reader error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


class EmptyInputError(ReaderError):
    kind = ErrorKind.EMPTY_INPUT
    default_message = "Text is empty"


class MissingCredentialError(ReaderError, ValueError):
    kind = ErrorKind.MISSING_CREDENTIAL
    default_message = "Provider API key is not configured"


class MissingModelSelectionError(ReaderError, ValueError):
    kind = ErrorKind.MISSING_MODEL_SELECTION
    default_message = "No language model selected"


class MissingPromptError(ReaderError, ValueError):
    kind = ErrorKind.MISSING_PROMPT
    default_message = "Prompt template is not configured"


class ProviderHttpError(ReaderError):
    """Raised when the provider answers with a non-2xx status.

    RULES:
    - Always include status_code and message
    - message is the provider's error message or the response body
    """

    kind = ErrorKind.PROVIDER_HTTP_ERROR

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(f"Provider API error {status_code}: {message}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class ProviderEmptyResponseError(ReaderError):
    kind = ErrorKind.PROVIDER_EMPTY_RESPONSE
    default_message = "The model returned an empty response"


class ProviderNoVocalizationError(ReaderError):
    kind = ErrorKind.PROVIDER_NO_VOCALIZATION
    default_message = "The model returned text without niqqud"


class ProviderTextMismatchError(ReaderError):
    kind = ErrorKind.PROVIDER_TEXT_MISMATCH
    default_message = "The model changed the letters of the text while vocalizing"


class ProviderUnparsableSyllablesError(ReaderError):
    kind = ErrorKind.PROVIDER_UNPARSABLE_SYLLABLES
    default_message = "The model returned a syllable division that could not be parsed"


class CacheInconsistencyError(ReaderError):
    kind = ErrorKind.CACHE_INCONSISTENCY
    default_message = "Syllables cannot be aligned with the displayed text"
