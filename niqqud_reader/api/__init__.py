"""Provider client package — async HTTP access to the language models.

WHY: Vocalization and syllable division are delegated to text-generation
providers. This package keeps every network call in one place.

HOW: ProviderClient (client.py) wraps httpx.AsyncClient and speaks both
the OpenAI chat-completions and Google Gemini formats. models.py holds
the request dataclasses and reply extraction helpers.

RULES:
- All HTTP calls go through ProviderClient (no direct httpx usage elsewhere)
- Failures surface as typed ReaderError subclasses
"""

from niqqud_reader.api.client import ProviderClient
from niqqud_reader.api.models import SyllablesRequest, SyllablesResult, VocalizationRequest

__all__ = ["ProviderClient", "SyllablesRequest", "SyllablesResult", "VocalizationRequest"]
