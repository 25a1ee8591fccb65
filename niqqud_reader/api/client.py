"""Async HTTP client for the text-generation providers.

WHY: Vocalization and syllable division are both delegated to a language
model. This module hides the two wire formats (OpenAI-compatible chat
completions and Google Gemini generateContent) behind one client so the
session adapter only deals in texts, settings and typed errors.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. ProviderClient is an
async context manager: enter it to open a connection pool, exit to close
it. vocalize() returns the provider's vocalized text unvalidated (the
text-state engine validates it against its source); divide_syllables()
runs the reply through the lenient syllable parser.

RULES:
- Always use the async context manager (async with ProviderClient() as client:)
- Non-2xx responses raise ProviderHttpError with the provider's message
- Transport failures raise ProviderHttpError with status_code 0
- An empty reply raises ProviderEmptyResponseError
- An unparsable syllable reply raises ProviderUnparsableSyllablesError
- No retries: one call per invocation
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from niqqud_reader.api.models import (
    SyllablesRequest,
    SyllablesResult,
    VocalizationRequest,
    error_message_from,
    gemini_body,
    openai_body,
    text_from_gemini,
    text_from_openai,
)
from niqqud_reader.config import (
    MAX_OUTPUT_TOKENS,
    PROVIDER_TIMEOUT_S,
    SyllablesSettings,
    VocalizationSettings,
    is_google_model,
)
from niqqud_reader.core.errors import (
    EmptyInputError,
    ProviderEmptyResponseError,
    ProviderHttpError,
    ProviderUnparsableSyllablesError,
)
from niqqud_reader.core.ir import PromptVariant
from niqqud_reader.core.parser import parse_syllables_response

logger = logging.getLogger(__name__)


class ProviderClient:
    """Async client for vocalization and syllabification providers.

    RULES:
    - Use as: async with ProviderClient() as client: ...
    - transport is for tests (httpx.MockTransport); production uses the
      default network transport
    """

    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout if timeout is not None else PROVIDER_TIMEOUT_S
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ProviderClient:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "ProviderClient must be used as an async context manager: "
                "async with ProviderClient() as client: ..."
            )
        return self._client

    # ------------------------------------------------------------------
    # Wire formats
    # ------------------------------------------------------------------

    async def _post(self, url: str, **kwargs: Any) -> Any:
        client = self._ensure_client()
        try:
            resp = await client.post(url, **kwargs)
        except httpx.TransportError as exc:
            raise ProviderHttpError(0, str(exc) or exc.__class__.__name__) from exc

        if resp.status_code < 200 or resp.status_code >= 300:
            try:
                message = error_message_from(resp.json()) or resp.text
            except ValueError:
                message = resp.text
            raise ProviderHttpError(resp.status_code, message or resp.reason_phrase)

        try:
            return resp.json()
        except ValueError:
            return None

    async def complete(
        self,
        *,
        api_key: str,
        api_url: str,
        model: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
    ) -> str:
        """Send one prompt and return the trimmed reply text.

        Raises:
            ProviderHttpError: non-2xx status or transport failure.
            ProviderEmptyResponseError: no reply text.
        """
        if is_google_model(model):
            # generateContent has no system role; prepend it to the prompt.
            prompt = "{}\n\n{}".format(system_prompt, user_prompt) if system_prompt else user_prompt
            data = await self._post(
                "{}/{}:generateContent".format(api_url.rstrip("/"), model),
                params={"key": api_key},
                json=gemini_body(prompt, temperature, MAX_OUTPUT_TOKENS),
            )
            text = text_from_gemini(data)
        else:
            data = await self._post(
                api_url,
                headers={"Authorization": f"Bearer {api_key}"},
                json=openai_body(model, system_prompt, user_prompt, temperature, MAX_OUTPUT_TOKENS),
            )
            text = text_from_openai(data)

        if not text:
            raise ProviderEmptyResponseError()
        return text

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def vocalize(
        self,
        text: str,
        settings: VocalizationSettings,
        variant: PromptVariant = PromptVariant.FRESH,
    ) -> str:
        """Ask the provider for a fully vocalized version of text.

        Args:
            text: Hebrew text, unvocalized or partially vocalized.
            settings: Credentials, model and the prompts for variant.
            variant: Recorded in the request for logging.

        Returns:
            The reply text, trimmed and not yet validated.
        """
        if not text.strip():
            raise EmptyInputError()
        request = VocalizationRequest(
            text=text,
            model=settings.model,
            temperature=settings.temperature,
            system_prompt=settings.system_prompt,
            user_prompt_template=settings.user_prompt,
            variant=variant,
        )
        logger.info(
            "Requesting %s vocalization from %s (%d chars)",
            request.variant.value,
            request.model,
            len(text),
        )
        return await self.complete(
            api_key=settings.api_key,
            api_url=settings.api_url,
            model=request.model,
            system_prompt=request.system_prompt,
            user_prompt=request.user_prompt,
            temperature=request.temperature,
        )

    async def divide_syllables(self, text: str, settings: SyllablesSettings) -> SyllablesResult:
        """Ask the provider to divide text into syllables and parse the reply.

        Raises:
            EmptyInputError: text is blank.
            ProviderUnparsableSyllablesError: the reply held no word entries.
        """
        if not text.strip():
            raise EmptyInputError()
        request = SyllablesRequest(
            text=text,
            model=settings.model,
            temperature=settings.temperature,
            prompt_template=settings.prompt,
            system_prompt=settings.system_prompt,
        )
        logger.info("Requesting syllable division from %s (%d chars)", request.model, len(text))
        raw = await self.complete(
            api_key=settings.api_key,
            api_url=settings.api_url,
            model=request.model,
            system_prompt=request.system_prompt,
            user_prompt=request.prompt,
            temperature=request.temperature,
        )

        data = parse_syllables_response(raw)
        if data is None:
            logger.error("Could not parse syllable reply (%d chars)", len(raw))
            raise ProviderUnparsableSyllablesError()
        logger.info("Parsed %d words from syllable reply", data.word_count)
        return SyllablesResult(data=data, raw_response=raw)
