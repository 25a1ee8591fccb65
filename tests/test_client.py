"""Tests for the provider HTTP client.

WHY: The client is the only code that speaks the two provider wire
formats. A wrong body, a lost error message or a missing key parameter
only shows up against the live API, so the request shape is pinned
here.

HOW: httpx.MockTransport captures every request and answers with a
canned response. Each test drives the async client with asyncio.run().
  - TestOpenAIFormat / TestGeminiFormat: request bodies and reply parsing
  - TestErrors: HTTP errors, transport errors, empty replies
  - TestSyllables: parsed division and unparsable replies

RULES:
- No test reaches the network
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from conftest import FULL_SYLLABLES_REPLY, FULL_TEXT, PLAIN_TEXT
from niqqud_reader.api.client import ProviderClient
from niqqud_reader.config import (
    GOOGLE_MODELS_URL,
    OPENAI_CHAT_URL,
    SyllablesSettings,
    VocalizationSettings,
)
from niqqud_reader.core.errors import (
    EmptyInputError,
    ProviderEmptyResponseError,
    ProviderHttpError,
    ProviderUnparsableSyllablesError,
)
from niqqud_reader.core.ir import PromptVariant


def _vocalization_settings(model="gpt-4o", url=OPENAI_CHAT_URL):
    return VocalizationSettings(
        api_key="sk-test",
        model=model,
        api_url=url,
        temperature=0.3,
        system_prompt="system",
        user_prompt="vocalize: {text}",
    )


def _syllables_settings(model="gpt-4o", url=OPENAI_CHAT_URL):
    return SyllablesSettings(
        api_key="sk-test",
        model=model,
        api_url=url,
        temperature=1.0,
        system_prompt="system",
        prompt="divide: {text}",
    )


def _openai_reply(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _gemini_reply(content):
    return {"candidates": [{"content": {"parts": [{"text": content}]}}]}


class Recorder:
    """MockTransport handler that records requests and replies with a fixed response."""

    def __init__(self, status=200, body=None, text=None):
        self.status = status
        self.body = body
        self.text = text
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(self.status, text=self.text)
        return httpx.Response(self.status, json=self.body)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


def _run(handler, call):
    async def go():
        async with ProviderClient(transport=httpx.MockTransport(handler)) as client:
            return await call(client)

    return asyncio.run(go())


class TestOpenAIFormat:
    def test_request_body(self):
        recorder = Recorder(body=_openai_reply(FULL_TEXT))
        _run(recorder, lambda c: c.vocalize(PLAIN_TEXT, _vocalization_settings()))
        request = recorder.requests[0]
        assert str(request.url) == OPENAI_CHAT_URL
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = recorder.last_json
        assert body["model"] == "gpt-4o"
        assert body["temperature"] == 0.3
        assert body["messages"] == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "vocalize: " + PLAIN_TEXT},
        ]

    def test_reply_is_trimmed(self):
        recorder = Recorder(body=_openai_reply("\n" + FULL_TEXT + "  "))
        assert _run(recorder, lambda c: c.vocalize(PLAIN_TEXT, _vocalization_settings())) == FULL_TEXT

    def test_completion_variant_sends_same_shape(self):
        recorder = Recorder(body=_openai_reply(FULL_TEXT))
        _run(recorder, lambda c: c.vocalize(PLAIN_TEXT, _vocalization_settings(), PromptVariant.COMPLETION))
        assert len(recorder.requests) == 1


class TestGeminiFormat:
    def test_request_shape(self):
        recorder = Recorder(body=_gemini_reply(FULL_TEXT))
        settings = _vocalization_settings(model="gemini-1.5-pro", url=GOOGLE_MODELS_URL)
        result = _run(recorder, lambda c: c.vocalize(PLAIN_TEXT, settings))
        assert result == FULL_TEXT

        request = recorder.requests[0]
        assert request.url.path.endswith("/models/gemini-1.5-pro:generateContent")
        assert request.url.params["key"] == "sk-test"
        assert "Authorization" not in request.headers

        body = recorder.last_json
        prompt = body["contents"][0]["parts"][0]["text"]
        assert prompt.startswith("system\n\n")
        assert prompt.endswith(PLAIN_TEXT)
        assert body["generationConfig"]["temperature"] == 0.3


class TestErrors:
    def test_provider_message_is_kept(self):
        recorder = Recorder(status=401, body={"error": {"message": "Invalid API key"}})
        with pytest.raises(ProviderHttpError) as exc_info:
            _run(recorder, lambda c: c.vocalize(PLAIN_TEXT, _vocalization_settings()))
        assert exc_info.value.status_code == 401
        assert "Invalid API key" in exc_info.value.message

    def test_non_json_error_body(self):
        recorder = Recorder(status=502, text="Bad gateway")
        with pytest.raises(ProviderHttpError) as exc_info:
            _run(recorder, lambda c: c.vocalize(PLAIN_TEXT, _vocalization_settings()))
        assert exc_info.value.status_code == 502
        assert "Bad gateway" in exc_info.value.message

    def test_transport_error_has_status_zero(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderHttpError) as exc_info:
            _run(handler, lambda c: c.vocalize(PLAIN_TEXT, _vocalization_settings()))
        assert exc_info.value.status_code == 0

    def test_missing_content_is_empty_response(self):
        recorder = Recorder(body={"choices": []})
        with pytest.raises(ProviderEmptyResponseError):
            _run(recorder, lambda c: c.vocalize(PLAIN_TEXT, _vocalization_settings()))

    def test_blank_text_never_sent(self):
        recorder = Recorder(body=_openai_reply(FULL_TEXT))
        with pytest.raises(EmptyInputError):
            _run(recorder, lambda c: c.vocalize("  ", _vocalization_settings()))
        assert recorder.requests == []

    def test_requires_context_manager(self):
        client = ProviderClient()
        with pytest.raises(RuntimeError, match="async context manager"):
            asyncio.run(client.vocalize(PLAIN_TEXT, _vocalization_settings()))


class TestSyllables:
    def test_reply_is_parsed(self):
        recorder = Recorder(body=_openai_reply("```\n" + FULL_SYLLABLES_REPLY + "\n```"))
        result = _run(recorder, lambda c: c.divide_syllables(FULL_TEXT, _syllables_settings()))
        assert result.data.syllable_counts() == [2, 2]
        assert result.raw_response.startswith("```")
        assert recorder.last_json["messages"][-1]["content"] == "divide: " + FULL_TEXT

    def test_commentary_only_reply_is_unparsable(self):
        recorder = Recorder(body=_openai_reply("Here is the division:"))
        with pytest.raises(ProviderUnparsableSyllablesError):
            _run(recorder, lambda c: c.divide_syllables(FULL_TEXT, _syllables_settings()))
