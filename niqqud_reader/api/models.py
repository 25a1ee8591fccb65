"""Provider request and response dataclasses.

WHY: Both providers (vocalization and syllabification) are text-generation
models reached over two wire formats: OpenAI-compatible chat completions
and Google Generative Language. Typed requests keep the prompt plumbing
explicit; the from_* helpers pull the reply text out of either format.

HOW: A request dataclass renders itself into the JSON body of either
format. Reply parsing returns the trimmed text or None when the expected
fields are missing.

RULES:
- User prompt templates contain {text}; every occurrence is replaced
- OpenAI replies: choices[0].message.content
- Gemini replies: candidates[0].content.parts[0].text
- A reply without the expected fields yields None (the caller decides
  which error that is)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from niqqud_reader.core.ir import PromptVariant, SyllablesData


def render_prompt(template: str, text: str) -> str:
    return template.replace("{text}", text)


@dataclass(frozen=True)
class VocalizationRequest:
    """One request to vocalize (or complete the vocalization of) a text."""

    text: str
    model: str
    temperature: float
    system_prompt: str
    user_prompt_template: str
    variant: PromptVariant = PromptVariant.FRESH

    @property
    def user_prompt(self) -> str:
        return render_prompt(self.user_prompt_template, self.text)


@dataclass(frozen=True)
class SyllablesRequest:
    """One request to divide a text into syllables."""

    text: str
    model: str
    temperature: float
    prompt_template: str
    system_prompt: str = ""

    @property
    def prompt(self) -> str:
        return render_prompt(self.prompt_template, self.text)


@dataclass(frozen=True)
class SyllablesResult:
    """A parsed syllable division together with the reply it came from.

    raw_response is kept so a surprising division can be inspected.
    """

    data: SyllablesData
    raw_response: str


def openai_body(
    model: str,
    system_prompt: str,
    user_prompt: str,
    temperature: float,
    max_tokens: int,
) -> dict[str, Any]:
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_prompt})
    return {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }


def gemini_body(prompt: str, temperature: float, max_tokens: int) -> dict[str, Any]:
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {"maxOutputTokens": max_tokens, "temperature": temperature},
    }


def text_from_openai(data: Any) -> str | None:
    """Extract the reply text from a chat-completions response."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(content, str):
        return None
    return content.strip()


def text_from_gemini(data: Any) -> str | None:
    """Extract the reply text from a generateContent response."""
    try:
        content = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(content, str):
        return None
    return content.strip()


def error_message_from(data: Any) -> str | None:
    """The provider's own error message, when the body carries one."""
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
    return None
