"""
Micro-Tutor: LLM Abstraction Layer
Async JSON-mode generation for lesson screens.
"""

import time
import logging
from typing import Protocol, Optional
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from microtutor.config import (
    OPENAI_API_KEY, LLM_MODEL, LLM_MAX_TOKENS, LLM_TEMPERATURE,
    LLM_PROVIDER, LLM_TIMEOUT_SECONDS,
)
from microtutor.errors import ContentGenerationError

logger = logging.getLogger("microtutor.llm")


@dataclass
class LLMResult:
    text: str
    latency_ms: int
    model: str
    usage: dict


class LLMProvider(Protocol):
    async def generate_json(self, messages: list[dict], **kwargs) -> str: ...


def friendly_error(exc: Exception) -> ContentGenerationError:
    """Translate a provider failure into a learner-safe, retryable error."""
    if isinstance(exc, openai.APITimeoutError):
        message = "The AI tutor took too long to respond. Please try again."
    elif isinstance(exc, openai.RateLimitError):
        message = "Too many requests. Please wait a moment before trying again."
    elif isinstance(exc, openai.BadRequestError):
        message = ("There was an issue with the AI request. Please try again, "
                   "or report an issue if it persists.")
    elif isinstance(exc, openai.InternalServerError):
        message = "The AI tutor encountered a server error. Please try again in a moment."
    else:
        message = "Failed to get a response from the AI tutor. Please try again."
    return ContentGenerationError(message, retryable=True)


# ─── OpenAI ──────────────────────────────────────────────────────────────────

class OpenAIChat:
    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self._client = client or AsyncOpenAI(api_key=OPENAI_API_KEY, timeout=LLM_TIMEOUT_SECONDS)

    async def generate(
        self,
        messages: list[dict],
        max_tokens: int = LLM_MAX_TOKENS,
        temperature: float = LLM_TEMPERATURE,
    ) -> LLMResult:
        """One JSON-mode completion. Provider errors become ContentGenerationError."""
        start = time.perf_counter()
        try:
            response = await self._client.chat.completions.create(
                model=LLM_MODEL,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            elapsed = int((time.perf_counter() - start) * 1000)
            logger.error(f"LLM error after {elapsed}ms: {e}")
            raise friendly_error(e) from e

        elapsed = int((time.perf_counter() - start) * 1000)
        content = response.choices[0].message.content if response.choices else None
        text = (content or "").strip()
        usage = {}
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        logger.info(f"LLM response: {elapsed}ms, {usage.get('total_tokens', '?')} tokens")
        return LLMResult(text=text, latency_ms=elapsed, model=LLM_MODEL, usage=usage)

    async def generate_json(self, messages: list[dict], **kwargs) -> str:
        """Raw JSON text for the validator."""
        result = await self.generate(messages, **kwargs)
        return result.text


# ─── Provider Factory ────────────────────────────────────────────────────────

_providers = {
    "openai": OpenAIChat,
}

_instance: Optional[OpenAIChat] = None


def get_llm() -> OpenAIChat:
    """Get the configured LLM provider (singleton)."""
    global _instance
    if _instance is None:
        provider_cls = _providers.get(LLM_PROVIDER)
        if not provider_cls:
            raise ValueError(f"Unknown LLM provider: {LLM_PROVIDER}")
        _instance = provider_cls()
    return _instance
