"""
LLM boundary for Parallax.

The graph code only needs something that answers a (system, user) prompt pair
with JSON. OpenAIClient talks to any OpenAI-compatible chat endpoint
(OpenAI itself, OpenRouter, a local proxy); tests pass their own fakes.
"""
import logging
import os
from typing import Any, Optional, Protocol, Union

import backoff
import openai
from openai import AsyncOpenAI

from parallax.config import get_config

logger = logging.getLogger(__name__)


class LLMClient(Protocol):
    """Anything that can answer a prompt pair with (possibly malformed) JSON."""

    async def call_json(self, system_prompt: str, user_prompt: str) -> Union[str, dict]:
        ...


_RETRYABLE = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class OpenAIClient:
    """
    JSON-mode chat completions through the openai SDK.
    """
    def __init__(self, model: Optional[str] = None, temperature: Optional[float] = None,
                 max_tokens: Optional[int] = None, base_url: Optional[str] = None,
                 api_key: Optional[str] = None):
        """
        Initialize the OpenAIClient.

        Args:
            model: Model name (llm.model)
            temperature: Sampling temperature (llm.temperature)
            max_tokens: Completion token limit (llm.max_tokens)
            base_url: Alternative OpenAI-compatible endpoint (llm.base_url)
            api_key: API key; defaults to the variable named by llm.api_key_env
        """
        self.model = model or get_config("llm.model", "gpt-4o-mini")
        self.temperature = temperature if temperature is not None else get_config("llm.temperature", 0)
        self.max_tokens = max_tokens or get_config("llm.max_tokens", 3000)
        self.base_url = base_url or get_config("llm.base_url")
        self.api_key = api_key or os.getenv(get_config("llm.api_key_env", "OPENAI_API_KEY"))
        self._client: Optional[AsyncOpenAI] = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    @backoff.on_exception(
        backoff.expo,
        _RETRYABLE,
        max_tries=lambda: get_config("llm.max_tries", 3),
    )
    async def call_json(self, system_prompt: str, user_prompt: str) -> str:
        """
        Ask the model for a JSON object.

        Returns:
            The raw message content (may still need JSON recovery)

        Raises:
            openai.OpenAIError: When the request fails after retries
        """
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
        )
        content: Any = response.choices[0].message.content if response.choices else ""
        logger.debug(f"LLM returned {len(content or '')} characters from {self.model}")
        return content or ""
