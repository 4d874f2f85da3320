# src/llm/adapters/openai_adapter.py - v2
"""OpenAI GPT adapter implementing BaseLLMClient.

OpenAI caches long prompt prefixes automatically; callers order stable
content first. Cached prefix tokens are reported as cache_read_tokens.
"""

from __future__ import annotations

import time
from typing import Any

from semkb.core.errors import ProviderPermanentError
from semkb.llm.base_client import BaseLLMClient
from semkb.llm.models import LLMResponse, Message

_PASSTHROUGH_OPTIONS = ("stop", "tools", "tool_choice", "top_p", "response_format", "seed")


class OpenAIAdapter(BaseLLMClient):
    """OpenAI GPT adapter."""

    def __init__(self, model: str = "gpt-4o", api_key: str = "", **kwargs: Any):
        self._model = model
        self._api_key = api_key
        self.__client = None

    @property
    def _client(self):
        if self.__client is None:
            if not self._api_key:
                raise ProviderPermanentError("OpenAI API key not configured", "openai")
            import openai

            self.__client = openai.AsyncOpenAI(api_key=self._api_key)
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        options: dict[str, Any] | None = None,
    ) -> LLMResponse:
        oai_messages: list[dict[str, Any]] = []
        if system:
            oai_messages.append({"role": "system", "content": system})
        for m in messages:
            oai_messages.append({"role": m.role, "content": m.content})

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": oai_messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        for key in _PASSTHROUGH_OPTIONS:
            if options and options.get(key) is not None:
                kwargs[key] = options[key]

        t0 = time.monotonic()
        resp = await self._client.chat.completions.create(**kwargs)
        latency = int((time.monotonic() - t0) * 1000)

        choice = resp.choices[0]
        usage = resp.usage
        details = getattr(usage, "prompt_tokens_details", None) if usage else None
        return LLMResponse(
            content=choice.message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            cache_read_tokens=(getattr(details, "cached_tokens", 0) or 0) if details else 0,
            model=self._model,
            provider="openai",
            latency_ms=latency,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model
