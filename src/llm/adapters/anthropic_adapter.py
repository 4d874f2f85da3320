# src/llm/adapters/anthropic_adapter.py - v3
"""Anthropic Claude adapter implementing BaseLLMClient.

Uses the official anthropic SDK. Messages flagged with ``cache_control``
become text blocks carrying an ephemeral cache breakpoint.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from semkb.core.errors import ProviderPermanentError
from semkb.llm.base_client import BaseLLMClient
from semkb.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)

_PASSTHROUGH_OPTIONS = ("stop_sequences", "tools", "tool_choice", "top_p", "top_k", "metadata")


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-3-5-sonnet-20241022",
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            if not self._api_key:
                raise ProviderPermanentError("Anthropic API key not configured", "anthropic")
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install anthropic"
                ) from e
            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        options: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Text completion via Anthropic Messages API."""
        kwargs = self.build_request(messages, system, max_tokens, temperature, options)

        start = time.monotonic()
        response = await self._client.messages.create(**kwargs)
        latency_ms = int((time.monotonic() - start) * 1000)

        return LLMResponse(
            content=self._extract_content(response),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            cache_read_tokens=getattr(response.usage, "cache_read_input_tokens", 0) or 0,
            cache_write_tokens=getattr(response.usage, "cache_creation_input_tokens", 0) or 0,
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
            raw_response=response,
        )

    def build_request(
        self,
        messages: list[Message],
        system: str | None,
        max_tokens: int,
        temperature: float,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Translate normalized messages into Messages API keyword arguments."""
        system_blocks: list[dict[str, Any]] = []
        if system:
            system_blocks.append({"type": "text", "text": system})
        api_messages: list[dict[str, Any]] = []
        for m in messages:
            if m.role == "system":
                system_blocks.append(self._text_block(m))
            else:
                api_messages.append(self._to_api_message(m))

        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": api_messages,
        }
        if system_blocks:
            kwargs["system"] = system_blocks
        for key in _PASSTHROUGH_OPTIONS:
            if options and options.get(key) is not None:
                kwargs[key] = options[key]
        return kwargs

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def model_name(self) -> str:
        return self._model

    # --- Internal helpers ---

    @staticmethod
    def _text_block(m: Message) -> dict[str, Any]:
        block: dict[str, Any] = {"type": "text", "text": m.content}
        if m.cache_control:
            block["cache_control"] = {"type": "ephemeral"}
        return block

    @classmethod
    def _to_api_message(cls, m: Message) -> dict[str, Any]:
        if m.cache_control:
            return {"role": m.role, "content": [cls._text_block(m)]}
        return {"role": m.role, "content": m.content}

    @staticmethod
    def _extract_content(response: Any) -> str:
        """Concatenate text blocks from an Anthropic response."""
        parts = [
            block.text
            for block in response.content
            if getattr(block, "type", None) == "text"
        ]
        return "".join(parts)
