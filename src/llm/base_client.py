# src/llm/base_client.py - v2
"""Abstract completion client interface (the CompletionProvider collaborator)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from semkb.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for all completion providers.

    A client is bound to one model at construction time.
    """

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        options: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Text completion."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (anthropic, openai, gemini)."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier."""
