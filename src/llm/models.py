# src/llm/models.py - v2
"""LLM-specific types: Message, LLMResponse."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel


class Message(BaseModel):
    """Single message in a conversation.

    ``cache_control`` marks a stable prefix block that providers with
    explicit prompt caching (Anthropic) should checkpoint.
    """

    role: Literal["user", "assistant", "system"]
    content: str
    cache_control: bool = False


class LLMResponse(BaseModel):
    """Normalized response from any completion provider."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    model: str
    provider: str
    latency_ms: int = 0
    raw_response: Any = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens
