# src/cache/providers/models.py - v1
"""Types shared by the provider cache adapters."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from semkb.llm.models import LLMResponse, Message


class StructuredPrompt(BaseModel):
    """A request laid out for a provider's prompt caching rules.

    ``messages`` may include system messages; adapters translate them to the
    provider's native system slot.
    """

    provider: str
    model: str
    messages: list[Message]
    total_tokens: int = 0
    cacheable_tokens: int = 0
    cache_breakpoints: int = 0
    cache_hint: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def cache_content(self) -> str:
        """Canonical text used as the prompt cache key."""
        return "\n---\n".join(f"{m.role}: {m.content}" for m in self.messages)


class CompletionMetrics(BaseModel):
    response_time_ms: float = 0.0
    token_count: int = 0
    cost: float = 0.0
    cost_savings: float = 0.0
    cache_breakpoints: int = 0


class CachedCompletion(BaseModel):
    """Result of executing a structured prompt through the prompt cache."""

    response: LLMResponse
    cached: bool
    cache_key: str
    provider: str
    model: str
    hit_level: str | None = None
    metrics: CompletionMetrics = Field(default_factory=CompletionMetrics)


class ProviderCacheReport(BaseModel):
    """Provider-scoped view of prompt cache effectiveness."""

    provider: str
    model: str
    hit_rate: float = 0.0
    total_requests: int = 0
    cost_savings: float = 0.0
    average_response_time_ms: float = 0.0
    cache_size: int = 0
    recommendations: list[str] = Field(default_factory=list)
