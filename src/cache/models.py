# src/cache/models.py - v2
"""Cache domain models: CacheEntry, CacheLookupResult, CacheMetrics."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    """Single prompt cache entry: a request content and its cached response.

    ``id`` is reproducible from (provider, model, content). Entries without
    an ``embedding`` never take part in similarity lookups.
    """

    id: str
    content: str
    embedding: list[float] | None = None
    provider: str
    model: str
    created_at: datetime
    last_hit_at: datetime
    hit_count: int = 0
    token_estimate: int = 0
    cache_hint: bool = False
    payload: Any = None
    expires_at: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class CacheLookupResult(BaseModel):
    """Outcome of a prompt cache lookup."""

    hit_level: Literal["exact", "semantic"] | None = None
    entry: CacheEntry | None = None
    similarity: float | None = None

    @property
    def hit(self) -> bool:
        return self.entry is not None


class CacheMetrics(BaseModel):
    """Point-in-time snapshot of prompt cache metrics."""

    hit_rate: float = 0.0
    miss_rate: float = 0.0
    total_requests: int = 0
    hits: int = 0
    exact_hits: int = 0
    semantic_hits: int = 0
    coalesced_hits: int = 0
    misses: int = 0
    average_response_time_ms: float = 0.0
    estimated_cost_savings: float = 0.0
    cache_size: int = 0
    semantic_index_size: int = 0
    evictions: int = 0
    expirations: int = 0


class ProviderCacheStats(BaseModel):
    """Per-provider slice of the prompt cache counters."""

    provider: str
    requests: int = 0
    hits: int = 0
    misses: int = 0
    cost_savings: float = 0.0
    total_response_time_ms: float = 0.0

    @property
    def hit_rate(self) -> float:
        return self.hits / self.requests if self.requests else 0.0

    @property
    def average_response_time_ms(self) -> float:
        return self.total_response_time_ms / self.requests if self.requests else 0.0


class CacheFetchResult(BaseModel):
    """Result of a read-through prompt cache call."""

    payload: Any = None
    cache_key: str
    cached: bool
    hit_level: Literal["exact", "semantic", "coalesced"] | None = None
    similarity: float | None = None
    token_estimate: int = 0
