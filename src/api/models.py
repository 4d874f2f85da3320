# src/api/models.py - v2
"""Data models exposed by the service facade."""

from __future__ import annotations

from pydantic import BaseModel, Field

from semkb.cache.embedding_cache import EmbeddingCacheStats
from semkb.cache.models import CacheMetrics, ProviderCacheStats
from semkb.knowledge.repository import EmbeddingStats


class ServiceStats(BaseModel):
    """Everything the service can report about itself in one call."""

    prompt_cache: CacheMetrics
    providers: dict[str, ProviderCacheStats] = Field(default_factory=dict)
    embedding_cache: EmbeddingCacheStats
    knowledge: EmbeddingStats
    search_cache_size: int = 0
    search_cache_hits: int = 0
    search_cache_misses: int = 0
