# src/knowledge/search_cache.py - v1
"""Short-lived cache of search results.

Keys are ``kind:query:k:filters``. Any knowledge mutation calls
``invalidate``, which flushes everything: a coarse global flush instead
of per-entry invalidation.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from semkb.cache.lru_store import LRUTTLStore
from semkb.core.models import SearchFilters

logger = logging.getLogger(__name__)


class SearchResultCache:
    """TTL/LRU cache for vector, text and hybrid search results."""

    def __init__(
        self,
        ttl: float = 300.0,
        max_size: int = 512,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store: LRUTTLStore[Any] = LRUTTLStore(max_size=max_size, default_ttl=ttl, clock=clock)
        self._generation = 0
        self.hits = 0
        self.misses = 0

    @property
    def generation(self) -> int:
        return self._generation

    @staticmethod
    def make_key(kind: str, query: str, k: int, filters: SearchFilters | None) -> str:
        filter_key = filters.cache_key() if filters else ""
        return f"{kind}:{query}:{k}:{filter_key}"

    def get(self, key: str) -> Any | None:
        value = self._store.get(key)
        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value

    def set(self, key: str, value: Any, generation: int | None = None) -> None:
        """Store a result computed during ``generation``; stale results are dropped."""
        if generation is not None and generation != self._generation:
            return
        self._store.set(key, value)

    def invalidate(self) -> None:
        self._generation += 1
        self._store.clear()
        logger.debug("Search cache flushed (generation %d)", self._generation)

    def __len__(self) -> int:
        return len(self._store)
