# src/cache/prompt_cache.py - v3
"""Multi-provider semantic prompt cache.

Lookup order:
  1. Exact match on hash(provider, model, content).
  2. Similarity match: embed the content and linear-scan the similarity
     index for entries of the same (provider, model); best cosine at or
     above the threshold wins, ties go to the most recently hit entry.

The similarity index only ever holds entries that are also in the primary
store. Evictions and expirations remove the entry from both in the same
call. The scan is linear, which is fine for hundreds to low thousands of
entries; larger caches need an approximate nearest-neighbour index behind
the same methods.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable

from semkb.cache.embedding_cache import EmbeddingCache, start_in_flight
from semkb.cache.fingerprint import estimate_tokens, prompt_cache_key
from semkb.cache.lru_store import LRUTTLStore, RemovalReason
from semkb.cache.metrics import CacheMetricsTracker
from semkb.cache.models import (
    CacheEntry,
    CacheFetchResult,
    CacheLookupResult,
    CacheMetrics,
    ProviderCacheStats,
)
from semkb.core.errors import CacheConsistencyError, SemkbError
from semkb.core.similarity import cosine_similarity

logger = logging.getLogger(__name__)

DEFAULT_SEMANTIC_THRESHOLD = 0.85


class SemanticPromptCache:
    """Cache of full provider request/response pairs.

    Args:
        embedding_cache: Source of embeddings for similarity matching. None
            disables similarity matching.
        ttl: Default seconds an entry stays valid.
        max_size: Maximum entries before least-recently-used eviction.
        semantic_threshold: Minimum cosine similarity for a semantic hit.
        semantic_enabled: Global switch for similarity matching.
        hit_target: Hit rate the report compares against.
        clock: Wall-clock source in seconds (injectable for tests).
    """

    def __init__(
        self,
        embedding_cache: EmbeddingCache | None = None,
        ttl: float = 7200.0,
        max_size: int = 1000,
        semantic_threshold: float = DEFAULT_SEMANTIC_THRESHOLD,
        semantic_enabled: bool = True,
        hit_target: float = 0.80,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._embedding_cache = embedding_cache
        self._ttl = ttl
        self._threshold = semantic_threshold
        self._semantic_enabled = semantic_enabled
        self._hit_target = hit_target
        self._clock = clock
        self._store: LRUTTLStore[CacheEntry] = LRUTTLStore(
            max_size=max_size, default_ttl=ttl, clock=clock, on_remove=self._on_remove
        )
        self._semantic_index: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Task[CacheFetchResult]] = {}
        self._metrics = CacheMetricsTracker()

    @property
    def semantic_available(self) -> bool:
        return (
            self._semantic_enabled
            and self._embedding_cache is not None
            and self._embedding_cache.available
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get(
        self,
        content: str,
        provider: str,
        model: str,
        use_semantic: bool = True,
    ) -> CacheEntry | None:
        """Return the cached entry for this request, or None on a miss."""
        result = await self.lookup(content, provider, model, use_semantic)
        return result.entry

    async def lookup(
        self,
        content: str,
        provider: str,
        model: str,
        use_semantic: bool = True,
    ) -> CacheLookupResult:
        """Exact then similarity lookup, with hit/miss accounting."""
        start = time.perf_counter()
        try:
            key = prompt_cache_key(content, provider, model)
            entry = self._store.get(key)
            if entry is not None:
                self._record_hit(entry, "exact")
                logger.debug("Exact hit for %s/%s", provider, model)
                return CacheLookupResult(hit_level="exact", entry=entry, similarity=1.0)

            if use_semantic and self.semantic_available and self._has_candidates(provider, model):
                match = await self._find_semantic_match(content, provider, model)
                if match is not None:
                    entry, similarity = match
                    self._store.touch(entry.id)
                    self._record_hit(entry, "semantic")
                    logger.info(
                        "Semantic hit for %s/%s (similarity: %.3f)",
                        provider, model, similarity,
                    )
                    return CacheLookupResult(
                        hit_level="semantic", entry=entry, similarity=similarity
                    )

            self._metrics.record_miss(provider)
            logger.debug("Miss for %s/%s", provider, model)
            return CacheLookupResult()
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self._metrics.record_request(provider, elapsed_ms)

    async def _find_semantic_match(
        self, content: str, provider: str, model: str
    ) -> tuple[CacheEntry, float] | None:
        assert self._embedding_cache is not None
        try:
            query = await self._embedding_cache.generate(content)
        except SemkbError as e:
            logger.warning("Semantic lookup skipped, embedding failed: %s", e)
            return None

        # Expired entries must not match; purging keeps both indexes in step.
        self._store.purge_expired()

        best: CacheEntry | None = None
        best_score = -1.0
        for entry in self._semantic_index.values():
            if entry.provider != provider or entry.model != model or entry.embedding is None:
                continue
            if len(entry.embedding) != len(query):
                continue
            score = cosine_similarity(query, entry.embedding)
            if score < self._threshold:
                continue
            if (
                best is None
                or score > best_score
                or (score == best_score and entry.last_hit_at > best.last_hit_at)
            ):
                best, best_score = entry, score
        if best is None:
            return None
        return best, best_score

    def _has_candidates(self, provider: str, model: str) -> bool:
        return any(
            e.provider == provider and e.model == model
            for e in self._semantic_index.values()
        )

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    async def put(
        self,
        content: str,
        payload: Any,
        provider: str,
        model: str,
        metadata: dict[str, Any] | None = None,
        ttl: float | None = None,
    ) -> str:
        """Store a response; returns the entry id.

        The embedding used for similarity matching is best effort: if it
        fails the entry is still stored, just not similarity-eligible.
        """
        metadata = dict(metadata or {})
        key = prompt_cache_key(content, provider, model)

        embedding: list[float] | None = None
        if self.semantic_available:
            assert self._embedding_cache is not None
            try:
                embedding = await self._embedding_cache.generate(content)
            except SemkbError as e:
                logger.warning(
                    "Storing %s/%s entry without similarity index: %s", provider, model, e
                )

        now = self._now()
        entry = CacheEntry(
            id=key,
            content=content,
            embedding=embedding,
            provider=provider,
            model=model,
            created_at=now,
            last_hit_at=now,
            token_estimate=estimate_tokens(content),
            cache_hint=bool(metadata.pop("cache_hint", False)),
            payload=payload,
            metadata=metadata,
        )
        self._insert(entry, ttl)
        logger.info(
            "Stored %s/%s content (%d tokens, indexed=%s)",
            provider, model, entry.token_estimate, embedding is not None,
        )
        return key

    async def get_or_compute(
        self,
        content: str,
        provider: str,
        model: str,
        compute: Callable[[], Awaitable[Any]],
        metadata: dict[str, Any] | None = None,
        use_semantic: bool = True,
        ttl: float | None = None,
    ) -> CacheFetchResult:
        """Read-through helper: serve from cache or call ``compute`` once.

        Concurrent callers with the same (provider, model, content) share a
        single ``compute`` call. Errors raised by ``compute`` always
        propagate to every waiting caller. Cancelling one caller leaves the
        shared call running for the others.
        """
        key = prompt_cache_key(content, provider, model)
        pending = self._in_flight.get(key)
        if pending is not None:
            start = time.perf_counter()
            fetched = await asyncio.shield(pending)
            self._metrics.record_request(provider, (time.perf_counter() - start) * 1000)
            self._metrics.record_hit("coalesced", provider, fetched.token_estimate)
            return fetched.model_copy(
                update={"cached": True, "hit_level": "coalesced", "similarity": None}
            )

        task = start_in_flight(
            self._in_flight,
            key,
            self._fetch(key, content, provider, model, compute, metadata, use_semantic, ttl),
        )
        return await asyncio.shield(task)

    async def _fetch(
        self,
        key: str,
        content: str,
        provider: str,
        model: str,
        compute: Callable[[], Awaitable[Any]],
        metadata: dict[str, Any] | None,
        use_semantic: bool,
        ttl: float | None,
    ) -> CacheFetchResult:
        try:
            result = await self.lookup(content, provider, model, use_semantic)
            if result.entry is not None:
                entry = result.entry
                return CacheFetchResult(
                    payload=entry.payload,
                    cache_key=entry.id,
                    cached=True,
                    hit_level=result.hit_level,
                    similarity=result.similarity,
                    token_estimate=entry.token_estimate,
                )

            payload = await compute()
            entry_id = await self.put(content, payload, provider, model, metadata, ttl)
            return CacheFetchResult(
                payload=payload,
                cache_key=entry_id,
                cached=False,
                token_estimate=estimate_tokens(content),
            )
        finally:
            self._in_flight.pop(key, None)

    async def warm(self, entries: Iterable[dict[str, Any]]) -> int:
        """Bulk-store pre-computed responses, tagging them as warmed.

        Each item needs content, response, provider and model keys; metadata
        is optional.
        """
        count = 0
        for item in entries:
            metadata = {**item.get("metadata", {}), "warmed": True}
            await self.put(
                item["content"], item["response"], item["provider"], item["model"], metadata
            )
            count += 1
        logger.info("Cache warming completed: %d entries", count)
        return count

    def delete(self, entry_id: str) -> bool:
        return self._store.delete(entry_id)

    def purge_expired(self) -> int:
        return self._store.purge_expired()

    def clear(self) -> None:
        """Drop all entries and reset metrics."""
        self._store.clear()
        self._semantic_index.clear()
        self._metrics.reset()
        logger.info("All prompt caches cleared and metrics reset")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def metrics(self) -> CacheMetrics:
        # Expired entries linger until touched; drop them so cache_size counts live ones.
        self._store.purge_expired()
        return self._metrics.snapshot()

    def provider_metrics(self, provider: str) -> ProviderCacheStats:
        return self._metrics.provider_stats(provider)

    def all_provider_metrics(self) -> dict[str, ProviderCacheStats]:
        return self._metrics.all_provider_stats()

    def entries(self) -> list[CacheEntry]:
        """Snapshot of live entries, least recently used first."""
        return [entry for _, entry in self._store.items()]

    def peek(self, entry_id: str) -> CacheEntry | None:
        return self._store.peek(entry_id)

    def is_indexed(self, entry_id: str) -> bool:
        return entry_id in self._semantic_index

    @property
    def semantic_index_size(self) -> int:
        return len(self._semantic_index)

    def __len__(self) -> int:
        return len(self._store)

    def verify_consistency(self) -> None:
        """Full check that every similarity-indexed entry is in the primary store.

        Raises:
            CacheConsistencyError: On the first violation found.
        """
        for key, entry in self._semantic_index.items():
            if key not in self._store:
                raise CacheConsistencyError(f"Indexed entry {key} missing from primary cache")
            if entry.embedding is None:
                raise CacheConsistencyError(f"Indexed entry {key} has no embedding")

    def report(self) -> str:
        """Human-readable cache effectiveness report."""
        m = self.metrics()
        return "\n".join(
            [
                "=== Prompt Cache Report ===",
                f"Hit Rate: {m.hit_rate * 100:.2f}% (Target: {self._hit_target * 100:.0f}%)",
                f"Miss Rate: {m.miss_rate * 100:.2f}%",
                f"Total Requests: {m.total_requests}",
                f"Exact / Semantic / Coalesced Hits: "
                f"{m.exact_hits} / {m.semantic_hits} / {m.coalesced_hits}",
                f"Average Response Time: {m.average_response_time_ms:.0f}ms",
                f"Estimated Cost Savings: ${m.estimated_cost_savings:.4f}",
                f"Cache Size: {m.cache_size} entries",
                f"Cache Evictions: {m.evictions}",
                f"Semantic Index Size: {m.semantic_index_size} entries",
                "===========================",
            ]
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _insert(self, entry: CacheEntry, ttl: float | None) -> None:
        # Replacing a key bypasses the removal callback; drop the stale index row.
        self._semantic_index.pop(entry.id, None)
        entry.expires_at = self._store.set(entry.id, entry, ttl)
        if entry.embedding is not None:
            if entry.id not in self._store:
                raise CacheConsistencyError(f"Entry {entry.id} evicted during insert")
            self._semantic_index[entry.id] = entry
        self._sync_sizes()

    def _on_remove(self, key: str, entry: CacheEntry, reason: RemovalReason) -> None:
        self._semantic_index.pop(key, None)
        self._metrics.record_removal(reason)
        self._sync_sizes()
        logger.debug("Removed cache entry %s (%s)", key[:32], reason)

    def _record_hit(self, entry: CacheEntry, level: str) -> None:
        entry.hit_count += 1
        entry.last_hit_at = self._now()
        self._metrics.record_hit(level, entry.provider, entry.token_estimate)

    def _sync_sizes(self) -> None:
        self._metrics.cache_size = len(self._store)
        self._metrics.semantic_index_size = len(self._semantic_index)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)
