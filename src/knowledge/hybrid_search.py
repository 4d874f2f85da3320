# src/knowledge/hybrid_search.py - v2
"""Hybrid vector + keyword search over the knowledge corpus.

Both paths run concurrently. Vector results win: they are listed first and
their score is kept when an entry appears in both lists. When the vector
path fails for any reason the response carries ``degraded=True`` and holds
keyword results only.

The vector path is a linear cosine scan, fine for corpora in the low
thousands; larger corpora need an approximate nearest-neighbour index
behind ``vector_search``.
"""

from __future__ import annotations

import asyncio
import logging

import numpy as np

from semkb.cache.embedding_cache import EmbeddingCache
from semkb.core.errors import ValidationError, VectorSearchUnavailable
from semkb.core.models import KnowledgeEntry, SearchFilters, SearchResponse, SearchResult
from semkb.core.similarity import cosine_similarity_batch, top_k_indices
from semkb.knowledge.lexical import rank_lexical
from semkb.knowledge.repository import KnowledgeRepository
from semkb.knowledge.search_cache import SearchResultCache

logger = logging.getLogger(__name__)


class HybridSearchEngine:
    """Concurrent vector and keyword search with graceful degradation.

    Args:
        repository: Source of the corpus.
        embedding_cache: Embeds queries.
        search_cache: Result cache; shared with the repository so mutations
            flush it.
        default_k: Result count when callers pass none.
    """

    def __init__(
        self,
        repository: KnowledgeRepository,
        embedding_cache: EmbeddingCache,
        search_cache: SearchResultCache | None = None,
        default_k: int = 5,
    ) -> None:
        self._repository = repository
        self._embeddings = embedding_cache
        self._cache = search_cache or SearchResultCache()
        self._default_k = default_k

    async def search(
        self,
        query: str,
        k: int | None = None,
        filters: SearchFilters | None = None,
    ) -> SearchResponse:
        """Run vector and keyword search concurrently and merge the results."""
        k = self._check(query, k)
        key = self._cache.make_key("hybrid", query, k, filters)
        cached = self._cache.get(key)
        if cached is not None:
            return cached.model_copy(deep=True)
        generation = self._cache.generation

        vector_outcome, text_outcome = await asyncio.gather(
            self.vector_search(query, k, filters),
            self.text_search(query, k, filters),
            return_exceptions=True,
        )
        for outcome in (vector_outcome, text_outcome):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome

        if isinstance(vector_outcome, BaseException):
            logger.warning(
                "Vector search unavailable, falling back to keyword search: %s", vector_outcome
            )
            if isinstance(text_outcome, BaseException):
                raise text_outcome
            response = SearchResponse(results=text_outcome[:k], degraded=True)
        elif isinstance(text_outcome, BaseException):
            logger.warning("Keyword search failed, returning vector results: %s", text_outcome)
            response = SearchResponse(results=vector_outcome[:k])
        else:
            response = SearchResponse(results=merge_results(vector_outcome, text_outcome, k))

        logger.info(
            "Search %r returned %d results (degraded=%s)",
            query[:50], len(response.results), response.degraded,
        )
        if not response.degraded:
            # Degraded results would outlive a short provider outage.
            self._cache.set(key, response.model_copy(deep=True), generation)
        return response

    async def vector_search(
        self,
        query: str,
        k: int | None = None,
        filters: SearchFilters | None = None,
    ) -> list[SearchResult]:
        """Cosine-rank corpus vectors against the query embedding.

        Raises:
            VectorSearchUnavailable: No vectors indexed, or dimensions differ.
            ProviderPermanentError: The query could not be embedded.
        """
        k = self._check(query, k)
        key = self._cache.make_key("vector", query, k, filters)
        cached = self._cache.get(key)
        if cached is not None:
            return [r.model_copy(deep=True) for r in cached]
        generation = self._cache.generation

        query_vector = await self._embeddings.generate(query)
        indexed = [e for e in await self._repository.all_entries() if e.vector]
        if not indexed:
            raise VectorSearchUnavailable("No vectors indexed")
        dims = {len(e.vector) for e in indexed}
        dims.update(len(e.content_vector) for e in indexed if e.content_vector)
        if dims != {len(query_vector)}:
            raise VectorSearchUnavailable(
                f"Dimension mismatch: query {len(query_vector)}, corpus {sorted(dims)}"
            )
        entries = [e for e in indexed if filters is None or filters.matches(e)]
        if not entries:
            self._cache.set(key, [], generation)
            return []

        scores = cosine_similarity_batch(
            query_vector, np.asarray([e.vector for e in entries], dtype=float)
        )
        # A query that restates the content matches the content-only vector best.
        content_scores = cosine_similarity_batch(
            query_vector,
            np.asarray([e.content_vector or e.vector for e in entries], dtype=float),
        )
        scores = np.maximum(scores, content_scores)
        results = [
            _to_result(entries[i], _clamp(float(scores[i])), "vector")
            for i in top_k_indices(scores, k)
        ]
        self._cache.set(key, results, generation)
        return [r.model_copy(deep=True) for r in results]

    async def text_search(
        self,
        query: str,
        k: int | None = None,
        filters: SearchFilters | None = None,
    ) -> list[SearchResult]:
        """Keyword (BM25) ranking with scores normalized to 0..1."""
        k = self._check(query, k)
        key = self._cache.make_key("text", query, k, filters)
        cached = self._cache.get(key)
        if cached is not None:
            return [r.model_copy(deep=True) for r in cached]
        generation = self._cache.generation

        entries = await self._corpus(filters)
        results = [
            _to_result(entry, score, "text")
            for entry, score in rank_lexical(query, entries, k)
        ]
        self._cache.set(key, results, generation)
        return [r.model_copy(deep=True) for r in results]

    def invalidate(self) -> None:
        self._cache.invalidate()

    # --- Internal helpers ---

    def _check(self, query: str, k: int | None) -> int:
        if not query or not query.strip():
            raise ValidationError("Search query must not be empty")
        k = self._default_k if k is None else k
        if k < 1:
            raise ValidationError(f"k must be >= 1, got {k}")
        return k

    async def _corpus(self, filters: SearchFilters | None) -> list[KnowledgeEntry]:
        entries = await self._repository.all_entries()
        if filters is None:
            return entries
        return [e for e in entries if filters.matches(e)]


def merge_results(
    vector_results: list[SearchResult],
    text_results: list[SearchResult],
    k: int,
) -> list[SearchResult]:
    """Vector results first, then keyword-only results; deduplicated, truncated to k."""
    merged: list[SearchResult] = []
    seen: set[str] = set()
    for result in [*vector_results, *text_results]:
        if result.item_id in seen:
            continue
        seen.add(result.item_id)
        merged.append(result)
    return merged[:k]


def _clamp(score: float) -> float:
    return min(max(score, 0.0), 1.0)


def _to_result(entry: KnowledgeEntry, score: float, source: str) -> SearchResult:
    return SearchResult(
        item_id=entry.id,
        item_type=entry.content_type.value,
        content_text=entry.content,
        title=entry.title,
        score=score,
        source=source,
        metadata={
            "category": entry.category,
            "source_reference": entry.source_reference,
            "access_count": entry.access_count,
        },
        tags=sorted(entry.tags),
        timestamp=entry.updated_at,
    )
