# src/cache/embedding_cache.py - v2
"""Embedding generation with exact-match deduplication.

Vectors are cached by (model, text) hash, so switching models never serves
vectors of a different dimension. Concurrent requests for the same text
share one in-flight provider call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Coroutine

from pydantic import BaseModel

from semkb.cache.fingerprint import embedding_key
from semkb.cache.lru_store import LRUTTLStore
from semkb.core.errors import ProviderPermanentError, ValidationError
from semkb.llm.retry import DEFAULT_RETRY_POLICY, RetryPolicy, with_retry
from semkb.rag.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)


class EmbeddingCacheStats(BaseModel):
    """Counters for embedding cache activity."""

    hits: int = 0
    misses: int = 0
    provider_calls: int = 0
    coalesced: int = 0
    failures: int = 0
    size: int = 0


class EmbeddingCache:
    """Deduplicating front for an embedding provider.

    Args:
        embedder: Embedding provider. None means no provider is configured
            and every ``generate`` fails permanently.
        ttl: Seconds a cached vector stays valid.
        max_size: Maximum number of cached vectors (LRU beyond that).
        max_chars: Input is truncated to this many characters.
        retry_policy: Retry/timeout policy for provider calls.
    """

    def __init__(
        self,
        embedder: BaseEmbedder | None,
        ttl: float = 3600.0,
        max_size: int = 10_000,
        max_chars: int = 8000,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        self._embedder = embedder
        self._max_chars = max_chars
        self._retry_policy = retry_policy or DEFAULT_RETRY_POLICY
        self._sleep = sleep
        self._store: LRUTTLStore[list[float]] = LRUTTLStore(
            max_size=max_size, default_ttl=ttl, clock=clock
        )
        self._in_flight: dict[str, asyncio.Task[list[float]]] = {}
        self._stats = EmbeddingCacheStats()

    @property
    def available(self) -> bool:
        return self._embedder is not None

    @property
    def model(self) -> str:
        return self._embedder.model_name if self._embedder else "none"

    @property
    def provider(self) -> str:
        return self._embedder.provider_name if self._embedder else "none"

    @property
    def dimensions(self) -> int:
        return self._embedder.dimensions if self._embedder else 0

    async def generate(self, text: str) -> list[float]:
        """Return the embedding of ``text``, calling the provider at most once per key.

        Raises:
            ValidationError: If ``text`` is empty.
            ProviderPermanentError: If no provider is configured, the
                provider fails permanently, or retries are exhausted.
        """
        if not text or not text.strip():
            raise ValidationError("Cannot embed empty text")
        if self._embedder is None:
            raise ProviderPermanentError("No embedding provider configured", "none")

        text = text[: self._max_chars]
        key = embedding_key(text, self._embedder.model_name)

        cached = self._store.get(key)
        if cached is not None:
            self._stats.hits += 1
            logger.debug("Embedding cache hit: %s", key[:24])
            return list(cached)

        pending = self._in_flight.get(key)
        if pending is not None:
            self._stats.coalesced += 1
            logger.debug("Joining in-flight embedding request: %s", key[:24])
            return list(await asyncio.shield(pending))

        self._stats.misses += 1
        task = start_in_flight(self._in_flight, key, self._fetch(key, text))
        return list(await asyncio.shield(task))

    async def _fetch(self, key: str, text: str) -> list[float]:
        try:
            vector = await self._call_provider(text)
        except Exception:
            self._stats.failures += 1
            raise
        else:
            self._store.set(key, vector)
            return vector
        finally:
            self._in_flight.pop(key, None)

    async def generate_entry(
        self, title: str, content: str, tags: list[str] | set[str] | None = None
    ) -> list[float]:
        """Embed a knowledge entry: title, content and tags combined."""
        return await self.generate(compose_entry_text(title, content, tags))

    async def _call_provider(self, text: str) -> list[float]:
        assert self._embedder is not None
        self._stats.provider_calls += 1
        vector = await with_retry(
            self._embedder.embed_query,
            text,
            provider=self._embedder.provider_name,
            operation="embed",
            policy=self._retry_policy,
            sleep=self._sleep,
        )
        vector = [float(x) for x in vector]
        expected = self._embedder.dimensions
        if expected and len(vector) != expected:
            raise ProviderPermanentError(
                f"Embedding dimension {len(vector)} does not match configured "
                f"{expected} for model {self._embedder.model_name}",
                self._embedder.provider_name,
            )
        return vector

    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def stats(self) -> EmbeddingCacheStats:
        return self._stats.model_copy(update={"size": len(self._store)})

    def clear(self) -> None:
        """Drop all cached vectors (in-flight calls still complete)."""
        self._store.clear()
        logger.info("Embedding cache cleared")


def compose_entry_text(
    title: str, content: str, tags: list[str] | set[str] | None = None
) -> str:
    """Text embedded for a knowledge entry."""
    tag_text = ", ".join(sorted(tags)) if tags else ""
    return f"{title}\n\n{content}\n\n{tag_text}"


def start_in_flight(
    registry: dict[str, asyncio.Task[Any]], key: str, work: Coroutine[Any, Any, Any]
) -> asyncio.Task[Any]:
    """Run ``work`` as a task registered under ``key``.

    Callers await the task through ``asyncio.shield``: cancelling one caller
    never cancels the shared work, so other waiters still get its result.
    ``work`` must remove ``key`` from ``registry`` when it finishes.
    """
    task = asyncio.get_running_loop().create_task(work)
    registry[key] = task
    task.add_done_callback(_consume_exception)
    return task


def _consume_exception(task: asyncio.Task[Any]) -> None:
    # Nobody may be left awaiting a task whose callers were all cancelled.
    if not task.cancelled():
        task.exception()
