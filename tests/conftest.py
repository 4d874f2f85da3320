# tests/conftest.py - v2
"""Shared test fixtures for all unit tests.

Provides a deterministic bag-of-words embedder, a recording completion
client, a fake clock and wired-up caches. No external dependencies: all
provider I/O is faked.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from semkb.cache.embedding_cache import EmbeddingCache
from semkb.cache.fingerprint import tokenize
from semkb.cache.prompt_cache import SemanticPromptCache
from semkb.config.settings import Settings
from semkb.knowledge.hybrid_search import HybridSearchEngine
from semkb.knowledge.repository import KnowledgeRepository
from semkb.knowledge.search_cache import SearchResultCache
from semkb.llm.base_client import BaseLLMClient
from semkb.llm.models import LLMResponse, Message
from semkb.llm.retry import RetryPolicy
from semkb.rag.embeddings.base_embedder import BaseEmbedder
from semkb.storage.memory_store import MemoryDocumentStore

FAST_RETRY = RetryPolicy(max_attempts=3, base_delay_s=0.0, max_delay_s=0.0, timeout_s=1.0, jitter=False)


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BagOfWordsEmbedder(BaseEmbedder):
    """Deterministic embedder: one dimension per distinct word, term counts as values.

    Words get dimensions in first-seen order, so different words never
    collide while the vocabulary fits ``dimensions``.
    """

    def __init__(self, dimensions: int = 128, model: str = "bow-test") -> None:
        self._dimensions = dimensions
        self._model = model
        self._vocab: dict[str, int] = {}
        self.calls: list[str] = []
        self.fail_with: Exception | None = None
        self.delay_ticks = 0

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_query(t) for t in texts]

    async def embed_query(self, query: str) -> list[float]:
        self.calls.append(query)
        for _ in range(self.delay_ticks):
            await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        vector = [0.0] * self._dimensions
        for token in tokenize(query):
            index = self._vocab.setdefault(token, len(self._vocab)) % self._dimensions
            vector[index] += 1.0
        return vector

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "fake"

    @property
    def model_name(self) -> str:
        return self._model


class RecordingLLMClient(BaseLLMClient):
    """Completion client that records calls and answers with a counter."""

    def __init__(self, provider: str = "openai", model: str = "test-model") -> None:
        self._provider = provider
        self._model = model
        self.calls: list[list[Message]] = []
        self.fail_with: Exception | None = None
        self.delay_ticks = 0

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        options: dict[str, Any] | None = None,
    ) -> LLMResponse:
        self.calls.append(list(messages))
        for _ in range(self.delay_ticks):
            await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        return LLMResponse(
            content=f"response #{len(self.calls)}",
            input_tokens=10,
            output_tokens=5,
            model=self._model,
            provider=self._provider,
        )

    @property
    def provider_name(self) -> str:
        return self._provider

    @property
    def model_name(self) -> str:
        return self._model


async def _no_sleep(_: float) -> None:
    return None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def embedder() -> BagOfWordsEmbedder:
    return BagOfWordsEmbedder()


@pytest.fixture
def embedding_cache(embedder: BagOfWordsEmbedder, clock: FakeClock) -> EmbeddingCache:
    return EmbeddingCache(embedder, retry_policy=FAST_RETRY, clock=clock, sleep=_no_sleep)


@pytest.fixture
def prompt_cache(embedding_cache: EmbeddingCache, clock: FakeClock) -> SemanticPromptCache:
    return SemanticPromptCache(embedding_cache, clock=clock)


@pytest.fixture
def llm_client() -> RecordingLLMClient:
    return RecordingLLMClient()


@pytest.fixture
def make_llm_client():
    return RecordingLLMClient


@pytest.fixture
def fast_retry() -> RetryPolicy:
    return FAST_RETRY


@pytest.fixture
def no_sleep():
    return _no_sleep


@pytest.fixture
def memory_store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def search_cache(clock: FakeClock) -> SearchResultCache:
    return SearchResultCache(clock=clock)


@pytest.fixture
def repository(
    memory_store: MemoryDocumentStore,
    embedding_cache: EmbeddingCache,
    search_cache: SearchResultCache,
) -> KnowledgeRepository:
    return KnowledgeRepository(memory_store, embedding_cache, search_cache)


@pytest.fixture
def search_engine(
    repository: KnowledgeRepository,
    embedding_cache: EmbeddingCache,
    search_cache: SearchResultCache,
) -> HybridSearchEngine:
    return HybridSearchEngine(repository, embedding_cache, search_cache)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        embedding_provider="openai",
        openai_api_key="sk-test",
        storage_backend="memory",
    )
