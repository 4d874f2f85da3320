# src/api/facade.py - v2
"""Public API facade: single entry point for the knowledge engine.

Usage:
    from semkb.api.facade import KnowledgeService
    service = KnowledgeService.from_settings()
    entry_id = await service.store("The quick brown fox", "text", ["animals"])
    response = await service.search("quick fox")
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Iterable

from semkb.api.models import ServiceStats
from semkb.cache.embedding_cache import EmbeddingCache
from semkb.cache.models import CacheMetrics
from semkb.cache.prompt_cache import SemanticPromptCache
from semkb.cache.providers.base_provider_cache import BaseProviderCache
from semkb.cache.providers.models import CachedCompletion
from semkb.cache.providers.provider_cache_factory import create_provider_cache
from semkb.cache.warming import CacheAnalytics, WarmingCandidate, analyze_cache
from semkb.config.settings import Settings
from semkb.context.store import VersionedContextStore
from semkb.core.errors import ValidationError
from semkb.core.models import (
    ContentType,
    ContextDocument,
    ContextType,
    KnowledgeEntry,
    KnowledgeEntryPatch,
    SearchFilters,
    SearchResponse,
)
from semkb.knowledge.hybrid_search import HybridSearchEngine
from semkb.knowledge.repository import KnowledgeRepository
from semkb.knowledge.search_cache import SearchResultCache
from semkb.llm.base_client import BaseLLMClient
from semkb.llm.retry import RetryPolicy
from semkb.logging.context import set_operation_context, set_request_context
from semkb.logging.logger import setup_logging
from semkb.rag.embeddings.base_embedder import BaseEmbedder
from semkb.storage.base_store import BaseDocumentStore

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 80


class KnowledgeService:
    """Wires the caches, repository, search engine and context store together.

    Every collaborator is passed in explicitly; ``from_settings`` builds the
    default wiring from configuration.
    """

    def __init__(
        self,
        repository: KnowledgeRepository,
        search_engine: HybridSearchEngine,
        context_store: VersionedContextStore,
        prompt_cache: SemanticPromptCache,
        embedding_cache: EmbeddingCache,
        search_cache: SearchResultCache,
        settings: Settings | None = None,
        clients: dict[str, BaseLLMClient] | None = None,
    ) -> None:
        self.repository = repository
        self.search_engine = search_engine
        self.context_store = context_store
        self.prompt_cache = prompt_cache
        self.embedding_cache = embedding_cache
        self.search_cache = search_cache
        self._settings = settings
        self._clients = dict(clients or {})
        self._provider_caches: dict[str, BaseProviderCache] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        store: BaseDocumentStore | None = None,
        embedder: BaseEmbedder | None = None,
        clients: dict[str, BaseLLMClient] | None = None,
        configure_logging: bool = False,
    ) -> KnowledgeService:
        """Build a service from configuration.

        Args:
            settings: Global settings. Loaded from .env if None.
            store: Storage backend; created from settings when omitted.
            embedder: Embedding provider; created from settings when omitted
                and EMBEDDING_PROVIDER is not 'none'.
            clients: Completion clients by provider name; missing ones are
                created from settings on first use.
            configure_logging: Apply LOG_* settings to the semkb logger.
        """
        settings = settings or Settings()
        if configure_logging:
            setup_logging(
                level=settings.log_level,
                log_format=settings.log_format,
                log_file=str(settings.log_file) if settings.log_file else None,
                rotation=settings.log_rotation,
                retention=settings.log_retention,
            )
        if store is None:
            from semkb.storage.store_factory import create_document_store
            store = create_document_store(settings)
        if embedder is None and settings.embedding_provider != "none":
            from semkb.rag.embeddings.embedder_factory import create_embedder
            embedder = create_embedder(settings)

        retry_policy = RetryPolicy.from_settings(settings)
        embedding_cache = EmbeddingCache(
            embedder,
            ttl=settings.embedding_cache_ttl,
            max_size=settings.embedding_cache_max_size,
            max_chars=settings.embedding_max_chars,
            retry_policy=retry_policy,
        )
        prompt_cache = SemanticPromptCache(
            embedding_cache,
            ttl=settings.prompt_cache_ttl,
            max_size=settings.prompt_cache_max_size,
            semantic_threshold=settings.semantic_threshold,
            semantic_enabled=settings.prompt_cache_semantic_enabled,
            hit_target=settings.cache_hit_target,
        )
        search_cache = SearchResultCache(
            ttl=settings.search_cache_ttl, max_size=settings.search_cache_max_size
        )
        repository = KnowledgeRepository(store, embedding_cache, search_cache)
        engine = HybridSearchEngine(
            repository, embedding_cache, search_cache, default_k=settings.search_default_k
        )
        logger.info(
            "Knowledge service ready (storage=%s, embeddings=%s)",
            settings.storage_backend, embedding_cache.provider,
        )
        return cls(
            repository=repository,
            search_engine=engine,
            context_store=VersionedContextStore(store),
            prompt_cache=prompt_cache,
            embedding_cache=embedding_cache,
            search_cache=search_cache,
            settings=settings,
            clients=clients,
        )

    # === KNOWLEDGE ===

    async def store(
        self,
        content: str,
        content_type: ContentType | str = ContentType.TEXT,
        tags: Iterable[str] | None = None,
        title: str | None = None,
        category: str = "general",
        source_reference: str | None = None,
    ) -> str:
        """Store a knowledge item; the title defaults to its first line."""
        self._begin("store")
        if not content or not content.strip():
            raise ValidationError("Content must not be empty")
        try:
            entry = KnowledgeEntry(
                title=title or _default_title(content),
                content=content,
                content_type=ContentType(content_type),
                category=category,
                tags=set(tags or ()),
                source_reference=source_reference,
            )
        except ValueError as e:
            raise ValidationError(f"Invalid knowledge entry: {e}") from e
        return await self.repository.create(entry)

    async def search(
        self,
        query: str,
        k: int | None = None,
        filters: SearchFilters | dict[str, Any] | None = None,
    ) -> SearchResponse:
        self._begin("search")
        if isinstance(filters, dict):
            try:
                filters = SearchFilters.model_validate(filters)
            except ValueError as e:
                raise ValidationError(f"Invalid search filters: {e}") from e
        return await self.search_engine.search(query, k, filters)

    async def get_entry(self, entry_id: str) -> KnowledgeEntry:
        self._begin("get_entry")
        return await self.repository.get_by_id(entry_id)

    async def update_entry(
        self, entry_id: str, patch: KnowledgeEntryPatch | dict[str, Any]
    ) -> KnowledgeEntry:
        self._begin("update_entry")
        return await self.repository.update(entry_id, patch)

    async def delete_entry(self, entry_id: str) -> bool:
        self._begin("delete_entry")
        return await self.repository.delete(entry_id)

    # === CONTEXT ===

    async def get_context(self, context_type: ContextType | str) -> dict[str, Any]:
        self._begin("get_context")
        return await self.context_store.get_latest(context_type)

    async def update_context(
        self,
        context_type: ContextType | str,
        full: dict[str, Any] | None = None,
        patch: dict[str, Any] | None = None,
    ) -> ContextDocument:
        self._begin("update_context")
        return await self.context_store.update(context_type, full=full, patch=patch)

    async def context_history(
        self,
        context_type: ContextType | str,
        limit: int | None = None,
        before: datetime | None = None,
        after: datetime | None = None,
        version: int | None = None,
    ) -> list[ContextDocument]:
        self._begin("context_history")
        return await self.context_store.get_history(
            context_type, limit=limit, before=before, after=after, version=version
        )

    # === PROMPT CACHE ===

    async def execute_cached_prompt(
        self,
        provider: str,
        system_prompt: str,
        query: str,
        context: str = "",
        metadata: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> CachedCompletion:
        """Structure a prompt for ``provider`` and execute it through the prompt cache."""
        self._begin("execute_cached_prompt", provider)
        provider_cache = self.provider_cache(provider)
        structured = provider_cache.structure_request(system_prompt, context, query, metadata)
        return await provider_cache.execute(structured, options)

    async def warm_caches(
        self, provider: str, candidates: Iterable[WarmingCandidate] | None = None
    ) -> int:
        self._begin("warm_caches", provider)
        return await self.provider_cache(provider).warm_cache(candidates)

    def provider_cache(self, provider: str) -> BaseProviderCache:
        """Cache adapter for ``provider``, created on first use."""
        cache = self._provider_caches.get(provider)
        if cache is None:
            cache = create_provider_cache(
                provider,
                self.prompt_cache,
                client=self._clients.get(provider),
                settings=self._settings,
            )
            self._provider_caches[provider] = cache
        return cache

    def cache_metrics(self) -> CacheMetrics:
        return self.prompt_cache.metrics()

    def cache_report(self) -> str:
        return self.prompt_cache.report()

    def cache_analytics(self) -> CacheAnalytics:
        target = self._settings.cache_hit_target if self._settings else 0.80
        return analyze_cache(self.cache_metrics(), self.prompt_cache.entries(), target)

    def clear_caches(self) -> None:
        """Drop prompt, embedding and search caches and reset prompt metrics."""
        self.prompt_cache.clear()
        self.embedding_cache.clear()
        self.search_cache.invalidate()
        logger.info("All caches cleared")

    async def stats(self) -> ServiceStats:
        return ServiceStats(
            prompt_cache=self.cache_metrics(),
            providers=self.prompt_cache.all_provider_metrics(),
            embedding_cache=self.embedding_cache.stats(),
            knowledge=await self.repository.embedding_stats(),
            search_cache_size=len(self.search_cache),
            search_cache_hits=self.search_cache.hits,
            search_cache_misses=self.search_cache.misses,
        )

    def close(self) -> None:
        self.repository.close()

    # --- Internal helpers ---

    @staticmethod
    def _begin(operation: str, provider: str | None = None) -> None:
        set_request_context(uuid.uuid4().hex[:12])
        set_operation_context(operation, provider)


def _default_title(content: str) -> str:
    first_line = content.strip().splitlines()[0].strip()
    return first_line[:TITLE_MAX_CHARS]
