# tests/unit/api/test_facade.py - v2
"""Tests for api/facade.py - KnowledgeService wiring and operations."""

from __future__ import annotations

import pytest

from semkb.core.errors import NotFoundError, ValidationError
from semkb.core.models import ContentType, ContextType
from semkb.logging.context import clear_context, get_context
from semkb.storage.memory_store import MemoryDocumentStore
from semkb.api.facade import KnowledgeService


@pytest.fixture
def openai_client(make_llm_client):
    return make_llm_client(provider="openai", model="gpt-test")


@pytest.fixture
def service(settings, embedder, openai_client):
    svc = KnowledgeService.from_settings(
        settings,
        store=MemoryDocumentStore(),
        embedder=embedder,
        clients={"openai": openai_client},
    )
    yield svc
    svc.close()
    clear_context()


class TestKnowledgeOperations:
    @pytest.mark.asyncio
    async def test_store_and_search(self, service):
        entry_id = await service.store(
            "The quick brown fox\njumps over the lazy dog", "text", tags=["animals"]
        )
        entry = await service.get_entry(entry_id)
        assert entry.title == "The quick brown fox"
        assert entry.tags == {"animals"}
        response = await service.search("quick fox")
        assert response.results[0].item_id == entry_id
        assert response.degraded is False

    @pytest.mark.asyncio
    async def test_default_title_truncated(self, service):
        entry_id = await service.store("x" * 200)
        assert len((await service.get_entry(entry_id)).title) == 80

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs", [{"content": "   "}, {"content": "ok", "content_type": "poetry"}]
    )
    async def test_store_rejects_invalid(self, service, kwargs):
        with pytest.raises(ValidationError):
            await service.store(**kwargs)

    @pytest.mark.asyncio
    async def test_search_with_dict_filters(self, service):
        await service.store("docker compose deploy", ContentType.SOLUTION, category="ops")
        decision_id = await service.store("docker is our runtime", ContentType.DECISION)
        response = await service.search("docker", filters={"content_types": ["decision"]})
        assert [r.item_id for r in response.results] == [decision_id]
        with pytest.raises(ValidationError):
            await service.search("docker", filters={"content_types": ["poetry"]})

    @pytest.mark.asyncio
    async def test_update_and_delete(self, service):
        entry_id = await service.store("original content")
        updated = await service.update_entry(entry_id, {"category": "notes"})
        assert updated.category == "notes"
        assert await service.delete_entry(entry_id) is True
        with pytest.raises(NotFoundError):
            await service.get_entry(entry_id)

    @pytest.mark.asyncio
    async def test_sets_log_context(self, service):
        await service.store("content for context")
        ctx = get_context()
        assert ctx.operation == "store"
        assert ctx.request_id


class TestContextOperations:
    @pytest.mark.asyncio
    async def test_round_trip(self, service):
        await service.update_context(ContextType.ACTIVE, full={"task": "index"})
        await service.update_context("active", patch={"branch": "main"})
        assert await service.get_context("active") == {"task": "index", "branch": "main"}
        history = await service.context_history("active", limit=1)
        assert [d.version for d in history] == [2]


class TestCachedPrompts:
    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, service, openai_client):
        first = await service.execute_cached_prompt(
            "openai", "You are terse.", "How do I deploy?", context="We use docker."
        )
        second = await service.execute_cached_prompt(
            "openai", "You are terse.", "How do I deploy?", context="We use docker."
        )
        assert first.cached is False
        assert second.cached is True
        assert second.hit_level == "exact"
        assert second.response.content == first.response.content
        assert len(openai_client.calls) == 1
        assert service.cache_metrics().exact_hits == 1

    @pytest.mark.asyncio
    async def test_provider_cache_reused(self, service):
        assert service.provider_cache("openai") is service.provider_cache("openai")

    @pytest.mark.asyncio
    async def test_warm_and_analytics(self, service):
        warmed = await service.warm_caches("openai")
        assert warmed == 6
        assert len(service.prompt_cache) == 6
        await service.execute_cached_prompt("openai", "sys", "unrelated question")
        analytics = service.cache_analytics()
        assert "below the 80% target" in analytics.recommendations[0]
        assert analytics.provider_efficiency["openai"].hit_rate == 0.0
        assert "Prompt Cache Report" in service.cache_report()

    @pytest.mark.asyncio
    async def test_clear_caches(self, service):
        await service.store("cached entry text")
        await service.search("cached")
        await service.execute_cached_prompt("openai", "sys", "question")
        service.clear_caches()
        assert len(service.prompt_cache) == 0
        assert len(service.search_cache) == 0
        assert service.embedding_cache.stats().size == 0
        assert service.cache_metrics().total_requests == 0


class TestStats:
    @pytest.mark.asyncio
    async def test_stats(self, service):
        await service.store("first entry")
        await service.search("first")
        await service.execute_cached_prompt("openai", "sys", "question")
        stats = await service.stats()
        assert stats.knowledge.total_entries == 1
        assert stats.knowledge.coverage_percentage == 100.0
        assert stats.prompt_cache.total_requests == 1
        assert "openai" in stats.providers
        assert stats.search_cache_size >= 1
        assert stats.embedding_cache.misses >= 1
