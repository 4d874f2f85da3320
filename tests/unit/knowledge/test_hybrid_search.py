# tests/unit/knowledge/test_hybrid_search.py - v3
"""Tests for knowledge/hybrid_search.py - vector + keyword search."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from semkb.core.errors import ValidationError, VectorSearchUnavailable
from semkb.core.models import ContentType, KnowledgeEntry, SearchFilters, SearchResult
from semkb.knowledge.hybrid_search import merge_results


def _result(item_id: str, score: float, source: str = "vector") -> SearchResult:
    return SearchResult(
        item_id=item_id,
        content_text=item_id,
        score=score,
        source=source,
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


async def _seed(repository) -> dict[str, str]:
    ids = {}
    for title, content, category, ctype in [
        ("Docker deploy", "deploy containers with docker compose", "ops", ContentType.SOLUTION),
        ("Pytest fixtures", "share setup with pytest fixtures", "dev", ContentType.TEXT),
        ("Cache design", "semantic prompt cache with embeddings", "dev", ContentType.DECISION),
    ]:
        ids[title] = await repository.create(
            KnowledgeEntry(title=title, content=content, category=category, content_type=ctype)
        )
    return ids


class TestSearch:
    @pytest.mark.asyncio
    async def test_round_trip(self, repository, search_engine):
        entry_id = await repository.create(
            KnowledgeEntry(title="The quick brown fox", content="The quick brown fox")
        )
        response = await search_engine.search("quick fox", k=5)
        assert response.degraded is False
        top = response.results[0]
        assert top.item_id == entry_id
        assert top.source == "vector"
        assert top.score > 0.7

    @pytest.mark.asyncio
    async def test_self_similarity(self, repository, search_engine):
        entry_id = await repository.create(
            KnowledgeEntry(
                title="Docker deploy",
                content="deploy containers with docker compose",
                tags={"ops", "infra"},
            )
        )
        results = await search_engine.vector_search("deploy containers with docker compose", k=1)
        assert results[0].item_id == entry_id
        assert results[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_vector_failure_degrades(self, repository, search_engine, embedder):
        ids = await _seed(repository)
        embedder.fail_with = ValueError("invalid api key")
        response = await search_engine.search("docker", k=5)
        assert response.degraded is True
        assert [r.item_id for r in response.results] == [ids["Docker deploy"]]
        assert all(r.source == "text" for r in response.results)

    @pytest.mark.asyncio
    async def test_degraded_response_not_cached(self, repository, search_engine, embedder):
        entry_id = await repository.create(
            KnowledgeEntry(title="Fox", content="the quick brown fox jumps over the lazy dog")
        )
        embedder.fail_with = ConnectionError("connection reset")
        response = await search_engine.search("lazy dog fox")
        assert response.degraded is True

        embedder.fail_with = None
        recovered = await search_engine.search("lazy dog fox")
        assert recovered.degraded is False
        assert recovered.results[0].item_id == entry_id
        assert recovered.results[0].source == "vector"

    @pytest.mark.asyncio
    async def test_both_paths_fail(self, repository, search_engine, embedder, monkeypatch):
        await _seed(repository)
        embedder.fail_with = ValueError("invalid api key")

        async def broken(*args, **kwargs):
            raise RuntimeError("index corrupted")

        monkeypatch.setattr(search_engine, "text_search", broken)
        with pytest.raises(RuntimeError, match="index corrupted"):
            await search_engine.search("docker")

    @pytest.mark.asyncio
    async def test_text_failure_returns_vector_results(self, repository, search_engine, monkeypatch):
        await _seed(repository)

        async def broken(*args, **kwargs):
            raise RuntimeError("bm25 unavailable")

        monkeypatch.setattr(search_engine, "text_search", broken)
        response = await search_engine.search("docker", k=2)
        assert response.degraded is False
        assert len(response.results) == 2
        assert all(r.source == "vector" for r in response.results)

    @pytest.mark.asyncio
    async def test_filters(self, repository, search_engine):
        ids = await _seed(repository)
        response = await search_engine.search(
            "pytest cache", k=5, filters=SearchFilters(categories={"dev"})
        )
        assert {r.item_id for r in response.results} == {ids["Pytest fixtures"], ids["Cache design"]}

        decisions = await search_engine.search(
            "cache", filters=SearchFilters(content_types={ContentType.DECISION})
        )
        assert [r.item_id for r in decisions.results] == [ids["Cache design"]]

    @pytest.mark.asyncio
    async def test_filter_excluding_everything(self, repository, search_engine):
        await _seed(repository)
        response = await search_engine.search("docker", filters=SearchFilters(tags_all={"none"}))
        assert response.results == []
        assert response.degraded is False

    @pytest.mark.asyncio
    async def test_results_cached_until_mutation(self, repository, search_engine, search_cache):
        await _seed(repository)
        first = await search_engine.search("docker", k=2)
        hits = search_cache.hits
        second = await search_engine.search("docker", k=2)
        assert search_cache.hits == hits + 1
        assert second == first

        new_id = await repository.create(
            KnowledgeEntry(title="Docker tips", content="docker docker docker")
        )
        third = await search_engine.search("docker", k=5)
        assert new_id in {r.item_id for r in third.results}

    @pytest.mark.asyncio
    async def test_rejects_bad_input(self, search_engine):
        with pytest.raises(ValidationError):
            await search_engine.search("   ")
        with pytest.raises(ValidationError):
            await search_engine.search("docker", k=0)


class TestVectorSearch:
    @pytest.mark.asyncio
    async def test_empty_corpus_unavailable(self, search_engine):
        with pytest.raises(VectorSearchUnavailable):
            await search_engine.vector_search("anything")

    @pytest.mark.asyncio
    async def test_empty_corpus_search_degrades(self, search_engine):
        response = await search_engine.search("anything")
        assert response.degraded is True
        assert response.results == []

    @pytest.mark.asyncio
    async def test_scores_within_unit_interval(self, repository, search_engine):
        await _seed(repository)
        results = await search_engine.vector_search("docker compose", k=3)
        assert len(results) == 3
        assert all(0.0 <= r.score <= 1.0 for r in results)
        assert results[0].title == "Docker deploy"
        assert [r.score for r in results] == sorted((r.score for r in results), reverse=True)


class TestMergeResults:
    def test_vector_first_and_deduplicated(self):
        vector = [_result("a", 0.9), _result("b", 0.4)]
        text = [_result("c", 1.0, "text"), _result("a", 0.8, "text")]
        merged = merge_results(vector, text, k=5)
        assert [r.item_id for r in merged] == ["a", "b", "c"]
        assert merged[0].source == "vector"
        assert merged[0].score == 0.9

    def test_truncates(self):
        merged = merge_results([_result("a", 0.9)], [_result("b", 1.0, "text")], k=1)
        assert [r.item_id for r in merged] == ["a"]
