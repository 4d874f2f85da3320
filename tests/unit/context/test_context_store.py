# tests/unit/context/test_context_store.py - v2
"""Tests for context/store.py - append-only versioned documents."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from semkb.core.errors import ValidationError
from semkb.core.models import DELETE, ContextType
from semkb.context.store import VersionedContextStore, apply_patch


@pytest.fixture
def context_store(memory_store) -> VersionedContextStore:
    return VersionedContextStore(memory_store)


class TestApplyPatch:
    def test_merge_and_delete(self):
        current = {"a": 1, "b": {"x": 1}, "c": 3}
        merged = apply_patch(current, {"b": {"y": 2}, "c": DELETE, "d": 4})
        assert merged == {"a": 1, "b": {"y": 2}, "d": 4}
        assert current == {"a": 1, "b": {"x": 1}, "c": 3}

    def test_delete_missing_key(self):
        assert apply_patch({"a": 1}, {"z": DELETE}) == {"a": 1}


class TestUpdate:
    @pytest.mark.asyncio
    async def test_empty_type_has_no_content(self, context_store):
        assert await context_store.get_latest(ContextType.PRODUCT) == {}
        assert await context_store.get_latest_document("product") is None

    @pytest.mark.asyncio
    async def test_full_then_patch(self, context_store):
        first = await context_store.update(ContextType.PRODUCT, full={"name": "semkb", "stage": "alpha"})
        second = await context_store.update("product", patch={"stage": "beta", "owner": "platform"})
        third = await context_store.update("product", patch={"owner": DELETE})
        assert [first.version, second.version, third.version] == [1, 2, 3]
        assert await context_store.get_latest("product") == {"name": "semkb", "stage": "beta"}

    @pytest.mark.asyncio
    async def test_full_replacement_drops_old_keys(self, context_store):
        await context_store.update("active", full={"task": "a", "branch": "main"})
        await context_store.update("active", full={"task": "b", "note": DELETE})
        assert await context_store.get_latest("active") == {"task": "b"}

    @pytest.mark.asyncio
    async def test_types_are_independent(self, context_store):
        await context_store.update("product", full={"a": 1})
        doc = await context_store.update("active", full={"b": 2})
        assert doc.version == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs",
        [{}, {"full": {"a": 1}, "patch": {"b": 2}}, {"full": ["not", "a", "dict"]}],
    )
    async def test_invalid_arguments(self, context_store, kwargs):
        with pytest.raises(ValidationError):
            await context_store.update("product", **kwargs)

    @pytest.mark.asyncio
    async def test_blank_type(self, context_store):
        with pytest.raises(ValidationError):
            await context_store.update("  ", full={})

    @pytest.mark.asyncio
    async def test_concurrent_updates_get_consecutive_versions(self, context_store):
        docs = await asyncio.gather(
            *(context_store.update("active", patch={f"k{i}": i}) for i in range(20))
        )
        assert sorted(d.version for d in docs) == list(range(1, 21))
        latest = await context_store.get_latest("active")
        assert latest == {f"k{i}": i for i in range(20)}


class TestHistory:
    @pytest.mark.asyncio
    async def test_ascending_with_limit(self, context_store):
        for i in range(5):
            await context_store.update("product", full={"n": i})
        history = await context_store.get_history("product")
        assert [d.version for d in history] == [1, 2, 3, 4, 5]
        assert [d.version for d in await context_store.get_history("product", limit=2)] == [4, 5]
        assert await context_store.get_history("product", limit=0) == []

    @pytest.mark.asyncio
    async def test_version_and_time_filters(self, context_store):
        for i in range(3):
            await context_store.update("product", full={"n": i})
        (doc,) = await context_store.get_history("product", version=2)
        assert doc.content == {"n": 1}
        future = datetime.now(timezone.utc) + timedelta(days=1)
        assert len(await context_store.get_history("product", before=future)) == 3
        assert await context_store.get_history("product", after=future) == []

    @pytest.mark.asyncio
    async def test_negative_limit(self, context_store):
        with pytest.raises(ValidationError):
            await context_store.get_history("product", limit=-1)

    @pytest.mark.asyncio
    async def test_history_is_immutable(self, context_store, memory_store):
        await context_store.update("product", full={"a": 1})
        await context_store.update("product", patch={"a": 2})
        rows = await memory_store.find("context_documents", {"type": "product"})
        assert [r["id"] for r in rows] == ["product:1", "product:2"]
        assert rows[0]["content"] == {"a": 1}
