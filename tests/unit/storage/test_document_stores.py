# tests/unit/storage/test_document_stores.py - v2
"""Tests for document store backends and the store factory."""

from __future__ import annotations

import pytest

from semkb.config.settings import Settings
from semkb.core.errors import ValidationError
from semkb.storage.memory_store import MemoryDocumentStore
from semkb.storage.sqlite_store import SqliteDocumentStore
from semkb.storage.store_factory import create_document_store


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        backend = MemoryDocumentStore()
    else:
        backend = SqliteDocumentStore(tmp_path / "db" / "semkb.db")
    yield backend
    backend.close()


class TestDocumentStore:
    @pytest.mark.asyncio
    async def test_insert_and_get(self, store):
        await store.insert("c", {"id": "a", "n": 1, "tags": ["x"]})
        assert await store.get("c", "a") == {"id": "a", "n": 1, "tags": ["x"]}
        assert await store.get("c", "missing") is None
        assert await store.get("other", "a") is None

    @pytest.mark.asyncio
    async def test_duplicate_rejected(self, store):
        await store.insert("c", {"id": "a"})
        with pytest.raises(ValidationError, match="Duplicate"):
            await store.insert("c", {"id": "a"})
        await store.insert("d", {"id": "a"})

    @pytest.mark.asyncio
    async def test_find_where_in_insertion_order(self, store):
        for i, kind in enumerate(["x", "y", "x", "x"]):
            await store.insert("c", {"id": f"d{i}", "kind": kind})
        found = await store.find("c", {"kind": "x"})
        assert [d["id"] for d in found] == ["d0", "d2", "d3"]
        assert len(await store.find("c")) == 4

    @pytest.mark.asyncio
    async def test_update_merges(self, store):
        await store.insert("c", {"id": "a", "n": 1, "keep": True})
        assert await store.update("c", "a", {"n": 2}) is True
        assert await store.get("c", "a") == {"id": "a", "n": 2, "keep": True}
        assert await store.update("c", "missing", {"n": 3}) is False

    @pytest.mark.asyncio
    async def test_delete(self, store):
        await store.insert("c", {"id": "a"})
        assert await store.delete("c", "a") is True
        assert await store.delete("c", "a") is False
        assert await store.find("c") == []

    @pytest.mark.asyncio
    async def test_returned_documents_are_copies(self, store):
        await store.insert("c", {"id": "a", "tags": ["x"]})
        doc = await store.get("c", "a")
        doc["tags"].append("y")
        assert (await store.get("c", "a"))["tags"] == ["x"]


class TestSqlitePersistence:
    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path):
        path = tmp_path / "semkb.db"
        first = SqliteDocumentStore(path)
        await first.insert("c", {"id": "a", "v": 1})
        first.close()
        second = SqliteDocumentStore(path)
        assert await second.get("c", "a") == {"id": "a", "v": 1}
        second.close()

    @pytest.mark.asyncio
    async def test_in_memory_database(self):
        store = SqliteDocumentStore(":memory:")
        await store.insert("c", {"id": "a"})
        assert len(await store.find("c")) == 1
        store.close()


class TestStoreFactory:
    def test_default_memory(self):
        assert isinstance(create_document_store(), MemoryDocumentStore)

    def test_sqlite(self, tmp_path):
        s = Settings(_env_file=None, storage_backend="sqlite", storage_path=tmp_path / "k.db")
        store = create_document_store(s)
        assert isinstance(store, SqliteDocumentStore)
        store.close()
