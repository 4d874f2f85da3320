# src/storage/memory_store.py - v1
"""In-memory document store (STORAGE_BACKEND=memory)."""

from __future__ import annotations

import copy
from typing import Any

from semkb.core.errors import ValidationError
from semkb.storage.base_store import BaseDocumentStore, Document, matches


class MemoryDocumentStore(BaseDocumentStore):
    """Dict-backed store. Documents are deep-copied in and out."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Document]] = {}

    async def insert(self, collection: str, document: Document) -> None:
        docs = self._collections.setdefault(collection, {})
        doc_id = document["id"]
        if doc_id in docs:
            raise ValidationError(f"Duplicate id {doc_id!r} in {collection}")
        docs[doc_id] = copy.deepcopy(document)

    async def find(
        self, collection: str, where: dict[str, Any] | None = None
    ) -> list[Document]:
        docs = self._collections.get(collection, {})
        if where and set(where) == {"id"}:
            doc = docs.get(where["id"])
            return [copy.deepcopy(doc)] if doc is not None else []
        return [copy.deepcopy(d) for d in docs.values() if matches(d, where)]

    async def update(self, collection: str, doc_id: str, changes: Document) -> bool:
        doc = self._collections.get(collection, {}).get(doc_id)
        if doc is None:
            return False
        doc.update(copy.deepcopy(changes))
        return True

    async def delete(self, collection: str, doc_id: str) -> bool:
        return self._collections.get(collection, {}).pop(doc_id, None) is not None
