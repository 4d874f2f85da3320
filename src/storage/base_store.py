# src/storage/base_store.py - v1
"""Abstract document store interface.

Documents are JSON-compatible dicts identified by their ``id`` field and
grouped in named collections.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Document = dict[str, Any]


class BaseDocumentStore(ABC):
    """Unified interface for storage backends."""

    @abstractmethod
    async def insert(self, collection: str, document: Document) -> None:
        """Insert a new document. Raises ValidationError if the id exists."""

    @abstractmethod
    async def find(
        self, collection: str, where: dict[str, Any] | None = None
    ) -> list[Document]:
        """Documents whose top-level fields equal every ``where`` item, in insertion order."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, changes: Document) -> bool:
        """Merge ``changes`` into a document. False if it does not exist."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Remove a document. False if it does not exist."""

    async def get(self, collection: str, doc_id: str) -> Document | None:
        found = await self.find(collection, {"id": doc_id})
        return found[0] if found else None

    def close(self) -> None:
        """Release backend resources."""


def matches(document: Document, where: dict[str, Any] | None) -> bool:
    if not where:
        return True
    return all(document.get(k) == v for k, v in where.items())
