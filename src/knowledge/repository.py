# src/knowledge/repository.py - v2
"""Knowledge entry persistence with synchronous embedding.

Creating an entry embeds it first (a composite title, content and tags
vector plus a content-only vector); if the embedding cannot be produced the
create fails and nothing is stored, so every stored entry is searchable by
vector. Every mutation flushes the search result cache.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from semkb.cache.embedding_cache import EmbeddingCache
from semkb.core.errors import NotFoundError, ValidationError
from semkb.core.models import KnowledgeEntry, KnowledgeEntryPatch, utcnow
from semkb.knowledge.search_cache import SearchResultCache
from semkb.storage.base_store import BaseDocumentStore

logger = logging.getLogger(__name__)

COLLECTION = "knowledge_entries"
_REEMBED_FIELDS = frozenset({"title", "content", "tags"})


class EmbeddingStats(BaseModel):
    """Vector coverage of the knowledge corpus."""

    total_entries: int = 0
    entries_with_vectors: int = 0
    coverage_percentage: float = 0.0
    embedding_model: str = "none"
    dimensions: int = 0
    latest_update: datetime | None = None


class KnowledgeRepository:
    """Owns knowledge entries and their vectors.

    Args:
        store: Document storage backend.
        embedding_cache: Embedding source for entry vectors.
        search_cache: Search result cache flushed on every mutation.
    """

    def __init__(
        self,
        store: BaseDocumentStore,
        embedding_cache: EmbeddingCache,
        search_cache: SearchResultCache | None = None,
        collection: str = COLLECTION,
    ) -> None:
        self._store = store
        self._embeddings = embedding_cache
        self._search_cache = search_cache
        self._collection = collection

    async def create(self, entry: KnowledgeEntry) -> str:
        """Embed and persist ``entry``; returns its id.

        Raises:
            ProviderPermanentError: If the embedding cannot be produced.
            ValidationError: If an entry with the same id exists.
        """
        vector, content_vector = await self._embed(entry)
        now = utcnow()
        stored = entry.model_copy(
            update={
                "vector": vector,
                "content_vector": content_vector,
                "embedding_model": self._embeddings.model,
                "created_at": now,
                "updated_at": now,
                "access_count": 0,
                "last_accessed_at": None,
            }
        )
        await self._store.insert(self._collection, _to_document(stored))
        self._invalidate()
        logger.info(
            "Stored knowledge entry %s (%s, %d tags)",
            stored.id, stored.content_type.value, len(stored.tags),
        )
        return stored.id

    async def get_by_id(self, entry_id: str) -> KnowledgeEntry:
        """Fetch an entry and record the access.

        Raises:
            NotFoundError: If no entry has this id.
        """
        entry = await self._load(entry_id)
        now = utcnow()
        entry.access_count += 1
        entry.last_accessed_at = now
        await self._store.update(
            self._collection,
            entry_id,
            {"access_count": entry.access_count, "last_accessed_at": now.isoformat()},
        )
        return entry

    async def update(self, entry_id: str, patch: KnowledgeEntryPatch | dict[str, Any]) -> KnowledgeEntry:
        """Apply ``patch``, re-embedding when title, content or tags change.

        Raises:
            ValidationError: If the patch is invalid.
            NotFoundError: If no entry has this id.
        """
        if isinstance(patch, dict):
            try:
                patch = KnowledgeEntryPatch.model_validate(patch)
            except ValueError as e:
                raise ValidationError(f"Invalid knowledge entry patch: {e}") from e
        changes = patch.changes()
        current = await self._load(entry_id)
        if not changes:
            return current

        try:
            updated = KnowledgeEntry.model_validate(
                {**current.model_dump(), **changes, "updated_at": utcnow()}
            )
        except ValueError as e:
            raise ValidationError(f"Invalid knowledge entry update: {e}") from e

        changed = {
            name for name in changes if getattr(current, name) != getattr(updated, name)
        }
        if changed & _REEMBED_FIELDS:
            updated.vector, updated.content_vector = await self._embed(updated)
            updated.embedding_model = self._embeddings.model
            logger.debug("Re-embedded entry %s after %s change", entry_id, sorted(changed))

        await self._store.update(self._collection, entry_id, _to_document(updated))
        self._invalidate()
        logger.info("Updated knowledge entry %s", entry_id)
        return updated

    async def delete(self, entry_id: str) -> bool:
        deleted = await self._store.delete(self._collection, entry_id)
        if deleted:
            self._invalidate()
            logger.info("Deleted knowledge entry %s", entry_id)
        return deleted

    async def list_by_category(self, category: str, limit: int = 10) -> list[KnowledgeEntry]:
        entries = await self._find({"category": category})
        return _newest_first(entries)[:limit]

    async def list_by_tag(self, tag: str, limit: int = 10) -> list[KnowledgeEntry]:
        entries = [e for e in await self._find() if tag in e.tags]
        return _newest_first(entries)[:limit]

    async def most_accessed(self, limit: int = 10) -> list[KnowledgeEntry]:
        entries = _newest_first(await self._find())
        # Stable sort keeps newest first among equal counts.
        return sorted(entries, key=lambda e: e.access_count, reverse=True)[:limit]

    async def all_entries(self) -> list[KnowledgeEntry]:
        """Snapshot of the corpus, without access side effects."""
        return await self._find()

    async def embedding_stats(self) -> EmbeddingStats:
        entries = await self._find()
        with_vectors = [e for e in entries if e.vector]
        total = len(entries)
        return EmbeddingStats(
            total_entries=total,
            entries_with_vectors=len(with_vectors),
            coverage_percentage=round(100 * len(with_vectors) / total, 2) if total else 0.0,
            embedding_model=self._embeddings.model,
            dimensions=len(with_vectors[0].vector) if with_vectors else self._embeddings.dimensions,
            latest_update=max((e.updated_at for e in entries), default=None),
        )

    def close(self) -> None:
        self._store.close()

    # --- Internal helpers ---

    async def _load(self, entry_id: str) -> KnowledgeEntry:
        doc = await self._store.get(self._collection, entry_id)
        if doc is None:
            raise NotFoundError("knowledge entry", entry_id)
        return KnowledgeEntry.model_validate(doc)

    async def _find(self, where: dict[str, Any] | None = None) -> list[KnowledgeEntry]:
        docs = await self._store.find(self._collection, where)
        return [KnowledgeEntry.model_validate(d) for d in docs]

    async def _embed(self, entry: KnowledgeEntry) -> tuple[list[float], list[float]]:
        """Composite (title, content, tags) vector and content-only vector."""
        composite, content = await asyncio.gather(
            self._embeddings.generate_entry(entry.title, entry.content, entry.tags),
            self._embeddings.generate(entry.content),
        )
        return composite, content

    def _invalidate(self) -> None:
        if self._search_cache is not None:
            self._search_cache.invalidate()


def _to_document(entry: KnowledgeEntry) -> dict[str, Any]:
    doc = entry.model_dump(mode="json")
    doc["tags"] = sorted(entry.tags)
    return doc


def _newest_first(entries: list[KnowledgeEntry]) -> list[KnowledgeEntry]:
    return sorted(entries, key=lambda e: e.updated_at, reverse=True)
