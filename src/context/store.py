# src/context/store.py - v1
"""Append-only, versioned context documents.

Each update reads the current max version of a type and inserts ``max + 1``.
That read-then-insert runs under a per-type asyncio.Lock, so concurrent
updates of one type get versions 1..N with no duplicates or gaps. Rows are
never modified or deleted.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import datetime
from typing import Any

from semkb.core.errors import ValidationError
from semkb.core.models import DELETE, ContextDocument, ContextType, utcnow
from semkb.storage.base_store import BaseDocumentStore

logger = logging.getLogger(__name__)

COLLECTION = "context_documents"


def apply_patch(current: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Shallow merge of ``patch`` into ``current``; DELETE values remove keys."""
    merged = copy.deepcopy(current)
    for key, value in patch.items():
        if value == DELETE:
            merged.pop(key, None)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class VersionedContextStore:
    """Versioned key/value documents, one history per context type."""

    def __init__(self, store: BaseDocumentStore, collection: str = COLLECTION) -> None:
        self._store = store
        self._collection = collection
        self._locks: dict[str, asyncio.Lock] = {}

    async def get_latest(self, context_type: str | ContextType) -> dict[str, Any]:
        """Content of the highest version, or an empty dict."""
        latest = await self._latest(_type_name(context_type))
        return latest.content if latest else {}

    async def get_latest_document(self, context_type: str | ContextType) -> ContextDocument | None:
        return await self._latest(_type_name(context_type))

    async def update(
        self,
        context_type: str | ContextType,
        full: dict[str, Any] | None = None,
        patch: dict[str, Any] | None = None,
    ) -> ContextDocument:
        """Insert the next version from a full replacement or a patch.

        Raises:
            ValidationError: Unless exactly one of ``full`` or ``patch`` is a dict.
        """
        name = _type_name(context_type)
        if (full is None) == (patch is None):
            raise ValidationError("Exactly one of 'full' or 'patch' must be provided")
        given = full if full is not None else patch
        if not isinstance(given, dict):
            raise ValidationError("Context content must be a mapping")

        lock = self._locks.setdefault(name, asyncio.Lock())
        async with lock:
            latest = await self._latest(name)
            if full is not None:
                content = {k: v for k, v in copy.deepcopy(full).items() if v != DELETE}
            else:
                content = apply_patch(latest.content if latest else {}, patch)
            document = ContextDocument(
                type=name,
                version=(latest.version if latest else 0) + 1,
                content=content,
                timestamp=utcnow(),
            )
            await self._store.insert(self._collection, _to_document(document))

        logger.info("Context %s updated to version %d", name, document.version)
        return document

    async def get_history(
        self,
        context_type: str | ContextType,
        limit: int | None = None,
        before: datetime | None = None,
        after: datetime | None = None,
        version: int | None = None,
    ) -> list[ContextDocument]:
        """Matching versions in ascending order; ``limit`` keeps the most recent."""
        name = _type_name(context_type)
        if limit is not None and limit < 0:
            raise ValidationError(f"limit must be >= 0, got {limit}")
        rows = await self._documents(name)
        if version is not None:
            rows = [d for d in rows if d.version == version]
        if before is not None:
            rows = [d for d in rows if d.timestamp < before]
        if after is not None:
            rows = [d for d in rows if d.timestamp > after]
        if limit is not None:
            rows = rows[-limit:] if limit else []
        return rows

    # --- Internal helpers ---

    async def _documents(self, name: str) -> list[ContextDocument]:
        docs = await self._store.find(self._collection, {"type": name})
        return sorted(
            (ContextDocument.model_validate(d) for d in docs), key=lambda d: d.version
        )

    async def _latest(self, name: str) -> ContextDocument | None:
        docs = await self._documents(name)
        return docs[-1] if docs else None


def _type_name(context_type: str | ContextType) -> str:
    name = context_type.value if isinstance(context_type, ContextType) else context_type
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Context type must be a non-empty string")
    return name


def _to_document(document: ContextDocument) -> dict[str, Any]:
    doc = document.model_dump(mode="json")
    doc["id"] = f"{document.type}:{document.version}"
    return doc
