# src/storage/store_factory.py - v1
"""Factory for document store instantiation."""

from __future__ import annotations

from semkb.config.settings import Settings
from semkb.storage.base_store import BaseDocumentStore


def create_document_store(settings: Settings | None = None) -> BaseDocumentStore:
    """Instantiate the configured storage backend.

    Args:
        settings: Application settings. Defaults to the in-memory backend.
    """
    backend = "memory" if settings is None else settings.storage_backend

    if backend == "memory":
        from semkb.storage.memory_store import MemoryDocumentStore
        return MemoryDocumentStore()

    if backend == "sqlite":
        from semkb.storage.sqlite_store import SqliteDocumentStore
        if settings is None or settings.storage_path is None:
            raise ValueError("STORAGE_PATH must be set when STORAGE_BACKEND=sqlite")
        return SqliteDocumentStore(settings.storage_path)

    raise ValueError(f"Unsupported storage backend: {backend!r}")
