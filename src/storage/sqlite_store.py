# src/storage/sqlite_store.py - v1
"""SQLite-based document store (STORAGE_BACKEND=sqlite).

Uses stdlib sqlite3. Documents are stored as JSON text; filtering on
anything other than the id happens after loading the collection.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from semkb.core.errors import ValidationError
from semkb.storage.base_store import BaseDocumentStore, Document, matches

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    data TEXT NOT NULL,
    UNIQUE (collection, id)
);
CREATE INDEX IF NOT EXISTS idx_collection ON documents(collection);
"""


class SqliteDocumentStore(BaseDocumentStore):
    """SQLite-backed document store."""

    def __init__(self, db_path: Path | str) -> None:
        db_path = str(db_path)
        if db_path != ":memory:":
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            db_path = str(path)
        self._conn = sqlite3.connect(db_path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def insert(self, collection: str, document: Document) -> None:
        try:
            self._conn.execute(
                "INSERT INTO documents (collection, id, data) VALUES (?, ?, ?)",
                (collection, document["id"], json.dumps(document)),
            )
        except sqlite3.IntegrityError as e:
            raise ValidationError(
                f"Duplicate id {document['id']!r} in {collection}"
            ) from e
        self._conn.commit()

    async def find(
        self, collection: str, where: dict[str, Any] | None = None
    ) -> list[Document]:
        if where and "id" in where:
            cursor = self._conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND id = ?",
                (collection, where["id"]),
            )
        else:
            cursor = self._conn.execute(
                "SELECT data FROM documents WHERE collection = ? ORDER BY seq",
                (collection,),
            )
        docs = (json.loads(row[0]) for row in cursor.fetchall())
        return [d for d in docs if matches(d, where)]

    async def update(self, collection: str, doc_id: str, changes: Document) -> bool:
        current = await self.get(collection, doc_id)
        if current is None:
            return False
        current.update(changes)
        self._conn.execute(
            "UPDATE documents SET data = ? WHERE collection = ? AND id = ?",
            (json.dumps(current), collection, doc_id),
        )
        self._conn.commit()
        return True

    async def delete(self, collection: str, doc_id: str) -> bool:
        cursor = self._conn.execute(
            "DELETE FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
