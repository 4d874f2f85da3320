# src/core/models.py - v3
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

# Patch value that removes a key from a context document.
DELETE = "__DELETE__"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


# === KNOWLEDGE ===


class ContentType(str, Enum):
    TEXT = "text"
    CODE = "code"
    DECISION = "decision"
    ANALYSIS = "analysis"
    SOLUTION = "solution"
    EVALUATION = "evaluation"
    INTEGRATION = "integration"


def _clean_tags(value: Any) -> set[str]:
    if value is None:
        return set()
    if isinstance(value, str):
        value = [value]
    tags = {str(t).strip() for t in value}
    return {t for t in tags if t}


class KnowledgeEntry(BaseModel):
    """A stored knowledge item.

    ``vector`` embeds title, content and tags together; ``content_vector``
    embeds the content alone. Both dimensions are fixed by the configured
    embedding model for the lifetime of a corpus; changing models requires
    re-embedding everything.
    """

    id: str = Field(default_factory=new_id)
    title: str
    content: str
    content_type: ContentType = ContentType.TEXT
    category: str = "general"
    tags: set[str] = Field(default_factory=set)
    vector: list[float] | None = None
    content_vector: list[float] | None = None
    embedding_model: str | None = None
    source_reference: str | None = None
    access_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_accessed_at: datetime | None = None

    @field_validator("title", "content")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, v: Any) -> set[str]:
        return _clean_tags(v)


class KnowledgeEntryPatch(BaseModel):
    """Partial update for a KnowledgeEntry; None means unchanged."""

    title: str | None = None
    content: str | None = None
    content_type: ContentType | None = None
    category: str | None = None
    tags: set[str] | None = None
    source_reference: str | None = None

    @field_validator("title", "content")
    @classmethod
    def _not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, v: Any) -> set[str] | None:
        return None if v is None else _clean_tags(v)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


# === SEARCH ===


class SearchFilters(BaseModel):
    """Restricts which corpus entries a search considers."""

    content_types: set[ContentType] | None = None
    categories: set[str] | None = None
    tags_any: set[str] | None = None
    tags_all: set[str] | None = None

    def matches(self, entry: KnowledgeEntry) -> bool:
        if self.content_types and entry.content_type not in self.content_types:
            return False
        if self.categories and entry.category not in self.categories:
            return False
        if self.tags_any and not (entry.tags & self.tags_any):
            return False
        if self.tags_all and not self.tags_all <= entry.tags:
            return False
        return True

    def cache_key(self) -> str:
        """Canonical JSON of the non-empty filters."""
        fields = {}
        for name in ("content_types", "categories", "tags_any", "tags_all"):
            values = getattr(self, name)
            if values:
                fields[name] = sorted(v.value if isinstance(v, Enum) else v for v in values)
        return json.dumps(fields, separators=(",", ":")) if fields else ""


class SearchResult(BaseModel):
    """A ranked hit; derived, never persisted."""

    item_id: str
    item_type: str = "knowledge"
    content_text: str
    title: str = ""
    score: float = Field(ge=0.0, le=1.0)
    source: Literal["vector", "text"] = "vector"
    metadata: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    timestamp: datetime


class SearchResponse(BaseModel):
    results: list[SearchResult] = Field(default_factory=list)
    degraded: bool = False


# === CONTEXT ===


class ContextType(str, Enum):
    PRODUCT = "product"
    ACTIVE = "active"


class ContextDocument(BaseModel):
    """One immutable version of a context document."""

    type: str
    version: int = Field(ge=1)
    content: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
