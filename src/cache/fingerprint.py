# src/cache/fingerprint.py - v2
"""Deterministic cache keys and token estimates.

Keys are SHA-256 digests over the inputs that make an entry unique, so the
same inputs always reproduce the same id.
"""

from __future__ import annotations

import hashlib
import json
import math
import re
from typing import Any


def prompt_cache_key(content: str, provider: str, model: str) -> str:
    """Key for a prompt cache entry: provider and model scope the content hash."""
    digest = hashlib.sha256(f"{provider}:{model}:{content}".encode("utf-8")).hexdigest()
    return f"{provider}_{model}_{digest}"


def embedding_key(text: str, model: str) -> str:
    """Key for a cached embedding, partitioned by embedding model."""
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return f"{model}:{digest}"


def content_hash(content: Any) -> str:
    """Stable hash of an arbitrary JSON-compatible value."""
    payload = json.dumps(content, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def estimate_tokens(text: str) -> int:
    """Rough token estimate: about four characters per token."""
    return math.ceil(len(text) / 4)


def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    text = text.lower()
    text = re.sub(r"[^\w\s]", " ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text


def tokenize(text: str) -> list[str]:
    """Split normalized text into word tokens."""
    normalized = normalize_text(text)
    return normalized.split() if normalized else []
