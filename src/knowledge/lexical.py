# src/knowledge/lexical.py - v1
"""Keyword ranking over knowledge entries with BM25.

Scores are normalized to 0..1 by the best score of the query, and entries
that share no token with the query are dropped.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from semkb.cache.fingerprint import tokenize
from semkb.core.models import KnowledgeEntry

logger = logging.getLogger(__name__)


def entry_tokens(entry: KnowledgeEntry) -> list[str]:
    """Tokens of title, content and tags."""
    return tokenize(" ".join([entry.title, entry.content, *sorted(entry.tags)]))


def rank_lexical(
    query: str, entries: Sequence[KnowledgeEntry], k: int
) -> list[tuple[KnowledgeEntry, float]]:
    """Top-k entries by BM25 relevance, best first."""
    query_tokens = tokenize(query)
    if not query_tokens or not entries or k <= 0:
        return []

    from rank_bm25 import BM25Plus

    corpus = [entry_tokens(e) for e in entries]
    # BM25Plus keeps idf positive on tiny corpora where BM25Okapi goes negative.
    bm25 = BM25Plus(corpus)
    scores = np.asarray(bm25.get_scores(query_tokens), dtype=float)

    query_set = set(query_tokens)
    candidates = [i for i, tokens in enumerate(corpus) if query_set.intersection(tokens)]
    if not candidates:
        return []

    best = max(float(scores[i]) for i in candidates)
    if best <= 0.0:
        return []

    # Stable sort keeps corpus order for equal scores.
    ranked = sorted(candidates, key=lambda i: -float(scores[i]))[:k]
    return [(entries[i], min(float(scores[i]) / best, 1.0)) for i in ranked]
