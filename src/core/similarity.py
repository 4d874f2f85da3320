# src/core/similarity.py - v2
"""Cosine similarity helpers (numpy).

cosine(a, b) = dot(a, b) / (|a| * |b|), defined as 0.0 when either norm
is zero. Used by the prompt cache similarity scan and by vector search.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

logger = logging.getLogger(__name__)

Vector = Sequence[float]


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Cosine similarity of two vectors.

    Raises:
        ValueError: If the vectors have different dimensions.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Dimension mismatch: {va.shape[0]} vs {vb.shape[0]}")
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def cosine_similarity_batch(query: Vector, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity between one query vector and each row of ``matrix``.

    Rows (or a query) with zero norm score 0.0.

    Raises:
        ValueError: If matrix is not 2D or its width differs from the query.
    """
    q = np.asarray(query, dtype=np.float64)
    if matrix.ndim != 2:
        raise ValueError(f"Expected 2D array, got {matrix.ndim}D")
    if matrix.shape[0] == 0:
        return np.empty((0,), dtype=np.float64)
    if matrix.shape[1] != q.shape[0]:
        raise ValueError(
            f"Dimension mismatch: query has {q.shape[0]}, corpus has {matrix.shape[1]}"
        )

    q_norm = float(np.linalg.norm(q))
    row_norms = np.linalg.norm(matrix, axis=1)
    if q_norm == 0.0:
        return np.zeros(matrix.shape[0], dtype=np.float64)

    dots = matrix @ q
    denom = row_norms * q_norm
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(denom > 0.0, dots / denom, 0.0)
    return scores


def top_k_indices(scores: np.ndarray, k: int) -> list[int]:
    """Indices of the k highest scores, descending. Stable for equal scores."""
    if k <= 0 or scores.size == 0:
        return []
    order = np.argsort(-scores, kind="stable")
    return [int(i) for i in order[:k]]
