# tests/unit/core/test_similarity.py - v2
"""Tests for core/similarity.py - cosine similarity helpers."""

from __future__ import annotations

import numpy as np
import pytest

from semkb.core.similarity import cosine_similarity, cosine_similarity_batch, top_k_indices


class TestCosineSimilarity:
    def test_identical(self):
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite(self):
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_zero_norm(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(ValueError, match="Dimension mismatch"):
            cosine_similarity([1.0], [1.0, 0.0])


class TestCosineSimilarityBatch:
    def test_scores_each_row(self):
        matrix = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
        scores = cosine_similarity_batch([1.0, 0.0], matrix)
        assert scores.shape == (3,)
        assert scores[0] == pytest.approx(1.0)
        assert scores[1] == pytest.approx(0.0)
        assert scores[2] == pytest.approx(1 / np.sqrt(2))

    def test_zero_rows_score_zero(self):
        scores = cosine_similarity_batch([1.0, 0.0], np.array([[0.0, 0.0]]))
        assert scores[0] == 0.0

    def test_empty_matrix(self):
        assert cosine_similarity_batch([1.0], np.empty((0, 1))).size == 0

    def test_rejects_1d(self):
        with pytest.raises(ValueError, match="2D"):
            cosine_similarity_batch([1.0], np.array([1.0]))

    def test_width_mismatch(self):
        with pytest.raises(ValueError, match="Dimension mismatch"):
            cosine_similarity_batch([1.0, 0.0], np.array([[1.0, 0.0, 0.0]]))


class TestTopK:
    def test_descending(self):
        assert top_k_indices(np.array([0.1, 0.9, 0.5]), 2) == [1, 2]

    def test_stable_ties(self):
        assert top_k_indices(np.array([0.5, 0.5, 0.5]), 3) == [0, 1, 2]

    def test_non_positive_k(self):
        assert top_k_indices(np.array([0.5]), 0) == []
