"""Tests for text and vector similarity."""

import pytest

from recall_engine.retrieval.similarity import cosine_similarity, jaccard_similarity, word_set


def test_word_set_lowercases():
    assert word_set("Deadline deadline MOVED") == frozenset({"deadline", "moved"})


def test_jaccard_identical():
    assert jaccard_similarity("a b c", "c b a") == 1.0


def test_jaccard_partial():
    assert jaccard_similarity("a b c d", "a b c d e") == pytest.approx(0.8)


def test_jaccard_empty():
    assert jaccard_similarity("", "") == 0.0
    assert jaccard_similarity("a", "") == 0.0


def test_cosine_orthogonal_and_parallel():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], [2.0, 4.0]) == pytest.approx(1.0)


def test_cosine_zero_vector():
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_cosine_dimension_mismatch():
    with pytest.raises(ValueError):
        cosine_similarity([1.0], [1.0, 0.0])
