"""Similarity measures over dense vectors and raw text."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def word_set(text: str) -> frozenset[str]:
    """Lower-cased whitespace tokens, as a set."""
    return frozenset(text.lower().split())


def jaccard_similarity(text_a: str, text_b: str) -> float:
    words_a = word_set(text_a)
    words_b = word_set(text_b)
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Vector dimensions must match: {a.shape} vs {b.shape}")
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return float(np.dot(a, b) / norm)
