"""Tests for near-duplicate collapsing."""

from recall_engine.retrieval.dedup import dedupe


def test_exact_duplicate_dropped(candidate_factory):
    first = candidate_factory("c1", text="Sarah shipped the release notes", score=0.9)
    copy = candidate_factory("c2", text="Sarah shipped the release notes", score=0.5)
    assert dedupe([first, copy]) == [first]


def test_near_duplicate_dropped(candidate_factory):
    a = candidate_factory("c1", text="a b c d e f g h i j")
    b = candidate_factory("c2", text="a b c d e f g h i k")
    result = dedupe([a, b])
    assert [c.chunk_id for c in result] == ["c1"]


def test_threshold_is_strict(candidate_factory):
    a = candidate_factory("c1", text="a b c d")
    b = candidate_factory("c2", text="a b c d e")
    # Jaccard is exactly 0.8, which is not above the threshold.
    assert len(dedupe([a, b])) == 2


def test_first_occurrence_wins(candidate_factory):
    low = candidate_factory("low", text="same words here", score=0.1)
    high = candidate_factory("high", text="same words here", score=0.9)
    assert [c.chunk_id for c in dedupe([low, high])] == ["low"]


def test_distinct_texts_kept_in_order(candidate_factory):
    candidates = [
        candidate_factory("c1", text="budget review moved to Monday"),
        candidate_factory("c2", text="client asked for new banner sizes"),
        candidate_factory("c3", text="printer confirmed the proofs"),
    ]
    assert dedupe(candidates) == candidates


def test_idempotent(candidate_factory):
    candidates = [
        candidate_factory("c1", text="a b c d e f g h i j"),
        candidate_factory("c2", text="a b c d e f g h i k"),
        candidate_factory("c3", text="totally different message"),
        candidate_factory("c4", text="totally different message"),
    ]
    once = dedupe(candidates)
    assert dedupe(once) == once


def test_empty():
    assert dedupe([]) == []
