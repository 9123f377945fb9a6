"""Tests for hybrid retrieval, degradation and broadening."""

import asyncio

import pytest

from recall_engine.config.constants import DEADLINE_KEYWORDS
from recall_engine.exceptions import BadInputError, RetrievalError
from recall_engine.models.domain import FilterSet
from recall_engine.retrieval.hybrid_retriever import HybridRetriever, RetrievalResult

VECTOR = [1.0, 0.0, 0.0]


class SlowStore:
    async def search_vector(self, client_id, filters, embedding, limit=50):
        await asyncio.sleep(1)
        return []

    async def search_text(self, client_id, filters, query_text, limit=50):
        return []


async def test_both_searches_run(make_store, candidate_factory):
    store = make_store(
        vector_results=[candidate_factory("v1", score=0.9)],
        text_results=[candidate_factory("t1", score=12.3)],
    )
    result = await HybridRetriever(store).retrieve("client-1", FilterSet(), "banner", VECTOR)
    assert [c.chunk_id for c in result.vector_candidates] == ["v1"]
    assert result.vector_candidates[0].score == 0.9
    # Lexical scores are replaced by the fixed match score.
    assert result.text_candidates[0].score == 0.5
    assert result.text_candidates[0].source == "text"
    assert result.degraded == []


async def test_missing_vector_is_text_only(make_store, candidate_factory):
    store = make_store(
        vector_results=[candidate_factory("v1")],
        text_results=[candidate_factory("t1")],
    )
    result = await HybridRetriever(store).retrieve("client-1", FilterSet(), "banner", None)
    assert store.vector_calls == []
    assert [c.chunk_id for c in result.text_candidates] == ["t1"]
    assert result.degraded == ["embedding_unavailable"]


async def test_vector_failure_degrades(make_store, candidate_factory):
    store = make_store(
        vector_results=RetrievalError("db locked"),
        text_results=[candidate_factory("t1")],
    )
    result = await HybridRetriever(store).retrieve("client-1", FilterSet(), "banner", VECTOR)
    assert result.vector_candidates == []
    assert [c.chunk_id for c in result.text_candidates] == ["t1"]
    assert result.degraded == ["vector_search_failed"]


async def test_both_failures_yield_empty(make_store):
    store = make_store(vector_results=RetrievalError("a"), text_results=RetrievalError("b"))
    result = await HybridRetriever(store).retrieve("client-1", FilterSet(), "banner", VECTOR)
    assert result.total == 0
    assert result.degraded == ["vector_search_failed", "text_search_failed"]


async def test_search_timeout_degrades():
    retriever = HybridRetriever(SlowStore(), timeout_s=0.01)
    result = await retriever.retrieve("client-1", FilterSet(), "banner", VECTOR)
    assert result.degraded == ["vector_search_failed"]


@pytest.mark.parametrize(("client_id", "question"), [("", "banner"), ("client-1", "   ")])
async def test_bad_input(make_store, client_id, question):
    with pytest.raises(BadInputError):
        await HybridRetriever(make_store()).retrieve(client_id, FilterSet(), question, VECTOR)


def test_fused_merges_overlap(candidate_factory):
    shared_vector = candidate_factory("shared", score=0.7, source="vector")
    shared_text = candidate_factory("shared", score=0.5, source="text")
    result = RetrievalResult(
        vector_candidates=[
            candidate_factory("v1", score=0.9, source="vector"),
            candidate_factory("v2", score=0.8, source="vector"),
            shared_vector,
        ],
        text_candidates=[shared_text, candidate_factory("t1", score=0.5, source="text")],
    )
    fused = result.fused()
    assert [c.chunk_id for c in fused] == ["v1", "v2", "shared", "t1"]
    shared = fused[2]
    assert shared.source == "hybrid"
    assert shared.score == pytest.approx(0.6)


def test_fused_keeps_first_repeat(candidate_factory):
    result = RetrievalResult(
        vector_candidates=[
            candidate_factory("v1", score=0.9, source="vector"),
            candidate_factory("v1", score=0.4, source="vector"),
        ]
    )
    assert [(c.chunk_id, c.score) for c in result.fused()] == [("v1", 0.9)]


async def test_broadening_retries_without_keywords(make_store, candidate_factory):
    store = make_store(
        vector_results=[
            candidate_factory("v1", text="the deadline slipped"),
            candidate_factory("v2", text="status notes for the banner"),
        ],
        text_results=[candidate_factory("t1", text="client feedback on copy")],
    )
    filters = FilterSet(keywords=DEADLINE_KEYWORDS)
    result = await HybridRetriever(store).retrieve_with_broadening(
        "client-1", filters, "deadline?", VECTOR, broadened_question="work tasks"
    )
    assert len(store.text_calls) == 2
    assert store.text_calls[1][1].keywords == ()
    assert store.text_calls[1][2] == "work tasks"
    # Original hits first, then the broadened ones.
    assert [c.chunk_id for c in result.vector_candidates] == ["v1", "v1", "v2"]
    assert [c.chunk_id for c in result.fused()] == ["v1", "v2", "t1"]


async def test_no_broadening_when_enough(make_store, candidate_factory):
    store = make_store(
        vector_results=[candidate_factory(f"v{i}", text=f"deadline note {i}") for i in range(5)],
    )
    filters = FilterSet(keywords=DEADLINE_KEYWORDS)
    await HybridRetriever(store).retrieve_with_broadening("client-1", filters, "deadline?", VECTOR)
    assert len(store.vector_calls) == 1


async def test_no_broadening_without_keywords(make_store):
    store = make_store()
    await HybridRetriever(store).retrieve_with_broadening("client-1", FilterSet(), "anything", VECTOR)
    assert len(store.text_calls) == 1
