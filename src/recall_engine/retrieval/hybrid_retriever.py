"""Hybrid retriever combining vector and lexical search over the chunk store."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace

from recall_engine.exceptions import BadInputError
from recall_engine.models.domain import Candidate, FilterSet
from recall_engine.observability.logger import get_logger
from recall_engine.protocols.chunk_store import ChunkStore

logger = get_logger("hybrid_retriever")


@dataclass
class SearchOutcome:
    candidates: list[Candidate] = field(default_factory=list)
    degraded: str | None = None


@dataclass
class RetrievalResult:
    vector_candidates: list[Candidate] = field(default_factory=list)
    text_candidates: list[Candidate] = field(default_factory=list)
    degraded: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.vector_candidates) + len(self.text_candidates)

    def extend(self, other: RetrievalResult) -> RetrievalResult:
        return RetrievalResult(
            vector_candidates=self.vector_candidates + other.vector_candidates,
            text_candidates=self.text_candidates + other.text_candidates,
            degraded=self.degraded + [d for d in other.degraded if d not in self.degraded],
        )

    def fused(self) -> list[Candidate]:
        """Merge by chunk id, vector hits first.

        A chunk found by both searches keeps one entry with the mean of the
        two scores and source ``hybrid``. Repeats within one list keep the
        first (highest-ranked) occurrence.
        """
        merged: dict[str, Candidate] = {}
        for candidate in self.vector_candidates:
            merged.setdefault(candidate.chunk_id, candidate)

        seen_text: set[str] = set()
        for candidate in self.text_candidates:
            if candidate.chunk_id in seen_text:
                continue
            seen_text.add(candidate.chunk_id)
            existing = merged.get(candidate.chunk_id)
            if existing is None:
                merged[candidate.chunk_id] = candidate
            elif existing.source == "vector":
                merged[candidate.chunk_id] = Candidate(
                    chunk=existing.chunk,
                    score=(existing.score + candidate.score) / 2,
                    source="hybrid",
                )
        return list(merged.values())


class HybridRetriever:
    def __init__(
        self,
        store: ChunkStore,
        vector_top_k: int = 50,
        text_top_k: int = 50,
        text_match_score: float = 0.5,
        broaden_min_results: int = 5,
        timeout_s: float = 20.0,
    ) -> None:
        self._store = store
        self._vector_top_k = vector_top_k
        self._text_top_k = text_top_k
        self._text_match_score = text_match_score
        self._broaden_min_results = broaden_min_results
        self._timeout_s = timeout_s

    async def retrieve(
        self,
        client_id: str,
        filters: FilterSet,
        question: str,
        query_vector: list[float] | None = None,
    ) -> RetrievalResult:
        if not client_id:
            raise BadInputError("client_id is required")
        if not question or not question.strip():
            raise BadInputError("question must not be blank")

        if query_vector is not None:
            vector_outcome, text_outcome = await asyncio.gather(
                self._vector_search(client_id, filters, query_vector),
                self._text_search(client_id, filters, question),
            )
        else:
            vector_outcome = SearchOutcome(degraded="embedding_unavailable")
            text_outcome = await self._text_search(client_id, filters, question)

        degraded = [o.degraded for o in (vector_outcome, text_outcome) if o.degraded]
        logger.info(
            "retrieval_results",
            vector_count=len(vector_outcome.candidates),
            text_count=len(text_outcome.candidates),
            degraded=degraded,
        )
        return RetrievalResult(
            vector_candidates=vector_outcome.candidates,
            text_candidates=text_outcome.candidates,
            degraded=degraded,
        )

    async def retrieve_with_broadening(
        self,
        client_id: str,
        filters: FilterSet,
        question: str,
        query_vector: list[float] | None = None,
        broadened_question: str | None = None,
    ) -> RetrievalResult:
        """Retrieve, then retry once without the keyword restriction if
        a keyword-narrowed search came back thin. Broadened results are
        appended after the original ones."""
        result = await self.retrieve(client_id, filters, question, query_vector)
        if not filters.keywords or result.total >= self._broaden_min_results:
            return result

        logger.info(
            "broadening_search",
            found=result.total,
            threshold=self._broaden_min_results,
        )
        broader = await self.retrieve(
            client_id,
            replace(filters, keywords=()),
            broadened_question or question,
            query_vector,
        )
        return result.extend(broader)

    async def _vector_search(
        self, client_id: str, filters: FilterSet, query_vector: list[float]
    ) -> SearchOutcome:
        try:
            candidates = await asyncio.wait_for(
                self._store.search_vector(client_id, filters, query_vector, self._vector_top_k),
                timeout=self._timeout_s,
            )
        except Exception as e:
            logger.warning("vector_search_failed", error=str(e), error_type=type(e).__name__)
            return SearchOutcome(degraded="vector_search_failed")
        return SearchOutcome(
            candidates=[Candidate(chunk=c.chunk, score=c.score, source="vector") for c in candidates]
        )

    async def _text_search(self, client_id: str, filters: FilterSet, question: str) -> SearchOutcome:
        try:
            candidates = await asyncio.wait_for(
                self._store.search_text(client_id, filters, question, self._text_top_k),
                timeout=self._timeout_s,
            )
        except Exception as e:
            logger.warning("text_search_failed", error=str(e), error_type=type(e).__name__)
            return SearchOutcome(degraded="text_search_failed")
        return SearchOutcome(
            candidates=[
                Candidate(chunk=c.chunk, score=self._text_match_score, source="text")
                for c in candidates
            ]
        )
