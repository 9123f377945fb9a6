"""Query pipeline orchestrator: classify, retrieve, rerank, answer, stream."""

from __future__ import annotations

import re
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone

from recall_engine.config.constants import BROADENED_QUERY_TERMS
from recall_engine.config.settings import Settings
from recall_engine.exceptions import (
    ErrorKind,
    MalformedResultError,
    PersistenceError,
)
from recall_engine.generation.answer_generator import AnswerGenerator
from recall_engine.models.domain import (
    Candidate,
    ConversationTurn,
    Driver,
    EvaluationResult,
    FilterSet,
    Intent,
    QueryRecord,
    Rubric,
)
from recall_engine.models.schemas import EvaluationRequest, QueryRequest
from recall_engine.observability.logger import get_logger
from recall_engine.observability.metrics import (
    log_evaluation_metrics,
    log_latency,
    log_retrieval_metrics,
)
from recall_engine.observability.tracing import TraceContext
from recall_engine.policy.evidence import (
    allows_diversity_leniency,
    check_policy,
    compact_evidence,
    create_short_summary,
    validate_and_clamp,
)
from recall_engine.protocols.embedder import Embedder
from recall_engine.protocols.stores import QueryStore, RubricStore
from recall_engine.query.analysis import QueryAnalysis, analyze_question
from recall_engine.query.intent import QueryClassifier
from recall_engine.retrieval.citations import format_citations
from recall_engine.retrieval.dedup import dedupe
from recall_engine.retrieval.hybrid_retriever import HybridRetriever, RetrievalResult
from recall_engine.retrieval.mmr import MMRConfig, mmr_rerank
from recall_engine.streaming.session import StreamSession

logger = get_logger("query_pipeline")

NO_EVIDENCE_ANSWER = (
    "I couldn't find any messages matching your question and filters. "
    "Try widening the date range or removing room filters."
)
_WORD_FRAGMENT = re.compile(r"\s*\S+\s*")


def split_fragments(text: str) -> list[str]:
    """Split text into word fragments that concatenate back to ``text`` exactly."""
    return _WORD_FRAGMENT.findall(text) or ([text] if text else [])


class QueryPipeline:
    def __init__(
        self,
        classifier: QueryClassifier,
        embedder: Embedder | None,
        retriever: HybridRetriever,
        rubric_store: RubricStore,
        query_store: QueryStore,
        answer_generator: AnswerGenerator,
        settings: Settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._classifier = classifier
        self._embedder = embedder
        self._retriever = retriever
        self._rubrics = rubric_store
        self._queries = query_store
        self._generator = answer_generator
        self._settings = settings
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def run(self, request: QueryRequest, session: StreamSession) -> None:
        trace = TraceContext(session.correlation_id)
        filters = request.filters.to_filter_set()

        if isinstance(request, EvaluationRequest):
            # Subject given by the caller: no classification.
            session.meta(
                client_id=request.client_id,
                conversation_id=request.conversation_id,
                filters=filters.to_dict(),
                intent=str(Intent.EVALUATION),
                subject=request.subject,
            )
            await self._answer_evaluation(request, session, trace, filters, request.subject)
            return

        with trace.span("classification"):
            classification = await self._classifier.classify(request.question)

        intent = classification.intent
        subject = classification.subject
        if intent == Intent.EVALUATION and not subject:
            logger.info("evaluation_without_subject", corr_id=session.correlation_id)
            intent = Intent.RAG

        meta = {
            "client_id": request.client_id,
            "conversation_id": request.conversation_id,
            "filters": filters.to_dict(),
            "intent": str(intent),
        }
        if intent == Intent.EVALUATION:
            meta["subject"] = subject
        session.meta(**meta)

        context = await self._conversation_context(request.conversation_id)

        if intent == Intent.CASUAL:
            await self._answer_casual(request, session, trace, filters, context)
        elif intent == Intent.EVALUATION:
            await self._answer_evaluation(request, session, trace, filters, subject)
        else:
            await self._answer_rag(request, session, trace, filters, context)

    async def _conversation_context(self, conversation_id: str) -> list[ConversationTurn]:
        try:
            return await self._queries.get_conversation_context(
                conversation_id, self._settings.conversation_context_limit
            )
        except PersistenceError as e:
            logger.warning("conversation_context_unavailable", error=str(e))
            return []

    async def _embed(self, text: str) -> list[float] | None:
        if self._embedder is None:
            return None
        try:
            return await self._embedder.embed(text)
        except Exception as e:
            logger.warning("embedding_unavailable", error=str(e), error_type=type(e).__name__)
            return None

    async def _drivers(self, client_id: str) -> list[Driver]:
        try:
            return (await self._rubrics.get_rubric(client_id)).drivers
        except Exception as e:
            logger.warning("drivers_unavailable", client_id=client_id, error=str(e))
            return []

    # Casual

    async def _answer_casual(
        self,
        request: QueryRequest,
        session: StreamSession,
        trace: TraceContext,
        filters: FilterSet,
        context: list[ConversationTurn],
    ) -> None:
        session.citations([])
        with trace.span("generation", kind="casual"):
            answer = await self._stream(
                session, self._generator.stream_casual(request.question, context)
            )
        if answer is None:
            return
        await self._finish(request, session, trace, Intent.CASUAL, filters, answer, [])

    # Evidence lookup

    def _mmr_config(self, analysis: QueryAnalysis) -> MMRConfig:
        s = self._settings
        return MMRConfig(
            lambda_=s.mmr_lambda,
            max_results=s.mmr_time_window_max_results if analysis.is_time_window else s.mmr_max_results,
            diversity_weight=s.mmr_diversity_weight,
            recency_weight=(
                s.mmr_time_window_recency_weight if analysis.is_time_window else s.mmr_recency_weight
            ),
            keyword_boost=s.mmr_keyword_boost,
            keywords=analysis.filters.keywords,
        )

    def _select(
        self,
        trace: TraceContext,
        result: RetrievalResult,
        config: MMRConfig,
        caller_filters: FilterSet,
    ) -> list[Candidate]:
        with trace.span("rerank"):
            fused = result.fused()
            unique = dedupe(fused, self._settings.dedupe_similarity_threshold)
            reranked = mmr_rerank(unique, config, now=self._clock())
            # Broadened searches relax keywords only; re-check the caller's own filters.
            selected = [c for c in reranked if caller_filters.matches(c.chunk)]
        log_retrieval_metrics(trace.trace_id, len(fused), len(unique), selected, result.degraded)
        return selected

    async def _answer_rag(
        self,
        request: QueryRequest,
        session: StreamSession,
        trace: TraceContext,
        filters: FilterSet,
        context: list[ConversationTurn],
    ) -> None:
        analysis = analyze_question(request.question, filters, now=self._clock())
        query = analysis.search_query
        broadened = f"{analysis.target_person or request.question} {BROADENED_QUERY_TERMS}"

        with trace.span("embedding"):
            vector = await self._embed(query)
        with trace.span("retrieval"):
            result = await self._retriever.retrieve_with_broadening(
                request.client_id, analysis.filters, query, vector, broadened
            )
        selected = self._select(trace, result, self._mmr_config(analysis), filters)

        citations = [c.to_dict() for c in format_citations(selected)]
        session.citations(citations)

        if not selected:
            await self._answer_no_evidence(request, session, trace, Intent.RAG, filters)
            return

        if analysis.is_specific_instance:
            style = "specific_instance"
        elif analysis.is_time_window:
            style = "time_window"
        else:
            style = "general"
        drivers = await self._drivers(request.client_id)

        with trace.span("generation", kind=f"rag_{style}"):
            answer = await self._stream(
                session,
                self._generator.stream_rag(
                    request.question, compact_evidence(selected), context, drivers, style
                ),
            )
        if answer is None:
            return
        await self._finish(request, session, trace, Intent.RAG, filters, answer, citations)

    async def _answer_no_evidence(
        self,
        request: QueryRequest,
        session: StreamSession,
        trace: TraceContext,
        intent: Intent,
        filters: FilterSet,
    ) -> None:
        logger.info("no_evidence", corr_id=session.correlation_id, intent=str(intent))
        if not session.token(NO_EVIDENCE_ANSWER):
            return
        await self._finish(
            request,
            session,
            trace,
            intent,
            filters,
            NO_EVIDENCE_ANSWER,
            [],
            reason=ErrorKind.NO_EVIDENCE,
        )

    # Evaluation

    async def _retrieve_evaluation_evidence(
        self,
        request: QueryRequest,
        trace: TraceContext,
        filters: FilterSet,
        subject: str,
    ) -> list[Candidate]:
        if subject.lower() in request.question.lower():
            query = request.question
        else:
            query = f"{request.question} {subject}"

        with trace.span("embedding"):
            vector = await self._embed(query)
        with trace.span("retrieval"):
            result = await self._retriever.retrieve(request.client_id, filters, query, vector)
            rooms = {c.chunk.room_id for c in result.fused()}
            if len(rooms) < 2:
                logger.info("broadening_evaluation_search", subject=subject, rooms=len(rooms))
                subject_vector = await self._embed(subject)
                broader = await self._retriever.retrieve(
                    request.client_id, filters, subject, subject_vector
                )
                result = result.extend(broader)

        config = MMRConfig(
            lambda_=self._settings.mmr_lambda,
            max_results=self._settings.evaluation_max_results,
            diversity_weight=self._settings.mmr_diversity_weight,
            recency_weight=self._settings.mmr_recency_weight,
            keyword_boost=self._settings.mmr_keyword_boost,
        )
        return self._select(trace, result, config, filters)

    async def _answer_evaluation(
        self,
        request: QueryRequest,
        session: StreamSession,
        trace: TraceContext,
        filters: FilterSet,
        subject: str,
    ) -> None:
        selected = await self._retrieve_evaluation_evidence(request, trace, filters, subject)
        citations = [c.to_dict() for c in format_citations(selected)]
        session.citations(citations)

        if not selected:
            await self._answer_no_evidence(request, session, trace, Intent.EVALUATION, filters)
            return

        evidence = compact_evidence(selected)
        rubric = await self._rubrics.get_rubric(request.client_id)

        if not rubric.drivers:
            logger.info("no_drivers_configured", client_id=request.client_id)
            await self._answer_narrative(
                request, session, trace, filters, subject, evidence, citations, reason=None
            )
            return

        check = check_policy(selected, rubric.policy)
        if not check.ok:
            if allows_diversity_leniency(
                check, len(selected), self._settings.diversity_leniency_min_items
            ):
                logger.warning(
                    "policy_diversity_leniency",
                    reason=check.reason,
                    evidence=len(selected),
                )
            else:
                logger.info("policy_refused", kind=str(check.kind), reason=check.reason)
                refusal = (
                    f"I can't give a structured evaluation of {subject} yet. {check.reason}."
                )
                if not session.token(refusal):
                    return
                await self._finish(
                    request,
                    session,
                    trace,
                    Intent.EVALUATION,
                    filters,
                    refusal,
                    citations,
                    reason=check.kind,
                )
                return

        try:
            with trace.span("evaluation"):
                raw = await self._generator.evaluate(request.question, subject, evidence, rubric)
                result = validate_and_clamp(raw, rubric.policy, rubric.drivers, subject=subject)
        except MalformedResultError as e:
            logger.warning("evaluation_malformed", error=str(e), corr_id=session.correlation_id)
            await self._answer_narrative(
                request,
                session,
                trace,
                filters,
                subject,
                evidence,
                citations,
                reason=ErrorKind.MALFORMED_RESULT,
            )
            return

        log_evaluation_metrics(trace.trace_id, result)
        summary = create_short_summary(result, rubric.policy)
        for fragment in split_fragments(summary):
            if not session.token(fragment):
                return
        if not session.evaluation_payload(result.to_dict()):
            return
        await self._finish(
            request,
            session,
            trace,
            Intent.EVALUATION,
            filters,
            summary,
            citations,
            evaluation=result,
            rubric=rubric,
        )

    async def _answer_narrative(
        self,
        request: QueryRequest,
        session: StreamSession,
        trace: TraceContext,
        filters: FilterSet,
        subject: str,
        evidence: list[dict],
        citations: list[dict],
        reason: ErrorKind | None,
    ) -> None:
        with trace.span("generation", kind="general_evaluation"):
            answer = await self._stream(
                session,
                self._generator.stream_general_evaluation(request.question, subject, evidence),
            )
        if answer is None:
            return
        await self._finish(
            request, session, trace, Intent.EVALUATION, filters, answer, citations, reason=reason
        )

    # Shared

    async def _stream(
        self, session: StreamSession, fragments: AsyncGenerator[str, None]
    ) -> str | None:
        """Forward fragments as tokens. None when the session closed mid-stream."""
        parts: list[str] = []
        try:
            async for fragment in fragments:
                if not session.token(fragment):
                    logger.info("generation_abandoned", corr_id=session.correlation_id)
                    return None
                parts.append(fragment)
        finally:
            await fragments.aclose()
        return "".join(parts)

    async def _finish(
        self,
        request: QueryRequest,
        session: StreamSession,
        trace: TraceContext,
        intent: Intent,
        filters: FilterSet,
        answer: str,
        citations: list[dict],
        evaluation: EvaluationResult | None = None,
        rubric: Rubric | None = None,
        reason: ErrorKind | None = None,
    ) -> None:
        if session.closed:
            return

        record = QueryRecord(
            client_id=request.client_id,
            conversation_id=request.conversation_id,
            question=request.question,
            intent=str(intent),
            filters=filters.to_dict(),
            answer=answer,
            citations=citations,
            evaluation_mode=evaluation is not None,
            latency_ms=trace.elapsed_ms,
            spans=trace.span_dicts(),
        )

        query_id = None
        persisted = True
        try:
            query_id = await self._queries.record_query(record)
            if evaluation is not None and rubric is not None:
                await self._queries.record_evaluation(
                    query_id, request.client_id, rubric, evaluation
                )
        except PersistenceError as e:
            logger.error(
                "persistence_failed",
                corr_id=session.correlation_id,
                query_id=query_id,
                error=str(e),
            )
            persisted = False

        fields = {
            "query_id": query_id,
            "latency_ms": round(trace.elapsed_ms, 2),
            "persisted": persisted,
        }
        if reason is not None:
            fields["reason"] = str(reason)
        for span in trace.spans:
            log_latency(trace.trace_id, span.name, span.duration_ms)
        session.done(**fields)
        logger.info(
            "query_completed",
            corr_id=session.correlation_id,
            intent=str(intent),
            latency_ms=fields["latency_ms"],
            citations=len(citations),
        )
