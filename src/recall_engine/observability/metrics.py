"""Metric recording helpers for query runs."""

from __future__ import annotations

from recall_engine.models.domain import Candidate, EvaluationResult
from recall_engine.observability.logger import get_logger

logger = get_logger("metrics")


def log_retrieval_metrics(
    trace_id: str,
    retrieved: int,
    deduplicated: int,
    selected: list[Candidate],
    degraded: list[str],
) -> None:
    logger.info(
        "retrieval_metrics",
        trace_id=trace_id,
        retrieved=retrieved,
        deduplicated=deduplicated,
        selected=len(selected),
        unique_rooms=len({c.chunk.room_id for c in selected}),
        top_scores=[round(c.score, 4) for c in selected[:5]],
        degraded=degraded,
    )


def log_evaluation_metrics(trace_id: str, result: EvaluationResult) -> None:
    logger.info(
        "evaluation_metrics",
        trace_id=trace_id,
        subject=result.subject,
        drivers=len(result.scores),
        weighted_total=round(result.weighted_total, 4),
        low_evidence=sum(1 for s in result.scores if s.evidence_strength == "low"),
        confidence=result.confidence.overall_confidence,
    )


def log_latency(trace_id: str, stage: str, duration_ms: float) -> None:
    logger.info(
        "latency",
        trace_id=trace_id,
        stage=stage,
        duration_ms=round(duration_ms, 2),
    )
