"""Evidence sufficiency policy and validation of structured evaluation output."""

from __future__ import annotations

import math

from recall_engine.config.constants import MAX_WEIGHT, PREVIEW_CHARS
from recall_engine.exceptions import ErrorKind, MalformedResultError
from recall_engine.models.domain import (
    Candidate,
    ConfidenceBlock,
    Driver,
    DriverScore,
    EvaluationPolicy,
    EvaluationResult,
    PolicyCheckResult,
)
from recall_engine.observability.logger import get_logger
from recall_engine.retrieval.timestamps import format_timestamp

logger = get_logger("evidence_policy")

_EVIDENCE_STRENGTHS = frozenset({"high", "medium", "low"})


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _as_number(value) -> float | None:
    """Finite float from a number or numeric string; NaN and infinities are unusable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _string_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v not in (None, "")]


def check_policy(evidence: list[Candidate], policy: EvaluationPolicy) -> PolicyCheckResult:
    """Gate evaluation synthesis on evidence volume, then room diversity."""
    if len(evidence) < policy.min_evidence_items:
        return PolicyCheckResult(
            ok=False,
            reason=(
                f"Insufficient evidence: found {len(evidence)} items, "
                f"need at least {policy.min_evidence_items}"
            ),
            kind=ErrorKind.INSUFFICIENT_EVIDENCE,
        )

    if policy.require_multi_room:
        rooms = {c.chunk.room_id for c in evidence}
        if len(rooms) < 2:
            return PolicyCheckResult(
                ok=False,
                reason=(
                    f"Insufficient room diversity: evidence spans {len(rooms)} room(s), "
                    "need at least 2"
                ),
                kind=ErrorKind.INSUFFICIENT_DIVERSITY,
            )

    return PolicyCheckResult(ok=True)


def allows_diversity_leniency(
    result: PolicyCheckResult,
    evidence_count: int,
    min_items: int = 3,
) -> bool:
    """True when only the diversity rule failed and the evidence volume
    reaches ``min_items``. Never relaxes the minimum-evidence rule."""
    return (
        not result.ok
        and result.kind == ErrorKind.INSUFFICIENT_DIVERSITY
        and evidence_count >= min_items
    )


def compact_evidence(candidates: list[Candidate]) -> list[dict]:
    """Prompt projection of evidence: id, room, time and a text preview."""
    return [
        {
            "chunk_id": c.chunk.chunk_id,
            "room_id": c.chunk.room_id,
            "room_name": c.chunk.room_name or "Unknown Room",
            "timestamp": format_timestamp(c.chunk.first_ts),
            "text": c.chunk.text[:PREVIEW_CHARS],
        }
        for c in candidates
    ]


def _match_driver(raw_key, drivers_by_key: dict[str, Driver]) -> Driver | None:
    if not isinstance(raw_key, str):
        return None
    key = raw_key.strip().lower()
    if key in drivers_by_key:
        return drivers_by_key[key]
    for driver in drivers_by_key.values():
        if driver.name.lower() == key:
            return driver
    return None


def validate_and_clamp(
    raw: dict,
    policy: EvaluationPolicy,
    drivers: list[Driver],
    subject: str = "",
) -> EvaluationResult:
    """Turn raw generation output into a trusted EvaluationResult.

    Scores and weights are clamped, unknown drivers dropped, missing drivers
    backfilled at mid-scale with low evidence strength, and the weighted
    total recomputed from the clamped values. Any weighted total in ``raw``
    is ignored.
    """
    scores_raw = raw.get("scores") if isinstance(raw, dict) else None
    if not isinstance(scores_raw, list) or not scores_raw:
        raise MalformedResultError("Evaluation result has no scores list")

    drivers_by_key = {d.key.lower(): d for d in drivers}
    scored: dict[str, DriverScore] = {}
    dropped = 0

    for entry in scores_raw:
        if not isinstance(entry, dict):
            dropped += 1
            continue
        driver = _match_driver(entry.get("driver"), drivers_by_key)
        score = _as_number(entry.get("score"))
        if driver is None or score is None or driver.key in scored:
            dropped += 1
            continue

        weight = _as_number(entry.get("weight"))
        if weight is None:
            weight = driver.weight
        strength = str(entry.get("evidence_strength", "medium")).lower()

        scored[driver.key] = DriverScore(
            driver=driver.key,
            score=_clamp(score, policy.scale_min, policy.scale_max),
            weight=_clamp(weight, 0.0, MAX_WEIGHT),
            reasoning=str(entry.get("reasoning") or ""),
            evidence_strength=strength if strength in _EVIDENCE_STRENGTHS else "medium",
        )

    if not scored:
        raise MalformedResultError("Evaluation result references no configured driver")

    backfilled = 0
    scores: list[DriverScore] = []
    for driver in drivers:
        if driver.key in scored:
            scores.append(scored[driver.key])
            continue
        backfilled += 1
        scores.append(
            DriverScore(
                driver=driver.key,
                score=policy.scale_mid,
                weight=_clamp(driver.weight, 0.0, MAX_WEIGHT),
                reasoning="No evidence returned for this driver.",
                evidence_strength="low",
            )
        )

    total_weight = sum(s.weight for s in scores)
    weighted_total = (
        sum(s.score * s.weight for s in scores) / total_weight if total_weight > 0 else 0.0
    )

    logger.info(
        "evaluation_validated",
        drivers=len(scores),
        dropped=dropped,
        backfilled=backfilled,
        weighted_total=round(weighted_total, 4),
    )
    return EvaluationResult(
        subject=subject,
        scores=scores,
        weighted_total=weighted_total,
        strengths=_string_list(raw.get("strengths")),
        growth_opportunities=_string_list(raw.get("growth_opportunities")),
        contextual_insights=_string_list(raw.get("contextual_insights")),
        confidence=_confidence_block(raw),
        summary=str(raw.get("summary") or ""),
    )


def _confidence_block(raw: dict) -> ConfidenceBlock:
    analysis = raw.get("confidence_analysis")
    if not isinstance(analysis, dict):
        analysis = {}
    confidence = _as_number(analysis.get("overall_confidence"))
    if confidence is None:
        confidence = _as_number(raw.get("confidence"))
    return ConfidenceBlock(
        overall_confidence=_clamp(confidence, 0.0, 1.0) if confidence is not None else None,
        evidence_quality=str(analysis.get("evidence_quality") or "limited"),
        data_coverage=str(analysis.get("data_coverage") or "insufficient"),
        reliability_factors=_string_list(analysis.get("reliability_factors")),
    )


def create_short_summary(result: EvaluationResult, policy: EvaluationPolicy) -> str:
    """One or two spoken sentences summarising a validated evaluation."""
    scores = result.scores
    average = sum(s.score for s in scores) / len(scores) if scores else 0.0

    summary = f"Evaluation complete. Average score: {average:.1f}/{policy.scale_max:g}."
    if result.strengths:
        summary += f" Key strengths: {', '.join(result.strengths[:2])}."
    if result.growth_opportunities:
        summary += f" Areas for attention: {', '.join(result.growth_opportunities[:2])}."
    return summary
