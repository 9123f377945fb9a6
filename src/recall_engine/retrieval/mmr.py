"""Maximal Marginal Relevance reranking with recency and keyword boosts."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone

from recall_engine.config.constants import RECENCY_DECAY_DAYS
from recall_engine.models.domain import Candidate
from recall_engine.observability.logger import get_logger
from recall_engine.retrieval.similarity import jaccard_similarity
from recall_engine.retrieval.timestamps import parse_timestamp

logger = get_logger("mmr")


@dataclass(frozen=True)
class MMRConfig:
    lambda_: float = 0.7
    max_results: int = 12
    diversity_weight: float = 0.3
    recency_weight: float = 0.2
    keyword_boost: float = 0.1
    keywords: tuple[str, ...] = ()


def enhanced_score(
    candidate: Candidate,
    config: MMRConfig,
    now: datetime | None = None,
) -> float:
    """Base relevance plus exponential recency decay and keyword boost."""
    score = candidate.score
    now = now or datetime.now(timezone.utc)

    ts = parse_timestamp(candidate.chunk.first_ts)
    if ts is not None and config.recency_weight:
        age_days = max(0.0, (now - ts).total_seconds() / 86400)
        score += config.recency_weight * math.exp(-age_days / RECENCY_DECAY_DAYS)

    if config.keywords and config.keyword_boost:
        lowered = candidate.text.lower()
        hits = sum(1 for k in config.keywords if k.lower() in lowered)
        score += config.keyword_boost * hits / len(config.keywords)

    return score


def mmr_rerank(
    candidates: list[Candidate],
    config: MMRConfig | None = None,
    now: datetime | None = None,
) -> list[Candidate]:
    """Greedy diversity-aware selection.

    Output order is selection order. Length is min(max_results, len(candidates)).
    Ties go to the earliest candidate in input order.
    """
    config = config or MMRConfig()
    limit = min(max(config.max_results, 0), len(candidates))
    if limit == 0:
        return []

    relevance = [enhanced_score(c, config, now) for c in candidates]
    remaining = list(range(len(candidates)))

    seed = max(remaining, key=lambda i: (relevance[i], -i))
    selected = [seed]
    remaining.remove(seed)

    while len(selected) < limit and remaining:
        best_score = -math.inf
        best_index = None
        for i in remaining:
            max_similarity = max(
                jaccard_similarity(candidates[i].text, candidates[j].text) for j in selected
            )
            mmr_score = (
                config.lambda_ * relevance[i]
                + (1 - config.lambda_) * config.diversity_weight * (1 - max_similarity)
            )
            if mmr_score > best_score:
                best_score = mmr_score
                best_index = i
        if best_index is None:
            break
        selected.append(best_index)
        remaining.remove(best_index)

    logger.info(
        "mmr_selected",
        input_count=len(candidates),
        output_count=len(selected),
        max_results=config.max_results,
    )
    return [candidates[i] for i in selected]
