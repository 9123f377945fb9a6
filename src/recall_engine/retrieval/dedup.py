"""Near-duplicate collapsing for retrieval candidates."""

from __future__ import annotations

from recall_engine.models.domain import Candidate
from recall_engine.observability.logger import get_logger
from recall_engine.retrieval.similarity import jaccard_similarity

logger = get_logger("dedup")


def dedupe(
    candidates: list[Candidate],
    similarity_threshold: float = 0.8,
) -> list[Candidate]:
    """Drop exact (content hash) and near (Jaccard) duplicates.

    The first occurrence wins; later duplicates are dropped, never merged.
    Quadratic in the number of accepted candidates, which stays in the low
    hundreds per request.
    """
    unique: list[Candidate] = []
    seen_hashes: set[str] = set()
    seen_texts: list[str] = []

    for candidate in candidates:
        content_hash = candidate.chunk.content_hash
        if content_hash and content_hash in seen_hashes:
            continue

        text = candidate.text
        if any(jaccard_similarity(text, seen) > similarity_threshold for seen in seen_texts):
            continue

        unique.append(candidate)
        if content_hash:
            seen_hashes.add(content_hash)
        seen_texts.append(text)

    logger.debug("deduplicated", input_count=len(candidates), output_count=len(unique))
    return unique
