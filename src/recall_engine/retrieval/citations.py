"""Turn reranked candidates into citation records for the event stream."""

from __future__ import annotations

from recall_engine.config.constants import PREVIEW_CHARS
from recall_engine.models.domain import Candidate, Citation
from recall_engine.retrieval.timestamps import format_date, format_timestamp


def preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def format_citation(candidate: Candidate) -> Citation:
    chunk = candidate.chunk
    return Citation(
        chunk_id=chunk.chunk_id,
        room_id=chunk.room_id,
        room_name=chunk.room_name or "Unknown Room",
        room_type=chunk.room_type,
        first_ts=chunk.first_ts.isoformat() if chunk.first_ts else None,
        last_ts=chunk.last_ts.isoformat() if chunk.last_ts else None,
        timestamp=format_timestamp(chunk.first_ts),
        time_span=f"{format_date(chunk.first_ts)} - {format_date(chunk.last_ts)}",
        preview=preview(chunk.text),
        score=round(candidate.score, 4),
        source=candidate.source,
    )


def format_citations(candidates: list[Candidate]) -> list[Citation]:
    return [format_citation(c) for c in candidates]
