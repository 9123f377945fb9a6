"""Pydantic models for API request/response serialization."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from recall_engine.models.domain import FilterSet
from recall_engine.retrieval.timestamps import ensure_utc


class QueryFilters(BaseModel):
    types: list[str] = Field(default_factory=list)
    room_ids: list[str] = Field(default_factory=list)
    date_from: datetime | None = None
    date_to: datetime | None = None
    participants: list[str] = Field(default_factory=list)

    def to_filter_set(self) -> FilterSet:
        return FilterSet(
            room_ids=tuple(self.room_ids),
            room_types=tuple(self.types),
            date_from=ensure_utc(self.date_from),
            date_to=ensure_utc(self.date_to),
            participants=tuple(self.participants),
        )


class QueryRequest(BaseModel):
    client_id: str = Field(min_length=1)
    conversation_id: str = Field(min_length=1)
    question: str = Field(min_length=1, max_length=1000)
    filters: QueryFilters = Field(default_factory=QueryFilters)

    @field_validator("question")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question must not be blank")
        return value.strip()


class HealthResponse(BaseModel):
    status: str
    chunk_count: int
    room_count: int


class EvaluationRequest(QueryRequest):
    """Evaluation of a named person; skips intent classification."""

    subject: str = Field(min_length=1, max_length=200)

    @field_validator("subject")
    @classmethod
    def _subject_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("subject must not be blank")
        return value.strip()


class FeedbackRequest(BaseModel):
    query_id: int = Field(ge=1)
    chunk_id: str = Field(min_length=1)
    useful: bool


class FeedbackResponse(BaseModel):
    saved: bool
    query_id: int
    chunk_id: str
