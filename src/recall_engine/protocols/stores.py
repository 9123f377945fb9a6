"""Protocols for rubric and query persistence."""

from __future__ import annotations

from typing import Protocol

from recall_engine.models.domain import (
    ConversationTurn,
    EvaluationResult,
    QueryRecord,
    Rubric,
)


class RubricStore(Protocol):
    async def get_rubric(self, client_id: str) -> Rubric: ...


class QueryStore(Protocol):
    async def record_query(self, record: QueryRecord) -> int: ...

    async def record_evaluation(
        self,
        query_id: int,
        client_id: str,
        rubric: Rubric,
        result: EvaluationResult,
    ) -> int: ...

    async def get_conversation_context(
        self, conversation_id: str, limit: int = 10
    ) -> list[ConversationTurn]: ...
