"""SQLite-backed persistence of answered queries and evaluations."""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone

import aiosqlite

from recall_engine.exceptions import PersistenceError
from recall_engine.models.domain import (
    ConversationTurn,
    EvaluationResult,
    QueryRecord,
    Rubric,
)
from recall_engine.storage.migrations import initialize_query_db


class SQLiteQueryStore:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_query_db(self._db_path)

    async def record_query(self, record: QueryRecord) -> int:
        try:
            async with aiosqlite.connect(self._db_path) as db:
                cursor = await db.execute(
                    "INSERT INTO queries (client_id, conversation_id, question, intent, filters, answer, "
                    "citations, evaluation_mode, latency_ms, spans, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.client_id,
                        record.conversation_id,
                        record.question,
                        record.intent,
                        json.dumps(record.filters),
                        record.answer,
                        json.dumps(record.citations),
                        int(record.evaluation_mode),
                        record.latency_ms,
                        json.dumps(record.spans),
                        datetime.now(timezone.utc).isoformat(),
                    ),
                )
                await db.commit()
                return cursor.lastrowid
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to record query: {e}") from e

    async def record_evaluation(
        self,
        query_id: int,
        client_id: str,
        rubric: Rubric,
        result: EvaluationResult,
    ) -> int:
        try:
            async with aiosqlite.connect(self._db_path) as db:
                cursor = await db.execute(
                    "INSERT INTO evaluations (query_id, client_id, subject, rubric, scores, weighted_total, "
                    "result, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        query_id,
                        client_id,
                        result.subject,
                        json.dumps(rubric.to_dict()),
                        json.dumps([asdict(s) for s in result.scores]),
                        result.weighted_total,
                        json.dumps(result.to_dict()),
                        datetime.now(timezone.utc).isoformat(),
                    ),
                )
                await db.commit()
                return cursor.lastrowid
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to record evaluation: {e}") from e

    async def get_conversation_context(
        self, conversation_id: str, limit: int = 10
    ) -> list[ConversationTurn]:
        """Most recent turns of a conversation, oldest first."""
        try:
            async with aiosqlite.connect(self._db_path) as db:
                async with db.execute(
                    "SELECT question, answer FROM queries WHERE conversation_id = ? "
                    "ORDER BY id DESC LIMIT ?",
                    (conversation_id, limit),
                ) as cursor:
                    rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to load conversation context: {e}") from e
        return [ConversationTurn(question=q, answer=a) for q, a in reversed(rows)]

    async def get_evaluation(self, query_id: int) -> dict | None:
        async with aiosqlite.connect(self._db_path) as db:
            async with db.execute(
                "SELECT result FROM evaluations WHERE query_id = ?", (query_id,)
            ) as cursor:
                row = await cursor.fetchone()
        return json.loads(row[0]) if row else None

    async def get_query_client(self, query_id: int) -> str | None:
        try:
            async with aiosqlite.connect(self._db_path) as db:
                async with db.execute(
                    "SELECT client_id FROM queries WHERE id = ?", (query_id,)
                ) as cursor:
                    row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to load query: {e}") from e
        return row[0] if row else None

    async def record_feedback(
        self, query_id: int, chunk_id: str, client_id: str, useful: bool
    ) -> None:
        """Insert or replace the usefulness flag for one cited chunk."""
        now = datetime.now(timezone.utc).isoformat()
        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute(
                    "INSERT INTO feedback (query_id, chunk_id, client_id, useful, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?) "
                    "ON CONFLICT(query_id, chunk_id) DO UPDATE SET "
                    "useful = excluded.useful, updated_at = excluded.updated_at",
                    (query_id, chunk_id, client_id, int(useful), now, now),
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to record feedback: {e}") from e

    async def get_feedback(self, query_id: int) -> dict[str, bool]:
        async with aiosqlite.connect(self._db_path) as db:
            async with db.execute(
                "SELECT chunk_id, useful FROM feedback WHERE query_id = ?", (query_id,)
            ) as cursor:
                rows = await cursor.fetchall()
        return {chunk_id: bool(useful) for chunk_id, useful in rows}
