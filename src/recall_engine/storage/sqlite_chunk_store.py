"""SQLite-backed chunk store with vector and lexical search."""

from __future__ import annotations

import asyncio
import json

import aiosqlite
import numpy as np
from rank_bm25 import BM25Plus

from recall_engine.exceptions import RetrievalError
from recall_engine.keyword_search.tokenizer import tokenize
from recall_engine.models.domain import Candidate, Chunk, FilterSet
from recall_engine.observability.logger import get_logger
from recall_engine.retrieval.timestamps import parse_timestamp
from recall_engine.storage.migrations import initialize_chunk_db

logger = get_logger("chunk_store")

_SELECT_CHUNKS = """
SELECT c.chunk_id, c.client_id, c.room_id, c.text, c.first_ts, c.last_ts,
       c.participants, c.token_count, c.content_hash, c.embedding,
       r.name AS room_name, r.room_type AS room_type
FROM chunks c LEFT JOIN rooms r ON r.room_id = c.room_id
WHERE c.client_id = ?
"""


def _row_to_chunk(row: aiosqlite.Row) -> Chunk:
    return Chunk(
        chunk_id=row["chunk_id"],
        client_id=row["client_id"],
        room_id=row["room_id"],
        text=row["text"],
        first_ts=parse_timestamp(row["first_ts"]),
        last_ts=parse_timestamp(row["last_ts"]),
        participants=json.loads(row["participants"]),
        token_count=row["token_count"],
        room_name=row["room_name"] or "",
        room_type=row["room_type"] or "",
        content_hash=row["content_hash"],
        embedding=json.loads(row["embedding"]) if row["embedding"] else None,
    )


def _rank_by_cosine(
    chunks: list[Chunk], embedding: list[float], limit: int
) -> list[tuple[Chunk, float]]:
    query = np.asarray(embedding, dtype=np.float32)
    usable = [c for c in chunks if c.embedding and len(c.embedding) == query.shape[0]]
    query_norm = np.linalg.norm(query)
    if not usable or query_norm == 0:
        return []

    matrix = np.asarray([c.embedding for c in usable], dtype=np.float32)
    norms = np.linalg.norm(matrix, axis=1)
    norms[norms == 0] = np.inf
    scores = np.clip(matrix @ query / (norms * query_norm), 0.0, 1.0)

    order = np.argsort(-scores, kind="stable")[:limit]
    return [(usable[i], float(scores[i])) for i in order]


def _rank_by_bm25(chunks: list[Chunk], query_text: str, limit: int) -> list[tuple[Chunk, float]]:
    query_tokens = tokenize(query_text)
    if not query_tokens or not chunks:
        return []

    corpus = [tokenize(c.text) for c in chunks]
    scores = BM25Plus(corpus).get_scores(query_tokens)
    wanted = set(query_tokens)
    # Only chunks sharing a term with the query count as lexical hits.
    hits = [i for i, doc in enumerate(corpus) if wanted.intersection(doc)]
    hits.sort(key=lambda i: -scores[i])
    return [(chunks[i], float(scores[i])) for i in hits[:limit]]


class SQLiteChunkStore:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_chunk_db(self._db_path)

    async def save_room(
        self, room_id: str, client_id: str, name: str, room_type: str = "group"
    ) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO rooms (room_id, client_id, name, room_type) VALUES (?, ?, ?, ?)",
                (room_id, client_id, name, room_type),
            )
            await db.commit()

    async def save_chunks(self, chunks: list[Chunk]) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.executemany(
                "INSERT OR REPLACE INTO chunks (chunk_id, client_id, room_id, text, first_ts, last_ts, "
                "participants, token_count, content_hash, embedding) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        c.chunk_id,
                        c.client_id,
                        c.room_id,
                        c.text,
                        c.first_ts.isoformat() if c.first_ts else None,
                        c.last_ts.isoformat() if c.last_ts else None,
                        json.dumps(c.participants),
                        c.token_count,
                        c.content_hash,
                        json.dumps(c.embedding) if c.embedding is not None else None,
                    )
                    for c in chunks
                ],
            )
            await db.commit()

    async def _load_scope(self, client_id: str, filters: FilterSet) -> list[Chunk]:
        """Chunks of one client that satisfy every filter dimension."""
        sql = _SELECT_CHUNKS
        params: list = [client_id]
        if filters.room_ids:
            sql += f" AND c.room_id IN ({','.join('?' for _ in filters.room_ids)})"
            params.extend(filters.room_ids)
        if filters.room_types:
            sql += f" AND r.room_type IN ({','.join('?' for _ in filters.room_types)})"
            params.extend(filters.room_types)

        try:
            async with aiosqlite.connect(self._db_path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute(sql, params) as cursor:
                    rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise RetrievalError(f"Chunk store query failed: {e}") from e

        return [chunk for chunk in map(_row_to_chunk, rows) if filters.matches(chunk)]

    async def search_vector(
        self,
        client_id: str,
        filters: FilterSet,
        embedding: list[float],
        limit: int = 50,
    ) -> list[Candidate]:
        scope = await self._load_scope(client_id, filters)
        ranked = await asyncio.to_thread(_rank_by_cosine, scope, embedding, limit)
        logger.debug("vector_search", scope=len(scope), hits=len(ranked))
        return [Candidate(chunk=c, score=s, source="vector") for c, s in ranked]

    async def search_text(
        self,
        client_id: str,
        filters: FilterSet,
        query_text: str,
        limit: int = 50,
    ) -> list[Candidate]:
        scope = await self._load_scope(client_id, filters)
        ranked = await asyncio.to_thread(_rank_by_bm25, scope, query_text, limit)
        logger.debug("text_search", scope=len(scope), hits=len(ranked))
        return [Candidate(chunk=c, score=s, source="text") for c, s in ranked]

    async def get_chunk_client(self, chunk_id: str) -> str | None:
        try:
            async with aiosqlite.connect(self._db_path) as db:
                async with db.execute(
                    "SELECT client_id FROM chunks WHERE chunk_id = ?", (chunk_id,)
                ) as cursor:
                    row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise RetrievalError(f"Chunk lookup failed: {e}") from e
        return row[0] if row else None

    async def count_chunks(self) -> int:
        async with aiosqlite.connect(self._db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM chunks") as cursor:
                row = await cursor.fetchone()
                return row[0]

    async def count_rooms(self) -> int:
        async with aiosqlite.connect(self._db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM rooms") as cursor:
                row = await cursor.fetchone()
                return row[0]
