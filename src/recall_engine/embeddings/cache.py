"""SQLite-backed embedding cache to avoid re-embedding identical text."""

from __future__ import annotations

import hashlib
import json

import aiosqlite

CREATE_CACHE_TABLE = """
CREATE TABLE IF NOT EXISTS embedding_cache (
    text_hash TEXT PRIMARY KEY,
    model TEXT NOT NULL,
    embedding TEXT NOT NULL
)
"""


class EmbeddingCache:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(CREATE_CACHE_TABLE)
            await db.commit()

    async def get(self, model: str, text: str) -> list[float] | None:
        async with aiosqlite.connect(self._db_path) as db:
            async with db.execute(
                "SELECT embedding FROM embedding_cache WHERE text_hash = ?",
                (self._hash(model, text),),
            ) as cursor:
                row = await cursor.fetchone()
                if row is None:
                    return None
                return json.loads(row[0])

    async def put(self, model: str, text: str, embedding: list[float]) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO embedding_cache (text_hash, model, embedding) VALUES (?, ?, ?)",
                (self._hash(model, text), model, json.dumps(embedding)),
            )
            await db.commit()

    @staticmethod
    def _hash(model: str, text: str) -> str:
        return hashlib.sha256(f"{model}\x00{text}".encode("utf-8")).hexdigest()
