"""Idempotent database schema creation."""

from __future__ import annotations

import aiosqlite

ROOMS_TABLE = """
CREATE TABLE IF NOT EXISTS rooms (
    room_id TEXT PRIMARY KEY,
    client_id TEXT NOT NULL,
    name TEXT NOT NULL,
    room_type TEXT NOT NULL DEFAULT 'group'
)
"""

CHUNKS_TABLE = """
CREATE TABLE IF NOT EXISTS chunks (
    chunk_id TEXT PRIMARY KEY,
    client_id TEXT NOT NULL,
    room_id TEXT NOT NULL,
    text TEXT NOT NULL,
    first_ts TEXT,
    last_ts TEXT,
    participants TEXT NOT NULL DEFAULT '[]',
    token_count INTEGER NOT NULL DEFAULT 0,
    content_hash TEXT,
    embedding TEXT,
    FOREIGN KEY (room_id) REFERENCES rooms(room_id)
)
"""

CHUNKS_CLIENT_INDEX = """
CREATE INDEX IF NOT EXISTS idx_chunks_client_room ON chunks(client_id, room_id)
"""

DRIVERS_TABLE = """
CREATE TABLE IF NOT EXISTS drivers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    client_id TEXT NOT NULL,
    key TEXT NOT NULL,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    weight REAL NOT NULL DEFAULT 1.0,
    negative_indicators TEXT NOT NULL DEFAULT '[]',
    UNIQUE (client_id, key)
)
"""

DRIVER_BEHAVIORS_TABLE = """
CREATE TABLE IF NOT EXISTS driver_behaviors (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    driver_id INTEGER NOT NULL,
    positive_examples TEXT NOT NULL DEFAULT '[]',
    negative_examples TEXT NOT NULL DEFAULT '[]',
    FOREIGN KEY (driver_id) REFERENCES drivers(id)
)
"""

DRIVER_INSTANCES_TABLE = """
CREATE TABLE IF NOT EXISTS driver_instances (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    driver_id INTEGER NOT NULL,
    title TEXT NOT NULL,
    takeaway TEXT NOT NULL DEFAULT '',
    FOREIGN KEY (driver_id) REFERENCES drivers(id)
)
"""

EVALUATION_POLICIES_TABLE = """
CREATE TABLE IF NOT EXISTS evaluation_policies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    client_id TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    guidance TEXT NOT NULL DEFAULT '',
    min_evidence_items INTEGER NOT NULL DEFAULT 3,
    require_citations INTEGER NOT NULL DEFAULT 1,
    require_multi_room INTEGER NOT NULL DEFAULT 1,
    scale_min REAL NOT NULL DEFAULT 1.0,
    scale_max REAL NOT NULL DEFAULT 5.0,
    red_lines TEXT NOT NULL DEFAULT '[]'
)
"""

QUERIES_TABLE = """
CREATE TABLE IF NOT EXISTS queries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    client_id TEXT NOT NULL,
    conversation_id TEXT NOT NULL,
    question TEXT NOT NULL,
    intent TEXT NOT NULL,
    filters TEXT NOT NULL DEFAULT '{}',
    answer TEXT NOT NULL,
    citations TEXT NOT NULL DEFAULT '[]',
    evaluation_mode INTEGER NOT NULL DEFAULT 0,
    latency_ms REAL NOT NULL,
    spans TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL
)
"""

QUERIES_CONVERSATION_INDEX = """
CREATE INDEX IF NOT EXISTS idx_queries_conversation ON queries(conversation_id, id)
"""

EVALUATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS evaluations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    query_id INTEGER NOT NULL,
    client_id TEXT NOT NULL,
    subject TEXT NOT NULL,
    rubric TEXT NOT NULL,
    scores TEXT NOT NULL,
    weighted_total REAL NOT NULL,
    result TEXT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY (query_id) REFERENCES queries(id)
)
"""


FEEDBACK_TABLE = """
CREATE TABLE IF NOT EXISTS feedback (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    query_id INTEGER NOT NULL,
    chunk_id TEXT NOT NULL,
    client_id TEXT NOT NULL,
    useful INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (query_id, chunk_id),
    FOREIGN KEY (query_id) REFERENCES queries(id)
)
"""

async def initialize_chunk_db(db_path: str) -> None:
    async with aiosqlite.connect(db_path) as db:
        await db.execute(ROOMS_TABLE)
        await db.execute(CHUNKS_TABLE)
        await db.execute(CHUNKS_CLIENT_INDEX)
        await db.commit()


async def initialize_rubric_db(db_path: str) -> None:
    async with aiosqlite.connect(db_path) as db:
        await db.execute(DRIVERS_TABLE)
        await db.execute(DRIVER_BEHAVIORS_TABLE)
        await db.execute(DRIVER_INSTANCES_TABLE)
        await db.execute(EVALUATION_POLICIES_TABLE)
        await db.commit()


async def initialize_query_db(db_path: str) -> None:
    async with aiosqlite.connect(db_path) as db:
        await db.execute(QUERIES_TABLE)
        await db.execute(QUERIES_CONVERSATION_INDEX)
        await db.execute(EVALUATIONS_TABLE)
        await db.execute(FEEDBACK_TABLE)
        await db.commit()
