"""Seed the system with sample rooms, chunks and drivers for development."""

from __future__ import annotations

import asyncio
import hashlib
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from recall_engine.api.app import build_embedder
from recall_engine.config.settings import Settings
from recall_engine.models.domain import Chunk, Driver, EvaluationPolicy
from recall_engine.storage.sqlite_chunk_store import SQLiteChunkStore
from recall_engine.storage.sqlite_query_store import SQLiteQueryStore
from recall_engine.storage.sqlite_rubric_store import SQLiteRubricStore

CLIENT_ID = "demo-client"

SAMPLE_ROOMS = [
    ("room-launch", "Q3 Launch", "group"),
    ("room-design", "Design Reviews", "group"),
    ("room-sarah", "Sarah / Manager", "direct"),
]

# (room_id, days_ago, participants, text)
SAMPLE_MESSAGES = [
    ("room-launch", 3, ["Sarah", "Priya"],
     "Sarah: The Q3 deadline moved to Friday. Priya: I'll update the client timeline today."),
    ("room-launch", 12, ["Sarah", "Tom"],
     "Tom: We missed the asset handoff yesterday, sorry. Sarah: No problem, let's replan the launch tasks."),
    ("room-launch", 40, ["Tom", "Priya"],
     "Priya: Client approved the campaign brief. Tom: Great, starting production next week."),
    ("room-design", 5, ["Sarah", "Lee"],
     "Lee: Sarah's mockups were thorough and shipped a day early. Sarah: Thanks, feedback welcome."),
    ("room-design", 20, ["Lee", "Tom"],
     "Tom: The banner revisions are running behind because of late copy. Lee: Flag it in standup."),
    ("room-sarah", 8, ["Sarah", "Manager"],
     "Manager: How is the launch going? Sarah: On track, I resolved the vendor delay over the weekend."),
]

SAMPLE_DRIVERS = [
    Driver(key="ownership", name="Ownership", description="Takes responsibility for outcomes", weight=1.0),
    Driver(key="communication", name="Communication", description="Keeps people informed clearly and early", weight=1.0),
    Driver(key="craft", name="Craft", description="Delivers high quality work", weight=0.5),
]


async def main():
    settings = Settings()

    Path(settings.sqlite_db_path).parent.mkdir(parents=True, exist_ok=True)

    chunk_store = SQLiteChunkStore(settings.sqlite_db_path)
    await chunk_store.initialize()
    rubric_store = SQLiteRubricStore(settings.sqlite_db_path)
    await rubric_store.initialize()
    await SQLiteQueryStore(settings.sqlite_db_path).initialize()

    embedder = build_embedder(settings)
    now = datetime.now(timezone.utc)

    for room_id, name, room_type in SAMPLE_ROOMS:
        await chunk_store.save_room(room_id, CLIENT_ID, name, room_type)

    chunks = []
    for i, (room_id, days_ago, participants, text) in enumerate(SAMPLE_MESSAGES):
        first_ts = now - timedelta(days=days_ago)
        embedding = await embedder.embed(text) if embedder is not None else None
        chunks.append(
            Chunk(
                chunk_id=f"chunk-{i:03d}",
                client_id=CLIENT_ID,
                room_id=room_id,
                text=text,
                first_ts=first_ts,
                last_ts=first_ts + timedelta(minutes=30),
                participants=participants,
                token_count=len(text.split()),
                content_hash=hashlib.sha256(text.encode("utf-8")).hexdigest(),
                embedding=embedding,
            )
        )
    await chunk_store.save_chunks(chunks)

    for driver in SAMPLE_DRIVERS:
        await rubric_store.save_driver(CLIENT_ID, driver)
    await rubric_store.save_policy(CLIENT_ID, EvaluationPolicy(guidance="Cite messages for every score."))

    print(f"Client: {CLIENT_ID}")
    print(f"Total rooms: {await chunk_store.count_rooms()}")
    print(f"Total chunks: {await chunk_store.count_chunks()}")
    print(f"Drivers: {len(SAMPLE_DRIVERS)} (embeddings: {settings.embedding_provider})")


if __name__ == "__main__":
    asyncio.run(main())
