"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from recall_engine.api.dependencies import get_chunk_store
from recall_engine.models.schemas import HealthResponse
from recall_engine.storage.sqlite_chunk_store import SQLiteChunkStore

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(
    chunk_store: SQLiteChunkStore = Depends(get_chunk_store),
) -> HealthResponse:
    return HealthResponse(
        status="ok",
        chunk_count=await chunk_store.count_chunks(),
        room_count=await chunk_store.count_rooms(),
    )
