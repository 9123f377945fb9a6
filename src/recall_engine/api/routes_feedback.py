"""Per-chunk usefulness feedback on answered queries."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from recall_engine.api.dependencies import get_chunk_store, get_query_store
from recall_engine.exceptions import RecallEngineError
from recall_engine.models.schemas import FeedbackRequest, FeedbackResponse
from recall_engine.observability.logger import get_logger
from recall_engine.storage.sqlite_chunk_store import SQLiteChunkStore
from recall_engine.storage.sqlite_query_store import SQLiteQueryStore

logger = get_logger("routes_feedback")

router = APIRouter()


@router.post("/feedback", response_model=FeedbackResponse)
async def feedback(
    body: FeedbackRequest,
    query_store: SQLiteQueryStore = Depends(get_query_store),
    chunk_store: SQLiteChunkStore = Depends(get_chunk_store),
) -> FeedbackResponse:
    try:
        query_client = await query_store.get_query_client(body.query_id)
        if query_client is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Query not found")

        chunk_client = await chunk_store.get_chunk_client(body.chunk_id)
        if chunk_client is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chunk not found")

        if query_client != chunk_client:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Query and chunk must belong to the same client",
            )

        await query_store.record_feedback(body.query_id, body.chunk_id, query_client, body.useful)
    except RecallEngineError as e:
        logger.error("feedback_failed", query_id=body.query_id, chunk_id=body.chunk_id, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))

    logger.info("feedback_recorded", query_id=body.query_id, chunk_id=body.chunk_id, useful=body.useful)
    return FeedbackResponse(saved=True, query_id=body.query_id, chunk_id=body.chunk_id)
