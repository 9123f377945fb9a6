"""Query and evaluation endpoints streaming answers as Server-Sent Events."""

from __future__ import annotations

import asyncio
from uuid import uuid4

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from recall_engine.api.dependencies import get_query_pipeline, get_settings
from recall_engine.config.settings import Settings
from recall_engine.models.schemas import EvaluationRequest, QueryRequest
from recall_engine.observability.logger import get_logger
from recall_engine.pipeline.query_pipeline import QueryPipeline
from recall_engine.streaming.session import StreamSession, run_session

logger = get_logger("routes_query")

router = APIRouter()


def _stream_response(
    body: QueryRequest,
    request: Request,
    pipeline: QueryPipeline,
    settings: Settings,
) -> StreamingResponse:
    correlation_id = str(uuid4())
    structlog.contextvars.bind_contextvars(corr_id=correlation_id)
    session = StreamSession(correlation_id)
    task = asyncio.create_task(
        run_session(pipeline, body, session, timeout_s=settings.session_timeout_s)
    )

    async def event_stream():
        try:
            async for event in session.events():
                if await request.is_disconnected():
                    logger.info("client_disconnected", corr_id=correlation_id)
                    break
                yield event.to_sse()
        finally:
            if not task.done():
                session.cancel()
                task.cancel()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
            "X-Correlation-ID": correlation_id,
        },
    )


@router.post("/query")
async def query(
    body: QueryRequest,
    request: Request,
    pipeline: QueryPipeline = Depends(get_query_pipeline),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    """Answer a question; the response is an ordered text/event-stream."""
    return _stream_response(body, request, pipeline, settings)


@router.post("/evaluate")
async def evaluate(
    body: EvaluationRequest,
    request: Request,
    pipeline: QueryPipeline = Depends(get_query_pipeline),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    """Evaluate the named subject against the client's rubric."""
    return _stream_response(body, request, pipeline, settings)
