"""Request id binding and timing middleware."""

from __future__ import annotations

import time
from uuid import uuid4

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from recall_engine.observability.logger import get_logger

logger = get_logger("middleware")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Binds a request id to the log context and reports time to first byte.

    Streaming responses return as soon as headers are ready, so the recorded
    duration covers routing and validation, not the whole event stream.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        start = time.monotonic()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                error=str(e),
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )
            raise

        ttfb_ms = round((time.monotonic() - start) * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Duration-MS"] = str(ttfb_ms)
        logger.info(
            "request_completed",
            method=request.method,
            status=response.status_code,
            ttfb_ms=ttfb_ms,
            streaming=response.headers.get("content-type", "").startswith("text/event-stream"),
        )
        return response
