"""Ordered Server-Sent-Events session for one query.

Event order: connected -> meta -> citations -> token* -> evaluation_payload?
-> done, with error allowed at any point. done and error are terminal.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, StrEnum
from typing import Any, AsyncIterator, Protocol

from recall_engine.exceptions import ErrorKind, RecallEngineError, StreamProtocolError
from recall_engine.observability.logger import get_logger

logger = get_logger("stream")


class EventKind(StrEnum):
    CONNECTED = "connected"
    META = "meta"
    CITATIONS = "citations"
    TOKEN = "token"
    EVALUATION_PAYLOAD = "evaluation_payload"
    DONE = "done"
    ERROR = "error"


class _State(Enum):
    NEW = 0
    CONNECTED = 1
    META = 2
    CITATIONS = 3
    TOKENS = 4
    PAYLOAD = 5
    CLOSED = 6


# Which states each non-terminal event may be emitted from.
_ALLOWED_FROM: dict[EventKind, frozenset[_State]] = {
    EventKind.CONNECTED: frozenset({_State.NEW}),
    EventKind.META: frozenset({_State.CONNECTED}),
    EventKind.CITATIONS: frozenset({_State.META}),
    EventKind.TOKEN: frozenset({_State.CITATIONS, _State.TOKENS}),
    EventKind.EVALUATION_PAYLOAD: frozenset({_State.CITATIONS, _State.TOKENS}),
    EventKind.DONE: frozenset(
        {_State.CONNECTED, _State.META, _State.CITATIONS, _State.TOKENS, _State.PAYLOAD}
    ),
}
_NEXT_STATE: dict[EventKind, _State] = {
    EventKind.CONNECTED: _State.CONNECTED,
    EventKind.META: _State.META,
    EventKind.CITATIONS: _State.CITATIONS,
    EventKind.TOKEN: _State.TOKENS,
    EventKind.EVALUATION_PAYLOAD: _State.PAYLOAD,
    EventKind.DONE: _State.CLOSED,
    EventKind.ERROR: _State.CLOSED,
}


@dataclass(frozen=True)
class StreamEvent:
    kind: EventKind
    data: Any

    def to_sse(self) -> str:
        """Render as an SSE line group; multi-line data spans several data: lines."""
        payload = self.data if isinstance(self.data, str) else json.dumps(self.data, default=str)
        lines = [f"event: {self.kind}"]
        lines.extend(f"data: {line}" for line in payload.split("\n"))
        return "\n".join(lines) + "\n\n"


class StreamSession:
    def __init__(self, correlation_id: str) -> None:
        self.correlation_id = correlation_id
        self._state = _State.NEW
        self._cancelled = False
        self._queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        self.emitted: list[EventKind] = []

    @property
    def closed(self) -> bool:
        return self._state is _State.CLOSED

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _emit(self, kind: EventKind, data: Any) -> bool:
        if self.closed:
            logger.debug("event_dropped", kind=str(kind), cancelled=self._cancelled)
            return False
        if kind is not EventKind.ERROR and self._state not in _ALLOWED_FROM[kind]:
            raise StreamProtocolError(f"Cannot emit {kind} after {self._state.name.lower()}")

        self._state = _NEXT_STATE[kind]
        self.emitted.append(kind)
        self._queue.put_nowait(StreamEvent(kind, data))
        if self.closed:
            self._queue.put_nowait(None)
        return True

    def connected(self) -> bool:
        return self._emit(
            EventKind.CONNECTED,
            {
                "corr_id": self.correlation_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    def meta(self, **fields) -> bool:
        return self._emit(EventKind.META, {"corr_id": self.correlation_id, **fields})

    def citations(self, citations: list[dict]) -> bool:
        return self._emit(EventKind.CITATIONS, citations)

    def token(self, text: str) -> bool:
        if not text:
            return not self.closed
        return self._emit(EventKind.TOKEN, text)

    def evaluation_payload(self, payload: dict) -> bool:
        return self._emit(EventKind.EVALUATION_PAYLOAD, payload)

    def done(self, **fields) -> bool:
        return self._emit(EventKind.DONE, {"corr_id": self.correlation_id, **fields})

    def error(self, kind: ErrorKind | str, message: str) -> bool:
        return self._emit(
            EventKind.ERROR,
            {"corr_id": self.correlation_id, "kind": str(kind), "message": message},
        )

    def cancel(self) -> None:
        """Close on client disconnect. Later emissions return False."""
        if self.closed:
            return
        self._cancelled = True
        self._state = _State.CLOSED
        self._queue.put_nowait(None)
        logger.info("stream_cancelled", corr_id=self.correlation_id)

    async def events(self) -> AsyncIterator[StreamEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


class SessionPipeline(Protocol):
    async def run(self, request, session: StreamSession) -> None: ...


async def run_session(
    pipeline: SessionPipeline,
    request,
    session: StreamSession,
    timeout_s: float = 30.0,
) -> None:
    """Run one pipeline against a session, bounded by ``timeout_s``.

    Always leaves the session closed: a pipeline that returns without a
    terminal event gets an INTERNAL error appended.
    """
    session.connected()
    try:
        await asyncio.wait_for(pipeline.run(request, session), timeout=timeout_s)
    except asyncio.TimeoutError:
        logger.warning("session_timeout", corr_id=session.correlation_id, timeout_s=timeout_s)
        session.error(ErrorKind.UPSTREAM_TIMEOUT, f"Request timed out after {timeout_s:g}s")
    except asyncio.CancelledError:
        session.cancel()
        raise
    except RecallEngineError as e:
        logger.warning(
            "pipeline_failed",
            corr_id=session.correlation_id,
            kind=str(e.kind),
            error=str(e),
        )
        session.error(e.kind, str(e))
    except Exception:
        logger.exception("pipeline_internal_error", corr_id=session.correlation_id)
        session.error(ErrorKind.INTERNAL, "Internal error while answering the question")

    if not session.closed:
        logger.error("stream_not_terminated", corr_id=session.correlation_id)
        session.error(ErrorKind.INTERNAL, "Stream ended without a terminal event")
