"""Custom exception hierarchy for the recall engine."""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Machine-readable error kinds surfaced on the event stream."""

    BAD_INPUT = "BAD_INPUT"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    NO_EVIDENCE = "NO_EVIDENCE"
    INSUFFICIENT_EVIDENCE = "INSUFFICIENT_EVIDENCE"
    INSUFFICIENT_DIVERSITY = "INSUFFICIENT_DIVERSITY"
    MALFORMED_RESULT = "MALFORMED_RESULT"
    RATE_LIMITED = "RATE_LIMITED"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    INTERNAL = "INTERNAL"


class RecallEngineError(Exception):
    """Base exception for all recall engine errors."""

    kind: ErrorKind = ErrorKind.INTERNAL


class BadInputError(RecallEngineError):
    """Malformed or missing required input."""

    kind = ErrorKind.BAD_INPUT


class EmbeddingError(RecallEngineError):
    """Error generating embeddings."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class RetrievalError(RecallEngineError):
    """Error talking to the chunk store."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class GenerationError(RecallEngineError):
    """Error during answer generation."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class MalformedResultError(RecallEngineError):
    """The generation service returned unusable structured output."""

    kind = ErrorKind.MALFORMED_RESULT


class RateLimitedError(RecallEngineError):
    """Outbound request ceiling exceeded."""

    kind = ErrorKind.RATE_LIMITED


class UpstreamTimeoutError(RecallEngineError):
    """An outbound call or the whole session ran out of time."""

    kind = ErrorKind.UPSTREAM_TIMEOUT


class PersistenceError(RecallEngineError):
    """Error writing query or evaluation records."""


class StreamProtocolError(RecallEngineError):
    """An event was emitted out of protocol order."""
