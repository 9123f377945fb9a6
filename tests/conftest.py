"""Shared test fixtures."""

from __future__ import annotations

import hashlib
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from recall_engine.config.settings import Settings
from recall_engine.models.domain import Candidate, Chunk

NOW = datetime(2025, 3, 20, 12, 0, tzinfo=timezone.utc)


class FakeLLM:
    """Scripted LLM provider that records every call."""

    def __init__(
        self,
        replies: list | None = None,
        stream_chunks: list[str] | None = None,
        json_result=None,
    ) -> None:
        self.replies = list(replies or [])
        self.stream_chunks = stream_chunks if stream_chunks is not None else ["Hello", " world."]
        self.json_result = json_result
        self.calls: list[tuple[str, str | None]] = []
        self.prompts: list[str] = []

    async def generate(self, prompt, system=None, temperature=0.1, max_tokens=4096):
        self.calls.append(("generate", system))
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if self.replies else "rag"
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def generate_stream(self, prompt, system=None, temperature=0.3, max_tokens=4096):
        self.calls.append(("stream", system))
        self.prompts.append(prompt)
        for chunk in self.stream_chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    async def generate_json(self, prompt, system=None, temperature=0.2, max_tokens=6000):
        self.calls.append(("json", system))
        self.prompts.append(prompt)
        if isinstance(self.json_result, Exception):
            raise self.json_result
        return self.json_result


class FakeEmbedder:
    def __init__(self, vector: list[float] | None = None) -> None:
        self.vector = vector if vector is not None else [1.0, 0.0, 0.0]
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float] | None:
        self.calls.append(text)
        return self.vector


class FakeChunkStore:
    """Returns canned candidates; an Exception entry makes that search fail."""

    def __init__(self, vector_results=None, text_results=None) -> None:
        self.vector_results = vector_results if vector_results is not None else []
        self.text_results = text_results if text_results is not None else []
        self.vector_calls: list[tuple] = []
        self.text_calls: list[tuple] = []

    async def search_vector(self, client_id, filters, embedding, limit=50):
        self.vector_calls.append((client_id, filters, embedding))
        if isinstance(self.vector_results, Exception):
            raise self.vector_results
        return [c for c in self.vector_results if filters.matches(c.chunk)]

    async def search_text(self, client_id, filters, query_text, limit=50):
        self.text_calls.append((client_id, filters, query_text))
        if isinstance(self.text_results, Exception):
            raise self.text_results
        return [c for c in self.text_results if filters.matches(c.chunk)]


def make_chunk(
    chunk_id: str,
    text: str | None = None,
    room_id: str = "room-a",
    days_ago: float = 1.0,
    now: datetime = NOW,
    **kwargs,
) -> Chunk:
    text = text if text is not None else f"message body for {chunk_id}"
    first_ts = now - timedelta(days=days_ago)
    return Chunk(
        chunk_id=chunk_id,
        client_id=kwargs.pop("client_id", "client-1"),
        room_id=room_id,
        text=text,
        first_ts=first_ts,
        last_ts=first_ts + timedelta(minutes=30),
        room_name=kwargs.pop("room_name", room_id.replace("-", " ").title()),
        room_type=kwargs.pop("room_type", "group"),
        content_hash=hashlib.sha256(text.encode("utf-8")).hexdigest(),
        **kwargs,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def chunk_factory():
    return make_chunk


@pytest.fixture
def candidate_factory():
    def _make(chunk_id: str, score: float = 0.5, source: str = "vector", **kwargs) -> Candidate:
        return Candidate(chunk=make_chunk(chunk_id, **kwargs), score=score, source=source)

    return _make


@pytest.fixture
def settings():
    """Test settings with temp paths."""
    tmp = tempfile.mkdtemp()
    return Settings(
        openai_api_key="test-key",
        google_api_key="test-key",
        embedding_provider="none",
        sqlite_db_path=str(Path(tmp) / "test_recall.db"),
        embedding_cache_db_path=str(Path(tmp) / "test_cache.db"),
        json_logs=False,
    )


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def tmp_dir():
    """Create a temporary directory."""
    return tempfile.mkdtemp()


@pytest.fixture
def make_store():
    return FakeChunkStore


@pytest.fixture
def make_llm():
    return FakeLLM
