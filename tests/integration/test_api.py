"""API tests: SSE framing, validation and health over a TestClient."""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from recall_engine.api.app import build_classifier, create_app
from recall_engine.generation.answer_generator import AnswerGenerator
from recall_engine.models.domain import QueryRecord
from recall_engine.pipeline.query_pipeline import QueryPipeline
from recall_engine.retrieval.hybrid_retriever import HybridRetriever
from recall_engine.storage.sqlite_chunk_store import SQLiteChunkStore
from recall_engine.storage.sqlite_query_store import SQLiteQueryStore
from recall_engine.storage.sqlite_rubric_store import SQLiteRubricStore


def parse_sse(body: str) -> list[tuple[str, str]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = block.split("\n")
        kind = lines[0].removeprefix("event: ")
        data = "\n".join(line.removeprefix("data: ") for line in lines[1:])
        events.append((kind, data))
    return events


@pytest.fixture
def client(settings, make_llm, make_store, chunk_factory):
    async def _setup():
        chunk_store = SQLiteChunkStore(settings.sqlite_db_path)
        await chunk_store.initialize()
        await chunk_store.save_room("room-a", "client-1", "Design Team")
        await chunk_store.save_chunks([chunk_factory("c1"), chunk_factory("c2", text="banner proofs")])
        rubric_store = SQLiteRubricStore(settings.sqlite_db_path)
        await rubric_store.initialize()
        query_store = SQLiteQueryStore(settings.sqlite_db_path)
        await query_store.initialize()
        return chunk_store, rubric_store, query_store

    chunk_store, rubric_store, query_store = asyncio.run(_setup())
    llm = make_llm(replies=["casual"], stream_chunks=["Hi", " there.\nHow can I help?"])

    app = create_app(use_lifespan=False)
    app.state.settings = settings
    app.state.chunk_store = chunk_store
    app.state.query_store = query_store
    app.state.query_pipeline = QueryPipeline(
        classifier=build_classifier(llm, settings),
        embedder=None,
        retriever=HybridRetriever(make_store()),
        rubric_store=rubric_store,
        query_store=query_store,
        answer_generator=AnswerGenerator(llm),
        settings=settings,
    )
    return TestClient(app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "chunk_count": 2, "room_count": 1}
    assert "X-Request-ID" in response.headers


def test_request_id_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_query_streams_events(client):
    response = client.post(
        "/query",
        json={"client_id": "client-1", "conversation_id": "conv-1", "question": "good morning"},
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    correlation_id = response.headers["X-Correlation-ID"]

    events = parse_sse(response.text)
    assert [kind for kind, _ in events] == ["connected", "meta", "citations", "token", "token", "done"]
    assert json.loads(events[0][1])["corr_id"] == correlation_id
    assert json.loads(events[1][1])["intent"] == "casual"
    assert json.loads(events[2][1]) == []
    # Multi-line tokens survive SSE framing.
    assert events[4][1] == " there.\nHow can I help?"
    assert json.loads(events[-1][1])["persisted"] is True


@pytest.mark.parametrize(
    "body",
    [
        {"client_id": "client-1", "conversation_id": "conv-1", "question": "   "},
        {"client_id": "client-1", "conversation_id": "conv-1"},
        {"client_id": "", "conversation_id": "conv-1", "question": "hi"},
    ],
)
def test_query_validation(client, body):
    assert client.post("/query", json=body).status_code == 422


def test_evaluate_streams_for_named_subject(client):
    response = client.post(
        "/evaluate",
        json={
            "client_id": "client-1",
            "conversation_id": "conv-1",
            "question": "How is she doing?",
            "subject": "  Sarah ",
        },
    )
    assert response.status_code == 200
    events = parse_sse(response.text)
    assert [kind for kind, _ in events][:2] == ["connected", "meta"]
    meta = json.loads(events[1][1])
    assert meta["intent"] == "evaluation"
    assert meta["subject"] == "Sarah"
    assert events[-1][0] == "done"


def test_evaluate_requires_subject(client):
    body = {"client_id": "client-1", "conversation_id": "conv-1", "question": "How is she doing?"}
    assert client.post("/evaluate", json=body).status_code == 422


def _stored_query(client, client_id: str = "client-1") -> int:
    record = QueryRecord(
        client_id=client_id,
        conversation_id="conv-1",
        question="Who sent the banner proofs?",
        intent="rag",
        filters={},
        answer="Tom did.",
        citations=[],
        evaluation_mode=False,
        latency_ms=5.0,
    )
    return asyncio.run(client.app.state.query_store.record_query(record))


def test_feedback_saved(client):
    query_id = _stored_query(client)
    response = client.post("/feedback", json={"query_id": query_id, "chunk_id": "c2", "useful": True})
    assert response.status_code == 200
    assert response.json() == {"saved": True, "query_id": query_id, "chunk_id": "c2"}
    assert asyncio.run(client.app.state.query_store.get_feedback(query_id)) == {"c2": True}


def test_feedback_unknown_query_or_chunk(client):
    query_id = _stored_query(client)
    missing_query = client.post("/feedback", json={"query_id": query_id + 100, "chunk_id": "c2", "useful": True})
    assert missing_query.status_code == 404
    missing_chunk = client.post("/feedback", json={"query_id": query_id, "chunk_id": "nope", "useful": True})
    assert missing_chunk.status_code == 404


def test_feedback_rejects_cross_client(client):
    query_id = _stored_query(client, client_id="client-2")
    response = client.post("/feedback", json={"query_id": query_id, "chunk_id": "c2", "useful": False})
    assert response.status_code == 400
    assert asyncio.run(client.app.state.query_store.get_feedback(query_id)) == {}
