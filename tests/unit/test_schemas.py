"""Tests for Pydantic schemas."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from recall_engine.models.schemas import (
    EvaluationRequest,
    FeedbackRequest,
    HealthResponse,
    QueryFilters,
    QueryRequest,
)


def test_query_request_defaults():
    req = QueryRequest(client_id="c1", conversation_id="conv", question="  What happened?  ")
    assert req.question == "What happened?"
    assert req.filters == QueryFilters()


def test_query_request_rejects_blank_question():
    with pytest.raises(ValidationError):
        QueryRequest(client_id="c1", conversation_id="conv", question="   ")


def test_query_request_rejects_long_question():
    with pytest.raises(ValidationError):
        QueryRequest(client_id="c1", conversation_id="conv", question="x" * 1001)


def test_query_request_requires_client():
    with pytest.raises(ValidationError):
        QueryRequest(client_id="", conversation_id="conv", question="hi")


def test_filters_to_filter_set_normalises_to_utc():
    filters = QueryFilters(
        types=["group"],
        room_ids=["r1", "r2"],
        date_from=datetime(2025, 3, 1, 9, 0),
        participants=["Sarah"],
    )
    fs = filters.to_filter_set()
    assert fs.room_ids == ("r1", "r2")
    assert fs.room_types == ("group",)
    assert fs.participants == ("Sarah",)
    assert fs.date_from == datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
    assert fs.date_to is None
    assert fs.keywords == ()


def test_filters_parse_from_json():
    req = QueryRequest.model_validate(
        {
            "client_id": "c1",
            "conversation_id": "conv",
            "question": "q",
            "filters": {"date_to": "2025-03-20T12:00:00Z"},
        }
    )
    assert req.filters.to_filter_set().date_to == datetime(2025, 3, 20, 12, tzinfo=timezone.utc)


def test_health_response():
    resp = HealthResponse(status="ok", chunk_count=100, room_count=4)
    assert resp.model_dump() == {"status": "ok", "chunk_count": 100, "room_count": 4}


def test_evaluation_request_strips_subject():
    req = EvaluationRequest(client_id="c1", conversation_id="conv", question="How is she?", subject=" Sarah ")
    assert req.subject == "Sarah"
    assert isinstance(req, QueryRequest)


def test_evaluation_request_rejects_blank_subject():
    with pytest.raises(ValidationError):
        EvaluationRequest(client_id="c1", conversation_id="conv", question="How is she?", subject="  ")


def test_feedback_request_requires_positive_query_id():
    with pytest.raises(ValidationError):
        FeedbackRequest(query_id=0, chunk_id="c1", useful=True)
