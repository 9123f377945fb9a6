"""Tests for the evidence policy and evaluation validation."""

import pytest

from recall_engine.exceptions import ErrorKind, MalformedResultError
from recall_engine.models.domain import Driver, EvaluationPolicy
from recall_engine.policy.evidence import (
    allows_diversity_leniency,
    check_policy,
    compact_evidence,
    create_short_summary,
    validate_and_clamp,
)

POLICY = EvaluationPolicy()
DRIVERS = [
    Driver(key="ownership", name="Ownership", description="Owns outcomes", weight=1.0),
    Driver(key="communication", name="Clear Communication", description="Keeps people informed", weight=0.5),
]


def _raw(*scores, **extra) -> dict:
    return {"scores": list(scores), **extra}


def test_too_few_items(candidate_factory):
    evidence = [candidate_factory("c1", room_id="a"), candidate_factory("c2", room_id="b")]
    result = check_policy(evidence, POLICY)
    assert not result.ok
    assert result.kind == ErrorKind.INSUFFICIENT_EVIDENCE
    assert result.reason == "Insufficient evidence: found 2 items, need at least 3"
    assert not allows_diversity_leniency(result, len(evidence))


def test_single_room_fails_diversity(candidate_factory):
    evidence = [candidate_factory(f"c{i}", room_id="a") for i in range(3)]
    result = check_policy(evidence, POLICY)
    assert not result.ok
    assert result.kind == ErrorKind.INSUFFICIENT_DIVERSITY
    assert "spans 1 room(s)" in result.reason
    assert allows_diversity_leniency(result, 3, min_items=3)
    assert not allows_diversity_leniency(result, 3, min_items=4)


def test_two_rooms_pass(candidate_factory):
    evidence = [
        candidate_factory("c1", room_id="a"),
        candidate_factory("c2", room_id="a"),
        candidate_factory("c3", room_id="b"),
    ]
    result = check_policy(evidence, POLICY)
    assert result.ok
    assert not allows_diversity_leniency(result, 3)


def test_multi_room_not_required(candidate_factory):
    evidence = [candidate_factory(f"c{i}", room_id="a") for i in range(3)]
    assert check_policy(evidence, EvaluationPolicy(require_multi_room=False)).ok


def test_compact_evidence(candidate_factory):
    candidate = candidate_factory("c1", text="x" * 300, room_id="room-a")
    (item,) = compact_evidence([candidate])
    assert item["chunk_id"] == "c1"
    assert item["room_name"] == "Room A"
    assert item["timestamp"] == "Mar 19, 2025, 12:00 PM"
    assert len(item["text"]) == 200


def test_weighted_total_recomputed():
    raw = _raw(
        {"driver": "ownership", "score": 4, "weight": 1.0},
        {"driver": "communication", "score": 2, "weight": 0.5},
        weighted_total=4.9,
    )
    result = validate_and_clamp(raw, POLICY, DRIVERS, subject="Sarah")
    assert result.subject == "Sarah"
    assert result.weighted_total == pytest.approx(10 / 3)


def test_scores_and_weights_clamped():
    raw = _raw(
        {"driver": "ownership", "score": 9, "weight": 7},
        {"driver": "communication", "score": -1, "weight": -2},
    )
    result = validate_and_clamp(raw, POLICY, DRIVERS)
    by_key = {s.driver: s for s in result.scores}
    assert by_key["ownership"].score == 5.0
    assert by_key["ownership"].weight == 2.0
    assert by_key["communication"].score == 1.0
    assert by_key["communication"].weight == 0.0
    assert result.weighted_total == pytest.approx(5.0)


def test_non_finite_values_are_unusable():
    raw = _raw(
        {"driver": "ownership", "score": "NaN", "weight": 1.0},
        {"driver": "communication", "score": 2, "weight": float("nan")},
        {"driver": "communication", "score": "inf"},
    )
    result = validate_and_clamp(raw, POLICY, DRIVERS)
    ownership, communication = result.scores
    # NaN score is dropped, so the driver is backfilled at mid-scale.
    assert ownership.score == 3.0
    assert ownership.evidence_strength == "low"
    # NaN weight falls back to the driver weight instead of the cap.
    assert communication.score == 2.0
    assert communication.weight == 0.5
    assert result.weighted_total == pytest.approx((3.0 * 1.0 + 2.0 * 0.5) / 1.5)


def test_infinite_confidence_ignored():
    raw = _raw({"driver": "ownership", "score": 4}, confidence_analysis={"overall_confidence": "inf"})
    assert validate_and_clamp(raw, POLICY, DRIVERS).confidence.overall_confidence is None


def test_unknown_dropped_and_missing_backfilled():
    raw = _raw(
        {"driver": "Clear Communication", "score": "4", "evidence_strength": "HIGH"},
        {"driver": "charisma", "score": 5},
        {"driver": "communication", "score": 1},
    )
    result = validate_and_clamp(raw, POLICY, DRIVERS)
    assert [s.driver for s in result.scores] == ["ownership", "communication"]
    ownership, communication = result.scores
    assert ownership.score == 3.0
    assert ownership.evidence_strength == "low"
    assert ownership.reasoning == "No evidence returned for this driver."
    # Matched by name, weight defaults to the driver's, duplicate ignored.
    assert communication.score == 4.0
    assert communication.weight == 0.5
    assert communication.evidence_strength == "high"


def test_zero_total_weight():
    drivers = [Driver(key="ownership", name="Ownership", description="", weight=0.0)]
    result = validate_and_clamp(_raw({"driver": "ownership", "score": 4}), POLICY, drivers)
    assert result.weighted_total == 0.0


@pytest.mark.parametrize(
    "raw",
    [
        {},
        {"scores": []},
        {"scores": "4/5"},
        _raw({"driver": "charisma", "score": 5}),
        _raw({"driver": "ownership", "score": "great"}),
        _raw("ownership: 4"),
        _raw({"driver": "ownership", "score": float("nan")}),
    ],
)
def test_malformed(raw):
    with pytest.raises(MalformedResultError):
        validate_and_clamp(raw, POLICY, DRIVERS)


def test_confidence_clamped():
    base = {"driver": "ownership", "score": 4}
    nested = validate_and_clamp(
        _raw(base, confidence_analysis={"overall_confidence": 1.7, "evidence_quality": "strong"}),
        POLICY,
        DRIVERS,
    )
    assert nested.confidence.overall_confidence == 1.0
    assert nested.confidence.evidence_quality == "strong"

    flat = validate_and_clamp(_raw(base, confidence=-0.2), POLICY, DRIVERS)
    assert flat.confidence.overall_confidence == 0.0

    missing = validate_and_clamp(_raw(base), POLICY, DRIVERS)
    assert missing.confidence.overall_confidence is None


def test_short_summary():
    raw = _raw(
        {"driver": "ownership", "score": 4},
        {"driver": "communication", "score": 2},
        strengths=["Clear updates", "Reliable", "Third"],
        growth_opportunities=["Earlier escalation"],
    )
    result = validate_and_clamp(raw, POLICY, DRIVERS)
    assert create_short_summary(result, POLICY) == (
        "Evaluation complete. Average score: 3.0/5. "
        "Key strengths: Clear updates, Reliable. "
        "Areas for attention: Earlier escalation."
    )
