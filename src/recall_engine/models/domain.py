"""Core domain objects used throughout the system."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import StrEnum


class Intent(StrEnum):
    CASUAL = "casual"
    RAG = "rag"
    EVALUATION = "evaluation"


@dataclass
class Chunk:
    chunk_id: str
    client_id: str
    room_id: str
    text: str
    first_ts: datetime | None
    last_ts: datetime | None
    participants: list[str] = field(default_factory=list)
    token_count: int = 0
    room_name: str = ""
    room_type: str = ""
    content_hash: str | None = None
    embedding: list[float] | None = None


@dataclass
class Candidate:
    chunk: Chunk
    score: float
    source: str  # "vector", "text", "hybrid"

    @property
    def chunk_id(self) -> str:
        return self.chunk.chunk_id

    @property
    def text(self) -> str:
        return self.chunk.text


@dataclass(frozen=True)
class FilterSet:
    """Caller-supplied retrieval constraints. Narrowed copies are made with
    ``dataclasses.replace``; the caller's instance is never changed."""

    room_ids: tuple[str, ...] = ()
    room_types: tuple[str, ...] = ()
    date_from: datetime | None = None
    date_to: datetime | None = None
    participants: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()

    def matches(self, chunk: Chunk) -> bool:
        if self.room_ids and chunk.room_id not in self.room_ids:
            return False
        if self.room_types and chunk.room_type not in self.room_types:
            return False
        if self.date_from and chunk.last_ts and chunk.last_ts < self.date_from:
            return False
        if self.date_to and chunk.first_ts and chunk.first_ts > self.date_to:
            return False
        if self.participants and not set(self.participants) & set(chunk.participants):
            return False
        if self.keywords:
            lowered = chunk.text.lower()
            if not any(k.lower() in lowered for k in self.keywords):
                return False
        return True

    def to_dict(self) -> dict:
        return {
            "room_ids": list(self.room_ids),
            "types": list(self.room_types),
            "date_from": self.date_from.isoformat() if self.date_from else None,
            "date_to": self.date_to.isoformat() if self.date_to else None,
            "participants": list(self.participants),
        }


@dataclass
class Citation:
    chunk_id: str
    room_id: str
    room_name: str
    room_type: str
    first_ts: str | None
    last_ts: str | None
    timestamp: str
    time_span: str
    preview: str
    score: float
    source: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Classification:
    intent: Intent
    subject: str | None = None
    method: str = "llm"  # "llm" or "pattern"


@dataclass
class Driver:
    key: str
    name: str
    description: str
    weight: float = 1.0
    negative_indicators: list[str] = field(default_factory=list)
    id: int | None = None


@dataclass
class DriverBehavior:
    driver_id: int
    positive_examples: list[str] = field(default_factory=list)
    negative_examples: list[str] = field(default_factory=list)


@dataclass
class DriverInstance:
    driver_id: int
    title: str
    takeaway: str


@dataclass
class EvaluationPolicy:
    name: str = "Default Policy"
    guidance: str = ""
    min_evidence_items: int = 3
    require_citations: bool = True
    require_multi_room: bool = True
    scale_min: float = 1.0
    scale_max: float = 5.0
    red_lines: list[str] = field(default_factory=list)
    id: int | None = None

    @property
    def scale_mid(self) -> float:
        return (self.scale_min + self.scale_max) / 2


@dataclass
class Rubric:
    drivers: list[Driver]
    behaviors: list[DriverBehavior]
    instances: list[DriverInstance]
    policy: EvaluationPolicy

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PolicyCheckResult:
    ok: bool
    reason: str | None = None
    kind: str | None = None  # ErrorKind value when not ok


@dataclass
class DriverScore:
    driver: str
    score: float
    weight: float
    reasoning: str = ""
    evidence_strength: str = "medium"  # "high", "medium", "low"


@dataclass
class ConfidenceBlock:
    overall_confidence: float | None = None
    evidence_quality: str = "limited"
    data_coverage: str = "insufficient"
    reliability_factors: list[str] = field(default_factory=list)


@dataclass
class EvaluationResult:
    subject: str
    scores: list[DriverScore]
    weighted_total: float
    strengths: list[str] = field(default_factory=list)
    growth_opportunities: list[str] = field(default_factory=list)
    contextual_insights: list[str] = field(default_factory=list)
    confidence: ConfidenceBlock = field(default_factory=ConfidenceBlock)
    summary: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ConversationTurn:
    question: str
    answer: str


@dataclass
class QueryRecord:
    client_id: str
    conversation_id: str
    question: str
    intent: str
    filters: dict
    answer: str
    citations: list[dict]
    evaluation_mode: bool
    latency_ms: float
    spans: list[dict] = field(default_factory=list)
