"""Question analysis that shapes the retrieval plan for evidence lookups."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime

from recall_engine.config.constants import DEADLINE_KEYWORDS
from recall_engine.models.domain import FilterSet
from recall_engine.observability.logger import get_logger
from recall_engine.query.time_window import apply_time_window, is_time_window_question

logger = get_logger("query_analysis")

DEADLINE_PATTERN = re.compile(
    r"\b(deadlines?|due dates?|late|missed|failed to meet|behind schedule)\b", re.I
)
SPECIFIC_INSTANCE_PATTERN = re.compile(
    r"\b(instances?|examples?|times|occasions?|has \w+ ever|failed to meet|missed|deadlines?)\b",
    re.I,
)
# Capitalised words that start sentences or questions, not names.
_NOT_NAMES = frozenset(
    """
    What Who When Where Why How Which Did Does Do Has Have Had Is Are Was Were Can
    Could Should Would Will Show Find List Give Tell Any The A An In On At For Q1 Q2
    Q3 Q4 I We Our My Monday Tuesday Wednesday Thursday Friday Saturday Sunday
    January February March April May June July August September October November
    December
    """.split()
)
_NAME_PATTERN = re.compile(r"\b([A-Z][a-z]+)\b")


@dataclass(frozen=True)
class QueryAnalysis:
    question: str
    filters: FilterSet
    is_time_window: bool
    is_deadline: bool
    is_specific_instance: bool
    target_person: str | None

    @property
    def search_query(self) -> str:
        # Repeating the name weights it more heavily in both searches.
        if self.target_person:
            return f"{self.question} {self.target_person}"
        return self.question


def find_target_person(question: str) -> str | None:
    for match in _NAME_PATTERN.finditer(question):
        if match.group(1) not in _NOT_NAMES:
            return match.group(1)
    return None


def analyze_question(
    question: str,
    filters: FilterSet,
    now: datetime | None = None,
) -> QueryAnalysis:
    is_time_window = is_time_window_question(question)
    is_deadline = DEADLINE_PATTERN.search(question) is not None

    enriched = apply_time_window(question, filters, now) if is_time_window else filters
    if is_deadline:
        enriched = replace(enriched, keywords=DEADLINE_KEYWORDS)

    analysis = QueryAnalysis(
        question=question,
        filters=enriched,
        is_time_window=is_time_window,
        is_deadline=is_deadline,
        is_specific_instance=SPECIFIC_INSTANCE_PATTERN.search(question) is not None,
        target_person=find_target_person(question),
    )
    logger.info(
        "query_analyzed",
        time_window=analysis.is_time_window,
        deadline=analysis.is_deadline,
        specific_instance=analysis.is_specific_instance,
        target_person=analysis.target_person,
        date_from=enriched.date_from.isoformat() if enriched.date_from else None,
    )
    return analysis
