"""Translate relative time phrases ("last week", "past 3 days") into date bounds."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

from recall_engine.models.domain import FilterSet

_UNIT_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}


@dataclass(frozen=True)
class WindowRule:
    pattern: re.Pattern
    days: int | None  # None: read count and unit from the match


# Ordered: the first matching rule wins.
WINDOW_RULES: list[WindowRule] = [
    WindowRule(re.compile(r"\b(?:last|past)\s+(\d{1,3})\s+(day|week|month|year)s?\b", re.I), None),
    WindowRule(re.compile(r"\b(?:in|within|over|during) the (?:last|past)\s+(day|week|month|year)\b", re.I), None),
    WindowRule(re.compile(r"\b(?:last|past)\s+(day|week|month|year)\b", re.I), None),
    WindowRule(re.compile(r"\byesterday\b", re.I), 1),
    WindowRule(re.compile(r"\btoday\b", re.I), 1),
    WindowRule(re.compile(r"\bthis week\b", re.I), 7),
    WindowRule(re.compile(r"\bthis month\b", re.I), 30),
    WindowRule(re.compile(r"\bthis year\b", re.I), 365),
]


def window_days(question: str) -> int | None:
    """Number of days the question looks back over, or None."""
    for rule in WINDOW_RULES:
        match = rule.pattern.search(question)
        if not match:
            continue
        if rule.days is not None:
            return rule.days
        groups = [g for g in match.groups() if g]
        if len(groups) == 2:
            return int(groups[0]) * _UNIT_DAYS[groups[1].lower()]
        return _UNIT_DAYS[groups[0].lower()]
    return None


def is_time_window_question(question: str) -> bool:
    return window_days(question) is not None


def apply_time_window(
    question: str,
    filters: FilterSet,
    now: datetime | None = None,
) -> FilterSet:
    """Return filters narrowed to the question's time window.

    Bounds are intersected with any caller-supplied range so the result never
    widens the original filter set. No recognisable window: filters unchanged.
    """
    days = window_days(question)
    if days is None:
        return filters

    now = now or datetime.now(timezone.utc)
    window_from = now - timedelta(days=days)

    date_from = max(filters.date_from, window_from) if filters.date_from else window_from
    date_to = min(filters.date_to, now) if filters.date_to else now
    if date_from > date_to:
        # Disjoint with the caller's range: keep the caller's range.
        return filters
    return replace(filters, date_from=date_from, date_to=date_to)
