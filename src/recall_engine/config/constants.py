"""Fixed tables that are not worth exposing as settings."""

from __future__ import annotations

STOPWORDS = frozenset(
    """
    a about above after again against all am an and any are as at be because been
    before being below between both but by can did do does doing down during each
    few for from further had has have having he her here hers herself him himself
    his how i if in into is it its itself just me more most my myself no nor not
    now of off on once only or other our ours ourselves out over own same she
    should so some such than that the their theirs them themselves then there
    these they this those through to too under until up very was we were what
    when where which while who whom why will with you your yours yourself
    yourselves
    """.split()
)

DEADLINE_KEYWORDS = ("deadline", "due", "late", "missed", "behind", "delay", "overdue")

# Replacement query for the broadened retry of a keyword-narrowed search.
BROADENED_QUERY_TERMS = "work tasks project client response"

PREVIEW_CHARS = 200

RECENCY_DECAY_DAYS = 30.0

MAX_WEIGHT = 2.0

DEFAULT_POLICY = {
    "id": 0,
    "name": "Default Policy",
    "guidance": (
        "Always provide evidence and cite messages. "
        "Use only retrieved chat evidence for scoring."
    ),
    "min_evidence_items": 3,
    "require_citations": True,
    "require_multi_room": True,
    "scale_min": 1.0,
    "scale_max": 5.0,
    "red_lines": [],
}
