"""Intent routing (casual / rag / evaluation) and evaluation-subject extraction.

Two tiers: an LLM classifier backed by a deterministic rule table. The rule
table is data so every rule can be enumerated in tests.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from recall_engine.exceptions import RecallEngineError
from recall_engine.generation.prompt_templates import (
    INTENT_CLASSIFICATION_PROMPT,
    SUBJECT_EXTRACTION_PROMPT,
)
from recall_engine.models.domain import Classification, Intent
from recall_engine.observability.logger import get_logger
from recall_engine.protocols.llm import LLMProvider

logger = get_logger("intent")


@dataclass(frozen=True)
class IntentRule:
    family: str
    pattern: re.Pattern
    intent: Intent


def _rules(family: str, intent: Intent, *patterns: str, flags: int = re.I) -> list[IntentRule]:
    return [IntentRule(family, re.compile(p, flags), intent) for p in patterns]


# Evaluated top to bottom; the first match decides.
INTENT_RULES: list[IntentRule] = [
    *_rules(
        "specific_instance",
        Intent.RAG,
        r"\b(instances?|examples?|times|occasions?) (when|where|of|that)\b",
        r"\b(give me|show me|find|list)\b.*\b(instances?|examples?|times)\b",
        r"\b(has \w+ ever|did \w+ ever|when did \w+)\b",
        r"\b(failed to meet|missed|late|delayed|behind)\b",
    ),
    *_rules(
        "deadline",
        Intent.RAG,
        r"\b(deadlines?|due dates?|timelines?|schedules?)\b",
    ),
    *_rules(
        "stored_facts",
        Intent.RAG,
        r"\bwhat did \w+ (say|mention|do|write)\b",
        r"\b(find|search|show)\b.*\b(messages?|discussions?|conversations?|chats?)\b",
        r"\bin (our|the) (chat|conversation|meeting)\b",
        r"\b(last conversation|previous discussion|what was discussed)\b",
        r"\b(who (said|did|mentioned)|what (happened|was said))\b",
        r"\bwhich (project|client|task|meeting)\b",
        r"\b(where (is|was|did)|how many times)\b",
    ),
    *_rules(
        "time_window",
        Intent.RAG,
        r"\b(last (week|month|day|year)|past (week|month))\b",
        r"\b(in the last|during the|within)\b",
        r"\b(yesterday|today|this week|this month)\b",
    ),
    *_rules(
        "overall_performance",
        Intent.EVALUATION,
        r"\b(how is|how's) \w+ (doing|performing|working)\b",
        r"\b(rate|rating|score|assess|evaluate|judge) \w+('s)?\b",
        r"\b(overall|general) performance\b",
        r"\b\w+('s)? (performance|skills|communication|leadership|teamwork) (overall|in general)\b",
        r"\b(feedback|review) (on|for|about) \w+('s)?\b",
        r"\b(what do you think (of|about)|opinion (of|on))\b",
        r"\b(good|bad|excellent|poor) (at|in|with)\b",
    ),
    *_rules(
        "greeting",
        Intent.CASUAL,
        r"^\s*(hi|hello|hey|thanks|thank you|good (morning|afternoon|evening)|how are)\b",
        r"\bwhat did i (ask|say|tell)\b.*\b(earlier|just now|before)\b",
        r"\b(what's|whats|what is) (the |today's )?(weather|temperature|time|date)\b",
        r"\bremind me what (i|we) were (talking|discussing)\b",
    ),
    *_rules(
        "conversation_history",
        Intent.RAG,
        r"\b(last|previous|recent)\b.*\b(conversation|discussion|meeting|chat)\b",
    ),
    # Name must be capitalised, the verb may not be.
    *_rules(
        "person_action",
        Intent.RAG,
        r"\b[A-Z][a-z]+ (?i:has|did|was|said|failed|missed|completed)\b",
        flags=0,
    ),
]

DEFAULT_INTENT = Intent.RAG

SUBJECT_PATTERNS: list[re.Pattern] = [
    re.compile(r"\b(?:how is|how's) (\w+) (?:doing|performing|working)\b", re.I),
    re.compile(r"\b(?:rate|evaluate|assess|judge) (\w+?)(?:'s)?\b", re.I),
    re.compile(r"\b(\w+)'s (?:performance|skills|work|communication|leadership|teamwork)\b", re.I),
    re.compile(r"\b(?:feedback|review) (?:on|for|about) (\w+?)(?:'s)?\b", re.I),
    re.compile(r"\b(?:think of|think about|opinion of|opinion on) (\w+?)(?:'s)?\b", re.I),
]
_NON_SUBJECTS = frozenset({"the", "team", "our", "their", "my", "his", "her", "everyone", "me", "us"})


class IntentClassifier(Protocol):
    async def classify(self, question: str) -> Intent | None: ...


class SubjectExtractor(Protocol):
    async def extract(self, question: str) -> str | None: ...


def parse_intent_label(text: str) -> Intent | None:
    """Find a category name in free text. 'evaluation' is checked first
    because question text echoed back may mention 'rag' as well."""
    lowered = text.strip().lower()
    for intent in (Intent.EVALUATION, Intent.CASUAL, Intent.RAG):
        if intent.value in lowered:
            return intent
    return None


class PatternIntentClassifier:
    def __init__(self, rules: list[IntentRule] | None = None, default: Intent = DEFAULT_INTENT) -> None:
        self._rules = rules if rules is not None else INTENT_RULES
        self._default = default

    def match(self, question: str) -> IntentRule | None:
        for rule in self._rules:
            if rule.pattern.search(question):
                return rule
        return None

    def classify_sync(self, question: str) -> Intent:
        rule = self.match(question)
        intent = rule.intent if rule else self._default
        logger.info(
            "pattern_classified",
            intent=str(intent),
            family=rule.family if rule else "default",
        )
        return intent

    async def classify(self, question: str) -> Intent:
        return self.classify_sync(question)


class LLMIntentClassifier:
    def __init__(self, llm: LLMProvider, temperature: float = 0.1, max_tokens: int = 50) -> None:
        self._llm = llm
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def classify(self, question: str) -> Intent | None:
        raw = await self._llm.generate(
            INTENT_CLASSIFICATION_PROMPT.format(question=question),
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        intent = parse_intent_label(raw)
        if intent is None:
            logger.warning("llm_intent_unrecognized", raw=raw[:50])
        return intent


class FallbackIntentClassifier:
    """Try the primary; use the fallback on failure or an unrecognised label."""

    def __init__(self, primary: IntentClassifier, fallback: PatternIntentClassifier) -> None:
        self._primary = primary
        self._fallback = fallback

    async def classify(self, question: str) -> tuple[Intent, str]:
        try:
            intent = await self._primary.classify(question)
        except RecallEngineError as e:
            logger.warning("llm_intent_failed", error=str(e))
            intent = None
        if intent is not None:
            return intent, "llm"
        return self._fallback.classify_sync(question), "pattern"


class PatternSubjectExtractor:
    def __init__(self, patterns: list[re.Pattern] | None = None) -> None:
        self._patterns = patterns if patterns is not None else SUBJECT_PATTERNS

    def extract_sync(self, question: str) -> str | None:
        for pattern in self._patterns:
            match = pattern.search(question)
            if not match:
                continue
            name = match.group(1)
            if len(name) > 1 and name.lower() not in _NON_SUBJECTS:
                return name
        return None

    async def extract(self, question: str) -> str | None:
        return self.extract_sync(question)


class LLMSubjectExtractor:
    def __init__(self, llm: LLMProvider, temperature: float = 0.1, max_tokens: int = 100) -> None:
        self._llm = llm
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def extract(self, question: str) -> str | None:
        raw = await self._llm.generate(
            SUBJECT_EXTRACTION_PROMPT.format(question=question),
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        return clean_subject(raw)


def clean_subject(raw: str) -> str | None:
    lines = raw.strip().splitlines()
    name = lines[0].strip().strip("\"'`.*") if lines else ""
    if name.lower().startswith("person's name:"):
        name = name.split(":", 1)[1].strip().strip("\"'`.")
    if name.lower() == "unknown" or len(name) < 2:
        return None
    return name


class QueryClassifier:
    """Intent plus, for evaluations, the subject being evaluated."""

    def __init__(
        self,
        intent_classifier: FallbackIntentClassifier,
        subject_extractor: SubjectExtractor,
        subject_fallback: PatternSubjectExtractor,
    ) -> None:
        self._intents = intent_classifier
        self._subjects = subject_extractor
        self._subject_fallback = subject_fallback

    async def classify(self, question: str) -> Classification:
        intent, method = await self._intents.classify(question)
        subject = None
        if intent == Intent.EVALUATION:
            subject = await self._extract_subject(question)

        logger.info("query_classified", intent=str(intent), method=method, subject=subject)
        return Classification(intent=intent, subject=subject, method=method)

    async def _extract_subject(self, question: str) -> str | None:
        try:
            return await self._subjects.extract(question)
        except RecallEngineError as e:
            logger.warning("subject_extraction_failed", error=str(e))
            return self._subject_fallback.extract_sync(question)
