"""Tests for intent routing and subject extraction."""

import pytest

from recall_engine.exceptions import GenerationError
from recall_engine.models.domain import Intent
from recall_engine.query.intent import (
    INTENT_RULES,
    FallbackIntentClassifier,
    LLMIntentClassifier,
    LLMSubjectExtractor,
    PatternIntentClassifier,
    PatternSubjectExtractor,
    QueryClassifier,
    clean_subject,
    parse_intent_label,
)


@pytest.fixture
def patterns():
    return PatternIntentClassifier()


@pytest.fixture
def classifier(fake_llm):
    return QueryClassifier(
        FallbackIntentClassifier(LLMIntentClassifier(fake_llm), PatternIntentClassifier()),
        LLMSubjectExtractor(fake_llm),
        PatternSubjectExtractor(),
    )


@pytest.mark.parametrize(
    ("question", "intent", "family"),
    [
        ("good morning", Intent.CASUAL, "greeting"),
        ("Hi there!", Intent.CASUAL, "greeting"),
        ("What's the weather like?", Intent.CASUAL, "greeting"),
        ("How is Sarah performing overall?", Intent.EVALUATION, "overall_performance"),
        ("Rate John's communication", Intent.EVALUATION, "overall_performance"),
        ("Give me instances when Monica was late", Intent.RAG, "specific_instance"),
        ("When is the brochure deadline?", Intent.RAG, "deadline"),
        ("What did Tom say about the banner?", Intent.RAG, "stored_facts"),
        ("Anything new this week?", Intent.RAG, "time_window"),
        ("Monica has the latest files?", Intent.RAG, "person_action"),
    ],
)
def test_pattern_rules(patterns, question, intent, family):
    rule = patterns.match(question)
    assert rule is not None
    assert rule.family == family
    assert patterns.classify_sync(question) == intent


def test_person_action_needs_capitalised_name(patterns):
    assert patterns.match("monica has the latest files?") is None


def test_unmatched_defaults_to_rag(patterns):
    assert patterns.match("banner colours") is None
    assert patterns.classify_sync("banner colours") == Intent.RAG


def test_rule_table_families_in_order():
    families = list(dict.fromkeys(rule.family for rule in INTENT_RULES))
    assert families == [
        "specific_instance",
        "deadline",
        "stored_facts",
        "time_window",
        "overall_performance",
        "greeting",
        "conversation_history",
        "person_action",
    ]


@pytest.mark.parametrize(
    ("label", "intent"),
    [
        ("Evaluation", Intent.EVALUATION),
        ("  casual.\n", Intent.CASUAL),
        ("rag", Intent.RAG),
        ("rag or evaluation", Intent.EVALUATION),
        ("I am not sure", None),
    ],
)
def test_parse_intent_label(label, intent):
    assert parse_intent_label(label) == intent


async def test_llm_classifier(fake_llm):
    fake_llm.replies = ["  Evaluation\n"]
    assert await LLMIntentClassifier(fake_llm).classify("anything") == Intent.EVALUATION


async def test_fallback_on_llm_error(fake_llm):
    fake_llm.replies = [GenerationError("down")]
    classifier = FallbackIntentClassifier(LLMIntentClassifier(fake_llm), PatternIntentClassifier())
    assert await classifier.classify("good morning") == (Intent.CASUAL, "pattern")


async def test_fallback_on_unrecognised_label(fake_llm):
    fake_llm.replies = ["no idea"]
    classifier = FallbackIntentClassifier(LLMIntentClassifier(fake_llm), PatternIntentClassifier())
    assert await classifier.classify("How is Sarah performing?") == (Intent.EVALUATION, "pattern")


async def test_llm_label_wins(fake_llm):
    fake_llm.replies = ["casual"]
    classifier = FallbackIntentClassifier(LLMIntentClassifier(fake_llm), PatternIntentClassifier())
    assert await classifier.classify("How is Sarah performing?") == (Intent.CASUAL, "llm")


@pytest.mark.parametrize(
    ("question", "subject"),
    [
        ("How is Sarah performing overall?", "Sarah"),
        ("Rate John's communication", "John"),
        ("What do you think of Priya's work?", "Priya"),
        ("evaluate the team", None),
        ("banner colours", None),
    ],
)
def test_pattern_subject_extraction(question, subject):
    assert PatternSubjectExtractor().extract_sync(question) == subject


@pytest.mark.parametrize(
    ("raw", "subject"),
    [
        ("Sarah", "Sarah"),
        ("  \"Sarah\"\nsome explanation", "Sarah"),
        ("Person's name: Tom", "Tom"),
        ("Unknown", None),
        ("S", None),
        ("", None),
    ],
)
def test_clean_subject(raw, subject):
    assert clean_subject(raw) == subject


async def test_evaluation_gets_subject(classifier, fake_llm):
    fake_llm.replies = ["evaluation", "Sarah"]
    result = await classifier.classify("How is she doing on the Acme account?")
    assert result.intent == Intent.EVALUATION
    assert result.subject == "Sarah"
    assert result.method == "llm"


async def test_unknown_subject_is_none(classifier, fake_llm):
    fake_llm.replies = ["evaluation", "unknown"]
    result = await classifier.classify("How is everyone doing?")
    assert result.subject is None


async def test_subject_falls_back_to_patterns(classifier, fake_llm):
    fake_llm.replies = ["evaluation", GenerationError("down")]
    result = await classifier.classify("How is Sarah performing overall?")
    assert result.subject == "Sarah"


async def test_rag_skips_subject_extraction(classifier, fake_llm):
    fake_llm.replies = ["rag"]
    result = await classifier.classify("What did Tom say?")
    assert result.intent == Intent.RAG
    assert result.subject is None
    assert len(fake_llm.calls) == 1
