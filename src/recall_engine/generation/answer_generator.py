"""Answer generation for each intent, streamed as text fragments."""

from __future__ import annotations

from collections.abc import AsyncGenerator

from recall_engine.generation.prompt_templates import (
    CASUAL_PROMPT,
    CASUAL_SYSTEM,
    EVALUATION_PROMPT,
    EVALUATION_SYSTEM,
    GENERAL_EVALUATION_PROMPT,
    GENERAL_EVALUATION_SYSTEM,
    RAG_GENERAL_SYSTEM,
    RAG_PROMPT,
    RAG_SPECIFIC_INSTANCE_SYSTEM,
    RAG_TIME_WINDOW_SYSTEM,
    format_conversation_context,
    format_drivers_block,
    format_drivers_context,
    format_evidence_block,
    format_evidence_json,
)
from recall_engine.models.domain import ConversationTurn, Driver, Rubric
from recall_engine.observability.logger import get_logger
from recall_engine.protocols.llm import LLMProvider

logger = get_logger("generation")

RAG_SYSTEMS = {
    "specific_instance": RAG_SPECIFIC_INSTANCE_SYSTEM,
    "time_window": RAG_TIME_WINDOW_SYSTEM,
    "general": RAG_GENERAL_SYSTEM,
}


class AnswerGenerator:
    def __init__(
        self,
        llm: LLMProvider,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        evaluation_temperature: float = 0.2,
        evaluation_max_tokens: int = 6000,
    ) -> None:
        self._llm = llm
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._evaluation_temperature = evaluation_temperature
        self._evaluation_max_tokens = evaluation_max_tokens

    async def _stream(self, prompt: str, system: str, label: str) -> AsyncGenerator[str, None]:
        length = 0
        async for chunk in self._llm.generate_stream(
            prompt,
            system=system,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        ):
            length += len(chunk)
            yield chunk
        logger.info("generated_answer_stream", kind=label, answer_len=length)

    def stream_casual(
        self, question: str, context: list[ConversationTurn]
    ) -> AsyncGenerator[str, None]:
        prompt = CASUAL_PROMPT.format(
            conversation_context=format_conversation_context(context),
            question=question,
        )
        return self._stream(prompt, CASUAL_SYSTEM, "casual")

    def stream_rag(
        self,
        question: str,
        evidence: list[dict],
        context: list[ConversationTurn],
        drivers: list[Driver],
        style: str = "general",
    ) -> AsyncGenerator[str, None]:
        system = RAG_SYSTEMS[style].format(drivers_context=format_drivers_context(drivers))
        prompt = RAG_PROMPT.format(
            conversation_context=format_conversation_context(context),
            question=question,
            evidence_block=format_evidence_block(evidence),
        )
        return self._stream(prompt, system, f"rag_{style}")

    def stream_general_evaluation(
        self, question: str, subject: str, evidence: list[dict]
    ) -> AsyncGenerator[str, None]:
        """Qualitative narrative used when no rubric drivers are usable."""
        system = GENERAL_EVALUATION_SYSTEM.format(subject=subject)
        prompt = GENERAL_EVALUATION_PROMPT.format(
            question=question,
            subject=subject,
            evidence_block=format_evidence_block(evidence),
        )
        return self._stream(prompt, system, "general_evaluation")

    async def evaluate(
        self,
        question: str,
        subject: str,
        evidence: list[dict],
        rubric: Rubric,
    ) -> dict:
        """Raw structured evaluation; validated by the caller."""
        policy = rubric.policy
        system = EVALUATION_SYSTEM.format(
            drivers_block=format_drivers_block(rubric.drivers),
            guidance=policy.guidance or "None",
            driver_count=len(rubric.drivers),
            driver_keys=", ".join(d.key for d in rubric.drivers),
            scale_min=f"{policy.scale_min:g}",
            scale_max=f"{policy.scale_max:g}",
        )
        prompt = EVALUATION_PROMPT.format(
            question=question,
            subject=subject,
            evidence_json=format_evidence_json(evidence),
        )
        raw = await self._llm.generate_json(
            prompt,
            system=system,
            temperature=self._evaluation_temperature,
            max_tokens=self._evaluation_max_tokens,
        )
        scores = raw.get("scores")
        logger.info(
            "generated_evaluation",
            subject=subject,
            raw_scores=len(scores) if isinstance(scores, list) else 0,
        )
        return raw
