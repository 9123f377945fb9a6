"""All prompt templates for the recall engine."""

from __future__ import annotations

import json

from recall_engine.models.domain import ConversationTurn, Driver

INTENT_CLASSIFICATION_PROMPT = """You are an intent classifier for a chat analysis system. Classify the user's question into one of these categories:

1. "casual" - General conversation, questions about the current conversation, knowledge questions unrelated to stored chat data.
   Examples: "what did I just ask?", "what's the weather?", "how are you?"

2. "rag" - Questions that require searching stored chat data for specific information, facts, instances or examples.
   Examples: "what did John say about the project?", "find discussions about deadlines", "instances when Monica was late", "has Sarah ever missed deadlines?"

3. "evaluation" - Questions asking for an assessment or rating of someone's overall performance or behaviour patterns.
   Examples: "how is Sarah performing overall?", "rate John's communication skills", "assess Maria's leadership"

If the question asks for SPECIFIC INSTANCES, EXAMPLES or FACTS from chat data it is "rag". If it asks for an OVERALL ASSESSMENT or RATING it is "evaluation".

Respond with ONLY the category name: "casual", "rag", or "evaluation".

User question: "{question}"

Classification:"""

SUBJECT_EXTRACTION_PROMPT = """Extract the name of the person being evaluated from this question.
Return ONLY the person's name, or "unknown" if no specific person is named.

Question: "{question}"

Person's name:"""

CASUAL_SYSTEM = """You are a helpful assistant for a team chat analysis tool.
Be conversational yet professional. Keep responses brief and helpful.
Use the earlier conversation when the user refers back to it."""

CASUAL_PROMPT = """{conversation_context}User: {question}"""

RAG_SPECIFIC_INSTANCE_SYSTEM = """You are an assistant that finds specific instances and examples in team chat conversations.

Instructions:
- Focus on SPECIFIC INSTANCES with dates and times where available.
- List examples chronologically.
- Include relevant details such as dates, participants and context.
- Cite evidence using [1], [2], etc. markers matching the evidence numbers.
- If no specific instances are found, say so clearly.
- Be factual and precise; avoid general assessments.{drivers_context}"""

RAG_TIME_WINDOW_SYSTEM = """You are an assistant that analyses team chat conversations within a time period.

Instructions:
- Focus on the time period mentioned in the question.
- Pay attention to timestamps and chronological order.
- Highlight relevant events or conversations within that period.
- Cite evidence using [1], [2], etc. markers matching the evidence numbers.
- If the evidence lacks time information, mention this limitation.{drivers_context}"""

RAG_GENERAL_SYSTEM = """You are an assistant that analyses team chat conversations.
Answer questions using ONLY the provided chat evidence and conversation history.
Cite evidence using [1], [2], etc. markers matching the evidence numbers.
If the evidence doesn't contain enough information, say so clearly.{drivers_context}"""

RAG_PROMPT = """{conversation_context}Question: {question}

Chat evidence:
{evidence_block}

Provide a clear, well-cited answer based on the evidence above."""

EVALUATION_SYSTEM = """You are a performance evaluator. Ground every judgement in the chat evidence provided.

Principles:
- Consider situational factors before judging.
- Apply each company driver as an interpretive lens.
- Present both strengths and growth opportunities.
- Use only the retrieved evidence for scoring.

Company drivers:
{drivers_block}

Policy guidance: {guidance}

Requirements:
- Return ONLY valid JSON, no markdown.
- Include a score for ALL {driver_count} drivers: {driver_keys}
- Scores are numbers between {scale_min} and {scale_max}.
- Weights are numbers between 0 and 2.

Required JSON schema:
{{
  "scores": [
    {{"driver": "driver_key", "score": number, "reasoning": "string", "weight": number, "evidence_strength": "high|medium|low"}}
  ],
  "contextual_insights": ["string"],
  "strengths": ["string"],
  "growth_opportunities": ["string"],
  "confidence_analysis": {{
    "overall_confidence": 0.0-1.0,
    "evidence_quality": "comprehensive|moderate|limited",
    "data_coverage": "multi_context|single_context|insufficient",
    "reliability_factors": ["string"]
  }},
  "weighted_total": number,
  "summary": "string"
}}"""

EVALUATION_PROMPT = """Performance evaluation request

Manager's question: "{question}"
Subject: {subject}

Evidence from conversations:
{evidence_json}

Analyse {subject}'s performance against each driver."""

GENERAL_EVALUATION_SYSTEM = """You are a performance analyst helping a manager understand {subject} as a team member.

Cover:
1. Behavioural patterns: how they communicate, respond and engage.
2. Work approach: thoroughness, quality focus, problem-solving style.
3. Team dynamics: contribution to collaboration.
4. Reliability: follow-through and accountability.
5. Growth orientation: evidence of learning and improvement.

Ground every observation in the chat evidence and cite it with [1], [2], etc.
Write a narrative assessment organised into clear sections."""

GENERAL_EVALUATION_PROMPT = """Manager's question: "{question}"
Subject: {subject}

Chat evidence:
{evidence_block}

Provide a qualitative assessment of {subject}."""


def format_evidence_block(evidence: list[dict]) -> str:
    """Number compacted evidence items as [1], [2], ... for citation markers."""
    parts = []
    for i, item in enumerate(evidence, 1):
        header = f"[{i}] {item.get('room_name') or item.get('room_id')} ({item.get('timestamp', 'No time')})"
        parts.append(f"{header}\n{item['text']}")
    return "\n\n".join(parts)


def format_evidence_json(evidence: list[dict]) -> str:
    return json.dumps(evidence, indent=2, default=str)


def format_conversation_context(turns: list[ConversationTurn]) -> str:
    if not turns:
        return ""
    lines = ["Previous conversation:"]
    for turn in turns:
        lines.append(f"User: {turn.question}")
        lines.append(f"Assistant: {turn.answer}")
    return "\n".join(lines) + "\n\n"


def format_drivers_context(drivers: list[Driver]) -> str:
    if not drivers:
        return ""
    lines = "\n".join(f"- {d.name}: {d.description}" for d in drivers)
    return f"\n\nCompany values context:\n{lines}"


def format_drivers_block(drivers: list[Driver]) -> str:
    return "\n".join(
        f"- {d.name} (key: {d.key}, weight: {d.weight}): {d.description}" for d in drivers
    )
