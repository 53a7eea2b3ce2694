"""Answer generation agent using pydantic-ai.

Prompts are built from compact artifacts only: an EntityContext (stats +
sentiment digest) for entity questions, or the ranked candidate list for
global questions. Raw feedback never reaches the model, so prompt size does
not grow with the corpus.
"""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic_ai import Agent

from rateit.config import settings
from rateit.exceptions import ExternalServiceUnavailable
from rateit.inference.llm import create_chat_model
from rateit.schemas import AggregateStats, EntityContext, RankedCandidate

logger = logging.getLogger(__name__)

ANSWER_SYSTEM_PROMPT = """\
You are a friendly student advisor answering questions about schools using \
aggregated reviews. Answer briefly and casually, like texting a friend: no \
markdown, no bullet points, emojis sparingly. Only use the facts you are given.
"""

# Cap on candidates rendered into a global prompt
MAX_PROMPT_CANDIDATES = 5


class AnswerService(Protocol):
    """Generates answers from compact artifacts."""

    async def answer_for_entity(self, question: str, context: EntityContext) -> str: ...

    async def answer_global(self, question: str, candidates: list[RankedCandidate]) -> str: ...


def format_category_breakdown(stats: AggregateStats) -> str:
    """Compact "Academics:4.0, Safety:2.5" rendering of non-empty categories."""
    parts = [
        f"{category.value.split(' ')[0]}:{stat.average}"
        for category, stat in stats.categories.items()
        if stat.count > 0
    ]
    return ", ".join(parts) if parts else "No category data"


def build_entity_prompt(question: str, context: EntityContext) -> str:
    """Prompt for a question about one entity."""
    stats = context.stats
    if context.digest is not None:
        vibe = (
            f"Tone: {context.digest.tone.value}. "
            f"Good: {context.digest.positive_sample}. "
            f"Bad: {context.digest.negative_sample}"
        )
    else:
        vibe = "No sentiment data yet."

    return (
        f"School: {context.name}\n"
        f"Stats: {stats.total_count} reviews, {stats.average_rating}/5 avg. "
        f"{format_category_breakdown(stats)}\n"
        f"Vibe: {vibe}\n\n"
        f'Q: "{question}"\n\n'
        "Reply in 2-3 sentences."
    )


def build_global_prompt(question: str, candidates: list[RankedCandidate]) -> str:
    """Prompt for a question across the pre-ranked candidates."""
    lines = []
    for candidate in candidates[:MAX_PROMPT_CANDIDATES]:
        tone = candidate.sentiment_digest.tone.value if candidate.sentiment_digest else "unknown"
        place = ", ".join(part for part in (candidate.location, candidate.country) if part)
        lines.append(
            f"{candidate.name} ({place or 'unknown location'}): "
            f"{candidate.average_rating}/5, {candidate.review_count} reviews, {tone} vibe"
        )

    return (
        "Schools:\n"
        + "\n".join(lines)
        + f'\n\nQ: "{question}"\n\n'
        "Reply in 3-4 sentences and compare only the 2-3 best options."
    )


class AnswerAgent:
    """AnswerService backed by the LLM gateway.

    Failures surface as ExternalServiceUnavailable so callers can decide not
    to cache them.
    """

    def __init__(self) -> None:
        self._agent: Agent[None, str] = Agent(
            create_chat_model(settings.model_chat),
            output_type=str,
            system_prompt=ANSWER_SYSTEM_PROMPT,
        )

    async def answer_for_entity(self, question: str, context: EntityContext) -> str:
        return await self._run(build_entity_prompt(question, context))

    async def answer_global(self, question: str, candidates: list[RankedCandidate]) -> str:
        return await self._run(build_global_prompt(question, candidates))

    async def _run(self, prompt: str) -> str:
        try:
            result = await self._agent.run(prompt)
        except Exception as exc:
            raise ExternalServiceUnavailable(f"Answer generation failed: {exc}") from exc

        text = result.output.strip()
        if not text:
            raise ExternalServiceUnavailable("Answer generation returned an empty response")
        return text
