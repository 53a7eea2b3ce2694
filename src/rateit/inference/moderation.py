"""Feedback moderation agent using pydantic-ai."""

from __future__ import annotations

from typing import Protocol

from pydantic_ai import Agent, NativeOutput

from rateit.inference.llm import create_chat_model
from rateit.inference.schemas import ModerationVerdict

MODERATION_SYSTEM_PROMPT = """\
You moderate anonymous reviews of schools and universities. Flag text that \
contains hate speech, severe profanity, personal identifying information or \
threats. Criticism, complaints and mild language are fine.
"""


class ModerationService(Protocol):
    """Approves or rejects raw feedback text."""

    async def moderate(self, text: str) -> ModerationVerdict: ...


class ModerationAgent:
    """ModerationService backed by the LLM gateway."""

    def __init__(self) -> None:
        self._agent: Agent[None, ModerationVerdict] = Agent(
            create_chat_model(),
            output_type=NativeOutput(ModerationVerdict),
            system_prompt=MODERATION_SYSTEM_PROMPT,
            retries=2,
        )

    async def moderate(self, text: str) -> ModerationVerdict:
        result = await self._agent.run(f'Text: "{text}"')
        return result.output
