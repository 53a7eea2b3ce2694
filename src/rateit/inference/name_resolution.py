"""Organization-name resolution agent using pydantic-ai.

Only ambiguous inputs (acronyms, initialisms, non-ASCII spellings) that
deterministic matching could not place ever reach this agent.
"""

from __future__ import annotations

from typing import Protocol

from pydantic_ai import Agent, NativeOutput

from rateit.inference.llm import create_chat_model
from rateit.inference.schemas import OrganizationName

NAME_RESOLUTION_SYSTEM_PROMPT = """\
You normalize organization names submitted to a crowdsourced review platform. \
Users type the same school many ways: acronyms, nicknames, transliterations.

Return the organization the input most likely refers to:
- normalized_name: lowercase, drop generic words (university, college, institute, \
school, academy, of, the), keep the distinctive parts
- display_name: the properly formatted official name
- location / country: only when you are confident, otherwise null

Examples:
- "MIT" → normalized_name "massachusetts technology", display_name \
"Massachusetts Institute of Technology", location "Cambridge", country "United States"
- "AUI" → normalized_name "al akhawayn", display_name "Al Akhawayn University", \
location "Ifrane", country "Morocco"
- "UoN" → normalized_name "nairobi", display_name "University of Nairobi", \
location "Nairobi", country "Kenya"

If you cannot identify the organization, clean up the input as best you can.
"""


class ReasoningService(Protocol):
    """Raw text → best-effort normalized organization name."""

    async def normalize_organization_name(
        self,
        raw_text: str,
        *,
        location: str | None = None,
        country: str | None = None,
    ) -> OrganizationName: ...


def create_name_resolution_agent() -> Agent[None, OrganizationName]:
    """Create the name resolution agent."""
    return Agent(
        create_chat_model(),
        output_type=NativeOutput(OrganizationName),
        system_prompt=NAME_RESOLUTION_SYSTEM_PROMPT,
        retries=2,
    )


class NameResolutionAgent:
    """ReasoningService backed by the LLM gateway.

    Usage:
        reasoning = NameResolutionAgent()
        name = await reasoning.normalize_organization_name("AUI")
    """

    def __init__(self) -> None:
        self._agent = create_name_resolution_agent()

    async def normalize_organization_name(
        self,
        raw_text: str,
        *,
        location: str | None = None,
        country: str | None = None,
    ) -> OrganizationName:
        prompt = f'Normalize this organization name: "{raw_text}"'
        hints = [hint for hint in (location, country) if hint]
        if hints:
            prompt += f"\nThe submitter says it is in: {', '.join(hints)}"

        result = await self._agent.run(prompt)
        return result.output
