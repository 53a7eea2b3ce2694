"""Pydantic schemas for structured LLM output.

These define what the reasoning and moderation agents must return.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class OrganizationName(BaseModel):
    """Best-effort resolution of a raw organization name.

    Example: "AUI" → normalized_name="al akhawayn",
    display_name="Al Akhawayn University", location="Ifrane", country="Morocco".
    """

    normalized_name: str = Field(
        description=(
            "Lowercase distinctive name without generic words such as "
            "university, college, institute, of, the"
        )
    )
    display_name: str = Field(description="Properly formatted full display name")
    location: str | None = Field(default=None, description="City, if known")
    country: str | None = Field(default=None, description="Country, if known")


class ModerationVerdict(BaseModel):
    """Moderation decision for one piece of feedback text."""

    safe: bool = Field(description="False if the text contains a violation")
    reason: str | None = Field(
        default=None, description="Short reason when the text is not safe"
    )
