"""Shared model construction for the OpenAI-compatible LLM gateway."""

from __future__ import annotations

from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider

from rateit.config import settings


def create_chat_model(model_name: str | None = None) -> OpenAIChatModel:
    """Build a chat model bound to the configured gateway.

    Args:
        model_name: Gateway model name (default: the reasoning model).
    """
    return OpenAIChatModel(
        model_name or settings.model_reasoning,
        provider=OpenAIProvider(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
        ),
    )
