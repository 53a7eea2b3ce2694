"""External LLM collaborators and the best-effort call combinator."""

from rateit.inference.answers import AnswerAgent, AnswerService
from rateit.inference.fallback import ExternalResult, call_external_or_fallback
from rateit.inference.moderation import ModerationAgent, ModerationService
from rateit.inference.name_resolution import NameResolutionAgent, ReasoningService
from rateit.inference.schemas import ModerationVerdict, OrganizationName

__all__ = [
    "AnswerAgent",
    "AnswerService",
    "ExternalResult",
    "ModerationAgent",
    "ModerationService",
    "ModerationVerdict",
    "NameResolutionAgent",
    "OrganizationName",
    "ReasoningService",
    "call_external_or_fallback",
]
