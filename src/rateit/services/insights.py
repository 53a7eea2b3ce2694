"""Insight service: entity-scoped and global question answering.

Both flows are cache-aside over the response cache. The answer collaborator
only ever sees compact artifacts (stats + digest, or ranked candidates).
Failures and "not enough data" outcomes produce fixed texts that are never
cached.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from rateit.caching.response_cache import AnswerCacheKey, ResponseCache
from rateit.config import settings
from rateit.exceptions import (
    EntityNotFoundError,
    ExternalServiceUnavailable,
    InsufficientDataError,
    ValidationError,
)
from rateit.inference.answers import AnswerService
from rateit.models.entity import Entity
from rateit.schemas import AggregateStats, EntityContext, SentimentDigest
from rateit.services.ranking import CandidateRanker

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA_ANSWER = (
    "There isn't enough feedback yet to answer that. "
    "Check back once a few more reviews are in!"
)
APOLOGY_ANSWER = "Sorry, I can't put an answer together right now. Please try again in a bit."


class InsightService:
    """Answers questions about one entity or across all entities.

    Usage:
        async with async_session_factory() as session:
            insights = InsightService(
                session,
                answers=AnswerAgent(),
                response_cache=ResponseCache(async_session_factory),
            )
            text = await insights.answer_global("best school in kenya", region="Kenya")
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        answers: AnswerService | None = None,
        response_cache: ResponseCache | None = None,
        ranker: CandidateRanker | None = None,
        answer_timeout: float | None = None,
    ) -> None:
        self._session = session
        self._answers = answers
        self._cache = response_cache
        self._ranker = ranker or CandidateRanker(session)
        self._answer_timeout = (
            answer_timeout if answer_timeout is not None else settings.answer_timeout_seconds
        )

    async def answer_for_entity(self, entity_id: UUID, question: str) -> str:
        """Answer a question about one entity from its stats and digest.

        Raises:
            ValidationError: Blank question.
            EntityNotFoundError: No such entity.
        """
        question = _require_question(question)
        entity = await self._session.get(Entity, entity_id)
        if entity is None:
            raise EntityNotFoundError(f"Entity {entity_id} not found")

        context = build_entity_context(entity)

        async def build() -> str:
            return await self._generate(
                lambda answers: answers.answer_for_entity(question, context)
            )

        try:
            return await self._cached(AnswerCacheKey.for_entity(entity_id, question), build)
        except ExternalServiceUnavailable as exc:
            logger.warning("Entity answer unavailable for %s: %s", entity_id, exc)
            return APOLOGY_ANSWER

    async def answer_global(self, question: str, region: str | None = None) -> str:
        """Answer a question across the top-ranked entities.

        Raises:
            ValidationError: Blank question.
        """
        question = _require_question(question)

        async def build() -> str:
            candidates = await self._ranker.rank_for_query(question, region)
            if not candidates:
                raise InsufficientDataError("No entity has feedback yet")
            return await self._generate(
                lambda answers: answers.answer_global(question, candidates)
            )

        try:
            return await self._cached(AnswerCacheKey.for_global(question, region), build)
        except InsufficientDataError:
            logger.info("Not enough data to answer %r (region=%r)", question, region)
            return INSUFFICIENT_DATA_ANSWER
        except ExternalServiceUnavailable as exc:
            logger.warning("Global answer unavailable: %s", exc)
            return APOLOGY_ANSWER

    async def _cached(self, key: AnswerCacheKey, build: Callable[[], Awaitable[str]]) -> str:
        if self._cache is None:
            return await build()
        return await self._cache.get_or_build_answer(key, build)

    async def _generate(self, call: Callable[[AnswerService], Awaitable[str]]) -> str:
        """Run the answer collaborator; every failure becomes ExternalServiceUnavailable."""
        if self._answers is None:
            raise ExternalServiceUnavailable("Answer service not configured")
        try:
            return await asyncio.wait_for(call(self._answers), timeout=self._answer_timeout)
        except TimeoutError as exc:
            msg = f"Answer service timed out after {self._answer_timeout}s"
            raise ExternalServiceUnavailable(msg) from exc
        except ExternalServiceUnavailable:
            raise
        except Exception as exc:
            raise ExternalServiceUnavailable(f"Answer service failed: {exc}") from exc


def build_entity_context(entity: Entity) -> EntityContext:
    """Compact view of an entity: name, place, stats and digest only."""
    row = entity.stats
    digest = None
    if row is not None and row.sentiment_digest:
        digest = SentimentDigest.model_validate(row.sentiment_digest)
    return EntityContext(
        entity_id=entity.id,
        name=entity.display_name,
        location=entity.location_name,
        country=entity.country_name,
        stats=AggregateStats.from_row(row),
        digest=digest,
    )


def _require_question(question: str) -> str:
    question = question.strip()
    if not question:
        raise ValidationError("Question must not be empty")
    return question
