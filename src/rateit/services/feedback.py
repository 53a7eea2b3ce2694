"""Feedback write path: validate, moderate, store, then refresh derived data.

Every insert, update or delete runs the post-write hook in the same
transaction: stats and sentiment digest are recomputed and entity-scoped
cached answers are purged. The caller commits.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from functools import partial
from typing import Any
from uuid import UUID

import pydantic
from sqlalchemy.ext.asyncio import AsyncSession

from rateit.caching.response_cache import purge_entity_answers
from rateit.config import settings
from rateit.exceptions import EntityNotFoundError, FeedbackNotFoundError, ValidationError
from rateit.inference.fallback import call_external_or_fallback
from rateit.inference.moderation import ModerationService
from rateit.inference.schemas import ModerationVerdict
from rateit.models.entity import Entity
from rateit.models.enums import FeedbackCategory, ModerationStatus
from rateit.models.feedback import FeedbackItem
from rateit.schemas import FeedbackSubmission
from rateit.services.digest import SentimentDigestBuilder

logger = logging.getLogger(__name__)


class FeedbackService:
    """Moderated create/update/delete of FeedbackItems.

    Usage:
        async with async_session_factory() as session:
            service = FeedbackService(session, moderator=ModerationAgent())
            item = await service.submit(
                {"entity_id": entity_id, "category": "Food & Dining",
                 "rating": 4, "text": "Great cafeteria options"}
            )
            await session.commit()
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        moderator: ModerationService | None = None,
        moderation_timeout: float | None = None,
    ) -> None:
        self._session = session
        self._moderator = moderator
        self._moderation_timeout = (
            moderation_timeout
            if moderation_timeout is not None
            else settings.moderation_timeout_seconds
        )
        self._digest = SentimentDigestBuilder(session)

    async def submit(self, submission: FeedbackSubmission | Mapping[str, Any]) -> FeedbackItem:
        """Validate, moderate and store a new review.

        Rejected reviews are stored with their reason but never aggregated.

        Raises:
            ValidationError: Malformed submission.
            EntityNotFoundError: The entity does not exist.
        """
        if not isinstance(submission, FeedbackSubmission):
            submission = _validate(dict(submission))

        if await self._session.get(Entity, submission.entity_id) is None:
            raise EntityNotFoundError(f"Entity {submission.entity_id} not found")

        verdict = await self._moderate(submission.text)
        item = FeedbackItem(
            entity_id=submission.entity_id,
            category=submission.category,
            rating=submission.rating,
            text=submission.text,
            moderation_status=ModerationStatus.APPROVED if verdict.safe else ModerationStatus.REJECTED,
            moderation_reason=None if verdict.safe else verdict.reason,
        )
        self._session.add(item)
        await self._after_write(item.entity_id)

        logger.info(
            "Stored feedback %s for entity %s (%s)",
            item.id,
            item.entity_id,
            item.moderation_status.value,
        )
        return item

    async def update(
        self,
        feedback_id: UUID,
        *,
        category: FeedbackCategory | str | None = None,
        rating: int | None = None,
        text: str | None = None,
    ) -> FeedbackItem:
        """Edit a review; changed text goes through moderation again.

        Raises:
            ValidationError: The edited review is malformed.
            FeedbackNotFoundError: No such review.
        """
        item = await self._get_item(feedback_id)
        edited = _validate(
            {
                "entity_id": item.entity_id,
                "category": category if category is not None else item.category,
                "rating": rating if rating is not None else item.rating,
                "text": text if text is not None else item.text,
            }
        )

        if edited.text != item.text:
            verdict = await self._moderate(edited.text)
            item.moderation_status = (
                ModerationStatus.APPROVED if verdict.safe else ModerationStatus.REJECTED
            )
            item.moderation_reason = None if verdict.safe else verdict.reason

        item.category = edited.category
        item.rating = edited.rating
        item.text = edited.text
        await self._after_write(item.entity_id)
        return item

    async def delete(self, feedback_id: UUID) -> None:
        """Remove a review.

        Raises:
            FeedbackNotFoundError: No such review.
        """
        item = await self._get_item(feedback_id)
        entity_id = item.entity_id
        await self._session.delete(item)
        await self._after_write(entity_id)
        logger.info("Deleted feedback %s for entity %s", feedback_id, entity_id)

    async def _get_item(self, feedback_id: UUID) -> FeedbackItem:
        item = await self._session.get(FeedbackItem, feedback_id)
        if item is None:
            raise FeedbackNotFoundError(f"Feedback {feedback_id} not found")
        return item

    async def _moderate(self, text: str) -> ModerationVerdict:
        primary = partial(self._moderator.moderate, text) if self._moderator else None
        outcome = await call_external_or_fallback(
            primary,
            lambda: ModerationVerdict(safe=True),
            timeout=self._moderation_timeout,
            service="moderation",
        )
        return outcome.value

    async def _after_write(self, entity_id: UUID) -> None:
        """Post-write hook: recompute derived data and drop stale answers."""
        await self._session.flush()
        await self._digest.recompute(entity_id)
        await purge_entity_answers(self._session, entity_id)


def _validate(data: dict[str, Any]) -> FeedbackSubmission:
    try:
        return FeedbackSubmission.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid feedback: {exc}") from exc
