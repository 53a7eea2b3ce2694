"""Tests for CandidateRanker and its scoring helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from rateit.models import Entity, FeedbackCategory, SentimentTone
from rateit.services.ranking import CandidateRanker, extract_keywords, score_candidate

if TYPE_CHECKING:
    from conftest import SeedEntity


async def set_stats(
    session: AsyncSession,
    entity: Entity,
    *,
    average_rating: float,
    total_count: int,
    digest: dict[str, Any] | None = None,
) -> None:
    assert entity.stats is not None
    entity.stats.average_rating = average_rating
    entity.stats.total_count = total_count
    entity.stats.sentiment_digest = digest
    await session.commit()


class TestExtractKeywords:
    """Tests for extract_keywords()."""

    def test_strips_punctuation_and_short_tokens(self) -> None:
        assert extract_keywords("What's the best school in Kenya?!") == [
            "whats",
            "the",
            "best",
            "school",
            "kenya",
        ]

    def test_empty(self) -> None:
        assert extract_keywords("?? in a") == []


class TestScoreCandidate:
    """Tests for score_candidate()."""

    def test_rating_and_volume(self) -> None:
        score = score_candidate(
            average_rating=4.5,
            total_count=12,
            country=None,
            searchable_text="kenya a",
            region=None,
            keywords=[],
        )
        assert score == pytest.approx(0.4 * 4.5 + 0.3 * 1.2)

    def test_volume_is_capped(self) -> None:
        score = score_candidate(
            average_rating=0.0,
            total_count=500,
            country=None,
            searchable_text="",
            region=None,
            keywords=[],
        )
        assert score == pytest.approx(0.6)

    def test_region_is_case_insensitive_substring(self) -> None:
        base = dict(average_rating=3.0, total_count=5, searchable_text="", keywords=[])
        plain = score_candidate(country="Republic of Kenya", region=None, **base)
        boosted = score_candidate(country="Republic of Kenya", region="KENYA", **base)
        other = score_candidate(country="Morocco", region="kenya", **base)

        assert boosted == pytest.approx(plain + 1.5)
        assert other == plain

    def test_keyword_bonus_applies_once(self) -> None:
        base = dict(average_rating=3.0, total_count=5, country=None, region=None)
        none = score_candidate(searchable_text="strathmore", keywords=[], **base)
        two = score_candidate(
            searchable_text="strathmore business school", keywords=["business", "school"], **base
        )

        assert two == pytest.approx(none + 1.0)


class TestCandidateRanker:
    """Tests for CandidateRanker.rank_for_query()."""

    async def test_kenya_question_prefers_kenyan_school(
        self, db_session: AsyncSession, seed_entity: SeedEntity
    ) -> None:
        kenya = await seed_entity("Kenya A", country="Kenya", location="Nairobi")
        morocco = await seed_entity("Morocco B", country="Morocco", location="Ifrane")
        await set_stats(db_session, kenya, average_rating=4.5, total_count=12)
        await set_stats(db_session, morocco, average_rating=3.0, total_count=3)

        candidates = await CandidateRanker(db_session).rank_for_query(
            "best school in kenya", region="Kenya"
        )

        assert [c.entity_id for c in candidates] == [kenya.id, morocco.id]
        top = candidates[0]
        assert top.country == "Kenya"
        assert top.location == "Nairobi"
        assert top.review_count == 12
        assert top.relevance_score > candidates[1].relevance_score

    async def test_entities_without_feedback_are_skipped(
        self, db_session: AsyncSession, seed_entity: SeedEntity
    ) -> None:
        await seed_entity("Strathmore University")
        await seed_entity("Daystar University")

        assert await CandidateRanker(db_session).rank_for_query("best school") == []

    async def test_ties_prefer_higher_average(
        self, db_session: AsyncSession, seed_entity: SeedEntity
    ) -> None:
        steady = await seed_entity("Steady Campus")
        loved = await seed_entity("Loved Campus")
        # 0.4 * 4.0 + 0.3 * 1.0 == 0.4 * 4.3 + 0.3 * 0.6 == 1.9
        await set_stats(db_session, steady, average_rating=4.0, total_count=10)
        await set_stats(db_session, loved, average_rating=4.3, total_count=6)

        candidates = await CandidateRanker(db_session).rank_for_query("campus life")

        assert candidates[0].relevance_score == candidates[1].relevance_score
        assert [c.entity_id for c in candidates] == [loved.id, steady.id]

    async def test_ranking_is_deterministic_and_capped(
        self, db_session: AsyncSession, seed_entity: SeedEntity
    ) -> None:
        for i in range(7):
            entity = await seed_entity(f"Campus {i}")
            await set_stats(db_session, entity, average_rating=3.0, total_count=4)

        ranker = CandidateRanker(db_session)
        first = await ranker.rank_for_query("anything")
        second = await ranker.rank_for_query("anything")

        assert len(first) == 5
        assert [c.entity_id for c in first] == [c.entity_id for c in second]

    async def test_candidates_carry_digest(
        self, db_session: AsyncSession, seed_entity: SeedEntity
    ) -> None:
        entity = await seed_entity("Strathmore University", description="Business focused")
        await set_stats(
            db_session,
            entity,
            average_rating=4.2,
            total_count=3,
            digest={
                "tone": "positive",
                "positive_sample": "Great lecturers",
                "negative_sample": "No negative reviews yet",
                "last_updated": "2026-01-05T10:00:00+00:00",
            },
        )

        [candidate] = await CandidateRanker(db_session).rank_for_query("business school")

        assert candidate.description == "Business focused"
        assert candidate.sentiment_digest is not None
        assert candidate.sentiment_digest.tone == SentimentTone.POSITIVE
        # Keyword "business" matches the description
        assert candidate.relevance_score == pytest.approx(0.4 * 4.2 + 0.3 * 0.3 + 1.0)


class TestRankingsByCountry:
    """Tests for CandidateRanker.rankings_by_country()."""

    async def test_grouped_and_ordered(
        self, db_session: AsyncSession, seed_entity: SeedEntity
    ) -> None:
        strathmore = await seed_entity("Strathmore University", country="Kenya", location="Nairobi")
        daystar = await seed_entity("Daystar University", country="Kenya", location="Athi River")
        kenyatta = await seed_entity("Kenyatta University", country="Kenya", location="Kahawa")
        aui = await seed_entity("Al Akhawayn University", country="Morocco", location="Ifrane")
        await seed_entity("Open University")
        await set_stats(db_session, strathmore, average_rating=4.0, total_count=6)
        await set_stats(db_session, daystar, average_rating=4.0, total_count=2)
        await set_stats(db_session, aui, average_rating=3.0, total_count=3)

        boards = await CandidateRanker(db_session).rankings_by_country()

        assert [b.country for b in boards] == ["Kenya", "Morocco"]
        kenya = boards[0].entities
        assert [e.entity_id for e in kenya] == [daystar.id, strathmore.id, kenyatta.id]
        assert kenya[0].location == "Athi River"
        assert kenya[2].review_count == 0
        assert kenya[2].average_rating == 0.0
        assert [e.entity_id for e in boards[1].entities] == [aui.id]

    async def test_category_averages(
        self, db_session: AsyncSession, seed_entity: SeedEntity
    ) -> None:
        entity = await seed_entity("Strathmore University", country="Kenya", location="Nairobi")
        assert entity.stats is not None
        entity.stats.category_breakdown = {"Safety": {"count": 2, "average": 4.5}}
        await set_stats(db_session, entity, average_rating=4.5, total_count=2)

        boards = await CandidateRanker(db_session).rankings_by_country()

        averages = boards[0].entities[0].category_averages
        assert averages[FeedbackCategory.SAFETY] == 4.5
        assert averages[FeedbackCategory.ACADEMICS] == 0.0
        assert set(averages) == set(FeedbackCategory)

    async def test_no_countries(self, db_session: AsyncSession, seed_entity: SeedEntity) -> None:
        await seed_entity("Open University")

        assert await CandidateRanker(db_session).rankings_by_country() == []
