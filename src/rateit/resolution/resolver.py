"""Entity resolution: map a raw organization name onto one canonical entity.

Algorithm overview:
1. Deterministic high-confidence match
   - normalize(input), search names + aliases at T_high (0.70)
   - hit: record the input as an alias, return the existing entity
   - no external call is ever made on this path

2. Ambiguity gate
   - non-ambiguous input: low-confidence search at T_low (0.40), alias on hit,
     otherwise create from the deterministic normalization
   - external reasoning is never invoked for non-ambiguous input

3. External resolution (ambiguous input only)
   - normalization cache first, then the reasoning service
   - any reasoning failure or timeout falls back to the deterministic result

4. Post-resolution re-match at T_low on the resolved normalized name
   - hit: alias the raw input and, when distinct, the resolved name

5. Creation of a new entity with empty stats
   - the raw input becomes an alias when the stored name differs from it

With the advisory lock enabled, one lock keyed by the deterministic normalized
name is held before the last search on either path, up to creation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from uuid import UUID

import pydantic
from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from rateit.caching.normalization_cache import CachedNormalization, NormalizationCacheStore
from rateit.config import settings
from rateit.db import upsert
from rateit.exceptions import TransientStorageError, ValidationError
from rateit.inference.fallback import call_external_or_fallback
from rateit.inference.name_resolution import ReasoningService
from rateit.inference.schemas import OrganizationName
from rateit.models.alias import EntityAlias
from rateit.models.entity import Entity
from rateit.models.enums import ResolutionPhase
from rateit.models.location import Country, Location
from rateit.models.stats import EntityStats
from rateit.normalization.ambiguity import is_ambiguous
from rateit.normalization.normalizer import lowercase_trim, normalize, stable_hash
from rateit.resolution.similarity_index import Candidate, SimilarityIndex
from rateit.schemas import AggregateStats, ResolveRequest

logger = logging.getLogger(__name__)


@dataclass
class ResolutionResult:
    """Outcome of resolving one raw name."""

    entity: Entity
    is_existing: bool
    phase: ResolutionPhase
    """Which phase produced the outcome."""

    score: float | None = None
    """Similarity of the matched candidate; None for created entities."""

    used_external: bool = False
    """True when the reasoning service's answer shaped the outcome."""

    aliases_added: list[str] = field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]
    """Alias texts newly recorded by this call."""


class EntityResolver:
    """Resolves raw organization names to entities.

    The caller owns the session and commits it.

    Usage:
        async with async_session_factory() as session:
            resolver = EntityResolver(
                session,
                reasoning=NameResolutionAgent(),
                normalization_cache=NormalizationCache(async_session_factory),
            )
            result = await resolver.resolve_entity("AUI")
            await session.commit()
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        reasoning: ReasoningService | None = None,
        normalization_cache: NormalizationCacheStore | None = None,
        index: SimilarityIndex | None = None,
        t_high: float | None = None,
        t_low: float | None = None,
        reasoning_timeout: float | None = None,
        advisory_lock: bool | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            session: Database session, committed by the caller.
            reasoning: External name normalizer; None means deterministic only.
            normalization_cache: Store for reasoning results; None disables caching.
            index: Candidate search (default: SimilarityIndex over ``session``).
            t_high: Phase 1 threshold (default from config).
            t_low: Phase 2/4 threshold (default from config).
            reasoning_timeout: Seconds before the reasoning call counts as failed.
            advisory_lock: Serialize creation per normalized name on PostgreSQL.
        """
        self._session = session
        self._reasoning = reasoning
        self._cache = normalization_cache
        self._index = index or SimilarityIndex(session)
        self._t_high = t_high if t_high is not None else settings.resolution_t_high
        self._t_low = t_low if t_low is not None else settings.resolution_t_low
        self._reasoning_timeout = (
            reasoning_timeout
            if reasoning_timeout is not None
            else settings.reasoning_timeout_seconds
        )
        self._advisory_lock = (
            advisory_lock if advisory_lock is not None else settings.resolution_advisory_lock
        )

    async def resolve_entity(self, request: ResolveRequest | str) -> ResolutionResult:
        """Resolve a raw name (or full request) to an existing or new entity.

        Raises:
            ValidationError: The name is missing or blank.
            TransientStorageError: The store is unreachable.
        """
        if isinstance(request, str):
            try:
                request = ResolveRequest(name=request)
            except pydantic.ValidationError as exc:
                raise ValidationError(f"Invalid organization name: {exc}") from exc

        try:
            return await self._resolve(request)
        except (OperationalError, InterfaceError) as exc:
            raise TransientStorageError(f"Storage unavailable during resolution: {exc}") from exc

    async def _resolve(self, request: ResolveRequest) -> ResolutionResult:
        raw = request.name
        # Inputs made only of stop words keep their lowercased text as the key
        normalized = normalize(raw) or lowercase_trim(raw)

        # ── Phase 1: deterministic high-confidence ─────────────────────────────
        candidates = await self._index.find_candidates(normalized, self._t_high)
        if candidates and candidates[0].score >= self._t_high:
            top = candidates[0]
            logger.info(
                "Phase 1 match for %r -> %s (score=%.3f)", raw, top.name, top.score
            )
            return await self._match(
                top, [(raw, normalized)], ResolutionPhase.DETERMINISTIC, used_external=False
            )

        # ── Phase 2: ambiguity gate ────────────────────────────────────────────
        if not is_ambiguous(raw):
            candidates = await self._index.find_candidates(normalized, self._t_low)
            if not candidates and await self._acquire_creation_lock(normalized):
                # A concurrent resolver may have created it while we waited
                candidates = await self._index.find_candidates(normalized, self._t_low)
            if candidates:
                top = candidates[0]
                logger.info(
                    "Phase 2 low-confidence match for %r -> %s (score=%.3f)",
                    raw,
                    top.name,
                    top.score,
                )
                return await self._match(
                    top, [(raw, normalized)], ResolutionPhase.LOW_CONFIDENCE, used_external=False
                )

            logger.debug("No match for non-ambiguous %r, creating entity", raw)
            deterministic = CachedNormalization(
                normalized_name=normalized,
                display_name=raw,
                location=None,
                country=None,
                used_external=False,
            )
            return await self._create(request, normalized, deterministic)

        # ── Phase 3: external resolution ───────────────────────────────────────
        await self._acquire_creation_lock(normalized)
        resolved = await self._resolve_externally(request, normalized)

        # ── Phase 4: post-resolution re-match ─────────────────────────────────
        candidates = await self._index.find_candidates(resolved.normalized_name, self._t_low)
        if candidates:
            top = candidates[0]
            aliases = [(raw, normalized)]
            if resolved.normalized_name != normalized and resolved.display_name:
                aliases.append((resolved.display_name, resolved.normalized_name))
            logger.info(
                "Phase 4 match for %r via %r -> %s (score=%.3f)",
                raw,
                resolved.normalized_name,
                top.name,
                top.score,
            )
            return await self._match(
                top,
                aliases,
                ResolutionPhase.POST_RESOLUTION,
                used_external=resolved.used_external,
            )

        # ── Phase 5: creation ──────────────────────────────────────────────────
        return await self._create(request, normalized, resolved)

    async def _resolve_externally(
        self, request: ResolveRequest, normalized: str
    ) -> CachedNormalization:
        """Resolve an ambiguous name through the cache or the reasoning service."""
        raw = request.name
        input_hash = stable_hash(raw)

        if self._cache is not None:
            cached = await self._cache.get(input_hash)
            if cached is not None:
                logger.debug("Normalization cache hit for %r", raw)
                return cached

        primary = None
        if self._reasoning is not None:
            primary = partial(
                self._reasoning.normalize_organization_name,
                raw,
                location=request.location,
                country=request.country,
            )

        outcome = await call_external_or_fallback(
            primary,
            lambda: OrganizationName(normalized_name=normalized, display_name=raw),
            timeout=self._reasoning_timeout,
            service="reasoning",
        )

        value = outcome.value
        resolved = CachedNormalization(
            # Re-normalize so external output obeys the same canonical form
            normalized_name=normalize(value.normalized_name) or normalized,
            display_name=value.display_name.strip() or raw,
            location=value.location,
            country=value.country,
            used_external=outcome.used_external,
        )
        logger.info(
            "Resolved %r -> %r (external=%s)",
            raw,
            resolved.normalized_name,
            resolved.used_external,
        )

        if self._cache is not None:
            await self._cache.put(input_hash, raw, resolved)
        return resolved

    async def _match(
        self,
        candidate: Candidate,
        aliases: list[tuple[str, str]],
        phase: ResolutionPhase,
        *,
        used_external: bool,
    ) -> ResolutionResult:
        added = [
            alias_name
            for alias_name, normalized_alias in aliases
            if await self._add_alias(candidate.entity_id, alias_name, normalized_alias)
        ]
        entity = await self._session.get(Entity, candidate.entity_id)
        if entity is None:
            msg = f"Candidate entity {candidate.entity_id} disappeared during resolution"
            raise TransientStorageError(msg)

        return ResolutionResult(
            entity=entity,
            is_existing=True,
            phase=phase,
            score=candidate.score,
            used_external=used_external,
            aliases_added=added,
        )

    async def _add_alias(self, entity_id: UUID, alias_name: str, normalized_alias: str) -> bool:
        """Record an alias; returns False when it already existed."""
        table = EntityAlias.__table__
        stmt = (
            upsert(self._session, table)
            .values(entity_id=entity_id, alias_name=alias_name, normalized_alias=normalized_alias)
            .on_conflict_do_nothing(index_elements=[table.c.entity_id, table.c.alias_name])
        )
        result = await self._session.execute(stmt)
        created = bool(result.rowcount)
        if created:
            logger.debug("Added alias %r to entity %s", alias_name, entity_id)
        return created

    async def _create(
        self, request: ResolveRequest, normalized: str, resolved: CachedNormalization
    ) -> ResolutionResult:
        """Create the entity; the caller already holds the creation lock, if any.

        When the stored name differs from the deterministic one, the raw input is
        recorded as an alias so it resolves without the reasoning service later.
        """
        display_name = resolved.display_name or request.name
        location = await self._get_or_create_location(
            resolved.location or request.location,
            resolved.country or request.country,
        )

        entity = Entity(
            display_name=display_name,
            canonical_name=display_name,
            normalized_name=resolved.normalized_name,
            location=location,
            description=request.description,
            niche_details=request.niche_details,
            image_url=request.image_url,
        )
        empty = AggregateStats()
        entity.stats = EntityStats(
            total_count=empty.total_count,
            average_rating=empty.average_rating,
            category_breakdown=empty.breakdown_json(),
            sentiment_digest=None,
        )
        self._session.add(entity)
        await self._session.flush()

        aliases_added: list[str] = []
        if resolved.normalized_name != normalized:
            if await self._add_alias(entity.id, request.name, normalized):
                aliases_added.append(request.name)

        logger.info(
            "Created entity %s %r (normalized=%r, external=%s)",
            entity.id,
            display_name,
            resolved.normalized_name,
            resolved.used_external,
        )
        return ResolutionResult(
            entity=entity,
            is_existing=False,
            phase=ResolutionPhase.CREATED,
            used_external=resolved.used_external,
            aliases_added=aliases_added,
        )

    async def _get_or_create_location(
        self, location_name: str | None, country_name: str | None
    ) -> Location | None:
        """Upsert the country and location rows; a location needs a country.

        A country given without a location is recorded but not linked.
        """
        if not country_name:
            return None

        countries = Country.__table__
        stmt = upsert(self._session, countries).values(name=country_name.strip())
        stmt = stmt.on_conflict_do_update(
            index_elements=[countries.c.name],
            set_={"name": stmt.excluded.name},
        ).returning(countries.c.id)
        country_id = (await self._session.execute(stmt)).scalar_one()

        if not location_name:
            return None

        locations = Location.__table__
        stmt = upsert(self._session, locations).values(
            name=location_name.strip(), country_id=country_id
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[locations.c.name, locations.c.country_id],
            set_={"name": stmt.excluded.name},
        ).returning(locations.c.id)
        location_id = (await self._session.execute(stmt)).scalar_one()

        return await self._session.get(Location, location_id)

    async def _acquire_creation_lock(self, normalized_name: str) -> bool:
        """Transaction-scoped advisory lock per normalized name (PostgreSQL only).

        Returns True when a lock was taken.
        """
        if not self._advisory_lock:
            return False
        if self._session.get_bind().dialect.name != "postgresql":
            return False
        await self._session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": normalized_name},
        )
        return True
