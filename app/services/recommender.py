"""Recommendation orchestration: fallback tiers, ranking, caching."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping, Protocol, Sequence

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    ValidationInfo,
    field_validator,
)

from ..config import Settings
from ..models import Candidate, RecommendationCount, RecommendationResult
from ..utils import title_sort_key, utcnow
from .affinity import GenreAffinityExtractor, UserAffinity
from .cache import NullRecommendationCache, RecommendationCache, RecommendationCacheKey
from .candidates import CandidateAssembler, first_episode_candidates, movie_candidates
from .catalog_store import CatalogStore
from .dedupe import dedupe
from .diversity import DiversityMixer
from .pagination import TYPE_RANK, Paginator
from .scoring import ScoringEngine, UserPreferences
from .watch_history import WatchHistoryStore

logger = logging.getLogger(__name__)


class RecommendationQuery(BaseModel):
    """Normalized view of the query parameters of a recommendation request."""

    page: int = Field(default=0, ge=0)
    limit: int | None = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("limit", "pageSize", "page_size"),
    )
    count_only: bool = Field(
        default=False,
        validation_alias=AliasChoices("countOnly", "count_only"),
    )

    @classmethod
    def from_request(
        cls, params: Mapping[str, str], *, max_page_size: int | None = None
    ) -> "RecommendationQuery":
        return cls.model_validate(
            dict(params), context={"max_page_size": max_page_size}
        )

    @field_validator("page", "count_only", mode="before")
    @classmethod
    def _blank_is_default(cls, value: object, info: ValidationInfo) -> object:
        if isinstance(value, str) and not value.strip():
            return cls.model_fields[info.field_name].default
        return value.strip() if isinstance(value, str) else value

    @field_validator("limit", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @field_validator("limit")
    @classmethod
    def _check_page_size(cls, value: int | None, info: ValidationInfo) -> int | None:
        maximum = (info.context or {}).get("max_page_size")
        if value is not None and maximum is not None and value > maximum:
            raise ValueError(f"limit must not exceed {maximum}")
        return value

    def resolved_limit(self, default: int) -> int:
        return self.limit or default


@dataclass(slots=True)
class RecommendationContext:
    """Per-request state shared by the fallback tiers."""

    user_id: str
    page: int
    limit: int
    affinity: UserAffinity
    now: datetime
    taken_identities: set[str] = field(default_factory=set)
    taken_locators: set[str] = field(default_factory=set)
    taken_titles: set[str] = field(default_factory=set)

    @property
    def target(self) -> int:
        """Number of items needed to serve every page up to ``page``."""

        return (self.page + 1) * self.limit

    @property
    def preferences(self) -> UserPreferences:
        return UserPreferences(
            genres=tuple(self.affinity.genres),
            recently_watched_ids=frozenset(self.affinity.recently_watched_ids),
        )

    def excluded_titles(self) -> set[str]:
        return self.taken_titles | self.affinity.watched_title_keys

    def excluded_ids(self, kind: str) -> set[str]:
        prefix = f"{kind}:"
        return {
            key[len(prefix) :] for key in self.excluded_titles() if key.startswith(prefix)
        }

    def accept(self, items: Sequence[Candidate]) -> None:
        for item in items:
            self.taken_identities.add(item.identity)
            self.taken_titles.add(item.title_key)
            if item.media_locator:
                self.taken_locators.add(item.media_locator)


@dataclass(slots=True)
class TierResult:
    name: str
    items: list[Candidate] = field(default_factory=list)
    # Items are already scored and in display order.
    ranked: bool = False


class RecommendationTier(Protocol):
    name: str

    async def attempt(self, context: RecommendationContext) -> TierResult:
        ...


class PersonalizedTier:
    """Genre affinity and in-progress shows, scored and diversity-mixed."""

    name = "personalized"

    def __init__(
        self,
        assembler: CandidateAssembler,
        scoring: ScoringEngine,
        mixer: DiversityMixer,
    ):
        self._assembler = assembler
        self._scoring = scoring
        self._mixer = mixer

    async def attempt(self, context: RecommendationContext) -> TierResult:
        affinity = context.affinity
        if not affinity.has_watched or not affinity.genres:
            # Watched titles without genre metadata go straight to popular.
            return TierResult(self.name)

        candidates = await self._assembler.assemble(affinity, limit=context.limit)
        unique = dedupe(
            candidates,
            exclude_identities=context.taken_identities,
            exclude_locators=context.taken_locators,
        )
        scored = self._scoring.score_all(unique, context.preferences, now=context.now)
        high, low = self._mixer.split(scored)
        mixed = self._mixer.mix(high, low)
        arranged = DiversityMixer.interleave(
            Paginator.order(mixed.items),
            mixed.personalized_count,
            mixed.diverse_count,
        )
        logger.info(
            "Personalized tier for user %s: %s high, %s low, mixed %s + %s",
            context.user_id,
            len(high),
            len(low),
            mixed.personalized_count,
            mixed.diverse_count,
        )
        return TierResult(self.name, [*arranged, *mixed.leftovers], ranked=True)


class PopularTier:
    """Titles ranked by how many viewers watched them."""

    name = "popular"

    def __init__(self, catalog: CatalogStore, history: WatchHistoryStore):
        self._catalog = catalog
        self._history = history

    async def attempt(self, context: RecommendationContext) -> TierResult:
        counts = await self._history.get_global_watch_counts()
        if not counts:
            return TierResult(self.name)

        locators = set(counts)
        movies, shows = await asyncio.gather(
            self._catalog.find_movies_by_locators(locators),
            self._catalog.find_shows_by_locators(locators),
        )
        excluded = context.excluded_titles()

        ranked: list[Candidate] = []
        for movie in movies:
            count = counts.get(movie.media_locator or "", 0)
            if count <= 0:
                continue
            ranked.append(
                Candidate.from_movie(movie, source="popular", watch_count=count)
            )
        for show in shows:
            # A show is as popular as the sum of its episodes.
            count = sum(counts.get(unit.media_locator, 0) for unit in show.playable_units())
            unit = show.first_playable()
            if count <= 0 or unit is None:
                continue
            ranked.append(
                Candidate.from_episode(
                    show, unit, source="popular", is_new_show=True, watch_count=count
                )
            )

        ranked = [item for item in ranked if item.title_key not in excluded]
        ranked.sort(
            key=lambda item: (
                -(item.watch_count or 0),
                TYPE_RANK[item.type],
                title_sort_key(item.title),
                item.title_id,
            )
        )
        return TierResult(self.name, ranked)


class RandomTier:
    """Every remaining title in title order."""

    name = "random"

    def __init__(self, catalog: CatalogStore):
        self._catalog = catalog

    async def attempt(self, context: RecommendationContext) -> TierResult:
        movies, shows = await asyncio.gather(
            self._catalog.list_movies(exclude_ids=context.excluded_ids("movie")),
            self._catalog.list_shows(exclude_ids=context.excluded_ids("tv")),
        )
        candidates = [
            *movie_candidates(movies, source="random"),
            *first_episode_candidates(shows, source="random"),
        ]
        candidates = [
            item
            for item in candidates
            if not context.affinity.blocks_locator(item.media_locator)
        ]
        if not candidates:
            return TierResult(self.name)

        candidates.sort(
            key=lambda item: (
                title_sort_key(item.title),
                TYPE_RANK[item.type],
                item.title_id,
            )
        )
        return TierResult(self.name, candidates)


@dataclass(slots=True)
class CascadeOutcome:
    pool: list[Candidate] = field(default_factory=list)
    has_watched: bool = False
    genres: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def error(self) -> str | None:
        return "; ".join(self.errors) or None


class FallbackCascade:
    """Run recommendation tiers in order until the requested pages are filled.

    The pool is built tier by tier, each tier's items in display order, and
    only the last tier that runs is cut short. A larger page therefore only
    extends the pool of a smaller one, so consecutive pages never overlap.
    """

    def __init__(
        self,
        extractor: GenreAffinityExtractor,
        tiers: Sequence[RecommendationTier],
        scoring: ScoringEngine,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._extractor = extractor
        self._tiers = list(tiers)
        self._scoring = scoring
        self._clock = clock

    @property
    def tiers(self) -> list[RecommendationTier]:
        return list(self._tiers)

    async def run(self, user_id: str, *, page: int, limit: int) -> CascadeOutcome:
        outcome = CascadeOutcome()
        try:
            affinity = await self._extractor.extract(user_id)
        except Exception as exc:
            logger.exception("Could not read watch history for user %s", user_id)
            outcome.errors.append(f"affinity: {exc}")
            affinity = UserAffinity(user_id=user_id)

        context = RecommendationContext(
            user_id=user_id,
            page=page,
            limit=limit,
            affinity=affinity,
            now=self._clock(),
        )
        context.taken_locators.update(affinity.watched_locators)
        context.taken_locators.update(affinity.invalid_locators)
        outcome.genres = list(affinity.genres)

        for tier in self._tiers:
            needed = context.target - len(outcome.pool)
            if needed <= 0:
                break
            try:
                result = await tier.attempt(context)
            except Exception as exc:
                logger.exception(
                    "Recommendation tier %s failed for user %s", tier.name, user_id
                )
                outcome.errors.append(f"{tier.name}: {exc}")
                continue

            accepted = self._admit(result, context)[:needed]
            context.accept(accepted)
            outcome.pool.extend(accepted)
            logger.info(
                "Tier %s contributed %s of %s items for user %s",
                tier.name,
                len(accepted),
                len(result.items),
                user_id,
            )

        outcome.has_watched = affinity.has_watched and any(
            item.source == "personalized" for item in outcome.pool
        )
        return outcome

    def _admit(
        self, result: TierResult, context: RecommendationContext
    ) -> list[Candidate]:
        """Drop repeats of earlier picks and anything the viewer may not see.

        Unranked tier output is scored and put in display order.
        """

        unique = dedupe(
            result.items,
            exclude_identities=context.taken_identities,
            exclude_locators=context.taken_locators,
        )
        fresh: list[Candidate] = []
        titles = set(context.taken_titles)
        for item in unique:
            if not item.is_playable or context.affinity.blocks_locator(item.media_locator):
                continue
            if item.title_key in titles:
                continue
            titles.add(item.title_key)
            fresh.append(item)
        if result.ranked:
            return fresh
        scored = self._scoring.score_all(fresh, context.preferences, now=context.now)
        return Paginator.order(scored)


class RecommendationService:
    """Entry point used by the HTTP layer."""

    def __init__(
        self,
        settings: Settings,
        catalog: CatalogStore,
        history: WatchHistoryStore,
        *,
        cache: RecommendationCache | None = None,
        clock: Callable[[], datetime] = utcnow,
        tiers: Sequence[RecommendationTier] | None = None,
    ):
        self._settings = settings
        self._catalog = catalog
        self._history = history
        self._cache = cache if cache is not None else NullRecommendationCache()

        self._scoring = ScoringEngine.from_settings(settings, clock=clock)
        self._mixer = DiversityMixer(
            settings.diversity_ratio, settings.high_score_threshold
        )
        self._paginator = Paginator(
            item_cap=settings.pagination_item_cap,
            min_total_pages=settings.min_total_pages,
            placeholder_fill=settings.placeholder_fill,
        )
        extractor = GenreAffinityExtractor(
            catalog, history, top_genre_count=settings.top_genre_count
        )
        if tiers is None:
            assembler = CandidateAssembler(
                catalog,
                fetch_multiplier=settings.fetch_multiplier,
                fetch_floor=settings.fetch_floor,
                fetch_cap=settings.fetch_cap,
            )
            tiers = (
                PersonalizedTier(assembler, self._scoring, self._mixer),
                PopularTier(catalog, history),
                RandomTier(catalog),
            )
        self._cascade = FallbackCascade(extractor, tiers, self._scoring, clock=clock)

    @property
    def cache(self) -> RecommendationCache:
        return self._cache

    async def get_recommendations(
        self,
        user_id: str,
        page: int = 0,
        limit: int = 30,
        count_only: bool = False,
    ) -> RecommendationResult | RecommendationCount:
        """Return one page of recommendations; failures become an error result."""

        try:
            result = await self._recommend(user_id, page, limit)
        except Exception as exc:
            logger.exception("Failed to build recommendations for user %s", user_id)
            result = RecommendationResult(
                items=[], has_watched=False, error=str(exc) or type(exc).__name__
            )
        if count_only:
            return RecommendationCount(count=len(result.items))
        return result

    async def _recommend(
        self, user_id: str, page: int, limit: int
    ) -> RecommendationResult:
        if not user_id or not user_id.strip():
            raise ValueError("user id must not be blank")
        if page < 0:
            raise ValueError("page must not be negative")
        if limit < 1:
            raise ValueError("limit must be positive")

        key = await self._cache_key(user_id, page, limit)
        if key is not None:
            cached = self._cache.get(key)
            if cached is not None:
                logger.info(
                    "Using cached recommendations for user %s (page %s)", user_id, page
                )
                return cached

        outcome = await self._cascade.run(user_id, page=page, limit=limit)
        items = self._paginator.window(outcome.pool, page, limit)
        total_titles = await self._catalog.count_titles()

        result = RecommendationResult(
            items=items,
            has_watched=outcome.has_watched,
            genres=outcome.genres,
            latest_watch_timestamp=key.latest_watch if key is not None else None,
            pagination=self._paginator.metadata(page, limit, total_titles),
            error=None if outcome.pool else outcome.error,
        )
        if key is not None and result.error is None:
            self._cache.set(key, result)
        return result

    async def _cache_key(
        self, user_id: str, page: int, limit: int
    ) -> RecommendationCacheKey | None:
        try:
            latest, entry_count = await self._history.history_fingerprint(user_id)
        except Exception as exc:
            logger.warning(
                "Could not read watch history state for user %s, skipping cache: %s",
                user_id,
                exc,
            )
            return None
        return RecommendationCacheKey(user_id, latest, page, limit, entry_count)

    def describe(self) -> dict[str, Any]:
        """Summarise the active ranking configuration."""

        return {
            "tiers": [tier.name for tier in self._cascade.tiers],
            "weights": self._scoring.weights,
            "diversityRatio": self._mixer.ratio,
        }
