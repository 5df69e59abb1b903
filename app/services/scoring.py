"""Multi-factor relevance scoring for recommendation candidates."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Mapping, Sequence

from ..config import DEFAULT_SCORE_WEIGHTS, Settings
from ..models import Candidate
from ..utils import age_in_days, utcnow

DIVERSITY_PENALTY = 0.2


@dataclass(frozen=True, slots=True)
class UserPreferences:
    """Signals about the viewer that every candidate is scored against."""

    genres: tuple[str, ...] = ()
    recently_watched_ids: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    genre_similarity: float
    recency: float
    completion: float
    popularity: float
    diversity: float
    next_episode: bool
    total: float


def genre_similarity(
    user_genres: Iterable[str] | None, content_genres: Iterable[str] | None
) -> float:
    """Jaccard similarity of two genre collections (0 when either is empty)."""

    user_set = set(user_genres or ())
    content_set = set(content_genres or ())
    if not user_set or not content_set:
        return 0.0
    union = user_set | content_set
    return len(user_set & content_set) / len(union)


def recency_score(
    timestamp: datetime | None, now: datetime, decay: float = 0.1
) -> float:
    """Exponential decay ``e^(-decay * age_days)``; 0 without a timestamp."""

    age = age_in_days(timestamp, now)
    if age is None:
        return 0.0
    # Future-dated catalog entries count as brand new.
    return math.exp(-decay * max(age, 0.0))


def completion_score(
    playback_seconds: float | None, duration_seconds: float | None
) -> float:
    """Score how far a watched item was played.

    Only meaningful for already-watched items; unwatched candidates always
    score 0 here.
    """

    if not playback_seconds or not duration_seconds or duration_seconds <= 0:
        return 0.0
    ratio = playback_seconds / duration_seconds
    if ratio >= 0.9:
        return 1.0
    if ratio < 0.1:
        return 0.2
    return ratio


def popularity_score(watch_count: int | None, ceiling: int = 100) -> float:
    if not watch_count or watch_count <= 0:
        return 0.0
    return min(watch_count / ceiling, 1.0)


def diversity_score(item_id: str | None, recently_watched_ids: Iterable[str]) -> float:
    if item_id and item_id in recently_watched_ids:
        return DIVERSITY_PENALTY
    return 1.0


def combine_scores(
    *,
    genre: float = 0.0,
    recency: float = 0.0,
    completion: float = 0.0,
    popularity: float = 0.0,
    diversity: float = 1.0,
    is_next_episode: bool = False,
    weights: Mapping[str, float] = DEFAULT_SCORE_WEIGHTS,
) -> float:
    """Weighted sum of the signals plus the flat next-episode boost, clamped."""

    total = (
        genre * weights["genre_similarity"]
        + recency * weights["recency"]
        + completion * weights["completion"]
        + popularity * weights["popularity"]
        + diversity * weights["diversity"]
    )
    if is_next_episode:
        total += weights["next_episode"]
    return min(max(total, 0.0), 1.0)


class ScoringEngine:
    """Deterministic, explainable scoring over the available signals."""

    def __init__(
        self,
        weights: Mapping[str, float] | None = None,
        *,
        recency_decay: float = 0.1,
        popularity_ceiling: int = 100,
        clock: Callable[[], datetime] = utcnow,
    ):
        merged = dict(DEFAULT_SCORE_WEIGHTS)
        if weights:
            merged.update(weights)
        self._weights = merged
        self._recency_decay = recency_decay
        self._popularity_ceiling = popularity_ceiling
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: Settings, *, clock: Callable[[], datetime] = utcnow
    ) -> "ScoringEngine":
        return cls(
            settings.score_weights,
            recency_decay=settings.recency_decay,
            popularity_ceiling=settings.popularity_ceiling,
            clock=clock,
        )

    @property
    def weights(self) -> dict[str, float]:
        return dict(self._weights)

    def breakdown(
        self,
        candidate: Candidate,
        preferences: UserPreferences,
        *,
        now: datetime | None = None,
    ) -> ScoreBreakdown:
        moment = now or self._clock()
        genre = genre_similarity(preferences.genres, candidate.genres)
        recency = recency_score(candidate.last_updated, moment, self._recency_decay)
        popularity = popularity_score(candidate.watch_count, self._popularity_ceiling)
        diversity = diversity_score(candidate.title_id, preferences.recently_watched_ids)
        completion = 0.0
        total = combine_scores(
            genre=genre,
            recency=recency,
            completion=completion,
            popularity=popularity,
            diversity=diversity,
            is_next_episode=candidate.is_next_episode,
            weights=self._weights,
        )
        return ScoreBreakdown(
            genre_similarity=genre,
            recency=recency,
            completion=completion,
            popularity=popularity,
            diversity=diversity,
            next_episode=candidate.is_next_episode,
            total=total,
        )

    def score(
        self,
        candidate: Candidate,
        preferences: UserPreferences,
        *,
        now: datetime | None = None,
    ) -> float:
        return self.breakdown(candidate, preferences, now=now).total

    def score_all(
        self,
        candidates: Sequence[Candidate],
        preferences: UserPreferences,
        *,
        now: datetime | None = None,
    ) -> list[Candidate]:
        """Return scored copies; one clock reading is shared by the batch."""

        moment = now or self._clock()
        return [
            candidate.model_copy(
                update={"score": self.score(candidate, preferences, now=moment)}
            )
            for candidate in candidates
        ]
