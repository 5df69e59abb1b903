"""Assemble unwatched recommendation candidates for one viewer."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence, TypeVar

from ..models import Candidate, CandidateSource, Movie, Show
from ..utils import title_sort_key
from .affinity import UserAffinity
from .catalog_store import CatalogStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def fetch_limit(
    limit: int,
    *,
    multiplier: int = 5,
    floor: int = 100,
    cap: int = 500,
) -> int:
    """Return how many titles to pull per source.

    Over-provisions by ``multiplier`` pages, bounded by ``floor`` and ``cap``.
    The size depends only on the page size so every page is cut from the
    same candidate set.
    """

    return min(cap, max(floor, limit * multiplier))


def next_episode_candidates(affinity: UserAffinity) -> list[Candidate]:
    """Resolve the continuation of every show the viewer has started."""

    candidates: list[Candidate] = []
    shows = sorted(
        affinity.watched_show_map.values(),
        key=lambda show: (title_sort_key(show.title), show.id),
    )
    for show in shows:
        latest = show.latest_watched(affinity.watched_locators)
        if latest is None:
            continue
        unit = show.next_playable(*latest)
        if unit is None or unit.media_locator in affinity.watched_locators:
            # Finished, or nothing further has been released.
            continue
        candidates.append(
            Candidate.from_episode(
                show, unit, source="personalized", is_next_episode=True
            )
        )
    return candidates


def first_episode_candidates(
    shows: Sequence[Show],
    *,
    source: CandidateSource = "personalized",
    is_new_show: bool = True,
) -> list[Candidate]:
    candidates: list[Candidate] = []
    for show in shows:
        unit = show.first_playable()
        if unit is None:
            continue
        candidates.append(
            Candidate.from_episode(
                show, unit, source=source, is_new_show=is_new_show
            )
        )
    return candidates


def movie_candidates(
    movies: Sequence[Movie], *, source: CandidateSource = "personalized"
) -> list[Candidate]:
    return [
        Candidate.from_movie(movie, source=source)
        for movie in movies
        if movie.media_locator
    ]


class CandidateAssembler:
    """Merge in-progress continuations with genre-matching new titles."""

    def __init__(
        self,
        catalog: CatalogStore,
        *,
        fetch_multiplier: int = 5,
        fetch_floor: int = 100,
        fetch_cap: int = 500,
    ):
        self._catalog = catalog
        self._fetch_multiplier = fetch_multiplier
        self._fetch_floor = fetch_floor
        self._fetch_cap = fetch_cap

    def fetch_limit(self, limit: int) -> int:
        return fetch_limit(
            limit,
            multiplier=self._fetch_multiplier,
            floor=self._fetch_floor,
            cap=self._fetch_cap,
        )

    async def assemble(
        self, affinity: UserAffinity, *, limit: int = 30
    ) -> list[Candidate]:
        in_progress = next_episode_candidates(affinity)

        size = self.fetch_limit(limit)
        movies_result, shows_result = await asyncio.gather(
            self._catalog.find_movies_by_genres(
                affinity.genres, affinity.watched_movie_ids, size
            ),
            self._catalog.find_shows_by_genres(
                affinity.genres, set(affinity.watched_show_map), size
            ),
            return_exceptions=True,
        )
        movies = self._stream_or_empty("genre movies", movies_result, affinity.user_id)
        shows = self._stream_or_empty("genre shows", shows_result, affinity.user_id)

        merged = [
            *in_progress,
            *movie_candidates(movies),
            *first_episode_candidates(shows),
        ]
        eligible = [
            candidate
            for candidate in merged
            if candidate.is_playable
            and not affinity.blocks_locator(candidate.media_locator)
        ]
        logger.info(
            "Assembled %s candidates for user %s (%s in progress, %s movies, %s shows)",
            len(eligible),
            affinity.user_id,
            len(in_progress),
            len(movies),
            len(shows),
        )
        return eligible

    @staticmethod
    def _stream_or_empty(
        name: str, result: list[T] | BaseException, user_id: str
    ) -> list[T]:
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.warning(
                "Candidate stream %s failed for user %s: %s", name, user_id, result
            )
            return []
        return result
