"""Infer a user's preferred genres from their playback history."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from ..models import Movie, Show
from .catalog_store import CatalogStore
from .watch_history import WatchHistoryStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UserAffinity:
    """What the engine knows about a viewer before assembling candidates."""

    user_id: str
    has_watched: bool = False
    genres: list[str] = field(default_factory=list)
    watched_locators: set[str] = field(default_factory=set)
    invalid_locators: set[str] = field(default_factory=set)
    watched_movie_ids: set[str] = field(default_factory=set)
    watched_show_map: dict[str, Show] = field(default_factory=dict)
    latest_watch: datetime | None = None

    @property
    def recently_watched_ids(self) -> set[str]:
        return self.watched_movie_ids | set(self.watched_show_map)

    @property
    def watched_title_keys(self) -> set[str]:
        keys = {f"movie:{movie_id}" for movie_id in self.watched_movie_ids}
        keys.update(f"tv:{show_id}" for show_id in self.watched_show_map)
        return keys

    def blocks_locator(self, locator: str | None) -> bool:
        """Return whether a locator must never be surfaced to this viewer."""

        return bool(locator) and (
            locator in self.watched_locators or locator in self.invalid_locators
        )


def rank_genres(titles: Iterable[Movie | Show], limit: int) -> list[str]:
    """Count each genre once per title and return the ``limit`` most common.

    Ties keep the order in which genres were first seen.
    """

    tally: Counter[str] = Counter()
    for title in titles:
        for genre in dict.fromkeys(title.genres):
            if genre:
                tally[genre] += 1
    return [genre for genre, _ in tally.most_common(limit)]


class GenreAffinityExtractor:
    def __init__(
        self,
        catalog: CatalogStore,
        history: WatchHistoryStore,
        *,
        top_genre_count: int = 3,
    ):
        self._catalog = catalog
        self._history = history
        self._top_genre_count = top_genre_count

    async def extract(self, user_id: str) -> UserAffinity:
        record = await self._history.get_record(user_id)
        if record is None or record.is_empty():
            return UserAffinity(user_id=user_id)

        locators = record.locators()
        affinity = UserAffinity(
            user_id=user_id,
            watched_locators=locators,
            invalid_locators=record.invalid_locators(),
            latest_watch=record.latest_watch(),
        )

        movies, shows = await asyncio.gather(
            self._catalog.find_movies_by_locators(locators),
            self._catalog.find_shows_by_locators(locators),
        )
        if not movies and not shows:
            logger.info(
                "History of user %s does not resolve to any catalog title", user_id
            )
            return affinity

        affinity.has_watched = True
        affinity.watched_movie_ids = {movie.id for movie in movies}
        affinity.watched_show_map = {show.id: show for show in shows}
        affinity.genres = rank_genres([*movies, *shows], self._top_genre_count)
        logger.info(
            "Resolved %s watched movies and %s watched shows for user %s (genres: %s)",
            len(movies),
            len(shows),
            user_id,
            ", ".join(affinity.genres) or "none",
        )
        return affinity
