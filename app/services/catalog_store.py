"""Read access to the movie and show catalog."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Literal, Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import EpisodeRecord, MovieGenre, MovieRecord, ShowGenre, ShowRecord
from ..models import Episode, Movie, Season, Show

logger = logging.getLogger(__name__)

TitleKind = Literal["movie", "tv"]


def movie_from_record(record: MovieRecord) -> Movie:
    links = sorted(record.genre_links, key=lambda link: (link.position, link.genre))
    return Movie(
        id=record.id,
        title=record.title,
        genres=tuple(link.genre for link in links),
        media_locator=record.media_locator,
        last_updated=record.last_updated,
    )


def show_from_record(record: ShowRecord) -> Show:
    links = sorted(record.genre_links, key=lambda link: (link.position, link.genre))
    by_season: dict[int, list[Episode]] = defaultdict(list)
    for episode in record.episodes:
        by_season[episode.season_number].append(
            Episode(
                episode_number=episode.episode_number,
                media_locator=episode.media_locator,
                title=episode.title,
            )
        )
    seasons = tuple(
        Season(
            season_number=number,
            episodes=tuple(sorted(episodes, key=lambda ep: ep.episode_number)),
        )
        for number, episodes in sorted(by_season.items())
    )
    return Show(
        id=record.id,
        title=record.title,
        genres=tuple(link.genre for link in links),
        seasons=seasons,
        last_updated=record.last_updated,
    )


class CatalogStore:
    """Query helpers over the catalog tables.

    Every method opens its own session so calls can run concurrently.
    Listing methods order by case-folded title then id so that paging over
    the catalog is deterministic.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find_movies_by_locators(self, locators: Iterable[str]) -> list[Movie]:
        wanted = sorted({locator for locator in locators if locator})
        if not wanted:
            return []
        stmt = select(MovieRecord).where(MovieRecord.media_locator.in_(wanted))
        return await self._fetch_movies(self._ordered_movies(stmt))

    async def find_shows_by_locators(self, locators: Iterable[str]) -> list[Show]:
        wanted = sorted({locator for locator in locators if locator})
        if not wanted:
            return []
        matching = select(EpisodeRecord.show_id).where(
            EpisodeRecord.media_locator.in_(wanted)
        )
        stmt = select(ShowRecord).where(ShowRecord.id.in_(matching))
        return await self._fetch_shows(self._ordered_shows(stmt))

    async def find_movies_by_ids(self, ids: Iterable[str]) -> list[Movie]:
        wanted = sorted(set(ids))
        if not wanted:
            return []
        stmt = select(MovieRecord).where(MovieRecord.id.in_(wanted))
        return await self._fetch_movies(self._ordered_movies(stmt))

    async def find_shows_by_ids(self, ids: Iterable[str]) -> list[Show]:
        wanted = sorted(set(ids))
        if not wanted:
            return []
        stmt = select(ShowRecord).where(ShowRecord.id.in_(wanted))
        return await self._fetch_shows(self._ordered_shows(stmt))

    async def find_movies_by_genres(
        self,
        genres: Sequence[str],
        exclude_ids: Iterable[str] = (),
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Movie]:
        """Return movies sharing at least one genre, skipping ``exclude_ids``."""

        if not genres:
            return []
        matching = select(MovieGenre.movie_id).where(MovieGenre.genre.in_(list(genres)))
        stmt = select(MovieRecord).where(MovieRecord.id.in_(matching))
        stmt = self._exclude(stmt, MovieRecord.id, exclude_ids)
        stmt = self._window(self._ordered_movies(stmt), offset, limit)
        return await self._fetch_movies(stmt)

    async def find_shows_by_genres(
        self,
        genres: Sequence[str],
        exclude_ids: Iterable[str] = (),
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Show]:
        if not genres:
            return []
        matching = select(ShowGenre.show_id).where(ShowGenre.genre.in_(list(genres)))
        stmt = select(ShowRecord).where(ShowRecord.id.in_(matching))
        stmt = self._exclude(stmt, ShowRecord.id, exclude_ids)
        stmt = self._window(self._ordered_shows(stmt), offset, limit)
        return await self._fetch_shows(stmt)

    async def list_movies(
        self,
        exclude_ids: Iterable[str] = (),
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Movie]:
        stmt = self._exclude(select(MovieRecord), MovieRecord.id, exclude_ids)
        stmt = self._window(self._ordered_movies(stmt), offset, limit)
        return await self._fetch_movies(stmt)

    async def list_shows(
        self,
        exclude_ids: Iterable[str] = (),
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Show]:
        stmt = self._exclude(select(ShowRecord), ShowRecord.id, exclude_ids)
        stmt = self._window(self._ordered_shows(stmt), offset, limit)
        return await self._fetch_shows(stmt)

    async def count_titles(
        self, kind: TitleKind | None = None, exclude_ids: Iterable[str] = ()
    ) -> int:
        """Count catalog documents, optionally limited to one kind."""

        excluded = list(exclude_ids)
        total = 0
        async with self._session_factory() as session:
            if kind in (None, "movie"):
                stmt = self._exclude(
                    select(func.count(MovieRecord.id)), MovieRecord.id, excluded
                )
                total += int(await session.scalar(stmt) or 0)
            if kind in (None, "tv"):
                stmt = self._exclude(
                    select(func.count(ShowRecord.id)), ShowRecord.id, excluded
                )
                total += int(await session.scalar(stmt) or 0)
        return total

    async def add_titles(self, titles: Sequence[Movie | Show]) -> None:
        """Insert or replace catalog documents."""

        async with self._session_factory() as session:
            for title in titles:
                model = MovieRecord if isinstance(title, Movie) else ShowRecord
                existing = await session.get(model, title.id)
                if existing is not None:
                    await session.delete(existing)
                    await session.flush()
                if isinstance(title, Movie):
                    session.add(self._movie_record(title))
                else:
                    session.add(self._show_record(title))
                await session.flush()
            await session.commit()
        logger.info("Stored %s catalog titles", len(titles))

    @staticmethod
    def _movie_record(movie: Movie) -> MovieRecord:
        record = MovieRecord(
            id=movie.id,
            title=movie.title,
            media_locator=movie.media_locator,
            last_updated=movie.last_updated,
        )
        record.genre_links = [
            MovieGenre(genre=genre, position=index)
            for index, genre in enumerate(dict.fromkeys(movie.genres))
        ]
        return record

    @staticmethod
    def _show_record(show: Show) -> ShowRecord:
        record = ShowRecord(
            id=show.id, title=show.title, last_updated=show.last_updated
        )
        record.genre_links = [
            ShowGenre(genre=genre, position=index)
            for index, genre in enumerate(dict.fromkeys(show.genres))
        ]
        record.episodes = [
            EpisodeRecord(
                season_number=season.season_number,
                episode_number=episode.episode_number,
                title=episode.title,
                media_locator=episode.media_locator,
            )
            for season in show.seasons
            for episode in season.episodes
        ]
        return record

    @staticmethod
    def _exclude(stmt: Select, column, exclude_ids: Iterable[str]) -> Select:
        excluded = sorted(set(exclude_ids))
        if excluded:
            stmt = stmt.where(column.not_in(excluded))
        return stmt

    @staticmethod
    def _window(stmt: Select, offset: int, limit: int | None) -> Select:
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return stmt

    @staticmethod
    def _ordered_movies(stmt: Select) -> Select:
        return stmt.order_by(func.lower(MovieRecord.title), MovieRecord.id)

    @staticmethod
    def _ordered_shows(stmt: Select) -> Select:
        return stmt.order_by(func.lower(ShowRecord.title), ShowRecord.id)

    async def _fetch_movies(self, stmt: Select) -> list[Movie]:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            records = result.scalars().all()
            return [movie_from_record(record) for record in records]

    async def _fetch_shows(self, stmt: Select) -> list[Show]:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            records = result.scalars().all()
            return [show_from_record(record) for record in records]
