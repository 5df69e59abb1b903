"""Pydantic models describing catalog titles, watch history and recommendations."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Iterator, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CandidateType = Literal["movie", "tv"]
CandidateSource = Literal["personalized", "popular", "random", "placeholder"]


class Episode(BaseModel):
    """A single playable episode inside a season."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    episode_number: int = Field(
        validation_alias=AliasChoices("episode_number", "episodeNumber")
    )
    media_locator: str | None = Field(
        default=None,
        validation_alias=AliasChoices("media_locator", "mediaLocator", "videoURL"),
    )
    title: str | None = None

    @property
    def playable(self) -> bool:
        return bool(self.media_locator)


class Season(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    season_number: int = Field(
        validation_alias=AliasChoices("season_number", "seasonNumber")
    )
    episodes: tuple[Episode, ...] = ()

    def playable_episodes(self) -> list[Episode]:
        """Return episodes with a locator, ordered by episode number."""

        return sorted(
            (episode for episode in self.episodes if episode.playable),
            key=lambda episode: episode.episode_number,
        )

    def find_episode(self, episode_number: int) -> Episode | None:
        for episode in self.episodes:
            if episode.episode_number == episode_number:
                return episode
        return None


class PlayableUnit(BaseModel):
    """A resolved playable unit of a catalog title."""

    model_config = ConfigDict(frozen=True)

    media_locator: str
    season_number: int | None = None
    episode_number: int | None = None


class _CatalogTitleBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    title: str
    genres: tuple[str, ...] = ()
    last_updated: datetime | None = Field(
        default=None, validation_alias=AliasChoices("last_updated", "lastUpdated")
    )

    def display_title(self) -> str:
        """Return a human-friendly title, falling back to the identifier."""

        title = (self.title or "").strip()
        return title or self.id


class Movie(_CatalogTitleBase):
    """Standalone catalog title with exactly one playable unit."""

    kind: Literal["movie"] = "movie"
    media_locator: str | None = Field(
        default=None,
        validation_alias=AliasChoices("media_locator", "mediaLocator", "videoURL"),
    )

    def playable_units(self) -> Iterator[PlayableUnit]:
        if self.media_locator:
            yield PlayableUnit(media_locator=self.media_locator)

    def first_playable(self) -> PlayableUnit | None:
        return next(self.playable_units(), None)

    def next_playable(
        self, after_season: int, after_episode: int
    ) -> PlayableUnit | None:
        # A movie has nothing to continue into.
        return None


class Show(_CatalogTitleBase):
    """Hierarchical catalog title: seasons of episodes, genres at show level."""

    kind: Literal["tv"] = "tv"
    seasons: tuple[Season, ...] = ()

    def ordered_seasons(self) -> list[Season]:
        return sorted(self.seasons, key=lambda season: season.season_number)

    def find_season(self, season_number: int) -> Season | None:
        for season in self.seasons:
            if season.season_number == season_number:
                return season
        return None

    def playable_units(self) -> Iterator[PlayableUnit]:
        for season in self.ordered_seasons():
            for episode in season.playable_episodes():
                yield PlayableUnit(
                    media_locator=episode.media_locator,
                    season_number=season.season_number,
                    episode_number=episode.episode_number,
                )

    def first_playable(self) -> PlayableUnit | None:
        """Return the lowest-numbered playable episode across all seasons."""

        return next(self.playable_units(), None)

    def next_playable(
        self, after_season: int, after_episode: int
    ) -> PlayableUnit | None:
        """Resolve the episode that follows ``(after_season, after_episode)``.

        The following episode in the same season wins when it is playable;
        otherwise the first playable episode of the next season is used.
        """

        current = self.find_season(after_season)
        if current is not None:
            following = current.find_episode(after_episode + 1)
            if following is not None and following.playable:
                return PlayableUnit(
                    media_locator=following.media_locator,
                    season_number=current.season_number,
                    episode_number=following.episode_number,
                )

        upcoming = self.find_season(after_season + 1)
        if upcoming is None:
            return None
        playable = upcoming.playable_episodes()
        if not playable:
            return None
        first = playable[0]
        return PlayableUnit(
            media_locator=first.media_locator,
            season_number=upcoming.season_number,
            episode_number=first.episode_number,
        )

    def latest_watched(self, watched_locators: set[str]) -> tuple[int, int] | None:
        """Return the greatest watched ``(season, episode)`` pair, if any."""

        latest: tuple[int, int] | None = None
        for unit in self.playable_units():
            if unit.media_locator not in watched_locators:
                continue
            position = (unit.season_number or 0, unit.episode_number or 0)
            if latest is None or position > latest:
                latest = position
        return latest


CatalogTitle = Annotated[Union[Movie, Show], Field(discriminator="kind")]


class WatchedEntry(BaseModel):
    """One watched media locator inside a user's history."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    media_locator: str = Field(
        validation_alias=AliasChoices("media_locator", "mediaLocator", "videoId")
    )
    last_updated: datetime | None = Field(
        default=None, validation_alias=AliasChoices("last_updated", "lastUpdated")
    )
    playback_position_seconds: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices(
            "playback_position_seconds", "playbackPositionSeconds", "playbackTime"
        ),
    )
    is_valid: bool | None = Field(
        default=None, validation_alias=AliasChoices("is_valid", "isValid", "validity")
    )


class WatchHistoryRecord(BaseModel):
    """All watched entries of one user, unique by locator."""

    user_id: str
    watched_entries: list[WatchedEntry] = Field(default_factory=list)

    @classmethod
    def from_entries(
        cls, user_id: str, entries: list[WatchedEntry]
    ) -> "WatchHistoryRecord":
        """Collapse duplicate locators, the last entry for a locator wins."""

        by_locator: dict[str, WatchedEntry] = {}
        for entry in entries:
            if not entry.media_locator:
                continue
            by_locator.pop(entry.media_locator, None)
            by_locator[entry.media_locator] = entry
        return cls(user_id=user_id, watched_entries=list(by_locator.values()))

    def is_empty(self) -> bool:
        return not self.watched_entries

    def locators(self) -> set[str]:
        return {entry.media_locator for entry in self.watched_entries}

    def invalid_locators(self) -> set[str]:
        return {
            entry.media_locator
            for entry in self.watched_entries
            if entry.is_valid is False
        }

    def latest_watch(self) -> datetime | None:
        stamps = [entry.last_updated for entry in self.watched_entries if entry.last_updated]
        return max(stamps) if stamps else None


class EpisodeRef(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    season_number: int
    episode_number: int


class Candidate(BaseModel):
    """A transient, scored recommendation proposal."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    identity: str = ""
    type: CandidateType
    title_id: str
    title: str
    genres: tuple[str, ...] = ()
    media_locator: str | None = None
    episode_ref: EpisodeRef | None = None
    is_next_episode: bool = False
    is_new_show: bool = False
    watch_count: int | None = None
    last_updated: datetime | None = None
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    source: CandidateSource = "personalized"

    @classmethod
    def from_movie(
        cls,
        movie: Movie,
        *,
        source: CandidateSource,
        watch_count: int | None = None,
    ) -> "Candidate":
        return cls(
            type="movie",
            title_id=movie.id,
            title=movie.display_title(),
            genres=movie.genres,
            media_locator=movie.media_locator,
            watch_count=watch_count,
            last_updated=movie.last_updated,
            source=source,
        )

    @classmethod
    def from_episode(
        cls,
        show: Show,
        unit: PlayableUnit,
        *,
        source: CandidateSource,
        is_next_episode: bool = False,
        is_new_show: bool = False,
        watch_count: int | None = None,
    ) -> "Candidate":
        return cls(
            type="tv",
            title_id=show.id,
            title=show.display_title(),
            genres=show.genres,
            media_locator=unit.media_locator,
            episode_ref=EpisodeRef(
                season_number=unit.season_number or 0,
                episode_number=unit.episode_number or 0,
            ),
            is_next_episode=is_next_episode,
            is_new_show=is_new_show,
            watch_count=watch_count,
            last_updated=show.last_updated,
            source=source,
        )

    @property
    def title_key(self) -> str:
        """Catalog-level key shared by every candidate of the same title."""

        return f"{self.type}:{self.title_id}"

    @property
    def is_playable(self) -> bool:
        return bool(self.media_locator)


class Pagination(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


class RecommendationResult(BaseModel):
    """Payload returned to the request-handling layer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    items: list[Candidate] = Field(default_factory=list)
    has_watched: bool = False
    genres: list[str] = Field(default_factory=list)
    latest_watch_timestamp: str | None = None
    pagination: Pagination | None = None
    error: str | None = None

    def to_response(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RecommendationCount(BaseModel):
    count: int

    def to_response(self) -> dict[str, object]:
        return self.model_dump(mode="json")
