"""SQLAlchemy ORM models backing the catalog and playback history."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base
from .utils import utcnow


class MovieRecord(Base):
    """A standalone title with a single playable file."""

    __tablename__ = "movies"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), index=True)
    media_locator: Mapped[str | None] = mapped_column(
        String(1024), nullable=True, unique=True
    )
    last_updated: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    genre_links: Mapped[list["MovieGenre"]] = relationship(
        back_populates="movie", cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def genres(self) -> list[str]:
        return [link.genre for link in self.genre_links]


class MovieGenre(Base):
    __tablename__ = "movie_genres"

    movie_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("movies.id", ondelete="CASCADE"), primary_key=True
    )
    genre: Mapped[str] = mapped_column(String(120), primary_key=True, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)

    movie: Mapped[MovieRecord] = relationship(back_populates="genre_links")


class ShowRecord(Base):
    """A series; genres live here, playable files live on episodes."""

    __tablename__ = "shows"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), index=True)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    genre_links: Mapped[list["ShowGenre"]] = relationship(
        back_populates="show", cascade="all, delete-orphan", lazy="selectin"
    )
    episodes: Mapped[list["EpisodeRecord"]] = relationship(
        back_populates="show", cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def genres(self) -> list[str]:
        return [link.genre for link in self.genre_links]


class ShowGenre(Base):
    __tablename__ = "show_genres"

    show_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("shows.id", ondelete="CASCADE"), primary_key=True
    )
    genre: Mapped[str] = mapped_column(String(120), primary_key=True, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)

    show: Mapped[ShowRecord] = relationship(back_populates="genre_links")


class EpisodeRecord(Base):
    __tablename__ = "episodes"
    __table_args__ = (
        UniqueConstraint(
            "show_id", "season_number", "episode_number", name="uq_episode_position"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    show_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("shows.id", ondelete="CASCADE"), index=True
    )
    season_number: Mapped[int] = mapped_column(Integer)
    episode_number: Mapped[int] = mapped_column(Integer)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    media_locator: Mapped[str | None] = mapped_column(
        String(1024), nullable=True, unique=True
    )

    show: Mapped[ShowRecord] = relationship(back_populates="episodes")


class WatchedEntryRecord(Base):
    """Per-user playback record keyed by media locator."""

    __tablename__ = "watched_entries"
    __table_args__ = (
        UniqueConstraint("user_id", "media_locator", name="uq_watched_locator"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    media_locator: Mapped[str] = mapped_column(String(1024), index=True)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    playback_position_seconds: Mapped[float | None] = mapped_column(
        Float, nullable=True
    )
    is_valid: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
