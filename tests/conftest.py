"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.database import Database  # noqa: E402
from app.models import Episode, Movie, Season, Show  # noqa: E402
from app.services.catalog_store import CatalogStore  # noqa: E402
from app.services.watch_history import WatchHistoryStore  # noqa: E402

NOW = datetime(2024, 6, 1, 12, 0, 0)


def movie(
    movie_id: str,
    title: str,
    genres: tuple[str, ...] = (),
    *,
    locator: str | None = "auto",
    age_days: float = 10,
) -> Movie:
    if locator == "auto":
        locator = f"/media/movies/{movie_id}.mp4"
    return Movie(
        id=movie_id,
        title=title,
        genres=genres,
        media_locator=locator,
        last_updated=NOW - timedelta(days=age_days),
    )


def show(
    show_id: str,
    title: str,
    genres: tuple[str, ...] = (),
    *,
    episodes: dict[int, int] | None = None,
    missing: set[tuple[int, int]] | None = None,
    age_days: float = 10,
) -> Show:
    """Build a show; ``episodes`` maps season number to episode count."""

    seasons = tuple(
        Season(
            season_number=season_number,
            episodes=tuple(
                Episode(
                    episode_number=number,
                    media_locator=None
                    if (season_number, number) in (missing or ())
                    else episode_locator(show_id, season_number, number),
                )
                for number in range(1, count + 1)
            ),
        )
        for season_number, count in (episodes or {1: 2}).items()
    )
    return Show(
        id=show_id,
        title=title,
        genres=genres,
        seasons=seasons,
        last_updated=NOW - timedelta(days=age_days),
    )


def episode_locator(show_id: str, season: int, episode: int) -> str:
    return f"/media/tv/{show_id}/s{season:02d}e{episode:02d}.mkv"


@dataclass
class Stores:
    database: Database
    catalog: CatalogStore
    history: WatchHistoryStore


@pytest.fixture
def make_movie():
    return movie


@pytest.fixture
def make_show():
    return show


@pytest.fixture
def fixed_now() -> datetime:
    return NOW


@pytest.fixture
def sample_titles() -> list[Movie | Show]:
    return [
        movie("m-alien", "Alien", ("Horror", "Science Fiction"), age_days=1),
        movie("m-blade", "Blade Runner", ("Science Fiction", "Drama"), age_days=3),
        movie("m-casa", "Casablanca", ("Drama", "Romance"), age_days=30),
        movie("m-dune", "Dune", ("Science Fiction", "Adventure"), age_days=2),
        movie("m-elf", "Elf", ("Comedy",), age_days=60),
        show(
            "s-expanse",
            "The Expanse",
            ("Science Fiction", "Drama"),
            episodes={1: 3, 2: 2},
            age_days=5,
        ),
        show("s-fargo", "Fargo", ("Crime", "Drama"), episodes={1: 2}, age_days=8),
        show(
            "s-ghosts",
            "Ghosts",
            ("Comedy",),
            episodes={1: 2},
            missing={(1, 1)},
            age_days=4,
        ),
    ]


@pytest.fixture
def open_stores(tmp_path):
    """Return an async context manager yielding stores over a fresh database."""

    @asynccontextmanager
    async def _open(titles=()):
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'watchnext.db'}")
        await database.create_all()
        catalog = CatalogStore(database.session_factory)
        if titles:
            await catalog.add_titles(list(titles))
        try:
            yield Stores(database, catalog, WatchHistoryStore(database.session_factory))
        finally:
            await database.dispose()

    return _open
