from __future__ import annotations

import asyncio

from app.models import Movie, Show


def test_add_titles_round_trips_catalog(open_stores, sample_titles) -> None:
    async def runner():
        async with open_stores(sample_titles) as stores:
            movies = await stores.catalog.list_movies()
            shows = await stores.catalog.list_shows()
            return movies, shows

    movies, shows = asyncio.run(runner())

    assert [movie.title for movie in movies] == [
        "Alien",
        "Blade Runner",
        "Casablanca",
        "Dune",
        "Elf",
    ]
    assert [show.title for show in shows] == ["Fargo", "Ghosts", "The Expanse"]
    expanse = shows[-1]
    assert isinstance(expanse, Show)
    assert [season.season_number for season in expanse.seasons] == [1, 2]
    assert expanse.genres == ("Science Fiction", "Drama")


def test_find_by_locators_resolves_movies_and_shows(open_stores, sample_titles) -> None:
    async def runner():
        async with open_stores(sample_titles) as stores:
            movies = await stores.catalog.find_movies_by_locators(
                ["/media/movies/m-dune.mp4", "/unknown"]
            )
            shows = await stores.catalog.find_shows_by_locators(
                ["/media/tv/s-fargo/s01e02.mkv"]
            )
            empty = await stores.catalog.find_movies_by_locators([])
            return movies, shows, empty

    movies, shows, empty = asyncio.run(runner())

    assert [movie.id for movie in movies] == ["m-dune"]
    assert [show.id for show in shows] == ["s-fargo"]
    assert empty == []


def test_find_by_genres_honours_exclusions_and_limit(open_stores, sample_titles) -> None:
    async def runner():
        async with open_stores(sample_titles) as stores:
            limited = await stores.catalog.find_movies_by_genres(
                ["Science Fiction"], exclude_ids={"m-alien"}, limit=1
            )
            shows = await stores.catalog.find_shows_by_genres(["Drama"])
            nothing = await stores.catalog.find_movies_by_genres([])
            return limited, shows, nothing

    limited, shows, nothing = asyncio.run(runner())

    assert [movie.id for movie in limited] == ["m-blade"]
    assert [show.id for show in shows] == ["s-fargo", "s-expanse"]
    assert nothing == []


def test_find_by_ids(open_stores, sample_titles) -> None:
    async def runner():
        async with open_stores(sample_titles) as stores:
            movies = await stores.catalog.find_movies_by_ids(["m-elf", "m-casa"])
            shows = await stores.catalog.find_shows_by_ids(["s-ghosts"])
            return movies, shows

    movies, shows = asyncio.run(runner())

    assert [movie.id for movie in movies] == ["m-casa", "m-elf"]
    assert shows[0].first_playable().episode_number == 2


def test_count_titles_by_kind(open_stores, sample_titles) -> None:
    async def runner():
        async with open_stores(sample_titles) as stores:
            return (
                await stores.catalog.count_titles(),
                await stores.catalog.count_titles("movie"),
                await stores.catalog.count_titles("tv", exclude_ids=["s-fargo"]),
            )

    assert asyncio.run(runner()) == (8, 5, 2)


def test_add_titles_replaces_existing_documents(open_stores, make_movie) -> None:
    async def runner():
        async with open_stores([make_movie("m1", "Heat", ("Crime",))]) as stores:
            await stores.catalog.add_titles(
                [make_movie("m1", "Heat (Director's Cut)", ("Crime", "Drama"))]
            )
            return await stores.catalog.find_movies_by_ids(["m1"])

    (movie,) = asyncio.run(runner())

    assert isinstance(movie, Movie)
    assert movie.title == "Heat (Director's Cut)"
    assert movie.genres == ("Crime", "Drama")
