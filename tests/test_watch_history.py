from __future__ import annotations

import asyncio
from datetime import datetime

from app.models import WatchedEntry
from app.utils import NO_WATCH_HISTORY


def test_record_watch_upserts_by_locator(open_stores) -> None:
    async def runner():
        async with open_stores() as stores:
            history = stores.history
            await history.record_watch(
                "user-1",
                WatchedEntry(media_locator="/a", last_updated=datetime(2024, 1, 1)),
            )
            await history.record_watch(
                "user-1",
                WatchedEntry(
                    media_locator="/a",
                    last_updated=datetime(2024, 2, 1),
                    playback_position_seconds=42,
                ),
            )
            return await history.get_record("user-1")

    record = asyncio.run(runner())

    assert record is not None
    assert len(record.watched_entries) == 1
    entry = record.watched_entries[0]
    assert entry.last_updated == datetime(2024, 2, 1)
    assert entry.playback_position_seconds == 42


def test_get_record_for_unknown_user_is_none(open_stores) -> None:
    async def runner():
        async with open_stores() as stores:
            return await stores.history.get_record("ghost")

    assert asyncio.run(runner()) is None


def test_global_watch_counts_count_distinct_users(open_stores) -> None:
    async def runner():
        async with open_stores() as stores:
            for user_id in ("u1", "u2", "u3"):
                await stores.history.record_watch(
                    user_id, WatchedEntry(media_locator="/popular")
                )
            await stores.history.record_watch("u1", WatchedEntry(media_locator="/niche"))
            return await stores.history.get_global_watch_counts()

    assert asyncio.run(runner()) == {"/popular": 3, "/niche": 1}


def test_latest_watch_timestamp_sentinels(open_stores) -> None:
    async def runner():
        async with open_stores() as stores:
            history = stores.history
            empty = await history.latest_watch_timestamp("u1")
            await history.record_watch("u1", WatchedEntry(media_locator="/a"))
            undated = await history.latest_watch_timestamp("u1")
            await history.record_watch(
                "u1",
                WatchedEntry(media_locator="/b", last_updated=datetime(2024, 3, 4, 5, 6)),
            )
            dated = await history.latest_watch_timestamp("u1")
            return empty, undated, dated

    empty, undated, dated = asyncio.run(runner())

    assert empty == NO_WATCH_HISTORY
    assert undated == "entries-1"
    assert dated == "2024-03-04T05:06:00"


def test_fingerprint_changes_when_undated_entry_joins_dated_history(open_stores) -> None:
    async def runner():
        async with open_stores() as stores:
            history = stores.history
            await history.record_watch(
                "u1",
                WatchedEntry(media_locator="/a", last_updated=datetime(2024, 3, 4)),
            )
            before = await history.history_fingerprint("u1")
            await history.record_watch("u1", WatchedEntry(media_locator="/b"))
            after = await history.history_fingerprint("u1")
            latest = await history.latest_watch_timestamp("u1")
            return before, after, latest

    before, after, latest = asyncio.run(runner())

    assert before == ("2024-03-04T00:00:00", 1)
    assert after == ("2024-03-04T00:00:00", 2)
    assert latest == "2024-03-04T00:00:00"
