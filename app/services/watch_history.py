"""Per-user playback history and global watch counts."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import WatchedEntryRecord
from ..models import WatchedEntry, WatchHistoryRecord
from ..utils import NO_WATCH_HISTORY, as_naive_utc

logger = logging.getLogger(__name__)


class WatchHistoryStore:
    """Reads watched locators per user.

    Playback position updates are written by the player; ``record_watch`` is
    the upsert it (and catalog seeding) goes through.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_record(self, user_id: str) -> WatchHistoryRecord | None:
        async with self._session_factory() as session:
            stmt = (
                select(WatchedEntryRecord)
                .where(WatchedEntryRecord.user_id == user_id)
                .order_by(WatchedEntryRecord.id)
            )
            result = await session.execute(stmt)
            rows = result.scalars().all()
        if not rows:
            return None
        entries = [
            WatchedEntry(
                media_locator=row.media_locator,
                last_updated=row.last_updated,
                playback_position_seconds=row.playback_position_seconds,
                is_valid=row.is_valid,
            )
            for row in rows
            if row.media_locator
        ]
        return WatchHistoryRecord.from_entries(user_id, entries)

    async def get_global_watch_counts(self) -> dict[str, int]:
        """Return how many users watched each locator."""

        async with self._session_factory() as session:
            stmt = select(
                WatchedEntryRecord.media_locator,
                func.count(func.distinct(WatchedEntryRecord.user_id)),
            ).group_by(WatchedEntryRecord.media_locator)
            result = await session.execute(stmt)
            counts = {locator: int(count) for locator, count in result.all() if locator}
        return counts

    async def history_fingerprint(self, user_id: str) -> tuple[str, int]:
        """Return the latest-watch token and the number of watched entries.

        The token is the newest ``last_updated`` as ISO text, or a sentinel
        when there is no history or no entry carries a timestamp. The count
        changes when an undated entry is added to dated history.
        """

        async with self._session_factory() as session:
            stmt = select(
                func.count(WatchedEntryRecord.id),
                func.max(WatchedEntryRecord.last_updated),
            ).where(WatchedEntryRecord.user_id == user_id)
            result = await session.execute(stmt)
            count, latest = result.one()
        count = int(count or 0)
        if not count:
            return NO_WATCH_HISTORY, 0
        moment = as_naive_utc(latest)
        if moment is None:
            return f"entries-{count}", count
        return moment.isoformat(), count

    async def latest_watch_timestamp(self, user_id: str) -> str:
        """Return the newest ``last_updated`` as ISO text, or a sentinel."""

        latest, _ = await self.history_fingerprint(user_id)
        return latest

    async def record_watch(self, user_id: str, entry: WatchedEntry) -> None:
        """Insert or update the entry for ``entry.media_locator``."""

        async with self._session_factory() as session:
            stmt = select(WatchedEntryRecord).where(
                WatchedEntryRecord.user_id == user_id,
                WatchedEntryRecord.media_locator == entry.media_locator,
            )
            result = await session.execute(stmt)
            record = result.scalar_one_or_none()
            if record is None:
                record = WatchedEntryRecord(
                    user_id=user_id, media_locator=entry.media_locator
                )
                session.add(record)
            record.last_updated = as_naive_utc(entry.last_updated)
            record.playback_position_seconds = entry.playback_position_seconds
            record.is_valid = entry.is_valid
            await session.commit()
        logger.debug("Recorded watch of %s for user %s", entry.media_locator, user_id)
