"""Utility helpers for the WatchNext service."""

from __future__ import annotations

from datetime import datetime, timezone


NO_WATCH_HISTORY = "no-watch-history"
LOCATOR_PREFIX_LENGTH = 20
SECONDS_PER_DAY = 86_400


def utcnow() -> datetime:
    """Return the current time as a naive UTC datetime."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime | str | None) -> datetime | None:
    """Normalise timestamps to naive UTC, parsing ISO strings when needed."""

    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def age_in_days(timestamp: datetime | None, now: datetime) -> float | None:
    """Return how many days old ``timestamp`` is relative to ``now``."""

    moment = as_naive_utc(timestamp)
    if moment is None:
        return None
    return (as_naive_utc(now) - moment).total_seconds() / SECONDS_PER_DAY


def locator_prefix(locator: str | None) -> str:
    """Return the truncated locator fragment embedded in identities."""

    if not locator:
        return ""
    return locator[:LOCATOR_PREFIX_LENGTH]


def title_sort_key(title: str | None) -> str:
    """Return a case-insensitive key for deterministic title ordering."""

    return (title or "").strip().casefold()

