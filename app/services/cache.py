"""Request-level cache for computed recommendation pages."""

from __future__ import annotations

import logging
import time
from typing import Callable, NamedTuple, Protocol

from cachetools import TTLCache

from ..models import RecommendationResult

logger = logging.getLogger(__name__)


class RecommendationCacheKey(NamedTuple):
    user_id: str
    latest_watch: str
    page: int
    limit: int
    entry_count: int = 0


class RecommendationCache(Protocol):
    def get(self, key: RecommendationCacheKey) -> RecommendationResult | None:
        ...

    def set(self, key: RecommendationCacheKey, value: RecommendationResult) -> None:
        ...

    def clear(self) -> None:
        ...


class TTLRecommendationCache:
    """Bounded in-memory cache; entries expire after ``ttl_seconds``.

    Because the key embeds the newest watch timestamp and the entry count, a
    new playback event makes older entries unreachable; the TTL and size
    bound reclaim them.
    """

    def __init__(
        self,
        max_entries: int = 1_024,
        ttl_seconds: float = 1_800,
        *,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._entries: TTLCache[RecommendationCacheKey, RecommendationResult] = (
            TTLCache(maxsize=max_entries, ttl=ttl_seconds, timer=timer)
        )

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: RecommendationCacheKey) -> RecommendationResult | None:
        cached = self._entries.get(key)
        if cached is None:
            return None
        logger.debug("Recommendation cache hit for %s", key)
        return cached.model_copy(deep=True)

    def set(self, key: RecommendationCacheKey, value: RecommendationResult) -> None:
        self._entries[key] = value.model_copy(deep=True)

    def clear(self) -> None:
        self._entries.clear()


class NullRecommendationCache:
    """Cache that never stores anything."""

    def get(self, key: RecommendationCacheKey) -> RecommendationResult | None:
        return None

    def set(self, key: RecommendationCacheKey, value: RecommendationResult) -> None:
        return None

    def clear(self) -> None:
        return None
