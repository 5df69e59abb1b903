"""Blend low-scoring candidates into the high-scoring head of the list."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

from ..models import Candidate
from .dedupe import with_identity
from .pagination import ranking_key

INTERLEAVE_FACTOR = 0.7


@dataclass(slots=True)
class MixResult:
    items: list[Candidate] = field(default_factory=list)
    personalized_count: int = 0
    diverse_count: int = 0
    leftovers: list[Candidate] = field(default_factory=list)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class DiversityMixer:
    """Reserve a share of every result for candidates outside the top scores."""

    def __init__(self, ratio: float = 0.2, threshold: float = 0.3):
        self._ratio = ratio
        self._threshold = threshold

    @property
    def ratio(self) -> float:
        return self._ratio

    def split(
        self, scored: Sequence[Candidate]
    ) -> tuple[list[Candidate], list[Candidate]]:
        """Partition scored candidates into ranked high and low pools."""

        ranked = sorted((with_identity(item) for item in scored), key=ranking_key)
        high = [item for item in ranked if item.score >= self._threshold]
        low = [item for item in ranked if item.score < self._threshold]
        return high, low

    def mix(
        self,
        high: Sequence[Candidate],
        low: Sequence[Candidate],
        ratio: float | None = None,
    ) -> MixResult:
        """Take ``round(N * ratio)`` items from ``low`` and the rest from ``high``.

        ``N`` is ``len(high)``. When ``low`` runs short the remaining high
        items fill its slots. Everything not mixed in is returned in
        ``leftovers``, high before low, so callers can keep serving it.
        """

        ratio = self._ratio if ratio is None else ratio
        high = [with_identity(item) for item in high]
        low = [with_identity(item) for item in low]
        size = len(high)
        if size <= 0:
            return MixResult(leftovers=low)

        diverse_target = min(_round_half_up(size * ratio), size)
        head = high[: size - diverse_target]
        taken = {item.identity for item in head}

        diverse: list[Candidate] = []
        for item in low:
            if len(diverse) >= diverse_target:
                break
            if item.identity in taken:
                continue
            taken.add(item.identity)
            diverse.append(item)

        for item in high[len(head) :]:
            if len(head) + len(diverse) >= size:
                break
            if item.identity in taken:
                continue
            taken.add(item.identity)
            head.append(item)

        leftovers = [item for item in [*high, *low] if item.identity not in taken]
        return MixResult(
            items=[*head, *diverse],
            personalized_count=len(head),
            diverse_count=len(diverse),
            leftovers=leftovers,
        )

    @staticmethod
    def interleave(
        items: Sequence[Candidate], start: int, count: int
    ) -> list[Candidate]:
        """Swap each index ``i`` in ``[start, start + count)`` with ``floor(i * 0.7)``."""

        arranged = list(items)
        stop = min(start + count, len(arranged))
        for index in range(max(start, 0), stop):
            target = math.floor(index * INTERLEAVE_FACTOR)
            if target < index:
                arranged[index], arranged[target] = arranged[target], arranged[index]
        return arranged
