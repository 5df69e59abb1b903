"""Stable identities for candidates and order-preserving de-duplication."""

from __future__ import annotations

from typing import AbstractSet, Iterable

from ..models import Candidate
from ..utils import locator_prefix


def compute_identity(candidate: Candidate) -> str:
    """Build the de-duplication key of a candidate.

    Movies use ``movie:<id>``, episodes use ``tv:<id>-S<n>-E<m>``; both carry
    a truncated locator suffix when a locator is known.
    """

    base = f"{candidate.type}:{candidate.title_id}"
    if candidate.type == "tv" and candidate.episode_ref is not None:
        ref = candidate.episode_ref
        base = f"{base}-S{ref.season_number}-E{ref.episode_number}"
    prefix = locator_prefix(candidate.media_locator)
    if prefix:
        base = f"{base}-{prefix}"
    return base


def with_identity(candidate: Candidate) -> Candidate:
    if candidate.identity:
        return candidate
    return candidate.model_copy(update={"identity": compute_identity(candidate)})


def dedupe(
    candidates: Iterable[Candidate],
    *,
    exclude_identities: AbstractSet[str] = frozenset(),
    exclude_locators: AbstractSet[str] = frozenset(),
) -> list[Candidate]:
    """Drop repeats by identity or locator, keeping first occurrences.

    ``exclude_identities`` and ``exclude_locators`` hold keys already taken
    elsewhere (for example by an earlier fallback tier).
    """

    unique: list[Candidate] = []
    seen_identities: set[str] = set(exclude_identities)
    seen_locators: set[str] = set(exclude_locators)

    for candidate in candidates:
        candidate = with_identity(candidate)
        if candidate.identity in seen_identities:
            continue
        locator = candidate.media_locator
        if locator and locator in seen_locators:
            continue
        seen_identities.add(candidate.identity)
        if locator:
            seen_locators.add(locator)
        unique.append(candidate)
    return unique
