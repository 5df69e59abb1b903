"""Final ordering, page slicing and pagination metadata."""

from __future__ import annotations

import math
from typing import Callable, Sequence

from ..models import Candidate, Pagination
from ..utils import title_sort_key
from .dedupe import with_identity

TYPE_RANK = {"movie": 0, "tv": 1}
PLACEHOLDER_TITLE = "More to watch soon"


def ranking_key(candidate: Candidate) -> tuple[float, int, str, str]:
    """Sort key: score desc (3 decimals), movies before shows, title, identity."""

    return (
        -round(candidate.score, 3),
        TYPE_RANK.get(candidate.type, len(TYPE_RANK)),
        title_sort_key(candidate.title),
        candidate.identity,
    )


def placeholder_candidates(count: int) -> list[Candidate]:
    """Build filler entries used to pad an empty first page in demo mode."""

    return [
        with_identity(
            Candidate(
                type="movie",
                title_id=f"placeholder-{index}",
                title=PLACEHOLDER_TITLE,
                media_locator=f"placeholder:{index}",
                source="placeholder",
            )
        )
        for index in range(count)
    ]


class Paginator:
    def __init__(
        self,
        *,
        item_cap: int = 500,
        min_total_pages: int = 5,
        placeholder_fill: bool = False,
    ):
        self._item_cap = item_cap
        self._min_total_pages = min_total_pages
        self._placeholder_fill = placeholder_fill

    @staticmethod
    def order(items: Sequence[Candidate]) -> list[Candidate]:
        return sorted((with_identity(item) for item in items), key=ranking_key)

    def paginate(
        self,
        items: Sequence[Candidate],
        page: int,
        limit: int,
        *,
        interleave: Callable[[list[Candidate]], list[Candidate]] | None = None,
    ) -> list[Candidate]:
        """Return the ``limit`` items of ``page`` from the ordered pool.

        ``interleave`` runs on the sorted pool before slicing. Short or empty
        slices are returned as they are unless placeholder filling is enabled
        for an empty first page.
        """

        ordered = self.order(items)
        if interleave is not None:
            ordered = interleave(ordered)
        return self.window(ordered, page, limit)

    def window(
        self, ordered: Sequence[Candidate], page: int, limit: int
    ) -> list[Candidate]:
        """Slice ``page`` out of a pool that is already in display order."""

        if not ordered and page == 0 and self._placeholder_fill:
            return placeholder_candidates(limit)
        start = page * limit
        return list(ordered[start : start + limit])

    def metadata(self, page: int, limit: int, total_titles: int) -> Pagination:
        total_items = min(total_titles, self._item_cap)
        total_pages = max(math.ceil(total_items / limit), self._min_total_pages)
        return Pagination(
            current_page=page,
            total_pages=total_pages,
            total_items=total_items,
            items_per_page=limit,
        )
