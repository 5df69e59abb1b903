from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.main import register_routes
from app.models import Candidate, Pagination, RecommendationCount, RecommendationResult
from app.services.recommender import RecommendationService


class DummyRecommendationService(RecommendationService):
    """Minimal RecommendationService stub for route testing."""

    def __init__(self) -> None:  # pragma: no cover - nothing to initialise
        # Skip super().__init__ so no database is needed.
        self.calls: list[tuple[str, int, int, bool]] = []

    async def get_recommendations(  # type: ignore[override]
        self, user_id: str, page: int = 0, limit: int = 30, count_only: bool = False
    ):
        self.calls.append((user_id, page, limit, count_only))
        if count_only:
            return RecommendationCount(count=1)
        return RecommendationResult(
            items=[
                Candidate(
                    identity="movie:m1-/media/movies/m1.mp4",
                    type="movie",
                    title_id="m1",
                    title="Heat",
                    media_locator="/media/movies/m1.mp4",
                    score=0.5,
                )
            ],
            has_watched=True,
            genres=["Crime"],
            latest_watch_timestamp="2024-05-01T00:00:00",
            pagination=Pagination(
                current_page=page, total_pages=5, total_items=1, items_per_page=limit
            ),
        )


def _client() -> tuple[TestClient, DummyRecommendationService]:
    app = FastAPI()
    register_routes(app)
    service = DummyRecommendationService()
    app.state.recommendation_service = service
    return TestClient(app), service


def test_healthcheck() -> None:
    client, _ = _client()
    with client:
        response = client.get("/healthz")

    assert response.json() == {"status": "ok"}


def test_recommendations_route_serialises_camel_case() -> None:
    client, service = _client()
    with client:
        response = client.get("/api/recommendations/u1?page=1&pageSize=12")

    assert response.status_code == 200
    payload = response.json()
    assert payload["hasWatched"] is True
    assert payload["pagination"] == {
        "currentPage": 1,
        "totalPages": 5,
        "totalItems": 1,
        "itemsPerPage": 12,
    }
    assert payload["items"][0]["mediaLocator"] == "/media/movies/m1.mp4"
    assert service.calls == [("u1", 1, 12, False)]


def test_default_page_size_is_applied() -> None:
    client, service = _client()
    with client:
        client.get("/api/recommendations/u1")

    user_id, page, limit, count_only = service.calls[0]
    assert (user_id, page, count_only) == ("u1", 0, False)
    assert limit >= 1


def test_count_only_query_and_count_route() -> None:
    client, service = _client()
    with client:
        flagged = client.get("/api/recommendations/u1?countOnly=true")
        dedicated = client.get("/api/recommendations/u1/count?limit=5")

    assert flagged.json() == {"count": 1}
    assert dedicated.json() == {"count": 1}
    assert service.calls[1] == ("u1", 0, 5, True)


def test_invalid_query_is_rejected() -> None:
    client, service = _client()
    with client:
        negative = client.get("/api/recommendations/u1?page=-1")
        garbage = client.get("/api/recommendations/u1?limit=lots")
        oversized = client.get("/api/recommendations/u1?limit=100000")

    assert negative.status_code == 400
    assert garbage.status_code == 400
    assert oversized.status_code == 400
    assert service.calls == []
