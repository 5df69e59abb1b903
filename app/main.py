"""Entry point for the FastAPI-powered recommendation service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .config import settings
from .database import Database
from .services.cache import TTLRecommendationCache
from .services.catalog_store import CatalogStore
from .services.recommender import RecommendationQuery, RecommendationService
from .services.watch_history import WatchHistoryStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    database = Database(settings.database_url)
    await database.create_all()

    catalog = CatalogStore(database.session_factory)
    history = WatchHistoryStore(database.session_factory)
    cache = TTLRecommendationCache(
        settings.cache_max_entries, settings.cache_ttl_seconds
    )
    service = RecommendationService(settings, catalog, history, cache=cache)

    fastapi_app.state.database = database
    fastapi_app.state.recommendation_service = service
    logger.info("Recommendation service ready (%s)", service.describe())

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        cache.clear()
        await database.dispose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Personalized movie and TV recommendations from playback history",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_recommendation_service(app: FastAPI) -> RecommendationService:
    service = getattr(app.state, "recommendation_service", None)
    if not isinstance(service, RecommendationService):
        raise RuntimeError("Recommendation service not initialised")
    return service


def register_routes(fastapi_app: FastAPI) -> None:
    def _parse_query(request: Request) -> RecommendationQuery:
        try:
            return RecommendationQuery.from_request(
                dict(request.query_params), max_page_size=settings.max_page_size
            )
        except ValidationError as exc:
            raise HTTPException(
                status_code=400, detail=exc.errors(include_url=False, include_context=False)
            ) from exc

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/recommendations/{user_id}")
    async def recommendations(user_id: str, request: Request) -> dict[str, Any]:
        service = get_recommendation_service(fastapi_app)
        query = _parse_query(request)
        result = await service.get_recommendations(
            user_id,
            page=query.page,
            limit=query.resolved_limit(settings.default_page_size),
            count_only=query.count_only,
        )
        return result.to_response()

    @fastapi_app.get("/api/recommendations/{user_id}/count")
    async def recommendation_count(user_id: str, request: Request) -> dict[str, Any]:
        service = get_recommendation_service(fastapi_app)
        query = _parse_query(request)
        result = await service.get_recommendations(
            user_id,
            page=query.page,
            limit=query.resolved_limit(settings.default_page_size),
            count_only=True,
        )
        return result.to_response()


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
