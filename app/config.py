"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal, Mapping

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_SCORE_WEIGHTS: dict[str, float] = {
    "genre_similarity": 0.3,
    "recency": 0.2,
    "completion": 0.15,
    "popularity": 0.15,
    "diversity": 0.1,
    "next_episode": 0.5,
}


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="WatchNext", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./watchnext.db", alias="DATABASE_URL"
    )

    default_page_size: int = Field(
        default=30, alias="DEFAULT_PAGE_SIZE", ge=1, le=500
    )
    max_page_size: int = Field(default=100, alias="MAX_PAGE_SIZE", ge=1, le=500)

    top_genre_count: int = Field(default=3, alias="TOP_GENRE_COUNT", ge=1, le=20)
    fetch_multiplier: int = Field(default=5, alias="FETCH_MULTIPLIER", ge=1, le=50)
    fetch_floor: int = Field(default=100, alias="FETCH_FLOOR", ge=1, le=10_000)
    fetch_cap: int = Field(default=500, alias="FETCH_CAP", ge=1, le=10_000)

    diversity_ratio: float = Field(
        default=0.2, alias="DIVERSITY_RATIO", ge=0.0, le=1.0
    )
    high_score_threshold: float = Field(
        default=0.3, alias="HIGH_SCORE_THRESHOLD", ge=0.0, le=1.0
    )
    recency_decay: float = Field(default=0.1, alias="RECENCY_DECAY", gt=0.0)
    popularity_ceiling: int = Field(
        default=100, alias="POPULARITY_CEILING", ge=1
    )
    score_weights: Annotated[dict[str, float], NoDecode] = Field(
        default_factory=lambda: dict(DEFAULT_SCORE_WEIGHTS),
        alias="SCORE_WEIGHTS",
    )

    cache_max_entries: int = Field(
        default=1_024, alias="CACHE_MAX_ENTRIES", ge=1, le=1_000_000
    )
    cache_ttl_seconds: int = Field(default=1_800, alias="CACHE_TTL", ge=1)

    placeholder_fill: bool = Field(default=False, alias="PLACEHOLDER_FILL")
    pagination_item_cap: int = Field(
        default=500, alias="PAGINATION_ITEM_CAP", ge=1
    )
    min_total_pages: int = Field(default=5, alias="MIN_TOTAL_PAGES", ge=1)

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("score_weights", mode="before")
    @classmethod
    def _parse_score_weights(cls, value: object) -> dict[str, float]:
        """Merge configured weights over the defaults.

        Accepts a mapping or a comma separated ``name=value`` string such as
        ``"genre_similarity=0.4,next_episode=0.6"``.
        """

        if value is None or value == "":
            return dict(DEFAULT_SCORE_WEIGHTS)
        if isinstance(value, str):
            pairs: dict[str, object] = {}
            for part in value.split(","):
                part = part.strip()
                if not part:
                    continue
                name, sep, raw = part.partition("=")
                if not sep:
                    raise ValueError("SCORE_WEIGHTS entries must look like name=value")
                pairs[name.strip()] = raw.strip()
        elif isinstance(value, Mapping):
            pairs = dict(value)
        else:
            raise TypeError("SCORE_WEIGHTS must be a string or mapping")

        merged = dict(DEFAULT_SCORE_WEIGHTS)
        for name, raw in pairs.items():
            key = str(name).strip().lower().replace("-", "_")
            if key not in DEFAULT_SCORE_WEIGHTS:
                raise ValueError("Unknown score weight configured")
            try:
                weight = float(str(raw))
            except (TypeError, ValueError) as exc:
                raise ValueError("Score weights must be numeric") from exc
            if weight < 0:
                raise ValueError("Score weights must not be negative")
            merged[key] = weight
        return merged

    @model_validator(mode="after")
    def _check_fetch_window(self) -> "Settings":
        """Ensure the candidate fetch window bounds are coherent."""

        if self.fetch_floor > self.fetch_cap:
            raise ValueError("FETCH_FLOOR must not exceed FETCH_CAP")
        if self.default_page_size > self.max_page_size:
            raise ValueError("DEFAULT_PAGE_SIZE must not exceed MAX_PAGE_SIZE")
        return self

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
