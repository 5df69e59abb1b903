"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest

from app.config import DEFAULT_SCORE_WEIGHTS, Settings


def test_defaults_match_ranking_heuristic() -> None:
    settings = Settings(_env_file=None)

    assert settings.score_weights == DEFAULT_SCORE_WEIGHTS
    assert settings.default_page_size == 30
    assert settings.top_genre_count == 3
    assert settings.diversity_ratio == pytest.approx(0.2)
    assert settings.high_score_threshold == pytest.approx(0.3)
    assert settings.placeholder_fill is False


def test_score_weights_accept_comma_separated_pairs() -> None:
    """Configured weights should be merged over the defaults."""

    settings = Settings(
        _env_file=None, SCORE_WEIGHTS="genre_similarity=0.4, next-episode=0.6"
    )

    assert settings.score_weights["genre_similarity"] == pytest.approx(0.4)
    assert settings.score_weights["next_episode"] == pytest.approx(0.6)
    assert settings.score_weights["recency"] == pytest.approx(0.2)


def test_score_weights_accept_mapping() -> None:
    settings = Settings(_env_file=None, SCORE_WEIGHTS={"Popularity": 0.5})

    assert settings.score_weights["popularity"] == pytest.approx(0.5)


def test_score_weights_blank_defaults() -> None:
    settings = Settings(_env_file=None, SCORE_WEIGHTS="")

    assert settings.score_weights == DEFAULT_SCORE_WEIGHTS


def test_score_weights_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCORE_WEIGHTS", "diversity=0.25")

    settings = Settings(_env_file=None)

    assert settings.score_weights["diversity"] == pytest.approx(0.25)


def test_unknown_score_weight_raises() -> None:
    with pytest.raises(ValueError, match="Unknown score weight configured"):
        Settings(_env_file=None, SCORE_WEIGHTS="charisma=1")


def test_malformed_score_weight_raises() -> None:
    with pytest.raises(ValueError, match="must look like name=value"):
        Settings(_env_file=None, SCORE_WEIGHTS="recency")


def test_negative_score_weight_raises() -> None:
    with pytest.raises(ValueError, match="must not be negative"):
        Settings(_env_file=None, SCORE_WEIGHTS="recency=-0.1")


def test_fetch_floor_must_not_exceed_cap() -> None:
    with pytest.raises(ValueError, match="FETCH_FLOOR must not exceed FETCH_CAP"):
        Settings(_env_file=None, FETCH_FLOOR=600, FETCH_CAP=500)


def test_default_page_size_must_fit_maximum() -> None:
    with pytest.raises(ValueError, match="DEFAULT_PAGE_SIZE must not exceed MAX_PAGE_SIZE"):
        Settings(_env_file=None, DEFAULT_PAGE_SIZE=50, MAX_PAGE_SIZE=20)
