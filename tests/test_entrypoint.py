from __future__ import annotations

import importlib

from app.config import settings


def test_module_entrypoint_runs_uvicorn(monkeypatch) -> None:
    entrypoint = importlib.import_module("watchnext.__main__")
    calls: list[tuple[tuple, dict]] = []
    monkeypatch.setattr(
        entrypoint.uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs))
    )

    entrypoint.main()

    [(args, kwargs)] = calls
    assert args == ("app.main:app",)
    assert kwargs["host"] == settings.server_host
    assert kwargs["port"] == settings.server_port
    assert kwargs["reload"] is (settings.environment == "development")


def test_package_reexports_the_asgi_app() -> None:
    import watchnext
    from app.main import app

    assert watchnext.app is app
    assert callable(watchnext.create_app)
