"""WatchNext recommendation API.

The service lives in the ``app`` package; ``uvicorn watchnext:app`` serves
the same ASGI application as ``app.main:app``.
"""

from __future__ import annotations

from app.main import app, create_app

__all__ = ["app", "create_app"]
