"""Serve the recommendation API: ``python -m watchnext`` or ``watchnext``."""

from __future__ import annotations

import logging

import uvicorn

from app.config import settings

logger = logging.getLogger("watchnext")


def main() -> None:
    development = settings.environment == "development"
    logger.info(
        "Serving recommendations on %s:%s (%s)",
        settings.server_host,
        settings.server_port,
        settings.environment,
    )
    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=development,
        log_level="debug" if development else "info",
    )


if __name__ == "__main__":  # pragma: no cover
    main()
