"""Entrypoint: python -m social_sync"""
from __future__ import annotations

import logging

import uvicorn

from social_sync.api.middleware.correlation_id import CorrelationIdFilter
from social_sync.config import settings


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s",
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(CorrelationIdFilter())
    uvicorn.run(
        "social_sync.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
