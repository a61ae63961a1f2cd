"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from fastapi import Request

from blog_backend.config import Settings
from blog_backend.db import DbClient, InMemoryDbClient, SqlDbClient

logger = logging.getLogger(__name__)


def build_db_client(settings: Settings) -> DbClient:
    """
    Choose the storage backend once, at startup. Nothing else in the app
    branches on which backend is in use.
    """
    tz = settings.zone()
    if settings.use_mysql:
        logger.info("Using relational blog storage")
        return SqlDbClient(
            settings.sqlalchemy_url(), pool_size=settings.db_pool_size, tz=tz
        )
    logger.info("Using in-memory blog storage")
    return InMemoryDbClient(tz=tz)


def get_db_client(request: Request) -> DbClient:
    """Return the storage instance the app was constructed with."""
    return request.app.state.db
