"""
FastAPI application entry point for the blog backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from blog_backend.config import Settings, get_settings
from blog_backend.db import DbClient
from blog_backend.dependencies import build_db_client
from blog_backend.errors import StorageUnavailable, UniquenessViolation, ValidationError
from blog_backend.routes import router
from blog_backend.schemas import field_errors

logger = logging.getLogger(__name__)


def _message(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, **extra})


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        logger.info("Rejected payload for %s: %s", request.url.path, exc.errors)
        return _message(400, "Invalid data", errors=exc.errors)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        errors = field_errors(list(exc.errors()))
        logger.info("Rejected request for %s: %s", request.url.path, errors)
        return _message(400, "Invalid data", errors=errors)

    @app.exception_handler(UniquenessViolation)
    async def uniqueness_violation(request: Request, exc: UniquenessViolation):
        return _message(409, f"{exc.field} already exists")

    @app.exception_handler(StorageUnavailable)
    async def storage_unavailable(request: Request, exc: StorageUnavailable):
        # The cause was logged where it was raised; keep it out of the response.
        logger.error("Storage unavailable while serving %s", request.url.path)
        return _message(500, "Internal server error")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _message(exc.status_code, str(exc.detail))


def create_app(
    db: Optional[DbClient] = None, settings: Optional[Settings] = None
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    db = db or build_db_client(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await db.initialize()
        except StorageUnavailable:
            # Retried lazily by the first request that touches storage.
            logger.warning("Blog storage not ready at startup")
        try:
            yield
        finally:
            await db.close()

    app = FastAPI(title="Blog Backend (FastAPI)", version="0.1.0", lifespan=lifespan)
    app.state.db = db
    _register_exception_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)
    return app
