"""
FastAPI application for the bookmark search API.

Usage:
    uvicorn app.api.main:app --reload --host 0.0.0.0 --port 8000
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime

import peewee
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.api.dependencies import search_resources
from app.api.error_handlers import (
    api_exception_handler,
    database_exception_handler,
    global_exception_handler as global_error_handler,
    request_validation_exception_handler,
    search_validation_exception_handler,
)
from app.api.exceptions import APIException
from app.api.middleware import correlation_id_middleware
from app.api.models.responses import success_response
from app.api.routers import search
from app.core.logging_utils import get_logger, setup_json_logging
from app.domain.exceptions.domain_exceptions import SearchValidationError

logger = get_logger(__name__)

_DEV_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8080",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:8080",
]


def create_app(*, configure_logging: bool = True) -> FastAPI:
    """Build the API application.

    Args:
        configure_logging: Install loguru JSON logging on startup. Tests pass
            False to keep pytest's log capture intact.
    """
    cfg = search_resources.get_app_config()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if configure_logging:
            setup_json_logging(cfg.runtime.log_level, json_logs=cfg.runtime.log_json)
        try:
            yield
        finally:
            await search_resources.shutdown_search_resources()

    app = FastAPI(
        title="Bookmark Search API",
        description="Hybrid lexical and semantic search over saved bookmarks",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    allowed_origins = cfg.runtime.allowed_origins
    if not allowed_origins:
        logger.warning(
            "ALLOWED_ORIGINS not configured - defaulting to localhost only. "
            "Set ALLOWED_ORIGINS environment variable for production."
        )
        allowed_origins = _DEV_ORIGINS

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials="*" not in allowed_origins,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Correlation-ID"],
        max_age=3600,
    )
    app.middleware("http")(correlation_id_middleware)

    app.include_router(search.router, prefix="/api", tags=["Search"])

    @app.get("/")
    async def root(request: Request):
        """API root endpoint."""
        return success_response(
            {
                "service": app.title,
                "version": app.version,
                "docs": "/docs",
                "health": "/health",
            },
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        return success_response(
            {
                "status": "healthy",
                "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            },
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(SearchValidationError, search_validation_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(peewee.DatabaseError, database_exception_handler)
    app.add_exception_handler(Exception, global_error_handler)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    # Development server - bind to all interfaces for Docker/container access
    uvicorn.run(
        "app.api.main:app",
        host="0.0.0.0",  # nosec B104
        port=8000,
        reload=True,
        log_level="info",
    )
