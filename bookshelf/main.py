"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application.

1. Application Factory Pattern
   - create_app() returns a configured app (tests can build their own)

2. Lifespan Events
   - startup: log configuration, create SQLite tables, report the cache store
   - shutdown: release the cache store

3. Exception Handlers
   - Domain errors (not found, validation, rate limit, store outage) map to
     404 / 422 / 429 / 503 with a common JSON shape
   - Anything else becomes a logged 500
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from bookshelf.config import get_settings
from bookshelf.database import create_tables
from bookshelf.exceptions import (
    BookshelfError,
    NotFoundError,
    RateLimitError,
    RepositoryError,
    ValidationError,
)
from bookshelf.routers import books_router, reviews_router
from bookshelf.services.cache import close_cache_layer, get_cache_layer
from bookshelf.services.rate_limiter import limiter, rate_limit_exceeded_handler

# =============================================================================
# Logging Configuration
# =============================================================================
settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[BookshelfError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    RateLimitError: status.HTTP_429_TOO_MANY_REQUESTS,
    RepositoryError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# =============================================================================
# Lifespan Events
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Code before yield: Runs on startup
    Code after yield: Runs on shutdown
    """
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"API version: {settings.api_version}")

    if settings.uses_sqlite:
        create_tables()
        logger.info("SQLite tables ready")

    cache_stats = get_cache_layer().stats()
    if cache_stats.get("status") == "connected":
        logger.info(f"Caching enabled ({cache_stats.get('backend')})")
    else:
        logger.warning(f"Cache {cache_stats.get('status')} - computing every response")

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    close_cache_layer()


# =============================================================================
# Exception Handlers
# =============================================================================
async def bookshelf_error_handler(request: Request, exc: BookshelfError) -> JSONResponse:
    """
    Map a domain error to its HTTP status.

    Rate limit denials carry a Retry-After header; store outages are logged
    as errors, everything else as a warning.
    """
    status_code = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)),
        status.HTTP_400_BAD_REQUEST,
    )

    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}

    if isinstance(exc, RepositoryError):
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path}: {exc.message}")

    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Report request validation failures in the same shape as ValidationError.

    The leading "body"/"query"/"path" location is dropped so the field names
    match the service-level errors.
    """
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ValidationError(errors).to_dict(),
    )


# =============================================================================
# Application Factory
# =============================================================================
def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    docs_enabled = not settings.is_production

    app = FastAPI(
        title=settings.app_name,
        description="""
## Bookshelf

Browse books, rank them by popularity or rating, read their reviews and
write your own.

### Listings
`GET /api/v1/books?filter=...` with `latest`, `popular_last_month`,
`popular_last_6_months`, `highest_rated_last_month` or
`highest_rated_last_6_months`, plus an optional `search` on the title.

### Reviews
Each client may submit 3 reviews per hour.
        """,
        version=settings.api_version,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )

    # -------------------------------------------------------------------------
    # Rate Limiting
    # -------------------------------------------------------------------------
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # -------------------------------------------------------------------------
    # CORS Middleware
    # -------------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Exception Handlers
    # -------------------------------------------------------------------------
    app.add_exception_handler(BookshelfError, bookshelf_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """
        Catch-all exception handler.

        In production, hide internal errors from users.
        In debug mode, show more details.
        """
        logger.error(f"Unhandled error: {exc}", exc_info=True)

        if settings.debug:
            return JSONResponse(
                status_code=500,
                content={"error": "internal_error", "detail": str(exc)},
            )

        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "detail": "An internal error occurred."},
        )

    # -------------------------------------------------------------------------
    # Register Routers
    # -------------------------------------------------------------------------
    api_prefix = f"/api/{settings.api_version}"
    app.include_router(books_router, prefix=api_prefix)
    app.include_router(reviews_router, prefix=api_prefix)

    # -------------------------------------------------------------------------
    # Health Check Endpoint
    # -------------------------------------------------------------------------
    @app.get(
        "/health",
        tags=["Health"],
        summary="Health check",
        description="Check if the API is running and healthy.",
    )
    async def health_check() -> dict:
        """Health check with cache and rate limiting status."""
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.api_version,
            "cache": get_cache_layer().stats(),
            "rate_limiting": {
                "enabled": settings.rate_limit_enabled,
                "default_limit": settings.rate_limit_default,
                "review_limit": settings.review_rate_limit,
            },
        }

    @app.get(
        "/",
        tags=["Root"],
        summary="API root",
        description="Welcome message and API information.",
    )
    async def root() -> dict:
        """Root endpoint with API information."""
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.api_version,
            "docs": "/docs" if docs_enabled else None,
            "health": "/health",
        }

    return app


# =============================================================================
# Application Instance
# =============================================================================
# This is what uvicorn imports: uvicorn bookshelf.main:app

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "bookshelf.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
