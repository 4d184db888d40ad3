"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application.

Key Concepts:
=============

1. Application Factory Pattern
   - create_app() returns a configured app
   - Application services (trigger dispatcher, search index, book cache)
     are created here and stored on app.state, where the dependencies in
     dependencies.py find them and tests can replace them

2. Lifespan Events
   - startup: connect Redis and Elasticsearch
   - shutdown: close both connections

3. Exception Handlers
   - Database errors become a generic 500
   - Rate limit violations become 429
   - Anything else is logged and hidden unless debug is on
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from bookshelf.config import get_settings
from bookshelf.database import SessionLocal
from bookshelf.routers import (
    admin_router,
    auth_router,
    books_router,
    ratings_router,
    search_router,
    users_router,
)
from bookshelf.services.cache import BookCache, create_book_cache
from bookshelf.services.rate_limiter import limiter, rate_limit_exceeded_handler
from bookshelf.services.search import SearchIndex
from bookshelf.triggers import TriggerDispatcher, create_trigger_registry

# =============================================================================
# Logging Configuration
# =============================================================================
settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan Events
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Connect external services on startup and close them on shutdown.

    Code before yield: Runs on startup
    Code after yield: Runs on shutdown
    """
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.environment}, API version: {settings.api_version}")

    book_cache = create_book_cache(settings)
    app.state.book_cache = book_cache
    app.state.trigger_dispatcher.cache = book_cache

    app.state.search_index = await SearchIndex.connect(settings)
    if not app.state.search_index.available:
        logger.warning("Elasticsearch unavailable - falling back to database search")

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    await app.state.search_index.close()
    app.state.book_cache.close()


# =============================================================================
# Application Factory
# =============================================================================
def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        description="""
## Bookshelf API

Browse, search, rate and save books; authors publish and manage their own.

### Authentication
JWT bearer tokens from `/api/v1/auth/login`. The token carries the user's
role (`author` or `reader`).

### Consistency
Book ratings and saved copies of books are updated by background triggers
shortly after each write.
        """,
        version=settings.api_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # -------------------------------------------------------------------------
    # Application Services
    # -------------------------------------------------------------------------
    # Degraded defaults until lifespan connects Redis and Elasticsearch
    book_cache = BookCache(None, settings.cache_ttl_books)
    app.state.book_cache = book_cache
    app.state.search_index = SearchIndex(None, settings.elasticsearch_index_prefix)
    app.state.trigger_dispatcher = TriggerDispatcher.from_settings(
        create_trigger_registry(),
        SessionLocal,
        settings,
        cache=book_cache,
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
    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(
        request: Request,
        exc: SQLAlchemyError,
    ) -> JSONResponse:
        """Log the database error, return a generic 500."""
        logger.error(f"Database error: {exc}")
        return JSONResponse(
            status_code=500,
            content={"detail": "A database error occurred. Please try again later."},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all: details only in debug mode."""
        logger.error(f"Unhandled error: {exc}", exc_info=True)

        if settings.debug:
            return JSONResponse(status_code=500, content={"detail": str(exc)})

        return JSONResponse(
            status_code=500,
            content={"detail": "An internal error occurred."},
        )

    # -------------------------------------------------------------------------
    # Register Routers
    # -------------------------------------------------------------------------
    api_prefix = f"/api/{settings.api_version}"

    app.include_router(auth_router, prefix=api_prefix)
    app.include_router(users_router, prefix=api_prefix)
    app.include_router(books_router, prefix=api_prefix)
    app.include_router(ratings_router, prefix=api_prefix)
    app.include_router(search_router, prefix=api_prefix)
    app.include_router(admin_router, prefix=api_prefix)

    # -------------------------------------------------------------------------
    # Health Check Endpoint
    # -------------------------------------------------------------------------
    @app.get(
        "/health",
        tags=["Health"],
        summary="Health check",
    )
    async def health_check(request: Request) -> dict:
        """Status of the API and its backing services."""
        search_index: SearchIndex = request.app.state.search_index
        es_healthy = await search_index.is_healthy()
        dispatcher: TriggerDispatcher = request.app.state.trigger_dispatcher

        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.api_version,
            "cache": request.app.state.book_cache.stats(),
            "elasticsearch": {
                "enabled": settings.elasticsearch_enabled,
                "healthy": es_healthy,
                "document_count": await search_index.count() if es_healthy else 0,
            },
            "rate_limiting": {
                "enabled": settings.rate_limit_enabled,
                "default_limit": settings.rate_limit_default,
            },
            "triggers": dispatcher.registry.names,
        }

    @app.get(
        "/",
        tags=["Root"],
        summary="API root",
    )
    async def root() -> dict:
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.api_version,
            "docs": "/docs",
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
