"""FastAPI application entry point.

Tally Stock Viewer API - stock export ingestion and reconciliation.
"""

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
from functools import partial
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from stockviewer.parsers.common import IngestionError
from stockviewer.routes import api_router
from stockviewer.schemas import ErrorResponse
from stockviewer.schemas.common import (
    FILE_NOT_FOUND,
    HTTP_ERROR,
    HTTP_STATUS_CODES,
    INGESTION_ERROR,
    INTERNAL_ERROR,
    VALIDATION_ERROR,
)
from stockviewer.services.refresh import refresh_from_tally
from stockviewer.services.scheduler import RefreshScheduler
from stockviewer.services.seed import seed_from_cache_if_empty
from stockviewer.settings import Settings, get_settings
from stockviewer.stores.factory import create_cache, create_provider

logger = logging.getLogger("uvicorn.error")


def _error_body(code: str, message: str, detail: dict | None = None) -> dict:
    return ErrorResponse.build(code, message, detail).model_dump()


def build_scheduler(settings: Settings, provider, cache) -> RefreshScheduler:
    return RefreshScheduler(
        partial(refresh_from_tally, provider, cache=cache),
        interval_seconds=settings.tally_refresh_interval_seconds,
        refresh_on_start=settings.tally_refresh_on_start,
        enabled=settings.tally_refresh_enabled,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Owns the storage provider, the optional cache store and the refresh
    scheduler for the life of the process.
    """
    # Startup
    settings = get_settings()

    provider = create_provider(settings.database_url, echo=settings.debug)
    try:
        await provider.ensure_schema()
    except Exception:
        logger.exception("Database init failed")

    # Cache is optional; run without it if Redis is unreachable
    cache = create_cache(settings)
    if cache is not None:
        try:
            await cache.ping()
            logger.info("Redis connected")
        except Exception:
            logger.exception("Redis init failed; continuing without cache")
            await cache.close()
            cache = None

    try:
        seed = await seed_from_cache_if_empty(provider, cache)
        if seed.seeded:
            logger.info(f"Seeded {seed.products_copied} products, {seed.prices_copied} prices from cache")
    except Exception:
        logger.exception("Seeding from cache failed")

    scheduler = build_scheduler(settings, provider, cache)
    mode = settings.tally_scheduler_mode.strip().lower()
    if mode == "embedded":
        scheduler.start()
    elif mode == "api":
        logger.info("[scheduler] API mode: trigger POST /v1/tally/refresh from an external cron")
    else:
        logger.info("[scheduler] No scheduler mode configured (TALLY_SCHEDULER_MODE=embedded|api)")

    app.state.provider = provider
    app.state.cache = cache
    app.state.scheduler = scheduler

    yield

    # Shutdown
    await scheduler.stop()
    if cache is not None:
        await cache.close()
    await provider.close()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Tally stock export ingestion and reconciliation API",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(IngestionError)
    async def ingestion_error_handler(request: Request, exc: IngestionError) -> JSONResponse:
        """Unreadable or unrecognized exports are client errors."""
        logger.warning(f"[import] {exc}")
        return JSONResponse(status_code=400, content=_error_body(INGESTION_ERROR, str(exc)))

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(request: Request, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content=_error_body(FILE_NOT_FOUND, str(exc)))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = HTTP_STATUS_CODES.get(exc.status_code, HTTP_ERROR)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(code, str(exc.detail)),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=_error_body(
                VALIDATION_ERROR,
                "Request validation failed",
                {"errors": jsonable_encoder(exc.errors())},
            ),
        )

    # Exception handler for structured error format
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(
            status_code=500,
            content=_error_body(
                INTERNAL_ERROR,
                str(exc) if settings.debug else "Internal server error",
            ),
        )

    # Health check endpoint
    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, bool]:
        """Health check endpoint."""
        return {"ok": True}

    # Include API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "stockviewer.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
