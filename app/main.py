"""
AI Readability Analyzer - Main Application Entry Point
FastAPI application with lifespan management.

The rate limiter is attached to app.state when the application is built,
so it exists even when a test transport skips the lifespan. The lifespan
only adds the expired-window sweeper and closes the store on shutdown.
"""

import asyncio
import contextlib
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.routes import analyze, health
from app.core.config import get_settings
from app.core.logging import bind_request_context, configure_logging
from app.core.rate_limit import RateLimiter, RateLimitStore, client_key, run_sweeper
from app.core.redis import create_rate_limit_store

logger = structlog.get_logger(__name__)
settings = get_settings()

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    configure_logging()
    logger.info("Starting AI Readability Analyzer", version=settings.APP_VERSION, env=settings.ENV)

    store: RateLimitStore = app.state.rate_limiter.store
    try:
        reachable = await store.ping()
    except Exception as e:
        logger.warning(
            "Rate-limit store unreachable at startup",
            backend=settings.RATE_LIMIT_BACKEND,
            error_type=type(e).__name__,
        )
    else:
        if not reachable:
            logger.warning("Rate-limit store did not answer ping", backend=settings.RATE_LIMIT_BACKEND)
    sweeper = asyncio.create_task(run_sweeper(store, settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS))

    yield

    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    await store.close()
    logger.info("Application shutdown complete")


def create_application(rate_limit_store: RateLimitStore | None = None) -> FastAPI:
    app = FastAPI(
        title="AI Readability Analyzer API",
        description="Scores how readable a web page is to AI agents and previews what they extract.",
        version=settings.APP_VERSION,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        lifespan=lifespan,
    )

    app.state.rate_limiter = RateLimiter(
        store=rate_limit_store or create_rate_limit_store(settings),
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["Retry-After", REQUEST_ID_HEADER],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        bind_request_context(request_id, client_key(request, settings.TRUST_PROXY_HEADERS))
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    # Routers
    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(analyze.router, prefix="/api/v1/analyze", tags=["Analyze"])
    # Unversioned path kept for existing clients
    app.include_router(analyze.router, prefix="/api/analyze", include_in_schema=False)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", path=request.url.path, error_type=type(exc).__name__, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "request_id": getattr(request.state, "request_id", None),
            },
        )

    return app


app = create_application()
