"""
FastAPI application factory & configuration.

This module initialises the FastAPI application instance. It is responsible for:
1.  **Middleware Setup**: CORS for browser front-ends.
2.  **Exception Handling**: Global handlers so every error returns structured JSON.
3.  **Routing**: Mounting the review router and the health check.
4.  **Lifecycle**: Initialising the job store at startup.

Error mapping
-------------
- :class:`~callsage.core.errors.ValidationError` and other ``ValueError`` -> 400
- Other Call Sage errors (generation, chat) -> 503; the detail keeps the
  ``AI_REQUEST_FAILED`` prefix so clients can show "service busy, try again".
- Anything else -> 500
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from callsage import __version__
from callsage.api.job_store import ReviewJobStore
from callsage.api.routers import reviews
from callsage.core.errors import CallSageError, ValidationError
from callsage.core.settings import get_logger, load_settings

logger = get_logger("callsage.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise the in-memory job store before the first request."""
    logger.info("Call Sage API starting up (env=%s)", load_settings().environment)
    ReviewJobStore.shared()
    yield
    logger.info("Call Sage API shutting down")


def create_app() -> FastAPI:
    """
    Construct and configure the Call Sage FastAPI application.

    Returns
    -------
    FastAPI
        The configured ASGI application ready to be served by Uvicorn.
    """
    app = FastAPI(
        title="Call Sage API",
        description="Call-quality reviews against weighted scoring matrices",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # -----------------------------------------------------------------------
    # Middleware
    # -----------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Global Exception Handlers
    # -----------------------------------------------------------------------
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all handler so unhandled exceptions still return JSON."""
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": str(exc),
                "path": request.url.path,
            },
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        """Map Python ValueErrors to HTTP 400 Bad Request."""
        return JSONResponse(
            status_code=400,
            content={"error": "Bad Request", "detail": str(exc)},
        )

    @app.exception_handler(CallSageError)
    async def call_sage_error_handler(request: Request, exc: CallSageError) -> JSONResponse:
        """Map caller mistakes to 400 and model-service failures to 503."""
        if isinstance(exc, ValidationError):
            return JSONResponse(
                status_code=400,
                content={"error": "Bad Request", "detail": str(exc)},
            )
        logger.warning("AI service failure on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content={"error": "Service Unavailable", "detail": str(exc)},
        )

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    app.include_router(reviews.router)

    @app.get("/health", tags=["System"])
    async def health_check() -> dict[str, str]:
        """Simple liveness check."""
        return {
            "status": "ok",
            "version": __version__,
            "environment": load_settings().environment,
        }

    return app


__all__ = ["create_app"]
