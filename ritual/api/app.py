"""
FastAPI application factory for the Ritual API.

This module creates the FastAPI app with:
- Key-value store and service lifecycle management
- CORS configuration for the frontend
- Exception handlers rendering the {success, data, error} envelope
- API routes under /api

Usage:
    uvicorn ritual.api.app:app --port 8787
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import ServerConfig
from ..errors import RitualError
from ..kv.base import KeyValueStore, create_kv_store
from ..services import AuthService, HabitService, PasswordHasher, TokenSigner
from .config import Settings
from .routes import auth_router, router

logger = logging.getLogger(__name__)


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


async def handle_ritual_error(request: Request, exc: RitualError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"Request failed: {exc.message}", extra={"path": request.url.path})
    return error_response(exc.message, exc.status_code)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors and errors[0].get("type") == "json_invalid":
        return error_response("Invalid JSON body", 400)
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return error_response(f"{location}: {message}" if location else message, 400)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"HTTP handler error: {exc}", exc_info=True, extra={"path": request.url.path})
    return error_response("Internal server error", 500)


def create_app(
    config: ServerConfig | None = None,
    store: KeyValueStore | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Server configuration (loaded from env if not provided)
        store: Key-value store to use instead of the configured backend
        settings: HTTP settings (loaded from env if not provided)
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage store and service lifecycle."""
        server_config = config or ServerConfig.from_env()
        server_config.log_config()

        kv = store or create_kv_store(server_config.store)
        await kv.connect()

        app.state.config = server_config
        app.state.settings = settings
        app.state.store = kv
        app.state.auth_service = AuthService(
            kv,
            PasswordHasher(server_config.auth.password_schemes),
            TokenSigner.from_config(server_config.auth),
        )
        app.state.habit_service = HabitService(kv)

        yield

        await kv.close()

    app = FastAPI(
        title="Ritual API",
        description="Habit tracking: accounts, habits and daily progress logs.",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RitualError, handle_ritual_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    # API routes
    app.include_router(auth_router, prefix="/api")
    app.include_router(router, prefix="/api")

    @app.get("/api/health")
    async def health():
        return {"success": True, "data": {"status": "healthy", "service": "ritual-api"}}

    return app


# Default app instance
app = create_app()
