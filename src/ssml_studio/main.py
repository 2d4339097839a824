"""
FastAPI application entry point for ssml-studio.

Routers:
    - routes.py: health, voices, stateless SSML compile/preview, synthesis
    - sessions.py: Pro editor sessions (segments, characters)

Synthesized audio is served as static files under the configured URL
prefix (default /uploads/tts).

Usage:
    uvicorn ssml_studio.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from ssml_studio import __version__
from ssml_studio.api.dependencies import get_settings
from ssml_studio.api.routes import router
from ssml_studio.api.sessions import router as sessions_router
from ssml_studio.core.config import StudioConfig
from ssml_studio.core.logging import configure_logging, error, get_logger, set_request_id, set_session_id
from ssml_studio.errors import ErrorCode, StudioError, status_for
from ssml_studio.services.studio import reset_service

_LOG = get_logger("ssml-studio.api")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

        1. Configure structured logging
        2. Register routers
        3. Map StudioError to the standard error body
        4. Tag each request with a request id
        5. Serve stored audio files
        6. Close the shared service on shutdown
    """
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            reset_service()

    app = FastAPI(title="ssml-studio", version=__version__, lifespan=lifespan)

    app.include_router(router)
    app.include_router(sessions_router)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        rid = request.headers.get("X-Request-Id") or uuid.uuid4().hex[:12]
        set_request_id(rid)
        set_session_id("-")
        response = await call_next(request)
        response.headers["X-Request-Id"] = rid
        return response

    @app.exception_handler(StudioError)
    async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
        return JSONResponse(status_code=status_for(exc.code), content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        # Log internally, do not expose details
        error(_LOG, "unhandled_error", path=request.url.path, error=repr(exc))
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": ErrorCode.INTERNAL_ERROR, "message": "Internal server error"},
        )

    audio = StudioConfig.from_settings(get_settings()).audio
    if audio.url_prefix:
        app.mount(audio.url_prefix, StaticFiles(directory=audio.base_dir, check_dir=False), name="audio")

    return app


app = create_app()
