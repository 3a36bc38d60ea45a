"""
FastAPI Application Entry Point.

Usage:
    uvicorn voice_studio.main:app --host 0.0.0.0 --port 8000
"""
from __future__ import annotations

from fastapi import FastAPI

from voice_studio import __version__
from voice_studio.api.routes import router, studio_error_handler
from voice_studio.core.errors import StudioError
from voice_studio.core.logging import configure_logging


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Configures structured logging, registers the router and maps every
    StudioError to its JSON error response.
    """
    configure_logging()

    app = FastAPI(title="voice-studio", version=__version__)
    app.include_router(router)
    app.add_exception_handler(StudioError, studio_error_handler)

    return app


app = create_app()
