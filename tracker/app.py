"""
FastAPI application entry point for the tracker service.
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from tracker.config import get_settings
from tracker.errors import RecordNotFoundError, StorageWriteError
from tracker.routes import router

logger = logging.getLogger(__name__)


async def _record_not_found(request: Request, exc: RecordNotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


async def _storage_write_failed(request: Request, exc: StorageWriteError):
    return JSONResponse(status_code=500, content={"error": str(exc)})


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Habit Tracker", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RecordNotFoundError, _record_not_found)
    app.add_exception_handler(StorageWriteError, _storage_write_failed)
    app.include_router(router, prefix=settings.api_prefix)

    # Mounted last so the API routes take precedence over static files.
    if settings.static_dir and os.path.isdir(settings.static_dir):
        app.mount(
            "/", StaticFiles(directory=settings.static_dir, html=True), name="static"
        )
        logger.info("Serving client files from %s", settings.static_dir)
    return app


app = create_app()
