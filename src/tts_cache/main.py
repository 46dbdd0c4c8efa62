"""
FastAPI Application Entry Point.

Creates the FastAPI application: logging, the TTS router, static serving
of generated artifacts and engine shutdown.

Usage:
    # Run with uvicorn
    uvicorn tts_cache.main:app --host 0.0.0.0 --port 8000

    # Or use the module directly
    python -m uvicorn tts_cache.main:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from tts_cache import __version__
from tts_cache.api.dependencies import get_settings, get_tts_service
from tts_cache.api.routes import router
from tts_cache.core.logging import configure_logging, get_logger, info


@asynccontextmanager
async def lifespan(app: FastAPI):
    log = get_logger("tts-cache.main")
    service = get_tts_service()
    info(log, "startup", engine=service.engine.name, storage=service.artifacts.base_dir)
    yield
    await service.aclose()
    info(log, "shutdown")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory function:
        1. Configures structured logging (TTS_CACHE_LOG_LEVEL etc.)
        2. Registers the TTS router
        3. Mounts the artifact directory under storage.url_prefix

    Returns:
        FastAPI: Configured application instance ready to serve requests.
    """
    configure_logging()

    app = FastAPI(title="tts-cache", version=__version__, lifespan=lifespan)
    app.include_router(router)

    storage = get_settings().get_service_config().storage
    Path(storage.base_dir).mkdir(parents=True, exist_ok=True)
    app.mount(storage.url_prefix, StaticFiles(directory=storage.base_dir), name="tts-artifacts")

    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
