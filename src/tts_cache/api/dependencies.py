"""
FastAPI Dependency Injection Providers.

Architecture:
    1. get_settings()    - Loads and caches application configuration
    2. get_tts_service() - Creates/returns the singleton TTSService

    Both are singletons so every request shares one engine (and its HTTP
    connection pool), one record cache and one concurrency controller.

Usage in Route Handlers:
    from fastapi import Depends
    from tts_cache.api.dependencies import get_tts_service

    @router.get("/v1/tts/cached")
    def cached_status(service: TTSService = Depends(get_tts_service)):
        ...

Settings file:
    ``TTS_CACHE_SETTINGS`` (default ``config/settings.yaml``). A missing
    file is not an error here: the service starts on defaults plus
    environment overrides.
"""
from __future__ import annotations

import os
from functools import lru_cache

from tts_cache.core.config import Settings, default_settings, load_settings
from tts_cache.core.logging import get_logger, warn
from tts_cache.services.tts_service import TTSService, get_service

_LOG = get_logger("tts-cache.api")

DEFAULT_SETTINGS_PATH = "config/settings.yaml"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    Returns:
        Settings from the YAML file, or defaults if the file is missing.
    """
    path = os.getenv("TTS_CACHE_SETTINGS", DEFAULT_SETTINGS_PATH)
    try:
        return load_settings(path)
    except FileNotFoundError:
        warn(_LOG, "settings_missing", path=path, using="defaults")
        return default_settings()


def get_tts_service() -> TTSService:
    """Get the singleton TTSService instance."""
    return get_service(get_settings())
