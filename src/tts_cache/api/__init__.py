"""
FastAPI REST API Layer for tts-cache.

This package defines all HTTP endpoints:
    - routes.py: Cached and single-chunk TTS endpoints, /health, /metrics
    - schemas.py: Request/response Pydantic models
    - dependencies.py: FastAPI dependency injection
"""
