"""
TTS Cache Services Layer.

Business logic between the API/CLI and the tts/ building blocks.

Components:
    - tts_service.py: TTSService (query / generate / single-chunk synthesis)
    - validators.py: Input validation functions

The TTSService class handles:
    - Request validation and normalization
    - Record state transitions and artifact storage
    - Bounded parallel provider calls and single-flight generation
"""
from .tts_service import (
    ErrorCode,
    GenerateResult,
    InvalidTransitionError,
    NotFoundError,
    ProviderError,
    QueueFullError,
    SingleChunkResult,
    StatusResult,
    StorageError,
    SynthesisError,
    TimeoutError,
    TTSError,
    TTSService,
    ValidationError,
    get_service,
    reset_service,
)

__all__ = [
    "TTSService",
    "StatusResult",
    "GenerateResult",
    "SingleChunkResult",
    "get_service",
    "reset_service",
    "TTSError",
    "ValidationError",
    "ProviderError",
    "StorageError",
    "NotFoundError",
    "SynthesisError",
    "TimeoutError",
    "QueueFullError",
    "InvalidTransitionError",
    "ErrorCode",
]
