"""
Error Codes and Exceptions.

Every failure that crosses a module boundary is a TTSError carrying a
stable code from ErrorCode. The API layer maps codes to HTTP statuses
and serializes errors with ``to_dict()``:

    {"ok": false, "error": "PROVIDER_QUOTA", "message": "...", "details": {...}}

Taxonomy:
    - ValidationError: bad input, rejected before any side effect
    - ProviderError: the synthesis provider refused or failed a chunk
    - StorageError: the artifact or its metadata could not be written
    - NotFoundError: status query for an unknown content id
    - SynthesisError: unexpected failure inside a generation attempt
    - TimeoutError / QueueFullError: provider fan-out limits
    - InvalidTransitionError: illegal status change on a record
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """
    Standardized error codes for API responses.
    """
    INVALID_INPUT = "INVALID_INPUT"             # Bad request data
    CONTENT_ID_REQUIRED = "CONTENT_ID_REQUIRED"
    TEXT_REQUIRED = "TEXT_REQUIRED"
    TEXT_TOO_LONG = "TEXT_TOO_LONG"             # Over the single-request byte ceiling
    NOT_FOUND = "NOT_FOUND"                     # Unknown content id
    PROVIDER_AUTH = "PROVIDER_AUTH"             # Credentials rejected
    PROVIDER_QUOTA = "PROVIDER_QUOTA"           # Rate limit / quota exhausted
    PROVIDER_BAD_REQUEST = "PROVIDER_BAD_REQUEST"
    PROVIDER_FAILED = "PROVIDER_FAILED"         # Any other provider failure
    STORAGE_FAILED = "STORAGE_FAILED"
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"
    TIMEOUT = "TIMEOUT"                         # Waited too long for a provider slot
    QUEUE_FULL = "QUEUE_FULL"                   # Provider queue at capacity
    INVALID_TRANSITION = "INVALID_TRANSITION"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class TTSError(Exception):
    """
    Base exception for tts-cache errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode class.
        details: Optional dictionary with additional context.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to standardized error response dict for API."""
        result = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(TTSError):
    """Raised for invalid input. Nothing has been mutated when this is raised."""
    def __init__(self, message: str, code: str = ErrorCode.INVALID_INPUT, details: Optional[Dict] = None):
        super().__init__(message, code, details)


class ProviderError(TTSError):
    """Raised when the synthesis provider fails a request."""
    def __init__(self, message: str, code: str = ErrorCode.PROVIDER_FAILED, details: Optional[Dict] = None):
        super().__init__(message, code, details)


class StorageError(TTSError):
    """Raised when an artifact or record cannot be persisted."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.STORAGE_FAILED, details)


class NotFoundError(TTSError):
    """Raised when a content id has no record."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.NOT_FOUND, details)


class SynthesisError(TTSError):
    """Raised when a generation attempt fails for an unexpected reason."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.SYNTHESIS_FAILED, details)


class TimeoutError(TTSError):
    """Raised when a chunk times out waiting for a provider slot."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.TIMEOUT, details)


class QueueFullError(TTSError):
    """Raised when the provider queue is full and cannot accept more chunks."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.QUEUE_FULL, details)


class InvalidTransitionError(TTSError):
    """Raised on a status change the record state machine does not allow."""
    def __init__(self, current: str, target: str):
        super().__init__(
            f"cannot move from {current} to {target}",
            ErrorCode.INVALID_TRANSITION,
            {"from": current, "to": target},
        )
