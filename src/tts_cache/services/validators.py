"""
Input Validation for TTSService.

Validation runs before any record is touched or any provider call is
made, so a ValidationError never leaves side effects behind.

Validation Rules:
    - Content id: required, 1-128 chars of [A-Za-z0-9_.-], no ".."
      (it becomes part of file names)
    - Text: required, non-blank; for ``generate`` it must still contain
      something after normalization
    - Single-chunk text: UTF-8 length <= chunking.single_max_bytes
    - Chunk index/total: 0 <= index < total

Error codes follow the pattern {FIELD}_REQUIRED / {FIELD}_TOO_LONG /
INVALID_INPUT.

Usage:
    from tts_cache.services.validators import validate_content_id, validate_text

    content_id = validate_content_id(request.content_id)
    text = validate_text(request.text)
"""
from __future__ import annotations

from typing import Optional

from tts_cache.core.errors import ErrorCode, ValidationError
from tts_cache.core.logging import debug, get_logger
from tts_cache.tts.chunker import utf8_len
from tts_cache.tts.storage import is_safe_id

_LOG = get_logger("tts-cache.validators")

MAX_CONTENT_ID_LENGTH = 128


def validate_content_id(content_id: Optional[str]) -> str:
    """
    Raises:
        ValidationError: If the id is missing or not usable as a file name.
    """
    if content_id is None or not str(content_id).strip():
        raise ValidationError("contentId is required", ErrorCode.CONTENT_ID_REQUIRED)

    content_id = str(content_id).strip()
    if len(content_id) > MAX_CONTENT_ID_LENGTH:
        raise ValidationError(
            f"contentId exceeds maximum length ({len(content_id)} > {MAX_CONTENT_ID_LENGTH})",
            ErrorCode.INVALID_INPUT,
        )
    if not is_safe_id(content_id):
        debug(_LOG, "content_id_rejected", content_id=content_id[:32])
        raise ValidationError(
            "contentId may only contain letters, digits, '_', '-' and '.'",
            ErrorCode.INVALID_INPUT,
        )
    return content_id


def validate_text(text: Optional[str]) -> str:
    """
    Raises:
        ValidationError: If text is missing or blank.
    """
    if not text or not text.strip():
        raise ValidationError("text is required", ErrorCode.TEXT_REQUIRED)
    return text


def validate_byte_budget(text: str, max_bytes: int) -> int:
    """
    Check the encoded size against a per-request ceiling.

    Returns:
        The UTF-8 length of ``text``.

    Raises:
        ValidationError: If the text is larger than ``max_bytes``.
    """
    size = utf8_len(text)
    if size > max_bytes:
        raise ValidationError(
            f"text exceeds maximum size ({size} > {max_bytes} bytes)",
            ErrorCode.TEXT_TOO_LONG,
            {"bytes": size, "max_bytes": max_bytes},
        )
    return size


def validate_chunk_position(chunk_index: int, total_chunks: int) -> None:
    """
    Raises:
        ValidationError: If the index is outside [0, total_chunks).
    """
    if total_chunks < 1 or chunk_index < 0 or chunk_index >= total_chunks:
        raise ValidationError(
            f"invalid chunk position {chunk_index}/{total_chunks}",
            ErrorCode.INVALID_INPUT,
        )
