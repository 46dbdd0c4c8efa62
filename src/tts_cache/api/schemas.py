"""
API Request/Response Schemas.

Pydantic models for the TTS endpoints. JSON field names are camelCase
(``contentId``, ``durationSeconds``); Python attributes are snake_case
and either form is accepted on input.

Request fields that the service validates itself (contentId, text) are
optional here, so a missing field produces the service's 400 error body
instead of FastAPI's 422.

Models:
    CachedGenerateRequest: body of POST /v1/tts/cached
    CachedStatusResponse:  GET  /v1/tts/cached
    CachedGenerateResponse: POST /v1/tts/cached
    SingleChunkRequest / SingleChunkResponse: POST /v1/tts

Example Request:
    {
        "contentId": "42",
        "text": "<p>첫 번째 문장입니다.</p>"
    }

Note:
    ``durationSeconds`` is estimated from the character count of the
    normalized text (about 10 characters per second). It is not measured
    from the audio unless the server enables ``audio.measure_duration``.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

_CAMEL = ConfigDict(populate_by_name=True)

DURATION_DESCRIPTION = "Estimated playback length in seconds (character-count based)"


class CachedGenerateRequest(BaseModel):
    """Generate (or reuse) the cached artifact for a content item."""
    model_config = _CAMEL

    content_id: str | None = Field(
        default=None,
        alias="contentId",
        description="Content identifier (letters, digits, '_', '-', '.')",
    )
    text: str | None = Field(
        default=None,
        description="Source text or HTML markup; normalized before synthesis",
    )


class CachedStatusResponse(BaseModel):
    """
    Status of a content item's artifact.

    ``url`` and ``durationSeconds`` are present only when status is
    ``completed``.
    """
    model_config = _CAMEL

    status: str = Field(..., description="pending | generating | completed | failed")
    url: str | None = Field(default=None, description="Public artifact URL")
    duration_seconds: int | None = Field(
        default=None,
        alias="durationSeconds",
        description=DURATION_DESCRIPTION,
    )


class CachedGenerateResponse(BaseModel):
    """Result of a successful generation."""
    model_config = _CAMEL

    success: bool = True
    url: str
    duration_seconds: int = Field(..., alias="durationSeconds", description=DURATION_DESCRIPTION)
    chunk_count: int = Field(..., alias="chunkCount")
    file_size_bytes: int = Field(..., alias="fileSizeBytes")
    cache_status: str = Field(..., alias="cacheStatus", description="hit | miss")


class SingleChunkRequest(BaseModel):
    """
    Synthesize one caller-chunked piece of text.

    The text is sent to the provider as is and must encode to at most
    5000 UTF-8 bytes.
    """
    model_config = _CAMEL

    text: str | None = Field(default=None, description="Chunk text (<= 5000 UTF-8 bytes)")
    chunk_index: int = Field(default=0, alias="chunkIndex")
    total_chunks: int = Field(default=1, alias="totalChunks")


class SingleChunkResponse(BaseModel):
    """Audio for one chunk as a base64 data URI."""
    model_config = _CAMEL

    success: bool = True
    audio: str = Field(..., description="data:<mime>;base64,<audio>")
    duration_seconds: int = Field(..., alias="durationSeconds", description=DURATION_DESCRIPTION)
    chunk_index: int = Field(..., alias="chunkIndex")
    total_chunks: int = Field(..., alias="totalChunks")
