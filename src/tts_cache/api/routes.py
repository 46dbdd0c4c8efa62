"""
TTS API Routes.

Endpoints:
    GET  /v1/tts/cached?contentId=ID  - Artifact status for a content item
    POST /v1/tts/cached               - Generate (or reuse) the cached artifact
    POST /v1/tts                      - Synthesize one caller-chunked text
    GET  /health                      - Health check for load balancers
    GET  /metrics                     - Prometheus metrics

Error Handling:
    All errors are returned as JSON in one format:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>",
        "details": {...}            # optional
    }

    HTTP status codes are mapped from TTSError codes:
        - INVALID_INPUT, *_REQUIRED, TEXT_TOO_LONG -> 400 Bad Request
        - NOT_FOUND                                -> 404 Not Found
        - PROVIDER_*                               -> 502 Bad Gateway
        - QUEUE_FULL, TIMEOUT                      -> 503 Service Unavailable
        - everything else                          -> 500 Internal Server Error

Example Usage:
    >>> import httpx
    >>> httpx.post("http://localhost:8000/v1/tts/cached",
    ...            json={"contentId": "42", "text": "<p>안녕하세요.</p>"}).json()
    {'success': True, 'url': '/tts/42_....mp3', 'durationSeconds': 1, ...}
"""
from __future__ import annotations

import base64
import uuid

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse

from tts_cache.api.dependencies import get_tts_service
from tts_cache.api.schemas import (
    CachedGenerateRequest,
    CachedGenerateResponse,
    CachedStatusResponse,
    SingleChunkRequest,
    SingleChunkResponse,
)
from tts_cache.core.logging import error, get_logger, set_request_id
from tts_cache.core.metrics import metrics
from tts_cache.services.tts_service import ErrorCode, TTSError, TTSService

router = APIRouter()

_LOG = get_logger("tts-cache.api")

_STATUS_MAP = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.CONTENT_ID_REQUIRED: 400,
    ErrorCode.TEXT_REQUIRED: 400,
    ErrorCode.TEXT_TOO_LONG: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.PROVIDER_AUTH: 502,
    ErrorCode.PROVIDER_QUOTA: 502,
    ErrorCode.PROVIDER_BAD_REQUEST: 502,
    ErrorCode.PROVIDER_FAILED: 502,
    ErrorCode.QUEUE_FULL: 503,
    ErrorCode.TIMEOUT: 503,
}


def _new_request_id() -> str:
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)
    return rid


def _error_response(err: TTSError, rid: str) -> JSONResponse:
    """Standard JSON error body with the HTTP status mapped from the code."""
    return JSONResponse(
        status_code=_STATUS_MAP.get(err.code, 500),
        content=err.to_dict(),
        headers={"X-Request-Id": rid},
    )


def _internal_error(exc: Exception, rid: str) -> JSONResponse:
    # Log internally but don't expose details
    error(_LOG, "unhandled_error", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": ErrorCode.INTERNAL_ERROR,
            "message": "Internal server error",
            "request_id": rid,
        },
    )


@router.get(
    "/v1/tts/cached",
    response_model=CachedStatusResponse,
    response_model_exclude_none=True,
)
def cached_status(
    content_id: str | None = Query(default=None, alias="contentId"),
    service: TTSService = Depends(get_tts_service),
):
    """
    Report whether a content item's artifact is ready.

    A completed record whose file has disappeared is reported as
    ``pending``.

    Raises:
        400: contentId missing or malformed
        404: content id unknown
    """
    rid = _new_request_id()
    try:
        result = service.query(content_id)
        return CachedStatusResponse(
            status=result.status,
            url=result.url,
            duration_seconds=result.duration_seconds,
        )
    except TTSError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)


@router.post("/v1/tts/cached", response_model=CachedGenerateResponse)
async def cached_generate(
    req: CachedGenerateRequest,
    service: TTSService = Depends(get_tts_service),
):
    """
    Generate the artifact for a content item, or return the existing one
    when the text is unchanged.

    Raises:
        400: contentId/text missing, or text with nothing to speak
        502: speech provider failed (the record is marked failed)
        503: provider capacity exhausted
        500: storage or unexpected failure
    """
    rid = _new_request_id()
    try:
        result = await service.generate(req.content_id, req.text)
        return CachedGenerateResponse(
            url=result.url,
            duration_seconds=result.duration_seconds,
            chunk_count=result.chunk_count,
            file_size_bytes=result.file_size_bytes,
            cache_status=result.cache_status,
        )
    except TTSError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)


@router.post("/v1/tts", response_model=SingleChunkResponse)
async def tts_single(
    req: SingleChunkRequest,
    service: TTSService = Depends(get_tts_service),
):
    """
    Synthesize one chunk and return it inline as a base64 data URI.

    Nothing is cached. The caller is responsible for chunking; text over
    5000 UTF-8 bytes is rejected without calling the provider.

    Example:
        curl -X POST http://localhost:8000/v1/tts \\
            -H "Content-Type: application/json" \\
            -d '{"text": "안녕하세요.", "chunkIndex": 0, "totalChunks": 1}'
    """
    rid = _new_request_id()
    try:
        result = await service.synthesize_single(req.text, req.chunk_index, req.total_chunks)
        b64 = base64.b64encode(result.audio_bytes).decode("ascii")
        return SingleChunkResponse(
            audio=f"data:{result.mime_type};base64,{b64}",
            duration_seconds=result.duration_seconds,
            chunk_index=result.chunk_index,
            total_chunks=result.total_chunks,
        )
    except TTSError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)


@router.get("/health")
def health(service: TTSService = Depends(get_tts_service)):
    """
    Health check for load balancers and orchestration.

    Returns engine, chunking budgets, record cache, concurrency and
    storage information from TTSService.
    """
    return service.get_health_info()


@router.get("/metrics")
def prometheus_metrics():
    """Prometheus metrics in text exposition format."""
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
