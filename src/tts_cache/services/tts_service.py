"""
TTSService - Cached Long-form Synthesis.

This module provides the TTSService class, the single place that reads
and writes generation records. Both the HTTP API and the CLI go through
it.

Architecture:
    query:    record -> verify artifact file -> status
    generate: validate -> normalize -> fingerprint -> (hit? return)
              -> generating -> split -> bounded parallel synthesis
              -> ordered join -> assemble -> write artifact -> completed
              (any failure -> failed, error re-raised)

Record States:
    pending     known content, nothing generated yet
    generating  attempt in flight
    completed   artifact written and recorded
    failed      last attempt errored; call generate again to retry

Key Components:
    - Engine: one provider call per chunk (google, tone)
    - ArtifactStore / JsonMetadataStore: files and records on disk
    - RecordCache: in-memory LRU of records for status polling
    - ConcurrencyController: global bound on provider calls in flight
    - SingleFlight: one generation per content id at a time

Error Handling:
    Validation happens before anything is mutated. Provider and storage
    failures inside a generation mark the record failed and propagate as
    ProviderError / StorageError; anything unexpected becomes a
    SynthesisError with a generic message. No partial artifact is written.

Example:
    >>> from tts_cache.core.config import Settings
    >>> service = TTSService(Settings(raw={"provider": {"engine": "tone"}}))
    >>> result = asyncio.run(service.generate("42", "<p>Hello world.</p>"))
    >>> service.query("42").status
    'completed'
"""
from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from tts_cache.core.config import Settings, TTSServiceConfig
from tts_cache.core.errors import (
    ErrorCode,
    InvalidTransitionError,
    NotFoundError,
    ProviderError,
    QueueFullError,
    StorageError,
    SynthesisError,
    TimeoutError,
    TTSError,
    ValidationError,
)
from tts_cache.core.logging import debug, fail, get_logger, info, success, verbose, warn
from tts_cache.core.metrics import metrics
from tts_cache.tts.assembler import assemble, estimate_duration, measure_duration
from tts_cache.tts.cache import RecordCache
from tts_cache.tts.chunker import TextChunk, split_text_by_bytes
from tts_cache.tts.concurrency import ConcurrencyController, get_controller
from tts_cache.tts.engine import BaseSynthesisEngine, get_engine
from tts_cache.tts.singleflight import SingleFlight
from tts_cache.tts.storage import (
    ArtifactStore,
    JsonMetadataStore,
    MetadataStore,
    Status,
    TTSRecord,
    derive_key,
    fingerprint,
    utc_now_iso,
)
from tts_cache.utils.text import clean_text_for_tts, should_generate_tts
from tts_cache.utils.timeit import timeit

from .validators import (
    validate_byte_budget,
    validate_chunk_position,
    validate_content_id,
    validate_text,
)

_LOG = get_logger("tts-cache.service")

__all__ = [
    "TTSService",
    "StatusResult",
    "GenerateResult",
    "SingleChunkResult",
    "get_service",
    "reset_service",
    # re-exported for callers that only import the service module
    "ErrorCode",
    "TTSError",
    "ValidationError",
    "ProviderError",
    "StorageError",
    "NotFoundError",
    "SynthesisError",
    "TimeoutError",
    "QueueFullError",
    "InvalidTransitionError",
]


# =============================================================================
# Result Dataclasses
# =============================================================================

@dataclass
class StatusResult:
    """
    Answer to a status query.

    ``url`` and ``duration_seconds`` are only set when status is completed.
    """
    status: str
    url: Optional[str] = None
    duration_seconds: Optional[int] = None


@dataclass
class GenerateResult:
    """
    Outcome of a successful generate call.

    Attributes:
        content_id: Content identifier.
        key: Storage key of the artifact.
        url: Public artifact URL.
        duration_seconds: Estimated (or measured) playback seconds.
        chunk_count: Provider calls that built the artifact.
        file_size_bytes: Artifact size.
        cache_status: "hit" if an existing artifact was reused, else "miss".
        timings: Per-stage timings in seconds (miss only).
    """
    content_id: str
    key: str
    url: str
    duration_seconds: int
    chunk_count: int
    file_size_bytes: int
    cache_status: str
    timings: Dict[str, float] = field(default_factory=dict)


@dataclass
class SingleChunkResult:
    """Audio for one caller-chunked piece of text."""
    audio_bytes: bytes
    audio_format: str
    mime_type: str
    duration_seconds: int
    chunk_index: int
    total_chunks: int


# =============================================================================
# TTSService
# =============================================================================

class TTSService:
    """
    Cache/status orchestrator for long-form synthesis.

    Collaborators can be injected (tests pass fakes); otherwise they are
    built from settings.

    Usage:
        service = TTSService(settings)
        status = service.query("42")
        result = await service.generate("42", article_html)
    """

    def __init__(
        self,
        settings: Settings,
        engine: Optional[BaseSynthesisEngine] = None,
        artifacts: Optional[ArtifactStore] = None,
        metadata: Optional[MetadataStore] = None,
        controller: Optional[ConcurrencyController] = None,
    ):
        self._settings = settings
        self._config = TTSServiceConfig.from_settings(settings)
        cfg = self._config

        self._engine = engine or get_engine(settings)

        # ─────────────────────────────────────────────────────────────────────
        # Storage: artifact files + JSON records + in-memory record cache
        # ─────────────────────────────────────────────────────────────────────
        self._artifacts = artifacts or ArtifactStore(
            base_dir=cfg.storage.base_dir,
            url_prefix=cfg.storage.url_prefix,
            extension=self._engine.extension,
        )
        self._metadata = metadata or JsonMetadataStore(cfg.storage.metadata_dir)
        self._cache = RecordCache(
            max_items=cfg.cache.max_items,
            ttl_seconds=cfg.cache.ttl_seconds,
        )

        # ─────────────────────────────────────────────────────────────────────
        # Concurrency: provider fan-out bound + per-content single-flight
        # ─────────────────────────────────────────────────────────────────────
        self._controller = controller
        if self._controller is None and cfg.concurrency.enabled:
            self._controller = get_controller(
                max_concurrent=cfg.concurrency.max_concurrent,
                max_queue=cfg.concurrency.max_queue,
            )
        self._slot_timeout = cfg.concurrency.timeout_s
        self._flights = SingleFlight()

        self._background: Set["asyncio.Task[Any]"] = set()
        self._text_preview_chars = cfg.logging.text_preview_chars

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> TTSServiceConfig:
        return self._config

    @property
    def engine(self) -> BaseSynthesisEngine:
        return self._engine

    @property
    def artifacts(self) -> ArtifactStore:
        return self._artifacts

    @property
    def controller(self) -> Optional[ConcurrencyController]:
        return self._controller

    # =========================================================================
    # Record helpers
    # =========================================================================

    def _load_record(self, content_id: str) -> Optional[TTSRecord]:
        item, _ = self._cache.get(content_id)
        if item is not None:
            return item.record
        record = self._metadata.get(content_id)
        if record is not None:
            self._cache.set(content_id, record)
        return record

    def _save_record(self, record: TTSRecord) -> None:
        # Store first: the cache must never hold a record the store rejected
        self._metadata.put(record)
        self._cache.set(record.content_id, record)
        debug(_LOG, "record", content_id=record.content_id, status=record.status)

    def _mark_failed(self, record: TTSRecord, code: str) -> None:
        try:
            self._save_record(record.transition(Status.FAILED, error=code))
        except StorageError as e:
            # The original failure is what the caller needs to see
            warn(_LOG, "record_failed_not_saved", content_id=record.content_id, error=e.code)

    # =========================================================================
    # Public API: query()
    # =========================================================================

    def query(self, content_id: str) -> StatusResult:
        """
        Report the playback status of a content item.

        A completed record whose artifact file is gone is reported as
        pending; the stored record is left as is.

        Raises:
            ValidationError: If content_id is missing or malformed.
            NotFoundError: If the content id has no record.
        """
        content_id = validate_content_id(content_id)
        record = self._load_record(content_id)
        if record is None:
            metrics.record_query("not_found")
            raise NotFoundError("content not found", {"contentId": content_id})

        if record.status == Status.COMPLETED:
            if self._artifacts.exists_url(record.url):
                metrics.record_query(Status.COMPLETED)
                return StatusResult(
                    status=Status.COMPLETED,
                    url=record.url,
                    duration_seconds=record.duration_seconds,
                )
            warn(_LOG, "artifact_missing", content_id=content_id, url=record.url)
            metrics.record_query(Status.PENDING)
            return StatusResult(status=Status.PENDING)

        metrics.record_query(record.status)
        return StatusResult(status=record.status)

    # =========================================================================
    # Public API: generate()
    # =========================================================================

    async def generate(self, content_id: str, text: str) -> GenerateResult:
        """
        Produce (or reuse) the artifact for a content item.

        Concurrent calls for the same content id and text share one
        execution.

        Args:
            content_id: Content identifier.
            text: Raw markup or plain text; normalized here.

        Returns:
            GenerateResult, cache_status "hit" when nothing was synthesized.

        Raises:
            ValidationError: Missing id/text, or text with nothing to speak.
            ProviderError: Provider not configured, or a chunk failed there.
            QueueFullError: The provider slots and their queue are full.
            StorageError: The artifact or its record could not be written.
            SynthesisError: Any other failure during generation.
        """
        content_id = validate_content_id(content_id)
        validate_text(text)
        normalized = clean_text_for_tts(text)
        if not normalized:
            raise ValidationError("text has no speakable content", ErrorCode.TEXT_REQUIRED)

        self._engine.check_ready()

        fp = fingerprint(normalized)
        result, shared = await self._flights.run(
            content_id, fp, lambda: self._generate(content_id, normalized, fp)
        )
        if shared:
            info(_LOG, "generate_shared", content_id=content_id, key=result.key)
        return result

    async def _generate(self, content_id: str, normalized: str, fp: str) -> GenerateResult:
        started = time.perf_counter()
        key = derive_key(content_id, normalized)
        current = self._load_record(content_id)

        if (
            current is not None
            and current.status == Status.COMPLETED
            and current.fingerprint == fp
            and self._artifacts.exists(key)
        ):
            metrics.record_generation("hit", time.perf_counter() - started)
            info(_LOG, "cache_hit", content_id=content_id, key=key)
            return GenerateResult(
                content_id=content_id,
                key=key,
                url=current.url or self._artifacts.url_for(key),
                duration_seconds=current.duration_seconds or 0,
                chunk_count=current.chunk_count or 0,
                file_size_bytes=current.file_size_bytes or 0,
                cache_status="hit",
            )

        if self._controller is not None:
            # Rejected before the record changes so the item stays retryable
            self._controller.check_capacity()

        base = current or TTSRecord(content_id=content_id)
        record = base.transition(Status.GENERATING, fingerprint=fp, error=None)
        self._save_record(record)

        preview = normalized[:self._text_preview_chars] if self._text_preview_chars > 0 else ""
        info(_LOG, "generate_start", content_id=content_id, key=key, chars=len(normalized),
             text_preview=preview)

        timings: Dict[str, float] = {}
        try:
            with timeit("split") as t:
                chunks = split_text_by_bytes(normalized, self._config.chunking.max_bytes).chunks
            timings["split"] = t.seconds
            verbose(_LOG, "stage", event="split", chunks=len(chunks), seconds=round(t.seconds, 4))

            with timeit("synthesize") as t:
                buffers = await self._synthesize_chunks(content_id, chunks)
            timings["synthesize"] = t.seconds
            verbose(_LOG, "stage", event="synthesize", seconds=round(t.seconds, 3))

            with timeit("assemble") as t:
                assembled = await asyncio.to_thread(assemble, buffers, self._engine.audio_format)
            timings["assemble"] = t.seconds

            with timeit("store") as t:
                await asyncio.to_thread(self._artifacts.write, key, assembled.audio_bytes)
            timings["store"] = t.seconds
            verbose(_LOG, "stage", event="store", bytes=assembled.file_size_bytes, seconds=round(t.seconds, 4))

            duration = await asyncio.to_thread(self._duration_for, normalized, assembled.audio_bytes)
            url = self._artifacts.url_for(key)
            self._save_record(record.transition(
                Status.COMPLETED,
                url=url,
                duration_seconds=duration,
                file_size_bytes=assembled.file_size_bytes,
                chunk_count=len(chunks),
                generated_at=utc_now_iso(),
                error=None,
            ))
        except TTSError as e:
            self._mark_failed(record, e.code)
            metrics.record_generation("failed", time.perf_counter() - started)
            fail(_LOG, "generate_failed", content_id=content_id, error=e.code)
            raise
        except Exception as e:
            self._mark_failed(record, ErrorCode.SYNTHESIS_FAILED)
            metrics.record_generation("failed", time.perf_counter() - started)
            fail(_LOG, "generate_failed", content_id=content_id, error=str(e), error_type=type(e).__name__)
            raise SynthesisError("audio generation failed", {"error_type": type(e).__name__}) from e

        if self._config.storage.retention == "latest":
            await asyncio.to_thread(self._artifacts.prune, content_id, key)

        total = time.perf_counter() - started
        metrics.record_generation("miss", total, chunks=len(chunks), audio_bytes=assembled.file_size_bytes)
        success(_LOG, "generate_done", content_id=content_id, chunks=len(chunks),
                bytes=assembled.file_size_bytes, duration=duration, seconds=round(total, 3))

        return GenerateResult(
            content_id=content_id,
            key=key,
            url=url,
            duration_seconds=duration,
            chunk_count=len(chunks),
            file_size_bytes=assembled.file_size_bytes,
            cache_status="miss",
            timings=timings,
        )

    async def _synthesize_chunks(self, content_id: str, chunks: List[TextChunk]) -> List[bytes]:
        """
        One provider call per chunk, bounded by the controller.

        Results are placed by chunk index, so completion order does not
        matter. The first failure cancels the calls still running. At most
        max_concurrent chunks of one generation wait on the controller at a
        time.
        """
        results: List[Optional[bytes]] = [None] * len(chunks)
        if self._controller is not None:
            limit = asyncio.Semaphore(self._controller.max_concurrent)

        async def _one(chunk: TextChunk) -> None:
            if self._controller is not None:
                async with limit, self._controller.acquire_async(
                    timeout=self._slot_timeout, queue_limit=False
                ):
                    res = await self._engine.synthesize(chunk.text)
            else:
                res = await self._engine.synthesize(chunk.text)
            results[chunk.index] = res.audio_bytes
            debug(_LOG, "chunk_done", content_id=content_id, index=chunk.index,
                  chars=len(chunk.text), bytes=len(res.audio_bytes))

        tasks = [asyncio.ensure_future(_one(c)) for c in chunks]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return [r for r in results if r is not None]

    def _duration_for(self, normalized: str, audio_bytes: bytes) -> int:
        if self._config.audio.measure_duration:
            measured = measure_duration(audio_bytes)
            if measured is not None:
                return measured
        return estimate_duration(normalized, self._config.audio.chars_per_second)

    # =========================================================================
    # Public API: synthesize_single()
    # =========================================================================

    async def synthesize_single(
        self,
        text: str,
        chunk_index: int = 0,
        total_chunks: int = 1,
    ) -> SingleChunkResult:
        """
        Synthesize text the caller has already chunked, without caching.

        The text must fit the provider's hard per-request ceiling; oversized
        text is rejected before the provider is called.

        Raises:
            ValidationError: Missing text, bad chunk position, or too large.
            ProviderError: The provider call failed.
        """
        validate_text(text)
        validate_chunk_position(chunk_index, total_chunks)
        size = validate_byte_budget(text, self._config.chunking.single_max_bytes)

        verbose(_LOG, "single_chunk", chunk_index=chunk_index, total_chunks=total_chunks, bytes=size)
        if self._controller is not None:
            async with self._controller.acquire_async(timeout=self._slot_timeout):
                res = await self._engine.synthesize(text)
        else:
            res = await self._engine.synthesize(text)

        return SingleChunkResult(
            audio_bytes=res.audio_bytes,
            audio_format=res.audio_format,
            mime_type=self._engine.mime_type,
            duration_seconds=estimate_duration(text, self._config.audio.chars_per_second),
            chunk_index=chunk_index,
            total_chunks=total_chunks,
        )

    # =========================================================================
    # Public API: content lifecycle hooks
    # =========================================================================

    def register_content(self, content_id: str) -> TTSRecord:
        """
        Make a content id known (status pending) without generating.

        An existing record is returned unchanged.
        """
        content_id = validate_content_id(content_id)
        record = self._load_record(content_id)
        if record is None:
            record = TTSRecord(content_id=content_id, status=Status.PENDING)
            self._save_record(record)
            info(_LOG, "registered", content_id=content_id)
        return record

    def generate_in_background(
        self,
        content_id: str,
        markup: str,
        category: Optional[str] = None,
    ) -> bool:
        """
        Schedule generation on the running event loop and return at once.

        With a category, the category must be eligible as well. Content
        whose normalized text is shorter than ``generation.min_chars`` is
        skipped. Failures are logged; generation failures are also recorded
        on the content's record.

        Returns:
            True if a generation was scheduled.
        """
        gen = self._config.generation
        if category is not None:
            eligible = should_generate_tts(category, markup, gen.min_chars, gen.categories)
        else:
            eligible = len(clean_text_for_tts(markup)) >= gen.min_chars
        if not eligible:
            debug(_LOG, "background_skipped", content_id=content_id, category=category)
            return False

        try:
            self.register_content(content_id)
        except TTSError as e:
            warn(_LOG, "background_rejected", content_id=str(content_id)[:32], error=e.code)
            return False

        task = asyncio.get_running_loop().create_task(self._background_generate(content_id, markup))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        info(_LOG, "background_scheduled", content_id=content_id)
        return True

    async def _background_generate(self, content_id: str, markup: str) -> None:
        try:
            await self.generate(content_id, markup)
        except TTSError as e:
            warn(_LOG, "background_failed", content_id=content_id, error=e.code)

    async def wait_background(self) -> None:
        """Wait for all scheduled background generations (shutdown, tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def aclose(self) -> None:
        await self.wait_background()
        await self._engine.aclose()

    # =========================================================================
    # Health Check
    # =========================================================================

    def get_health_info(self) -> Dict[str, Any]:
        """
        Engine, chunking, cache, concurrency and storage summary.
        """
        result: Dict[str, Any] = {
            "ok": True,
            **self._engine.describe(),
            "chunking": {
                "max_bytes": self._config.chunking.max_bytes,
                "single_max_bytes": self._config.chunking.single_max_bytes,
            },
            "cache": self._cache.stats(),
            "storage": {
                **self._artifacts.get_storage_info(),
                "retention": self._config.storage.retention,
            },
            "generations": self._flights.stats(),
            "background_tasks": len(self._background),
        }
        if self._controller is not None:
            result["concurrency"] = self._controller.stats().to_dict()
        return result


# =============================================================================
# Global Service Singleton
# =============================================================================

_service: Optional[TTSService] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> TTSService:
    """
    Get or create the global TTSService instance.

    Thread-safe lazy singleton.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = TTSService(settings)
    return _service


def reset_service() -> None:
    """Reset the global service instance (for testing)."""
    global _service
    with _service_lock:
        _service = None
