"""
Prometheus Metrics for tts-cache.

Metrics Exposed:
    tts_generations_total              - Generations by outcome (hit/miss/failed)
    tts_generation_duration_seconds    - Histogram of end-to-end generation latency
    tts_provider_calls_total           - Provider calls by engine and status
    tts_provider_call_duration_seconds - Histogram of single provider call latency
    tts_status_queries_total           - Status queries by reported status
    tts_audio_bytes_total              - Counter of artifact bytes written
    tts_chunks_per_generation          - Histogram of chunk counts
    tts_inflight_provider_calls        - Gauge of provider calls in flight
    tts_queue_depth                    - Gauge of chunks waiting for a slot

Usage:
    from tts_cache.core.metrics import metrics

    metrics.record_generation("miss", duration=4.2, chunks=3, audio_bytes=183_552)
    metrics.record_provider_call("google", "success", 0.8)
    metrics.record_query("completed")

    # /metrics endpoint
    content, content_type = metrics.get_metrics_response()

Prometheus Scrape Config Example:
    scrape_configs:
      - job_name: 'tts-cache'
        static_configs:
          - targets: ['localhost:8000']
        metrics_path: '/metrics'
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class TTSMetrics:
    """
    Metrics collection using prometheus_client.

    A private CollectorRegistry per instance keeps tests (and several
    apps in one process) from colliding on metric names.

    Example:
        >>> from tts_cache.core.metrics import metrics
        >>> metrics.record_query("pending")
        >>> content, _ = metrics.get_metrics_response()
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._generations_total = Counter(
            "tts_generations_total",
            "Total generate calls by outcome",
            ["outcome"],
            registry=self._registry,
        )
        self._generation_duration = Histogram(
            "tts_generation_duration_seconds",
            "End-to-end generation duration in seconds",
            ["outcome"],
            buckets=(0.05, 0.25, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )
        self._provider_calls_total = Counter(
            "tts_provider_calls_total",
            "Total synthesis provider calls",
            ["engine", "status"],
            registry=self._registry,
        )
        self._provider_call_duration = Histogram(
            "tts_provider_call_duration_seconds",
            "Single provider call duration in seconds",
            ["engine"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )
        self._status_queries_total = Counter(
            "tts_status_queries_total",
            "Total status queries by reported status",
            ["status"],
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "tts_audio_bytes_total",
            "Total artifact bytes written",
            registry=self._registry,
        )
        self._chunks_per_generation = Histogram(
            "tts_chunks_per_generation",
            "Number of chunks per synthesized artifact",
            buckets=(1, 2, 3, 5, 8, 13, 21, 50),
            registry=self._registry,
        )
        self._inflight_provider_calls = Gauge(
            "tts_inflight_provider_calls",
            "Provider calls currently in flight",
            registry=self._registry,
        )
        self._queue_depth = Gauge(
            "tts_queue_depth",
            "Chunks waiting for a provider slot",
            registry=self._registry,
        )

    def record_generation(
        self,
        outcome: str,
        duration: float,
        chunks: int = 0,
        audio_bytes: int = 0,
    ) -> None:
        """
        Record a finished generate call.

        Args:
            outcome: "hit", "miss" or "failed"
            duration: Wall time in seconds
            chunks: Chunk count (miss only)
            audio_bytes: Artifact size (miss only)
        """
        self._generations_total.labels(outcome=outcome).inc()
        self._generation_duration.labels(outcome=outcome).observe(duration)
        if chunks > 0:
            self._chunks_per_generation.observe(chunks)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_provider_call(self, engine: str, status: str, duration: float) -> None:
        self._provider_calls_total.labels(engine=engine, status=status).inc()
        self._provider_call_duration.labels(engine=engine).observe(duration)

    def record_query(self, status: str) -> None:
        self._status_queries_total.labels(status=status).inc()

    def set_inflight(self, count: int) -> None:
        self._inflight_provider_calls.set(count)

    def set_queue_depth(self, depth: int) -> None:
        self._queue_depth.set(depth)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global singleton metrics instance
metrics = TTSMetrics()
