"""
Concurrency Control for Provider Calls.

A long article becomes many chunks and every chunk is one provider call.
Firing them all at once trips the provider's rate limit, so each call
takes a slot from a ConcurrencyController first. The controller is shared
by all generations in the process, so the limit holds globally, not
per article.

Backpressure Strategy:
    1. If slots available: acquire immediately
    2. If queue has space: wait for a slot (up to timeout)
    3. If queue is full: reject immediately (QueueFullError)

A generation is admitted once with ``check_capacity`` before its first
provider call; its chunks then wait for slots with ``queue_limit=False``
so a long article is never rejected halfway through.

The counter is protected by a threading.Lock rather than tied to an
asyncio primitive, so one controller can serve several event loops
(the API loop plus ``asyncio.run`` in the CLI and tests).

Usage:
    controller = ConcurrencyController(max_concurrent=4, max_queue=256)

    async with controller.acquire_async(timeout=60.0):
        audio = await engine.synthesize(chunk.text)

    stats = controller.stats()
    print(f"Active: {stats.current_active}/{stats.max_concurrent}")
"""
from __future__ import annotations

import asyncio
import threading
import time
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from tts_cache.core.errors import QueueFullError, TimeoutError
from tts_cache.core.logging import get_logger, info
from tts_cache.core.metrics import metrics

_LOG = get_logger("tts-cache.concurrency")

_POLL_INTERVAL_S = 0.01


@dataclass
class ConcurrencyStats:
    """Statistics for concurrency controller."""
    max_concurrent: int
    max_queue: int
    current_active: int
    current_waiting: int
    total_processed: int
    total_rejected: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConcurrencyController:
    """
    Bounds the number of provider calls in flight.

    Args:
        max_concurrent: Maximum simultaneous provider calls.
        max_queue: Maximum calls waiting for a slot before rejection.
    """

    def __init__(self, max_concurrent: int = 4, max_queue: int = 256):
        self.max_concurrent = max_concurrent
        self.max_queue = max_queue

        self._lock = threading.Lock()

        self._active = 0
        self._waiting = 0
        self._total_processed = 0
        self._total_rejected = 0

    @property
    def queue_depth(self) -> int:
        with self._lock:
            return self._waiting

    @property
    def active_count(self) -> int:
        with self._lock:
            return self._active

    def stats(self) -> ConcurrencyStats:
        with self._lock:
            return ConcurrencyStats(
                max_concurrent=self.max_concurrent,
                max_queue=self.max_queue,
                current_active=self._active,
                current_waiting=self._waiting,
                total_processed=self._total_processed,
                total_rejected=self._total_rejected,
            )

    def try_acquire(self) -> bool:
        """Take a slot without waiting. Returns False if none is free."""
        with self._lock:
            if self._active < self.max_concurrent:
                self._active += 1
                metrics.set_inflight(self._active)
                return True
            return False

    def release(self) -> None:
        with self._lock:
            self._active = max(0, self._active - 1)
            self._total_processed += 1
            metrics.set_inflight(self._active)

    def check_capacity(self) -> None:
        """
        Admission check for a batch of calls, without taking a slot.

        Raises:
            QueueFullError: If every slot is busy and max_queue callers wait.
        """
        with self._lock:
            if self._active >= self.max_concurrent and self._waiting >= self.max_queue:
                self._total_rejected += 1
                raise QueueFullError(
                    f"Queue full ({self._waiting} waiting)",
                    {"max_queue": self.max_queue},
                )

    @asynccontextmanager
    async def acquire_async(self, timeout: float = 60.0, queue_limit: bool = True):
        """
        Async context manager holding one slot for the duration of the block.

        A free slot is taken at once when nobody is queued. Cancellation
        while waiting (a sibling chunk failed) gives up the queue position
        cleanly.

        Args:
            timeout: Seconds to wait for a slot.
            queue_limit: Reject when max_queue callers already wait. Chunks
                of an admitted generation pass False.

        Raises:
            QueueFullError: If queue_limit is set and max_queue callers wait.
            TimeoutError: If no slot frees up within ``timeout`` seconds.
        """
        with self._lock:
            acquired = self._waiting == 0 and self._active < self.max_concurrent
            if acquired:
                self._active += 1
                metrics.set_inflight(self._active)
            elif queue_limit and self._waiting >= self.max_queue:
                self._total_rejected += 1
                raise QueueFullError(
                    f"Queue full ({self._waiting} waiting)",
                    {"max_queue": self.max_queue},
                )
            else:
                self._waiting += 1
                metrics.set_queue_depth(self._waiting)

        if not acquired:
            start = time.monotonic()
            try:
                while True:
                    with self._lock:
                        if self._active < self.max_concurrent:
                            self._active += 1
                            metrics.set_inflight(self._active)
                            break

                    if time.monotonic() - start >= timeout:
                        with self._lock:
                            self._total_rejected += 1
                        raise TimeoutError(
                            f"Timeout after {timeout}s waiting for a provider slot",
                            {"timeout_s": timeout},
                        )

                    await asyncio.sleep(_POLL_INTERVAL_S)
            finally:
                with self._lock:
                    self._waiting = max(0, self._waiting - 1)
                    metrics.set_queue_depth(self._waiting)

        try:
            yield
        finally:
            self.release()


# Global controller instance (created on first use)
_controller: Optional[ConcurrencyController] = None
_controller_lock = threading.Lock()


def get_controller(max_concurrent: int = 4, max_queue: int = 256) -> ConcurrencyController:
    """
    Get or create the global concurrency controller.

    Arguments only matter on the first call.
    """
    global _controller
    if _controller is None:
        with _controller_lock:
            if _controller is None:
                _controller = ConcurrencyController(max_concurrent=max_concurrent, max_queue=max_queue)
                info(_LOG, "concurrency_init", max_concurrent=max_concurrent, max_queue=max_queue)
    return _controller


def reset_controller() -> None:
    """Reset the global controller (for testing)."""
    global _controller
    with _controller_lock:
        _controller = None
