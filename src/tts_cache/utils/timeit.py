"""
Timing helper for pipeline stages.

Measures wall-clock time of a ``with`` block using perf_counter():

    timings = {}
    with timeit("split") as t:
        chunks = split_text_by_bytes(text, 4500)
    timings["split"] = t.timing.seconds

The same context manager works inside coroutines; it measures the wall
time of everything awaited in the block.
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: What was timed (e.g., "normalize", "synthesize").
        seconds: Duration in seconds.
        meta: Optional metadata dictionary for additional context.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager for timing code blocks.

    Example:
        with timeit("assemble", meta={"chunks": 3}) as t:
            audio = assemble(buffers, "mp3")
        # t.timing.seconds, t.timing.meta == {"chunks": 3}
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        t1 = perf_counter()
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(t1 - self._t0), meta=self.meta)

    @property
    def seconds(self) -> float:
        """Elapsed seconds, or -1.0 before the block has exited."""
        return self.timing.seconds if self.timing else -1.0
