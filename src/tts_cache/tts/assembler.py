"""
Audio Assembly.

Joins per-chunk provider buffers, already in chunk order, into one
artifact.

    mp3 / ogg  frame-based streams: buffers are concatenated byte for byte.
               Every chunk uses the same voice, sample rate and encoding,
               so the result plays continuously (not perfectly seamless).
    wav        each buffer carries its own RIFF header: samples are decoded
               and re-encoded into a single file (utils/audio.py).

Duration:
    ``estimate_duration`` is ceil(characters / chars_per_second) of the
    normalized text, an estimate rather than a decoded measurement.
    With ``audio.measure_duration`` enabled the service asks
    ``measure_duration`` first and falls back to the estimate when the
    container cannot be probed.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from tts_cache.core.logging import get_logger, verbose
from tts_cache.utils.audio import concat_wav_bytes, probe_duration
from tts_cache.utils.timeit import timeit

_LOG = get_logger("tts-cache.assembler")

CONCATENABLE_FORMATS = frozenset({"mp3", "ogg"})
DECODED_FORMATS = frozenset({"wav"})


@dataclass
class AssembledAudio:
    """
    Attributes:
        audio_bytes: The complete artifact.
        audio_format: Container format.
        file_size_bytes: len(audio_bytes).
        timings_s: Timing measurements in seconds.
    """
    audio_bytes: bytes
    audio_format: str
    file_size_bytes: int
    timings_s: Dict[str, float]


def assemble(buffers: Sequence[bytes], audio_format: str) -> AssembledAudio:
    """
    Join ordered chunk buffers into one artifact.

    Raises:
        ValueError: If buffers is empty or the format is unsupported.
    """
    if not buffers:
        raise ValueError("no audio buffers to assemble")

    fmt = audio_format.lower()
    timings: Dict[str, float] = {}
    with timeit("assemble") as t:
        if fmt in CONCATENABLE_FORMATS:
            data = b"".join(buffers)
        elif fmt in DECODED_FORMATS:
            data = buffers[0] if len(buffers) == 1 else concat_wav_bytes(buffers)
        else:
            raise ValueError(f"unsupported audio format: {audio_format}")

    timings["assemble"] = t.seconds
    verbose(_LOG, "assembled", format=fmt, chunks=len(buffers), bytes=len(data),
            seconds=round(timings["assemble"], 4))
    return AssembledAudio(audio_bytes=data, audio_format=fmt, file_size_bytes=len(data), timings_s=timings)


def estimate_duration(normalized_text: str, chars_per_second: int = 10) -> int:
    """
    Estimated playback seconds for normalized text.

    Example:
        >>> estimate_duration("x" * 101)
        11
    """
    if chars_per_second <= 0:
        raise ValueError("chars_per_second must be positive")
    return math.ceil(len(normalized_text) / chars_per_second)


def measure_duration(audio_bytes: bytes) -> Optional[int]:
    """Decoded duration rounded up to whole seconds, None if not measurable."""
    seconds = probe_duration(audio_bytes)
    if seconds is None:
        return None
    return math.ceil(seconds)
