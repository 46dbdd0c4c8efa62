"""
Byte-bounded Text Chunking.

Speech providers cap each request by encoded size, not by characters.
Korean, Japanese and Chinese take three bytes per character in UTF-8, so
a character budget that is safe for English overflows on those scripts.
This module splits normalized text into ordered chunks whose UTF-8 length
never exceeds ``max_bytes``, preferring natural cut points:

    1. right after a sentence terminator (. ! ? 。 ！ ？) in the last 20%
       of the candidate span
    2. at a space or line break in the last 10% of the candidate span
    3. otherwise a hard cut at the byte limit

Cut-point whitespace is trimmed, so joining the chunks gives back the
input minus that whitespace.

Example:
    >>> result = split_text_by_bytes("First sentence. Second one.", max_bytes=16)
    >>> [c.text for c in result.chunks]
    ['First sentence.', 'Second one.']
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from tts_cache.core.logging import get_logger, verbose
from tts_cache.utils.timeit import timeit

_LOG = get_logger("tts-cache.chunker")

SENTENCE_TERMINATORS = frozenset(".!?。！？")
WORD_BREAKS = frozenset(" \n")

# Fractions of the candidate span left of which no soft cut is attempted
_SENTENCE_WINDOW = 0.8
_WORD_WINDOW = 0.9


@dataclass(frozen=True)
class TextChunk:
    """
    One provider request worth of text.

    Attributes:
        index: Position in the original text (0-based, contiguous).
        text: Trimmed chunk text.
        byte_length: UTF-8 encoded length of ``text``.
    """
    index: int
    text: str
    byte_length: int


@dataclass
class ChunkResult:
    """
    Result of a split.

    Attributes:
        chunks: Ordered chunks ready for synthesis.
        timings_s: Timing measurements in seconds.
    """
    chunks: List[TextChunk]
    timings_s: Dict[str, float]

    @property
    def texts(self) -> List[str]:
        return [c.text for c in self.chunks]


def utf8_len(text: str) -> int:
    return len(text.encode("utf-8"))


def _find_cut(text: str, cursor: int, end: int) -> int:
    """Pick a soft cut in ``text[cursor:end]`` or return ``end`` for a hard cut."""
    span = end - cursor

    floor_sentence = cursor + int(span * _SENTENCE_WINDOW)
    for i in range(end - 1, floor_sentence, -1):
        if text[i] in SENTENCE_TERMINATORS:
            return i + 1

    floor_word = cursor + int(span * _WORD_WINDOW)
    for i in range(end - 1, floor_word, -1):
        if text[i] in WORD_BREAKS:
            return i

    return end


def split_text_by_bytes(text: str, max_bytes: int = 4500) -> ChunkResult:
    """
    Split text into chunks of at most ``max_bytes`` UTF-8 bytes.

    Text that already fits is returned as a single chunk, unchanged. Empty
    text gives no chunks.

    Args:
        text: Normalized text.
        max_bytes: Per-chunk budget in encoded bytes.

    Returns:
        ChunkResult with ordered TextChunk entries.

    Raises:
        ValueError: If max_bytes is not positive, or a single character
            does not fit in max_bytes.
    """
    if max_bytes <= 0:
        raise ValueError(f"max_bytes must be positive, got {max_bytes}")

    timings: Dict[str, float] = {}
    chunks: List[TextChunk] = []

    with timeit("split") as t:
        total_bytes = utf8_len(text)
        if total_bytes <= max_bytes:
            if text:
                chunks.append(TextChunk(index=0, text=text, byte_length=total_bytes))
        else:
            n = len(text)
            cursor = 0
            remaining_bytes = total_bytes
            while cursor < n:
                # Average bytes per character of what is left drives the estimate
                avg = remaining_bytes / (n - cursor)
                end = min(n, cursor + max(1, int(max_bytes / avg)))

                span_bytes = utf8_len(text[cursor:end])
                while span_bytes > max_bytes and end - cursor > 1:
                    end -= 1
                    span_bytes -= utf8_len(text[end])
                if span_bytes > max_bytes:
                    raise ValueError(
                        f"character at offset {cursor} needs {span_bytes} bytes, "
                        f"more than max_bytes={max_bytes}"
                    )

                if end < n:
                    end = _find_cut(text, cursor, end)

                piece = text[cursor:end]
                remaining_bytes -= utf8_len(piece)
                cursor = end

                stripped = piece.strip()
                if stripped:
                    chunks.append(
                        TextChunk(index=len(chunks), text=stripped, byte_length=utf8_len(stripped))
                    )

    timings["split"] = t.seconds
    verbose(
        _LOG,
        "split",
        chunks=len(chunks),
        bytes=total_bytes,
        max_bytes=max_bytes,
        seconds=round(timings["split"], 4),
    )
    return ChunkResult(chunks=chunks, timings_s=timings)
