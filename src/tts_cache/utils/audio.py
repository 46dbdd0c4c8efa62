"""
Audio Processing Utilities.

WAV helpers used by the assembler (joining LINEAR16 chunks) and by the
offline tone engine. Compressed formats (MP3, Ogg Opus) never go
through here; their chunks are joined as bytes.

Key Functions:
    wav_bytes_from_float32: Encode a numpy array as WAV bytes
    wav_bytes_to_float32: Decode WAV bytes into a numpy array
    concat_wav_bytes: Decode several WAV buffers and re-encode them as one
    probe_duration: Measured duration of an encoded buffer, if decodable

Dependencies:
    - numpy: Array operations
    - soundfile: WAV reading/writing (libsndfile)

Example:
    >>> import numpy as np
    >>> audio = np.zeros(24000, dtype=np.float32)
    >>> wav_bytes, timings = wav_bytes_from_float32(audio, 24000)
"""
from __future__ import annotations

import io
from typing import Dict, List, Optional, Sequence

import numpy as np
import soundfile as sf

from tts_cache.core.logging import debug, get_logger
from tts_cache.utils.timeit import timeit

_LOG = get_logger("tts-cache.audio")


def wav_bytes_from_float32(
    waveform: np.ndarray,
    sample_rate: int,
    subtype: str = "PCM_16",
) -> tuple[bytes, Dict[str, float]]:
    """
    Convert float32 waveform to WAV bytes.

    Args:
        waveform: Samples in [-1, 1]. 2D input is flattened to mono.
        sample_rate: Audio sample rate (e.g., 24000).
        subtype: libsndfile subtype (PCM_16, ULAW, ALAW).

    Returns:
        Tuple of (wav_bytes, timing_dict) where timing_dict has 'wav_encode'.
    """
    timings: Dict[str, float] = {}

    with timeit("wav_encode") as t:
        wav = np.asarray(waveform, dtype=np.float32)
        if wav.ndim > 1:
            wav = wav.reshape(-1)

        buf = io.BytesIO()
        sf.write(buf, wav, sample_rate, format="WAV", subtype=subtype)
        out = buf.getvalue()

    timings["wav_encode"] = t.seconds
    debug(_LOG, "wav_encoded", bytes=len(out), sr=sample_rate, seconds=round(timings["wav_encode"], 4))
    return out, timings


def wav_bytes_to_float32(wav_bytes: bytes) -> tuple[np.ndarray, int]:
    """
    Convert WAV bytes to a mono float32 array.

    Returns:
        Tuple of (audio_array, sample_rate). Stereo input is averaged to mono.
    """
    wav, sr = sf.read(io.BytesIO(wav_bytes), dtype="float32")

    if wav.ndim > 1:
        wav = wav.mean(axis=1)

    return np.asarray(wav, dtype=np.float32), int(sr)


def concat_wav_bytes(buffers: Sequence[bytes]) -> bytes:
    """
    Join WAV buffers into a single WAV file.

    Every buffer is decoded, samples are concatenated in the given order and
    written once with the first buffer's sample rate and subtype. Byte
    concatenation would leave stray RIFF headers in the middle of the data.

    Raises:
        ValueError: If buffers is empty or sample rates disagree.
    """
    if not buffers:
        raise ValueError("no audio buffers to concatenate")

    subtype = sf.info(io.BytesIO(buffers[0])).subtype
    parts: List[np.ndarray] = []
    sample_rate: Optional[int] = None
    for index, data in enumerate(buffers):
        samples, sr = wav_bytes_to_float32(data)
        if sample_rate is None:
            sample_rate = sr
        elif sr != sample_rate:
            raise ValueError(f"chunk {index} sample rate {sr} != {sample_rate}")
        parts.append(samples)

    assert sample_rate is not None
    out, _ = wav_bytes_from_float32(np.concatenate(parts), sample_rate, subtype=subtype)
    return out


def probe_duration(data: bytes) -> Optional[float]:
    """
    Measured duration in seconds, or None if libsndfile cannot read the data.
    """
    try:
        info = sf.info(io.BytesIO(data))
    except RuntimeError as exc:
        debug(_LOG, "probe_failed", reason=str(exc))
        return None
    if not info.samplerate:
        return None
    return float(info.frames) / float(info.samplerate)
