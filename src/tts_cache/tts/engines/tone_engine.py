"""
Offline Tone Engine.

Produces a short sine tone per chunk instead of speech, so the whole
pipeline (chunking, fan-out, WAV assembly, storage, status) runs without
network access or credentials. Output is always LINEAR16 WAV, and the
tone length grows with the text so longer chunks give longer audio.

    settings.yaml:
        provider:
          engine: tone
"""
from __future__ import annotations

import asyncio

import numpy as np

from tts_cache.core.config import Settings
from tts_cache.core.logging import debug
from tts_cache.tts.engine import BaseSynthesisEngine, SynthResult
from tts_cache.utils.audio import wav_bytes_from_float32

SAMPLE_RATE = 16000
FREQUENCY_HZ = 440.0
SECONDS_PER_CHAR = 0.01
MAX_SECONDS = 10.0


class ToneEngine(BaseSynthesisEngine):
    """Sine-tone stand-in for a speech provider."""

    name = "tone"

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.provider.audio_encoding = "LINEAR16"

    def _render(self, text: str) -> bytes:
        seconds = min(MAX_SECONDS, max(0.1, len(text) * SECONDS_PER_CHAR))
        t = np.arange(int(SAMPLE_RATE * seconds), dtype=np.float32) / SAMPLE_RATE
        wave = 0.2 * np.sin(2 * np.pi * FREQUENCY_HZ * t)
        wav_bytes, _ = wav_bytes_from_float32(wave, SAMPLE_RATE)
        return wav_bytes

    async def synthesize(self, text: str) -> SynthResult:
        audio = await asyncio.to_thread(self._render, text)
        debug(self.logger, "tone_rendered", chars=len(text), bytes=len(audio))
        return SynthResult(audio_bytes=audio, audio_format="wav")
