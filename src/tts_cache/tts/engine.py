"""
Synthesis Engine Base Class and Factory.

This module provides:
    - BaseSynthesisEngine: Abstract base class for synthesis providers
    - SynthResult: Synthesis result container
    - get_engine(): Factory function to create/get the engine instance

An engine turns one chunk of text into one encoded audio buffer with the
fixed voice and format from the ``provider`` settings section. It makes
exactly one provider call per ``synthesize`` and raises ProviderError on
any failure; retries are the caller's business.

Engine Selection:
    TTS_CACHE_ENGINE environment variable or ``provider.engine``:
        - google: Google Cloud Text-to-Speech REST API (default)
        - tone:   Offline sine-tone generator for local runs and tests

Implementing a New Engine:
    1. Create engines/<name>_engine.py
    2. Inherit from BaseSynthesisEngine
    3. Implement async synthesize()
    4. Register in _create_engine()
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from tts_cache.core.config import ProviderConfig, Settings, TTSServiceConfig
from tts_cache.core.logging import get_logger, info

# Provider audio encoding -> (container format, file extension)
ENCODING_FORMATS = {
    "MP3": ("mp3", "mp3"),
    "OGG_OPUS": ("ogg", "ogg"),
    "LINEAR16": ("wav", "wav"),
    "MULAW": ("wav", "wav"),
    "ALAW": ("wav", "wav"),
}

MIME_TYPES = {
    "mp3": "audio/mpeg",
    "ogg": "audio/ogg",
    "wav": "audio/wav",
}


@dataclass
class SynthResult:
    """
    Result of one provider call.

    Attributes:
        audio_bytes: Encoded audio for the chunk.
        audio_format: Container format ("mp3", "ogg", "wav").
        timings_s: Per-stage timing breakdown in seconds.
    """
    audio_bytes: bytes
    audio_format: str
    timings_s: Dict[str, float] = field(default_factory=dict)


class BaseSynthesisEngine:
    """
    Abstract base class for synthesis engines.

    Subclasses implement ``synthesize`` and, if they hold network
    resources, ``aclose``.

    Attributes:
        name: Engine identifier (e.g., "google").
        provider: Validated provider configuration.
        audio_format: Container format of every buffer this engine returns.
    """
    name: str = "base"

    def __init__(self, settings: Settings):
        self.settings = settings
        self.provider: ProviderConfig = TTSServiceConfig.from_settings(settings).provider
        self.logger = get_logger(f"tts-cache.engine.{self.name}")

    @property
    def audio_format(self) -> str:
        return ENCODING_FORMATS[self.provider.audio_encoding][0]

    @property
    def extension(self) -> str:
        return ENCODING_FORMATS[self.provider.audio_encoding][1]

    @property
    def mime_type(self) -> str:
        return MIME_TYPES.get(self.audio_format, "application/octet-stream")

    async def synthesize(self, text: str) -> SynthResult:
        """
        Synthesize one chunk.

        Raises:
            ProviderError: On any provider-side failure.
            NotImplementedError: If not overridden.
        """
        raise NotImplementedError

    def check_ready(self) -> None:
        """Raise ProviderError if the engine cannot make calls at all."""
        return None

    async def aclose(self) -> None:
        """Release network resources."""
        return None

    def describe(self) -> Dict[str, object]:
        """Voice/format summary for health output."""
        return {
            "engine": self.name,
            "voice": self.provider.voice_name,
            "language": self.provider.language_code,
            "audio_encoding": self.provider.audio_encoding,
            "audio_format": self.audio_format,
        }


# =============================================================================
# Engine Factory (Singleton Pattern)
# =============================================================================

_ENGINE: Optional[BaseSynthesisEngine] = None
_ENGINE_TYPE: Optional[str] = None
_ENGINE_LOCK = threading.Lock()


def _create_engine(engine_type: str, settings: Settings) -> BaseSynthesisEngine:
    """
    Raises:
        ValueError: If engine_type is unknown.
    """
    if engine_type == "google":
        from tts_cache.tts.engines.google_engine import GoogleTTSEngine
        return GoogleTTSEngine(settings)

    if engine_type == "tone":
        from tts_cache.tts.engines.tone_engine import ToneEngine
        return ToneEngine(settings)

    raise ValueError(f"Unknown engine type: {engine_type}")


def get_engine(settings: Settings) -> BaseSynthesisEngine:
    """
    Get or create the global engine instance.

    A new engine replaces the old one if the configured type changes.
    """
    global _ENGINE
    global _ENGINE_TYPE

    engine_type = TTSServiceConfig.from_settings(settings).provider.engine

    if _ENGINE is None or _ENGINE_TYPE != engine_type:
        with _ENGINE_LOCK:
            if _ENGINE is None or _ENGINE_TYPE != engine_type:
                _ENGINE = _create_engine(engine_type, settings)
                _ENGINE_TYPE = engine_type
                info(get_logger("tts-cache.engine"), "engine_created", engine=engine_type)

    return _ENGINE


def reset_engine() -> None:
    """Reset the global engine (for testing)."""
    global _ENGINE
    global _ENGINE_TYPE
    with _ENGINE_LOCK:
        _ENGINE = None
        _ENGINE_TYPE = None
