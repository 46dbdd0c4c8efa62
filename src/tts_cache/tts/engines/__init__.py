"""
Synthesis Engine Implementations.

Available Engines:
    - GoogleTTSEngine: Google Cloud Text-to-Speech over HTTPS (httpx)
    - ToneEngine: Offline sine-tone WAV generator (numpy/soundfile)

Engine classes are imported lazily; use the factory in tts/engine.py:

    from tts_cache.tts.engine import get_engine
    engine = get_engine(settings)
    result = await engine.synthesize("안녕하세요")
"""
from __future__ import annotations

from typing import TYPE_CHECKING

__all__ = ["GoogleTTSEngine", "ToneEngine"]


def __getattr__(name: str):
    if name == "GoogleTTSEngine":
        from tts_cache.tts.engines.google_engine import GoogleTTSEngine
        return GoogleTTSEngine
    if name == "ToneEngine":
        from tts_cache.tts.engines.tone_engine import ToneEngine
        return ToneEngine
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if TYPE_CHECKING:
    from tts_cache.tts.engines.google_engine import GoogleTTSEngine
    from tts_cache.tts.engines.tone_engine import ToneEngine
