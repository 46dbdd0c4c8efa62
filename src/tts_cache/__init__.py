"""
tts-cache: Cached long-form Text-to-Speech service.

Turns article text (often HTML) into one stored audio file per content
item and tracks its generation status, so readers get instant playback
once the audio exists.

Pipeline:
    normalize -> split into byte-bounded chunks -> one provider call per
    chunk (bounded parallelism) -> join in order -> store -> record status

Key Features:
    - Content-addressed artifacts ({contentId}_{hash}.{ext}): unchanged text
      is never synthesized twice
    - Status records (pending / generating / completed / failed) with
      self-healing when an artifact file goes missing
    - Google Cloud Text-to-Speech engine plus an offline tone engine
    - FastAPI endpoints, CLI and Prometheus metrics

Example Usage:
    >>> import asyncio
    >>> from tts_cache.core.config import Settings
    >>> from tts_cache.services import TTSService
    >>>
    >>> service = TTSService(Settings(raw={"provider": {"engine": "tone"}}))
    >>> result = asyncio.run(service.generate("42", "<p>Hello world.</p>"))
    >>> result.url
    '/tts/42_....wav'
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
