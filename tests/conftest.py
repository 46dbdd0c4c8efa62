"""Shared fixtures: isolated settings, a scriptable fake engine, singleton resets."""
from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

import pytest

from tts_cache.core.config import Settings
from tts_cache.core.errors import ErrorCode, ProviderError
from tts_cache.services.tts_service import reset_service
from tts_cache.tts.concurrency import reset_controller
from tts_cache.tts.engine import BaseSynthesisEngine, SynthResult, reset_engine


class FakeEngine(BaseSynthesisEngine):
    """
    MP3-format engine that returns ``<text>`` as the audio bytes.

    Args:
        fail_on: Raise ``error`` for any chunk containing this substring.
        error: Exception to raise (default: PROVIDER_QUOTA ProviderError).
        delay_for: Seconds to sleep for a given chunk text.
    """

    name = "fake"

    def __init__(
        self,
        settings: Settings,
        fail_on: Optional[str] = None,
        error: Optional[Exception] = None,
        delay_for: Optional[Callable[[str], float]] = None,
    ):
        super().__init__(settings)
        self.calls: List[str] = []
        self.completed: List[str] = []
        self.fail_on = fail_on
        self.error = error or ProviderError("speech provider quota exhausted", ErrorCode.PROVIDER_QUOTA)
        self.delay_for = delay_for or (lambda text: 0.0)
        self.active = 0
        self.max_active = 0
        self.closed = False

    async def synthesize(self, text: str) -> SynthResult:
        self.calls.append(text)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            delay = self.delay_for(text)
            if delay:
                await asyncio.sleep(delay)
            if self.fail_on is not None and self.fail_on in text:
                raise self.error
            self.completed.append(text)
            return SynthResult(audio_bytes=f"<{text}>".encode("utf-8"), audio_format="mp3")
        finally:
            self.active -= 1

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _reset_singletons():
    yield
    reset_service()
    reset_engine()
    reset_controller()


@pytest.fixture
def make_settings(tmp_path):
    """
    Build Settings rooted in tmp_path. Keyword arguments are merged into
    the matching sections.
    """
    def _make(**sections) -> Settings:
        raw = {
            "provider": {"engine": "tone"},
            "storage": {
                "base_dir": str(tmp_path / "public" / "tts"),
                "metadata_dir": str(tmp_path / "records"),
            },
            "concurrency": {"enabled": False},
            "logging": {"level": 1},
        }
        for name, values in sections.items():
            raw.setdefault(name, {}).update(values)
        return Settings(raw=raw)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def fake_engine(settings):
    return FakeEngine(settings)
