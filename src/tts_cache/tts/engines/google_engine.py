"""
Google Cloud Text-to-Speech Engine.

Calls the REST endpoint ``v1/text:synthesize`` with an API key. One call
per chunk; the response carries base64 audio in ``audioContent``.

Request body:
    {
      "input": {"text": "..."},
      "voice": {"languageCode": "ko-KR", "name": "ko-KR-Neural2-A",
                "ssmlGender": "FEMALE"},
      "audioConfig": {"audioEncoding": "MP3", "speakingRate": 1.0,
                      "pitch": 0.0, "volumeGainDb": 0.0}
    }

Error Mapping:
    401 / 403             -> PROVIDER_AUTH
    429 / RESOURCE_EXHAUSTED -> PROVIDER_QUOTA
    400                   -> PROVIDER_BAD_REQUEST
    other >= 400, network -> PROVIDER_FAILED

Provider error bodies are logged, not forwarded; callers only see the code.

Configuration:
    settings.yaml:
        provider:
          engine: google
          voice_name: ko-KR-Neural2-A
          language_code: ko-KR
          ssml_gender: FEMALE
          audio_encoding: MP3

    The API key comes from TTS_CACHE_GOOGLE_API_KEY (or provider.api_key).

See Also:
    - https://cloud.google.com/text-to-speech/docs/reference/rest/v1/text/synthesize
"""
from __future__ import annotations

import base64
import binascii
import time
from typing import Any, Dict, Optional

import httpx

from tts_cache.core.config import Settings
from tts_cache.core.errors import ErrorCode, ProviderError
from tts_cache.core.logging import verbose, warn
from tts_cache.core.metrics import metrics
from tts_cache.tts.engine import BaseSynthesisEngine, SynthResult


def _status_to_code(status_code: int, provider_status: str) -> str:
    if status_code in (401, 403) and provider_status != "RESOURCE_EXHAUSTED":
        return ErrorCode.PROVIDER_AUTH
    if status_code == 429 or provider_status == "RESOURCE_EXHAUSTED":
        return ErrorCode.PROVIDER_QUOTA
    if status_code == 400:
        return ErrorCode.PROVIDER_BAD_REQUEST
    return ErrorCode.PROVIDER_FAILED


_MESSAGES = {
    ErrorCode.PROVIDER_AUTH: "speech provider rejected the credentials",
    ErrorCode.PROVIDER_QUOTA: "speech provider quota exhausted",
    ErrorCode.PROVIDER_BAD_REQUEST: "speech provider rejected the request",
    ErrorCode.PROVIDER_FAILED: "speech provider request failed",
}


class GoogleTTSEngine(BaseSynthesisEngine):
    """
    Google Cloud Text-to-Speech over httpx.

    Args:
        settings: Application settings.
        client: Optional shared AsyncClient (tests pass one with a
            MockTransport). Without it the engine creates and owns one.
    """

    name = "google"

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        super().__init__(settings)
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.provider.timeout_s))
        return self._client

    def build_payload(self, text: str) -> Dict[str, Any]:
        p = self.provider
        return {
            "input": {"text": text},
            "voice": {
                "languageCode": p.language_code,
                "name": p.voice_name,
                "ssmlGender": p.ssml_gender,
            },
            "audioConfig": {
                "audioEncoding": p.audio_encoding,
                "speakingRate": p.speaking_rate,
                "pitch": p.pitch,
                "volumeGainDb": p.volume_gain_db,
            },
        }

    def _fail(self, code: str, started: float, **fields: Any) -> ProviderError:
        metrics.record_provider_call(self.name, "error", time.perf_counter() - started)
        warn(self.logger, "provider_error", error=code, **fields)
        return ProviderError(_MESSAGES[code], code, {k: v for k, v in fields.items() if k == "status"})

    def check_ready(self) -> None:
        if not self.provider.api_key:
            raise ProviderError(_MESSAGES[ErrorCode.PROVIDER_AUTH], ErrorCode.PROVIDER_AUTH,
                                {"reason": "api key not configured"})

    async def synthesize(self, text: str) -> SynthResult:
        """
        Raises:
            ProviderError: On HTTP errors, transport errors or a response
                without audio.
        """
        self.check_ready()

        started = time.perf_counter()
        try:
            resp = await self._get_client().post(
                self.provider.endpoint,
                headers={"X-Goog-Api-Key": self.provider.api_key},
                json=self.build_payload(text),
            )
        except httpx.HTTPError as e:
            raise self._fail(ErrorCode.PROVIDER_FAILED, started, reason=type(e).__name__) from e

        if resp.status_code >= 400:
            provider_status = ""
            try:
                provider_status = str((resp.json().get("error") or {}).get("status", ""))
            except (ValueError, AttributeError):
                pass
            raise self._fail(
                _status_to_code(resp.status_code, provider_status),
                started,
                status=resp.status_code,
                provider_status=provider_status,
                body=(resp.text or "")[:300],
            )

        try:
            audio_b64 = resp.json().get("audioContent")
            audio = base64.b64decode(audio_b64, validate=True) if audio_b64 else b""
        except (ValueError, AttributeError, binascii.Error) as e:
            raise self._fail(ErrorCode.PROVIDER_FAILED, started, reason="malformed response") from e
        if not audio:
            raise self._fail(ErrorCode.PROVIDER_FAILED, started, reason="empty audioContent")

        seconds = time.perf_counter() - started
        metrics.record_provider_call(self.name, "success", seconds)
        verbose(self.logger, "provider_call", chars=len(text), bytes=len(audio), seconds=round(seconds, 3))
        return SynthResult(audio_bytes=audio, audio_format=self.audio_format, timings_s={"provider": seconds})

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
