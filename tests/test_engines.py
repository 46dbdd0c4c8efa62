"""
Tests for synthesis engines.

Tests cover:
- Google engine request shape and response decoding (httpx MockTransport)
- Provider error mapping (auth, quota, bad request, other)
- Offline tone engine output
- Engine factory selection and singleton behaviour
"""
import asyncio
import base64
import json

import httpx
import pytest

from tts_cache.core.errors import ErrorCode, ProviderError
from tts_cache.tts.engine import get_engine, reset_engine
from tts_cache.tts.engines.google_engine import GoogleTTSEngine
from tts_cache.tts.engines.tone_engine import ToneEngine


def _run_google(settings, handler, text="안녕하세요."):
    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            engine = GoogleTTSEngine(settings, client=client)
            return await engine.synthesize(text)

    return asyncio.run(main())


@pytest.fixture
def google_settings(make_settings):
    return make_settings(provider={"engine": "google", "api_key": "test-key"})


class TestGoogleEngine:
    def test_success_decodes_audio(self, google_settings):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("X-Goog-Api-Key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"audioContent": base64.b64encode(b"ID3audio").decode()})

        result = _run_google(google_settings, handler)

        assert result.audio_bytes == b"ID3audio"
        assert result.audio_format == "mp3"
        assert "provider" in result.timings_s
        assert seen["url"] == "https://texttospeech.googleapis.com/v1/text:synthesize"
        assert seen["key"] == "test-key"
        assert seen["body"] == {
            "input": {"text": "안녕하세요."},
            "voice": {"languageCode": "ko-KR", "name": "ko-KR-Neural2-A", "ssmlGender": "FEMALE"},
            "audioConfig": {"audioEncoding": "MP3", "speakingRate": 1.0, "pitch": 0.0, "volumeGainDb": 0.0},
        }

    def test_payload_uses_configured_voice(self, make_settings):
        settings = make_settings(provider={
            "engine": "google",
            "api_key": "k",
            "voice_name": "en-US-Neural2-C",
            "language_code": "en-US",
            "audio_encoding": "ogg_opus",
            "speaking_rate": 1.25,
        })
        engine = GoogleTTSEngine(settings)
        payload = engine.build_payload("hi")

        assert payload["voice"]["name"] == "en-US-Neural2-C"
        assert payload["audioConfig"]["audioEncoding"] == "OGG_OPUS"
        assert payload["audioConfig"]["speakingRate"] == 1.25
        assert engine.audio_format == "ogg"
        assert engine.mime_type == "audio/ogg"

    @pytest.mark.parametrize("status,body,code", [
        (401, {"error": {"status": "UNAUTHENTICATED"}}, ErrorCode.PROVIDER_AUTH),
        (403, {"error": {"status": "PERMISSION_DENIED"}}, ErrorCode.PROVIDER_AUTH),
        (403, {"error": {"status": "RESOURCE_EXHAUSTED"}}, ErrorCode.PROVIDER_QUOTA),
        (429, {"error": {"status": "RESOURCE_EXHAUSTED"}}, ErrorCode.PROVIDER_QUOTA),
        (400, {"error": {"status": "INVALID_ARGUMENT"}}, ErrorCode.PROVIDER_BAD_REQUEST),
        (500, {"error": {"status": "INTERNAL"}}, ErrorCode.PROVIDER_FAILED),
        (503, None, ErrorCode.PROVIDER_FAILED),
    ])
    def test_error_mapping(self, google_settings, status, body, code):
        def handler(request):
            if body is None:
                return httpx.Response(status, text="upstream unavailable")
            return httpx.Response(status, json=body)

        with pytest.raises(ProviderError) as exc_info:
            _run_google(google_settings, handler)

        assert exc_info.value.code == code
        assert exc_info.value.details == {"status": status}

    def test_provider_body_not_forwarded(self, google_settings):
        def handler(request):
            return httpx.Response(400, json={"error": {"message": "secret internals"}})

        with pytest.raises(ProviderError) as exc_info:
            _run_google(google_settings, handler)

        assert "secret internals" not in json.dumps(exc_info.value.to_dict())

    def test_missing_audio_content(self, google_settings):
        def handler(request):
            return httpx.Response(200, json={})

        with pytest.raises(ProviderError) as exc_info:
            _run_google(google_settings, handler)
        assert exc_info.value.code == ErrorCode.PROVIDER_FAILED

    def test_malformed_audio_content(self, google_settings):
        def handler(request):
            return httpx.Response(200, json={"audioContent": "***not base64***"})

        with pytest.raises(ProviderError):
            _run_google(google_settings, handler)

    def test_transport_error(self, google_settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderError) as exc_info:
            _run_google(google_settings, handler)
        assert exc_info.value.code == ErrorCode.PROVIDER_FAILED

    def test_missing_api_key(self, make_settings, monkeypatch):
        monkeypatch.delenv("TTS_CACHE_GOOGLE_API_KEY", raising=False)
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"audioContent": ""})

        with pytest.raises(ProviderError) as exc_info:
            _run_google(make_settings(provider={"engine": "google"}), handler)

        assert exc_info.value.code == ErrorCode.PROVIDER_AUTH
        assert calls == []


class TestToneEngine:
    def test_produces_wav(self, settings):
        engine = ToneEngine(settings)
        result = asyncio.run(engine.synthesize("테스트 문장입니다."))

        assert result.audio_format == "wav"
        assert result.audio_bytes[:4] == b"RIFF"
        assert engine.extension == "wav"
        assert engine.mime_type == "audio/wav"

    def test_longer_text_longer_audio(self, settings):
        engine = ToneEngine(settings)
        short = asyncio.run(engine.synthesize("a" * 10))
        long = asyncio.run(engine.synthesize("a" * 200))
        assert len(long.audio_bytes) > len(short.audio_bytes)


class TestEngineFactory:
    def test_tone(self, settings):
        engine = get_engine(settings)
        assert isinstance(engine, ToneEngine)
        assert get_engine(settings) is engine

    def test_google(self, make_settings):
        engine = get_engine(make_settings(provider={"engine": "google"}))
        assert isinstance(engine, GoogleTTSEngine)
        assert engine.describe()["voice"] == "ko-KR-Neural2-A"

    def test_type_change_replaces_engine(self, make_settings):
        tone = get_engine(make_settings())
        google = get_engine(make_settings(provider={"engine": "google"}))
        assert google is not tone

    def test_unknown(self, make_settings):
        reset_engine()
        with pytest.raises(ValueError):
            get_engine(make_settings(provider={"engine": "espeak"}))
