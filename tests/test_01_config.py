"""
Tests for configuration validation and defaults.

Tests cover:
- TTSServiceConfig.from_settings() - all sections
- Defaults class values
- ConfigValidationError on invalid values
- String log level coercion ("DEBUG" -> 4)
- Environment overrides and settings file loading
"""

import pytest

from tts_cache.core.config import (
    ConfigValidationError,
    Defaults,
    Settings,
    TTSServiceConfig,
    apply_env_overrides,
    default_settings,
    load_settings,
)


class TestDefaults:
    """Tests for Defaults class values."""

    def test_provider_defaults(self):
        """Defaults should describe the fixed Korean voice."""
        assert Defaults.PROVIDER_ENGINE == "google"
        assert Defaults.PROVIDER_VOICE_NAME == "ko-KR-Neural2-A"
        assert Defaults.PROVIDER_LANGUAGE_CODE == "ko-KR"
        assert Defaults.PROVIDER_SSML_GENDER == "FEMALE"
        assert Defaults.PROVIDER_AUDIO_ENCODING == "MP3"

    def test_chunking_defaults(self):
        """Split budget stays below the provider ceiling."""
        assert Defaults.CHUNKING_MAX_BYTES == 4500
        assert Defaults.CHUNKING_SINGLE_MAX_BYTES == 5000

    def test_storage_defaults(self):
        assert Defaults.STORAGE_URL_PREFIX == "/tts"
        assert Defaults.STORAGE_RETENTION == "latest"

    def test_audio_defaults(self):
        assert Defaults.AUDIO_CHARS_PER_SECOND == 10
        assert Defaults.AUDIO_MEASURE_DURATION is False


class TestFromSettings:
    """Tests for TTSServiceConfig.from_settings()."""

    def test_empty_settings_use_defaults(self):
        """Missing sections fall back to Defaults."""
        config = TTSServiceConfig.from_settings(Settings(raw={}))
        assert config.provider.engine == "google"
        assert config.chunking.max_bytes == 4500
        assert config.concurrency.max_concurrent == 4
        assert config.storage.metadata_dir == Defaults.STORAGE_METADATA_DIR
        assert config.generation.categories == ["essay"]
        assert config.logging.level == 2

    def test_values_are_read(self):
        config = TTSServiceConfig.from_settings(Settings(raw={
            "provider": {"engine": " Tone ", "audio_encoding": "linear16", "speaking_rate": 1.25},
            "chunking": {"max_bytes": 3000},
            "storage": {"url_prefix": "audio/", "retention": "ALL"},
            "generation": {"categories": "Column"},
        }))
        assert config.provider.engine == "tone"
        assert config.provider.audio_encoding == "LINEAR16"
        assert config.provider.speaking_rate == 1.25
        assert config.chunking.max_bytes == 3000
        assert config.storage.url_prefix == "/audio"
        assert config.storage.retention == "all"
        assert config.generation.categories == ["column"]

    def test_string_log_level(self):
        """String log levels are coerced."""
        config = TTSServiceConfig.from_settings(Settings(raw={"logging": {"level": "DEBUG"}}))
        assert config.logging.level == 4

    def test_settings_get_service_config(self):
        settings = Settings(raw={"chunking": {"max_bytes": 100}})
        assert settings.get_service_config().chunking.max_bytes == 100


class TestValidation:
    """Invalid values raise ConfigValidationError."""

    @pytest.mark.parametrize("raw", [
        {"chunking": {"max_bytes": 0}},
        {"chunking": {"max_bytes": 6000}},
        {"provider": {"audio_encoding": "FLAC"}},
        {"provider": {"speaking_rate": 5.0}},
        {"provider": {"pitch": -21}},
        {"concurrency": {"max_concurrent": 0}},
        {"concurrency": {"max_queue": -1}},
        {"storage": {"retention": "forever"}},
        {"storage": {"url_prefix": "/"}},
        {"cache": {"ttl_seconds": 0}},
        {"audio": {"chars_per_second": 0}},
        {"logging": {"level": 7}},
    ])
    def test_invalid_values_rejected(self, raw):
        with pytest.raises(ConfigValidationError):
            TTSServiceConfig.from_settings(Settings(raw=raw))

    def test_max_bytes_may_equal_ceiling(self):
        config = TTSServiceConfig.from_settings(Settings(raw={"chunking": {"max_bytes": 5000}}))
        assert config.chunking.max_bytes == 5000


class TestSettingsProperties:
    def test_engine_type(self):
        assert Settings(raw={"provider": {"engine": "tone"}}).engine_type == "tone"
        assert Settings(raw={}).engine_type == "google"

    def test_storage_dir(self):
        assert Settings(raw={"storage": {"base_dir": "/data/tts"}}).storage_dir == "/data/tts"


class TestLoading:
    """YAML loading and environment overrides."""

    def test_load_settings_reads_yaml(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TTS_CACHE_ENGINE", raising=False)
        path = tmp_path / "settings.yaml"
        path.write_text("provider:\n  engine: tone\nchunking:\n  max_bytes: 1200\n", encoding="utf-8")

        settings = load_settings(str(path))
        assert settings.engine_type == "tone"
        assert settings.get_service_config().chunking.max_bytes == 1200

    def test_load_settings_empty_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("", encoding="utf-8")
        assert isinstance(load_settings(str(path)).raw, dict)

    def test_load_settings_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "nope.yaml"))

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("TTS_CACHE_ENGINE", "TONE")
        monkeypatch.setenv("TTS_CACHE_GOOGLE_API_KEY", "secret")
        monkeypatch.setenv("TTS_CACHE_STORAGE_DIR", "/srv/tts")

        raw = apply_env_overrides({"provider": {"engine": "google"}})
        assert raw["provider"]["engine"] == "tone"
        assert raw["provider"]["api_key"] == "secret"
        assert raw["storage"]["base_dir"] == "/srv/tts"

    def test_default_settings_apply_env(self, monkeypatch):
        monkeypatch.setenv("TTS_CACHE_ENGINE", "tone")
        assert default_settings().engine_type == "tone"
