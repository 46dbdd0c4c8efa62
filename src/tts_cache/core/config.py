"""
Configuration Management for tts-cache.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (TTS_CACHE_ENGINE, TTS_CACHE_STORAGE_DIR, ...)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    provider:
      engine: google
      voice_name: ko-KR-Neural2-A
      language_code: ko-KR

    chunking:
      max_bytes: 4500

    storage:
      base_dir: ./public/tts
      url_prefix: /tts

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List
import os
import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is thrown when a configuration value is outside
    acceptable bounds or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Provider: Synthesis provider and fixed voice
        - Chunking: Per-request byte ceilings
        - Concurrency: Provider fan-out limits
        - Storage: Artifact and metadata directories
        - Cache: In-memory record cache
        - Audio: Duration reporting
        - Generation: Eligibility rules for background generation
        - Logging: Log level and formatting
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Provider
    # ─────────────────────────────────────────────────────────────────────────
    PROVIDER_ENGINE = "google"
    PROVIDER_ENDPOINT = "https://texttospeech.googleapis.com/v1/text:synthesize"
    PROVIDER_VOICE_NAME = "ko-KR-Neural2-A"
    PROVIDER_LANGUAGE_CODE = "ko-KR"
    PROVIDER_SSML_GENDER = "FEMALE"
    PROVIDER_AUDIO_ENCODING = "MP3"
    PROVIDER_SPEAKING_RATE = 1.0
    PROVIDER_PITCH = 0.0
    PROVIDER_VOLUME_GAIN_DB = 0.0
    PROVIDER_TIMEOUT_S = 30.0

    # ─────────────────────────────────────────────────────────────────────────
    # Chunking (UTF-8 byte budgets)
    # ─────────────────────────────────────────────────────────────────────────
    CHUNKING_MAX_BYTES = 4500           # Long-form split budget
    CHUNKING_SINGLE_MAX_BYTES = 5000    # Hard provider ceiling for one request

    # ─────────────────────────────────────────────────────────────────────────
    # Concurrency Control
    # ─────────────────────────────────────────────────────────────────────────
    CONCURRENCY_ENABLED = True
    CONCURRENCY_MAX_CONCURRENT = 4      # Simultaneous provider calls
    CONCURRENCY_MAX_QUEUE = 256         # Chunks allowed to wait for a slot
    CONCURRENCY_TIMEOUT_S = 60.0        # Timeout for acquiring a slot

    # ─────────────────────────────────────────────────────────────────────────
    # Storage
    # ─────────────────────────────────────────────────────────────────────────
    STORAGE_BASE_DIR = "./public/tts"   # Artifact files (served statically)
    STORAGE_METADATA_DIR = "./storage/records"
    STORAGE_URL_PREFIX = "/tts"
    STORAGE_RETENTION = "latest"        # latest | all

    # ─────────────────────────────────────────────────────────────────────────
    # Record cache
    # ─────────────────────────────────────────────────────────────────────────
    CACHE_MAX_ITEMS = 1024
    CACHE_TTL_SECONDS = 300

    # ─────────────────────────────────────────────────────────────────────────
    # Audio
    # ─────────────────────────────────────────────────────────────────────────
    AUDIO_CHARS_PER_SECOND = 10         # Duration estimate divisor
    AUDIO_MEASURE_DURATION = False

    # ─────────────────────────────────────────────────────────────────────────
    # Generation eligibility
    # ─────────────────────────────────────────────────────────────────────────
    GENERATION_MIN_CHARS = 50
    GENERATION_CATEGORIES = ("essay",)

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


_AUDIO_ENCODINGS = ("MP3", "LINEAR16", "OGG_OPUS", "MULAW", "ALAW")
_RETENTION_POLICIES = ("latest", "all")


@dataclass
class ProviderConfig:
    """
    Synthesis provider configuration.

    Voice and format are fixed per deployment; every chunk of every
    content item is synthesized with the same values.
    """
    engine: str = Defaults.PROVIDER_ENGINE
    api_key: str = ""
    endpoint: str = Defaults.PROVIDER_ENDPOINT
    voice_name: str = Defaults.PROVIDER_VOICE_NAME
    language_code: str = Defaults.PROVIDER_LANGUAGE_CODE
    ssml_gender: str = Defaults.PROVIDER_SSML_GENDER
    audio_encoding: str = Defaults.PROVIDER_AUDIO_ENCODING
    speaking_rate: float = Defaults.PROVIDER_SPEAKING_RATE
    pitch: float = Defaults.PROVIDER_PITCH
    volume_gain_db: float = Defaults.PROVIDER_VOLUME_GAIN_DB
    timeout_s: float = Defaults.PROVIDER_TIMEOUT_S


@dataclass
class ChunkingConfig:
    """Byte budgets measured on the UTF-8 encoding of normalized text."""
    max_bytes: int = Defaults.CHUNKING_MAX_BYTES
    single_max_bytes: int = Defaults.CHUNKING_SINGLE_MAX_BYTES


@dataclass
class ConcurrencyConfig:
    """
    Concurrency control configuration.

    Bounds how many provider calls a generation (or all generations
    together) keep in flight.
    """
    enabled: bool = Defaults.CONCURRENCY_ENABLED
    max_concurrent: int = Defaults.CONCURRENCY_MAX_CONCURRENT
    max_queue: int = Defaults.CONCURRENCY_MAX_QUEUE
    timeout_s: float = Defaults.CONCURRENCY_TIMEOUT_S


@dataclass
class StorageConfig:
    """
    Artifact and metadata storage.

    ``base_dir`` holds the audio files and is mounted under ``url_prefix``;
    ``metadata_dir`` holds one JSON record per content id.
    """
    base_dir: str = Defaults.STORAGE_BASE_DIR
    metadata_dir: str = Defaults.STORAGE_METADATA_DIR
    url_prefix: str = Defaults.STORAGE_URL_PREFIX
    retention: str = Defaults.STORAGE_RETENTION


@dataclass
class CacheConfig:
    """In-memory cache of metadata records."""
    max_items: int = Defaults.CACHE_MAX_ITEMS
    ttl_seconds: int = Defaults.CACHE_TTL_SECONDS


@dataclass
class AudioConfig:
    chars_per_second: int = Defaults.AUDIO_CHARS_PER_SECOND
    measure_duration: bool = Defaults.AUDIO_MEASURE_DURATION


@dataclass
class GenerationConfig:
    """Which content is eligible for background generation."""
    min_chars: int = Defaults.GENERATION_MIN_CHARS
    categories: List[str] = field(default_factory=lambda: list(Defaults.GENERATION_CATEGORIES))


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, failed generations
        2 = NORMAL: Generation lifecycle, cache status (default)
        3 = VERBOSE: Per-stage timing, per-chunk provider calls
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class TTSServiceConfig:
    """
    Validated configuration for TTSService.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = TTSServiceConfig.from_settings(settings)
        print(config.chunking.max_bytes)
    """
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "TTSServiceConfig":
        """
        Create TTSServiceConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated TTSServiceConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Provider configuration
        # ─────────────────────────────────────────────────────────────────────
        provider_raw = raw.get("provider", {}) or {}
        provider = ProviderConfig(
            engine=str(provider_raw.get("engine", Defaults.PROVIDER_ENGINE)).strip().lower(),
            api_key=str(provider_raw.get("api_key", "") or ""),
            endpoint=str(provider_raw.get("endpoint", Defaults.PROVIDER_ENDPOINT)),
            voice_name=str(provider_raw.get("voice_name", Defaults.PROVIDER_VOICE_NAME)),
            language_code=str(provider_raw.get("language_code", Defaults.PROVIDER_LANGUAGE_CODE)),
            ssml_gender=str(provider_raw.get("ssml_gender", Defaults.PROVIDER_SSML_GENDER)).upper(),
            audio_encoding=str(provider_raw.get("audio_encoding", Defaults.PROVIDER_AUDIO_ENCODING)).upper(),
            speaking_rate=float(provider_raw.get("speaking_rate", Defaults.PROVIDER_SPEAKING_RATE)),
            pitch=float(provider_raw.get("pitch", Defaults.PROVIDER_PITCH)),
            volume_gain_db=float(provider_raw.get("volume_gain_db", Defaults.PROVIDER_VOLUME_GAIN_DB)),
            timeout_s=float(provider_raw.get("timeout_s", Defaults.PROVIDER_TIMEOUT_S)),
        )
        cls._validate_choice("provider.audio_encoding", provider.audio_encoding, _AUDIO_ENCODINGS)
        cls._validate_range("provider.speaking_rate", provider.speaking_rate, 0.25, 4.0)
        cls._validate_range("provider.pitch", provider.pitch, -20.0, 20.0)
        cls._validate_positive("provider.timeout_s", provider.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Chunking configuration
        # ─────────────────────────────────────────────────────────────────────
        chunking_raw = raw.get("chunking", {}) or {}
        chunking = ChunkingConfig(
            max_bytes=int(chunking_raw.get("max_bytes", Defaults.CHUNKING_MAX_BYTES)),
            single_max_bytes=int(chunking_raw.get("single_max_bytes", Defaults.CHUNKING_SINGLE_MAX_BYTES)),
        )
        cls._validate_positive("chunking.max_bytes", chunking.max_bytes)
        cls._validate_positive("chunking.single_max_bytes", chunking.single_max_bytes)
        if chunking.max_bytes > chunking.single_max_bytes:
            raise ConfigValidationError(
                f"chunking.max_bytes ({chunking.max_bytes}) must not exceed "
                f"chunking.single_max_bytes ({chunking.single_max_bytes})"
            )

        # ─────────────────────────────────────────────────────────────────────
        # Concurrency configuration
        # ─────────────────────────────────────────────────────────────────────
        concurrency_raw = raw.get("concurrency", {}) or {}
        concurrency = ConcurrencyConfig(
            enabled=bool(concurrency_raw.get("enabled", Defaults.CONCURRENCY_ENABLED)),
            max_concurrent=int(concurrency_raw.get("max_concurrent", Defaults.CONCURRENCY_MAX_CONCURRENT)),
            max_queue=int(concurrency_raw.get("max_queue", Defaults.CONCURRENCY_MAX_QUEUE)),
            timeout_s=float(concurrency_raw.get("timeout_s", Defaults.CONCURRENCY_TIMEOUT_S)),
        )
        cls._validate_positive("concurrency.max_concurrent", concurrency.max_concurrent)
        cls._validate_non_negative("concurrency.max_queue", concurrency.max_queue)
        cls._validate_positive("concurrency.timeout_s", concurrency.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Storage configuration
        # ─────────────────────────────────────────────────────────────────────
        storage_raw = raw.get("storage", {}) or {}
        storage = StorageConfig(
            base_dir=str(storage_raw.get("base_dir", Defaults.STORAGE_BASE_DIR)),
            metadata_dir=str(storage_raw.get("metadata_dir", Defaults.STORAGE_METADATA_DIR)),
            url_prefix="/" + str(storage_raw.get("url_prefix", Defaults.STORAGE_URL_PREFIX)).strip("/"),
            retention=str(storage_raw.get("retention", Defaults.STORAGE_RETENTION)).lower(),
        )
        cls._validate_choice("storage.retention", storage.retention, _RETENTION_POLICIES)
        if storage.url_prefix == "/":
            raise ConfigValidationError("storage.url_prefix must not be the root path")

        # ─────────────────────────────────────────────────────────────────────
        # Cache configuration
        # ─────────────────────────────────────────────────────────────────────
        cache_raw = raw.get("cache", {}) or {}
        cache = CacheConfig(
            max_items=int(cache_raw.get("max_items", Defaults.CACHE_MAX_ITEMS)),
            ttl_seconds=int(cache_raw.get("ttl_seconds", Defaults.CACHE_TTL_SECONDS)),
        )
        cls._validate_positive("cache.max_items", cache.max_items)
        cls._validate_positive("cache.ttl_seconds", cache.ttl_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Audio configuration
        # ─────────────────────────────────────────────────────────────────────
        audio_raw = raw.get("audio", {}) or {}
        audio = AudioConfig(
            chars_per_second=int(audio_raw.get("chars_per_second", Defaults.AUDIO_CHARS_PER_SECOND)),
            measure_duration=bool(audio_raw.get("measure_duration", Defaults.AUDIO_MEASURE_DURATION)),
        )
        cls._validate_positive("audio.chars_per_second", audio.chars_per_second)

        # ─────────────────────────────────────────────────────────────────────
        # Generation configuration
        # ─────────────────────────────────────────────────────────────────────
        generation_raw = raw.get("generation", {}) or {}
        categories = generation_raw.get("categories", list(Defaults.GENERATION_CATEGORIES))
        if isinstance(categories, str):
            categories = [categories]
        generation = GenerationConfig(
            min_chars=int(generation_raw.get("min_chars", Defaults.GENERATION_MIN_CHARS)),
            categories=[str(c).strip().lower() for c in categories],
        )
        cls._validate_non_negative("generation.min_chars", generation.min_chars)

        # ─────────────────────────────────────────────────────────────────────
        # Logging configuration
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            provider=provider,
            chunking=chunking,
            concurrency=concurrency,
            storage=storage,
            cache=cache,
            audio=audio,
            generation=generation,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")

    @staticmethod
    def _validate_choice(name: str, value: str, choices: tuple) -> None:
        if value not in choices:
            raise ConfigValidationError(f"{name} must be one of {', '.join(choices)}, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get validated TTSServiceConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def engine_type(self) -> str:
        """Get the synthesis engine type (google, tone)."""
        return str(self.raw.get("provider", {}).get("engine", Defaults.PROVIDER_ENGINE))

    @property
    def storage_dir(self) -> str:
        return str(self.raw.get("storage", {}).get("base_dir", Defaults.STORAGE_BASE_DIR))

    def get_service_config(self) -> TTSServiceConfig:
        """
        Get validated TTSServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return TTSServiceConfig.from_settings(self)


def apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to a raw settings dict (in place).

    Environment variable overrides:
        - TTS_CACHE_ENGINE: provider.engine
        - TTS_CACHE_GOOGLE_API_KEY: provider.api_key
        - TTS_CACHE_STORAGE_DIR: storage.base_dir
    """
    engine = os.getenv("TTS_CACHE_ENGINE")
    if engine:
        raw.setdefault("provider", {})["engine"] = engine.strip().lower()

    api_key = os.getenv("TTS_CACHE_GOOGLE_API_KEY")
    if api_key:
        raw.setdefault("provider", {})["api_key"] = api_key

    storage_dir = os.getenv("TTS_CACHE_STORAGE_DIR")
    if storage_dir:
        raw.setdefault("storage", {})["base_dir"] = storage_dir

    return raw


def load_settings(path: str = "config/settings.yaml") -> Settings:
    """
    Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration and env overrides applied.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    return Settings(raw=apply_env_overrides(raw))


def default_settings() -> Settings:
    """Settings made of defaults plus environment overrides (no file)."""
    return Settings(raw=apply_env_overrides({}))
