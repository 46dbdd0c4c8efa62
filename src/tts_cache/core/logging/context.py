"""
Logging context and process-wide logging state.

The request id lives in a ContextVar so it follows a request across
``await`` points and into the per-chunk tasks spawned by a generation
(asyncio copies the current context into every new task).

Environment Variables:
    - TTS_CACHE_SETTINGS: settings file to read the ``logging:`` section from
    - TTS_CACHE_LOG_LEVEL: override log level (1-4 or name)
    - TTS_CACHE_LOG_DIR: directory for the JSONL log file
    - TTS_CACHE_JSONL_FILE: JSONL log filename
    - TTS_CACHE_LOG_ROTATE_BYTES: max JSONL size before rotation
    - TTS_CACHE_LOG_ROTATE_BACKUP: number of rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Request id of the current context, ``"-"`` outside a request."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind a request id to the current context."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging options from settings.yaml and the environment.

    Environment variables win over the settings file. A missing or
    unreadable settings file simply contributes nothing.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("TTS_CACHE_SETTINGS", "config/settings.yaml")
    if os.path.exists(settings_path):
        from tts_cache.core.config import load_settings
        cfg.update(load_settings(settings_path).raw.get("logging", {}) or {})

    if os.getenv("TTS_CACHE_LOG_LEVEL"):
        cfg["level"] = os.environ["TTS_CACHE_LOG_LEVEL"]
    if os.getenv("TTS_CACHE_LOG_DIR"):
        cfg["log_dir"] = os.environ["TTS_CACHE_LOG_DIR"]
    if os.getenv("TTS_CACHE_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["TTS_CACHE_JSONL_FILE"]

    rotate_bytes = _env_int("TTS_CACHE_LOG_ROTATE_BYTES")
    if rotate_bytes is not None:
        cfg["rotate_max_bytes"] = rotate_bytes
    rotate_backup = _env_int("TTS_CACHE_LOG_ROTATE_BACKUP")
    if rotate_backup is not None:
        cfg["rotate_backup_count"] = rotate_backup

    return cfg
