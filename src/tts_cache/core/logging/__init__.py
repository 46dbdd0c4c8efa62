"""
Structured logging for tts-cache.

Every module logs through small helpers that take a short event name plus
keyword fields instead of preformatted strings:

    from tts_cache.core.logging import get_logger, info, verbose

    _LOG = get_logger("tts-cache.service")
    info(_LOG, "generate_start", content_id="42", chunks=3)
    verbose(_LOG, "stage", event="split", seconds=0.002)

Fields end up as ``key=value`` pairs on the console and under ``extra`` in
the JSONL file. ``seconds`` and ``event`` are promoted to top-level keys.

Levels (see levels.py): 1 MINIMAL, 2 NORMAL (default), 3 VERBOSE, 4 DEBUG.
Set via ``TTS_CACHE_LOG_LEVEL`` or ``logging.level`` in settings.yaml.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from .context import (
    get_level,
    get_level_name,
    get_log_config,
    get_request_id,
    is_configured,
    read_logging_config,
    set_configured,
    set_level,
    set_log_config,
    set_request_id,
)
from .formatters import ColoredConsoleFormatter, JsonlFormatter, supports_color
from .levels import LEVEL_MAP, LEVEL_NAMES, LogLevel, coerce_level


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Install the console handler (and JSONL file handler if ``log_dir`` is set).

    Args:
        level: Log level override (1-4, name or LogLevel).
        force: Reconfigure even if logging was already configured.
    """
    if is_configured() and not force:
        return

    log_config = read_logging_config()
    set_log_config(log_config)

    current_level = coerce_level(level if level is not None else log_config.get("level", LogLevel.NORMAL))
    set_level(current_level)

    # Handlers filter; the logger itself lets everything through
    root = logging.getLogger("tts-cache")
    root.setLevel(logging.DEBUG - 10)
    root.propagate = False
    root.handlers = []

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(LEVEL_MAP.get(current_level, logging.INFO))
    console.setFormatter(ColoredConsoleFormatter())
    root.addHandler(console)

    log_dir = log_config.get("log_dir")
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            Path(log_dir) / str(log_config.get("jsonl_file", "tts-cache.jsonl")),
            maxBytes=int(log_config.get("rotate_max_bytes", 10 * 1024 * 1024)),
            backupCount=int(log_config.get("rotate_backup_count", 5)),
            encoding="utf-8",
            delay=True,
        )
        file_handler.setLevel(logging.DEBUG - 10)
        file_handler.setFormatter(JsonlFormatter())
        root.addHandler(file_handler)

    set_configured(True)


def get_logger(name: str = "tts-cache") -> logging.Logger:
    """Return a logger under the ``tts-cache`` hierarchy, configuring on first use."""
    configure_logging()
    return logging.getLogger(name)


def _log(
    logger: logging.Logger,
    level: int,
    tag: str,
    msg: str,
    numeric_level: int = 2,
    **fields: Any,
) -> None:
    if numeric_level > get_level():
        return

    event = fields.pop("event", None)
    seconds = fields.pop("seconds", None)
    logger.log(
        level,
        msg,
        extra={
            "tag": tag,
            "request_id": get_request_id(),
            "event": event,
            "seconds": seconds,
            "extra_data": fields or None,
            "numeric_level": numeric_level,
        },
    )


def info(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.INFO, "INFO", msg, numeric_level=2, **fields)


def warn(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.WARNING, "WARN", msg, numeric_level=2, **fields)


def error(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.ERROR, "ERROR", msg, numeric_level=1, **fields)


def success(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.INFO, "SUCCESS", msg, numeric_level=2, **fields)


def fail(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.ERROR, "FAIL", msg, numeric_level=1, **fields)


def verbose(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.DEBUG, "INFO", msg, numeric_level=3, **fields)


def debug(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.DEBUG - 5, "DEBUG", msg, numeric_level=4, **fields)


__all__ = [
    "LogLevel",
    "LEVEL_MAP",
    "LEVEL_NAMES",
    "coerce_level",
    "supports_color",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "configure_logging",
    "get_logger",
    "get_request_id",
    "set_request_id",
    "get_level",
    "set_level",
    "get_level_name",
    "get_log_config",
    "info",
    "warn",
    "error",
    "success",
    "fail",
    "verbose",
    "debug",
]
