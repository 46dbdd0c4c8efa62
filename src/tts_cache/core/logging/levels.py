"""
Numeric log levels.

tts-cache exposes four verbosity steps instead of Python's five named
levels, which maps naturally to ``-v``/``-vv`` style flags and to a single
integer in settings.yaml:

    1 = MINIMAL  - startup, shutdown, failed generations
    2 = NORMAL   - generation lifecycle, cache hits/misses (default)
    3 = VERBOSE  - per-stage timings, per-chunk provider calls
    4 = DEBUG    - internal state (keys, record contents)
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """Verbosity steps 1-4."""
    MINIMAL = 1
    NORMAL = 2
    VERBOSE = 3
    DEBUG = 4


# Numeric level -> stdlib level used by the handlers
LEVEL_MAP = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
    LogLevel.DEBUG: logging.DEBUG - 5,
}

LEVEL_NAMES = {
    1: "MINIMAL",
    2: "NORMAL",
    3: "VERBOSE",
    4: "DEBUG",
}

_NAME_TO_LEVEL = {
    "MINIMAL": LogLevel.MINIMAL,
    "NORMAL": LogLevel.NORMAL,
    "VERBOSE": LogLevel.VERBOSE,
    "DEBUG": LogLevel.DEBUG,
    "TRACE": LogLevel.DEBUG,
    # stdlib names
    "CRITICAL": LogLevel.MINIMAL,
    "ERROR": LogLevel.MINIMAL,
    "WARNING": LogLevel.MINIMAL,
    "WARN": LogLevel.MINIMAL,
    "INFO": LogLevel.NORMAL,
}


def coerce_level(value: Any) -> LogLevel:
    """
    Convert an int, level name or numeric string to a LogLevel.

    Integers 1-4 are taken as-is; larger integers are read as stdlib
    levels (``logging.WARNING`` -> MINIMAL, ``logging.INFO`` -> NORMAL).
    Anything unparseable falls back to NORMAL.

    Examples:
        >>> coerce_level("verbose")
        <LogLevel.VERBOSE: 3>
        >>> coerce_level(logging.INFO)
        <LogLevel.NORMAL: 2>
    """
    if isinstance(value, LogLevel):
        return value

    if isinstance(value, bool):
        return LogLevel.NORMAL

    if isinstance(value, int):
        if 1 <= value <= 4:
            return LogLevel(value)
        if value >= logging.WARNING:
            return LogLevel.MINIMAL
        if value >= logging.INFO:
            return LogLevel.NORMAL
        return LogLevel.DEBUG

    if isinstance(value, str):
        text = value.strip().upper()
        if text.isdigit():
            return coerce_level(int(text))
        return _NAME_TO_LEVEL.get(text, LogLevel.NORMAL)

    return LogLevel.NORMAL
