"""
Console and JSONL formatters.

Console (colored when stdout is a TTY):
    14:30:05 [ INFO  ] (abc123) generate_done content_id=42 chunks=3 1.204s

JSONL (one object per line, for jq / log shipping):
    {"ts":"2024-01-15T14:30:05+00:00","level":2,"tag":"INFO",
     "message":"generate_done","request_id":"abc123","extra":{...}}

Colors are disabled by ``NO_COLOR`` / ``TTS_CACHE_NO_COLOR=1`` or when
stdout is not a terminal.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict


class Colors:
    """ANSI escape codes."""
    RESET = "\033[0m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    GRAY = "\033[90m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


_TAG_COLORS = {
    "SUCCESS": Colors.BRIGHT_GREEN,
    "FAIL": Colors.BRIGHT_RED,
    "ERROR": Colors.BRIGHT_RED,
    "WARN": Colors.BRIGHT_YELLOW,
    "INFO": Colors.BRIGHT_CYAN,
    "DEBUG": Colors.GRAY,
    "TRACE": Colors.DIM,
}

# Status values get the same treatment as tags so that state changes stand out
_STATUS_COLORS = {
    "completed": Colors.GREEN,
    "generating": Colors.BLUE,
    "pending": Colors.YELLOW,
    "failed": Colors.RED,
}


def supports_color() -> bool:
    """True when ANSI colors should be emitted on stdout."""
    if os.getenv("TTS_CACHE_NO_COLOR", "0") == "1" or os.getenv("NO_COLOR"):
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    if isatty is None or not isatty():
        return False
    return sys.platform != "win32" or "WT_SESSION" in os.environ


def get_tag_color(tag: str) -> str:
    return _TAG_COLORS.get(tag.upper(), Colors.WHITE)


class JsonlFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Human-readable single-line formatter.

    ``HH:MM:SS [ TAG ] (rid) message key=value ... 0.123s``
    """

    def __init__(self, use_colors: bool | None = None):
        super().__init__()
        self.use_colors = supports_color() if use_colors is None else use_colors

    def _paint(self, text: str, color: str) -> str:
        if not self.use_colors:
            return text
        return f"{color}{text}{Colors.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            self._paint(ts, Colors.DIM),
            self._paint(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(self._paint(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(self._paint(f"event={event}", Colors.BLUE))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                color = _STATUS_COLORS.get(str(v), Colors.DIM) if k == "status" else Colors.DIM
                parts.append(self._paint(f"{k}={v}", color))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.1:
                time_color = Colors.GREEN
            elif seconds < 1.0:
                time_color = Colors.YELLOW
            else:
                time_color = Colors.RED
            parts.append(self._paint(f"{seconds:.3f}s", time_color))

        return " ".join(parts)
