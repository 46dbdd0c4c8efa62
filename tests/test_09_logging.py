"""
Tests for structured logging.

Tests cover:
- Level coercion from ints, names and stdlib levels
- Level filtering of the helper functions
- Console line layout
- JSONL persistence with request ids and promoted fields
"""
import json
import logging
from unittest.mock import patch

import pytest

from tts_cache.core.logging import (
    ColoredConsoleFormatter,
    LogLevel,
    coerce_level,
    configure_logging,
    debug,
    error,
    get_level,
    get_logger,
    info,
    set_level,
    set_request_id,
    verbose,
)


@pytest.fixture
def restore_level():
    previous = get_level()
    yield
    set_level(previous)
    set_request_id("-")


class TestCoerceLevel:
    @pytest.mark.parametrize("value,expected", [
        (1, LogLevel.MINIMAL),
        (4, LogLevel.DEBUG),
        ("3", LogLevel.VERBOSE),
        ("verbose", LogLevel.VERBOSE),
        ("TRACE", LogLevel.DEBUG),
        ("warning", LogLevel.MINIMAL),
        (logging.INFO, LogLevel.NORMAL),
        (logging.ERROR, LogLevel.MINIMAL),
        ("nonsense", LogLevel.NORMAL),
        (True, LogLevel.NORMAL),
        (None, LogLevel.NORMAL),
    ])
    def test_coerce(self, value, expected):
        assert coerce_level(value) == expected


class TestFiltering:
    def test_minimal_keeps_errors_only(self, restore_level):
        log = get_logger("tts-cache.test")
        set_level(LogLevel.MINIMAL)
        with patch.object(log, "log") as emit:
            info(log, "lifecycle")
            verbose(log, "stage")
            error(log, "broken")

        assert [c.args[1] for c in emit.call_args_list] == ["broken"]

    def test_verbose_excludes_debug(self, restore_level):
        log = get_logger("tts-cache.test")
        set_level(LogLevel.VERBOSE)
        with patch.object(log, "log") as emit:
            info(log, "lifecycle")
            verbose(log, "stage")
            debug(log, "internals")

        assert [c.args[1] for c in emit.call_args_list] == ["lifecycle", "stage"]

    def test_fields_passed_as_extra(self, restore_level):
        log = get_logger("tts-cache.test")
        set_level(LogLevel.NORMAL)
        set_request_id("rid-1")
        with patch.object(log, "log") as emit:
            info(log, "generate_done", content_id="42", seconds=1.5, event="done")

        extra = emit.call_args.kwargs["extra"]
        assert extra["request_id"] == "rid-1"
        assert extra["seconds"] == 1.5
        assert extra["event"] == "done"
        assert extra["extra_data"] == {"content_id": "42"}


class TestConsoleFormatter:
    def test_line_layout(self):
        record = logging.LogRecord("tts-cache.test", logging.INFO, __file__, 1, "generate_done", None, None)
        record.tag = "SUCCESS"
        record.request_id = "abc123"
        record.extra_data = {"content_id": "42", "status": "completed"}
        record.seconds = 1.2

        line = ColoredConsoleFormatter(use_colors=False).format(record)

        assert "[SUCCESS]" in line
        assert "(abc123)" in line
        assert "generate_done content_id=42 status=completed 1.200s" in line
        assert "\033[" not in line


class TestJsonlPersistence:
    @pytest.fixture
    def jsonl_path(self, tmp_path, monkeypatch, restore_level):
        monkeypatch.setenv("TTS_CACHE_LOG_DIR", str(tmp_path / "logs"))
        monkeypatch.setenv("TTS_CACHE_JSONL_FILE", "test.jsonl")
        monkeypatch.setenv("TTS_CACHE_LOG_LEVEL", "3")
        configure_logging(force=True)
        yield tmp_path / "logs" / "test.jsonl"

        for handler in logging.getLogger("tts-cache").handlers:
            handler.close()
        for name in ("TTS_CACHE_LOG_DIR", "TTS_CACHE_JSONL_FILE", "TTS_CACHE_LOG_LEVEL"):
            monkeypatch.delenv(name)
        configure_logging(force=True)

    def _records(self, path):
        return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]

    def test_records_written(self, jsonl_path):
        log = get_logger("tts-cache.test")
        set_request_id("req-9")
        info(log, "generate_start", content_id="42", chars=120)
        verbose(log, "stage", event="split", seconds=0.004)
        debug(log, "not at this level")

        records = self._records(jsonl_path)

        assert [r["message"] for r in records] == ["generate_start", "stage"]
        first, second = records
        assert first["level"] == 2
        assert first["tag"] == "INFO"
        assert first["request_id"] == "req-9"
        assert first["extra"] == {"content_id": "42", "chars": 120}
        assert second["level"] == 3
        assert second["event"] == "split"
        assert second["seconds"] == 0.004
        assert "extra" not in second

    def test_non_ascii_kept(self, jsonl_path):
        info(get_logger("tts-cache.test"), "preview", text_preview="안녕하세요")
        assert "안녕하세요" in jsonl_path.read_text(encoding="utf-8")
