"""Tests for the numeric logging level system."""
from __future__ import annotations

import io
import json
import logging
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    from ssml_studio.core.logging import configure_logging

    configure_logging(level=2, force=True)


class TestLogLevelEnum:
    """Test LogLevel enum values."""

    def test_level_enum_values(self):
        """Verify LogLevel enum has correct numeric values."""
        from ssml_studio.core.logging import LogLevel

        assert LogLevel.MINIMAL == 1
        assert LogLevel.NORMAL == 2
        assert LogLevel.VERBOSE == 3
        assert LogLevel.DEBUG == 4

    def test_level_enum_ordering(self):
        """Verify LogLevel enum supports comparison."""
        from ssml_studio.core.logging import LogLevel

        assert LogLevel.MINIMAL < LogLevel.NORMAL < LogLevel.VERBOSE < LogLevel.DEBUG


class TestLevelCoercion:
    """Test level coercion from various input types."""

    def test_level_from_int(self):
        from ssml_studio.core.logging import LogLevel, coerce_level

        assert coerce_level(1) == LogLevel.MINIMAL
        assert coerce_level(4) == LogLevel.DEBUG

    def test_level_from_string_names(self):
        from ssml_studio.core.logging import LogLevel, coerce_level

        assert coerce_level("minimal") == LogLevel.MINIMAL
        assert coerce_level("VERBOSE") == LogLevel.VERBOSE
        assert coerce_level(" debug ") == LogLevel.DEBUG
        assert coerce_level("3") == LogLevel.VERBOSE

    def test_level_from_python_levels(self):
        """Stdlib names and numbers map onto the 1-4 scale."""
        from ssml_studio.core.logging import LogLevel, coerce_level

        assert coerce_level("INFO") == LogLevel.NORMAL
        assert coerce_level("WARNING") == LogLevel.MINIMAL
        assert coerce_level(logging.ERROR) == LogLevel.MINIMAL
        assert coerce_level(logging.INFO) == LogLevel.NORMAL
        assert coerce_level(logging.DEBUG) == LogLevel.DEBUG

    def test_invalid_level_defaults_to_normal(self):
        from ssml_studio.core.logging import LogLevel, coerce_level

        assert coerce_level("invalid") == LogLevel.NORMAL
        assert coerce_level(None) == LogLevel.NORMAL
        assert coerce_level(True) == LogLevel.NORMAL


class TestLevelFiltering:
    """Test that log messages are filtered by level."""

    def test_level_filtering_minimal(self):
        """Messages above MINIMAL level are suppressed."""
        from ssml_studio.core.logging import configure_logging, debug, fail, get_logger, info

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=1, force=True)
            log = get_logger("test_minimal")

            info(log, "info message")
            fail(log, "fail message")
            debug(log, "debug message")

        output = captured.getvalue()
        assert "fail message" in output
        assert "info message" not in output
        assert "debug message" not in output

    def test_level_filtering_verbose(self):
        """VERBOSE level shows verbose but not debug messages."""
        from ssml_studio.core.logging import configure_logging, debug, get_logger, info, verbose

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=3, force=True)
            log = get_logger("test_verbose")

            info(log, "info message")
            verbose(log, "verbose message")
            debug(log, "debug message")

        output = captured.getvalue()
        assert "info message" in output
        assert "verbose message" in output
        assert "debug message" not in output

    def test_level_filtering_debug(self):
        """DEBUG level shows all messages."""
        from ssml_studio.core.logging import configure_logging, debug, get_logger, success, verbose

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=4, force=True)
            log = get_logger("test_debug")

            success(log, "success message")
            verbose(log, "verbose message")
            debug(log, "debug message")

        output = captured.getvalue()
        assert "success message" in output
        assert "verbose message" in output
        assert "debug message" in output


class TestCorrelationIds:
    """Test that request and session ids are included in logs."""

    def test_ids_in_console_output(self):
        from ssml_studio.core.logging import configure_logging, get_logger, info, set_request_id, set_session_id

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=2, force=True)
            set_request_id("rid-123")
            set_session_id("sess-9")
            log = get_logger("test_rid")
            info(log, "message with ids")
            set_request_id("-")
            set_session_id("-")

        assert "(rid-123|sess-9)" in captured.getvalue()

    def test_fields_rendered(self):
        from ssml_studio.core.logging import configure_logging, get_logger, info

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=2, force=True)
            info(get_logger("test_fields"), "synth_done", voice="en-US-JennyNeural", seconds=0.25)

        output = captured.getvalue()
        assert "voice=en-US-JennyNeural" in output
        assert "0.250s" in output


class TestEnvOverride:
    """Test environment variable overrides."""

    def test_env_override_log_level(self):
        """SSML_STUDIO_LOG_LEVEL overrides config."""
        from ssml_studio.core.logging import LogLevel, configure_logging, get_level

        with patch.dict(os.environ, {"SSML_STUDIO_LOG_LEVEL": "3"}):
            configure_logging(force=True)
            assert get_level() == LogLevel.VERBOSE

    def test_settings_file_level(self, tmp_path):
        """The logging section of the settings file is read."""
        from ssml_studio.core.logging import LogLevel, configure_logging, get_level

        path = tmp_path / "settings.yaml"
        path.write_text("logging:\n  level: 1\n", encoding="utf-8")
        env = {"SSML_STUDIO_SETTINGS": str(path)}
        with patch.dict(os.environ, env):
            os.environ.pop("SSML_STUDIO_LOG_LEVEL", None)
            configure_logging(force=True)
            assert get_level() == LogLevel.MINIMAL


class TestJsonlOutput:
    """Test JSONL file output."""

    def test_jsonl_output_format(self):
        """JSONL file contains one JSON object per record."""
        from ssml_studio.core.logging import configure_logging, get_logger, info, set_request_id, set_session_id

        with tempfile.TemporaryDirectory() as tmpdir:
            jsonl_path = Path(tmpdir) / "test.jsonl"

            with patch.dict(os.environ, {
                "SSML_STUDIO_LOG_DIR": tmpdir,
                "SSML_STUDIO_JSONL_FILE": "test.jsonl",
            }):
                configure_logging(level=2, force=True)
                set_request_id("rid-1")
                set_session_id("sid-1")
                info(get_logger("test_jsonl"), "test message", event="jsonl_test", voice="zh-CN-XiaoxiaoNeural", text="你好")
                set_request_id("-")
                set_session_id("-")

                root = logging.getLogger()
                for handler in root.handlers:
                    handler.flush()
                    handler.close()
                root.handlers = []

            lines = [line for line in jsonl_path.read_text(encoding="utf-8").splitlines() if line]
            records = [json.loads(line) for line in lines]
            record = next(r for r in records if r["message"] == "test message")
            assert record["level"] == 2
            assert record["tag"] == "INFO"
            assert record["request_id"] == "rid-1"
            assert record["session_id"] == "sid-1"
            assert record["event"] == "jsonl_test"
            assert record["extra"] == {"voice": "zh-CN-XiaoxiaoNeural", "text": "你好"}
            assert "你好" in jsonl_path.read_text(encoding="utf-8")


class TestGetLevelName:
    """Test get_level_name function."""

    def test_get_level_name(self):
        from ssml_studio.core.logging import configure_logging, get_level_name

        for level, name in [(1, "MINIMAL"), (2, "NORMAL"), (3, "VERBOSE"), (4, "DEBUG")]:
            configure_logging(level=level, force=True)
            assert get_level_name() == name
