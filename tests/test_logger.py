"""Tests for the structured logger."""

from __future__ import annotations

import io

import orjson
import pytest

from nexabind.utils import logger as log_module
from nexabind.utils.logger import (
    JsonFormatter,
    LogLevel,
    LogRecord,
    StreamHandler,
    TextFormatter,
    configure_logging,
    get_logger,
)


class TestLevels:
    @pytest.mark.parametrize("value, expected", [
        ("debug", LogLevel.DEBUG),
        (" Warning ", LogLevel.WARNING),
        (40, LogLevel.ERROR),
    ])
    def test_parse(self, value, expected):
        assert LogLevel.parse(value) is expected

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            LogLevel.parse("verbose")


class TestFormatters:
    def test_text_format(self):
        record = LogRecord(LogLevel.INFO, "Compiled unit", context={"unit": "index"},
                           logger_name="nexabind.compiler")
        line = TextFormatter(colors=False).format(record)
        assert line.endswith("[INFO] nexabind.compiler: Compiled unit unit=index")

    def test_json_format(self):
        record = LogRecord(LogLevel.ERROR, "failed", exception=ValueError("bad"))
        data = orjson.loads(JsonFormatter().format(record))
        assert data["level"] == "ERROR"
        assert data["exception"] == {"type": "ValueError", "message": "bad"}


class TestLogger:
    def test_level_filtering(self):
        stream = io.StringIO()
        logger = log_module.Logger("test", LogLevel.WARNING, [StreamHandler(stream, TextFormatter(colors=False))])
        logger.info("hidden")
        logger.warning("shown", code=7)
        assert "hidden" not in stream.getvalue()
        assert "shown code=7" in stream.getvalue()

    def test_with_context(self):
        stream = io.StringIO()
        logger = log_module.Logger("test", handlers=[StreamHandler(stream, JsonFormatter())])
        logger.with_context(unit="index").info("done", nodes=3)
        data = orjson.loads(stream.getvalue())
        assert data["context"] == {"unit": "index", "nodes": 3}

    def test_failing_handler_is_ignored(self):
        class Broken(StreamHandler):
            def emit(self, record):
                raise OSError("disk full")

        stream = io.StringIO()
        logger = log_module.Logger(
            "test", handlers=[Broken(), StreamHandler(stream, TextFormatter(colors=False))]
        )
        logger.info("still logged")
        assert "still logged" in stream.getvalue()


class TestConfigureLogging:
    def test_applies_to_existing_loggers(self, tmp_path):
        existing = get_logger("nexabind.test_existing")
        log_file = tmp_path / "logs" / "nexabind.log"
        configure_logging("debug", "json", log_file=str(log_file))
        assert existing.level == LogLevel.DEBUG

        existing.debug("traced", unit="index")
        lines = log_file.read_text().splitlines()
        assert orjson.loads(lines[-1])["message"] == "traced"

    def test_stream_follows_stderr(self, capsys):
        configure_logging("info", "text", colors=False)
        get_logger("nexabind.test_stream").info("hello", n=1)
        assert "[INFO] nexabind.test_stream: hello n=1" in capsys.readouterr().err

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown log format"):
            configure_logging("info", "xml")

    def test_get_logger_is_cached(self):
        assert get_logger("nexabind.same") is get_logger("nexabind.same")
