"""Tests for logger module."""

import json
import logging

import pytest
import structlog

from genplan.utils.logger import JsonLogFormatter, get_logger, setup_logging


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers bound to the captured stderr once each test finishes."""
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


class TestLogging:
    def test_get_logger_returns_structlog_logger(self):
        """Test that get_logger returns a structlog bound logger."""
        logger = get_logger("test_module")
        assert logger is not None
        assert hasattr(logger, "info")
        assert hasattr(logger, "debug")
        assert hasattr(logger, "error")

    def test_setup_logging_with_json_format(self, capsys):
        setup_logging(level="DEBUG", json_logs=True)
        get_logger("json_test").info("JSON formatted log", step="a")

        err = capsys.readouterr().err
        line = [entry for entry in err.splitlines() if "JSON formatted log" in entry][-1]
        record = json.loads(line)
        assert record["event"] == "JSON formatted log"
        assert record["step"] == "a"
        assert record["level"] == "info"

    def test_setup_logging_respects_level(self, capsys):
        setup_logging(level="WARNING")
        logger = get_logger("level_test")
        logger.info("Info message should not appear")
        logger.warning("Warning message should appear")

        err = capsys.readouterr().err
        assert "Info message should not appear" not in err
        assert "Warning message should appear" in err

    def test_logs_go_to_stderr_not_stdout(self, capsys):
        setup_logging(level="INFO")
        get_logger("stream_test").info("stream check")
        captured = capsys.readouterr()
        assert "stream check" in captured.err
        assert "stream check" not in captured.out

    def test_stdlib_root_logger_configured(self):
        setup_logging(level="ERROR", json_logs=True)
        root = logging.getLogger()
        assert root.level == logging.ERROR
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonLogFormatter)

    def test_json_formatter(self):
        record = logging.LogRecord("httpx", logging.WARNING, __file__, 1, "slow %s", ("call",), None)
        data = json.loads(JsonLogFormatter().format(record))
        assert data["message"] == "slow call"
        assert data["level"] == "warning"
        assert data["logger"] == "httpx"
