"""
Tests for logging setup.
"""

import json
import logging
import sys

import pytest

from codescope.logging_config import JsonFormatter, setup_logging, setup_logging_from_config


@pytest.fixture(autouse=True)
def restore_logging():
    """Put the root logger back after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJsonFormatter:
    """Test suite for JsonFormatter."""

    def test_fields_and_extras(self):
        """Records become JSON objects including extra fields."""
        record = logging.LogRecord("codescope.sync", logging.INFO, __file__, 1, "synced %d files", (3,), None)
        record.collection_id = "codescope_abc"

        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "codescope.sync"
        assert data["message"] == "synced 3 files"
        assert data["collection_id"] == "codescope_abc"

    def test_exception(self):
        """Exception tracebacks are included."""
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        data = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]


class TestSetupLogging:
    """Test suite for setup_logging."""

    def test_level_and_file(self, temp_dir):
        """The level is applied and messages reach the log file."""
        log_file = temp_dir / "logs" / "codescope.log"

        setup_logging(level="DEBUG", log_file=log_file)
        logging.getLogger("codescope.test").debug("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert logging.getLogger().level == logging.DEBUG
        assert "hello file" in log_file.read_text()

    def test_noisy_loggers_quieted(self):
        """Third-party loggers are raised to WARNING outside debug mode."""
        setup_logging(level="INFO")

        assert logging.getLogger("httpx").level == logging.WARNING

    def test_from_config(self, config):
        """The debug flag overrides the configured level."""
        config.set("logging", "level", value="ERROR")

        setup_logging_from_config(config)
        assert logging.getLogger().level == logging.ERROR

        setup_logging_from_config(config, debug=True)
        assert logging.getLogger().level == logging.DEBUG
