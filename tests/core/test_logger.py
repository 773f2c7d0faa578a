"""Tests for logging utilities."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

from driveflow.core.config import LoggingConfig
from driveflow.core.logger import get_logger, setup_logging


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_name_prefix(self):
        logger = get_logger("my_module")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "driveflow.my_module"

    def test_get_logger_same_name_returns_same_logger(self):
        assert get_logger("same_name") is get_logger("same_name")


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_console_handler_is_rich(self):
        setup_logging()

        handlers = logging.getLogger().handlers
        assert any(isinstance(h, RichHandler) for h in handlers)

    def test_level_applies_to_existing_loggers(self):
        logger = get_logger("level_check")
        setup_logging(LoggingConfig(level="WARNING"))

        assert logger.level == logging.WARNING
        setup_logging(LoggingConfig(level="INFO"))
        assert logger.level == logging.INFO

    def test_log_file_is_written(self, tmp_path):
        log_file = tmp_path / "logs" / "driveflow.log"
        setup_logging(LoggingConfig(log_file=str(log_file)))

        get_logger("file_test").info("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert log_file.exists()
        assert "hello file" in log_file.read_text(encoding="utf-8")

        setup_logging()
