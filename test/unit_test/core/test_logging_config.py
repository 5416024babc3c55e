"""Unit tests for logging configuration module.

Tests verify that the logging configuration functions work correctly with different
scenarios including various log levels, formats, and file logging options.
"""

import logging
from pathlib import Path

import pytest

from marketclaw_ai.core.logging_config import (
    DETAILED_FORMAT,
    JSON_FORMAT,
    LOG_FILE_NAME,
    MODULE_LOG_LEVELS,
    SIMPLE_FORMAT,
    get_logger,
    setup_logging,
)


def _console_handler() -> logging.Handler:
    root_logger = logging.getLogger()
    return next(
        h
        for h in root_logger.handlers
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
    )


class TestSetupLoggingLogLevels:
    """Test setup_logging with different log levels."""

    @pytest.mark.parametrize(
        "log_level,expected_level",
        [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("debug", logging.DEBUG),
        ],
    )
    def test_setup_logging_with_different_levels(self, log_level, expected_level):
        """Test setup_logging configures correct console level."""
        setup_logging(log_level=log_level, enable_file=False)

        assert _console_handler().level == expected_level

    def test_setup_logging_default_level(self):
        """Test setup_logging uses INFO as default level."""
        setup_logging(enable_file=False)

        assert _console_handler().level == logging.INFO


class TestSetupLoggingFormats:
    """Test setup_logging with different log formats."""

    @pytest.mark.parametrize(
        "log_format,expected_format",
        [
            ("simple", SIMPLE_FORMAT),
            ("detailed", DETAILED_FORMAT),
            ("json", JSON_FORMAT),
            (None, DETAILED_FORMAT),
            ("unknown", DETAILED_FORMAT),
        ],
    )
    def test_setup_logging_with_different_formats(self, log_format, expected_format):
        """Test setup_logging configures correct format."""
        setup_logging(log_format=log_format, enable_file=False)

        assert _console_handler().formatter._fmt == expected_format


class TestSetupLoggingFileHandling:
    """Test setup_logging file handler behaviour."""

    def test_setup_logging_with_file_enabled(self, tmp_path: Path):
        """Test a DEBUG file handler is written under log_dir."""
        log_dir = tmp_path / "nested" / "logs"
        setup_logging(enable_file=True, log_dir=log_dir)

        file_handlers = [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].level == logging.DEBUG
        assert (log_dir / LOG_FILE_NAME).exists()

        for handler in file_handlers:
            handler.close()
        setup_logging(enable_file=False)

    def test_setup_logging_closes_replaced_file_handler(self, tmp_path: Path):
        """Test reconfiguring releases the previous log file."""
        setup_logging(enable_file=True, log_dir=tmp_path)
        file_handler = next(h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler))
        assert file_handler.stream is not None

        setup_logging(enable_file=False)

        assert file_handler not in logging.getLogger().handlers
        assert file_handler.stream is None

    def test_setup_logging_with_file_disabled(self):
        """Test no file handler is added when disabled."""
        setup_logging(enable_file=False)

        assert not any(isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers)

    def test_setup_logging_removes_existing_handlers(self):
        """Test repeated setup does not duplicate handlers."""
        setup_logging(enable_file=False)
        setup_logging(enable_file=False)

        assert len(logging.getLogger().handlers) == 1


class TestSetupLoggingModuleSpecificLevels:
    """Test module-specific log levels."""

    @pytest.mark.parametrize("module_name,expected_level", list(MODULE_LOG_LEVELS.items()))
    def test_module_specific_log_levels(self, module_name, expected_level):
        """Test each configured module gets its level."""
        setup_logging(enable_file=False)

        assert logging.getLogger(module_name).level == getattr(logging, expected_level)

    def test_registry_logs_at_debug(self):
        """Test the dispatch logger is verbose enough to trace every outcome."""
        assert MODULE_LOG_LEVELS["marketclaw_ai.tools.registry"] == "DEBUG"


class TestGetLogger:
    """Test get_logger function."""

    def test_get_logger_returns_logger_instance(self):
        assert isinstance(get_logger("marketclaw_ai.test"), logging.Logger)

    def test_get_logger_same_name_returns_same_instance(self):
        assert get_logger("marketclaw_ai.same") is get_logger("marketclaw_ai.same")
