#!/usr/bin/env python3
"""Unit tests for utils.logging module."""

import logging
import pytest
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import LoggingConfig
from utils.logging import ROOT_LOGGER_NAME, configure_from_config, get_logger


@pytest.fixture
def root_logger():
    """Restore the parser logger's handlers and level after each test."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers = handlers
    logger.setLevel(level)


class TestGetLogger:
    def test_child_names(self):
        assert get_logger("sanitizer").name == "response_parser.sanitizer"
        assert get_logger().name == ROOT_LOGGER_NAME

    def test_quiet_until_configured(self):
        """Test the library installs a NullHandler on import."""
        handlers = logging.getLogger(ROOT_LOGGER_NAME).handlers
        assert any(isinstance(h, logging.NullHandler) for h in handlers)


class TestConfigureFromConfig:
    """Test configure_from_config with dicts and models."""

    def test_dict(self, root_logger):
        root_logger.handlers = [h for h in root_logger.handlers if isinstance(h, logging.NullHandler)]
        logger = configure_from_config({"level": "DEBUG", "console": True})
        assert logger is root_logger
        assert logger.level == logging.DEBUG
        assert sum(type(h) is logging.StreamHandler for h in logger.handlers) == 1

    def test_model_with_file(self, root_logger, tmp_path):
        root_logger.handlers = [h for h in root_logger.handlers if isinstance(h, logging.NullHandler)]
        log_file = tmp_path / "parser.log"
        logger = configure_from_config(LoggingConfig(level="WARNING", log_file=str(log_file), console=False))
        assert logger.level == logging.WARNING
        assert not any(type(h) is logging.StreamHandler for h in logger.handlers)

        get_logger("marker_files").warning("recovered src/a.ts")
        for handler in logger.handlers:
            handler.flush()
        text = log_file.read_text(encoding="utf-8")
        assert "[WARNING]" in text
        assert "[response_parser.marker_files] recovered src/a.ts" in text

    def test_repeat_calls_do_not_duplicate_handlers(self, root_logger):
        root_logger.handlers = [h for h in root_logger.handlers if isinstance(h, logging.NullHandler)]
        configure_from_config({"level": "INFO"})
        logger = configure_from_config({"level": "INFO"})
        assert sum(type(h) is logging.StreamHandler for h in logger.handlers) == 1
