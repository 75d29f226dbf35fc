"""Logging for the response parser.

Every parser module logs through a child of the ``response_parser`` logger,
obtained with ``get_logger("<module>")``. As a library the parser stays quiet:
the root parser logger carries only a ``NullHandler`` until an application
calls ``configure_from_config`` (the CLI does so from the ``logging`` section
of config.yml). Console output then goes to stderr, so stdout stays free for
the JSON the CLI prints. A log file is added only when ``log_file`` is set.
"""

import logging
import sys
from typing import Optional, Dict, Any

ROOT_LOGGER_NAME = "response_parser"
logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())

# Global reference to the root logger for the parser
_parser_logger: Optional[logging.Logger] = None


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    log_file: Optional[str] = None,
    level: str = "INFO",
    console: bool = True,
) -> logging.Logger:
    """Set up a logger with optional file and console handlers.

    Args:
        name: Logger name (module name or custom).
        log_file: Path to log file, or None to skip file logging.
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        console: Whether to also log to the console (stderr).

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name)

    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)

    formatter = logging.Formatter(
        "[%(levelname)s] %(asctime)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
            logger.addHandler(file_handler)

    # stderr, so the CLI can keep stdout for JSON output
    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(log_level)
        if not any(type(h) is logging.StreamHandler for h in logger.handlers):
            logger.addHandler(console_handler)

    return logger


def configure_from_config(config: Any) -> logging.Logger:
    """Configure the parser logger from a LoggingConfig or plain dict.

    Args:
        config: Object or dict with 'level', 'log_file' and 'console'.

    Returns:
        Configured root parser logger.
    """
    global _parser_logger

    if isinstance(config, dict):
        settings: Dict[str, Any] = config
    else:
        settings = config.model_dump()

    _parser_logger = setup_logger(
        name=ROOT_LOGGER_NAME,
        log_file=settings.get("log_file"),
        level=settings.get("level", "INFO"),
        console=settings.get("console", True),
    )
    return _parser_logger


def get_logger(name: str = None) -> logging.Logger:
    """Get a logger for a specific module.

    If the parser logger has been configured, child loggers inherit its
    handlers and level.

    Args:
        name: Module or component name (e.g., "sanitizer", "marker_files").

    Returns:
        Logger instance.
    """
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logging.getLogger(ROOT_LOGGER_NAME)
