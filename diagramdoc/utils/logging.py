"""Logging setup for the diagram documentation generator.

Configures the package logger with a console handler and an optional
file handler. Level and format come from the logging section of
config.yaml.
"""

import logging
import sys
from typing import Optional

# HTTP client libraries log every request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "openai")


def setup_logging(
    level: str = "INFO",
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Configure the ``diagramdoc`` logger.

    Clears any handlers left by a previous call so repeated setup
    (for example across CLI invocations in one process) does not
    duplicate output. Client library loggers are capped at WARNING
    unless DEBUG is requested.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Format string for log records.
        log_file: Optional path for an additional file handler.

    Returns:
        The configured package logger.
    """
    package_logger = logging.getLogger("diagramdoc")
    package_logger.handlers.clear()

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    package_logger.setLevel(numeric_level)

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    package_logger.debug("Logging initialized at level %s", level)
    return package_logger
