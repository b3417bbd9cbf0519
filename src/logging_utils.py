"""
Logging utilities for Structura.

Provides consistent logging configuration across all modules.

Usage:
    from logging_utils import get_logger

    logger = get_logger(__name__)
    logger.info("Running analysis step...")
    logger.warning("Speech synthesis unavailable")
    logger.error("Upstream call failed")
"""

import logging
import os
import re
import sys
from typing import Optional

# Default format for log messages
DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER_NAME = "structura"
LOG_FILE_NAME = "structura.log"

# OpenRouter/OpenAI keys and bearer tokens echoed back in upstream errors
_SECRET_PATTERNS = (
    (re.compile(r"\bsk-[A-Za-z0-9_\-]{8,}"), "sk-***"),
    (re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+"), r"\1***"),
)

# Track if root logger has been configured
_root_configured = False


def redact_secrets(message: str) -> str:
    """Mask API keys and bearer tokens in a log message."""
    for pattern, replacement in _SECRET_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class RedactSecretsFilter(logging.Filter):
    """Rewrites records whose formatted message contains a credential."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(
    level: int = logging.INFO,
    format_str: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    stream: Optional[object] = None,
) -> None:
    """
    Configure the root logger for Structura.

    Call this once at application startup to set up logging.
    Subsequent calls will be ignored.

    Args:
        level: Logging level (default: INFO)
        format_str: Log message format
        date_format: Date format for timestamps
        stream: Output stream (default: sys.stderr)
    """
    global _root_configured
    if _root_configured:
        return

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(logging.NOTSET)
    handler.setFormatter(logging.Formatter(format_str, date_format))
    handler.addFilter(RedactSecretsFilter())

    root.addHandler(handler)
    _root_configured = True


def add_file_handler(
    log_dir: str,
    filename: str = LOG_FILE_NAME,
    level: int = logging.DEBUG,
) -> logging.FileHandler:
    """
    Also write Structura logs to a file in log_dir (appending).

    Calling again with the same file returns the existing handler.

    Args:
        log_dir: Directory for the log file (created if missing)
        filename: Log file name
        level: Minimum level written to the file

    Returns:
        The attached handler.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    path = os.path.abspath(os.path.join(log_dir, filename))

    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == path:
            return handler

    os.makedirs(log_dir, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, DEFAULT_DATE_FORMAT))
    handler.addFilter(RedactSecretsFilter())
    root.addHandler(handler)
    return handler


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance configured under the structura hierarchy.
    """
    configure_logging()

    # "src.steps.analysis" and "steps.analysis" share one logger
    if name.startswith("src."):
        name = name[4:]

    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_verbose(verbose: bool) -> None:
    """
    Set verbose mode for all Structura loggers.

    Args:
        verbose: If True, set level to DEBUG. If False, set to INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)


class LoggerAdapter:
    """
    Adapter that provides print-like interface but uses logging.

    Used for progress output that callers can silence with verbose=False.

    Usage:
        log = LoggerAdapter(get_logger(__name__), verbose=True)
        log("Step 2/6 complete")
        log.debug("Context fields: ...")
    """

    def __init__(self, logger: logging.Logger, verbose: bool = True):
        self.logger = logger
        self.verbose = verbose

    def __call__(self, message: str) -> None:
        """Log at INFO level when called like a function."""
        if self.verbose:
            self.logger.info(message)

    def debug(self, message: str) -> None:
        """Log at DEBUG level."""
        if self.verbose:
            self.logger.debug(message)

    def info(self, message: str) -> None:
        """Log at INFO level."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log at WARNING level."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log at ERROR level."""
        self.logger.error(message)
