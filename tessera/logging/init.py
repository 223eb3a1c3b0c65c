from __future__ import annotations

import logging
import sys

"""Logging initialization with labeled prefixes.

Every console line starts with a label (DEBUG|INFO|WARN|ERROR|SUMMARY).
Colours are added only when stdout is a TTY so that captured output (tests,
CI logs, redirects) stays plain text.

Module loggers (`logging.getLogger(__name__)` under the `tessera` package)
propagate to the application logger configured here.
"""

__all__ = [
    "APP_LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "log_summary",
    "set_debug",
    "reset_logging",
]

APP_LOGGER_NAME = "tessera"

# Custom SUMMARY level (between INFO=20 and WARNING=30)
SUMMARY_LEVEL = 25

_logger: logging.Logger | None = None

_RESET = "\033[0m"


class LabeledFormatter(logging.Formatter):
    """Formatter producing `LABEL message` lines.

    Args:
        use_color: wrap the label in ANSI colour codes
    """

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    LEVEL_COLORS = {
        logging.DEBUG: "\033[0;90m",  # grey
        logging.INFO: "\033[0;36m",  # cyan
        logging.WARNING: "\033[0;33m",  # yellow
        logging.ERROR: "\033[0;31m",  # red
        logging.CRITICAL: "\033[1;31m",
        SUMMARY_LEVEL: "\033[0;32m",  # green
    }

    def __init__(self, use_color: bool = False) -> None:
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        level_label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        if self.use_color and record.levelno in self.LEVEL_COLORS:
            level_label = f"{self.LEVEL_COLORS[record.levelno]}{level_label}{_RESET}"
        line = f"{level_label} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Configure the `tessera` logger (idempotent).

    Output goes to stdout, matching the CLI contract.
    """
    global _logger

    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.setLevel(level)

    # Clear any existing handlers to avoid duplication
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter(use_color=sys.stdout.isatty()))
    logger.addHandler(handler)

    # Prevent propagation to root logger to avoid duplicate output
    logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    if _logger is None:
        return setup_logging()
    return _logger


def log_summary(message: str) -> None:
    """Log a message at SUMMARY level."""
    get_logger().log(SUMMARY_LEVEL, message)


def set_debug(enabled: bool = True) -> None:
    level = logging.DEBUG if enabled else logging.INFO
    logger = get_logger()
    logger.setLevel(level)
    for h in logger.handlers:
        h.setLevel(level)


def reset_logging() -> None:
    """Reset the global logger state. Mainly for testing purposes."""
    global _logger
    if _logger is not None:
        for handler in _logger.handlers[:]:
            _logger.removeHandler(handler)
    _logger = None
