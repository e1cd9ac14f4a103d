#!/usr/bin/env python3
"""
logstream Logging Configuration

Centralized logging setup for consistent formatting across the project.
Console output goes to stderr so that stdout only carries streamed records.

Usage:
    from logstream.log import get_logger

    logger = get_logger(__name__)
    logger.info("Connecting...")
    logger.warning("Dropping frame", extra={"generation": 3, "url": "wss://..."})
"""

from __future__ import annotations
import logging
import os
import sys
from pathlib import Path
from typing import Optional


# ========================================
#           LOGGING FORMATTERS
# ========================================

class GenericFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        context = []

        # Connection fields passed through extra=
        if hasattr(record, 'generation'):
            context.append(f"gen={record.generation}")
        if hasattr(record, 'url'):
            context.append(f"url={record.url}")

        message = super().format(record)
        if context:
            return f"[{' '.join(context)}] {message}"
        return message


class ColoredFormatter(GenericFormatter):
    """Colored formatter for console output with connection context"""

    # ANSI Color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


# ========================================
#           LOGGING CONFIGURATION
# ========================================

_loggers_configured = set()

def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger for the given module.

    Args:
        name: Usually __name__ from the calling module
        level: Override log level ("DEBUG", "INFO", "WARNING", "ERROR")

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only configure each logger once
    if name not in _loggers_configured:
        _configure_logger(logger, level)
        _loggers_configured.add(name)

    return logger


def set_level(level: str) -> None:
    """Apply a level to every logger configured through get_logger"""
    log_level = _get_log_level(level)
    for name in _loggers_configured:
        logging.getLogger(name).setLevel(log_level)


def _configure_logger(logger: logging.Logger, level: Optional[str] = None) -> None:
    """Configure a logger with appropriate handlers and formatters"""

    logger.setLevel(_get_log_level(level))

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    _add_console_handler(logger, colored=True)
    log_file = os.getenv('LOGSTREAM_LOG_FILE')
    if log_file:
        _add_file_handler(logger, Path(log_file))

    # Prevent duplicate messages from parent loggers
    logger.propagate = False


def _get_log_level(level: Optional[str] = None) -> int:
    """Determine appropriate log level"""

    if level:
        value = logging.getLevelName(level.upper())
        if not isinstance(value, int):
            raise ValueError(f"Unknown log level: {level}")
        return value

    value = logging.getLevelName(os.getenv('LOGSTREAM_LOG_LEVEL', '').upper())
    if isinstance(value, int):
        return value

    # Disconnects are logged at INFO and stay silent by default
    return logging.WARNING


def _add_console_handler(logger: logging.Logger, colored: bool = True) -> None:
    """Add console handler with appropriate formatter"""

    fmt = '[%(levelname)-8s][%(asctime)s][%(name)-5s]: %(message)s'
    handler = logging.StreamHandler(sys.stderr)

    if colored and _supports_color():
        formatter = ColoredFormatter(
            fmt=fmt,
            datefmt='%H:%M:%S'
        )
    else:
        formatter = GenericFormatter(
            fmt=fmt,
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _add_file_handler(logger: logging.Logger, log_file: Path) -> None:
    """Add file handler, creating the parent directory if needed"""

    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file)

    formatter = GenericFormatter(
        fmt='%(asctime)s | %(name)-30s | %(levelname)-8s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _supports_color() -> bool:
    """Check if terminal supports color output"""

    # stderr must be a terminal
    if not (hasattr(sys.stderr, "isatty") and sys.stderr.isatty()):
        return False

    # TERM should not be dumb
    if os.getenv("TERM", "") == "dumb":
        return False

    if sys.platform == "win32":
        # On modern Windows terminals, ANSI colors are supported
        return os.getenv("ANSICON") is not None or os.getenv("WT_SESSION") is not None or os.getenv("TERM_PROGRAM") == "vscode"

    return True

# ========================================
#           CONVENIENCE FUNCTIONS
# ========================================

def configure_root_logging(level: str = "WARNING") -> None:
    """
    Configure root logging for the entire application.
    Call this once at application startup.

    Args:
        level: Root log level ("DEBUG", "INFO", "WARNING", "ERROR")
    """
    root_logger = logging.getLogger()
    _configure_logger(root_logger, level)
    set_level(level)
