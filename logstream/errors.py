from __future__ import annotations
from typing import Union


class LogStreamError(Exception):
    """Base class for logstream errors."""
    pass


class ParseError(LogStreamError):
    """Raised when an inbound frame is not valid JSON."""

    def __init__(self, message: str, raw: Union[str, bytes]) -> None:
        super().__init__(message)
        self.raw = raw


class ConfigError(LogStreamError):
    """Raised when the client configuration is invalid."""
    pass
