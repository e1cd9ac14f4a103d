"""
logstream - auto-reconnecting WebSocket log streaming client.
"""

from logstream.client import ConnectionHandle, ConnectionState, ReconnectingLogClient
from logstream.config import ClientConfig, load_config
from logstream.errors import ConfigError, LogStreamError, ParseError

__version__ = "0.0.1"

__all__ = [
    "ClientConfig",
    "ConfigError",
    "ConnectionHandle",
    "ConnectionState",
    "LogStreamError",
    "ParseError",
    "ReconnectingLogClient",
    "load_config",
]
