from __future__ import annotations
import os
import ssl
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

from logstream.errors import ConfigError
from logstream.log import get_logger

logger = get_logger(__name__)

DEFAULT_URL = "wss://localhost.dividat.com:8382/log"
DEFAULT_RECONNECT_DELAY = 1.0
DEFAULT_MAX_SIZE = 100 * 1024 * 1024  # bytes per inbound message

# env var -> config field
_ENV_VARS = {
    "LOGSTREAM_URL": "url",
    "LOGSTREAM_RECONNECT_DELAY": "reconnect_delay",
    "LOGSTREAM_STRICT_JSON": "strict_json",
    "LOGSTREAM_VERIFY_TLS": "verify_tls",
    "LOGSTREAM_MAX_SIZE": "max_size",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ClientConfig:
    url: str = DEFAULT_URL
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY  # seconds between a close and the next attempt
    strict_json: bool = False  # let ParseError escape instead of skipping the frame
    verify_tls: bool = True
    open_timeout: Optional[float] = 10.0
    ping_interval: Optional[float] = 15.0
    ping_timeout: Optional[float] = 45.0
    max_attempts: Optional[int] = None  # None retries forever
    max_size: Optional[int] = DEFAULT_MAX_SIZE  # None disables the limit

    def validate(self) -> "ClientConfig":
        scheme = urlparse(self.url).scheme
        if scheme not in ("ws", "wss"):
            raise ConfigError(f"Unsupported URL scheme {scheme!r} in {self.url!r}, expected ws or wss")
        if self.reconnect_delay < 0:
            raise ConfigError(f"reconnect_delay must be >= 0, got {self.reconnect_delay}")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ConfigError(f"max_attempts must be positive, got {self.max_attempts}")
        if self.max_size is not None and self.max_size < 1:
            raise ConfigError(f"max_size must be positive, got {self.max_size}")
        return self

    @property
    def is_secure(self) -> bool:
        return urlparse(self.url).scheme == "wss"

    def ssl_context(self) -> Optional[ssl.SSLContext]:
        """TLS context for wss:// URLs, None for plain ws://"""
        if not self.is_secure:
            return None
        context = ssl.create_default_context()
        if not self.verify_tls:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw YAML/env value to the type of the named field"""
    if value is None:
        return None
    try:
        if name in ("strict_json", "verify_tls"):
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in _TRUE:
                return True
            if text in _FALSE:
                return False
            raise ValueError(f"not a boolean: {value!r}")
        if name in ("reconnect_delay", "open_timeout", "ping_interval", "ping_timeout"):
            return float(value)
        if name in ("max_attempts", "max_size"):
            if isinstance(value, str) and value.strip().lower() == "none":
                return None
            return int(value)
        return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {e}") from e


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    known = {f.name for f in fields(ClientConfig)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {sorted(unknown)}")

    logger.debug("Loaded config file %s", path)
    return {k: _coerce(k, v) for k, v in data.items()}


def _read_env(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    values = {}
    for var, name in _ENV_VARS.items():
        raw = environ.get(var)
        if raw is not None and raw != "":
            values[name] = _coerce(name, raw)
    return values


def load_config(
    path: Optional[Path] = None,
    *,
    environ: Optional[Dict[str, str]] = None,
    **overrides: Any,
) -> ClientConfig:
    """
    Build the effective client configuration.

    Layers, lowest precedence first: defaults, YAML file at ``path``,
    LOGSTREAM_* environment variables, keyword overrides. Overrides that
    are None count as "not given" so CLI options can be passed straight in.

    Raises:
        ConfigError: unreadable file, unknown keys or invalid values
    """
    values: Dict[str, Any] = {}
    if path is not None:
        values.update(_read_yaml(Path(path)))
    values.update(_read_env(environ))

    known = {f.name for f in fields(ClientConfig)}
    for name, value in overrides.items():
        if name not in known:
            raise ConfigError(f"Unknown config option: {name}")
        if value is not None:
            values[name] = _coerce(name, value)

    return replace(ClientConfig(), **values).validate()
