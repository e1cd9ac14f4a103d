import ssl

import pytest

from logstream.config import DEFAULT_URL, ClientConfig, load_config
from logstream.errors import ConfigError


def test_defaults_match_log_endpoint():
    cfg = load_config(environ={})
    assert cfg.url == DEFAULT_URL == "wss://localhost.dividat.com:8382/log"
    assert cfg.reconnect_delay == 1.0
    assert cfg.strict_json is False
    assert cfg.max_attempts is None
    assert cfg.max_size == 100 * 1024 * 1024


def test_layers_file_then_env_then_overrides(tmp_path):
    path = tmp_path / "logstream.yaml"
    path.write_text("url: ws://file:1/log\nreconnect_delay: 3\nstrict_json: true\n")

    cfg = load_config(path, environ={"LOGSTREAM_RECONNECT_DELAY": "0.5"})
    assert cfg.url == "ws://file:1/log"
    assert cfg.reconnect_delay == 0.5
    assert cfg.strict_json is True

    cfg = load_config(path, environ={"LOGSTREAM_URL": "ws://env:2/log"}, url="ws://cli:3/log", strict_json=None)
    assert cfg.url == "ws://cli:3/log"
    assert cfg.strict_json is True


def test_env_booleans():
    cfg = load_config(environ={"LOGSTREAM_STRICT_JSON": "yes", "LOGSTREAM_VERIFY_TLS": "0"})
    assert cfg.strict_json is True
    assert cfg.verify_tls is False


@pytest.mark.parametrize("overrides", [
    {"url": "http://localhost/log"},
    {"reconnect_delay": -1},
    {"max_attempts": 0},
    {"strict_json": "maybe"},
    {"reconnect_delay": "soon"},
    {"colour": True},
    {"max_size": 0},
    {"max_size": "big"},
])
def test_invalid_values_raise_config_error(overrides):
    with pytest.raises(ConfigError):
        load_config(environ={}, **overrides)


def test_unknown_yaml_key_is_rejected(tmp_path):
    path = tmp_path / "logstream.yaml"
    path.write_text("urll: ws://typo/log\n")
    with pytest.raises(ConfigError, match="urll"):
        load_config(path, environ={})


def test_yaml_must_be_a_mapping(tmp_path):
    path = tmp_path / "logstream.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_config(path, environ={})


def test_missing_file_raises_config_error(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yaml", environ={})


def test_ssl_context_per_scheme():
    assert ClientConfig(url="ws://127.0.0.1:1/log").ssl_context() is None

    verified = ClientConfig().ssl_context()
    assert verified.verify_mode == ssl.CERT_REQUIRED
    assert verified.check_hostname is True

    insecure = ClientConfig(verify_tls=False).ssl_context()
    assert insecure.verify_mode == ssl.CERT_NONE
    assert insecure.check_hostname is False


def test_max_size_from_yaml_env_and_none(tmp_path):
    path = tmp_path / "logstream.yaml"
    path.write_text("max_size: 2048\n")
    assert load_config(path, environ={}).max_size == 2048
    assert load_config(path, environ={"LOGSTREAM_MAX_SIZE": "4096"}).max_size == 4096
    assert load_config(environ={"LOGSTREAM_MAX_SIZE": "none"}).max_size is None

    path.write_text("max_size: null\n")
    assert load_config(path, environ={}).max_size is None
