"""Tests for configuration loading."""

import dataclasses
import logging

import pytest

from cot_relay.config import ConfigError, RelayConfig, load_config, parse_allowlist
from cot_relay import server


def test_defaults():
    config = load_config(environ={})
    assert config.listen_host == "0.0.0.0"
    assert config.listen_port == 8080
    assert config.allowed_destinations is None
    assert config.allow_all
    assert config.match_mode == "cidr"
    assert config.default_udp_host == "127.0.0.1"
    assert config.default_udp_port == 8087
    assert config.log_file is None


def test_environment():
    config = load_config(environ={
        "PORT": "9000",
        "HOST": "127.0.0.1",
        "ALLOWED_UDP_HOSTS": " 10.0.0.1, ,192.168.0.0/16 ",
        "ALLOWED_UDP_MATCH": "PREFIX",
        "RELAY_LOG_FILE": "/tmp/relay.log",
    })
    assert config.listen_port == 9000
    assert config.listen_host == "127.0.0.1"
    assert config.allowed_destinations == ("10.0.0.1", "192.168.0.0/16")
    assert not config.allow_all
    assert config.match_mode == "prefix"
    assert config.log_file == "/tmp/relay.log"


@pytest.mark.parametrize("value", ["", "   ", ",", " , "])
def test_blank_allowlist_means_allow_all(value):
    config = load_config(environ={"ALLOWED_UDP_HOSTS": value})
    assert config.allowed_destinations is None
    assert config.allow_all


@pytest.mark.parametrize("port", ["abc", "0", "65536", "-80", "8080.0", "+80", "8_0"])
def test_invalid_listen_port(port):
    with pytest.raises(ConfigError):
        load_config(environ={"PORT": port})


def test_unknown_match_mode():
    with pytest.raises(ConfigError):
        load_config(environ={"ALLOWED_UDP_MATCH": "regex"})


def test_config_is_immutable():
    config = load_config(environ={"ALLOWED_UDP_HOSTS": "127.0.0.1"})
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.allowed_destinations = None
    assert isinstance(config.allowed_destinations, tuple)


def test_with_overrides_skips_none():
    config = RelayConfig(listen_port=9000)
    same = config.with_overrides(listen_port=None, allowed_destinations=None)
    assert same == config

    changed = config.with_overrides(listen_port="9100", allowed_destinations="127.0.0.1,10.0.0.0/8")
    assert changed.listen_port == 9100
    assert changed.allowed_destinations == ("127.0.0.1", "10.0.0.0/8")
    assert config.listen_port == 9000


def test_parse_allowlist_types():
    assert parse_allowlist(None) is None
    assert parse_allowlist(["127.0.0.1", " 10.0.0.0/8 "]) == ("127.0.0.1", "10.0.0.0/8")
    with pytest.raises(ConfigError):
        parse_allowlist(42)


def test_yaml_file(tmp_path):
    path = tmp_path / "relay.yaml"
    path.write_text(
        "listen_port: 9001\n"
        "allowed_destinations:\n"
        "  - 127.0.0.1\n"
        "  - 10.0.0.0/8\n"
        "match_mode: prefix\n"
        "default_udp_port: 4242\n"
    )
    config = load_config(environ={}, config_file=path)
    assert config.listen_port == 9001
    assert config.allowed_destinations == ("127.0.0.1", "10.0.0.0/8")
    assert config.match_mode == "prefix"
    assert config.default_udp_port == 4242


def test_environment_overrides_yaml(tmp_path):
    path = tmp_path / "relay.yaml"
    path.write_text("listen_port: 9001\nallowed_destinations: 127.0.0.1\n")
    config = load_config(environ={"RELAY_CONFIG": str(path), "PORT": "9002"})
    assert config.listen_port == 9002
    assert config.allowed_destinations == ("127.0.0.1",)


def test_empty_yaml_file(tmp_path):
    path = tmp_path / "relay.yaml"
    path.write_text("")
    assert load_config(environ={}, config_file=path) == RelayConfig()


@pytest.mark.parametrize("content", [
    "- just\n- a list\n",
    "listen_port: [\n",
    "unknown_key: 1\n",
    "default_udp_port: 0\n",
])
def test_bad_yaml_file(tmp_path, content):
    path = tmp_path / "relay.yaml"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_config(environ={}, config_file=path)


def test_missing_yaml_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(environ={}, config_file=tmp_path / "missing.yaml")


def test_main_exits_on_bad_config(monkeypatch, caplog):
    monkeypatch.setenv("PORT", "not-a-port")
    monkeypatch.delenv("RELAY_CONFIG", raising=False)
    with caplog.at_level(logging.ERROR):
        with pytest.raises(SystemExit) as exc_info:
            server.main([])
    assert exc_info.value.code == 2
    assert "Configuration error" in caplog.text


def test_cli_overrides(monkeypatch):
    """CLI flags win over the environment."""
    captured = {}
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("ALLOWED_UDP_HOSTS", "10.0.0.1")
    monkeypatch.delenv("RELAY_CONFIG", raising=False)
    monkeypatch.setattr(server, "setup_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(server, "run_server", lambda config: captured.setdefault("config", config))

    server.main(["-p", "9100", "--allow", "127.0.0.1", "--match", "prefix", "-v"])

    config = captured["config"]
    assert config.listen_port == 9100
    assert config.allowed_destinations == ("127.0.0.1",)
    assert config.match_mode == "prefix"
    assert config.log_level == "DEBUG"
