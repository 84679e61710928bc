"""Configuration constants and loading for the CoT UDP relay."""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Tuple

import yaml

# Base directories
RELAY_DIR = Path(__file__).parent.parent

SERVICE_NAME = "CoT UDP Proxy"
VERSION = "1.0.0"

# Server configuration
# PORT env var picks the listen port, HOST the bind address.
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080

# Destination used when the caller leaves out X-UDP-Host / X-UDP-Port
DEFAULT_UDP_HOST = "127.0.0.1"
DEFAULT_UDP_PORT = 8087

RELAY_PATH = "/cot"

# Largest body accepted; a UDP datagram can never carry more
MAX_BODY_BYTES = 65535

# Allowlist matching: "cidr" is numeric containment, "prefix" is the
# legacy dotted-string comparison.
MATCH_MODES = ("cidr", "prefix")
DEFAULT_MATCH_MODE = "cidr"

# Sent on every response so browser callers can read failures too
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-UDP-Host, X-UDP-Port",
}

# Rotating log file: 5MB, keep 3 backups
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3


class ConfigError(ValueError):
    """Raised when the relay configuration can't be built."""


@dataclass(frozen=True)
class RelayConfig:
    """Process-wide settings. Built once at startup and never mutated."""

    listen_host: str = DEFAULT_HOST
    listen_port: int = DEFAULT_PORT
    # None means every destination is allowed (development mode)
    allowed_destinations: Optional[Tuple[str, ...]] = None
    match_mode: str = DEFAULT_MATCH_MODE
    default_udp_host: str = DEFAULT_UDP_HOST
    default_udp_port: int = DEFAULT_UDP_PORT
    log_level: str = "INFO"
    log_file: Optional[str] = field(default=None)

    @property
    def allow_all(self) -> bool:
        return not self.allowed_destinations

    def with_overrides(self, **overrides) -> "RelayConfig":
        """Return a copy with the non-None overrides applied and validated."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "allowed_destinations" in changes:
            changes["allowed_destinations"] = parse_allowlist(changes["allowed_destinations"])
        if "listen_port" in changes:
            changes["listen_port"] = parse_port(changes["listen_port"], "listen port")
        if "match_mode" in changes:
            changes["match_mode"] = parse_match_mode(changes["match_mode"])
        return replace(self, **changes)


def parse_allowlist(value) -> Optional[Tuple[str, ...]]:
    """Turn a comma string or list into a tuple of entries.

    Blank entries are dropped. An empty result means allow-all (None).
    """
    if value is None:
        return None
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        raise ConfigError(f"allowed_destinations must be a string or list, got {type(value).__name__}")

    entries = tuple(item.strip() for item in items if item.strip())
    return entries or None


def is_decimal(text: str) -> bool:
    """Plain ASCII digits only: no sign, underscores or other scripts."""
    return text.isascii() and text.isdigit()


def parse_port(value, what="port") -> int:
    text = str(value).strip()
    if not is_decimal(text):
        raise ConfigError(f"Invalid {what}: {value!r}")
    port = int(text, 10)
    if not 1 <= port <= 65535:
        raise ConfigError(f"Invalid {what}: {port} (must be 1-65535)")
    return port


def parse_match_mode(value) -> str:
    mode = str(value).strip().lower()
    if mode not in MATCH_MODES:
        raise ConfigError(f"Unknown allowlist match mode {value!r} (expected one of {', '.join(MATCH_MODES)})")
    return mode


def load_yaml_config(path) -> dict:
    """Load a YAML settings file. Keys match RelayConfig field names."""
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text())
    except OSError as e:
        raise ConfigError(f"Can't read config file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    known = set(RelayConfig.__dataclass_fields__)
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown keys in {path}: {', '.join(sorted(unknown))}")
    return data


def load_config(environ=None, config_file=None) -> RelayConfig:
    """Build the relay configuration.

    Precedence: defaults < YAML file (config_file or RELAY_CONFIG) < environment.
    """
    if environ is None:
        environ = os.environ

    def env(name):
        # Blank values count as unset
        value = environ.get(name, "").strip()
        return value or None

    config = RelayConfig()

    config_file = config_file or env("RELAY_CONFIG")
    if config_file:
        file_settings = load_yaml_config(config_file)
        if "default_udp_port" in file_settings:
            file_settings["default_udp_port"] = parse_port(file_settings["default_udp_port"], "default UDP port")
        config = config.with_overrides(**file_settings)

    return config.with_overrides(
        listen_host=env("HOST"),
        listen_port=env("PORT"),
        allowed_destinations=env("ALLOWED_UDP_HOSTS"),
        match_mode=env("ALLOWED_UDP_MATCH"),
        log_level=env("RELAY_LOG_LEVEL"),
        log_file=env("RELAY_LOG_FILE"),
    )
