"""Configuration loading from CLI args, env vars, and an optional YAML file.

Precedence, lowest first: dataclass defaults, YAML file, environment, CLI.
"""

import argparse
import logging
import os
from dataclasses import dataclass, fields
from urllib.parse import urlsplit

import yaml

from udplog.formatter import (
    DEFAULT_FILE_FORMAT,
    DEFAULT_FILE_NAME_FORMAT,
    DEFAULT_LATEST_NAME_FORMAT,
    DEFAULT_STDOUT_FORMAT,
)

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Invalid configuration; fatal at startup."""


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    listen_addr: str = "udp://0.0.0.0:5514/"
    buffer_size: int = 65536
    timestamp_format: str = "StampMilli"
    utc: bool = False
    stdout: bool = False
    stdout_format: str = DEFAULT_STDOUT_FORMAT
    log_dir: str = ""
    file_format: str = DEFAULT_FILE_FORMAT
    file_name_format: str = DEFAULT_FILE_NAME_FORMAT
    latest_name_format: str = DEFAULT_LATEST_NAME_FORMAT
    idle_timeout_sec: float = 0
    max_errors: int = 100
    dashboard_port: int = 0
    log_level: str = "INFO"


# field name -> (environment variable, converter)
_SETTINGS = {
    "listen_addr": ("LISTEN_ADDR", str),
    "buffer_size": ("BUFFER_SIZE", int),
    "timestamp_format": ("TIMESTAMP_FORMAT", str),
    "utc": ("UTC", _parse_bool),
    "stdout": ("STDOUT", _parse_bool),
    "stdout_format": ("STDOUT_FORMAT", str),
    "log_dir": ("LOG_DIR", str),
    "file_format": ("FILE_FORMAT", str),
    "file_name_format": ("FILE_NAME_FORMAT", str),
    "latest_name_format": ("LATEST_NAME_FORMAT", str),
    "idle_timeout_sec": ("IDLE_TIMEOUT_SEC", float),
    "max_errors": ("MAX_ERRORS", int),
    "dashboard_port": ("DASHBOARD_PORT", int),
    "log_level": ("LOG_LEVEL", str),
}


def parse_listen_addr(addr: str) -> tuple[str, int]:
    """Split ``udp://host:port/`` (host optional) into (host, port)."""
    parsed = urlsplit(addr)
    if parsed.scheme != "udp":
        raise ConfigError(f"invalid listen address {addr!r}: scheme must be udp://")
    try:
        port = parsed.port
    except ValueError as exc:
        raise ConfigError(f"invalid listen address {addr!r}: {exc}") from exc
    if port is None:
        raise ConfigError(
            f"invalid listen address {addr!r}: must be udp://:port/ or udp://host:port/"
        )
    return parsed.hostname or "", port


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML mapping. Returns an empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    unknown = set(data) - set(_SETTINGS)
    if unknown:
        raise ConfigError(f"unknown setting(s) in {path}: {', '.join(sorted(unknown))}")
    logger.info("Loaded YAML config from %s", path)
    return data


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="udplog",
        description="Receive device log records over UDP and write them to the console "
                    "and/or per-device daily files.",
    )
    parser.add_argument("--config", default=None,
                        help="YAML file with settings (env: CONFIG_PATH)")
    parser.add_argument("--listen-addr",
                        help="Address to listen on; udp://:port/ or udp://addr:port/")
    parser.add_argument("--buffer-size", type=int, help="Maximum datagram size in bytes")
    parser.add_argument("--timestamp-format",
                        help="Timestamp format name (StampMilli, RFC3339, none, ...) "
                             "or a strftime pattern")
    parser.add_argument("--utc", action="store_true", default=None,
                        help="Stamp and rotate in UTC instead of local time")
    parser.add_argument("--stdout", action="store_true", default=None,
                        help="Log incoming messages to stdout")
    parser.add_argument("--stdout-format", help="Template for stdout records")
    parser.add_argument("--log-dir",
                        help="Log incoming messages to per-device files in this directory")
    parser.add_argument("--file-format", help="Template for file records")
    parser.add_argument("--file-name-format",
                        help="Template for per-device file names, relative to --log-dir")
    parser.add_argument("--latest-name-format",
                        help="Template for the latest-file symlink; empty to disable")
    parser.add_argument("--idle-timeout", dest="idle_timeout_sec", type=float,
                        help="Close device files idle for this many seconds (0 = never)")
    parser.add_argument("--max-errors", type=int,
                        help="Number of recent invalid records kept for /stats")
    parser.add_argument("--dashboard-port", type=int,
                        help="Serve /health and /stats on this port (0 = off)")
    parser.add_argument("--log-level", help="Diagnostic log level (default INFO)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Shortcut for --log-level DEBUG")
    return parser


def load_config(argv=None, environ=None) -> Config:
    """Build Config from defaults, YAML, env vars, and CLI args."""
    environ = os.environ if environ is None else environ
    args = build_cli_parser().parse_args(argv)

    values = {}
    yaml_data = load_yaml_config(args.config or environ.get("CONFIG_PATH"))
    for name, (env_var, convert) in _SETTINGS.items():
        try:
            if name in yaml_data:
                values[name] = convert(yaml_data[name])
            if env_var in environ:
                values[name] = convert(environ[env_var])
        except ValueError as exc:
            raise ConfigError(f"invalid value for {name}: {exc}") from exc

        cli_value = getattr(args, name)
        if cli_value is not None:
            values[name] = cli_value

    if args.verbose:
        values["log_level"] = "DEBUG"

    config = Config(**values)
    validate_config(config)
    return config


def validate_config(config: Config):
    parse_listen_addr(config.listen_addr)
    if config.buffer_size <= 0:
        raise ConfigError(f"buffer_size must be positive, got {config.buffer_size}")
    if config.idle_timeout_sec < 0:
        raise ConfigError(f"idle_timeout_sec must not be negative, got {config.idle_timeout_sec}")
    if config.max_errors <= 0:
        raise ConfigError(f"max_errors must be positive, got {config.max_errors}")
    if not 0 <= config.dashboard_port <= 65535:
        raise ConfigError(f"invalid dashboard_port {config.dashboard_port}")
    if not isinstance(logging.getLevelName(config.log_level.upper()), int):
        raise ConfigError(f"invalid log_level {config.log_level!r}")


def describe(config: Config) -> str:
    return ", ".join(f"{f.name}={getattr(config, f.name)!r}" for f in fields(config))
