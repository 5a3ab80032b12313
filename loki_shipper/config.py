"""Configuration module — frozen dataclasses loaded from a config file, env vars and CLI args."""

import argparse
import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlsplit

import yaml

logger = logging.getLogger(__name__)

LABEL_VALUE_TYPES = (str, int, float, bool, type(None), list, dict)


class ConfigError(Exception):
    """Raised when the configuration is unreadable or invalid."""


@dataclass(frozen=True)
class LabelRule:
    tag: str
    labels: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Config:
    syslog_bind: str = "0.0.0.0:514"
    loki_server: str = "http://localhost:3100"
    scrape_config: tuple = ()
    flush_interval: float = 3.0
    ready_interval: float = 10.0
    max_streams_per_push: int = 4096
    queue_size: int = 10240
    request_timeout: float = 3.0
    ready_retries: int = 3
    log_level: str = "INFO"


# Optional snake_case tuning keys accepted in the config file next to
# SyslogBind, LokiServer and ScrapeConfig.
_TUNING_KEYS = {
    "flush_interval": float,
    "ready_interval": float,
    "max_streams_per_push": int,
    "queue_size": int,
    "request_timeout": float,
    "ready_retries": int,
    "log_level": str,
}


def validate_server_url(url: str) -> str:
    """Return *url* without a trailing slash, or raise ConfigError.

    Only absolute http(s) URLs with a host are accepted, e.g. http://loki:3100.
    """
    try:
        parts = urlsplit(url)
    except ValueError as exc:
        raise ConfigError(f"Invalid format of LokiServer {url!r}: {exc}") from exc
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigError(
            f"Invalid format of LokiServer {url!r} (expected like http://loki:3100)"
        )
    return url.rstrip("/")


def parse_bind(bind: str) -> tuple[str, int]:
    """Split a ``host:port`` bind address. An empty host means all interfaces."""
    host, sep, port = bind.rpartition(":")
    if not sep:
        raise ConfigError(f"Invalid bind address {bind!r} (expected host:port)")
    host = host.strip("[]") or "0.0.0.0"
    try:
        return host, int(port)
    except ValueError as exc:
        raise ConfigError(f"Invalid port in bind address {bind!r}") from exc


def _check_label_value(tag: str, name: str, value) -> None:
    if not isinstance(value, LABEL_VALUE_TYPES):
        raise ConfigError(
            f"Label {name!r} of rule {tag!r} has unsupported type {type(value).__name__}"
        )
    if isinstance(value, dict):
        for key, inner in value.items():
            _check_label_value(tag, f"{name}.{key}", inner)
    elif isinstance(value, list):
        for inner in value:
            _check_label_value(tag, name, inner)


def parse_rules(raw_rules) -> tuple[LabelRule, ...]:
    """Build LabelRule objects from the ``ScrapeConfig`` list of the config file."""
    if raw_rules is None:
        return ()
    if not isinstance(raw_rules, list):
        raise ConfigError("ScrapeConfig must be a list of {Tag, Labels} objects")

    rules = []
    for raw in raw_rules:
        if not isinstance(raw, dict):
            raise ConfigError(f"ScrapeConfig entry must be an object, got {raw!r}")
        tag = raw.get("Tag", raw.get("tag"))
        labels = raw.get("Labels", raw.get("labels")) or {}
        if not isinstance(tag, str):
            raise ConfigError(f"ScrapeConfig entry is missing a string Tag: {raw!r}")
        if not isinstance(labels, dict):
            raise ConfigError(f"Labels of rule {tag!r} must be an object")
        for name, value in labels.items():
            _check_label_value(tag, name, value)
        rules.append(LabelRule(tag=tag, labels=dict(labels)))
    return tuple(rules)


def load_config_file(path: str) -> dict:
    """Read a JSON (or YAML) config file and return Config keyword arguments.

    The file uses the keys ``SyslogBind``, ``LokiServer`` and ``ScrapeConfig``;
    snake_case tuning keys such as ``flush_interval`` are optional.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"Configuration file failed to load: {path} => {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Configuration file is not valid JSON/YAML: {path} => {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {path} must contain an object")

    kwargs: dict = {}
    if "SyslogBind" in data:
        kwargs["syslog_bind"] = str(data["SyslogBind"])
    if "LokiServer" in data:
        kwargs["loki_server"] = str(data["LokiServer"])
    kwargs["scrape_config"] = parse_rules(data.get("ScrapeConfig"))

    for key, cast in _TUNING_KEYS.items():
        if key in data:
            try:
                kwargs[key] = cast(data[key])
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"Invalid value for {key}: {data[key]!r}") from exc

    logger.info("Configuration file loaded successfully => %s", path)
    return kwargs


def load_config(argv=None) -> Config:
    """Build Config from defaults <- config file <- env vars <- CLI args.

    Pass argv for testability; when None, argparse reads sys.argv.
    """
    parser = argparse.ArgumentParser(description="Syslog to Loki shipper")
    parser.add_argument("-c", "--config", type=str, default=None,
                        help="path of config.json")
    parser.add_argument("--syslog-bind", type=str, default=None)
    parser.add_argument("--loki-server", type=str, default=None)
    parser.add_argument("--log-level", type=str, default=None)
    args = parser.parse_args(argv)

    path = args.config or os.environ.get("CONFIG_PATH", "./config.json")
    kwargs = load_config_file(path)

    env_overrides = {
        "syslog_bind": ("SYSLOG_BIND", str),
        "loki_server": ("LOKI_SERVER", str),
        "flush_interval": ("FLUSH_INTERVAL", float),
        "ready_interval": ("READY_INTERVAL", float),
        "log_level": ("LOG_LEVEL", str),
    }
    for key, (env_name, cast) in env_overrides.items():
        if env_name in os.environ:
            kwargs[key] = cast(os.environ[env_name])

    if args.syslog_bind is not None:
        kwargs["syslog_bind"] = args.syslog_bind
    if args.loki_server is not None:
        kwargs["loki_server"] = args.loki_server
    if args.log_level is not None:
        kwargs["log_level"] = args.log_level

    config = Config(**kwargs)
    if config.flush_interval <= 0 or config.ready_interval <= 0:
        raise ConfigError("flush_interval and ready_interval must be positive")
    if config.max_streams_per_push < 1 or config.queue_size < 1:
        raise ConfigError("max_streams_per_push and queue_size must be at least 1")
    if config.request_timeout <= 0:
        raise ConfigError("request_timeout must be positive")
    if config.ready_retries < 1:
        raise ConfigError("ready_retries must be at least 1")
    return config
