"""Configuration: YAML file sections merged with environment-variable overrides."""

import logging
import os
from dataclasses import dataclass, fields, replace

import yaml

from weblog_analytics.errors import ConfigError

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
STORAGE_BACKENDS = ("memory", "file")

# YAML section -> {yaml key: Config field}
_SECTIONS = {
    "server": {"host": "host", "port": "port"},
    "ingest": {
        "watch_dir": "watch_dir",
        "read_from_start": "read_from_start",
        "workers": "workers",
        "queue_size": "queue_size",
    },
    "storage": {
        "backend": "storage_backend",
        "path": "storage_path",
        "lock_stripes": "lock_stripes",
    },
    "logging": {"level": "log_level"},
}

_ENV_VARS = {
    "SERVER_HOST": "host",
    "SERVER_PORT": "port",
    "WATCH_DIR": "watch_dir",
    "READ_FROM_START": "read_from_start",
    "INGEST_WORKERS": "workers",
    "INGEST_QUEUE_SIZE": "queue_size",
    "STORAGE_BACKEND": "storage_backend",
    "STORAGE_PATH": "storage_path",
    "LOCK_STRIPES": "lock_stripes",
    "LOG_LEVEL": "log_level",
}


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    host: str = "0.0.0.0"
    port: int = 8080
    watch_dir: str = ""
    read_from_start: bool = True
    workers: int = 4
    queue_size: int = 10000
    storage_backend: str = "memory"
    storage_path: str = "./data/page_views.jsonl"
    lock_stripes: int = 64
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: dict) -> "Config":
        """Build a Config from a nested dict shaped like config.yml."""
        values = {}
        for section, keys in _SECTIONS.items():
            body = d.get(section) or {}
            if not isinstance(body, dict):
                raise ConfigError(f"section '{section}' must be a mapping")
            for yaml_key, field_name in keys.items():
                if yaml_key in body:
                    values[field_name] = body[yaml_key]
        return _coerce(cls(), values)


def _coerce(base: Config, values: dict) -> Config:
    """Apply raw values onto *base*, converting each to its field's type."""
    types = {f.name: f.type for f in fields(Config)}
    converted = {}
    for name, raw in values.items():
        kind = types[name]
        try:
            if kind in (bool, "bool"):
                converted[name] = _parse_bool(raw)
            elif kind in (int, "int"):
                converted[name] = int(raw)
            else:
                converted[name] = "" if raw is None else str(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid value for {name}: {raw!r}") from exc
    return replace(base, **converted)


def validate(config: Config) -> Config:
    """Reject values the service cannot run with. Returns the config unchanged."""
    if config.storage_backend not in STORAGE_BACKENDS:
        raise ConfigError(
            f"storage backend must be one of {STORAGE_BACKENDS}, got {config.storage_backend!r}"
        )
    if config.workers < 1:
        raise ConfigError(f"workers must be >= 1, got {config.workers}")
    if config.queue_size < 1:
        raise ConfigError(f"queue_size must be >= 1, got {config.queue_size}")
    if config.lock_stripes < 1:
        raise ConfigError(f"lock_stripes must be >= 1, got {config.lock_stripes}")
    if config.log_level.upper() not in LOG_LEVELS:
        raise ConfigError(f"unknown log level: {config.log_level!r}")
    if not 0 <= config.port <= 65535:
        raise ConfigError(f"port out of range: {config.port}")
    return config


def load_yaml(path: str) -> dict:
    """Load a YAML mapping from *path*; a missing or invalid file yields {}."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as exc:
        logger.warning("Invalid YAML in %s, using defaults: %s", path, exc)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: top level is not a mapping", path)
        return {}
    return data


def load_config(path: str | None = None, environ=None) -> Config:
    """Build Config from the YAML file, then environment overrides.

    The file path comes from *path*, then ``CONFIG_PATH``, then ``config.yml``.
    """
    environ = os.environ if environ is None else environ
    path = path or environ.get("CONFIG_PATH", "config.yml")

    config = Config.from_dict(load_yaml(path))
    overrides = {field: environ[var] for var, field in _ENV_VARS.items() if var in environ}
    config = _coerce(config, overrides)
    config = replace(config, log_level=config.log_level.upper())
    return validate(config)
