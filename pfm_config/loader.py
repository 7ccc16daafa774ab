"""
Settings Loader (``pfm_config.loader``).

Responsibility
--------------
Loads the optional YAML settings file, fills defaults, applies
environment-variable overrides, and returns a frozen
``pfm_config.schema.AppSettings``.

Architecture position
---------------------
**Config layer**.  Has no dependency on the kernel, the rule engine, or
the batch layer; those receive an ``AppSettings`` from the caller.

Invariants enforced
-------------------
* Every parse error raises ``ValueError`` naming the offending key.
* Unknown keys are rejected rather than silently ignored.
* Environment overrides win over file values, file values over defaults.

Failure modes
-------------
* Missing YAML file (explicit path)  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong value type or range  -> ``ValueError``.

Environment overrides
---------------------
==========================  ==================================
``PFM_DATABASE_URL``        ``database.url``
``PFM_LOG_LEVEL``           ``logging.level``
``PFM_WORKER_TICK_SECONDS`` ``worker.tick_interval_seconds``
``PFM_WORKER_BATCH_SIZE``   ``worker.batch_size``
==========================  ==================================
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from pfm_config.schema import (
    AppSettings,
    DatabaseSettings,
    LoggingSettings,
    WorkerSettings,
)

ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "PFM_DATABASE_URL": ("database", "url"),
    "PFM_LOG_LEVEL": ("logging", "level"),
    "PFM_WORKER_TICK_SECONDS": ("worker", "tick_interval_seconds"),
    "PFM_WORKER_BATCH_SIZE": ("worker", "batch_size"),
}

_SECTIONS = ("database", "logging", "worker")
_logger = logging.getLogger("pfm.config")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    return data


def parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "yes", "1", "on"):
        return True
    if isinstance(value, str) and value.lower() in ("false", "no", "0", "off"):
        return False
    raise ValueError(f"{key}: expected a boolean, got {value!r}")


def parse_positive_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key}: expected an integer, got {value!r}") from exc
    if number < 1:
        raise ValueError(f"{key}: must be at least 1, got {number}")
    return number


def parse_non_negative_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key}: expected an integer, got {value!r}") from exc
    if number < 0:
        raise ValueError(f"{key}: must not be negative, got {number}")
    return number


def parse_positive_float(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key}: expected a number, got {value!r}") from exc
    if number <= 0:
        raise ValueError(f"{key}: must be positive, got {number}")
    return number


def parse_log_level(key: str, value: Any) -> str:
    level = str(value).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(
            f"{key}: expected one of {', '.join(_LOG_LEVELS)}, got {value!r}"
        )
    return level


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"{name}: expected a mapping, got {section!r}")
    return section


def _reject_unknown(name: str, section: dict[str, Any], allowed: tuple[str, ...]) -> None:
    unknown = sorted(set(section) - set(allowed))
    if unknown:
        raise ValueError(f"{name}: unknown keys {', '.join(unknown)}")


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    """Parse DatabaseSettings from the ``database`` section."""
    defaults = DatabaseSettings()
    _reject_unknown("database", data, ("url", "echo", "pool_size", "max_overflow"))
    url = data.get("url", defaults.url)
    if not isinstance(url, str) or not url:
        raise ValueError(f"database.url: expected a non-empty string, got {url!r}")
    return DatabaseSettings(
        url=url,
        echo=parse_bool("database.echo", data.get("echo", defaults.echo)),
        pool_size=parse_positive_int(
            "database.pool_size", data.get("pool_size", defaults.pool_size),
        ),
        max_overflow=parse_non_negative_int(
            "database.max_overflow", data.get("max_overflow", defaults.max_overflow),
        ),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    """Parse LoggingSettings from the ``logging`` section."""
    _reject_unknown("logging", data, ("level",))
    return LoggingSettings(
        level=parse_log_level("logging.level", data.get("level", LoggingSettings.level)),
    )


def parse_worker(data: dict[str, Any]) -> WorkerSettings:
    """Parse WorkerSettings from the ``worker`` section."""
    defaults = WorkerSettings()
    _reject_unknown("worker", data, ("tick_interval_seconds", "batch_size"))
    return WorkerSettings(
        tick_interval_seconds=parse_positive_float(
            "worker.tick_interval_seconds",
            data.get("tick_interval_seconds", defaults.tick_interval_seconds),
        ),
        batch_size=parse_positive_int(
            "worker.batch_size", data.get("batch_size", defaults.batch_size),
        ),
    )


def apply_env_overrides(
    data: dict[str, Any], environ: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of ``data`` with the ``PFM_*`` overrides applied."""
    merged = dict(data)
    for name in _SECTIONS:
        merged[name] = dict(_section(data, name))
    for var, (section, key) in ENV_OVERRIDES.items():
        if var in environ:
            merged[section][key] = environ[var]
    return merged


def parse_settings(data: dict[str, Any]) -> AppSettings:
    """
    Parse a complete AppSettings from a settings dict.

    Raises:
        ValueError: on unknown sections or keys, or invalid values.
    """
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown settings sections: {', '.join(unknown)}")
    return AppSettings(
        database=parse_database(_section(data, "database")),
        logging=parse_logging(_section(data, "logging")),
        worker=parse_worker(_section(data, "worker")),
    )


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppSettings:
    """
    Load application settings.

    Preconditions:
        - ``path``, when given, points to a readable YAML file.
    Postconditions:
        - Returns a frozen ``AppSettings``; absent values take defaults.
    Raises:
        FileNotFoundError, yaml.YAMLError, ValueError (see module docs).
    """
    data = load_yaml_file(Path(path)) if path is not None else {}
    if environ is None:
        environ = os.environ
    settings = parse_settings(apply_env_overrides(data, environ))

    _logger.debug(
        "settings_loaded",
        extra={
            "source": str(path) if path is not None else None,
            "database_dialect": settings.database.url.split(":", 1)[0],
            "log_level": settings.logging.level,
        },
    )
    return settings
