"""
pfm_config -- typed runtime settings.

Responsibility:
    The one place settings are read: an optional YAML file plus ``PFM_*``
    environment overrides, parsed into frozen dataclasses.

Architecture position:
    Configuration.  ``pfm_kernel`` never imports this package at runtime;
    ``pfm_kernel.db.engine.init_engine_from_settings`` and the batch
    orchestrator receive an ``AppSettings`` from the caller.
"""

from pfm_config.loader import ENV_OVERRIDES, load_settings, parse_settings
from pfm_config.schema import (
    AppSettings,
    DatabaseSettings,
    LoggingSettings,
    WorkerSettings,
)

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "ENV_OVERRIDES",
    "LoggingSettings",
    "WorkerSettings",
    "load_settings",
    "parse_settings",
]
