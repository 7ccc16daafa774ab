"""
Runtime settings schema.

Typed, immutable settings for the database, logging, and the job worker.
YAML files are parsed into these types by ``pfm_config.loader``; nothing
else in the application reads configuration files or environment
variables directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings for ``pfm_kernel.db.engine``."""

    url: str = "sqlite:///pfm.db"
    echo: bool = False
    pool_size: int = 5  # ignored for SQLite
    max_overflow: int = 10  # ignored for SQLite


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Root level for the ``pfm`` logger namespace."""

    level: str = "INFO"


# ---------------------------------------------------------------------------
# Job worker
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkerSettings:
    """Polling cadence and claim size of ``pfm_batch.services.worker.JobWorker``."""

    tick_interval_seconds: float = 5.0
    batch_size: int = 10


@dataclass(frozen=True)
class AppSettings:
    """Complete application settings."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    worker: WorkerSettings = field(default_factory=WorkerSettings)
