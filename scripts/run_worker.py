#!/usr/bin/env python3
"""
Run the batch job worker.

Loads settings (YAML file plus PFM_* environment overrides), configures
structured logging, initializes the database engine, and polls the job
queue for pending rule runs.

Usage:
    python3 scripts/run_worker.py                        # defaults + env
    python3 scripts/run_worker.py --config pfm.yaml      # settings file
    python3 scripts/run_worker.py --once                 # single tick, then exit
    python3 scripts/run_worker.py --create-tables        # create schema first
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

from pfm_batch.orchestrator import BatchOrchestrator
from pfm_config import load_settings
from pfm_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_settings,
)
from pfm_kernel.logging_config import configure_logging, get_logger

logger = get_logger("scripts.run_worker")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Poll and execute batch rule jobs")
    p.add_argument("--config", type=Path, help="YAML settings file")
    p.add_argument("--once", action="store_true", help="Run a single tick and exit")
    p.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before polling",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as exc:
        print(f"ERROR: could not load settings: {exc}", file=sys.stderr)
        return 1

    configure_logging(level=settings.logging.level)
    init_engine_from_settings(settings)
    if args.create_tables:
        create_tables()

    session_factory = get_session_factory()
    session = session_factory()
    try:
        orchestrator = BatchOrchestrator.from_session(session)
        worker = orchestrator.create_worker_from_settings(
            session_factory, settings.worker,
        )
    finally:
        session.close()

    if args.once:
        results = worker.tick()
        logger.info("worker_single_tick", extra={"jobs": len(results)})
        return 0

    worker.start()
    try:
        while worker.is_running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("worker_interrupted")
    finally:
        worker.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
