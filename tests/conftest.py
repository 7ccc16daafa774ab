"""
Shared pytest fixtures for the PFM rule engine tests.

Database fixtures use an in-memory SQLite engine on a StaticPool so that
every session (including the job worker's background thread) sees the
same schema and rows.
"""

import io
import json
import logging
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import pfm_batch.models  # noqa: F401
import pfm_kernel.models  # noqa: F401
from pfm_kernel.db.base import Base
from pfm_kernel.domain.clock import DeterministicClock
from pfm_kernel.logging_config import LogContext, StructuredFormatter


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: tests that start background threads")


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Ensure no LogContext fields leak between tests."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture JSON log lines emitted under the ``pfm`` namespace.

    Returns a callable that parses everything captured so far into a list
    of dicts.
    """
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    handler.setLevel(logging.DEBUG)

    root = logging.getLogger("pfm")
    previous_level = root.level
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)

    def records() -> list[dict]:
        handler.flush()
        return [
            json.loads(line)
            for line in stream.getvalue().splitlines()
            if line.strip()
        ]

    yield records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2026, 2, 1, 12, 0, 0))
