"""
Process-wide engine and session factory.

Responsibility:
    Builds the SQLAlchemy engine from a URL or from ``AppSettings`` and
    hands out sessions.  The worker entry point initializes it once; the
    job worker opens one session per claim and per job from
    ``get_session_factory()``.

Architecture position: Kernel > DB.  Imports db/base.py only (plus the
    model packages inside ``create_tables``/``drop_tables``).

Invariants enforced:
    - Server databases get a ``QueuePool`` with pre-ping; SQLite keeps the
      dialect's default pool and ignores sizing.
    - Sessions keep attributes loaded after commit (``expire_on_commit=False``)
      so job DTOs can be read once the worker has committed.

Failure modes:
    - ``RuntimeError`` from any accessor called before initialization.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from pfm_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from pfm_config.schema import AppSettings

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
) -> Engine:
    """Create the engine and session factory, replacing any previous ones."""
    global _engine, _SessionFactory

    is_sqlite = database_url.startswith("sqlite")
    pool_options = {} if is_sqlite else {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": pool_pre_ping,
    }
    _engine = create_engine(database_url, echo=echo, **pool_options)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "pool_size": None if is_sqlite else pool_size,
            "echo": echo,
        },
    )
    return _engine


def init_engine_from_settings(settings: "AppSettings") -> Engine:
    db = settings.database
    return init_engine_from_url(
        db.url, echo=db.echo, pool_size=db.pool_size, max_overflow=db.max_overflow,
    )


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on normal exit, roll back and re-raise on error, always close.

    Usage:
        with session_scope() as session:
            BatchOrchestrator.from_session(session).submit_rule_group_run(request)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from pfm_kernel.db.base import Base
    import pfm_batch.models  # noqa: F401
    import pfm_kernel.models  # noqa: F401

    return Base.metadata


def create_tables() -> None:
    """Create every missing table, the batch job table included."""
    metadata = _metadata()
    metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": len(metadata.tables)})


def drop_tables() -> None:
    """Drop every table. FOR TESTING ONLY."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
