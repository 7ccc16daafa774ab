"""Database layer: declarative base, UUID column type, engine and sessions."""

from pfm_kernel.db.base import Base, TrackedBase, UUIDString
from pfm_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_settings,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "create_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_settings",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
