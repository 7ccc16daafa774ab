"""
Structured JSON logging for the rule engine and its batch jobs.

Contract:
    Every record emitted under the ``pfm`` logger namespace is rendered as
    one JSON object per line.  Run-scoped identifiers bound through
    ``LogContext`` (job, user, rule group, rule, journal) are merged into
    every record without being passed to each call.

Architecture: pfm_kernel.  Pure stdlib; imported by every layer.

Invariants enforced:
    - ``configure_logging()`` installs its handler once per process until
      ``reset_logging()`` is called.
    - Context fields are stored as strings; unset fields never appear.
"""

from __future__ import annotations

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "job_id",
    "user_id",
    "rule_group_id",
    "rule_id",
    "journal_id",
)

# =============================================================================
# Context propagation
# =============================================================================

_context: ContextVar[dict[str, str]] = ContextVar("pfm_log_context", default={})


def _merged(fields: dict[str, Any]) -> dict[str, str]:
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context fields: {', '.join(sorted(unknown))}")
    merged = dict(_context.get())
    merged.update({k: str(v) for k, v in fields.items() if v is not None})
    return merged


class LogContext:
    """Context-local identifiers attached to every log record.

    Backed by a single ``ContextVar`` so values follow threads and tasks
    without leaking between them.  The stored dict is never mutated in
    place; each change installs a new one.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        """Set fields for the rest of the current context. None is ignored."""
        _context.set(_merged(fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[type[LogContext]]:
        """Set fields for the duration of a ``with`` block, then restore."""
        token = _context.set(_merged(fields))
        try:
            yield LogContext
        finally:
            _context.reset(token)


# =============================================================================
# JSON formatter
# =============================================================================

# Attributes every LogRecord carries; anything else came from ``extra=``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    return repr(value)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line.

    Exceptions contribute ``exc_type``, ``exc_message``, the ``code`` of
    ``PfmError`` subclasses as ``exc_code``, every public attribute of the
    exception as ``exc_<name>``, and the formatted ``traceback``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


# =============================================================================
# Logger factory and setup
# =============================================================================

_LOGGER_PREFIX = "pfm"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Return ``pfm.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``pfm`` logger (idempotent).

    The ``pfm`` logger stops propagating so records are not duplicated by
    handlers an embedding application installs on the root logger.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())

    pfm_logger = logging.getLogger(_LOGGER_PREFIX)
    pfm_logger.setLevel(level)
    pfm_logger.propagate = False
    pfm_logger.addHandler(target)


def reset_logging() -> None:
    """Undo ``configure_logging()``. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    pfm_logger = logging.getLogger(_LOGGER_PREFIX)
    pfm_logger.handlers.clear()
    pfm_logger.setLevel(logging.WARNING)
    pfm_logger.propagate = True
