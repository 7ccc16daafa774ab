"""
Write-side base for kernel services.

Invariants enforced:
    Services flush inside the caller's transaction and never commit or
    roll back.  The batch executor's caller (the job worker, a script or
    a test) owns the transaction; the rule tasks add one SAVEPOINT per
    journal underneath it.
"""

from abc import ABC
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from pfm_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)
RowType = TypeVar("RowType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Session holder for services that mutate ``ModelType`` rows.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT offer read APIs; those live in ``pfm_kernel.selectors``.
    """

    def __init__(self, session: Session):
        self.session = session

    def _get_or_create(self, model: type[RowType], **criteria: Any) -> RowType:
        """Return the row matching ``criteria``, inserting it when absent."""
        row = self.session.execute(
            select(model).filter_by(**criteria)
        ).scalar_one_or_none()
        if row is None:
            row = model(**criteria)
            self.session.add(row)
            self.session.flush()
        return row
