"""
Read-side base for the query collaborators the rule runners consume.

Architecture position: Kernel > Selectors.  May import from db/ and
    models/.  MUST NOT import from services/ or outer packages.

Invariants enforced:
    - Selectors never add, delete, flush or commit.
    - The caller owns the session; a selector only borrows it.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import Session

from pfm_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Holds the borrowed session and runs ``select()`` statements."""

    def __init__(self, session: Session):
        self.session = session

    def _all(self, stmt: Select) -> list[ModelType]:
        return list(self.session.execute(stmt).scalars().all())

    def _one_or_none(self, stmt: Select) -> ModelType | None:
        return self.session.execute(stmt).scalar_one_or_none()
