"""
Declarative base for every ORM model in the rule engine.

Responsibility:
    One ``Base`` shared by ``pfm_kernel.models`` and ``pfm_batch.models``
    so ``Base.metadata.create_all()`` builds the whole schema.

Architecture position:
    Kernel > DB.  Lowest import target in the kernel; imports nothing from
    models, selectors, services or outer packages.

Invariants enforced:
    - Primary keys are uuid4 values, stored portably as ``String(36)``.
    - ``Decimal`` annotations map to ``Numeric(38, 9)``; money is never float.
    - ``datetime`` annotations map to timezone-aware ``DateTime``.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID column stored as its 36-character string form.

    Binds accept either ``UUID`` objects or their string form; results are
    always ``UUID``.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(UUID(str(value)))

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Declarative base; every table gets a uuid4 ``id`` primary key."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Abstract base adding ``created_at`` / ``updated_at``.

    Both default to the database clock.  Callers that need a deterministic
    ``created_at`` (queue ordering, tests) set it explicitly.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False,
    )
