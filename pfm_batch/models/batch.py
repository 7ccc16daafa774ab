"""
ORM model for the batch job queue.

Contract:
    One ``batch_jobs`` row per submitted rule run.  The row is the queue
    entry and the run record at once: workers claim rows by status and the
    executor writes the outcome back onto the same row.

Architecture: pfm_batch/models. Imports from pfm_kernel.db.base only.

Invariants enforced:
    - ``idempotency_key`` is UNIQUE.
    - ``parameters`` and ``result_data`` hold JSON-safe dicts only.
    - Claims scan ``(status, created_at)``, which is indexed.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pfm_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from pfm_batch.domain.types import BatchJob

# Columns copied one-to-one between the row and the BatchJob snapshot.
_SHARED_COLUMNS = (
    "job_name",
    "task_type",
    "idempotency_key",
    "result_data",
    "created_at",
    "started_at",
    "completed_at",
    "correlation_id",
    "error_code",
    "error_summary",
)


class BatchJobModel(TrackedBase):
    """A queued or finished rule run."""

    __tablename__ = "batch_jobs"

    __table_args__ = (
        Index("ix_batch_jobs_status_created", "status", "created_at"),
        Index("ix_batch_jobs_task_type", "task_type"),
    )

    job_name: Mapped[str] = mapped_column(String(200), nullable=False)
    task_type: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)

    # Serialized RunRequest in, RuleRunSummary out.
    parameters: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    result_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString())
    correlation_id: Mapped[str | None] = mapped_column(String(200))
    error_code: Mapped[str | None] = mapped_column(String(100))
    error_summary: Mapped[str | None] = mapped_column(Text)

    def to_dto(self) -> BatchJob:
        from pfm_batch.domain.types import BatchJob, BatchJobStatus

        return BatchJob(
            job_id=self.id,
            status=BatchJobStatus(self.status),
            parameters=self.parameters or {},
            created_by=self.created_by_id,
            **{name: getattr(self, name) for name in _SHARED_COLUMNS},
        )

    @classmethod
    def from_dto(cls, dto: BatchJob) -> BatchJobModel:
        return cls(
            id=dto.job_id,
            status=dto.status.value,
            parameters=dto.parameters or None,
            created_by_id=dto.created_by,
            **{name: getattr(dto, name) for name in _SHARED_COLUMNS},
        )

    def __repr__(self) -> str:
        return f"<BatchJobModel {self.task_type} {self.status}>"
