"""
pfm_batch.domain.types -- Pure frozen dataclasses for the job queue.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.

Invariants enforced:
    - All DTOs are frozen dataclasses (immutable).
    - BatchJob carries an ``idempotency_key``; it is UNIQUE per submission.
    - RunRequest crosses the queue only in its explicit JSON-safe form
      (``to_parameters`` / ``from_parameters``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID


# =============================================================================
# Status enums
# =============================================================================


class BatchJobStatus(str, Enum):
    """Job-level lifecycle status."""

    PENDING = "pending"  # Submitted, not yet claimed
    RUNNING = "running"  # Claimed by a worker or executing
    COMPLETED = "completed"  # Task returned normally
    FAILED = "failed"  # Task raised; never re-queued
    CANCELLED = "cancelled"  # Cancelled before execution

    @property
    def is_terminal(self) -> bool:
        return self in (
            BatchJobStatus.COMPLETED,
            BatchJobStatus.FAILED,
            BatchJobStatus.CANCELLED,
        )


# =============================================================================
# Run request
# =============================================================================


@dataclass(frozen=True)
class RunRequest:
    """Parameters of one batch rule run.

    ``rule_group_id`` is None for single-rule runs, where ``rule_id`` names
    the rule instead.  An empty ``account_ids`` means no account filter;
    unset dates mean unbounded.
    """

    rule_group_id: UUID | None
    user_id: UUID
    account_ids: tuple[UUID, ...] = ()
    start_date: date | None = None
    end_date: date | None = None
    rule_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.user_id is None:
            raise ValueError("user_id is required")
        if (self.rule_group_id is None) == (self.rule_id is None):
            raise ValueError("exactly one of rule_group_id and rule_id is required")
        if (
            self.start_date is not None
            and self.end_date is not None
            and self.start_date > self.end_date
        ):
            raise ValueError(
                f"start_date {self.start_date} is after end_date {self.end_date}"
            )
        object.__setattr__(self, "account_ids", tuple(self.account_ids))

    def to_parameters(self) -> dict[str, Any]:
        """JSON-safe dict stored on the job row."""
        params: dict[str, Any] = {
            "user_id": str(self.user_id),
            "account_ids": [str(a) for a in self.account_ids],
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }
        if self.rule_group_id is not None:
            params["rule_group_id"] = str(self.rule_group_id)
        if self.rule_id is not None:
            params["rule_id"] = str(self.rule_id)
        return params

    @classmethod
    def from_parameters(cls, params: dict[str, Any]) -> RunRequest:
        """Inverse of ``to_parameters``.

        Raises:
            KeyError: ``user_id`` missing.
            ValueError: malformed id or date, or inconsistent fields.
        """

        def _uuid(value: Any) -> UUID | None:
            return UUID(str(value)) if value else None

        def _date(value: Any) -> date | None:
            return date.fromisoformat(value) if value else None

        return cls(
            rule_group_id=_uuid(params.get("rule_group_id")),
            user_id=UUID(str(params["user_id"])),
            account_ids=tuple(UUID(str(a)) for a in params.get("account_ids") or ()),
            start_date=_date(params.get("start_date")),
            end_date=_date(params.get("end_date")),
            rule_id=_uuid(params.get("rule_id")),
        )


# =============================================================================
# Job DTOs
# =============================================================================


@dataclass(frozen=True)
class BatchJob:
    """Immutable snapshot of a batch job."""

    job_id: UUID
    job_name: str  # Human-readable label (e.g., "Apply 'Groceries' to 2024")
    task_type: str  # Registered task key (e.g., "rules.apply_rule_group")
    status: BatchJobStatus
    idempotency_key: str  # UNIQUE constraint
    parameters: dict[str, Any] = field(default_factory=dict)
    result_data: dict[str, Any] | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_by: UUID | None = None
    correlation_id: str | None = None
    error_code: str | None = None
    error_summary: str | None = None


@dataclass(frozen=True)
class BatchRunResult:
    """Immutable result of executing one batch job.

    Returned by ``BatchExecutor.execute_job()``.
    """

    job_id: UUID
    status: BatchJobStatus
    result_data: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    correlation_id: str | None = None
