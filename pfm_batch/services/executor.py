"""
BatchExecutor -- job lifecycle for the batch job queue.

Contract:
    Orchestrates the batch job lifecycle: submit (with idempotency key),
    claim, execute, cancel, query.

Architecture: pfm_batch/services.  Imports from pfm_batch.domain,
    pfm_batch.models, pfm_batch.tasks, and the kernel.

Invariants enforced:
    - Idempotency via UNIQUE ``idempotency_key`` (one row per submission).
    - All timestamps from the injected Clock.
    - Concurrency guard: the job row is locked (SELECT ... FOR UPDATE)
      before any status transition.
    - At-most-once: a job leaves PENDING exactly once and a FAILED job is
      never re-queued.
    - A task exception marks the job FAILED and is returned in the
      BatchRunResult; it does not escape ``execute_job``.
"""

from __future__ import annotations

import time
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from pfm_kernel.domain.clock import Clock, SystemClock
from pfm_kernel.exceptions import (
    BatchAlreadyRunningError,
    BatchIdempotencyError,
    BatchJobNotFoundError,
    TaskNotRegisteredError,
)
from pfm_kernel.logging_config import LogContext, get_logger

from pfm_batch.domain.types import BatchJob, BatchJobStatus, BatchRunResult
from pfm_batch.models.batch import BatchJobModel
from pfm_batch.tasks.base import TaskRegistry

logger = get_logger("batch.executor")

UNHANDLED_ERROR_CODE = "UNHANDLED_EXCEPTION"


class BatchExecutor:
    """Batch job execution engine.

    Contract:
        - ``submit_job()`` creates a PENDING job (idempotency check).
        - ``execute_job()`` runs a PENDING job to COMPLETED or FAILED.
        - ``claim_pending()`` / ``execute_claimed()`` split the same work
          for the polling worker.
        - ``cancel_job()`` marks a PENDING job as CANCELLED.
        - ``get_job()`` / ``list_jobs()`` for queries.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT manage background threads -- that is the worker's job.
        - Does NOT retry.
    """

    def __init__(
        self,
        session: Session,
        task_registry: TaskRegistry,
        clock: Clock | None = None,
    ):
        self._session = session
        self._task_registry = task_registry
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Submit
    # -------------------------------------------------------------------------

    def submit_job(
        self,
        job_name: str,
        task_type: str,
        parameters: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
        actor_id: UUID | None = None,
        correlation_id: str | None = None,
    ) -> BatchJob:
        """Create a new PENDING batch job.

        ``idempotency_key`` identifies the submission; it defaults to a
        fresh key, so only a retried submit of the same request is caught.

        Raises:
            TaskNotRegisteredError: If task_type is not in the registry.
            ValueError / KeyError: If the task rejects ``parameters``.
            BatchIdempotencyError: If idempotency_key is already used.
        """
        task = self._task_registry.get(task_type)
        task.validate_parameters(parameters or {})

        key = idempotency_key or str(uuid4())
        existing = self._session.execute(
            select(BatchJobModel).where(BatchJobModel.idempotency_key == key)
        ).scalar_one_or_none()

        if existing is not None:
            raise BatchIdempotencyError(key, str(existing.id))

        now = self._clock.now()
        job_id = uuid4()

        dto = BatchJob(
            job_id=job_id,
            job_name=job_name,
            task_type=task_type,
            status=BatchJobStatus.PENDING,
            idempotency_key=key,
            parameters=parameters or {},
            created_at=now,
            created_by=actor_id,
            correlation_id=correlation_id or str(uuid4()),
        )

        model = BatchJobModel.from_dto(dto)
        model.updated_at = now
        self._session.add(model)
        self._session.flush()

        logger.info(
            "batch_job_submitted",
            extra={
                "job_id": str(job_id),
                "job_name": job_name,
                "task_type": task_type,
                "idempotency_key": key,
            },
        )

        return dto

    # -------------------------------------------------------------------------
    # Execute
    # -------------------------------------------------------------------------

    def execute_job(self, job_id: UUID) -> BatchRunResult:
        """Execute a PENDING job.

        The job row is locked (FOR UPDATE) for the whole run.

        Raises:
            BatchJobNotFoundError: If job_id does not exist.
            BatchAlreadyRunningError: If the job is not PENDING.
        """
        job_model = self._lock_job(job_id)

        if job_model.status != BatchJobStatus.PENDING.value:
            raise BatchAlreadyRunningError(
                job_model.job_name, str(job_id), job_model.status,
            )

        self._mark_running(job_model)
        return self._run(job_model)

    def claim_pending(self, limit: int) -> tuple[UUID, ...]:
        """Move up to ``limit`` PENDING jobs to RUNNING, oldest first.

        The caller commits the claim before executing, so a crash after
        this point leaves the jobs RUNNING rather than re-delivering them.
        """
        models = self._session.execute(
            select(BatchJobModel)
            .where(BatchJobModel.status == BatchJobStatus.PENDING.value)
            .order_by(BatchJobModel.created_at, BatchJobModel.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        ).scalars().all()

        for job_model in models:
            self._mark_running(job_model)
            logger.info(
                "batch_job_claimed",
                extra={"job_id": str(job_model.id), "task_type": job_model.task_type},
            )

        return tuple(m.id for m in models)

    def execute_claimed(self, job_id: UUID) -> BatchRunResult:
        """Execute a job previously moved to RUNNING by ``claim_pending``.

        Raises:
            BatchJobNotFoundError: If job_id does not exist.
            BatchAlreadyRunningError: If the job is not in the claimed state.
        """
        job_model = self._lock_job(job_id)

        if (
            job_model.status != BatchJobStatus.RUNNING.value
            or job_model.completed_at is not None
        ):
            raise BatchAlreadyRunningError(
                job_model.job_name, str(job_id), job_model.status,
            )

        return self._run(job_model)

    # -------------------------------------------------------------------------
    # Cancel
    # -------------------------------------------------------------------------

    def cancel_job(self, job_id: UUID, reason: str) -> BatchJob:
        """Cancel a PENDING job.

        A RUNNING job has no cancellation checkpoint and cannot be cancelled.

        Raises:
            BatchJobNotFoundError: If job_id does not exist.
            ValueError: If the job is not PENDING.
        """
        job_model = self._lock_job(job_id)

        if job_model.status != BatchJobStatus.PENDING.value:
            raise ValueError(
                f"Cannot cancel job in status {job_model.status}"
            )

        job_model.status = BatchJobStatus.CANCELLED.value
        job_model.completed_at = self._clock.now()
        job_model.error_summary = f"Cancelled: {reason}"
        self._session.flush()

        logger.info(
            "batch_job_cancelled",
            extra={"job_id": str(job_id), "reason": reason},
        )

        return job_model.to_dto()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_job(self, job_id: UUID) -> BatchJob:
        """Get a batch job by ID.

        Raises:
            BatchJobNotFoundError: If job_id does not exist.
        """
        model = self._session.get(BatchJobModel, job_id)
        if model is None:
            raise BatchJobNotFoundError(str(job_id))
        return model.to_dto()

    def list_jobs(
        self,
        status: BatchJobStatus | None = None,
        task_type: str | None = None,
    ) -> tuple[BatchJob, ...]:
        """List jobs, oldest first, optionally filtered."""
        stmt = select(BatchJobModel)
        if status is not None:
            stmt = stmt.where(BatchJobModel.status == status.value)
        if task_type is not None:
            stmt = stmt.where(BatchJobModel.task_type == task_type)
        stmt = stmt.order_by(BatchJobModel.created_at, BatchJobModel.id)
        return tuple(m.to_dto() for m in self._session.execute(stmt).scalars().all())

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _lock_job(self, job_id: UUID) -> BatchJobModel:
        job_model = self._session.execute(
            select(BatchJobModel)
            .where(BatchJobModel.id == job_id)
            .with_for_update()
        ).scalar_one_or_none()

        if job_model is None:
            raise BatchJobNotFoundError(str(job_id))
        return job_model

    def _mark_running(self, job_model: BatchJobModel) -> None:
        job_model.status = BatchJobStatus.RUNNING.value
        job_model.started_at = self._clock.now()
        self._session.flush()

    def _run(self, job_model: BatchJobModel) -> BatchRunResult:
        start_time = time.monotonic()

        with LogContext.bind(
            job_id=str(job_model.id), correlation_id=job_model.correlation_id,
        ):
            try:
                task = self._task_registry.get(job_model.task_type)
            except TaskNotRegisteredError as exc:
                logger.error(
                    "batch_job_task_missing",
                    extra={"task_type": job_model.task_type},
                )
                return self._fail_job(job_model, exc, start_time)

            logger.info(
                "batch_job_started",
                extra={"job_name": job_model.job_name, "task_type": job_model.task_type},
            )

            try:
                result = task.run(
                    parameters=job_model.parameters or {},
                    session=self._session,
                    as_of=job_model.started_at,
                )
            except Exception as exc:
                logger.error(
                    "batch_job_failed",
                    extra={"task_type": job_model.task_type},
                    exc_info=True,
                )
                return self._fail_job(job_model, exc, start_time)

            completed_at = self._clock.now()
            job_model.status = BatchJobStatus.COMPLETED.value
            job_model.result_data = result.result_data
            job_model.completed_at = completed_at
            self._session.flush()

            total_duration = int((time.monotonic() - start_time) * 1000)
            logger.info(
                "batch_job_completed",
                extra={"duration_ms": total_duration, "result": result.result_data},
            )

        return BatchRunResult(
            job_id=job_model.id,
            status=BatchJobStatus.COMPLETED,
            result_data=result.result_data,
            started_at=job_model.started_at,
            completed_at=completed_at,
            duration_ms=total_duration,
            correlation_id=job_model.correlation_id,
        )

    def _fail_job(
        self,
        job_model: BatchJobModel,
        exc: Exception,
        start_time: float,
    ) -> BatchRunResult:
        """Mark job as FAILED and return result."""
        error_code = getattr(exc, "code", None) or UNHANDLED_ERROR_CODE
        job_model.status = BatchJobStatus.FAILED.value
        job_model.completed_at = self._clock.now()
        job_model.error_code = error_code
        job_model.error_summary = f"{type(exc).__name__}: {exc}"
        self._session.flush()

        total_duration = int((time.monotonic() - start_time) * 1000)

        return BatchRunResult(
            job_id=job_model.id,
            status=BatchJobStatus.FAILED,
            error_code=error_code,
            error_message=str(exc),
            started_at=job_model.started_at,
            completed_at=job_model.completed_at,
            duration_ms=total_duration,
            correlation_id=job_model.correlation_id,
        )
