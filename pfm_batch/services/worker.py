"""
JobWorker -- In-process polling worker for the batch job queue.

Contract:
    Polls for PENDING jobs on a configurable interval, claims them in FIFO
    order, and executes each via ``BatchExecutor``.

Architecture: pfm_batch/services.  Uses pfm_batch.services.executor for
    claiming and execution.

Invariants enforced:
    - All timestamps from the injected Clock (through the executor).
    - At-most-once delivery: the claim (PENDING -> RUNNING) is committed
      before the job runs, so a job that crashes the worker is never
      picked up again.
    - Each job runs in its own session and is committed on its own.
    - Graceful shutdown: respects the stop signal between jobs.
"""

from __future__ import annotations

import threading
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from pfm_kernel.logging_config import get_logger

from pfm_batch.domain.types import BatchRunResult
from pfm_batch.services.executor import BatchExecutor

logger = get_logger("batch.worker")


class JobWorker:
    """In-process polling worker for batch jobs.

    Contract:
        - ``tick()`` claims up to ``batch_size`` PENDING jobs and runs them.
        - ``start()`` / ``stop()`` for background thread operation.
        - Respects stop signal between jobs.

    Non-goals:
        - NOT a distributed queue (no leases, no heartbeats).
        - Does NOT retry FAILED jobs.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        executor_factory: Callable[[Session], BatchExecutor],
        tick_interval_seconds: float = 5.0,
        batch_size: int = 10,
    ):
        self._session_factory = session_factory
        self._executor_factory = executor_factory
        self._tick_interval = tick_interval_seconds
        self._batch_size = batch_size
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> tuple[BatchRunResult, ...]:
        """Claim and execute pending jobs (public for testing).

        Returns the results of the jobs executed in this tick.
        """
        job_ids = self._claim()
        results: list[BatchRunResult] = []

        for job_id in job_ids:
            # Jobs claimed but not started stay RUNNING; they are not re-queued.
            if self._stop_event.is_set():
                logger.warning(
                    "worker_stopped_with_claimed_jobs",
                    extra={"unstarted": len(job_ids) - len(results)},
                )
                break
            result = self._execute(job_id)
            if result is not None:
                results.append(result)

        return tuple(results)

    def start(self) -> None:
        """Start the worker in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="batch-worker",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "worker_started",
            extra={"tick_interval": self._tick_interval, "batch_size": self._batch_size},
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the worker to finish the current job.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("worker_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Background polling loop. Exits when stop_event is set."""
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("worker_tick_exception")
            # Wait for interval or until stopped
            self._stop_event.wait(timeout=self._tick_interval)

    def _claim(self) -> tuple[UUID, ...]:
        session = self._session_factory()
        try:
            job_ids = self._executor_factory(session).claim_pending(self._batch_size)
            session.commit()
            return job_ids
        except Exception:
            session.rollback()
            logger.exception("worker_claim_failed")
            return ()
        finally:
            session.close()

    def _execute(self, job_id: UUID) -> BatchRunResult | None:
        session = self._session_factory()
        try:
            result = self._executor_factory(session).execute_claimed(job_id)
            session.commit()
            return result
        except Exception:
            session.rollback()
            logger.exception("worker_job_failed", extra={"job_id": str(job_id)})
            return None
        finally:
            session.close()
