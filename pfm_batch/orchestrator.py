"""
BatchOrchestrator -- DI container for the batch job system.

Contract:
    Wires the TaskRegistry with the rule engine tasks, creates
    BatchExecutor, and optionally creates JobWorker.  Single place where
    all batch dependencies are composed.

Architecture: pfm_batch (top-level).  This is the canonical entry point
    for submitting and running batch rule jobs.

Invariants enforced:
    - Clock injection (executor and worker receive the same Clock).
    - No kernel imports of pfm_batch (orchestrator lives here).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from pfm_kernel.domain.clock import Clock, SystemClock
from pfm_kernel.logging_config import get_logger

from pfm_batch.domain.types import BatchJob, RunRequest
from pfm_batch.services.executor import BatchExecutor
from pfm_batch.services.worker import JobWorker
from pfm_batch.tasks.base import TaskRegistry
from pfm_batch.tasks.rule_tasks import ApplyRuleGroupTask, ApplyRuleTask

if TYPE_CHECKING:
    from pfm_config.schema import WorkerSettings

logger = get_logger("batch.orchestrator")

APPLY_RULE_GROUP = "rules.apply_rule_group"
APPLY_RULE = "rules.apply_rule"


def _default_task_registry() -> TaskRegistry:
    """Create a TaskRegistry pre-loaded with the rule engine tasks."""
    return TaskRegistry((ApplyRuleGroupTask(), ApplyRuleTask()))


class BatchOrchestrator:
    """DI container for the batch job system.

    Contract:
        - ``from_session()`` factory creates a fully wired orchestrator.
        - ``create_executor()`` returns a BatchExecutor.
        - ``create_worker()`` returns a JobWorker for background use.
        - ``submit_rule_group_run()`` / ``submit_rule_run()`` enqueue runs.

    Non-goals:
        - Does NOT start the worker automatically -- caller decides.
        - Does NOT manage session lifecycle -- caller controls commits.
    """

    def __init__(
        self,
        session: Session,
        task_registry: TaskRegistry,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
    ) -> None:
        self._session = session
        self._task_registry = task_registry
        self._clock = clock or SystemClock()
        self._actor_id = actor_id or uuid4()

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_session(
        cls,
        session: Session,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
        task_registry: TaskRegistry | None = None,
    ) -> BatchOrchestrator:
        """Create a fully wired BatchOrchestrator from a session.

        Args:
            session: SQLAlchemy session for persistence.
            clock: Optional clock for deterministic testing.
            actor_id: Optional actor UUID recorded on submitted jobs.
            task_registry: Optional pre-configured registry. If None,
                uses the default registry with the rule engine tasks.
        """
        registry = task_registry if task_registry is not None else _default_task_registry()
        return cls(
            session=session,
            task_registry=registry,
            clock=clock or SystemClock(),
            actor_id=actor_id,
        )

    # -------------------------------------------------------------------------
    # Executor / worker
    # -------------------------------------------------------------------------

    def create_executor(self, session: Session | None = None) -> BatchExecutor:
        """Create a BatchExecutor wired with the orchestrator's dependencies.

        Args:
            session: Optional session override. If None, uses the
                orchestrator's session.
        """
        return BatchExecutor(
            session=session or self._session,
            task_registry=self._task_registry,
            clock=self._clock,
        )

    def create_worker(
        self,
        session_factory: Callable[[], Session],
        tick_interval_seconds: float = 5.0,
        batch_size: int = 10,
    ) -> JobWorker:
        """Create a JobWorker wired with the orchestrator's dependencies.

        Args:
            session_factory: Callable returning a new session per claim/job.
            tick_interval_seconds: Polling interval.
            batch_size: Max jobs claimed per tick.
        """
        clock = self._clock
        registry = self._task_registry

        def executor_factory(session: Session) -> BatchExecutor:
            return BatchExecutor(session=session, task_registry=registry, clock=clock)

        return JobWorker(
            session_factory=session_factory,
            executor_factory=executor_factory,
            tick_interval_seconds=tick_interval_seconds,
            batch_size=batch_size,
        )

    def create_worker_from_settings(
        self,
        session_factory: Callable[[], Session],
        settings: WorkerSettings,
    ) -> JobWorker:
        return self.create_worker(
            session_factory,
            tick_interval_seconds=settings.tick_interval_seconds,
            batch_size=settings.batch_size,
        )

    # -------------------------------------------------------------------------
    # Submission helpers
    # -------------------------------------------------------------------------

    def submit_rule_group_run(
        self,
        request: RunRequest,
        job_name: str | None = None,
        idempotency_key: str | None = None,
    ) -> BatchJob:
        """Enqueue a PENDING job applying a rule group.

        Raises:
            ValueError: If ``request`` names no rule group.
            BatchIdempotencyError: If ``idempotency_key`` is already used.
        """
        if request.rule_group_id is None:
            raise ValueError("rule group run requires rule_group_id")
        return self.create_executor().submit_job(
            job_name=job_name or f"Apply rule group {request.rule_group_id}",
            task_type=APPLY_RULE_GROUP,
            parameters=request.to_parameters(),
            idempotency_key=idempotency_key,
            actor_id=self._actor_id,
        )

    def submit_rule_run(
        self,
        request: RunRequest,
        job_name: str | None = None,
        idempotency_key: str | None = None,
    ) -> BatchJob:
        """Enqueue a PENDING job applying a single rule.

        Raises:
            ValueError: If ``request`` names no rule.
            BatchIdempotencyError: If ``idempotency_key`` is already used.
        """
        if request.rule_id is None:
            raise ValueError("rule run requires rule_id")
        return self.create_executor().submit_job(
            job_name=job_name or f"Apply rule {request.rule_id}",
            task_type=APPLY_RULE,
            parameters=request.to_parameters(),
            idempotency_key=idempotency_key,
            actor_id=self._actor_id,
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def task_registry(self) -> TaskRegistry:
        return self._task_registry

    @property
    def actor_id(self) -> UUID:
        return self._actor_id
