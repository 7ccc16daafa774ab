"""
Task protocol and registry for the job queue.

Contract:
    A job row names its task by ``task_type``; the executor looks the task
    up in a ``TaskRegistry`` and calls ``run()`` with the row's parameters.

Architecture:
    pfm_batch/tasks.  This module imports only kernel exceptions and
    SQLAlchemy types; the concrete rule tasks live in ``rule_tasks``.

Invariants enforced:
    - One task per ``task_type`` string.
    - A task runs once per job; it never retries.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from sqlalchemy.orm import Session

from pfm_kernel.exceptions import TaskNotRegisteredError


@dataclass(frozen=True)
class BatchTaskResult:
    """What a task hands back; ``result_data`` lands on the job row as JSON."""

    result_data: dict[str, Any] | None = None


@runtime_checkable
class BatchTask(Protocol):
    """
    One kind of job, e.g. ``"rules.apply_rule_group"``.

    ``validate_parameters()`` runs at submit time, before a row exists, and
    raises ``ValueError`` or ``KeyError`` for parameters it cannot run.
    ``run()`` does the work on the executor's session; raising marks the
    job FAILED.  Tasks flush but never commit.
    """

    @property
    def task_type(self) -> str: ...

    @property
    def description(self) -> str: ...

    def validate_parameters(self, parameters: dict[str, Any]) -> None: ...

    def run(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult: ...


class TaskRegistry:
    """task_type -> BatchTask lookup used by the executor."""

    def __init__(self, tasks: Iterable[BatchTask] = ()) -> None:
        self._tasks: dict[str, BatchTask] = {}
        for task in tasks:
            self.register(task)

    def register(self, task: BatchTask) -> None:
        """Raises ValueError when the task_type is taken."""
        if task.task_type in self._tasks:
            raise ValueError(f"Task type '{task.task_type}' is already registered")
        self._tasks[task.task_type] = task

    def get(self, task_type: str) -> BatchTask:
        """Raises TaskNotRegisteredError, never a bare KeyError."""
        try:
            return self._tasks[task_type]
        except KeyError:
            raise TaskNotRegisteredError(task_type, self.list_tasks()) from None

    def list_tasks(self) -> tuple[str, ...]:
        return tuple(sorted(self._tasks))

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_type: object) -> bool:
        return task_type in self._tasks


def default_task_registry() -> TaskRegistry:
    """A fresh, empty registry."""
    return TaskRegistry()
