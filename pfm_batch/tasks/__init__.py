"""Batch task protocol, registry, and the rule engine tasks."""

from pfm_batch.tasks.base import (
    BatchTask,
    BatchTaskResult,
    TaskRegistry,
    default_task_registry,
)
from pfm_batch.tasks.rule_tasks import ApplyRuleGroupTask, ApplyRuleTask

__all__ = [
    "ApplyRuleGroupTask",
    "ApplyRuleTask",
    "BatchTask",
    "BatchTaskResult",
    "TaskRegistry",
    "default_task_registry",
]
