"""Batch job executor and polling worker."""

from pfm_batch.services.executor import BatchExecutor
from pfm_batch.services.worker import JobWorker

__all__ = ["BatchExecutor", "JobWorker"]
