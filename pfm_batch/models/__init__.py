"""Batch job ORM models."""

from pfm_batch.models.batch import BatchJobModel

__all__ = ["BatchJobModel"]
