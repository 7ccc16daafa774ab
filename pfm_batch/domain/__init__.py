"""Pure DTOs for the batch job queue."""

from pfm_batch.domain.types import (
    BatchJob,
    BatchJobStatus,
    BatchRunResult,
    RunRequest,
)

__all__ = [
    "BatchJob",
    "BatchJobStatus",
    "BatchRunResult",
    "RunRequest",
]
