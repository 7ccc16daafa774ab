"""
pfm_batch -- Batch job queue for the rule engine.

Runs rule-group (and single-rule) applications over existing journals as
explicit job rows: a serialized RunRequest is submitted, claimed by a
polling worker, and executed once.

Architecture:
    pfm_batch/ is a top-level package.  Nothing in pfm_kernel/ or
    pfm_rules/ imports from pfm_batch.

Invariants:
    - Job idempotency per submission (UNIQUE idempotency_key)
    - Clock injection (no datetime.now() calls)
    - Concurrency guard (job row locked during transitions)
    - At-most-once delivery (no retries, FAILED jobs are never re-queued)
    - SAVEPOINT per journal inside a rule run
    - Graceful worker shutdown
"""
