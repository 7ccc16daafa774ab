"""
Typed Exception Hierarchy for the PFM rule engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The rule engine runs unattended inside background jobs.  When a run fails,
the job boundary records WHAT failed in a form that can be queried later
(``batch_jobs.error_code``) and logged as structured data.  Parsing error
messages for that purpose is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable)
  3. Exceptions carry structured DATA (rule ids, job ids, action types)

Example:
    try:
        runner.run()
    except RuleBindError as e:
        logger.error("rule_invalid", extra={"rule_id": e.rule_id})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from PfmError:

    PfmError (base)
    |
    +-- RuleEngineError
    |   +-- RunConfigurationError
    |   +-- TransactionCollectionError
    |   +-- RuleCollectionError
    |   +-- RuleBindError
    |   |   +-- UnknownTriggerError
    |   |   +-- UnknownActionError
    |   +-- RuleNotBoundError
    |   +-- RuleActionError
    |
    +-- RecordNotFoundError
    |
    +-- BatchError
        +-- BatchJobNotFoundError
        +-- BatchAlreadyRunningError
        +-- BatchIdempotencyError
        +-- TaskNotRegisteredError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                          | When Raised
-----------|-------------------------------|------------------------------------------
Rules      | RUN_NOT_CONFIGURED            | run() before configure(), bad parameters
           | TRANSACTION_COLLECTION_FAILED | Journal query collaborator failed
           | RULE_COLLECTION_FAILED        | Rule repository collaborator failed
           | RULE_BIND_FAILED              | Rule has no triggers/actions, bad values
           | UNKNOWN_TRIGGER               | Trigger type not in the catalogue
           | UNKNOWN_ACTION                | Action type not in the catalogue
           | RULE_NOT_BOUND                | Processor used before bind()
           | RULE_ACTION_FAILED            | An action raised while applying a rule
-----------|-------------------------------|------------------------------------------
Records    | RECORD_NOT_FOUND              | Referenced row does not exist
-----------|-------------------------------|------------------------------------------
Batch      | BATCH_JOB_NOT_FOUND           | Job id does not exist
           | BATCH_ALREADY_RUNNING         | Job is not PENDING when executed
           | BATCH_IDEMPOTENCY_CONFLICT    | Submission key already used
           | TASK_NOT_REGISTERED           | Unknown task_type on submit
"""


class PfmError(Exception):
    """
    Base exception for all PFM errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PFM_ERROR"


# Rule engine exceptions


class RuleEngineError(PfmError):
    """Base exception for rule processing errors."""

    code: str = "RULE_ENGINE_ERROR"


class RunConfigurationError(RuleEngineError):
    """A batch run was started without (or with invalid) parameters."""

    code: str = "RUN_NOT_CONFIGURED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Rule run is not configured: {reason}")


class TransactionCollectionError(RuleEngineError):
    """The transaction query collaborator failed to produce journals."""

    code: str = "TRANSACTION_COLLECTION_FAILED"

    def __init__(self, user_id: str, reason: str):
        self.user_id = user_id
        self.reason = reason
        super().__init__(
            f"Could not collect transactions for user {user_id}: {reason}"
        )


class RuleCollectionError(RuleEngineError):
    """The rule repository collaborator failed to produce rules."""

    code: str = "RULE_COLLECTION_FAILED"

    def __init__(self, rule_group_id: str, reason: str):
        self.rule_group_id = rule_group_id
        self.reason = reason
        super().__init__(
            f"Could not collect rules for rule group {rule_group_id}: {reason}"
        )


class RuleBindError(RuleEngineError):
    """
    A rule could not be compiled into a processor.

    Raised when the rule is unsaved, carries no active triggers or actions,
    or holds a trigger/action value that cannot be interpreted.
    """

    code: str = "RULE_BIND_FAILED"

    def __init__(self, rule_id: str | None, reason: str):
        self.rule_id = rule_id
        self.reason = reason
        super().__init__(f"Cannot bind rule {rule_id}: {reason}")


class UnknownTriggerError(RuleBindError):
    """Trigger type is not part of the trigger catalogue."""

    code: str = "UNKNOWN_TRIGGER"

    def __init__(self, rule_id: str | None, trigger_type: str):
        self.trigger_type = trigger_type
        super().__init__(rule_id, f"unknown trigger type '{trigger_type}'")


class UnknownActionError(RuleBindError):
    """Action type is not part of the action catalogue."""

    code: str = "UNKNOWN_ACTION"

    def __init__(self, rule_id: str | None, action_type: str):
        self.action_type = action_type
        super().__init__(rule_id, f"unknown action type '{action_type}'")


class RuleNotBoundError(RuleEngineError):
    """A processor was asked to handle a transaction before bind()."""

    code: str = "RULE_NOT_BOUND"

    def __init__(self):
        super().__init__("RuleProcessor has no rule bound; call bind() first")


class RuleActionError(RuleEngineError):
    """An action failed while applying a matched rule to a journal."""

    code: str = "RULE_ACTION_FAILED"

    def __init__(
        self,
        rule_id: str | None,
        action_type: str,
        journal_id: str | None,
        reason: str,
    ):
        self.rule_id = rule_id
        self.action_type = action_type
        self.journal_id = journal_id
        self.reason = reason
        super().__init__(
            f"Action {action_type} of rule {rule_id} failed on journal "
            f"{journal_id}: {reason}"
        )


# Lookup exceptions


class RecordNotFoundError(PfmError):
    """A referenced row does not exist."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, record_type: str, record_id: str):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(f"{record_type} not found: {record_id}")


# Batch exceptions


class BatchError(PfmError):
    """Base exception for batch job errors."""

    code: str = "BATCH_ERROR"


class BatchJobNotFoundError(BatchError):
    """Batch job with given ID was not found."""

    code: str = "BATCH_JOB_NOT_FOUND"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Batch job not found: {job_id}")


class BatchAlreadyRunningError(BatchError):
    """Batch job is not in a state that allows execution."""

    code: str = "BATCH_ALREADY_RUNNING"

    def __init__(self, job_name: str, running_job_id: str, status: str = "running"):
        self.job_name = job_name
        self.running_job_id = running_job_id
        self.status = status
        super().__init__(
            f"Batch job '{job_name}' ({running_job_id}) cannot be executed: "
            f"status is {status}"
        )


class BatchIdempotencyError(BatchError):
    """A job with the same submission key already exists."""

    code: str = "BATCH_IDEMPOTENCY_CONFLICT"

    def __init__(self, idempotency_key: str, existing_job_id: str):
        self.idempotency_key = idempotency_key
        self.existing_job_id = existing_job_id
        super().__init__(
            f"Idempotency key '{idempotency_key}' already used by job "
            f"{existing_job_id}"
        )


class TaskNotRegisteredError(BatchError):
    """No task implementation is registered for the task type."""

    code: str = "TASK_NOT_REGISTERED"

    def __init__(self, task_type: str, available: tuple[str, ...] = ()):
        self.task_type = task_type
        self.available = available
        super().__init__(
            f"Task type '{task_type}' is not registered. "
            f"Available: {list(available)}"
        )
