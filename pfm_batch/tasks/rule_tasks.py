"""
Rule engine batch tasks.

Contract:
    ``ApplyRuleGroupTask`` ("rules.apply_rule_group") runs a
    ``BatchRuleGroupRunner``; ``ApplyRuleTask`` ("rules.apply_rule") runs a
    ``BatchRuleRunner``.  Job parameters are a serialized ``RunRequest``.

Architecture:
    pfm_batch/tasks.  Composes the SQLAlchemy collaborators from
    pfm_kernel with the runners from pfm_rules, all on the job's session.

Invariants enforced:
    - Each journal is processed inside its own SAVEPOINT, so a failure
      rolls back that journal's partial changes only; journals processed
      before it stay changed once the caller commits the FAILED job.
    - The run summary becomes the job's ``result_data``.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from pfm_kernel.selectors.rule_repository import RuleRepository
from pfm_kernel.selectors.transaction_collector import TransactionCollector
from pfm_kernel.services.journal_updater import JournalUpdater
from pfm_rules.ports import JournalMutator
from pfm_rules.ports import RuleRepository as RuleRepositoryPort
from pfm_rules.ports import TransactionCollector as TransactionCollectorPort
from pfm_rules.processor import RuleProcessor
from pfm_rules.runner import BatchRuleGroupRunner, BatchRuleRunner

from pfm_batch.domain.types import RunRequest
from pfm_batch.tasks.base import BatchTaskResult


class _RuleTask:
    """Shared collaborator wiring for the rule tasks."""

    def __init__(
        self,
        collector_factory: Callable[[Session], TransactionCollectorPort] = TransactionCollector,
        repository_factory: Callable[[Session], RuleRepositoryPort] = RuleRepository,
        updater_factory: Callable[[Session], JournalMutator] = JournalUpdater,
    ):
        self._collector_factory = collector_factory
        self._repository_factory = repository_factory
        self._updater_factory = updater_factory

    def _collaborators(self, session: Session) -> dict[str, Any]:
        return {
            "collector": self._collector_factory(session),
            "rule_repository": self._repository_factory(session),
            "processor_factory": RuleProcessor.factory(self._updater_factory(session)),
            "journal_scope": session.begin_nested,
        }


class ApplyRuleGroupTask(_RuleTask):
    """Apply every eligible rule of a group to the requested journals."""

    @property
    def task_type(self) -> str:
        return "rules.apply_rule_group"

    @property
    def description(self) -> str:
        return "Apply a rule group to existing transactions"

    def validate_parameters(self, parameters: dict[str, Any]) -> None:
        request = RunRequest.from_parameters(parameters)
        if request.rule_group_id is None:
            raise ValueError("rule_group_id is required")

    def run(
        self, parameters: dict[str, Any], session: Session, as_of: datetime,
    ) -> BatchTaskResult:
        request = RunRequest.from_parameters(parameters)
        runner = BatchRuleGroupRunner(**self._collaborators(session))
        summary = runner.configure_from_request(request).run()
        session.flush()
        return BatchTaskResult(result_data=summary.to_dict())


class ApplyRuleTask(_RuleTask):
    """Apply a single rule to the requested journals."""

    @property
    def task_type(self) -> str:
        return "rules.apply_rule"

    @property
    def description(self) -> str:
        return "Apply one rule to existing transactions"

    def validate_parameters(self, parameters: dict[str, Any]) -> None:
        request = RunRequest.from_parameters(parameters)
        if request.rule_id is None:
            raise ValueError("rule_id is required")

    def run(
        self, parameters: dict[str, Any], session: Session, as_of: datetime,
    ) -> BatchTaskResult:
        request = RunRequest.from_parameters(parameters)
        runner = BatchRuleRunner(**self._collaborators(session))
        summary = runner.configure(
            request.rule_id,
            request.user_id,
            request.account_ids,
            request.start_date,
            request.end_date,
        ).run()
        session.flush()
        return BatchTaskResult(result_data=summary.to_dict())
