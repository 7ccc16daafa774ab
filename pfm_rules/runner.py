"""
Batch rule runners -- apply rules to a user's historical journals.

Responsibility:
    ``BatchRuleGroupRunner`` applies every batch-eligible rule of a rule
    group to the journals selected for one user (optional account filter,
    optional inclusive date range).  ``BatchRuleRunner`` does the same for a
    single rule.

Architecture position:
    pfm_rules.  Collaborators are injected through the constructor: a
    transaction collector, a rule repository and a processor factory.  The
    runners take no transaction boundary and no lock of their own; the job
    layer (pfm_batch) owns both.

Invariants enforced:
    - Journals are processed in collector order; rules in repository order.
    - Rules come from the configured user only: a group run asks the
      repository for that user's rules, a single-rule run rejects a rule
      owned by someone else.
    - Every processor is built before the first journal is touched, so a
      bind failure leaves every journal unmodified.
    - A matched rule flagged ``stop_processing`` skips the remaining rules
      for that journal only.  Nothing carries over between journals.
    - ``run()`` before ``configure()`` fails before any collaborator call.

Failure modes:
    - RunConfigurationError: missing or inconsistent run parameters.
    - TransactionCollectionError / RuleCollectionError: the collector or the
      repository raised a non-domain exception.
    - RuleBindError: a processor could not be built.
    - Errors raised while handling a journal propagate unchanged; journals
      fully processed before it keep their changes when ``journal_scope``
      is a savepoint.
"""

from __future__ import annotations

import contextlib
from abc import ABC, abstractmethod
from collections.abc import Callable, Collection, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pfm_kernel.exceptions import (
    PfmError,
    RuleBindError,
    RuleCollectionError,
    RunConfigurationError,
    TransactionCollectionError,
)
from pfm_kernel.logging_config import LogContext, get_logger
from pfm_kernel.models.journal import TransactionJournal
from pfm_kernel.models.rule import Rule
from pfm_rules.ports import ProcessorFactory, RuleRepository, TransactionCollector
from pfm_rules.processor import RuleProcessor

if TYPE_CHECKING:
    from pfm_batch.domain.types import RunRequest

logger = get_logger("rules.runner")

JournalScope = Callable[[], AbstractContextManager[Any]]


@dataclass(frozen=True)
class RuleRunSummary:
    """Counters of one batch run."""

    journals: int = 0
    rules: int = 0
    invocations: int = 0
    matches: int = 0
    stops: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "journals": self.journals,
            "rules": self.rules,
            "invocations": self.invocations,
            "matches": self.matches,
            "stops": self.stops,
        }


@dataclass(frozen=True)
class _Window:
    user_id: UUID
    account_ids: tuple[UUID, ...]
    start_date: date | None
    end_date: date | None


class _BatchRunner(ABC):
    """Shared configuration, collection and application loop."""

    run_kind = "rule"

    def __init__(
        self,
        collector: TransactionCollector,
        rule_repository: RuleRepository,
        processor_factory: ProcessorFactory,
        journal_scope: JournalScope | None = None,
    ):
        self._collector = collector
        self._rules = rule_repository
        self._processor_factory = processor_factory
        self._journal_scope = journal_scope or contextlib.nullcontext
        self._window: _Window | None = None

    def _configure_window(
        self,
        user_id: UUID | None,
        account_ids: Collection[UUID] | None,
        start_date: date | None,
        end_date: date | None,
    ) -> _Window:
        if user_id is None:
            raise RunConfigurationError("user_id is required")
        if start_date is not None and end_date is not None and start_date > end_date:
            raise RunConfigurationError(
                f"start_date {start_date} is after end_date {end_date}"
            )
        return _Window(
            user_id=user_id,
            account_ids=tuple(account_ids or ()),
            start_date=start_date,
            end_date=end_date,
        )

    def _require_window(self) -> _Window:
        if self._window is None:
            raise RunConfigurationError("configure() was not called")
        return self._window

    # -------------------------------------------------------------------------
    # Collaborator calls
    # -------------------------------------------------------------------------

    def _collect_journals(self, window: _Window) -> list[TransactionJournal]:
        try:
            return list(
                self._collector.collect(
                    window.user_id,
                    window.account_ids,
                    window.start_date,
                    window.end_date,
                )
            )
        except PfmError:
            raise
        except Exception as exc:
            raise TransactionCollectionError(str(window.user_id), str(exc)) from exc

    @abstractmethod
    def _collect_rules(self) -> list[Rule]:
        """The rules to apply, in order, for the configured run."""

    def _build_processors(self, rules: Sequence[Rule]) -> list[RuleProcessor]:
        processors = []
        for rule in rules:
            try:
                processors.append(self._processor_factory(rule))
            except PfmError:
                raise
            except Exception as exc:
                raise RuleBindError(
                    str(rule.id) if rule.id is not None else None, str(exc),
                ) from exc
        return processors

    # -------------------------------------------------------------------------
    # Application loop
    # -------------------------------------------------------------------------

    def _apply(
        self,
        journals: Sequence[TransactionJournal],
        processors: Sequence[RuleProcessor],
    ) -> RuleRunSummary:
        invocations = 0
        matches = 0
        stops = 0

        for journal in journals:
            with LogContext.bind(journal_id=str(journal.id)), self._journal_scope():
                for processor in processors:
                    invocations += 1
                    if not processor.handle_transaction(journal):
                        continue
                    matches += 1
                    if processor.rule.stop_processing:
                        stops += 1
                        logger.debug(
                            "rule_stop_processing",
                            extra={
                                "rule_id": str(processor.rule.id),
                                "journal_id": str(journal.id),
                            },
                        )
                        break

        return RuleRunSummary(
            journals=len(journals),
            rules=len(processors),
            invocations=invocations,
            matches=matches,
            stops=stops,
        )

    def _execute(self, **context: str) -> RuleRunSummary:
        window = self._require_window()

        with LogContext.bind(user_id=str(window.user_id), **context):
            logger.info(
                f"{self.run_kind}_run_started",
                extra={
                    "account_filter": [str(a) for a in window.account_ids],
                    "start_date": window.start_date,
                    "end_date": window.end_date,
                },
            )
            journals = self._collect_journals(window)
            rules = self._collect_rules()
            processors = self._build_processors(rules)
            summary = self._apply(journals, processors)
            logger.info(f"{self.run_kind}_run_completed", extra=summary.to_dict())

        return summary


class BatchRuleGroupRunner(_BatchRunner):
    """
    Applies the eligible rules of one rule group to one user's journals.

    Usage::

        runner = BatchRuleGroupRunner(collector, repository, factory)
        runner.configure(group.id, user.id, start_date=date(2024, 1, 1))
        summary = runner.run()
    """

    run_kind = "rule_group"

    def __init__(
        self,
        collector: TransactionCollector,
        rule_repository: RuleRepository,
        processor_factory: ProcessorFactory,
        journal_scope: JournalScope | None = None,
    ):
        super().__init__(collector, rule_repository, processor_factory, journal_scope)
        self._rule_group_id: UUID | None = None

    def configure(
        self,
        rule_group_id: UUID | None,
        user_id: UUID | None,
        account_ids: Collection[UUID] | None = (),
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> BatchRuleGroupRunner:
        if rule_group_id is None:
            raise RunConfigurationError("rule_group_id is required")
        self._window = self._configure_window(user_id, account_ids, start_date, end_date)
        self._rule_group_id = rule_group_id
        return self

    def configure_from_request(self, request: RunRequest) -> BatchRuleGroupRunner:
        """Configure from the run request stored on a batch job."""
        return self.configure(
            request.rule_group_id,
            request.user_id,
            request.account_ids,
            request.start_date,
            request.end_date,
        )

    def _collect_rules(self) -> list[Rule]:
        try:
            return list(
                self._rules.eligible_rules(self._rule_group_id, self._window.user_id)
            )
        except PfmError:
            raise
        except Exception as exc:
            raise RuleCollectionError(str(self._rule_group_id), str(exc)) from exc

    def run(self) -> RuleRunSummary:
        self._require_window()
        return self._execute(rule_group_id=str(self._rule_group_id))


class BatchRuleRunner(_BatchRunner):
    """
    Applies a single rule to one user's journals.

    The rule runs whether or not it carries the store-journal trigger; the
    caller picked it explicitly.  It must belong to the configured user.
    """

    run_kind = "single_rule"

    def __init__(
        self,
        collector: TransactionCollector,
        rule_repository: RuleRepository,
        processor_factory: ProcessorFactory,
        journal_scope: JournalScope | None = None,
    ):
        super().__init__(collector, rule_repository, processor_factory, journal_scope)
        self._rule_id: UUID | None = None

    def configure(
        self,
        rule_id: UUID | None,
        user_id: UUID | None,
        account_ids: Collection[UUID] | None = (),
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> BatchRuleRunner:
        if rule_id is None:
            raise RunConfigurationError("rule_id is required")
        self._window = self._configure_window(user_id, account_ids, start_date, end_date)
        self._rule_id = rule_id
        return self

    def _collect_rules(self) -> list[Rule]:
        try:
            rule = self._rules.get_rule(self._rule_id)
        except PfmError:
            raise
        except Exception as exc:
            raise RuleCollectionError(str(self._rule_id), str(exc)) from exc
        if rule.user_id is not None and rule.user_id != self._window.user_id:
            raise RuleCollectionError(
                str(self._rule_id), "rule belongs to another user",
            )
        return [rule]

    def run(self) -> RuleRunSummary:
        self._require_window()
        return self._execute(rule_id=str(self._rule_id))
