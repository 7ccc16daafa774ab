"""
Collaborator protocols for the batch rule runner.

Contract:
    The runner and the processor depend on these structural types only.
    Production implementations live in ``pfm_kernel.selectors`` and
    ``pfm_kernel.services``; tests pass in-memory doubles.

Architecture:
    pfm_rules.  Imports ORM types for annotations only.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Sequence
from datetime import date
from typing import TYPE_CHECKING, Protocol, runtime_checkable
from uuid import UUID

if TYPE_CHECKING:
    from pfm_kernel.models.journal import TransactionJournal
    from pfm_kernel.models.rule import Rule
    from pfm_rules.processor import RuleProcessor


@runtime_checkable
class TransactionCollector(Protocol):
    """Selects the journals a run applies to, in processing order."""

    def collect(
        self,
        user_id: UUID,
        account_ids: Collection[UUID] = (),
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Sequence[TransactionJournal]: ...


@runtime_checkable
class RuleRepository(Protocol):
    """Supplies the batch-eligible rules of a user's group, in group order."""

    def eligible_rules(self, rule_group_id: UUID, user_id: UUID) -> Sequence[Rule]: ...

    def get_rule(self, rule_id: UUID) -> Rule: ...


@runtime_checkable
class JournalMutator(Protocol):
    """Write path used by rule actions (see ``JournalUpdater``)."""

    def set_category(self, journal: TransactionJournal, name: str) -> bool: ...

    def clear_category(self, journal: TransactionJournal) -> bool: ...

    def set_budget(self, journal: TransactionJournal, name: str) -> bool: ...

    def clear_budget(self, journal: TransactionJournal) -> bool: ...

    def add_tag(self, journal: TransactionJournal, name: str) -> bool: ...

    def remove_tag(self, journal: TransactionJournal, name: str) -> bool: ...

    def remove_all_tags(self, journal: TransactionJournal) -> bool: ...

    def set_description(self, journal: TransactionJournal, text: str) -> bool: ...

    def append_description(self, journal: TransactionJournal, text: str) -> bool: ...

    def prepend_description(self, journal: TransactionJournal, text: str) -> bool: ...

    def set_notes(self, journal: TransactionJournal, text: str | None) -> bool: ...

    def append_notes(self, journal: TransactionJournal, text: str) -> bool: ...

    def prepend_notes(self, journal: TransactionJournal, text: str) -> bool: ...

    def clear_notes(self, journal: TransactionJournal) -> bool: ...


# Builds and binds one processor per rule.
ProcessorFactory = Callable[["Rule"], "RuleProcessor"]
