"""
Trigger catalogue -- the conditions a rule can test a journal against.

Contract:
    Every trigger class handles one ``trigger_type`` string and is built
    from the row's ``trigger_value``.  ``triggered(journal)`` answers for a
    single journal and never mutates it.  ``build_trigger()`` is the only
    constructor the processor uses; it maps unknown types and
    uninterpretable values onto the rule-engine bind errors.

Architecture:
    pfm_rules.  Reads journals through the read helpers on
    ``TransactionJournal`` (``amount``, ``source_accounts``, ``tag_names``
    ...).  No session access.

Invariants enforced:
    - Text comparisons are case-insensitive.
    - ``contains``/``starts``/``ends`` with an empty value never match.
    - ``user_action`` is a "when" trigger, not a condition: it selects
      when a rule runs and takes no part in matching.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from pfm_kernel.exceptions import RuleBindError, UnknownTriggerError

if TYPE_CHECKING:
    from pfm_kernel.models.journal import TransactionJournal


# =============================================================================
# Base class and registry
# =============================================================================


class Trigger(ABC):
    """One compiled trigger row."""

    trigger_type: str = ""
    # False for triggers that only select *when* a rule runs.
    condition: bool = True

    def __init__(self, value: str, stop_processing: bool = False):
        self.value = value if value is not None else ""
        self.stop_processing = stop_processing

    @abstractmethod
    def triggered(self, journal: TransactionJournal) -> bool: ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.value!r}>"


TRIGGERS: dict[str, type[Trigger]] = {}


def register_trigger(cls: type[Trigger]) -> type[Trigger]:
    """Class decorator adding ``cls`` to the catalogue under its type."""
    if cls.trigger_type in TRIGGERS:
        raise ValueError(f"Trigger type already registered: {cls.trigger_type}")
    TRIGGERS[cls.trigger_type] = cls
    return cls


def build_trigger(
    trigger_type: str,
    value: str,
    stop_processing: bool = False,
    rule_id: str | None = None,
) -> Trigger:
    """
    Instantiate the trigger for ``trigger_type``.

    Raises:
        UnknownTriggerError: ``trigger_type`` is not in the catalogue.
        RuleBindError: ``value`` cannot be interpreted by the trigger.
    """
    cls = TRIGGERS.get(trigger_type)
    if cls is None:
        raise UnknownTriggerError(rule_id, trigger_type)
    try:
        return cls(value, stop_processing=stop_processing)
    except (ValueError, InvalidOperation) as exc:
        raise RuleBindError(
            rule_id, f"invalid value {value!r} for trigger {trigger_type}: {exc}",
        ) from exc


# =============================================================================
# Text helpers
# =============================================================================


def _fold(text: str | None) -> str:
    return (text or "").casefold()


def _is(subject: str | None, value: str) -> bool:
    return _fold(subject) == _fold(value)


def _contains(subject: str | None, value: str) -> bool:
    return bool(value) and _fold(value) in _fold(subject)


def _starts(subject: str | None, value: str) -> bool:
    return bool(value) and _fold(subject).startswith(_fold(value))


def _ends(subject: str | None, value: str) -> bool:
    return bool(value) and _fold(subject).endswith(_fold(value))


def _any(subjects: Iterable[str | None], test: Callable[[str | None, str], bool], value: str) -> bool:
    return any(test(subject, value) for subject in subjects)


# =============================================================================
# "When" trigger
# =============================================================================


@register_trigger
class UserAction(Trigger):
    trigger_type = "user_action"
    condition = False

    def triggered(self, journal: TransactionJournal) -> bool:
        return True


# =============================================================================
# Description
# =============================================================================


@register_trigger
class DescriptionIs(Trigger):
    trigger_type = "description_is"

    def triggered(self, journal: TransactionJournal) -> bool:
        return _is(journal.description, self.value)


@register_trigger
class DescriptionContains(Trigger):
    trigger_type = "description_contains"

    def triggered(self, journal: TransactionJournal) -> bool:
        return _contains(journal.description, self.value)


@register_trigger
class DescriptionStarts(Trigger):
    trigger_type = "description_starts"

    def triggered(self, journal: TransactionJournal) -> bool:
        return _starts(journal.description, self.value)


@register_trigger
class DescriptionEnds(Trigger):
    trigger_type = "description_ends"

    def triggered(self, journal: TransactionJournal) -> bool:
        return _ends(journal.description, self.value)


# =============================================================================
# Accounts (source = negative postings, destination = positive postings)
# =============================================================================


class _AccountTrigger(Trigger):
    test: Callable[[str | None, str], bool]
    side: str = "source"

    def triggered(self, journal: TransactionJournal) -> bool:
        accounts = (
            journal.source_accounts if self.side == "source"
            else journal.destination_accounts
        )
        return _any(
            (account.name for account in accounts if account is not None),
            type(self).test,
            self.value,
        )


@register_trigger
class FromAccountIs(_AccountTrigger):
    trigger_type = "from_account_is"
    test = staticmethod(_is)


@register_trigger
class FromAccountContains(_AccountTrigger):
    trigger_type = "from_account_contains"
    test = staticmethod(_contains)


@register_trigger
class FromAccountStarts(_AccountTrigger):
    trigger_type = "from_account_starts"
    test = staticmethod(_starts)


@register_trigger
class FromAccountEnds(_AccountTrigger):
    trigger_type = "from_account_ends"
    test = staticmethod(_ends)


@register_trigger
class ToAccountIs(_AccountTrigger):
    trigger_type = "to_account_is"
    side = "destination"
    test = staticmethod(_is)


@register_trigger
class ToAccountContains(_AccountTrigger):
    trigger_type = "to_account_contains"
    side = "destination"
    test = staticmethod(_contains)


@register_trigger
class ToAccountStarts(_AccountTrigger):
    trigger_type = "to_account_starts"
    side = "destination"
    test = staticmethod(_starts)


@register_trigger
class ToAccountEnds(_AccountTrigger):
    trigger_type = "to_account_ends"
    side = "destination"
    test = staticmethod(_ends)


# =============================================================================
# Amount
# =============================================================================


class _AmountTrigger(Trigger):
    """Compares the journal amount with a Decimal parsed at bind time."""

    def __init__(self, value: str, stop_processing: bool = False):
        super().__init__(value, stop_processing)
        self.amount = Decimal(str(self.value).strip())
        if not self.amount.is_finite():
            raise ValueError("amount must be a finite number")


@register_trigger
class AmountLess(_AmountTrigger):
    trigger_type = "amount_less"

    def triggered(self, journal: TransactionJournal) -> bool:
        return journal.amount < self.amount


@register_trigger
class AmountExactly(_AmountTrigger):
    trigger_type = "amount_exactly"

    def triggered(self, journal: TransactionJournal) -> bool:
        return journal.amount == self.amount


@register_trigger
class AmountMore(_AmountTrigger):
    trigger_type = "amount_more"

    def triggered(self, journal: TransactionJournal) -> bool:
        return journal.amount > self.amount


# =============================================================================
# Type, currency, labels
# =============================================================================


@register_trigger
class TransactionTypeIs(Trigger):
    trigger_type = "transaction_type"

    def triggered(self, journal: TransactionJournal) -> bool:
        return _is(journal.transaction_type, self.value)


@register_trigger
class CurrencyIs(Trigger):
    trigger_type = "currency_is"

    def triggered(self, journal: TransactionJournal) -> bool:
        return _any(journal.currency_codes, _is, self.value)


@register_trigger
class CategoryIs(Trigger):
    trigger_type = "category_is"

    def triggered(self, journal: TransactionJournal) -> bool:
        return journal.category_name is not None and _is(
            journal.category_name, self.value,
        )


@register_trigger
class BudgetIs(Trigger):
    trigger_type = "budget_is"

    def triggered(self, journal: TransactionJournal) -> bool:
        return journal.budget_name is not None and _is(
            journal.budget_name, self.value,
        )


@register_trigger
class TagIs(Trigger):
    trigger_type = "tag_is"

    def triggered(self, journal: TransactionJournal) -> bool:
        return _any(journal.tag_names, _is, self.value)


@register_trigger
class HasAnyCategory(Trigger):
    trigger_type = "has_any_category"

    def triggered(self, journal: TransactionJournal) -> bool:
        return journal.category is not None


@register_trigger
class HasNoCategory(Trigger):
    trigger_type = "has_no_category"

    def triggered(self, journal: TransactionJournal) -> bool:
        return journal.category is None


@register_trigger
class HasAnyBudget(Trigger):
    trigger_type = "has_any_budget"

    def triggered(self, journal: TransactionJournal) -> bool:
        return journal.budget is not None


@register_trigger
class HasNoBudget(Trigger):
    trigger_type = "has_no_budget"

    def triggered(self, journal: TransactionJournal) -> bool:
        return journal.budget is None


@register_trigger
class HasAnyTag(Trigger):
    trigger_type = "has_any_tag"

    def triggered(self, journal: TransactionJournal) -> bool:
        return bool(journal.tags)


@register_trigger
class HasNoTag(Trigger):
    trigger_type = "has_no_tag"

    def triggered(self, journal: TransactionJournal) -> bool:
        return not journal.tags


# =============================================================================
# Notes
# =============================================================================


@register_trigger
class NotesAre(Trigger):
    trigger_type = "notes_are"

    def triggered(self, journal: TransactionJournal) -> bool:
        return _is(journal.notes, self.value)


@register_trigger
class NotesContain(Trigger):
    trigger_type = "notes_contain"

    def triggered(self, journal: TransactionJournal) -> bool:
        return _contains(journal.notes, self.value)


@register_trigger
class NotesStart(Trigger):
    trigger_type = "notes_start"

    def triggered(self, journal: TransactionJournal) -> bool:
        return _starts(journal.notes, self.value)


@register_trigger
class NotesEnd(Trigger):
    trigger_type = "notes_end"

    def triggered(self, journal: TransactionJournal) -> bool:
        return _ends(journal.notes, self.value)


@register_trigger
class AnyNotes(Trigger):
    trigger_type = "any_notes"

    def triggered(self, journal: TransactionJournal) -> bool:
        return bool((journal.notes or "").strip())


@register_trigger
class NoNotes(Trigger):
    trigger_type = "no_notes"

    def triggered(self, journal: TransactionJournal) -> bool:
        return not (journal.notes or "").strip()
