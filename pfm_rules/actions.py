"""
Action catalogue -- the effects a matched rule applies to a journal.

Contract:
    Every action class handles one ``action_type`` string, is built from the
    row's ``action_value`` and holds a reference to the shared journal
    mutator (``JournalUpdater`` in production).  ``act(journal)`` returns
    True when the journal changed.

Architecture:
    pfm_rules.  Actions never touch the session: every write goes through
    the mutator they are composed with.

Invariants enforced:
    - Label names (category, budget, tag) are stripped and must be
      non-empty; an empty label is a bind error, not a silent no-op.
    - ``set_description`` requires a non-empty value.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from pfm_kernel.exceptions import RuleBindError, UnknownActionError

if TYPE_CHECKING:
    from pfm_kernel.models.journal import TransactionJournal
    from pfm_rules.ports import JournalMutator


class Action(ABC):
    """One compiled action row."""

    action_type: str = ""
    requires_value: bool = False

    def __init__(
        self,
        value: str,
        updater: JournalMutator,
        stop_processing: bool = False,
    ):
        self.value = value if value is not None else ""
        self.updater = updater
        self.stop_processing = stop_processing
        if self.requires_value and not self.value.strip():
            raise ValueError("a value is required")

    @abstractmethod
    def act(self, journal: TransactionJournal) -> bool: ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.value!r}>"


ACTIONS: dict[str, type[Action]] = {}


def register_action(cls: type[Action]) -> type[Action]:
    """Class decorator adding ``cls`` to the catalogue under its type."""
    if cls.action_type in ACTIONS:
        raise ValueError(f"Action type already registered: {cls.action_type}")
    ACTIONS[cls.action_type] = cls
    return cls


def build_action(
    action_type: str,
    value: str,
    updater: JournalMutator,
    stop_processing: bool = False,
    rule_id: str | None = None,
) -> Action:
    """
    Instantiate the action for ``action_type``.

    Raises:
        UnknownActionError: ``action_type`` is not in the catalogue.
        RuleBindError: ``value`` is not acceptable for the action.
    """
    cls = ACTIONS.get(action_type)
    if cls is None:
        raise UnknownActionError(rule_id, action_type)
    try:
        return cls(value, updater, stop_processing=stop_processing)
    except ValueError as exc:
        raise RuleBindError(
            rule_id, f"invalid value {value!r} for action {action_type}: {exc}",
        ) from exc


# -----------------------------------------------------------------------------
# Category / budget
# -----------------------------------------------------------------------------


@register_action
class SetCategory(Action):
    action_type = "set_category"
    requires_value = True

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.set_category(journal, self.value.strip())


@register_action
class ClearCategory(Action):
    action_type = "clear_category"

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.clear_category(journal)


@register_action
class SetBudget(Action):
    action_type = "set_budget"
    requires_value = True

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.set_budget(journal, self.value.strip())


@register_action
class ClearBudget(Action):
    action_type = "clear_budget"

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.clear_budget(journal)


# -----------------------------------------------------------------------------
# Tags
# -----------------------------------------------------------------------------


@register_action
class AddTag(Action):
    action_type = "add_tag"
    requires_value = True

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.add_tag(journal, self.value.strip())


@register_action
class RemoveTag(Action):
    action_type = "remove_tag"
    requires_value = True

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.remove_tag(journal, self.value.strip())


@register_action
class RemoveAllTags(Action):
    action_type = "remove_all_tags"

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.remove_all_tags(journal)


# -----------------------------------------------------------------------------
# Description / notes
# -----------------------------------------------------------------------------


@register_action
class SetDescription(Action):
    action_type = "set_description"
    requires_value = True

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.set_description(journal, self.value)


@register_action
class AppendDescription(Action):
    action_type = "append_description"

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.append_description(journal, self.value)


@register_action
class PrependDescription(Action):
    action_type = "prepend_description"

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.prepend_description(journal, self.value)


@register_action
class SetNotes(Action):
    action_type = "set_notes"

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.set_notes(journal, self.value)


@register_action
class AppendNotes(Action):
    action_type = "append_notes"

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.append_notes(journal, self.value)


@register_action
class PrependNotes(Action):
    action_type = "prepend_notes"

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.prepend_notes(journal, self.value)


@register_action
class ClearNotes(Action):
    action_type = "clear_notes"

    def act(self, journal: TransactionJournal) -> bool:
        return self.updater.clear_notes(journal)
