"""
RuleProcessor -- applies one rule to one journal at a time.

Responsibility:
    Compiles a rule's active trigger and action rows into catalogue
    objects (``bind``), decides whether a journal matches the rule, and on
    a match runs the rule's actions against it in order.

Architecture position:
    pfm_rules.  Built once per rule per run by the batch runners; holds no
    state between journals.  Writes go through the injected journal
    mutator only.

Invariants enforced:
    - Triggers and actions are applied in their ``order``; inactive rows
      are ignored.
    - A strict rule matches when every evaluated condition hits; a
      non-strict rule when at least one does.  A trigger flagged
      ``stop_processing`` ends evaluation after itself.  A rule with no
      condition triggers (only ``user_action``) matches every journal.
    - Actions run in order; an action flagged ``stop_processing`` ends
      the action list after itself.

Failure modes:
    - RuleBindError (or UnknownTriggerError / UnknownActionError) from
      ``bind`` when the rule is unsaved, has no active triggers or actions,
      or holds a row the catalogues cannot build.
    - RuleNotBoundError when used before ``bind``.
    - RuleActionError wrapping any non-domain exception raised by an
      action; domain errors (PfmError) propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from uuid import uuid4

from pfm_kernel.exceptions import (
    PfmError,
    RuleActionError,
    RuleBindError,
    RuleNotBoundError,
)
from pfm_kernel.logging_config import get_logger
from pfm_kernel.models.journal import TransactionJournal
from pfm_kernel.models.rule import Rule, RuleAction, RuleTrigger
from pfm_rules.actions import Action, build_action
from pfm_rules.ports import JournalMutator, ProcessorFactory
from pfm_rules.triggers import Trigger, build_trigger

logger = get_logger("rules.processor")


def _is_active(row: RuleTrigger | RuleAction) -> bool:
    # Unsaved rows have no column defaults applied yet.
    return row.active is not False


class RuleProcessor:
    """
    Wraps one rule.

    Usage::

        processor = RuleProcessor(updater).bind(rule)
        if processor.handle_transaction(journal) and processor.rule.stop_processing:
            ...
    """

    def __init__(self, updater: JournalMutator):
        self._updater = updater
        self._rule: Rule | None = None
        self._triggers: tuple[Trigger, ...] = ()
        self._actions: tuple[Action, ...] = ()
        self._strict = True

    @classmethod
    def factory(cls, updater: JournalMutator) -> ProcessorFactory:
        """Processor factory for the batch runners, sharing one mutator."""

        def make_processor(rule: Rule) -> RuleProcessor:
            return cls(updater).bind(rule)

        return make_processor

    @classmethod
    def from_definitions(
        cls,
        triggers: Iterable[tuple[str, str]],
        actions: Iterable[tuple[str, str]],
        strict: bool = True,
        stop_processing: bool = False,
        *,
        updater: JournalMutator,
    ) -> RuleProcessor:
        """
        Build a processor for an unsaved rule given as ``(type, value)`` pairs.

        Used to preview which journals a rule would match before it is
        stored.  The rule is never added to a session.
        """
        rule = Rule(
            id=uuid4(),
            title="",
            order=0,
            active=True,
            strict=strict,
            stop_processing=stop_processing,
        )
        rule.triggers = [
            RuleTrigger(
                id=uuid4(),
                trigger_type=trigger_type,
                trigger_value=value,
                order=index,
                active=True,
                stop_processing=False,
            )
            for index, (trigger_type, value) in enumerate(triggers)
        ]
        rule.actions = [
            RuleAction(
                id=uuid4(),
                action_type=action_type,
                action_value=value,
                order=index,
                active=True,
                stop_processing=False,
            )
            for index, (action_type, value) in enumerate(actions)
        ]
        return cls(updater).bind(rule)

    # -------------------------------------------------------------------------
    # Binding
    # -------------------------------------------------------------------------

    def bind(self, rule: Rule) -> RuleProcessor:
        """Attach ``rule`` and compile its rows.  Returns self."""
        if rule is None:
            raise RuleBindError(None, "no rule given")
        if rule.id is None:
            raise RuleBindError(None, "rule has not been saved")
        rule_id = str(rule.id)

        trigger_rows = sorted(
            (row for row in rule.triggers if _is_active(row)),
            key=lambda row: row.order or 0,
        )
        action_rows = sorted(
            (row for row in rule.actions if _is_active(row)),
            key=lambda row: row.order or 0,
        )
        if not trigger_rows:
            raise RuleBindError(rule_id, "rule has no active triggers")
        if not action_rows:
            raise RuleBindError(rule_id, "rule has no active actions")

        triggers = tuple(
            build_trigger(
                row.trigger_type,
                row.trigger_value,
                stop_processing=bool(row.stop_processing),
                rule_id=rule_id,
            )
            for row in trigger_rows
        )
        actions = tuple(
            build_action(
                row.action_type,
                row.action_value,
                self._updater,
                stop_processing=bool(row.stop_processing),
                rule_id=rule_id,
            )
            for row in action_rows
        )

        self._rule = rule
        self._triggers = tuple(t for t in triggers if t.condition)
        self._actions = actions
        self._strict = rule.strict is not False

        logger.debug(
            "rule_bound",
            extra={
                "rule_id": rule_id,
                "trigger_count": len(self._triggers),
                "action_count": len(self._actions),
                "strict": self._strict,
            },
        )
        return self

    make = bind

    @property
    def rule(self) -> Rule:
        if self._rule is None:
            raise RuleNotBoundError()
        return self._rule

    def get_rule(self) -> Rule:
        return self.rule

    @property
    def triggers(self) -> Sequence[Trigger]:
        return self._triggers

    @property
    def actions(self) -> Sequence[Action]:
        return self._actions

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def matches(self, journal: TransactionJournal) -> bool:
        """Trigger evaluation only; no action runs."""
        if self._rule is None:
            raise RuleNotBoundError()

        evaluated = 0
        hits = 0
        for trigger in self._triggers:
            evaluated += 1
            if trigger.triggered(journal):
                hits += 1
            if trigger.stop_processing:
                break

        if evaluated == 0:
            return True
        if self._strict:
            return hits == evaluated
        return hits > 0

    def handle_transaction(self, journal: TransactionJournal) -> bool:
        """
        Apply the rule to ``journal``.

        Returns True when the rule matched (its actions then ran), False
        when it did not (the journal is untouched).
        """
        if not self.matches(journal):
            return False

        rule_id = str(self.rule.id)
        logger.debug(
            "rule_triggered",
            extra={"rule_id": rule_id, "journal_id": str(journal.id)},
        )

        for action in self._actions:
            try:
                action.act(journal)
            except PfmError:
                raise
            except Exception as exc:
                logger.error(
                    "rule_action_failed",
                    extra={
                        "rule_id": rule_id,
                        "journal_id": str(journal.id),
                        "action_type": action.action_type,
                    },
                    exc_info=True,
                )
                raise RuleActionError(
                    rule_id, action.action_type, str(journal.id), str(exc),
                ) from exc
            if action.stop_processing:
                logger.debug(
                    "rule_action_stop_processing",
                    extra={"rule_id": rule_id, "action_type": action.action_type},
                )
                break

        return True
