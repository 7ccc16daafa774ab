"""
Module: pfm_kernel.selectors.rule_repository
Responsibility: Read access to rule groups and rules, including the list of
    rules eligible to run in a batch over existing journals.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - Eligibility is defined once, as the named predicate ``is_batch_eligible``;
      ``batch_eligibility_clause`` is its SQL twin and must stay equivalent.
    - Rule order is the group's authored order: ``Rule.order`` ascending,
      ties broken by creation time, then id.
    - Each eligible rule appears once, however many matching trigger rows it
      carries (EXISTS, not a join).
    - A group run only sees rules owned by the requesting user, in a group
      owned by that same user; anyone else's group yields no rules.

Failure modes:
    - RecordNotFoundError from ``get_rule`` / ``get_rule_group`` when the id
      does not exist.
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import ColumnElement, and_, exists, select
from sqlalchemy.orm import Session, selectinload

from pfm_kernel.exceptions import RecordNotFoundError
from pfm_kernel.models.rule import Rule, RuleGroup, RuleTrigger
from pfm_kernel.selectors.base import BaseSelector

STORE_JOURNAL_TRIGGER_TYPE = "user_action"
STORE_JOURNAL_TRIGGER_VALUE = "store-journal"


def is_batch_eligible(rule: Rule, user_id: UUID | None = None) -> bool:
    """
    True when ``rule`` is active and fires on the store-journal user action.

    With ``user_id``, the rule and its group must also belong to that user.
    """
    if not rule.active:
        return False
    if user_id is not None and not _owned_by(rule, user_id):
        return False
    return any(
        trigger.trigger_type == STORE_JOURNAL_TRIGGER_TYPE
        and trigger.trigger_value == STORE_JOURNAL_TRIGGER_VALUE
        for trigger in rule.triggers
    )


def _owned_by(rule: Rule, user_id: UUID) -> bool:
    group = rule.rule_group
    return rule.user_id == user_id and (group is None or group.user_id == user_id)


def batch_eligibility_clause() -> ColumnElement[bool]:
    """SQL form of ``is_batch_eligible`` for use in a ``select(Rule)``."""
    has_store_trigger = exists().where(
        RuleTrigger.rule_id == Rule.id,
        RuleTrigger.trigger_type == STORE_JOURNAL_TRIGGER_TYPE,
        RuleTrigger.trigger_value == STORE_JOURNAL_TRIGGER_VALUE,
    )
    return and_(Rule.active == True, has_store_trigger)  # noqa: E712


class RuleRepository(BaseSelector[Rule]):
    """
    SQLAlchemy implementation of the rule repository collaborator.

    Contract:
        - ``eligible_rules()`` returns the batch-eligible rules of a group in
          group order, with triggers and actions loaded.  Only rules of
          ``user_id`` in a group of ``user_id`` are returned.
        - ``get_rule()`` / ``get_rule_group()`` fetch by id.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def eligible_rules(self, rule_group_id: UUID, user_id: UUID) -> Sequence[Rule]:
        stmt = (
            select(Rule)
            .join(RuleGroup, RuleGroup.id == Rule.rule_group_id)
            .where(
                Rule.rule_group_id == rule_group_id,
                RuleGroup.user_id == user_id,
                Rule.user_id == user_id,
                batch_eligibility_clause(),
            )
            .options(selectinload(Rule.triggers), selectinload(Rule.actions))
            .order_by(Rule.order, Rule.created_at, Rule.id)
        )
        return self._all(stmt)

    def get_rule(self, rule_id: UUID) -> Rule:
        stmt = (
            select(Rule)
            .where(Rule.id == rule_id)
            .options(selectinload(Rule.triggers), selectinload(Rule.actions))
        )
        rule = self._one_or_none(stmt)
        if rule is None:
            raise RecordNotFoundError("Rule", str(rule_id))
        return rule

    def get_rule_group(self, rule_group_id: UUID) -> RuleGroup:
        group = self.session.get(RuleGroup, rule_group_id)
        if group is None:
            raise RecordNotFoundError("RuleGroup", str(rule_group_id))
        return group
