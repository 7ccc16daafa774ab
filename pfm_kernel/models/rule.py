"""
Module: pfm_kernel.models.rule
Responsibility: ORM persistence for rule groups, rules, and their trigger and
    action rows.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A rule group belongs to exactly one user; its rules share that user.
    - Rules, triggers and actions carry an explicit ``order``.  Relationships
      load in ``order`` so the sequence the user authored is the sequence the
      rule engine applies.

Rule-engine relevance:
    Rows here are consumed read-only by pfm_rules.  Only rules that are
    ``active`` and carry a ``user_action`` trigger with value
    ``store-journal`` take part in batch runs over existing journals (see
    pfm_kernel.selectors.rule_repository).
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pfm_kernel.db.base import TrackedBase, UUIDString


class RuleGroup(TrackedBase):
    """An ordered collection of rules belonging to one user."""

    __tablename__ = "rule_groups"

    __table_args__ = (
        Index("idx_rule_group_user", "user_id"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    rules: Mapped[list["Rule"]] = relationship(
        "Rule",
        back_populates="rule_group",
        order_by="Rule.order",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<RuleGroup {self.title}>"


class Rule(TrackedBase):
    """
    A user-authored conditional unit: triggers plus actions.

    ``strict`` selects how triggers combine: all must hit (True) or any
    one is enough (False).  ``stop_processing`` tells the batch runner to skip
    the remaining rules of the group for a journal this rule matched.
    """

    __tablename__ = "rules"

    __table_args__ = (
        Index("idx_rule_group_order", "rule_group_id", "order"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    rule_group_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("rule_groups.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    stop_processing: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )
    strict: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    rule_group: Mapped[RuleGroup] = relationship(
        "RuleGroup", back_populates="rules",
    )
    triggers: Mapped[list["RuleTrigger"]] = relationship(
        "RuleTrigger",
        back_populates="rule",
        order_by="RuleTrigger.order",
        cascade="all, delete-orphan",
    )
    actions: Mapped[list["RuleAction"]] = relationship(
        "RuleAction",
        back_populates="rule",
        order_by="RuleAction.order",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Rule {self.title}>"


class RuleTrigger(TrackedBase):
    """One condition of a rule (``trigger_type`` compared with ``trigger_value``)."""

    __tablename__ = "rule_triggers"

    __table_args__ = (
        Index("idx_rule_trigger_rule", "rule_id"),
        Index("idx_rule_trigger_type_value", "trigger_type", "trigger_value"),
    )

    rule_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("rules.id", ondelete="CASCADE"), nullable=False,
    )
    trigger_type: Mapped[str] = mapped_column(String(50), nullable=False)
    trigger_value: Mapped[str] = mapped_column(String(1024), default="", nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    stop_processing: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )

    rule: Mapped[Rule] = relationship("Rule", back_populates="triggers")


class RuleAction(TrackedBase):
    """One effect of a rule (``action_type`` applied with ``action_value``)."""

    __tablename__ = "rule_actions"

    __table_args__ = (
        Index("idx_rule_action_rule", "rule_id"),
    )

    rule_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("rules.id", ondelete="CASCADE"), nullable=False,
    )
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    action_value: Mapped[str] = mapped_column(String(1024), default="", nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    stop_processing: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )

    rule: Mapped[Rule] = relationship("Rule", back_populates="actions")
