"""
Module: pfm_kernel.models.journal
Responsibility: ORM persistence for transaction journals, their postings, and
    the user-scoped labels (categories, budgets, tags) that rule actions set.
Architecture position: Kernel > Models.  May import from db/base.py and
    models/account.py only.

Invariants enforced:
    - A journal belongs to exactly one user.
    - Postings carry signed amounts: negative on the source side, positive
      on the destination side.
    - Category, budget and tag names are unique per user.

Rule-engine relevance:
    TransactionJournal is the unit of rule evaluation.  Triggers read the
    convenience properties below (``amount``, ``source_accounts``,
    ``tag_names`` ...); actions mutate the journal only through
    pfm_kernel.services.journal_updater.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Column,
    Date,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pfm_kernel.db.base import Base, TrackedBase, UUIDString
from pfm_kernel.models.account import Account

DESCRIPTION_MAX_LENGTH = 1024


class TransactionType(str, Enum):
    """Kind of financial event a journal records."""

    WITHDRAWAL = "withdrawal"
    DEPOSIT = "deposit"
    TRANSFER = "transfer"
    OPENING_BALANCE = "opening_balance"


journal_tags = Table(
    "journal_tags",
    Base.metadata,
    Column(
        "journal_id",
        UUIDString(),
        ForeignKey("transaction_journals.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id",
        UUIDString(),
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Category(TrackedBase):
    """User-scoped spending/income category."""

    __tablename__ = "categories"

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_category_name"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Budget(TrackedBase):
    """User-scoped budget a withdrawal can be booked against."""

    __tablename__ = "budgets"

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_budget_name"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Tag(TrackedBase):
    """User-scoped free-form tag."""

    __tablename__ = "tags"

    __table_args__ = (
        UniqueConstraint("user_id", "tag", name="uq_tag_name"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    tag: Mapped[str] = mapped_column(String(255), nullable=False)


class TransactionJournal(TrackedBase):
    """
    Transaction journal header -- one financial event with its postings.

    Contract:
        A journal has one or more postings (``transactions``).  The sum of
        positive postings is the journal amount; accounts on negative
        postings are the source side, accounts on positive postings the
        destination side.

    Non-goals:
        - This model does NOT enforce that postings balance; the CRUD layer
          that creates journals is responsible for that.
    """

    __tablename__ = "transaction_journals"

    __table_args__ = (
        Index("idx_journal_user_date", "user_id", "date"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )

    transaction_type: Mapped[str] = mapped_column(
        String(30),
        default=TransactionType.WITHDRAWAL.value,
        nullable=False,
    )

    description: Mapped[str] = mapped_column(String(DESCRIPTION_MAX_LENGTH), nullable=False)

    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    category_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True,
    )

    budget_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("budgets.id", ondelete="SET NULL"), nullable=True,
    )

    category: Mapped[Category | None] = relationship("Category")
    budget: Mapped[Budget | None] = relationship("Budget")
    tags: Mapped[list[Tag]] = relationship("Tag", secondary=journal_tags)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction",
        back_populates="journal",
        cascade="all, delete-orphan",
    )

    # Read helpers used by rule triggers

    @property
    def amount(self) -> Decimal:
        """Journal amount: the sum of positive postings."""
        return sum(
            (t.amount for t in self.transactions if t.amount > 0),
            Decimal("0"),
        )

    @property
    def source_accounts(self) -> list[Account]:
        return [t.account for t in self.transactions if t.amount < 0]

    @property
    def destination_accounts(self) -> list[Account]:
        return [t.account for t in self.transactions if t.amount > 0]

    @property
    def account_ids(self) -> set[UUID]:
        return {
            t.account.id if t.account is not None else t.account_id
            for t in self.transactions
        }

    @property
    def currency_codes(self) -> set[str]:
        return {t.currency_code for t in self.transactions}

    @property
    def category_name(self) -> str | None:
        return self.category.name if self.category is not None else None

    @property
    def budget_name(self) -> str | None:
        return self.budget.name if self.budget is not None else None

    @property
    def tag_names(self) -> list[str]:
        return [t.tag for t in self.tags]

    def __repr__(self) -> str:
        return f"<TransactionJournal {self.date} {self.description!r}>"


class Transaction(TrackedBase):
    """
    A single posting of a journal against one account.

    Amount is signed: negative for money leaving the account, positive for
    money arriving.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transaction_journal", "journal_id"),
        Index("idx_transaction_account", "account_id"),
    )

    journal_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transaction_journals.id", ondelete="CASCADE"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)

    journal: Mapped[TransactionJournal] = relationship(
        "TransactionJournal", back_populates="transactions",
    )
    account: Mapped[Account] = relationship("Account")
