"""
Module: pfm_kernel.models.account
Responsibility: ORM persistence for user accounts -- the target of every
    transaction posting.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Account names are unique per user and account type.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pfm_kernel.db.base import TrackedBase, UUIDString


class AccountType(str, Enum):
    """Kinds of accounts a user can hold or transact with."""

    ASSET = "asset"
    EXPENSE = "expense"
    REVENUE = "revenue"
    LIABILITY = "liability"
    CASH = "cash"
    INITIAL_BALANCE = "initial_balance"


class Account(TrackedBase):
    """
    A user account.

    Asset and liability accounts belong to the user; expense and revenue
    accounts are the counterparties money flows to and from.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("user_id", "account_type", "name", name="uq_account_name"),
        Index("idx_account_user", "user_id"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[str] = mapped_column(
        String(30),
        default=AccountType.ASSET.value,
        nullable=False,
    )

    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Account {self.name} ({self.account_type})>"
