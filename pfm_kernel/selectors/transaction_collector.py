"""
Module: pfm_kernel.selectors.transaction_collector
Responsibility: Select the transaction journals a batch rule run applies to:
    one user's journals, optionally restricted to a set of accounts and to an
    inclusive date range.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - Read-only: No mutations performed on any queried data.
    - Deterministic order: date descending, then creation time descending,
      then id.  Rule actions are order dependent, so the order is part of
      the contract.
    - Postings, accounts, tags, category and budget are eager loaded so
      trigger evaluation issues no per-journal queries.

Non-goals:
    - Unlike the other selectors this one returns ORM instances, not DTOs:
      rule actions mutate the journals it returns.
    - No pagination; the complete matching set is returned in one call.
"""

from collections.abc import Collection, Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from pfm_kernel.logging_config import get_logger
from pfm_kernel.models.journal import Transaction, TransactionJournal
from pfm_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.transaction_collector")


class TransactionCollector(BaseSelector[TransactionJournal]):
    """
    SQLAlchemy implementation of the transaction query collaborator.

    Contract:
        ``collect()`` returns the user's journals that have at least one
        posting on an account in ``account_ids`` (no filter when empty) and
        whose date lies within ``[start_date, end_date]`` (unbounded where
        a bound is None).
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def collect(
        self,
        user_id: UUID,
        account_ids: Collection[UUID] = (),
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Sequence[TransactionJournal]:
        stmt = (
            select(TransactionJournal)
            .where(TransactionJournal.user_id == user_id)
            .options(
                selectinload(TransactionJournal.transactions).selectinload(
                    Transaction.account
                ),
                selectinload(TransactionJournal.tags),
                selectinload(TransactionJournal.category),
                selectinload(TransactionJournal.budget),
            )
        )

        if account_ids:
            on_accounts = select(Transaction.journal_id).where(
                Transaction.account_id.in_(list(account_ids))
            )
            stmt = stmt.where(TransactionJournal.id.in_(on_accounts))

        if start_date is not None:
            stmt = stmt.where(TransactionJournal.date >= start_date)
        if end_date is not None:
            stmt = stmt.where(TransactionJournal.date <= end_date)

        stmt = stmt.order_by(
            TransactionJournal.date.desc(),
            TransactionJournal.created_at.desc(),
            TransactionJournal.id,
        )

        journals = self._all(stmt)

        logger.debug(
            "transactions_collected",
            extra={
                "user_id": str(user_id),
                "account_filter": len(account_ids),
                "start_date": start_date,
                "end_date": end_date,
                "count": len(journals),
            },
        )
        return journals
