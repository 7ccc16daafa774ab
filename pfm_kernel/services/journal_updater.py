"""
JournalUpdater -- shared journal mutation helper for rule actions.

Responsibility:
    The single write path rule actions use to change a transaction journal:
    category, budget, tags, description and notes.  Labels (categories,
    budgets, tags) are resolved by name within the journal's user and
    created on first use.

Architecture position:
    Kernel > Services.  Composed by reference into every rule action
    (pfm_rules.actions); actions never touch the session themselves.

Invariants enforced:
    - Labels are looked up and created in the journal owner's scope only.
    - Label names compare case-insensitively, like the text triggers; the
      first spelling stored is the one kept.
    - A tag is attached to a journal at most once, ignoring case.
    - Descriptions are cut to ``DESCRIPTION_MAX_LENGTH`` characters.
    - Budgets only apply to withdrawals; other journal types are left as is.
    - Flush-only: new label rows are flushed so later lookups in the same
      run find them; commit is the caller's business.

Every mutator returns True when the journal changed and False when it was
already in the requested state.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pfm_kernel.logging_config import get_logger
from pfm_kernel.models.journal import (
    DESCRIPTION_MAX_LENGTH,
    Budget,
    Category,
    Tag,
    TransactionJournal,
    TransactionType,
)
from pfm_kernel.services.base import BaseService

logger = get_logger("services.journal_updater")


def _fold(text: str) -> str:
    return text.casefold()


class JournalUpdater(BaseService[TransactionJournal]):
    """Mutates journals on behalf of rule actions."""

    def __init__(self, session: Session):
        super().__init__(session)

    # -------------------------------------------------------------------------
    # Category / budget
    # -------------------------------------------------------------------------

    def set_category(self, journal: TransactionJournal, name: str) -> bool:
        category = self._category(journal.user_id, name)
        if journal.category is category:
            return False
        journal.category = category
        self._log_change(journal, "category", name)
        return True

    def clear_category(self, journal: TransactionJournal) -> bool:
        if journal.category is None:
            return False
        journal.category = None
        self._log_change(journal, "category", None)
        return True

    def set_budget(self, journal: TransactionJournal, name: str) -> bool:
        if journal.transaction_type != TransactionType.WITHDRAWAL.value:
            logger.debug(
                "budget_skipped_not_withdrawal",
                extra={
                    "journal_id": str(journal.id),
                    "transaction_type": journal.transaction_type,
                },
            )
            return False
        budget = self._budget(journal.user_id, name)
        if journal.budget is budget:
            return False
        journal.budget = budget
        self._log_change(journal, "budget", name)
        return True

    def clear_budget(self, journal: TransactionJournal) -> bool:
        if journal.budget is None:
            return False
        journal.budget = None
        self._log_change(journal, "budget", None)
        return True

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    def add_tag(self, journal: TransactionJournal, name: str) -> bool:
        if _fold(name) in {_fold(existing) for existing in journal.tag_names}:
            return False
        journal.tags.append(self._tag(journal.user_id, name))
        self._log_change(journal, "tags", name)
        return True

    def remove_tag(self, journal: TransactionJournal, name: str) -> bool:
        remaining = [tag for tag in journal.tags if _fold(tag.tag) != _fold(name)]
        if len(remaining) == len(journal.tags):
            return False
        journal.tags = remaining
        self._log_change(journal, "tags", [t.tag for t in remaining])
        return True

    def remove_all_tags(self, journal: TransactionJournal) -> bool:
        if not journal.tags:
            return False
        journal.tags = []
        self._log_change(journal, "tags", [])
        return True

    # -------------------------------------------------------------------------
    # Description / notes
    # -------------------------------------------------------------------------

    def set_description(self, journal: TransactionJournal, text: str) -> bool:
        text = text[:DESCRIPTION_MAX_LENGTH]
        if journal.description == text:
            return False
        journal.description = text
        self._log_change(journal, "description", text)
        return True

    def append_description(self, journal: TransactionJournal, text: str) -> bool:
        return self.set_description(journal, journal.description + text)

    def prepend_description(self, journal: TransactionJournal, text: str) -> bool:
        return self.set_description(journal, text + journal.description)

    def set_notes(self, journal: TransactionJournal, text: str | None) -> bool:
        if (journal.notes or None) == (text or None):
            return False
        journal.notes = text or None
        self._log_change(journal, "notes", journal.notes)
        return True

    def append_notes(self, journal: TransactionJournal, text: str) -> bool:
        return self.set_notes(journal, (journal.notes or "") + text)

    def prepend_notes(self, journal: TransactionJournal, text: str) -> bool:
        return self.set_notes(journal, text + (journal.notes or ""))

    def clear_notes(self, journal: TransactionJournal) -> bool:
        return self.set_notes(journal, None)

    # -------------------------------------------------------------------------
    # Label resolution
    # -------------------------------------------------------------------------

    def _category(self, user_id: UUID, name: str) -> Category:
        return self._label(Category, "name", user_id, name)

    def _budget(self, user_id: UUID, name: str) -> Budget:
        return self._label(Budget, "name", user_id, name)

    def _tag(self, user_id: UUID, name: str) -> Tag:
        return self._label(Tag, "tag", user_id, name)

    def _label(self, model, field: str, user_id: UUID, name: str):
        column = getattr(model, field)
        existing = self.session.execute(
            select(model)
            .where(model.user_id == user_id, func.lower(column) == name.lower())
            .order_by(model.created_at)
        ).scalars().first()
        if existing is not None:
            return existing
        return self._get_or_create(model, user_id=user_id, **{field: name})

    def _log_change(self, journal: TransactionJournal, field: str, value) -> None:
        logger.debug(
            "journal_updated",
            extra={"journal_id": str(journal.id), "field": field, "value": value},
        )
