"""ORM models for the PFM kernel."""

from pfm_kernel.models.account import Account, AccountType
from pfm_kernel.models.journal import (
    Budget,
    Category,
    Tag,
    Transaction,
    TransactionJournal,
    TransactionType,
    journal_tags,
)
from pfm_kernel.models.rule import Rule, RuleAction, RuleGroup, RuleTrigger
from pfm_kernel.models.user import User

__all__ = [
    "Account",
    "AccountType",
    "Budget",
    "Category",
    "Rule",
    "RuleAction",
    "RuleGroup",
    "RuleTrigger",
    "Tag",
    "Transaction",
    "TransactionJournal",
    "TransactionType",
    "User",
    "journal_tags",
]
