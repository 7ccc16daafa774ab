"""Selectors for the PFM kernel (read side)."""

from pfm_kernel.selectors.rule_repository import (
    STORE_JOURNAL_TRIGGER_TYPE,
    STORE_JOURNAL_TRIGGER_VALUE,
    RuleRepository,
    batch_eligibility_clause,
    is_batch_eligible,
)
from pfm_kernel.selectors.transaction_collector import TransactionCollector

__all__ = [
    "RuleRepository",
    "STORE_JOURNAL_TRIGGER_TYPE",
    "STORE_JOURNAL_TRIGGER_VALUE",
    "TransactionCollector",
    "batch_eligibility_clause",
    "is_batch_eligible",
]
