"""Services for the PFM kernel (write side)."""

from pfm_kernel.services.journal_updater import JournalUpdater

__all__ = [
    "JournalUpdater",
]
