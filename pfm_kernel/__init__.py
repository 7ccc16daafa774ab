"""
PFM Kernel

Persistence and infrastructure for the personal-finance rule engine:
- Users, accounts, transaction journals and their postings
- Rule groups, rules, triggers and actions
- Read-side collaborators (transaction collector, rule repository)
- Write-side journal updates used by rule actions
- Structured logging and typed exceptions
"""

__version__ = "0.1.0"
