"""
Pure domain helpers with NO dependencies on the ORM, the database or I/O.
"""

from pfm_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
]
