"""
Centralized enum definitions for the application.

Usage:
    from tally.enums import QuotaMode, UnitKind
"""

from tally.enums.study import MutationKind, QuotaMode, UnitKind

__all__ = [
    "MutationKind",
    "QuotaMode",
    "UnitKind",
]
