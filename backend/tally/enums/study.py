"""
Study Tracking Enums

Defines enums for material units, quota modes, and the persistence
mutations emitted by the progress ledger.
"""

from enum import Enum


class QuotaMode(str, Enum):
    """
    How a daily quota is obtained.

    - MANUAL: the user-entered daily quota is used as-is
    - AUTO: quota is derived from remaining work and a deadline
    """

    MANUAL = "manual"
    AUTO = "auto"


class UnitKind(str, Enum):
    """
    Unit of measure for a material's amounts.

    Time-based materials store every amount in minutes.
    """

    COUNT = "count"  # pages, problems, chapters...
    TIME = "time"  # minutes


class MutationKind(str, Enum):
    """Kinds of ledger changes handed to the persistence layer on commit."""

    ENTRY_ADDED = "entry_added"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"
    PROGRESS_CHANGED = "progress_changed"
    MATERIAL_UPDATED = "material_updated"
    MATERIAL_DELETED = "material_deleted"
