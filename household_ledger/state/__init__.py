"""
State Package

The local state tree, the optimistic command layer over it, the background
remote mirror and the recurring-bill reminder policy.
"""

from household_ledger.state.mirror import MirrorWriteFailure, RemoteMirror
from household_ledger.state.reminders import (
    DueStatus,
    advance_due_date,
    days_until_due,
    due_status,
    is_due,
)
from household_ledger.state.store import (
    HouseholdStore,
    MutationResult,
    NoActiveProfileError,
    UnknownEntityError,
)
from household_ledger.state.tree import HydrationReport, LocalStateTree

__all__ = [
    "DueStatus",
    "HouseholdStore",
    "HydrationReport",
    "LocalStateTree",
    "MirrorWriteFailure",
    "MutationResult",
    "NoActiveProfileError",
    "RemoteMirror",
    "UnknownEntityError",
    "advance_due_date",
    "days_until_due",
    "due_status",
    "is_due",
]
