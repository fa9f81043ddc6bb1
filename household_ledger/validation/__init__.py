"""Validation package."""

from household_ledger.validation.validator import EntryValidationError, EntryValidator

__all__ = [
    "EntryValidationError",
    "EntryValidator",
]
