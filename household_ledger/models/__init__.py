"""
Data Models Package

This package contains all Pydantic models used in Household Ledger.
All data flowing through the system must conform to these schemas.
"""

from household_ledger.models.household import (
    CATEGORY_PALETTE,
    DEFAULT_CATEGORIES,
    DEFAULT_CATEGORY_NAME,
    DEFAULT_STORES,
    LOCAL_FAMILY_ID,
    NEUTRAL_CATEGORY_COLOR,
    UNKNOWN_CATEGORY_ICON,
    CategoryDefinition,
    CategoryIcon,
    CustomField,
    Expense,
    ExpenseFilter,
    FamilyProfile,
    FlyerOffer,
    Frequency,
    Income,
    Member,
    OfferPreferences,
    ReceiptData,
    ReceiptItem,
    ReceiptScanResult,
    RecurringExpense,
    ShoppingItem,
    Store,
    SyncSnapshot,
    ValidationIssue,
    ValidationResult,
    new_id,
    now_iso,
)
from household_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Household models
    "CATEGORY_PALETTE",
    "DEFAULT_CATEGORIES",
    "DEFAULT_CATEGORY_NAME",
    "DEFAULT_STORES",
    "LOCAL_FAMILY_ID",
    "NEUTRAL_CATEGORY_COLOR",
    "UNKNOWN_CATEGORY_ICON",
    "CategoryDefinition",
    "CategoryIcon",
    "CustomField",
    "Expense",
    "ExpenseFilter",
    "FamilyProfile",
    "FlyerOffer",
    "Frequency",
    "Income",
    "Member",
    "OfferPreferences",
    "ReceiptData",
    "ReceiptItem",
    "ReceiptScanResult",
    "RecurringExpense",
    "ShoppingItem",
    "Store",
    "SyncSnapshot",
    "ValidationIssue",
    "ValidationResult",
    "new_id",
    "now_iso",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
