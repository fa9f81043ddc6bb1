"""
Storage Row Mapping

Translates between the in-memory models and flat storage rows.

A row is a dict of column name to text cell, the lowest common
denominator of a spreadsheet and a relational table. Every row carries
the family_id partition column; models never do.
"""

import json
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from household_ledger.models.household import (
    CategoryDefinition,
    CustomField,
    Expense,
    FamilyProfile,
    Income,
    LedgerModel,
    Member,
    RecurringExpense,
    ShoppingItem,
    Store,
)
from household_ledger.services.storage.interface import Collection, StorageError


TENANT_COLUMN = "family_id"

COLLECTION_MODELS: dict[Collection, type[LedgerModel]] = {
    Collection.EXPENSES: Expense,
    Collection.INCOMES: Income,
    Collection.STORES: Store,
    Collection.CATEGORIES: CategoryDefinition,
    Collection.RECURRING_EXPENSES: RecurringExpense,
    Collection.SHOPPING_LIST: ShoppingItem,
}

# Column order is the sheet layout; "id" is always first
COLLECTION_COLUMNS: dict[Collection, list[str]] = {
    Collection.EXPENSES: [
        "id", TENANT_COLUMN, "product", "quantity", "unit_price", "total",
        "store", "date", "category", "member_id",
    ],
    Collection.INCOMES: ["id", TENANT_COLUMN, "source", "amount", "date"],
    Collection.STORES: ["id", TENANT_COLUMN, "name"],
    Collection.CATEGORIES: ["id", TENANT_COLUMN, "name", "icon", "color"],
    Collection.RECURRING_EXPENSES: [
        "id", TENANT_COLUMN, "product", "amount", "store", "frequency",
        "next_due_date", "reminder_days", "custom_fields",
    ],
    Collection.SHOPPING_LIST: ["id", TENANT_COLUMN, "product", "store", "completed"],
}

FAMILY_COLUMNS = ["id", "family_name", "google_sheet_url", "created_at"]
MEMBER_COLUMNS = ["id", TENANT_COLUMN, "name", "color", "user_id", "is_admin"]

_BOOLEAN_COLUMNS = {"completed", "is_admin"}
_JSON_COLUMNS = {"custom_fields"}


def to_cell(value: Any) -> str:
    """Encode one attribute value as a storage cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (Decimal, int)):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, list):
        return json.dumps([
            item.model_dump(mode="json") if isinstance(item, LedgerModel) else item
            for item in value
        ])
    return str(value)


def from_cell(column: str, cell: str) -> Any:
    """Decode a storage cell; empty cells decode to None."""
    if cell is None or cell == "":
        return None
    if column in _BOOLEAN_COLUMNS:
        return str(cell).strip().lower() in ("true", "1", "yes")
    if column in _JSON_COLUMNS:
        return json.loads(cell)
    return cell


def entity_to_row(
    collection: Collection,
    tenant_id: str,
    entity: LedgerModel,
) -> dict[str, str]:
    """Convert an entity to a storage row for a tenant."""
    row = {TENANT_COLUMN: tenant_id}
    for column in COLLECTION_COLUMNS[collection]:
        if column == TENANT_COLUMN:
            continue
        row[column] = to_cell(getattr(entity, column))
    return row


def row_to_entity(collection: Collection, row: dict[str, str]) -> LedgerModel:
    """Convert a storage row back to its model. Empty cells take model defaults."""
    data = {}
    for column in COLLECTION_COLUMNS[collection]:
        if column == TENANT_COLUMN:
            continue
        value = from_cell(column, row.get(column, ""))
        if value is not None:
            data[column] = value
    return COLLECTION_MODELS[collection].model_validate(data)


def patch_to_cells(collection: Collection, patch: dict[str, Any]) -> dict[str, str]:
    """
    Convert an attribute patch to column cells.

    Raises:
        StorageError: If the patch names a column the collection lacks
            or tries to move the entity to another id or tenant.
    """
    columns = COLLECTION_COLUMNS[collection]
    cells = {}
    for key, value in patch.items():
        if key in ("id", TENANT_COLUMN) or key not in columns:
            raise StorageError(f"Cannot patch {collection.value}.{key}")
        if key == "custom_fields" and value:
            value = [CustomField.model_validate(item) for item in value]
        cells[key] = to_cell(value)
    return cells


def profile_to_row(profile: FamilyProfile) -> dict[str, str]:
    return {column: to_cell(getattr(profile, column)) for column in FAMILY_COLUMNS}


def profile_patch_to_cells(patch: dict[str, Any]) -> dict[str, str]:
    cells = {}
    for key, value in patch.items():
        if key == "id" or key not in FAMILY_COLUMNS:
            raise StorageError(f"Cannot patch families.{key}")
        cells[key] = to_cell(value)
    return cells


def member_to_row(tenant_id: str, member: Member) -> dict[str, str]:
    row = {TENANT_COLUMN: tenant_id}
    for column in MEMBER_COLUMNS:
        if column != TENANT_COLUMN:
            row[column] = to_cell(getattr(member, column))
    return row


def row_to_member(row: dict[str, str]) -> Member:
    data = {}
    for column in MEMBER_COLUMNS:
        if column == TENANT_COLUMN:
            continue
        value = from_cell(column, row.get(column, ""))
        if value is not None:
            data[column] = value
    return Member.model_validate(data)


def row_to_profile(row: dict[str, str], members: list[Member]) -> FamilyProfile:
    data: dict[str, Any] = {"members": members}
    for column in FAMILY_COLUMNS:
        value = from_cell(column, row.get(column, ""))
        if value is not None:
            data[column] = value
    return FamilyProfile.model_validate(data)
