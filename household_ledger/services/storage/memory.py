"""
In-Memory Store Gateway

Keeps every table as a list of text rows, going through the same row
mapping as the Google Sheets gateway. Used by the test suite, for demos and
when no spreadsheet is configured.
"""

from typing import Any, Optional

from household_ledger.models.household import FamilyProfile, LedgerModel
from household_ledger.services.storage.interface import (
    Collection,
    DuplicateError,
    NotFoundError,
    StoreGatewayInterface,
)
from household_ledger.services.storage.mapping import (
    TENANT_COLUMN,
    entity_to_row,
    member_to_row,
    patch_to_cells,
    profile_patch_to_cells,
    profile_to_row,
    row_to_entity,
    row_to_member,
    row_to_profile,
)


class InMemoryStoreGateway(StoreGatewayInterface):
    """Process-local remote store."""

    def __init__(self):
        self._tables: dict[Collection, list[dict[str, str]]] = {
            collection: [] for collection in Collection
        }
        self._families: list[dict[str, str]] = []
        self._members: list[dict[str, str]] = []

    def rows(self, collection: Collection) -> list[dict[str, str]]:
        """Raw stored rows, for inspection."""
        return [dict(row) for row in self._tables[collection]]

    def _find(self, collection: Collection, entity_id: str) -> Optional[dict[str, str]]:
        for row in self._tables[collection]:
            if row["id"] == entity_id:
                return row
        return None

    async def fetch_all(self, collection: Collection, tenant_id: str) -> list[LedgerModel]:
        return [
            row_to_entity(collection, row)
            for row in self._tables[collection]
            if row[TENANT_COLUMN] == tenant_id
        ]

    async def insert(
        self,
        collection: Collection,
        tenant_id: str,
        entity: LedgerModel,
    ) -> bool:
        if self._find(collection, entity.id) is not None:
            raise DuplicateError(f"{collection.value} already has id {entity.id}")
        self._tables[collection].append(entity_to_row(collection, tenant_id, entity))
        return True

    async def update(
        self,
        collection: Collection,
        entity_id: str,
        patch: dict[str, Any],
    ) -> bool:
        row = self._find(collection, entity_id)
        if row is None:
            raise NotFoundError(f"{collection.value} has no id {entity_id}")
        row.update(patch_to_cells(collection, patch))
        return True

    async def delete(self, collection: Collection, entity_id: str) -> bool:
        row = self._find(collection, entity_id)
        if row is None:
            return False
        self._tables[collection].remove(row)
        return True

    async def get_profile(self, tenant_id: str) -> Optional[FamilyProfile]:
        for row in self._families:
            if row["id"] == tenant_id:
                members = [
                    row_to_member(member)
                    for member in self._members
                    if member[TENANT_COLUMN] == tenant_id
                ]
                return row_to_profile(row, members)
        return None

    async def create_profile(self, profile: FamilyProfile) -> bool:
        if any(row["id"] == profile.id for row in self._families):
            raise DuplicateError(f"Family already exists: {profile.id}")
        self._families.append(profile_to_row(profile))
        self._members.extend(member_to_row(profile.id, m) for m in profile.members)
        return True

    async def update_profile(self, tenant_id: str, patch: dict[str, Any]) -> bool:
        for row in self._families:
            if row["id"] == tenant_id:
                row.update(profile_patch_to_cells(patch))
                return True
        raise NotFoundError(f"Family not found: {tenant_id}")
