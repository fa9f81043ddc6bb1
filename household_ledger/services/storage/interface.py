"""
Abstract Remote Store Gateway

DESIGN DECISION: The remote store is reached only through this interface.
This allows us to:
1. Swap Google Sheets for a hosted database later
2. Use in-memory storage for testing and offline demos
3. Keep the state layer unaware of the storage schema

Every tenant collection gets the same small operation set: bulk fetch by
tenant, insert, patch by id and delete by id. Field-name and type
translation between the in-memory models and the storage columns is the
gateway's responsibility and never leaks into callers.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

from household_ledger.models.household import FamilyProfile, LedgerModel


class Collection(str, Enum):
    """Tenant-scoped collections held by the remote store."""
    EXPENSES = "expenses"
    INCOMES = "incomes"
    STORES = "stores"
    CATEGORIES = "categories"
    RECURRING_EXPENSES = "recurring_expenses"
    SHOPPING_LIST = "shopping_list"


class StoreGatewayInterface(ABC):
    """
    Abstract interface for remote store operations.

    Any backend (Google Sheets, a hosted Postgres, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def fetch_all(
        self,
        collection: Collection,
        tenant_id: str,
    ) -> list[LedgerModel]:
        """
        Fetch every entity of a collection for one tenant.

        Args:
            collection: Which collection to read
            tenant_id: The family identifier

        Returns:
            List of entities in storage order

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def insert(
        self,
        collection: Collection,
        tenant_id: str,
        entity: LedgerModel,
    ) -> bool:
        """
        Insert a new entity for a tenant.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If the write fails
            DuplicateError: If an entity with the same id exists
        """
        pass

    @abstractmethod
    async def update(
        self,
        collection: Collection,
        entity_id: str,
        patch: dict[str, Any],
    ) -> bool:
        """
        Apply a partial update to an entity.

        Args:
            collection: Which collection holds the entity
            entity_id: The entity's identifier
            patch: Attribute names (model field names) to new values

        Raises:
            StorageError: If the write fails
            NotFoundError: If the entity doesn't exist
        """
        pass

    @abstractmethod
    async def delete(
        self,
        collection: Collection,
        entity_id: str,
    ) -> bool:
        """
        Delete an entity by id.

        Returns:
            True if a row was deleted, False if none matched
        """
        pass

    @abstractmethod
    async def get_profile(self, tenant_id: str) -> Optional[FamilyProfile]:
        """
        Retrieve a family profile with its members.

        Returns:
            The profile if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_profile(self, profile: FamilyProfile) -> bool:
        """
        Create the tenant record and its members.

        Raises:
            DuplicateError: If the profile already exists
        """
        pass

    @abstractmethod
    async def update_profile(self, tenant_id: str, patch: dict[str, Any]) -> bool:
        """
        Patch profile-level fields (currently only google_sheet_url).

        Raises:
            NotFoundError: If the profile doesn't exist
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class HydrationError(StorageError):
    """A collection could not be bulk-loaded at session start."""

    def __init__(self, collection: Collection, cause: Exception):
        self.collection = collection
        self.cause = cause
        super().__init__(f"Failed to load {collection.value}: {cause}")
