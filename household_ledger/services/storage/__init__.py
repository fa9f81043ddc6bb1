"""
Storage Services Package

Provides the abstract remote store interface and its implementations.
Google Sheets is the hosted backend; the in-memory gateway backs tests and
offline runs.
"""

from household_ledger.services.storage.interface import (
    Collection,
    DuplicateError,
    HydrationError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    StoreGatewayInterface,
)
from household_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsStoreGateway,
)
from household_ledger.services.storage.memory import InMemoryStoreGateway

__all__ = [
    # Interface
    "Collection",
    "StoreGatewayInterface",
    # Exceptions
    "DuplicateError",
    "HydrationError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsStoreGateway",
    "InMemoryStoreGateway",
]
