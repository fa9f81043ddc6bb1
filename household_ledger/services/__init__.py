"""Services package."""

from household_ledger.services.local_cache import LocalPreferenceCache
from household_ledger.services.offers import OfferFinder
from household_ledger.services.receipt_image import ReceiptImage, ReceiptImageChecker
from household_ledger.services.storage import (
    Collection,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsStoreGateway,
    HydrationError,
    InMemoryStoreGateway,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    StoreGatewayInterface,
)

__all__ = [
    # Device-local services
    "LocalPreferenceCache",
    "OfferFinder",
    "ReceiptImage",
    "ReceiptImageChecker",
    # Storage services
    "Collection",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsStoreGateway",
    "HydrationError",
    "InMemoryStoreGateway",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "StoreGatewayInterface",
]
