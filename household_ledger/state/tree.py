"""
Local State Tree

The in-memory, authoritative copy of the active family's data. Every
collection is an immutable tuple that is replaced (never edited) on each
mutation, so a changed collection is always a new object.

Only hydrate() reads from the remote store; every other read is served
from memory.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Iterable, Optional

from household_ledger.audit import AuditLogger
from household_ledger.models.audit import AuditEventBuilder
from household_ledger.models.household import (
    DEFAULT_CATEGORIES,
    DEFAULT_STORES,
    CategoryDefinition,
    Expense,
    FamilyProfile,
    Income,
    LedgerModel,
    RecurringExpense,
    ShoppingItem,
    Store,
)
from household_ledger.services.storage.interface import (
    Collection,
    HydrationError,
    StoreGatewayInterface,
)


# Collections that fall back to built-in defaults on a first run
_DEFAULTS: dict[Collection, tuple[LedgerModel, ...]] = {
    Collection.STORES: DEFAULT_STORES,
    Collection.CATEGORIES: DEFAULT_CATEGORIES,
}


@dataclass
class HydrationReport:
    """Outcome of loading one family's collections."""

    tenant_id: str
    counts: dict[str, int] = field(default_factory=dict)
    failed: list[Collection] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed


class LocalStateTree:
    """
    One tuple per collection, scoped to the active family.

    Writes go through replace(); HouseholdStore is the only writer.
    """

    def __init__(
        self,
        gateway: StoreGatewayInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._gateway = gateway
        self._audit_logger = audit_logger
        self._profile: Optional[FamilyProfile] = None
        self._collections: dict[Collection, tuple] = {}
        self.reset()

    @property
    def profile(self) -> Optional[FamilyProfile]:
        return self._profile

    @property
    def tenant_id(self) -> Optional[str]:
        return self._profile.id if self._profile else None

    @property
    def expenses(self) -> tuple[Expense, ...]:
        return self._collections[Collection.EXPENSES]

    @property
    def incomes(self) -> tuple[Income, ...]:
        return self._collections[Collection.INCOMES]

    @property
    def stores(self) -> tuple[Store, ...]:
        return self._collections[Collection.STORES]

    @property
    def categories(self) -> tuple[CategoryDefinition, ...]:
        return self._collections[Collection.CATEGORIES]

    @property
    def recurring_expenses(self) -> tuple[RecurringExpense, ...]:
        return self._collections[Collection.RECURRING_EXPENSES]

    @property
    def shopping_list(self) -> tuple[ShoppingItem, ...]:
        return self._collections[Collection.SHOPPING_LIST]

    def get(self, collection: Collection) -> tuple:
        return self._collections[collection]

    def replace(self, collection: Collection, items: Iterable[LedgerModel]) -> None:
        self._collections[collection] = tuple(items)

    def set_profile(self, profile: Optional[FamilyProfile]) -> None:
        self._profile = profile

    def counts(self) -> dict[str, int]:
        return {c.value: len(items) for c, items in self._collections.items()}

    def reset(self) -> None:
        """Forget the active family and all of its collections."""
        self._profile = None
        self._collections = {collection: () for collection in Collection}

    async def _fetch(self, collection: Collection, tenant_id: str) -> list[LedgerModel]:
        try:
            return await self._gateway.fetch_all(collection, tenant_id)
        except Exception as e:
            raise HydrationError(collection, e) from e

    async def hydrate(self, tenant_id: str) -> HydrationReport:
        """
        Load every collection for a family, concurrently.

        Fetches are failure-isolated: a failed collection is logged and
        falls back (stores and categories to the built-in defaults, the
        rest to empty) while the others still load.
        """
        collections = list(Collection)
        results = await asyncio.gather(
            *(self._fetch(c, tenant_id) for c in collections),
            return_exceptions=True,
        )

        report = HydrationReport(tenant_id=tenant_id)
        for collection, result in zip(collections, results):
            if isinstance(result, BaseException):
                report.failed.append(collection)
                if self._audit_logger:
                    self._audit_logger.log_hydration_failed(
                        tenant_id=tenant_id,
                        collection=collection.value,
                        error_message=str(result),
                    )
                result = []
            if not result:
                result = _DEFAULTS.get(collection, ())
            self.replace(collection, result)
            report.counts[collection.value] = len(result)

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.hydration_completed(
                tenant_id=tenant_id,
                counts=report.counts,
                failed=[c.value for c in report.failed],
            ))
        return report
