"""
Main Orchestrator for Household Ledger

This module ties together all the components and defines the end-to-end
flows for:
1. Session (profile lookup or creation -> device cache -> hydrate)
2. Expense entry (AI category with fallback -> optimistic add)
3. Receipt import (AI parse -> batch add at the head of the list)
4. Flyer offer checks (device-local preferences only)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The AI never blocks or fails an entry; it only suggests
- A remote failure never ends a session; the app keeps working locally
- Every step is audited
"""

from datetime import date
from decimal import Decimal
from typing import Any, NamedTuple, Optional

from household_ledger.agents import ExpenseAgent
from household_ledger.audit import AuditLogger, create_correlation_id
from household_ledger.config import get_settings
from household_ledger.models.audit import AuditEventBuilder
from household_ledger.models.household import (
    LOCAL_FAMILY_ID,
    FamilyProfile,
    FlyerOffer,
    OfferPreferences,
    ReceiptScanResult,
    new_id,
)
from household_ledger.services.local_cache import LocalPreferenceCache
from household_ledger.services.offers import OfferFinder, now_ms
from household_ledger.services.receipt_image import ReceiptImageChecker
from household_ledger.services.storage import (
    GoogleSheetsStoreGateway,
    InMemoryStoreGateway,
    StoreGatewayInterface,
)
from household_ledger.state import (
    HouseholdStore,
    HydrationReport,
    LocalStateTree,
    MutationResult,
    RemoteMirror,
)
from household_ledger.validation import EntryValidationError, EntryValidator


class SessionFlow:
    """
    Starts and ends a family session.

    Flow:
    1. Look the profile up remotely; create it when it does not exist
    2. Cache the profile on this device
    3. Hydrate the state tree from the remote store

    Remote failures in steps 1 and 3 are logged and the session continues
    from whatever local state is available.
    """

    def __init__(
        self,
        gateway: StoreGatewayInterface,
        store: HouseholdStore,
        cache: LocalPreferenceCache,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._gateway = gateway
        self._store = store
        self._cache = cache
        self._audit_logger = audit_logger

    async def start(self, profile: FamilyProfile) -> HydrationReport:
        if not profile.id:
            profile = profile.model_copy(update={"id": new_id()})

        active = profile
        try:
            remote = await self._gateway.get_profile(profile.id)
            if remote is None:
                await self._gateway.create_profile(profile)
                if self._audit_logger:
                    self._audit_logger.log(AuditEventBuilder.profile_created(
                        tenant_id=profile.id,
                        family_name=profile.family_name,
                    ))
            else:
                active = remote
        except Exception as e:
            if self._audit_logger:
                self._audit_logger.log_error(
                    error_type="profile_sync_failed",
                    error_message=str(e),
                    details={"tenant_id": profile.id},
                )

        self._cache.save_profile(active)
        self._store.tree.set_profile(active)
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.session_started(
                tenant_id=active.id,
                family_name=active.family_name,
            ))
        return await self._store.tree.hydrate(active.id)

    async def resume(self) -> Optional[HydrationReport]:
        """
        Restart the session of the profile cached on this device, if any.

        An imported local-only family has no remote copy to resume from.
        """
        cached = self._cache.load_profile()
        if cached is None or not cached.id or cached.id == LOCAL_FAMILY_ID:
            return None
        return await self.start(cached)

    def end(self) -> None:
        """Log out: forget the cached profile and clear local state."""
        tenant_id = self._store.tree.tenant_id
        self._cache.clear_profile()
        self._store.tree.reset()
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.session_ended(tenant_id))


class ReceiptImport(NamedTuple):
    scan: ReceiptScanResult
    mutation: Optional[MutationResult]


class ExpenseEntryFlow:
    """
    Expense entry with AI assistance.

    The AI suggests categories and parses receipts; the store applies the
    entry. An AI failure only means the default category is used.
    """

    def __init__(
        self,
        store: HouseholdStore,
        agent: ExpenseAgent,
        audit_logger: Optional[AuditLogger] = None,
        default_receipt_store: Optional[str] = None,
        image_checker: Optional[ReceiptImageChecker] = None,
    ):
        self._store = store
        self._agent = agent
        self._audit_logger = audit_logger
        self._image_checker = image_checker or ReceiptImageChecker()
        self._default_receipt_store = (
            default_receipt_store or get_settings().app.default_receipt_store
        )

    async def add_expense(
        self,
        product: str,
        store: str,
        total: Any = None,
        quantity: Any = None,
        unit_price: Any = None,
        category: Optional[str] = None,
        member_id: Optional[str] = None,
    ) -> MutationResult:
        """Add an expense, asking the AI for a category when none is given."""
        if not category:
            category = await self._agent.categorize(
                product, store, self._store.category_names() or None
            )
        return self._store.add_expense(
            product=product,
            store=store,
            total=total,
            quantity=quantity,
            unit_price=unit_price,
            category=category,
            member_id=member_id,
        )

    async def import_receipt(
        self,
        image_bytes: bytes,
        member_id: Optional[str] = None,
    ) -> ReceiptImport:
        """
        Scan a receipt and add its lines as expenses.

        Lines land at the head of the list in receipt order, dated now.
        A photo that fails the image checks never reaches the AI. A failed
        scan, or lines the store rejects, add nothing.
        """
        correlation_id = create_correlation_id()
        image = self._image_checker.prepare(image_bytes)
        if not image.usable:
            return ReceiptImport(
                scan=ReceiptScanResult(success=False, error="; ".join(image.issues)),
                mutation=None,
            )

        scan = await self._agent.parse_receipt_image(image.image_bytes, image.mime_type)
        if not scan.success or scan.data is None or not scan.data.items:
            if self._audit_logger and not scan.success:
                self._audit_logger.log_external_service_error(
                    service="receipt_scan",
                    error_message=scan.error or "Receipt could not be read",
                    correlation_id=correlation_id,
                )
            return ReceiptImport(scan=scan, mutation=None)

        store_name = (scan.data.store or "").strip() or self._default_receipt_store
        entries = [
            {
                "product": item.product,
                "store": store_name,
                "quantity": item.quantity if item.quantity > 0 else Decimal("1"),
                "unit_price": item.unit_price or None,  # 0 means not printed
                "total": item.total,
                "category": item.category or self._store.default_category,
                "member_id": member_id,
            }
            for item in scan.data.items
        ]
        try:
            mutation = self._store.add_expenses_batch(entries)
        except EntryValidationError as e:
            return ReceiptImport(
                scan=ReceiptScanResult(success=False, data=scan.data, error=str(e)),
                mutation=None,
            )
        return ReceiptImport(scan=scan, mutation=mutation)

    async def spending_insight(self) -> str:
        return await self._agent.analyze_spending(self._store.expenses)


class OfferCheckFlow:
    """
    Flyer checks driven by device-local preferences.

    Only OfferPreferences are read or written; the ledger is untouched.
    """

    def __init__(
        self,
        finder: OfferFinder,
        cache: LocalPreferenceCache,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._finder = finder
        self._cache = cache
        self._audit_logger = audit_logger
        self._preferences = cache.load_offer_preferences()

    @property
    def preferences(self) -> OfferPreferences:
        return self._preferences

    def update_preferences(self, **changes: Any) -> OfferPreferences:
        self._preferences = OfferPreferences.model_validate(
            {**self._preferences.model_dump(), **changes}
        )
        self._cache.save_offer_preferences(self._preferences)
        return self._preferences

    def run_now(self, at_ms: Optional[int] = None) -> list[FlyerOffer]:
        prefs = self._preferences
        offers = self._finder.find_offers(prefs.city, prefs.selected_stores)
        self.update_preferences(last_check_date=now_ms() if at_ms is None else at_ms)
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.offer_check_completed(
                city=prefs.city,
                store_count=len(prefs.selected_stores),
                offer_count=len(offers),
            ))
        return offers

    def run_if_due(self, at_ms: Optional[int] = None) -> Optional[list[FlyerOffer]]:
        """Run the automatic check when its interval has elapsed; else None."""
        at_ms = now_ms() if at_ms is None else at_ms
        if not self._finder.is_check_due(self._preferences, at_ms):
            return None
        return self.run_now(at_ms)


class AppComponents(NamedTuple):
    gateway: StoreGatewayInterface
    audit_logger: AuditLogger
    store: HouseholdStore
    agent: ExpenseAgent
    cache: LocalPreferenceCache
    session: SessionFlow
    entry: ExpenseEntryFlow
    offers: OfferCheckFlow


def create_app_components(
    backend: Optional[str] = None,
    gateway: Optional[StoreGatewayInterface] = None,
    agent: Optional[ExpenseAgent] = None,
    data_dir: Optional[str] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        backend: "google_sheets" or "memory"; defaults to AppSettings.backend.
                 Google Sheets falls back to memory when not configured.
        gateway: Use this gateway instead of building one (tests)
        agent: Use this AI agent instead of building one (tests)
        data_dir: Device cache directory; defaults to AppSettings.data_dir
    """
    app_settings = get_settings().app
    audit_logger = AuditLogger()

    if gateway is None:
        backend = backend or app_settings.backend
        if backend == "google_sheets":
            try:
                gateway = GoogleSheetsStoreGateway()
            except Exception as e:
                # Storage not configured - continue without it
                audit_logger.log_error(
                    error_type="storage_not_configured",
                    error_message=str(e),
                )
                gateway = InMemoryStoreGateway()
        else:
            gateway = InMemoryStoreGateway()

    cache = LocalPreferenceCache(data_dir or app_settings.data_dir)
    tree = LocalStateTree(gateway, audit_logger)
    store = HouseholdStore(
        tree=tree,
        mirror=RemoteMirror(gateway, audit_logger),
        validator=EntryValidator(app_settings.max_expense_amount),
        audit_logger=audit_logger,
        default_category=app_settings.default_category,
        today=date.today,
        on_profile_change=cache.save_profile,
    )
    agent = agent or ExpenseAgent(
        audit_logger=audit_logger,
        default_category=app_settings.default_category,
    )

    return AppComponents(
        gateway=gateway,
        audit_logger=audit_logger,
        store=store,
        agent=agent,
        cache=cache,
        session=SessionFlow(gateway, store, cache, audit_logger),
        entry=ExpenseEntryFlow(
            store, agent, audit_logger, app_settings.default_receipt_store,
            ReceiptImageChecker(
                app_settings.supported_formats_list,
                app_settings.max_upload_size_bytes,
            ),
        ),
        offers=OfferCheckFlow(
            OfferFinder(app_settings.offer_check_interval_ms), cache, audit_logger
        ),
    )
