"""
Household Store

The command and query surface over the local state tree.

DESIGN DECISION: Every command follows the same two phases:
1. Validate, build the new entity and apply it to the tree synchronously.
   The caller sees the new state as soon as the command returns.
2. Hand the matching gateway call to the RemoteMirror, which runs it in
   the background. The command never waits for it.

A remote failure is logged and leaves local state alone; nothing is
retried or rolled back. Commands return a MutationResult whose `remote`
is the background task (or a gathered future when a command writes more
than once, or None when nothing is mirrored).

Read views are memoized on the identity of the collections they read.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import (
    Any,
    Awaitable,
    Callable,
    Iterable,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
)

from pydantic import ValidationError

from household_ledger.audit import AuditLogger
from household_ledger.config import get_settings
from household_ledger.models.audit import AuditEventBuilder
from household_ledger.models.household import (
    DEFAULT_CATEGORIES,
    DEFAULT_STORES,
    LOCAL_FAMILY_ID,
    CategoryDefinition,
    Expense,
    ExpenseFilter,
    FamilyProfile,
    Income,
    LedgerModel,
    RecurringExpense,
    ShoppingItem,
    Store,
    SyncSnapshot,
    ValidationResult,
    new_id,
    now_iso,
)
from household_ledger.services.storage.interface import Collection
from household_ledger.snapshot.codec import (
    SnapshotDecodeError,
    decode_snapshot,
    encode_snapshot,
)
from household_ledger.state.mirror import RemoteMirror
from household_ledger.state.reminders import advance_due_date
from household_ledger.state.tree import LocalStateTree
from household_ledger.validation.validator import EntryValidationError, EntryValidator
from household_ledger.views import selectors
from household_ledger.views.memo import IdentityMemo


CENT = Decimal("0.01")

M = TypeVar("M", bound=LedgerModel)

EXPENSE_FIELDS = {
    "product", "quantity", "unit_price", "total", "store",
    "date", "category", "member_id",
}
RECURRING_FIELDS = {
    "product", "amount", "store", "frequency", "next_due_date",
    "reminder_days", "custom_fields",
}


class UnknownEntityError(LookupError):
    """A command referenced an id that is not in the local state."""

    def __init__(self, collection: Collection, entity_id: str):
        self.collection = collection
        self.entity_id = entity_id
        super().__init__(f"No {collection.value} entry with id {entity_id}")


class NoActiveProfileError(RuntimeError):
    """The command needs a family profile and none is loaded."""
    pass


@dataclass
class MutationResult:
    """What a command changed locally and the handle of its remote write."""

    entity: Any
    remote: Optional[Awaitable[Any]] = None
    warnings: list[str] = field(default_factory=list)

    async def mirrored(self) -> bool:
        """Wait for the remote write. True when every write succeeded."""
        if self.remote is None:
            return True
        return _succeeded(await self.remote)


def _succeeded(outcome: Any) -> bool:
    if isinstance(outcome, list):
        return all(_succeeded(item) for item in outcome)
    return bool(outcome)


def _combine(*remotes: Optional[Awaitable[Any]]) -> Optional[Awaitable[Any]]:
    pending = [r for r in remotes if r is not None]
    if not pending:
        return None
    if len(pending) == 1:
        return pending[0]
    return asyncio.gather(*pending)


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return Decimal(str(value))


class HouseholdStore:
    """
    Optimistic commands and memoized views for one household.

    Commands that mirror remotely must be called with an event loop running.
    """

    def __init__(
        self,
        tree: LocalStateTree,
        mirror: RemoteMirror,
        validator: Optional[EntryValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        default_category: Optional[str] = None,
        today: Callable[[], date] = date.today,
        on_profile_change: Optional[Callable[[FamilyProfile], None]] = None,
    ):
        self._tree = tree
        self._mirror = mirror
        self._validator = validator or EntryValidator()
        self._audit_logger = audit_logger
        self._default_category = default_category or get_settings().app.default_category
        self._today = today
        self._on_profile_change = on_profile_change

        self._category_names = IdentityMemo(selectors.unique_category_names)
        self._filtered = IdentityMemo(selectors.filter_expenses)
        self._due = IdentityMemo(
            lambda items: selectors.due_recurring_expenses(items, self._today())
        )
        # Cached results are shared, so hand out read-only copies
        self._history = IdentityMemo(
            lambda expenses: MappingProxyType(selectors.product_store_history(expenses))
        )
        self._monthly = IdentityMemo(lambda expenses: tuple(selectors.monthly_totals(expenses)))
        self._by_category = IdentityMemo(
            lambda expenses: tuple(selectors.category_totals(expenses))
        )
        self._by_store = IdentityMemo(lambda expenses: tuple(selectors.store_totals(expenses)))
        self._balance = IdentityMemo(selectors.balance)
        self._pending_items = IdentityMemo(selectors.pending_shopping_items)

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def tree(self) -> LocalStateTree:
        return self._tree

    @property
    def mirror(self) -> RemoteMirror:
        return self._mirror

    @property
    def profile(self) -> Optional[FamilyProfile]:
        return self._tree.profile

    @property
    def default_category(self) -> str:
        return self._default_category

    @property
    def expenses(self) -> tuple[Expense, ...]:
        return self._tree.expenses

    @property
    def incomes(self) -> tuple[Income, ...]:
        return self._tree.incomes

    @property
    def stores(self) -> tuple[Store, ...]:
        return self._tree.stores

    @property
    def categories(self) -> tuple[CategoryDefinition, ...]:
        return self._tree.categories

    @property
    def recurring_expenses(self) -> tuple[RecurringExpense, ...]:
        return self._tree.recurring_expenses

    @property
    def shopping_list(self) -> tuple[ShoppingItem, ...]:
        return self._tree.shopping_list

    async def drain(self) -> None:
        """Wait for all background remote writes."""
        await self._mirror.drain()

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    @property
    def _mirrored_tenant(self) -> Optional[str]:
        """Tenant to mirror to; None for no session or an imported local family."""
        tenant_id = self._tree.tenant_id
        if tenant_id is None or tenant_id == LOCAL_FAMILY_ID:
            return None
        return tenant_id

    def _record(self, collection: Collection, operation: str, entity_id: Optional[str]) -> None:
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.mutation_applied(
                tenant_id=self._tree.tenant_id,
                collection=collection.value,
                operation=operation,
                entity_id=entity_id,
            ))

    def _log_rejected(self, result: ValidationResult) -> None:
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.validation_failed(
                entity_type=result.entity_type,
                issues=[issue.model_dump() for issue in result.issues],
            ))

    def _check(self, result: ValidationResult) -> list[str]:
        if result.has_errors:
            self._log_rejected(result)
        self._validator.check(result)
        return result.warnings

    def _model(self, model: type[M], entity_type: str, data: dict[str, Any]) -> M:
        """Build an entity; model constraint failures become entry errors."""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            result = self._validator.from_model_error(entity_type, e)
            self._log_rejected(result)
            raise EntryValidationError(result) from e

    def _find(self, collection: Collection, entity_id: str) -> tuple[int, LedgerModel]:
        for index, entity in enumerate(self._tree.get(collection)):
            if entity.id == entity_id:
                return index, entity
        raise UnknownEntityError(collection, entity_id)

    def _insert(
        self,
        collection: Collection,
        entity: LedgerModel,
        prepend: bool = False,
    ) -> Optional[asyncio.Task]:
        current = self._tree.get(collection)
        self._tree.replace(collection, (entity,) + current if prepend else current + (entity,))
        self._record(collection, "insert", entity.id)
        tenant_id = self._mirrored_tenant
        if tenant_id is None:
            return None
        return self._mirror.insert(tenant_id, collection, entity)

    def _replace_at(
        self,
        collection: Collection,
        index: int,
        entity: LedgerModel,
        patch: dict[str, Any],
    ) -> Optional[asyncio.Task]:
        items = list(self._tree.get(collection))
        items[index] = entity
        self._tree.replace(collection, items)
        self._record(collection, "update", entity.id)
        tenant_id = self._mirrored_tenant
        if tenant_id is None or not patch:
            return None
        return self._mirror.update(tenant_id, collection, entity.id, patch)

    def _remove(self, collection: Collection, entity_ids: set[str]) -> Optional[Awaitable[Any]]:
        self._tree.replace(
            collection,
            (e for e in self._tree.get(collection) if e.id not in entity_ids),
        )
        for entity_id in entity_ids:
            self._record(collection, "delete", entity_id)
        tenant_id = self._mirrored_tenant
        if tenant_id is None:
            return None
        return _combine(*(
            self._mirror.delete(tenant_id, collection, entity_id)
            for entity_id in sorted(entity_ids)
        ))

    def _ensure_store(self, name: str) -> Optional[asyncio.Task]:
        """Create a store lazily the first time its name is used."""
        if self.find_store(name) is not None:
            return None
        return self._insert(Collection.STORES, Store(name=name.strip()))

    def find_store(self, name: str) -> Optional[Store]:
        key = name.strip().lower()
        for store in self._tree.stores:
            if store.name.strip().lower() == key:
                return store
        return None

    def _build_expense(self, entry: dict[str, Any]) -> Expense:
        """
        Fill in the derived money fields of an expense entry.

        Total-only entries get unit_price = total / quantity in cents;
        price-only entries get total = quantity * unit_price.
        """
        quantity = _decimal(entry.get("quantity")) or Decimal("1")
        unit_price = _decimal(entry.get("unit_price"))
        total = _decimal(entry.get("total"))
        if total is None:
            total = (quantity * unit_price).quantize(CENT, rounding=ROUND_HALF_UP)
        elif unit_price is None:
            unit_price = (total / quantity).quantize(CENT, rounding=ROUND_HALF_UP)

        category = entry.get("category")
        if not category or not str(category).strip():
            category = self._default_category

        return self._model(Expense, "expenses", {
            "id": new_id(),
            "product": entry["product"],
            "quantity": quantity,
            "unit_price": unit_price,
            "total": total,
            "store": entry["store"],
            "date": entry.get("date") or now_iso(),
            "category": category,
            "member_id": entry.get("member_id"),
        })

    def _validate_expense_entry(self, entry: dict[str, Any]) -> list[str]:
        return self._check(self._validator.validate_expense(
            product=entry.get("product"),
            store=entry.get("store"),
            total=entry.get("total"),
            quantity=entry.get("quantity"),
            unit_price=entry.get("unit_price"),
        ))

    # =========================================================================
    # EXPENSES
    # =========================================================================

    def add_expense(
        self,
        product: str,
        store: str,
        total: Any = None,
        quantity: Any = None,
        unit_price: Any = None,
        category: Optional[str] = None,
        member_id: Optional[str] = None,
        date: Optional[str] = None,
    ) -> MutationResult:
        """
        Record a purchase at the head of the expense list.

        Raises:
            EntryValidationError: If the entry is incomplete or malformed
        """
        entry = {
            "product": product, "store": store, "total": total,
            "quantity": quantity, "unit_price": unit_price,
            "category": category, "member_id": member_id, "date": date,
        }
        warnings = self._validate_expense_entry(entry)
        expense = self._build_expense(entry)
        remote = _combine(
            self._insert(Collection.EXPENSES, expense, prepend=True),
            self._ensure_store(expense.store),
        )
        return MutationResult(entity=expense, remote=remote, warnings=warnings)

    def add_expenses_batch(self, entries: Sequence[dict[str, Any]]) -> MutationResult:
        """
        Record several purchases at once, e.g. the lines of a scanned receipt.

        The batch lands at the head of the list in the given order. Every
        entry is validated before any is applied.
        """
        warnings = []
        for entry in entries:
            warnings.extend(self._validate_expense_entry(entry))
        batch = tuple(self._build_expense(entry) for entry in entries)
        if not batch:
            return MutationResult(entity=())

        self._tree.replace(Collection.EXPENSES, batch + self._tree.expenses)
        for expense in batch:
            self._record(Collection.EXPENSES, "insert", expense.id)

        remotes = []
        tenant_id = self._mirrored_tenant
        if tenant_id is not None:
            remotes.extend(
                self._mirror.insert(tenant_id, Collection.EXPENSES, e) for e in batch
            )
        for name in dict.fromkeys(e.store for e in batch):
            remotes.append(self._ensure_store(name))
        return MutationResult(entity=batch, remote=_combine(*remotes), warnings=warnings)

    def update_expense(self, expense_id: str, **changes: Any) -> MutationResult:
        """
        Edit an expense in place. Its position in the list is kept.

        Raises:
            UnknownEntityError: If no expense has this id
            EntryValidationError: If the edited expense is invalid
        """
        unknown = set(changes) - EXPENSE_FIELDS
        if unknown:
            raise ValueError(f"Cannot edit expense fields: {', '.join(sorted(unknown))}")
        index, current = self._find(Collection.EXPENSES, expense_id)
        merged = {**current.model_dump(), **changes}
        warnings = self._check(self._validator.validate_expense(
            product=merged["product"],
            store=merged["store"],
            total=merged["total"],
            quantity=merged["quantity"],
            unit_price=merged["unit_price"],
        ))
        updated = self._model(Expense, "expenses", merged)
        patch = {key: getattr(updated, key) for key in changes}
        remote = _combine(
            self._replace_at(Collection.EXPENSES, index, updated, patch),
            self._ensure_store(updated.store) if "store" in changes else None,
        )
        return MutationResult(entity=updated, remote=remote, warnings=warnings)

    def delete_expense(
        self,
        expense_id: str,
        confirm: Callable[[Expense], bool],
    ) -> Optional[MutationResult]:
        """
        Delete an expense after the caller confirms.

        Returns None, with nothing changed, when confirm() declines.
        """
        _, expense = self._find(Collection.EXPENSES, expense_id)
        if not confirm(expense):
            return None
        return MutationResult(
            entity=expense,
            remote=self._remove(Collection.EXPENSES, {expense_id}),
        )

    # =========================================================================
    # INCOMES
    # =========================================================================

    def add_income(self, source: str, amount: Any, date: Optional[str] = None) -> MutationResult:
        on = date.isoformat() if hasattr(date, "isoformat") else date
        self._check(self._validator.validate_income(source, amount, on))
        income = self._model(Income, "incomes", {
            "id": new_id(),
            "source": source,
            "amount": Decimal(str(amount)),
            "date": on or now_iso(),
        })
        return MutationResult(entity=income, remote=self._insert(Collection.INCOMES, income))

    def delete_income(self, income_id: str) -> MutationResult:
        _, income = self._find(Collection.INCOMES, income_id)
        return MutationResult(entity=income, remote=self._remove(Collection.INCOMES, {income_id}))

    # =========================================================================
    # STORES
    # =========================================================================

    def add_store(self, name: str) -> MutationResult:
        """Add a store; an existing name (any case) is returned unchanged."""
        self._check(self._validator.validate_name("stores", name))
        existing = self.find_store(name)
        if existing is not None:
            return MutationResult(entity=existing)
        store = Store(id=new_id(), name=name.strip())
        return MutationResult(entity=store, remote=self._insert(Collection.STORES, store))

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    def add_category(
        self,
        name: str,
        icon: Optional[str] = None,
        color: Optional[str] = None,
    ) -> MutationResult:
        self._check(self._validator.validate_name("categories", name))
        data: dict[str, Any] = {"id": new_id(), "name": name}
        if icon:
            data["icon"] = icon
        if color:
            data["color"] = color
        category = self._model(CategoryDefinition, "categories", data)
        return MutationResult(entity=category, remote=self._insert(Collection.CATEGORIES, category))

    def delete_category(self, category_id: str) -> MutationResult:
        """Expenses keep their category text; it just loses its glyph."""
        _, category = self._find(Collection.CATEGORIES, category_id)
        return MutationResult(
            entity=category,
            remote=self._remove(Collection.CATEGORIES, {category_id}),
        )

    # =========================================================================
    # RECURRING
    # =========================================================================

    def add_recurring(
        self,
        product: str,
        amount: Any,
        store: str,
        frequency: Any,
        next_due_date: Any,
        reminder_days: Any = 0,
        custom_fields: Optional[Iterable[Any]] = None,
    ) -> MutationResult:
        warnings = self._check(self._validator.validate_recurring(
            product, amount, store, frequency, next_due_date, reminder_days,
        ))
        item = self._model(RecurringExpense, "recurring_expenses", {
            "id": new_id(),
            "product": product,
            "amount": Decimal(str(amount)),
            "store": store,
            "frequency": frequency,
            "next_due_date": next_due_date,
            "reminder_days": int(reminder_days or 0),
            "custom_fields": list(custom_fields or []),
        })
        remote = _combine(
            self._insert(Collection.RECURRING_EXPENSES, item),
            self._ensure_store(item.store),
        )
        return MutationResult(entity=item, remote=remote, warnings=warnings)

    def update_recurring(self, recurring_id: str, **changes: Any) -> MutationResult:
        unknown = set(changes) - RECURRING_FIELDS
        if unknown:
            raise ValueError(f"Cannot edit recurring fields: {', '.join(sorted(unknown))}")
        index, current = self._find(Collection.RECURRING_EXPENSES, recurring_id)
        merged = {**current.model_dump(), **changes}
        warnings = self._check(self._validator.validate_recurring(
            merged["product"], merged["amount"], merged["store"],
            merged["frequency"], merged["next_due_date"], merged["reminder_days"],
        ))
        updated = self._model(RecurringExpense, "recurring_expenses", merged)
        patch = {key: getattr(updated, key) for key in changes}
        remote = _combine(
            self._replace_at(Collection.RECURRING_EXPENSES, index, updated, patch),
            self._ensure_store(updated.store) if "store" in changes else None,
        )
        return MutationResult(entity=updated, remote=remote, warnings=warnings)

    def delete_recurring(self, recurring_id: str) -> MutationResult:
        _, item = self._find(Collection.RECURRING_EXPENSES, recurring_id)
        return MutationResult(
            entity=item,
            remote=self._remove(Collection.RECURRING_EXPENSES, {recurring_id}),
        )

    def process_recurring(self, recurring_id: str) -> MutationResult:
        """
        Pay a recurring bill.

        Records an expense for the bill amount dated now and moves the due
        date forward one period. Both changes are applied locally at once
        and mirrored independently; the entity is (expense, updated item).
        """
        index, item = self._find(Collection.RECURRING_EXPENSES, recurring_id)
        expense = Expense(
            id=new_id(),
            product=item.product,
            quantity=Decimal("1"),
            unit_price=item.amount,
            total=item.amount,
            store=item.store,
            date=now_iso(),
            category=self._default_category,
        )
        advanced = item.model_copy(
            update={"next_due_date": advance_due_date(item.next_due_date, item.frequency)}
        )

        expense_remote = self._insert(Collection.EXPENSES, expense, prepend=True)
        item_remote = self._replace_at(
            Collection.RECURRING_EXPENSES, index, advanced,
            {"next_due_date": advanced.next_due_date},
        )
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.recurring_processed(
                tenant_id=self._tree.tenant_id,
                recurring_id=item.id,
                expense_id=expense.id,
                next_due_date=advanced.next_due_date.isoformat(),
            ))
        return MutationResult(
            entity=(expense, advanced),
            remote=_combine(expense_remote, item_remote),
        )

    # =========================================================================
    # SHOPPING LIST
    # =========================================================================

    def add_shopping_item(self, product: str, store: str) -> MutationResult:
        self._check(self._validator.validate_shopping_item(product, store))
        item = self._model(ShoppingItem, "shopping_list", {
            "id": new_id(), "product": product, "store": store,
        })
        remote = _combine(
            self._insert(Collection.SHOPPING_LIST, item),
            self._ensure_store(item.store),
        )
        return MutationResult(entity=item, remote=remote)

    def toggle_shopping_item(self, item_id: str) -> MutationResult:
        index, item = self._find(Collection.SHOPPING_LIST, item_id)
        toggled = item.model_copy(update={"completed": not item.completed})
        return MutationResult(
            entity=toggled,
            remote=self._replace_at(
                Collection.SHOPPING_LIST, index, toggled, {"completed": toggled.completed}
            ),
        )

    def delete_shopping_item(self, item_id: str) -> MutationResult:
        _, item = self._find(Collection.SHOPPING_LIST, item_id)
        return MutationResult(entity=item, remote=self._remove(Collection.SHOPPING_LIST, {item_id}))

    def clear_completed_shopping_items(self) -> MutationResult:
        done = tuple(item for item in self._tree.shopping_list if item.completed)
        if not done:
            return MutationResult(entity=())
        return MutationResult(
            entity=done,
            remote=self._remove(Collection.SHOPPING_LIST, {item.id for item in done}),
        )

    # =========================================================================
    # PROFILE
    # =========================================================================

    def set_google_sheet_url(self, url: str) -> MutationResult:
        profile = self._tree.profile
        if profile is None:
            raise NoActiveProfileError("No family profile loaded")
        url = url.strip() or None
        updated = profile.model_copy(update={"google_sheet_url": url})
        self._tree.set_profile(updated)
        if self._on_profile_change:
            self._on_profile_change(updated)
        tenant_id = self._mirrored_tenant
        remote = None
        if tenant_id is not None:
            remote = self._mirror.update_profile(tenant_id, {"google_sheet_url": url})
        return MutationResult(entity=updated, remote=remote)

    # =========================================================================
    # SNAPSHOT
    # =========================================================================

    def build_snapshot(self) -> SyncSnapshot:
        profile = self._tree.profile
        if profile is None:
            raise NoActiveProfileError("No family profile to export")
        return SyncSnapshot(
            expenses=list(self.expenses),
            incomes=list(self.incomes),
            stores=list(self.stores),
            recurring_expenses=list(self.recurring_expenses),
            shopping_list=list(self.shopping_list),
            family_profile=profile,
            categories=list(self.categories),
        )

    def export_snapshot_token(self) -> str:
        token = encode_snapshot(self.build_snapshot())
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.snapshot_exported(
                tenant_id=self._tree.tenant_id,
                counts=self._tree.counts(),
            ))
        return token

    def import_snapshot_token(
        self,
        token: str,
        confirm: Callable[[SyncSnapshot], bool],
    ) -> Optional[SyncSnapshot]:
        """
        Replace every synced collection with a snapshot's contents.

        The token is decoded before confirm() is asked, so a bad token
        never reaches the prompt. Declining changes nothing and returns
        None. The import stays on this device; nothing is mirrored.

        Raises:
            SnapshotDecodeError: If the token is not a valid snapshot
        """
        try:
            snapshot = decode_snapshot(token)
        except SnapshotDecodeError as e:
            if self._audit_logger:
                self._audit_logger.log(AuditEventBuilder.snapshot_rejected(str(e)))
            raise

        if not confirm(snapshot):
            return None

        profile = snapshot.family_profile
        if not profile.id:
            profile = profile.model_copy(update={"id": LOCAL_FAMILY_ID})
            snapshot = snapshot.model_copy(update={"family_profile": profile})

        self._tree.set_profile(profile)
        self._tree.replace(Collection.EXPENSES, snapshot.expenses)
        self._tree.replace(Collection.INCOMES, snapshot.incomes)
        self._tree.replace(Collection.STORES, snapshot.stores or DEFAULT_STORES)
        self._tree.replace(Collection.CATEGORIES, snapshot.categories or DEFAULT_CATEGORIES)
        self._tree.replace(Collection.RECURRING_EXPENSES, snapshot.recurring_expenses)
        self._tree.replace(Collection.SHOPPING_LIST, snapshot.shopping_list)
        if self._on_profile_change:
            self._on_profile_change(profile)

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.snapshot_imported(
                tenant_id=profile.id,
                counts=self._tree.counts(),
            ))
        return snapshot

    # =========================================================================
    # VIEWS
    # =========================================================================

    def category_names(self) -> tuple[str, ...]:
        return self._category_names(self.expenses, self.categories)

    def filtered_expenses(self, expense_filter: Optional[ExpenseFilter] = None) -> tuple[Expense, ...]:
        return self._filtered(self.expenses, expense_filter or ExpenseFilter())

    def filtered_total(self, expense_filter: Optional[ExpenseFilter] = None) -> Decimal:
        return selectors.filtered_total(self.filtered_expenses(expense_filter))

    def due_recurring(self) -> tuple[RecurringExpense, ...]:
        """Due bills. "Today" is read when the recurring list last changed."""
        return self._due(self.recurring_expenses)

    def product_history(self) -> Mapping[str, str]:
        return self._history(self.expenses)

    def monthly_totals(self) -> tuple[selectors.MonthlyTotal, ...]:
        return self._monthly(self.expenses)

    def category_totals(self) -> tuple[tuple[str, Decimal], ...]:
        return self._by_category(self.expenses)

    def store_totals(self) -> tuple[tuple[str, Decimal], ...]:
        return self._by_store(self.expenses)

    def balance(self) -> selectors.Balance:
        return self._balance(self.incomes, self.expenses)

    def pending_shopping_items(self) -> tuple[ShoppingItem, ...]:
        return self._pending_items(self.shopping_list)

    def lookup_category(self, name: str) -> selectors.CategoryMatch:
        return selectors.lookup_category(name, self.categories)

    def expense_rows(self, expense_filter: Optional[ExpenseFilter] = None) -> list[dict]:
        return selectors.expense_rows(self.filtered_expenses(expense_filter), self.categories)

    def export_expenses_csv(self, expense_filter: Optional[ExpenseFilter] = None) -> str:
        return selectors.export_expenses_csv(
            self.filtered_expenses(expense_filter), self.categories
        )
