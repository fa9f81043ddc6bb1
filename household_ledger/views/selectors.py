"""
Derived Views

Pure functions over state tree collections. Nothing here touches the
network or mutates its input; HouseholdStore memoizes them on the identity
of the collections they read.

Expense dates are ISO-8601 strings in one shared format, so sorting them as
strings sorts them chronologically.
"""

import calendar
import csv
import io
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, NamedTuple, Optional, Sequence

from household_ledger.models.household import (
    NEUTRAL_CATEGORY_COLOR,
    UNKNOWN_CATEGORY_ICON,
    CategoryDefinition,
    CategoryIcon,
    Expense,
    ExpenseFilter,
    Income,
    RecurringExpense,
    ShoppingItem,
)


CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def wall_clock(stamp: str) -> datetime:
    """
    Naive local wall-clock reading of a stored timestamp.

    Stamps carrying an offset (generated ones are UTC) are shifted to the
    device's local time first, so day filters and month buckets follow the
    household's calendar. Naive stamps are taken as already local.
    """
    moment = datetime.fromisoformat(stamp)
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.replace(tzinfo=None)


def newest_first(expenses: Iterable[Expense]) -> list[Expense]:
    return sorted(expenses, key=lambda e: e.date, reverse=True)


# =============================================================================
# CATEGORIES
# =============================================================================

class CategoryMatch(NamedTuple):
    """Display metadata for a category name, found or fallen back."""
    found: bool
    name: str
    icon: CategoryIcon
    color: str
    definition: Optional[CategoryDefinition] = None


def lookup_category(
    name: str,
    definitions: Sequence[CategoryDefinition],
) -> CategoryMatch:
    """
    Find the definition for a free-text category name.

    Matching ignores case and surrounding spaces. A name without a
    definition gets the help-circle glyph and the neutral color.
    """
    key = (name or "").strip().lower()
    for definition in definitions:
        if definition.name.strip().lower() == key:
            return CategoryMatch(
                found=True,
                name=name,
                icon=definition.icon,
                color=definition.color,
                definition=definition,
            )
    return CategoryMatch(
        found=False,
        name=name,
        icon=UNKNOWN_CATEGORY_ICON,
        color=NEUTRAL_CATEGORY_COLOR,
    )


def unique_category_names(
    expenses: Sequence[Expense],
    categories: Sequence[CategoryDefinition],
) -> tuple[str, ...]:
    names = {e.category for e in expenses if e.category}
    names.update(c.name for c in categories)
    return tuple(sorted(names))


# =============================================================================
# EXPENSE LIST
# =============================================================================

def filter_expenses(
    expenses: Sequence[Expense],
    expense_filter: Optional[ExpenseFilter] = None,
) -> tuple[Expense, ...]:
    """
    Apply an expense filter and sort newest first.

    Date bounds are whole days: start_date from 00:00 and end_date through
    23:59:59.999999, both inclusive.
    """
    f = expense_filter or ExpenseFilter()
    start = datetime.combine(f.start_date, time.min) if f.start_date else None
    end = datetime.combine(f.end_date, time.max) if f.end_date else None

    kept = []
    for expense in expenses:
        if f.store and expense.store != f.store:
            continue
        if f.category and expense.category != f.category:
            continue
        if start or end:
            moment = wall_clock(expense.date)
            if start and moment < start:
                continue
            if end and moment > end:
                continue
        kept.append(expense)
    return tuple(newest_first(kept))


def filtered_total(expenses: Iterable[Expense]) -> Decimal:
    return sum((e.total for e in expenses), ZERO)


def product_store_history(expenses: Sequence[Expense]) -> dict[str, str]:
    """
    Map each product name to the store of its most recent purchase.

    Folds from oldest to newest so newer purchases overwrite older ones.
    """
    history: dict[str, str] = {}
    for expense in reversed(newest_first(expenses)):
        history[expense.product] = expense.store
    return history


def expense_rows(
    expenses: Iterable[Expense],
    definitions: Sequence[CategoryDefinition],
) -> list[dict]:
    """Flat display rows with category icon and color resolved."""
    rows = []
    for expense in expenses:
        match = lookup_category(expense.category, definitions)
        rows.append({
            "id": expense.id,
            "date": expense.date,
            "product": expense.product,
            "quantity": expense.quantity,
            "unit_price": expense.unit_price,
            "total": expense.total,
            "store": expense.store,
            "category": expense.category,
            "icon": match.icon.value,
            "color": match.color,
            "member_id": expense.member_id,
        })
    return rows


EXPORT_COLUMNS = [
    "date", "product", "quantity", "unit_price", "total",
    "store", "category", "icon",
]


def export_expenses_csv(
    expenses: Iterable[Expense],
    definitions: Sequence[CategoryDefinition],
) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for row in expense_rows(expenses, definitions):
        writer.writerow(row)
    return buffer.getvalue()


# =============================================================================
# RECURRING
# =============================================================================

def due_recurring_expenses(
    items: Sequence[RecurringExpense],
    today: date,
) -> tuple[RecurringExpense, ...]:
    """Bills inside their reminder window or overdue, soonest first."""
    due = [
        item for item in items
        if today >= item.next_due_date - timedelta(days=item.reminder_days)
    ]
    return tuple(sorted(due, key=lambda item: item.next_due_date))


# =============================================================================
# ANALYTICS
# =============================================================================

class MonthlyTotal(NamedTuple):
    year: int
    month: int
    label: str
    total: Decimal


def monthly_totals(expenses: Iterable[Expense]) -> list[MonthlyTotal]:
    """Spend per calendar month, most recent month first."""
    sums: dict[tuple[int, int], Decimal] = {}
    for expense in expenses:
        moment = wall_clock(expense.date)
        key = (moment.year, moment.month)
        sums[key] = sums.get(key, ZERO) + expense.total
    return [
        MonthlyTotal(
            year=year,
            month=month,
            label=f"{calendar.month_name[month]} {year}",
            total=to_cents(total),
        )
        for (year, month), total in sorted(sums.items(), reverse=True)
    ]


def _grouped_totals(expenses: Iterable[Expense], attribute: str) -> list[tuple[str, Decimal]]:
    sums: dict[str, Decimal] = {}
    for expense in expenses:
        key = getattr(expense, attribute)
        sums[key] = sums.get(key, ZERO) + expense.total
    ranked = sorted(sums.items(), key=lambda pair: pair[1], reverse=True)
    return [(name, to_cents(total)) for name, total in ranked]


def category_totals(
    expenses: Iterable[Expense],
    limit: Optional[int] = 5,
) -> list[tuple[str, Decimal]]:
    ranked = _grouped_totals(expenses, "category")
    return ranked if limit is None else ranked[:limit]


def store_totals(expenses: Iterable[Expense]) -> list[tuple[str, Decimal]]:
    return _grouped_totals(expenses, "store")


class Balance(NamedTuple):
    income_total: Decimal
    expense_total: Decimal
    balance: Decimal


def balance(incomes: Iterable[Income], expenses: Iterable[Expense]) -> Balance:
    income_total = sum((i.amount for i in incomes), ZERO)
    expense_total = filtered_total(expenses)
    return Balance(
        income_total=to_cents(income_total),
        expense_total=to_cents(expense_total),
        balance=to_cents(income_total - expense_total),
    )


# =============================================================================
# SHOPPING LIST
# =============================================================================

def pending_shopping_items(items: Sequence[ShoppingItem]) -> tuple[ShoppingItem, ...]:
    return tuple(item for item in items if not item.completed)


def shopping_items_by_store(items: Sequence[ShoppingItem]) -> dict[str, list[ShoppingItem]]:
    """Group items by store, stores in first-seen order."""
    grouped: dict[str, list[ShoppingItem]] = {}
    for item in items:
        grouped.setdefault(item.store, []).append(item)
    return grouped
