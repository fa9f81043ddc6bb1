"""Derived view package."""

from household_ledger.views.memo import IdentityMemo
from household_ledger.views.selectors import (
    Balance,
    CategoryMatch,
    MonthlyTotal,
    balance,
    category_totals,
    due_recurring_expenses,
    expense_rows,
    export_expenses_csv,
    filter_expenses,
    filtered_total,
    lookup_category,
    monthly_totals,
    pending_shopping_items,
    product_store_history,
    shopping_items_by_store,
    store_totals,
    unique_category_names,
)

__all__ = [
    "Balance",
    "CategoryMatch",
    "IdentityMemo",
    "MonthlyTotal",
    "balance",
    "category_totals",
    "due_recurring_expenses",
    "expense_rows",
    "export_expenses_csv",
    "filter_expenses",
    "filtered_total",
    "lookup_category",
    "monthly_totals",
    "pending_shopping_items",
    "product_store_history",
    "shopping_items_by_store",
    "store_totals",
    "unique_category_names",
]
