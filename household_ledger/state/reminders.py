"""
Recurring Bill Reminder Policy

Decides when a recurring bill shows up as an alert and where its due date
moves once it has been paid.

Month arithmetic clamps to the last day of the target month:
2024-01-31 plus one month is 2024-02-29, and 2024-02-29 plus one year is
2025-02-28. The clamped day carries forward to later periods.
"""

import calendar
from datetime import date, timedelta
from enum import Enum

from household_ledger.models.household import Frequency, RecurringExpense


class DueStatus(str, Enum):
    NOT_DUE = "not_due"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"


def _add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def advance_due_date(current: date, frequency: Frequency) -> date:
    """Next due date after a payment on the current one."""
    frequency = Frequency(frequency)
    if frequency == Frequency.WEEKLY:
        return current + timedelta(days=7)
    if frequency == Frequency.MONTHLY:
        return _add_months(current, 1)
    return _add_months(current, 12)


def alert_start(item: RecurringExpense) -> date:
    """First day the reminder is shown."""
    return item.next_due_date - timedelta(days=item.reminder_days)


def due_status(item: RecurringExpense, today: date) -> DueStatus:
    """
    Classify a recurring bill relative to today.

    A bill due today is DUE_SOON, not OVERDUE; it becomes overdue the
    following day.
    """
    if today > item.next_due_date:
        return DueStatus.OVERDUE
    if today >= alert_start(item):
        return DueStatus.DUE_SOON
    return DueStatus.NOT_DUE


def is_due(item: RecurringExpense, today: date) -> bool:
    return due_status(item, today) != DueStatus.NOT_DUE


def days_until_due(item: RecurringExpense, today: date) -> int:
    """Negative once the bill is overdue."""
    return (item.next_due_date - today).days
