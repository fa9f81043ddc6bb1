"""
Two-Stage Entry Validation

DESIGN DECISION: Every create or update command validates its input in two
distinct stages before anything touches the state tree:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence and the models' text length limits
- Numeric parsing and ranges (no negative amounts, quantity above zero)
- Enumerated values (frequency) and date formats
- Any error here blocks the entry

STAGE 2 - SEMANTIC VALIDATION:
- Total disagreeing with quantity times unit price
- Amounts above the configured sanity threshold
- Reminder windows longer than the billing period
- Warnings only; the entry is still applied

IMPORTANT: Validation NEVER silently fixes issues. It reports them and the
caller decides.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from household_ledger.config import get_settings
from household_ledger.models.household import (
    Frequency,
    ValidationIssue,
    ValidationResult,
)


CENT = Decimal("0.01")

# Longest text the entity models accept
MAX_TEXT_LENGTH = 200
_NAME_LENGTHS = {"categories": 100}

_PERIOD_DAYS = {
    Frequency.WEEKLY: 7,
    Frequency.MONTHLY: 28,
    Frequency.YEARLY: 365,
}


class EntryValidationError(Exception):
    """Raised when an entry fails schema validation. Nothing was mutated."""

    def __init__(self, result: ValidationResult):
        self.result = result
        errors = [i.message for i in result.issues if i.severity == "error"]
        super().__init__(f"Invalid {result.entity_type}: " + "; ".join(errors))


def _missing(field: str, label: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="missing",
        message=f"{label} is required",
        severity="error",
    )


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _required_text(
    issues: list[ValidationIssue],
    field: str,
    label: str,
    value: Any,
    max_length: int = MAX_TEXT_LENGTH,
) -> None:
    """Record an issue when a required text field is blank or too long."""
    if _is_blank(value):
        issues.append(_missing(field, label))
    elif len(str(value)) > max_length:
        issues.append(ValidationIssue(
            field=field,
            issue_type="too_long",
            message=f"{label} must be at most {max_length} characters",
            severity="error",
        ))


class EntryValidator:
    """
    Validates user-entered ledger data through a two-stage pipeline.

    Stage 2 runs only when stage 1 found no errors.
    """

    def __init__(self, max_expense_amount: Optional[float] = None):
        if max_expense_amount is None:
            max_expense_amount = get_settings().app.max_expense_amount
        self._max_amount = Decimal(str(max_expense_amount))

    def _amount(
        self,
        issues: list[ValidationIssue],
        field: str,
        value: Any,
        positive: bool = False,
    ) -> Optional[Decimal]:
        """Parse a money or quantity value, recording an issue on failure."""
        if _is_blank(value):
            return None
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{field} is not a number: {value!r}",
                severity="error",
            ))
            return None
        if not amount.is_finite():
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{field} must be a finite number",
                severity="error",
            ))
            return None
        if amount < 0 or (positive and amount == 0):
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{field} must be {'greater than zero' if positive else 'zero or more'}",
                severity="error",
            ))
            return None
        return amount

    def _threshold_warning(self, field: str, amount: Optional[Decimal]) -> list[ValidationIssue]:
        if amount is not None and amount > self._max_amount:
            return [ValidationIssue(
                field=field,
                issue_type="suspicious_value",
                message=f"Amount ({amount:,.2f}) seems unusually high",
                severity="warning",
            )]
        return []

    def _result(
        self,
        entity_type: str,
        schema_issues: list[ValidationIssue],
        semantic_issues: list[ValidationIssue],
    ) -> ValidationResult:
        issues = schema_issues + semantic_issues
        return ValidationResult(
            entity_type=entity_type,
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
        )

    def validate_expense(
        self,
        product: Any,
        store: Any,
        total: Any = None,
        quantity: Any = None,
        unit_price: Any = None,
    ) -> ValidationResult:
        """
        Validate an expense entry.

        Either total, or both quantity and unit price, must be given.
        """
        issues = []
        _required_text(issues, "product", "Product", product)
        _required_text(issues, "store", "Store", store)

        total_value = self._amount(issues, "total", total)
        quantity_value = self._amount(issues, "quantity", quantity, positive=True)
        unit_value = self._amount(issues, "unit_price", unit_price)

        if _is_blank(total) and (_is_blank(quantity) or _is_blank(unit_price)):
            issues.append(_missing("total", "Total or quantity and unit price"))

        semantic = []
        if not any(issue.severity == "error" for issue in issues):
            if total_value is not None and quantity_value is not None and unit_value is not None:
                expected = quantity_value * unit_value
                if abs(total_value - expected) > CENT:
                    semantic.append(ValidationIssue(
                        field="total",
                        issue_type="inconsistent",
                        message=(
                            f"Total ({total_value}) doesn't match quantity x "
                            f"unit price ({expected})"
                        ),
                        severity="warning",
                    ))
            effective = total_value
            if effective is None and quantity_value is not None and unit_value is not None:
                effective = quantity_value * unit_value
            semantic.extend(self._threshold_warning("total", effective))

        return self._result("expenses", issues, semantic)

    def validate_income(self, source: Any, amount: Any, on: Any = None) -> ValidationResult:
        issues = []
        _required_text(issues, "source", "Source", source)
        if _is_blank(amount):
            issues.append(_missing("amount", "Amount"))
        else:
            self._amount(issues, "amount", amount)
        if not _is_blank(on) and not isinstance(on, (date, datetime)):
            try:
                datetime.fromisoformat(str(on))
            except ValueError:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="invalid_value",
                    message=f"Date is not ISO-8601: {on!r}",
                    severity="error",
                ))
        return self._result("incomes", issues, [])

    def validate_recurring(
        self,
        product: Any,
        amount: Any,
        store: Any,
        frequency: Any,
        next_due_date: Any,
        reminder_days: Any = 0,
    ) -> ValidationResult:
        issues = []
        _required_text(issues, "product", "Product", product)
        _required_text(issues, "store", "Store", store)

        amount_value = None
        if _is_blank(amount):
            issues.append(_missing("amount", "Amount"))
        else:
            amount_value = self._amount(issues, "amount", amount)

        freq = None
        if _is_blank(frequency):
            issues.append(_missing("frequency", "Frequency"))
        else:
            try:
                freq = Frequency(frequency)
            except ValueError:
                issues.append(ValidationIssue(
                    field="frequency",
                    issue_type="invalid_value",
                    message=f"Unknown frequency: {frequency!r}",
                    severity="error",
                ))

        if _is_blank(next_due_date):
            issues.append(_missing("next_due_date", "Next due date"))
        elif not isinstance(next_due_date, date):
            try:
                date.fromisoformat(str(next_due_date))
            except ValueError:
                issues.append(ValidationIssue(
                    field="next_due_date",
                    issue_type="invalid_value",
                    message=f"Next due date is not a date: {next_due_date!r}",
                    severity="error",
                ))

        days = None
        try:
            days = int(reminder_days or 0)
        except (TypeError, ValueError):
            issues.append(ValidationIssue(
                field="reminder_days",
                issue_type="invalid_value",
                message=f"Reminder days is not a whole number: {reminder_days!r}",
                severity="error",
            ))
        if days is not None and days < 0:
            issues.append(ValidationIssue(
                field="reminder_days",
                issue_type="invalid_value",
                message="Reminder days must be zero or more",
                severity="error",
            ))

        semantic = []
        if not any(issue.severity == "error" for issue in issues):
            semantic.extend(self._threshold_warning("amount", amount_value))
            if freq is not None and days > _PERIOD_DAYS[freq]:
                semantic.append(ValidationIssue(
                    field="reminder_days",
                    issue_type="suspicious_value",
                    message=(
                        f"Reminder of {days} days is longer than a "
                        f"{freq.value} billing period"
                    ),
                    severity="warning",
                ))

        return self._result("recurring_expenses", issues, semantic)

    def validate_shopping_item(self, product: Any, store: Any) -> ValidationResult:
        issues = []
        _required_text(issues, "product", "Product", product)
        _required_text(issues, "store", "Store", store)
        return self._result("shopping_list", issues, [])

    def validate_name(self, entity_type: str, name: Any) -> ValidationResult:
        """Stores and categories only need a name."""
        issues = []
        _required_text(
            issues, "name", "Name", name, _NAME_LENGTHS.get(entity_type, MAX_TEXT_LENGTH)
        )
        return self._result(entity_type, issues, [])

    def from_model_error(self, entity_type: str, error: PydanticValidationError) -> ValidationResult:
        """Report model constraint failures the checks above did not catch."""
        issues = [
            ValidationIssue(
                field=".".join(str(part) for part in detail["loc"]) or entity_type,
                issue_type="invalid_value",
                message=detail["msg"],
                severity="error",
            )
            for detail in error.errors()
        ]
        return self._result(entity_type, issues, [])

    def check(self, result: ValidationResult) -> ValidationResult:
        """
        Enforce a validation result.

        Raises:
            EntryValidationError: If the result has any errors
        """
        if result.has_errors:
            raise EntryValidationError(result)
        return result

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Short text for the UI."""
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []
        errors = [i for i in result.issues if i.severity == "error"]
        if errors:
            lines.append("❌ Please fix the following:")
            lines.extend(f"  • {issue.message}" for issue in errors)
        if result.warnings:
            lines.append("⚠️ Please double-check:")
            lines.extend(f"  • {warning}" for warning in result.warnings)
        return "\n".join(lines)
