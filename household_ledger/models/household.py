"""
Core Data Models for Household Ledger

These models define the schemas for every collection held in the local
state tree and mirrored to the remote store.

DESIGN DECISION: Attribute names are snake_case, but every model reads and
writes the camelCase names of the legacy wire format (unitPrice,
nextDueDate, familyProfile, ...). This keeps legacy snapshot tokens
importable without a translation table.

Entities are frozen: the state tree hands them out directly, and an edit
always produces a new instance.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


DEFAULT_CATEGORY_NAME = "Other"
LOCAL_FAMILY_ID = "local-family"


def new_id() -> str:
    """Client-side identifier for a new entity."""
    return str(uuid4())


def now_iso() -> str:
    """
    Current UTC time as an ISO-8601 string with millisecond precision.

    Every generated timestamp shares this exact format so expense dates
    sort correctly as plain strings.
    """
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def _check_iso_timestamp(value: str) -> str:
    try:
        datetime.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Not an ISO-8601 date or timestamp: {value!r}")
    return value


class LedgerModel(BaseModel):
    """Base for all household entities."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Frequency(str, Enum):
    """
    How often a recurring expense falls due.

    Earlier versions stored Italian values; those are still accepted.
    """
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def _missing_(cls, value):
        legacy = {
            "settimanale": "weekly",
            "mensile": "monthly",
            "annuale": "yearly",
        }
        if isinstance(value, str):
            key = value.strip().lower()
            if key in legacy:
                return cls(legacy[key])
            for member in cls:
                if member.value == key:
                    return member
        return None


class CategoryIcon(str, Enum):
    """The fixed set of glyph tags a category definition may use."""
    SHOPPING_CART = "shopping-cart"
    CAR = "car"
    HOME = "home"
    HEART_PULSE = "heart-pulse"
    GAMEPAD = "gamepad-2"
    SHIRT = "shirt"
    ZAP = "zap"
    HELP_CIRCLE = "help-circle"
    PLANE = "plane"
    GRADUATION_CAP = "graduation-cap"
    GIFT = "gift"
    WIFI = "wifi"
    SMARTPHONE = "smartphone"
    COFFEE = "coffee"
    UTENSILS = "utensils"
    BRIEFCASE = "briefcase"
    WRENCH = "wrench"
    BABY = "baby"
    PAW_PRINT = "paw-print"
    MUSIC = "music"
    FILM = "film"
    BOOK = "book"


UNKNOWN_CATEGORY_ICON = CategoryIcon.HELP_CIRCLE
NEUTRAL_CATEGORY_COLOR = "bg-gray-100 text-gray-600"

CATEGORY_PALETTE = (
    "bg-slate-100 text-slate-600",
    NEUTRAL_CATEGORY_COLOR,
    "bg-red-100 text-red-600",
    "bg-orange-100 text-orange-600",
    "bg-amber-100 text-amber-600",
    "bg-yellow-100 text-yellow-600",
    "bg-lime-100 text-lime-600",
    "bg-green-100 text-green-600",
    "bg-emerald-100 text-emerald-600",
    "bg-teal-100 text-teal-600",
    "bg-cyan-100 text-cyan-600",
    "bg-sky-100 text-sky-600",
    "bg-blue-100 text-blue-600",
    "bg-indigo-100 text-indigo-600",
    "bg-violet-100 text-violet-600",
    "bg-purple-100 text-purple-600",
    "bg-fuchsia-100 text-fuchsia-600",
    "bg-pink-100 text-pink-600",
    "bg-rose-100 text-rose-600",
)


# =============================================================================
# FAMILY / TENANT
# =============================================================================

class Member(LedgerModel):
    """A person belonging to exactly one family."""

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(default="bg-blue-500")
    user_id: Optional[str] = None
    is_admin: bool = False


class FamilyProfile(LedgerModel):
    """
    The tenant record. Its id partitions every other collection.

    The id is optional only because legacy snapshots may lack one;
    the importer assigns LOCAL_FAMILY_ID in that case.
    """

    id: Optional[str] = None
    family_name: str = Field(..., min_length=1, max_length=100)
    members: list[Member] = Field(default_factory=list)
    google_sheet_url: Optional[str] = None
    created_at: Optional[int] = Field(
        default=None,
        description="Creation time in epoch milliseconds"
    )


# =============================================================================
# LEDGER ENTITIES
# =============================================================================

class Expense(LedgerModel):
    """
    A single purchase.

    total should equal quantity * unit_price when both are known;
    total-only entries get a back-computed unit price at creation.
    """

    id: str = Field(default_factory=new_id)
    product: str = Field(..., min_length=1, max_length=200)
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(..., ge=0)
    store: str = Field(..., min_length=1, max_length=200)
    date: str = Field(
        default_factory=now_iso,
        description="ISO-8601 timestamp of the purchase"
    )
    category: str = Field(default=DEFAULT_CATEGORY_NAME)
    member_id: Optional[str] = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        return _check_iso_timestamp(v)


class Income(LedgerModel):
    """A ledger entry for money coming in. Created and deleted, never edited."""

    id: str = Field(default_factory=new_id)
    source: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    date: str

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        return _check_iso_timestamp(v)


class Store(LedgerModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)


class CategoryDefinition(LedgerModel):
    """
    Cosmetic metadata for a category name.

    Expenses reference categories by free text, so a definition is
    optional for any given expense category.
    """

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    icon: CategoryIcon = UNKNOWN_CATEGORY_ICON
    color: str = NEUTRAL_CATEGORY_COLOR

    @field_validator("icon", mode="before")
    @classmethod
    def known_icon(cls, v):
        if isinstance(v, CategoryIcon):
            return v
        try:
            return CategoryIcon(v)
        except ValueError:
            return UNKNOWN_CATEGORY_ICON

    @field_validator("color")
    @classmethod
    def known_color(cls, v: str) -> str:
        return v if v in CATEGORY_PALETTE else NEUTRAL_CATEGORY_COLOR


class CustomField(LedgerModel):
    """Free-form note attached to a recurring bill (contract number, etc.)."""

    label: str = Field(..., min_length=1, max_length=100)
    value: str = Field(default="", max_length=500)


class RecurringExpense(LedgerModel):
    """A bill that repeats on a fixed frequency."""

    id: str = Field(default_factory=new_id)
    product: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    store: str = Field(..., min_length=1, max_length=200)
    frequency: Frequency
    next_due_date: date
    reminder_days: int = Field(default=0, ge=0)
    custom_fields: list[CustomField] = Field(default_factory=list)

    @field_validator("frequency", mode="before")
    @classmethod
    def legacy_frequency(cls, v):
        return Frequency(v) if isinstance(v, str) else v


class ShoppingItem(LedgerModel):
    id: str = Field(default_factory=new_id)
    product: str = Field(..., min_length=1, max_length=200)
    store: str = Field(..., min_length=1, max_length=200)
    completed: bool = False


# =============================================================================
# DEVICE-LOCAL / OFFERS
# =============================================================================

class OfferPreferences(LedgerModel):
    """Flyer-check preferences. Kept on the device, never synced."""

    city: str = ""
    selected_stores: list[str] = Field(default_factory=list)
    last_check_date: int = Field(
        default=0,
        ge=0,
        description="Last automatic check in epoch milliseconds"
    )
    has_enabled_notifications: bool = False


class FlyerOffer(LedgerModel):
    store_name: str
    flyer_link: str
    valid_until: Optional[str] = None
    top_offers: list[str] = Field(default_factory=list)


# =============================================================================
# SNAPSHOT
# =============================================================================

class SyncSnapshot(LedgerModel):
    """
    The full exportable bundle used for manual device-to-device sync.

    expenses and family_profile are required; the rest default to empty
    because older tokens did not always carry them.
    """

    expenses: list[Expense]
    family_profile: FamilyProfile
    incomes: list[Income] = Field(default_factory=list)
    stores: list[Store] = Field(default_factory=list)
    recurring_expenses: list[RecurringExpense] = Field(default_factory=list)
    shopping_list: list[ShoppingItem] = Field(default_factory=list)
    categories: list[CategoryDefinition] = Field(default_factory=list)
    timestamp: int = Field(
        default=0,
        description="Export time in epoch milliseconds"
    )


# =============================================================================
# FILTERS
# =============================================================================

class ExpenseFilter(LedgerModel):
    """Expense list filter. Absent fields do not constrain."""

    store: Optional[str] = None
    category: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("store", "category", "start_date", "end_date", mode="before")
    @classmethod
    def blank_is_absent(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_empty(self) -> bool:
        return not (self.store or self.category or self.start_date or self.end_date)


# =============================================================================
# RECEIPT SCANNING
# =============================================================================

class ReceiptItem(LedgerModel):
    """One line read from a receipt image."""

    product: str = Field(..., min_length=1)
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(..., ge=0)
    category: Optional[str] = None

    @field_validator("quantity", "unit_price", mode="before")
    @classmethod
    def unprinted_amount(cls, v, info):
        if v is None:
            return cls.model_fields[info.field_name].default
        return v


class ReceiptData(LedgerModel):
    store: Optional[str] = None
    date: Optional[str] = None
    items: list[ReceiptItem] = Field(default_factory=list)


class ReceiptScanResult(LedgerModel):
    success: bool
    data: Optional[ReceiptData] = None
    error: Optional[str] = None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage entry validation.

    Stage 1: Schema validation (required fields, ranges) - blocks the entry
    Stage 2: Semantic validation (consistency checks) - warnings only
    """

    entity_type: str
    validated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]


# =============================================================================
# BUILT-IN DEFAULTS (first-run fallback)
# =============================================================================

DEFAULT_STORES: tuple[Store, ...] = (
    Store(id="1", name="Supermarket"),
    Store(id="2", name="Pharmacy"),
    Store(id="3", name="Petrol station"),
    Store(id="4", name="Online (Amazon/Ebay)"),
    Store(id="5", name="Clothing"),
)

DEFAULT_CATEGORIES: tuple[CategoryDefinition, ...] = (
    CategoryDefinition(id="1", name="Groceries", icon=CategoryIcon.SHOPPING_CART,
                       color="bg-emerald-100 text-emerald-600"),
    CategoryDefinition(id="2", name="Transport", icon=CategoryIcon.CAR,
                       color="bg-blue-100 text-blue-600"),
    CategoryDefinition(id="3", name="Home", icon=CategoryIcon.HOME,
                       color="bg-orange-100 text-orange-600"),
    CategoryDefinition(id="4", name="Health", icon=CategoryIcon.HEART_PULSE,
                       color="bg-red-100 text-red-600"),
    CategoryDefinition(id="5", name="Leisure", icon=CategoryIcon.GAMEPAD,
                       color="bg-purple-100 text-purple-600"),
    CategoryDefinition(id="6", name="Clothing", icon=CategoryIcon.SHIRT,
                       color="bg-pink-100 text-pink-600"),
    CategoryDefinition(id="7", name="Utilities", icon=CategoryIcon.ZAP,
                       color="bg-yellow-100 text-yellow-600"),
    CategoryDefinition(id="8", name=DEFAULT_CATEGORY_NAME, icon=CategoryIcon.HELP_CIRCLE,
                       color=NEUTRAL_CATEGORY_COLOR),
)
