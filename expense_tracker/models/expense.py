"""
Core Data Models for Expense Tracker

Three entities make up the whole dataset:
1. User - a PIN identity with a preferred currency
2. Tracker - a named, currency-scoped budget owned by one user
3. Expense - a dated, categorized amount recorded against a tracker

DESIGN DECISION: Entities are frozen Pydantic v2 models. Nothing is ever
updated in place; storage creates and deletes whole records.

Money is carried as Decimal quantized to cents from the moment it enters
the system. The persisted JSON uses the camelCase keys of the original
data file (userId, preferredCurrency, createdAt, ...), via aliases.
"""

import re
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


CENT = Decimal("0.01")

# Largest amount a NUMERIC(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")

ISO_DATE_PATTERN = r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$"


def new_id() -> str:
    """Opaque identifier for a new record."""
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_money(value: Any) -> Decimal:
    """
    Convert a number to a cent-precision Decimal.

    Floats go through their shortest repr, so 10.1 becomes Decimal("10.10")
    rather than the binary expansion of 10.1.
    """
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {value!r}")
    else:
        raise ValueError("Amount must be a number")

    if not amount.is_finite():
        raise ValueError("Amount must be a finite number")
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Amount is too large: {value!r}")


# =============================================================================
# ENUMS
# =============================================================================

class Currency(str, Enum):
    """
    Supported tracker currencies.

    No conversion is ever performed; the currency only decides how
    amounts are displayed.
    """
    INR = "INR"
    USD = "USD"

    @property
    def symbol(self) -> str:
        return _CURRENCY_DISPLAY[self][0]

    @property
    def label(self) -> str:
        return _CURRENCY_DISPLAY[self][1]

    def format(self, amount: Decimal) -> str:
        """Format an amount for display, e.g. '$1,234.50'."""
        return f"{self.symbol}{to_money(amount):,.2f}"


_CURRENCY_DISPLAY = {
    Currency.INR: ("₹", "Indian Rupees"),
    Currency.USD: ("$", "US Dollars"),
}


# =============================================================================
# ENTITIES - what storage returns
# =============================================================================

class _Entity(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @field_validator("created_at", mode="after", check_fields=False)
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        # SQLite hands timestamps back without tzinfo
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    def to_record(self) -> dict:
        """Serialize to the camelCase shape of the persisted JSON document."""
        return self.model_dump(mode="json", by_alias=True)


class User(_Entity):
    """A PIN identity. Created once at registration, never updated."""

    id: str = Field(default_factory=new_id)
    pin: str = Field(
        ...,
        pattern=r"^[0-9]{4}$",
        description="4-digit PIN, unique across all users"
    )
    preferred_currency: Currency = Currency.USD
    created_at: datetime = Field(default_factory=utc_now)


class Tracker(_Entity):
    """A named budget owned by one user."""

    id: str = Field(default_factory=new_id)
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=50)
    currency: Currency
    created_at: datetime = Field(default_factory=utc_now)


class Expense(_Entity):
    """
    A single spend recorded against a tracker.

    `date` is the calendar day the money was spent; `created_at` is when
    the record was written. Listings sort on both.
    """

    id: str = Field(default_factory=new_id)
    tracker_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, le=MAX_AMOUNT)
    category: str = Field(..., min_length=1, max_length=50)
    description: str = Field(default="", max_length=200)
    date: date
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("amount", mode="before")
    @classmethod
    def quantize_amount(cls, v: Any) -> Decimal:
        return to_money(v)


# =============================================================================
# CREATION PAYLOADS - what validation produces
# =============================================================================

class UserCreate(BaseModel):
    """Registration payload. The PIN is taken verbatim, no trimming."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    pin: str = Field(
        ...,
        min_length=4,
        max_length=4,
        pattern=r"^[0-9]{4}$",
    )
    preferred_currency: Currency = Currency.USD


class TrackerCreate(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    name: str = Field(..., min_length=1, max_length=50)
    currency: Currency


class ExpenseCreate(BaseModel):
    """
    New expense payload.

    Amounts must arrive as numbers (int, float or Decimal). Strings are
    refused here even though stored records may hold them. Only the
    category is trimmed; the description is kept as typed.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
    )

    tracker_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, le=MAX_AMOUNT)
    category: str = Field(..., min_length=1, max_length=50)
    description: str = Field(default="", max_length=200)
    date: date

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, v: Any) -> Decimal:
        if isinstance(v, str):
            raise ValueError("Amount must be a number")
        return to_money(v)

    @field_validator("category", mode="before")
    @classmethod
    def strip_category(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            raise ValueError("Date must not carry a time component")
        if isinstance(v, date):
            return v
        if not isinstance(v, str):
            raise ValueError("Date must be a YYYY-MM-DD string")
        if not re.match(ISO_DATE_PATTERN, v):
            raise ValueError("Date must be a YYYY-MM-DD string")
        return date.fromisoformat(v)


# =============================================================================
# AGGREGATION RESULTS
# =============================================================================

class CategoryTotal(BaseModel):
    """Sum of amounts sharing one exact category label."""

    model_config = ConfigDict(frozen=True)

    category: str
    total: Decimal
    count: int = Field(ge=0)

    def share(self, grand_total: Decimal) -> Decimal:
        """Percentage of `grand_total` this category accounts for."""
        if not grand_total:
            return Decimal("0.0")
        return (self.total * 100 / grand_total).quantize(
            Decimal("0.1"), rounding=ROUND_HALF_UP
        )


class CategorySummary(BaseModel):
    """Per-category totals plus the grand total of a set of expenses."""

    model_config = ConfigDict(frozen=True)

    entries: list[CategoryTotal] = Field(default_factory=list)
    grand_total: Decimal = Decimal("0")

    def by_total(self) -> list[CategoryTotal]:
        """Entries sorted by total, largest first."""
        return sorted(self.entries, key=lambda e: e.total, reverse=True)

    def as_dict(self) -> dict[str, Decimal]:
        return {entry.category: entry.total for entry in self.entries}
