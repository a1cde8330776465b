"""
Domain Layer - Value objects and enumerations for the posting engine.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import NewType
from uuid import UUID

AccountCode = NewType("AccountCode", str)

TWOPLACES = Decimal("0.01")
# Largest debit/credit gap still treated as balanced.
BALANCE_EPSILON = Decimal("0.01")
ZERO = Decimal("0")


def money(value) -> Decimal:
    """Normalise a number to a two-place Decimal."""
    if value is None or value == "":
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Timezone-aware UTC; naive values are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AccountType(str, Enum):
    """Account classification of the chart of accounts."""
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"

    @property
    def is_debit_normal(self) -> bool:
        return self in (AccountType.ASSET, AccountType.EXPENSE)


class EntryType(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class MovementType(str, Enum):
    """Manual treasury movement."""
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"


class PaymentType(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    DEFERRED = "DEFERRED"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CountStatus(str, Enum):
    """Inventory count lifecycle: DRAFT -> COMPLETED."""
    DRAFT = "DRAFT"
    COMPLETED = "COMPLETED"


class SaleStatus(str, Enum):
    """COMPLETED until goods come back, then PARTIAL_REFUND or REFUNDED."""
    COMPLETED = "COMPLETED"
    PARTIAL_REFUND = "PARTIAL_REFUND"
    REFUNDED = "REFUNDED"


class ReturnType(str, Enum):
    FULL = "FULL"
    PARTIAL = "PARTIAL"


@dataclass(frozen=True, slots=True)
class JournalLineInput:
    """One requested ledger line, addressed by account code."""
    account_code: AccountCode
    entry_type: EntryType
    amount: Decimal


@dataclass(frozen=True, slots=True)
class SaleItemInput:
    product_id: UUID
    quantity: int
    price: Decimal


@dataclass(frozen=True, slots=True)
class PurchaseItemInput:
    product_id: UUID
    quantity: int
    cost: Decimal


@dataclass(frozen=True, slots=True)
class ReturnItemInput:
    product_id: UUID
    quantity: int


@dataclass(frozen=True, slots=True)
class AccountSpec:
    """Catalog entry used for seeding and lazy account creation."""
    code: AccountCode
    name: str
    account_type: AccountType


def calculate_discount(
    subtotal: Decimal,
    discount_type: DiscountType | None,
    discount_value: Decimal | None
) -> Decimal:
    """Discount amount for a sale; percentages cap at 100, fixed at the subtotal."""
    if discount_type is None or discount_value is None or discount_value <= 0:
        return ZERO
    if discount_type == DiscountType.PERCENTAGE:
        percentage = min(Decimal(discount_value), Decimal("100"))
        return money(subtotal * percentage / Decimal("100"))
    return money(min(Decimal(discount_value), subtotal))


def calculate_proportional_refund(
    items_total: Decimal,
    subtotal: Decimal,
    discount_amount: Decimal
) -> tuple[Decimal, Decimal]:
    """
    (discount share, refund) for returning goods worth items_total.

    The sale discount is spread over its lines in proportion to their value,
    so a returned line only refunds what was actually paid for it.
    """
    if not subtotal:
        return money(ZERO), money(ZERO)
    discount_share = money(Decimal(discount_amount) * Decimal(items_total) / Decimal(subtotal))
    return discount_share, money(Decimal(items_total) - discount_share)
