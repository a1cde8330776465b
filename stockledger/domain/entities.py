"""
Domain Entities - Core business entities of the tenant ledger.
Ghi sổ kép: every journal entry keeps Total Debit = Total Credit.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal

from .exceptions import InvalidState
from .value_objects import (
    BALANCE_EPSILON,
    ZERO,
    AccountCode,
    AccountType,
    CountStatus,
    EntryType,
    ReturnType,
    SaleStatus,
    utc_now,
)


@dataclass
class Account:
    """
    Entity - Ledger account owned by one tenant.
    (tenant_id, code) is unique; the type never changes once lines reference it.
    """
    tenant_id: str
    code: AccountCode
    name: str
    account_type: AccountType
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class LedgerLine:
    """Entity - One debit or credit against one account (the `transactions` table)."""
    account_id: uuid.UUID
    entry_type: EntryType
    amount: Decimal
    journal_entry_id: uuid.UUID | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    account_code: AccountCode | None = None


@dataclass
class JournalEntry:
    """
    Entity - Balanced set of ledger lines recording one business event.
    Append-only: never updated or deleted after it is stored.
    """
    tenant_id: str
    description: str
    date: datetime
    lines: list[LedgerLine] = field(default_factory=list)
    reference: str | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)

    @property
    def total_debit(self) -> Decimal:
        return sum((l.amount for l in self.lines if l.entry_type == EntryType.DEBIT), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((l.amount for l in self.lines if l.entry_type == EntryType.CREDIT), ZERO)

    def is_balanced(self) -> bool:
        if not self.lines:
            return False
        return abs(self.total_debit - self.total_credit) <= BALANCE_EPSILON


@dataclass
class Product:
    """Product as seen by the posting engine: only its recorded unit cost matters."""
    tenant_id: str
    name: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    sku: str | None = None
    price: Decimal = ZERO
    cost: Decimal = ZERO


@dataclass
class StockLevel:
    """One row per (warehouse, product). Quantity may go negative."""
    tenant_id: str
    warehouse_id: uuid.UUID
    product_id: uuid.UUID
    quantity: int = 0


@dataclass
class SaleLine:
    product_id: uuid.UUID
    quantity: int
    price: Decimal
    cost: Decimal


@dataclass
class Sale:
    tenant_id: str
    number: int
    warehouse_id: uuid.UUID
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal
    invoice_token: str
    lines: list[SaleLine] = field(default_factory=list)
    customer_id: uuid.UUID | None = None
    payment_type: str | None = None
    status: SaleStatus = SaleStatus.COMPLETED
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)

    def ensure_returnable(self) -> None:
        if self.status == SaleStatus.REFUNDED:
            raise InvalidState("Sale", self.status.value)

    def sold_quantities(self) -> dict[uuid.UUID, int]:
        sold: dict[uuid.UUID, int] = {}
        for line in self.lines:
            sold[line.product_id] = sold.get(line.product_id, 0) + line.quantity
        return sold

    def returnable_quantities(self, returned: dict[uuid.UUID, int]) -> dict[uuid.UUID, int]:
        """Sold minus already returned, per product."""
        return {
            product_id: quantity - returned.get(product_id, 0)
            for product_id, quantity in self.sold_quantities().items()
        }

    def unit_amounts(self, product_id: uuid.UUID) -> tuple[Decimal, Decimal]:
        """Average unit (price, cost) of a product over the sale lines."""
        lines = [l for l in self.lines if l.product_id == product_id]
        quantity = sum(l.quantity for l in lines)
        if not quantity:
            return ZERO, ZERO
        price = sum((l.price * l.quantity for l in lines), ZERO) / quantity
        cost = sum((l.cost * l.quantity for l in lines), ZERO) / quantity
        return price, cost


@dataclass
class ReturnLine:
    product_id: uuid.UUID
    quantity: int
    price: Decimal
    cost: Decimal


@dataclass
class SaleReturn:
    """
    Entity - Goods brought back against one sale.
    Posted as an offsetting entry; the original sale entry stays untouched.
    """
    tenant_id: str
    sale_id: uuid.UUID
    number: int
    token: str
    return_type: ReturnType
    reason: str
    items_total: Decimal
    discount_share: Decimal
    refund_amount: Decimal
    cost_total: Decimal
    payment_type: str | None = None
    notes: str | None = None
    lines: list[ReturnLine] = field(default_factory=list)
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class PurchaseLine:
    product_id: uuid.UUID
    quantity: int
    cost: Decimal


@dataclass
class PurchaseOrder:
    tenant_id: str
    number: int
    warehouse_id: uuid.UUID
    total: Decimal
    supplier: str = "Unknown"
    status: str = "RECEIVED"
    lines: list[PurchaseLine] = field(default_factory=list)
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class Expense:
    tenant_id: str
    description: str
    amount: Decimal
    category: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class InventoryCountLine:
    count_id: uuid.UUID
    product_id: uuid.UUID
    system_qty: int
    counted_qty: int = 0
    difference: int = 0
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def record_count(self, counted_qty: int) -> "InventoryCountLine":
        return replace(
            self,
            counted_qty=counted_qty,
            difference=counted_qty - self.system_qty
        )


@dataclass
class InventoryCount:
    """
    Entity - Snapshot-based stock audit of one warehouse.
    System quantities are captured at creation; counted quantities are
    written back to stock on finalization.
    """
    tenant_id: str
    warehouse_id: uuid.UUID
    status: CountStatus = CountStatus.DRAFT
    lines: list[InventoryCountLine] = field(default_factory=list)
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None

    def ensure_draft(self) -> None:
        if self.status != CountStatus.DRAFT:
            raise InvalidState("InventoryCount", self.status.value)

    def complete(self) -> "InventoryCount":
        self.ensure_draft()
        return replace(
            self,
            status=CountStatus.COMPLETED,
            completed_at=utc_now()
        )
