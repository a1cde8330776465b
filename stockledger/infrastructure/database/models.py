"""
Infrastructure - SQLModel database models and configurations.
Every table carries tenant_id; every query filters on it.
"""

import os
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

from stockledger.domain.value_objects import utc_now


class Account(SQLModel, table=True):
    """Ledger account; (tenant_id, code) is unique."""

    __tablename__ = "accounts"
    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_accounts_tenant_code"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: str = Field(index=True)
    code: str = Field(index=True)
    name: str
    account_type: str  # ASSET, LIABILITY, EQUITY, REVENUE, EXPENSE
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    lines: list["LedgerTransaction"] = Relationship(back_populates="account")


class JournalEntry(SQLModel, table=True):
    """Journal entry header; append-only."""

    __tablename__ = "journal_entries"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: str = Field(index=True)
    description: str
    reference: str | None = Field(default=None, index=True)
    date: datetime = Field(index=True, sa_type=DateTime(timezone=True))
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    lines: list["LedgerTransaction"] = Relationship(back_populates="journal_entry")


class LedgerTransaction(SQLModel, table=True):
    """One ledger line."""

    __tablename__ = "transactions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    journal_entry_id: UUID = Field(foreign_key="journal_entries.id", index=True)
    account_id: UUID = Field(foreign_key="accounts.id", index=True)
    type: str  # DEBIT, CREDIT
    amount: Decimal = Field(max_digits=18, decimal_places=2)

    journal_entry: "JournalEntry" = Relationship(back_populates="lines")
    account: "Account" = Relationship(back_populates="lines")


class Product(SQLModel, table=True):
    """Product; cost is the last purchase unit cost."""

    __tablename__ = "products"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: str = Field(index=True)
    name: str
    sku: str | None = None
    price: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    cost: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class Stock(SQLModel, table=True):
    """Quantity on hand per (warehouse, product); may be negative."""

    __tablename__ = "stock"
    __table_args__ = (
        UniqueConstraint("tenant_id", "warehouse_id", "product_id", name="uq_stock_warehouse_product"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: str = Field(index=True)
    warehouse_id: UUID = Field(index=True)
    product_id: UUID = Field(foreign_key="products.id", index=True)
    quantity: int = 0


class SequenceCounter(SQLModel, table=True):
    """Per-tenant document number counter (sales, purchase orders)."""

    __tablename__ = "sequence_counters"
    __table_args__ = (UniqueConstraint("tenant_id", "name", name="uq_sequence_tenant_name"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: str = Field(index=True)
    name: str
    current_value: int = 0


class Sale(SQLModel, table=True):
    __tablename__ = "sales"
    __table_args__ = (UniqueConstraint("tenant_id", "number", name="uq_sales_tenant_number"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: str = Field(index=True)
    number: int
    warehouse_id: UUID
    customer_id: UUID | None = None
    payment_type: str | None = None
    subtotal: Decimal = Field(max_digits=18, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    total: Decimal = Field(max_digits=18, decimal_places=2)
    invoice_token: str = Field(index=True)
    status: str = "COMPLETED"  # COMPLETED, PARTIAL_REFUND, REFUNDED
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    items: list["SaleItem"] = Relationship(back_populates="sale")


class SaleItem(SQLModel, table=True):
    __tablename__ = "sale_items"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    sale_id: UUID = Field(foreign_key="sales.id", index=True)
    product_id: UUID = Field(foreign_key="products.id")
    quantity: int
    price: Decimal = Field(max_digits=18, decimal_places=2)
    cost: Decimal = Field(max_digits=18, decimal_places=2)  # unit cost at time of sale

    sale: "Sale" = Relationship(back_populates="items")


class SaleReturn(SQLModel, table=True):
    """Goods returned against a sale; posted as an offsetting entry."""

    __tablename__ = "sale_returns"
    __table_args__ = (UniqueConstraint("tenant_id", "number", name="uq_sale_returns_tenant_number"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: str = Field(index=True)
    sale_id: UUID = Field(foreign_key="sales.id", index=True)
    number: int
    token: str = Field(index=True)
    return_type: str  # FULL, PARTIAL
    reason: str
    notes: str | None = None
    payment_type: str | None = None
    items_total: Decimal = Field(max_digits=18, decimal_places=2)
    discount_share: Decimal = Field(max_digits=18, decimal_places=2)
    refund_amount: Decimal = Field(max_digits=18, decimal_places=2)
    cost_total: Decimal = Field(max_digits=18, decimal_places=2)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    items: list["SaleReturnItem"] = Relationship(back_populates="sale_return")


class SaleReturnItem(SQLModel, table=True):
    __tablename__ = "sale_return_items"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    return_id: UUID = Field(foreign_key="sale_returns.id", index=True)
    product_id: UUID = Field(foreign_key="products.id")
    quantity: int
    price: Decimal = Field(max_digits=18, decimal_places=2)
    cost: Decimal = Field(max_digits=18, decimal_places=2)

    sale_return: "SaleReturn" = Relationship(back_populates="items")


class PurchaseOrder(SQLModel, table=True):
    __tablename__ = "purchase_orders"
    __table_args__ = (UniqueConstraint("tenant_id", "number", name="uq_purchase_orders_tenant_number"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: str = Field(index=True)
    number: int
    warehouse_id: UUID
    supplier: str = "Unknown"
    total: Decimal = Field(max_digits=18, decimal_places=2)
    status: str = "RECEIVED"
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    items: list["PurchaseItem"] = Relationship(back_populates="purchase_order")


class PurchaseItem(SQLModel, table=True):
    __tablename__ = "purchase_items"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    purchase_id: UUID = Field(foreign_key="purchase_orders.id", index=True)
    product_id: UUID = Field(foreign_key="products.id")
    quantity: int
    cost: Decimal = Field(max_digits=18, decimal_places=2)

    purchase_order: "PurchaseOrder" = Relationship(back_populates="items")


class Expense(SQLModel, table=True):
    __tablename__ = "expenses"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: str = Field(index=True)
    description: str
    amount: Decimal = Field(max_digits=18, decimal_places=2)
    category: str
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class InventoryCount(SQLModel, table=True):
    """Stock audit header (DRAFT -> COMPLETED)."""

    __tablename__ = "inventory_count"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    tenant_id: str = Field(index=True)
    warehouse_id: UUID
    status: str = "DRAFT"
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    completed_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))

    lines: list["InventoryCountLine"] = Relationship(back_populates="count")


class InventoryCountLine(SQLModel, table=True):
    __tablename__ = "inventory_count_line"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    count_id: UUID = Field(foreign_key="inventory_count.id", index=True)
    product_id: UUID
    system_qty: int
    counted_qty: int = 0
    difference: int = 0

    count: "InventoryCount" = Relationship(back_populates="lines")


def get_engine_url(database_type: str | None = None) -> str:
    """Database URL from environment."""
    db_type = database_type or os.getenv("DATABASE_TYPE", "sqlite")

    if db_type == "sqlite":
        db_path = os.getenv("DATABASE_PATH", "./data/stockledger.db")
        return f"sqlite:///{db_path}"
    elif db_type == "postgresql":
        host = os.getenv("DB_HOST", "localhost")
        port = os.getenv("DB_PORT", "5432")
        dbname = os.getenv("DB_NAME", "stockledger")
        user = os.getenv("DB_USER", "postgres")
        password = os.getenv("DB_PASSWORD", "postgres")
        return f"postgresql://{user}:{password}@{host}:{port}/{dbname}"
    else:
        raise ValueError(f"Unsupported database type: {db_type}")
