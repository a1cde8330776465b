"""
API DTOs - Data Transfer Objects for API requests/responses.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from stockledger.domain.value_objects import (
    AccountType,
    CountStatus,
    DiscountType,
    EntryType,
    MovementType,
    PaymentType,
    ReturnType,
    SaleStatus,
)


class JournalLineCreateDTO(BaseModel):
    """DTO - One requested ledger line."""
    account_code: str = Field(..., description="Account code")
    type: EntryType = Field(..., description="DEBIT or CREDIT")
    amount: Decimal = Field(..., gt=0, description="Amount, strictly positive")


class JournalEntryCreateDTO(BaseModel):
    """DTO - Manual journal entry."""
    description: str = Field(..., max_length=500)
    reference: str | None = Field(None, description="Source document id")
    date: datetime | None = None
    lines: list[JournalLineCreateDTO] = Field(..., min_length=1)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "description": "Owner capital injection",
            "lines": [
                {"account_code": "1001", "type": "DEBIT", "amount": 1000},
                {"account_code": "3001", "type": "CREDIT", "amount": 1000}
            ]
        }
    })


class SaleItemDTO(BaseModel):
    product_id: UUID
    quantity: int = Field(..., gt=0)
    price: Decimal = Field(..., ge=0)


class SaleCreateDTO(BaseModel):
    """DTO - Sale with its line items."""
    warehouse_id: UUID
    items: list[SaleItemDTO] = Field(..., min_length=1)
    customer_id: UUID | None = None
    payment_type: PaymentType | None = None
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = Field(None, ge=0)


class ReturnItemDTO(BaseModel):
    product_id: UUID
    quantity: int = Field(..., gt=0)


class ReturnCreateDTO(BaseModel):
    """DTO - Goods returned against a sale."""
    sale_id: UUID
    items: list[ReturnItemDTO] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=500)
    notes: str | None = None
    payment_type: PaymentType | None = Field(None, description="Defaults to the sale's payment type")


class PurchaseItemDTO(BaseModel):
    product_id: UUID
    quantity: int = Field(..., gt=0)
    cost: Decimal = Field(..., ge=0)


class PurchaseCreateDTO(BaseModel):
    warehouse_id: UUID
    items: list[PurchaseItemDTO] = Field(..., min_length=1)
    supplier: str | None = None


class ExpenseCreateDTO(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0)
    category: str = Field(..., description="Rent, Utilities, Salaries, Marketing, Maintenance, Other")


class TreasuryMovementDTO(BaseModel):
    type: MovementType
    amount: Decimal = Field(..., gt=0)
    description: str | None = None


class InventoryCountCreateDTO(BaseModel):
    warehouse_id: UUID


class CountLineUpdateDTO(BaseModel):
    counted_qty: int = Field(..., ge=0)


class AccountResponseDTO(BaseModel):
    """DTO - Account of the chart."""
    id: UUID
    code: str
    name: str
    account_type: AccountType

    model_config = ConfigDict(from_attributes=True)


class LedgerLineResponseDTO(BaseModel):
    id: UUID
    account_id: UUID
    account_code: str | None
    entry_type: EntryType
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class JournalEntryResponseDTO(BaseModel):
    """DTO - Stored journal entry."""
    id: UUID
    description: str
    reference: str | None
    date: datetime
    total_debit: Decimal
    total_credit: Decimal
    lines: list[LedgerLineResponseDTO]

    model_config = ConfigDict(from_attributes=True)


class LedgerRowDTO(BaseModel):
    entry_id: UUID
    date: datetime
    description: str
    reference: str | None
    type: EntryType
    amount: Decimal
    balance_after: Decimal


class AccountLedgerDTO(BaseModel):
    """DTO - Account with running balance."""
    account: AccountResponseDTO
    rows: list[LedgerRowDTO]
    balance: Decimal


class SaleLineResponseDTO(BaseModel):
    product_id: UUID
    quantity: int
    price: Decimal
    cost: Decimal

    model_config = ConfigDict(from_attributes=True)


class SaleResponseDTO(BaseModel):
    id: UUID
    number: int
    invoice_token: str
    warehouse_id: UUID
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal
    payment_type: str | None
    status: SaleStatus
    lines: list[SaleLineResponseDTO]

    model_config = ConfigDict(from_attributes=True)


class ReturnLineResponseDTO(BaseModel):
    product_id: UUID
    quantity: int
    price: Decimal
    cost: Decimal

    model_config = ConfigDict(from_attributes=True)


class ReturnResponseDTO(BaseModel):
    id: UUID
    sale_id: UUID
    number: int
    token: str
    return_type: ReturnType
    reason: str
    items_total: Decimal
    discount_share: Decimal
    refund_amount: Decimal
    cost_total: Decimal
    payment_type: str | None
    lines: list[ReturnLineResponseDTO]

    model_config = ConfigDict(from_attributes=True)


class PurchaseOrderResponseDTO(BaseModel):
    id: UUID
    number: int
    warehouse_id: UUID
    supplier: str
    total: Decimal
    status: str

    model_config = ConfigDict(from_attributes=True)


class ExpenseResponseDTO(BaseModel):
    id: UUID
    description: str
    amount: Decimal
    category: str

    model_config = ConfigDict(from_attributes=True)


class CountLineResponseDTO(BaseModel):
    id: UUID
    product_id: UUID
    system_qty: int
    counted_qty: int
    difference: int

    model_config = ConfigDict(from_attributes=True)


class InventoryCountResponseDTO(BaseModel):
    id: UUID
    warehouse_id: UUID
    status: CountStatus
    lines: list[CountLineResponseDTO]

    model_config = ConfigDict(from_attributes=True)


class TrialBalanceRowDTO(BaseModel):
    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal


class TrialBalanceDTO(BaseModel):
    """DTO - Trial balance: Σ debit must equal Σ credit."""
    rows: list[TrialBalanceRowDTO]
    total_debit: Decimal
    total_credit: Decimal
    difference: Decimal
    is_balanced: bool


class StatementLineDTO(BaseModel):
    code: str
    name: str
    amount: Decimal


class BalanceSheetDTO(BaseModel):
    assets: list[StatementLineDTO]
    liabilities: list[StatementLineDTO]
    equity: list[StatementLineDTO]
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    is_balanced: bool


class ProfitAndLossDTO(BaseModel):
    revenue: list[StatementLineDTO]
    expenses: list[StatementLineDTO]
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal


class InventoryValuationDTO(BaseModel):
    total_value: Decimal
    total_items: int
