"""
API Routers - business events: sales, returns, purchases, expenses, treasury, stock counts.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from stockledger.api.dependencies import get_event_poster, get_tenant_id
from stockledger.application.dto.ledger_dto import (
    CountLineResponseDTO,
    CountLineUpdateDTO,
    ExpenseCreateDTO,
    ExpenseResponseDTO,
    InventoryCountCreateDTO,
    InventoryCountResponseDTO,
    JournalEntryResponseDTO,
    PurchaseCreateDTO,
    PurchaseOrderResponseDTO,
    ReturnCreateDTO,
    ReturnResponseDTO,
    SaleCreateDTO,
    SaleResponseDTO,
    TreasuryMovementDTO,
)
from stockledger.application.event_poster import EventPoster
from stockledger.domain.value_objects import PurchaseItemInput, ReturnItemInput, SaleItemInput

router = APIRouter(prefix="/api/v1", tags=["Events"])


@router.post("/sales", response_model=SaleResponseDTO, status_code=status.HTTP_201_CREATED)
def record_sale(
    dto: SaleCreateDTO,
    tenant_id: str = Depends(get_tenant_id),
    poster: EventPoster = Depends(get_event_poster)
):
    """
    Record a sale.

    - Stock of every item is decremented (may go negative)
    - Dr Receivable / Cr Revenue for the total after discount
    - Dr COGS / Cr Inventory at the recorded unit cost
    """
    sale = poster.record_sale(
        tenant_id,
        dto.warehouse_id,
        [SaleItemInput(i.product_id, i.quantity, i.price) for i in dto.items],
        customer_id=dto.customer_id,
        payment_type=dto.payment_type,
        discount_type=dto.discount_type,
        discount_value=dto.discount_value,
    )
    return SaleResponseDTO.model_validate(sale)


@router.post("/returns", response_model=ReturnResponseDTO, status_code=status.HTTP_201_CREATED)
def record_return(
    dto: ReturnCreateDTO,
    tenant_id: str = Depends(get_tenant_id),
    poster: EventPoster = Depends(get_event_poster)
):
    """
    Take goods back against a sale.

    - Returned quantities go back into the sale's warehouse
    - Dr Revenue / Cr Receivable (or treasury/bank) for the refund, net of the discount share
    - Dr Inventory / Cr COGS at the cost recorded on the sale
    """
    sale_return = poster.record_return(
        tenant_id,
        dto.sale_id,
        [ReturnItemInput(i.product_id, i.quantity) for i in dto.items],
        dto.reason,
        payment_type=dto.payment_type,
        notes=dto.notes,
    )
    return ReturnResponseDTO.model_validate(sale_return)


@router.post("/purchases", response_model=PurchaseOrderResponseDTO, status_code=status.HTTP_201_CREATED)
def record_purchase(
    dto: PurchaseCreateDTO,
    tenant_id: str = Depends(get_tenant_id),
    poster: EventPoster = Depends(get_event_poster)
):
    """Receive goods: Dr Inventory / Cr Accounts Payable; product cost becomes the last cost."""
    order = poster.record_purchase(
        tenant_id,
        dto.warehouse_id,
        [PurchaseItemInput(i.product_id, i.quantity, i.cost) for i in dto.items],
        supplier=dto.supplier,
    )
    return PurchaseOrderResponseDTO.model_validate(order)


@router.post("/expenses", response_model=ExpenseResponseDTO, status_code=status.HTTP_201_CREATED)
def record_expense(
    dto: ExpenseCreateDTO,
    tenant_id: str = Depends(get_tenant_id),
    poster: EventPoster = Depends(get_event_poster)
):
    expense = poster.record_expense(tenant_id, dto.description, dto.amount, dto.category)
    return ExpenseResponseDTO.model_validate(expense)


@router.post("/treasury", response_model=JournalEntryResponseDTO, status_code=status.HTTP_201_CREATED)
def record_treasury_movement(
    dto: TreasuryMovementDTO,
    tenant_id: str = Depends(get_tenant_id),
    poster: EventPoster = Depends(get_event_poster)
):
    entry = poster.record_treasury_movement(tenant_id, dto.type, dto.amount, dto.description)
    return JournalEntryResponseDTO.model_validate(entry)


@router.post("/inventory-counts", response_model=InventoryCountResponseDTO, status_code=status.HTTP_201_CREATED)
def create_inventory_count(
    dto: InventoryCountCreateDTO,
    tenant_id: str = Depends(get_tenant_id),
    poster: EventPoster = Depends(get_event_poster)
):
    """Open a DRAFT count with the warehouse's current quantities as system quantities."""
    count = poster.create_inventory_count(tenant_id, dto.warehouse_id)
    return InventoryCountResponseDTO.model_validate(count)


@router.patch("/inventory-counts/lines/{line_id}", response_model=CountLineResponseDTO)
def update_count_line(
    line_id: UUID,
    dto: CountLineUpdateDTO,
    tenant_id: str = Depends(get_tenant_id),
    poster: EventPoster = Depends(get_event_poster)
):
    line = poster.update_count_line(tenant_id, line_id, dto.counted_qty)
    return CountLineResponseDTO.model_validate(line)


@router.post("/inventory-counts/{count_id}/finalize", response_model=InventoryCountResponseDTO)
def finalize_inventory_count(
    count_id: UUID,
    tenant_id: str = Depends(get_tenant_id),
    poster: EventPoster = Depends(get_event_poster)
):
    """Write counted quantities back to stock and close the count."""
    count = poster.finalize_inventory_count(tenant_id, count_id)
    return InventoryCountResponseDTO.model_validate(count)
