"""
Event poster - business events that move stock and post to the ledger as one unit.

Each public method opens its own unit of work:
validate -> mutate stock -> resolve accounts -> JournalEngine.post -> commit.
Any failure after the unit of work opens rolls every change back.
"""

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from decimal import Decimal
from uuid import UUID

from stockledger.application.chart_of_accounts import ChartOfAccounts
from stockledger.application.journal_engine import JournalEngine
from stockledger.core.config import PostingAccounts, Settings
from stockledger.domain.entities import (
    Expense,
    InventoryCount,
    InventoryCountLine,
    JournalEntry,
    PurchaseLine,
    PurchaseOrder,
    ReturnLine,
    Sale,
    SaleLine,
    SaleReturn,
)
from stockledger.domain.exceptions import (
    EntityNotFound,
    InsufficientData,
    LedgerError,
    SaleProcessingFailed,
    TransactionFailure,
)
from stockledger.domain.services import InventoryService, IUnitOfWork
from stockledger.domain.value_objects import (
    ZERO,
    AccountCode,
    AccountSpec,
    DiscountType,
    EntryType,
    JournalLineInput,
    MovementType,
    PaymentType,
    PurchaseItemInput,
    ReturnItemInput,
    ReturnType,
    SaleItemInput,
    SaleStatus,
    calculate_discount,
    calculate_proportional_refund,
    money,
    utc_now,
)

logger = logging.getLogger(__name__)

SALE_SEQUENCE = "sale"
RETURN_SEQUENCE = "sale_return"
PURCHASE_SEQUENCE = "purchase_order"


def _pair(debit: AccountCode, credit: AccountCode, amount: Decimal) -> list[JournalLineInput]:
    """Dr/Cr line pair; empty when there is nothing to move."""
    if amount <= 0:
        return []
    return [
        JournalLineInput(debit, EntryType.DEBIT, amount),
        JournalLineInput(credit, EntryType.CREDIT, amount),
    ]


class EventPoster:

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        accounts: PostingAccounts | None = None,
        chart: ChartOfAccounts | None = None,
        engine: JournalEngine | None = None,
        settings: Settings | None = None,
        inventory: InventoryService | None = None
    ):
        self.uow_factory = uow_factory
        self.accounts = accounts or PostingAccounts()
        self.chart = chart or ChartOfAccounts()
        self.engine = engine or JournalEngine(self.chart)
        self.settings = settings or Settings()
        self.inventory = inventory or InventoryService()

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[IUnitOfWork]:
        try:
            with self.uow_factory() as uow:
                yield uow
        except LedgerError:
            raise
        except Exception as exc:
            logger.exception("%s failed, unit of work rolled back", operation)
            raise TransactionFailure(f"{operation} failed") from exc

    def _code(self, uow: IUnitOfWork, tenant_id: str, account: AccountSpec | AccountCode) -> AccountCode:
        if isinstance(account, AccountSpec):
            return self.chart.resolve_spec(uow, tenant_id, account).code
        return account

    # ----------------------------------------------------------------- sales

    def record_sale(
        self,
        tenant_id: str,
        warehouse_id: UUID,
        items: Sequence[SaleItemInput],
        customer_id: UUID | None = None,
        payment_type: PaymentType | None = None,
        discount_type: DiscountType | None = None,
        discount_value: Decimal | None = None
    ) -> Sale:
        """
        Record a sale: Dr receivable (or treasury/bank) / Cr revenue for the
        total, Dr COGS / Cr inventory for the cost of the goods at their
        recorded unit cost. Stock is decremented and may go negative.
        """
        if not tenant_id:
            raise InsufficientData("tenant_id")
        if not warehouse_id:
            raise InsufficientData("warehouse_id", "Warehouse required")
        if not items:
            raise InsufficientData("items", "No items in sale")
        for item in items:
            if item.quantity <= 0:
                raise InsufficientData("quantity", "Sale quantity must be positive")
            if item.price is None or Decimal(item.price) < 0:
                raise InsufficientData("price", "Sale price must not be negative")
        payment_type = PaymentType(payment_type) if payment_type else None
        discount_type = DiscountType(discount_type) if discount_type else None

        try:
            with self.uow_factory() as uow:
                number = uow.sequences.next_value(tenant_id, SALE_SEQUENCE)

                products = uow.products.get_many(tenant_id, {i.product_id for i in items})
                for item in items:
                    if item.product_id not in products:
                        raise EntityNotFound("Product", item.product_id)

                subtotal = money(sum((Decimal(i.price) * i.quantity for i in items), ZERO))
                discount = calculate_discount(subtotal, discount_type, discount_value)
                total = money(subtotal - discount)

                sale = Sale(
                    tenant_id=tenant_id,
                    number=number,
                    warehouse_id=warehouse_id,
                    subtotal=subtotal,
                    discount_amount=discount,
                    total=total,
                    invoice_token=f"INV-{utc_now().year}-{number:04d}",
                    customer_id=customer_id,
                    payment_type=payment_type.value if payment_type else None,
                    lines=[
                        SaleLine(
                            product_id=i.product_id,
                            quantity=i.quantity,
                            price=money(i.price),
                            cost=money(products[i.product_id].cost),
                        )
                        for i in items
                    ],
                )
                uow.documents.add_sale(sale)

                for item in items:
                    uow.stock.adjust(tenant_id, warehouse_id, item.product_id, -item.quantity)

                total_cost = money(sum((l.cost * l.quantity for l in sale.lines), ZERO))

                debit_code = self._code(uow, tenant_id, self.accounts.sale_debit_account(payment_type))
                lines = (
                    _pair(debit_code, self.accounts.revenue, total)
                    + _pair(self.accounts.cost_of_goods_sold, self.accounts.inventory, total_cost)
                )
                if lines:
                    suffix = f" ({payment_type.value})" if payment_type else ""
                    self.engine.post(
                        uow,
                        tenant_id,
                        f"Sale #{number}{suffix}",
                        lines,
                        reference=str(sale.id),
                    )
                else:
                    logger.info("Sale #%d for tenant %s has no monetary effect", number, tenant_id)

                uow.commit()
        except EntityNotFound:
            raise
        except Exception as exc:
            logger.warning("Sale for tenant %s rolled back: %s", tenant_id, exc)
            raise SaleProcessingFailed() from exc

        logger.info("Recorded sale #%d for tenant %s, total %s", sale.number, tenant_id, sale.total)
        return sale

    def record_return(
        self,
        tenant_id: str,
        sale_id: UUID,
        items: Sequence[ReturnItemInput],
        reason: str,
        payment_type: PaymentType | None = None,
        notes: str | None = None
    ) -> SaleReturn:
        """
        Take goods back against a sale and post the offsetting entry.

        Dr revenue / Cr the refund account for the value returned less its
        share of the sale discount, Dr inventory / Cr COGS at the unit cost
        recorded on the sale. Stock goes back to the sale's warehouse. The
        refund follows the sale's payment type unless another one is given.
        """
        if not tenant_id:
            raise InsufficientData("tenant_id")
        if not sale_id:
            raise InsufficientData("sale_id")
        if not items:
            raise InsufficientData("items", "No items to return")
        if not reason:
            raise InsufficientData("reason", "Return reason is required")
        requested: dict[UUID, int] = {}
        for item in items:
            if item.quantity <= 0:
                raise InsufficientData("quantity", "Return quantity must be positive")
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        payment_type = PaymentType(payment_type) if payment_type else None

        with self._unit_of_work("Sales return") as uow:
            sale = uow.documents.get_sale(tenant_id, sale_id, for_update=True)
            if sale is None:
                raise EntityNotFound("Sale", sale_id)
            sale.ensure_returnable()

            returned = uow.documents.returned_quantities(tenant_id, sale_id)
            available = sale.returnable_quantities(returned)
            for product_id, quantity in requested.items():
                if quantity > available.get(product_id, 0):
                    raise InsufficientData(
                        "quantity",
                        f"Cannot return {quantity} of product {product_id}. "
                        f"Only {available.get(product_id, 0)} available."
                    )

            lines = []
            items_total = cost_total = ZERO
            for product_id, quantity in requested.items():
                price, cost = sale.unit_amounts(product_id)
                items_total += price * quantity
                cost_total += cost * quantity
                lines.append(ReturnLine(product_id, quantity, money(price), money(cost)))
            items_total = money(items_total)
            cost_total = money(cost_total)
            discount_share, refund = calculate_proportional_refund(
                items_total, sale.subtotal, sale.discount_amount
            )

            sold = sum(sale.sold_quantities().values())
            returning = sum(returned.values()) + sum(requested.values())
            return_type = ReturnType.FULL if returning >= sold else ReturnType.PARTIAL
            refund_via = payment_type or (PaymentType(sale.payment_type) if sale.payment_type else None)

            number = uow.sequences.next_value(tenant_id, RETURN_SEQUENCE)
            sale_return = uow.documents.add_return(SaleReturn(
                tenant_id=tenant_id,
                sale_id=sale.id,
                number=number,
                token=f"RET-{utc_now().year}-{number:04d}",
                return_type=return_type,
                reason=reason,
                notes=notes,
                items_total=items_total,
                discount_share=discount_share,
                refund_amount=refund,
                cost_total=cost_total,
                payment_type=refund_via.value if refund_via else None,
                lines=lines,
            ))
            uow.documents.save_sale_status(
                tenant_id,
                sale.id,
                SaleStatus.REFUNDED if return_type == ReturnType.FULL else SaleStatus.PARTIAL_REFUND,
            )

            for product_id, quantity in requested.items():
                uow.stock.adjust(tenant_id, sale.warehouse_id, product_id, quantity)

            credit_code = self._code(uow, tenant_id, self.accounts.sale_debit_account(refund_via))
            entry_lines = (
                _pair(self.accounts.revenue, credit_code, refund)
                + _pair(self.accounts.inventory, self.accounts.cost_of_goods_sold, cost_total)
            )
            if entry_lines:
                suffix = f" ({refund_via.value})" if refund_via else ""
                self.engine.post(
                    uow,
                    tenant_id,
                    f"Return {sale_return.token} for Invoice {sale.invoice_token}{suffix}",
                    entry_lines,
                    reference=str(sale_return.id),
                )
            uow.commit()

        logger.info(
            "Recorded return %s against sale #%d for tenant %s, refund %s",
            sale_return.token, sale.number, tenant_id, refund
        )
        return sale_return

    # ------------------------------------------------------------- purchases

    def record_purchase(
        self,
        tenant_id: str,
        warehouse_id: UUID,
        items: Sequence[PurchaseItemInput],
        supplier: str | None = None
    ) -> PurchaseOrder:
        """
        Receive a purchase order: Dr inventory / Cr payable for the total.
        Each product's recorded cost becomes the new unit cost (last cost).
        """
        if not tenant_id:
            raise InsufficientData("tenant_id")
        if not warehouse_id:
            raise InsufficientData("warehouse_id", "Missing required fields")
        if not items:
            raise InsufficientData("items", "No items in purchase order")
        for item in items:
            if item.quantity <= 0:
                raise InsufficientData("quantity", "Purchase quantity must be positive")
            if item.cost is None or Decimal(item.cost) < 0:
                raise InsufficientData("cost", "Purchase cost must not be negative")

        with self._unit_of_work("Purchase") as uow:
            number = uow.sequences.next_value(tenant_id, PURCHASE_SEQUENCE)

            products = uow.products.get_many(tenant_id, {i.product_id for i in items})
            for item in items:
                if item.product_id not in products:
                    raise EntityNotFound("Product", item.product_id)

            total = money(sum((Decimal(i.cost) * i.quantity for i in items), ZERO))
            order = PurchaseOrder(
                tenant_id=tenant_id,
                number=number,
                warehouse_id=warehouse_id,
                supplier=supplier or "Unknown",
                total=total,
                lines=[PurchaseLine(i.product_id, i.quantity, money(i.cost)) for i in items],
            )
            uow.documents.add_purchase_order(order)

            for item in items:
                uow.products.update_cost(tenant_id, item.product_id, money(item.cost))
                uow.stock.adjust(tenant_id, warehouse_id, item.product_id, item.quantity)

            lines = _pair(self.accounts.inventory, self.accounts.payable, total)
            if lines:
                self.engine.post(
                    uow,
                    tenant_id,
                    f"Purchase Order #{number}",
                    lines,
                    reference=str(order.id),
                )
            uow.commit()

        logger.info("Recorded purchase order #%d for tenant %s, total %s", number, tenant_id, total)
        return order

    # -------------------------------------------------------------- expenses

    def record_expense(
        self,
        tenant_id: str,
        description: str,
        amount: Decimal,
        category: str
    ) -> Expense:
        """Dr the category's expense account / Cr cash."""
        if not tenant_id:
            raise InsufficientData("tenant_id")
        if not description:
            raise InsufficientData("description")
        if not category:
            raise InsufficientData("category")
        if amount is None or Decimal(amount) <= 0:
            raise InsufficientData("amount", "Expense amount must be positive")

        amount = money(amount)
        with self._unit_of_work("Expense") as uow:
            expense = uow.documents.add_expense(
                Expense(tenant_id=tenant_id, description=description, amount=amount, category=category)
            )
            self.engine.post(
                uow,
                tenant_id,
                f"Expense: {description}",
                _pair(self.accounts.expense_account(category), self.accounts.cash, amount),
                reference=str(expense.id),
            )
            uow.commit()
        return expense

    # -------------------------------------------------------------- treasury

    def record_treasury_movement(
        self,
        tenant_id: str,
        movement_type: MovementType,
        amount: Decimal,
        description: str | None = None
    ) -> JournalEntry:
        """
        Manual cash in/out of the treasury.
        DEPOSIT: Dr treasury / Cr equity contra. WITHDRAW: Dr expense contra / Cr treasury.
        """
        if not tenant_id:
            raise InsufficientData("tenant_id")
        if movement_type is None:
            raise InsufficientData("type")
        if amount is None or Decimal(amount) <= 0:
            raise InsufficientData("amount", "Treasury amount must be positive")

        movement_type = MovementType(movement_type)
        amount = money(amount)
        with self._unit_of_work("Treasury movement") as uow:
            treasury = self._code(uow, tenant_id, self.accounts.treasury)
            contra = self._code(uow, tenant_id, self.accounts.treasury_contra(movement_type))
            if movement_type == MovementType.DEPOSIT:
                lines = _pair(treasury, contra, amount)
            else:
                lines = _pair(contra, treasury, amount)
            entry = self.engine.post(
                uow,
                tenant_id,
                description or f"Treasury {movement_type.value.lower()}",
                lines,
            )
            uow.commit()
        return entry

    # ------------------------------------------------------ inventory counts

    def create_inventory_count(self, tenant_id: str, warehouse_id: UUID) -> InventoryCount:
        """Open a DRAFT count snapshotting every stock row of the warehouse."""
        if not tenant_id:
            raise InsufficientData("tenant_id")
        if not warehouse_id:
            raise InsufficientData("warehouse_id")

        with self._unit_of_work("Inventory count") as uow:
            count = InventoryCount(tenant_id=tenant_id, warehouse_id=warehouse_id)
            count.lines = [
                InventoryCountLine(
                    count_id=count.id,
                    product_id=stock.product_id,
                    system_qty=stock.quantity,
                    counted_qty=0,
                    difference=-stock.quantity,
                )
                for stock in uow.stock.list_by_warehouse(tenant_id, warehouse_id)
            ]
            uow.counts.add(count)
            uow.commit()
        logger.info("Opened inventory count %s with %d lines", count.id, len(count.lines))
        return count

    def update_count_line(self, tenant_id: str, line_id: UUID, counted_qty: int) -> InventoryCountLine:
        if counted_qty is None or counted_qty < 0:
            raise InsufficientData("counted_qty", "Counted quantity must not be negative")

        with self._unit_of_work("Count line update") as uow:
            found = uow.counts.get_line(tenant_id, line_id)
            if found is None:
                raise EntityNotFound("InventoryCountLine", line_id)
            line, count = found
            count.ensure_draft()
            line = line.record_count(counted_qty)
            uow.counts.save_line(line)
            uow.commit()
        return line

    def finalize_inventory_count(self, tenant_id: str, count_id: UUID) -> InventoryCount:
        """
        Write counted quantities back to stock and complete the count.

        No journal entry is posted unless post_count_adjustments is enabled,
        in which case differences are valued at recorded cost against the
        shrinkage/overage accounts.
        """
        with self._unit_of_work("Inventory count finalization") as uow:
            count = uow.counts.get(tenant_id, count_id)
            if count is None:
                raise EntityNotFound("InventoryCount", count_id)
            count.ensure_draft()

            changed = [line for line in count.lines if line.difference != 0]
            for line in changed:
                uow.stock.set_quantity(tenant_id, count.warehouse_id, line.product_id, line.counted_qty)

            completed = count.complete()
            uow.counts.save_status(completed)

            if self.settings.post_count_adjustments and changed:
                self._post_count_adjustments(uow, completed, changed)
            uow.commit()

        logger.info("Finalized inventory count %s (%d adjusted lines)", count_id, len(changed))
        return completed

    def _post_count_adjustments(
        self,
        uow: IUnitOfWork,
        count: InventoryCount,
        changed: list[InventoryCountLine]
    ) -> JournalEntry | None:
        products = uow.products.get_many(count.tenant_id, {l.product_id for l in changed})
        shortage = ZERO
        surplus = ZERO
        shrinkage_code = self.accounts.shrinkage.code
        overage_code = self.accounts.overage.code
        for line in changed:
            product = products.get(line.product_id)
            unit_cost = product.cost if product else ZERO
            amount, code = self.inventory.reconcile_count_line(
                line.difference, unit_cost, shrinkage_code, overage_code
            )
            if code == shrinkage_code:
                shortage += amount
            elif code == overage_code:
                surplus += amount

        lines = []
        if shortage > 0:
            self._code(uow, count.tenant_id, self.accounts.shrinkage)
            lines += _pair(shrinkage_code, self.accounts.inventory, shortage)
        if surplus > 0:
            self._code(uow, count.tenant_id, self.accounts.overage)
            lines += _pair(self.accounts.inventory, overage_code, surplus)
        if not lines:
            return None
        return self.engine.post(
            uow,
            count.tenant_id,
            f"Inventory count adjustment {count.id}",
            lines,
            reference=str(count.id),
        )
