"""
SQLAlchemy repositories - map SQLModel rows to domain entities.

Contended rows are handled without read-then-write races:
- stock is changed with a single UPDATE ... SET quantity = quantity + :delta,
- first-use rows (accounts, stock, counters) are inserted under a savepoint
  and re-read when the unique constraint reports a concurrent insert,
- sequence counters are locked FOR UPDATE before they are incremented.
"""

import logging
from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from stockledger.domain import entities
from stockledger.domain.services import (
    IAccountRepository,
    IDocumentRepository,
    IInventoryCountRepository,
    IJournalEntryRepository,
    IProductRepository,
    ISequenceRepository,
    IStockRepository,
    PostedLine,
)
from stockledger.domain.value_objects import (
    ZERO,
    AccountCode,
    AccountType,
    CountStatus,
    EntryType,
    SaleStatus,
    as_utc,
    utc_now,
)
from stockledger.infrastructure.database import models

logger = logging.getLogger(__name__)


def _account(row: models.Account) -> entities.Account:
    return entities.Account(
        id=row.id,
        tenant_id=row.tenant_id,
        code=AccountCode(row.code),
        name=row.name,
        account_type=AccountType(row.account_type),
        created_at=as_utc(row.created_at),
    )


def _line(row: models.LedgerTransaction, code: str | None = None) -> entities.LedgerLine:
    return entities.LedgerLine(
        id=row.id,
        journal_entry_id=row.journal_entry_id,
        account_id=row.account_id,
        account_code=AccountCode(code) if code else None,
        entry_type=EntryType(row.type),
        amount=row.amount,
    )


def _product(row: models.Product) -> entities.Product:
    return entities.Product(
        id=row.id,
        tenant_id=row.tenant_id,
        name=row.name,
        sku=row.sku,
        price=row.price,
        cost=row.cost,
    )


def _count_line(row: models.InventoryCountLine) -> entities.InventoryCountLine:
    return entities.InventoryCountLine(
        id=row.id,
        count_id=row.count_id,
        product_id=row.product_id,
        system_qty=row.system_qty,
        counted_qty=row.counted_qty,
        difference=row.difference,
    )


def _count(row: models.InventoryCount) -> entities.InventoryCount:
    return entities.InventoryCount(
        id=row.id,
        tenant_id=row.tenant_id,
        warehouse_id=row.warehouse_id,
        status=CountStatus(row.status),
        created_at=as_utc(row.created_at),
        completed_at=as_utc(row.completed_at),
        lines=[_count_line(l) for l in row.lines],
    )


class SqlAccountRepository(IAccountRepository):

    def __init__(self, db: Session):
        self.db = db

    def _query(self, tenant_id: str):
        return self.db.query(models.Account).filter(models.Account.tenant_id == tenant_id)

    def get(self, tenant_id: str, account_id: UUID) -> entities.Account | None:
        row = self._query(tenant_id).filter(models.Account.id == account_id).first()
        return _account(row) if row else None

    def get_by_code(self, tenant_id: str, code: AccountCode) -> entities.Account | None:
        row = self._query(tenant_id).filter(models.Account.code == code).first()
        return _account(row) if row else None

    def find_by_codes(self, tenant_id: str, codes: Iterable[AccountCode]) -> list[entities.Account]:
        codes = list(codes)
        if not codes:
            return []
        return [_account(r) for r in self._query(tenant_id).filter(models.Account.code.in_(codes)).all()]

    def list_by_tenant(self, tenant_id: str) -> list[entities.Account]:
        return [_account(r) for r in self._query(tenant_id).order_by(models.Account.code).all()]

    def add_if_absent(self, account: entities.Account) -> entities.Account:
        existing = self.get_by_code(account.tenant_id, account.code)
        if existing is not None:
            return existing

        savepoint = self.db.begin_nested()
        try:
            self.db.add(models.Account(
                id=account.id,
                tenant_id=account.tenant_id,
                code=account.code,
                name=account.name,
                account_type=AccountType(account.account_type).value,
                created_at=account.created_at,
            ))
            self.db.flush()
            savepoint.commit()
            return account
        except IntegrityError:
            # Another transaction created the same (tenant, code) first.
            savepoint.rollback()
            logger.debug("Account %s already created concurrently for tenant %s", account.code, account.tenant_id)
            row = self._query(account.tenant_id).filter(models.Account.code == account.code).one()
            return _account(row)


class SqlJournalEntryRepository(IJournalEntryRepository):

    def __init__(self, db: Session):
        self.db = db

    def add(self, entry: entities.JournalEntry) -> entities.JournalEntry:
        self.db.add(models.JournalEntry(
            id=entry.id,
            tenant_id=entry.tenant_id,
            description=entry.description,
            reference=entry.reference,
            date=entry.date,
            created_at=entry.created_at,
        ))
        # Header first so the line foreign keys resolve.
        self.db.flush()
        for line in entry.lines:
            self.db.add(models.LedgerTransaction(
                id=line.id,
                journal_entry_id=entry.id,
                account_id=line.account_id,
                type=EntryType(line.entry_type).value,
                amount=line.amount,
            ))
        self.db.flush()
        return entry

    def _to_domain(self, row: models.JournalEntry) -> entities.JournalEntry:
        return entities.JournalEntry(
            id=row.id,
            tenant_id=row.tenant_id,
            description=row.description,
            reference=row.reference,
            date=as_utc(row.date),
            created_at=as_utc(row.created_at),
            lines=[_line(l, l.account.code) for l in row.lines],
        )

    def _query(self, tenant_id: str):
        return (
            self.db.query(models.JournalEntry)
            .options(selectinload(models.JournalEntry.lines).selectinload(models.LedgerTransaction.account))
            .filter(models.JournalEntry.tenant_id == tenant_id)
        )

    def list_by_tenant(self, tenant_id: str) -> list[entities.JournalEntry]:
        rows = self._query(tenant_id).order_by(
            models.JournalEntry.date.desc(), models.JournalEntry.id
        ).all()
        return [self._to_domain(r) for r in rows]

    def find_by_reference(self, tenant_id: str, reference: str) -> list[entities.JournalEntry]:
        rows = self._query(tenant_id).filter(models.JournalEntry.reference == reference).all()
        return [self._to_domain(r) for r in rows]

    def lines_for_account(self, tenant_id: str, account_id: UUID) -> list[PostedLine]:
        rows = (
            self.db.query(models.LedgerTransaction, models.JournalEntry, models.Account.code)
            .join(models.JournalEntry, models.LedgerTransaction.journal_entry_id == models.JournalEntry.id)
            .join(models.Account, models.LedgerTransaction.account_id == models.Account.id)
            .filter(
                models.JournalEntry.tenant_id == tenant_id,
                models.Account.tenant_id == tenant_id,
                models.LedgerTransaction.account_id == account_id,
            )
            .order_by(models.JournalEntry.date, models.JournalEntry.id)
            .all()
        )
        return [
            PostedLine(
                line=_line(line, code),
                entry_id=entry.id,
                entry_date=as_utc(entry.date),
                description=entry.description,
                reference=entry.reference,
            )
            for line, entry, code in rows
        ]

    def totals_by_account(self, tenant_id: str) -> dict[UUID, tuple[Decimal, Decimal]]:
        rows = (
            self.db.query(
                models.LedgerTransaction.account_id,
                models.LedgerTransaction.type,
                func.coalesce(func.sum(models.LedgerTransaction.amount), ZERO),
            )
            .join(models.JournalEntry, models.LedgerTransaction.journal_entry_id == models.JournalEntry.id)
            .filter(models.JournalEntry.tenant_id == tenant_id)
            .group_by(models.LedgerTransaction.account_id, models.LedgerTransaction.type)
            .all()
        )
        totals: dict[UUID, tuple[Decimal, Decimal]] = {}
        for account_id, entry_type, amount in rows:
            debit, credit = totals.get(account_id, (ZERO, ZERO))
            amount = Decimal(amount)
            if entry_type == EntryType.DEBIT.value:
                debit += amount
            else:
                credit += amount
            totals[account_id] = (debit, credit)
        return totals


class SqlStockRepository(IStockRepository):

    def __init__(self, db: Session):
        self.db = db

    def _where(self, tenant_id: str, warehouse_id: UUID, product_id: UUID):
        return (
            models.Stock.tenant_id == tenant_id,
            models.Stock.warehouse_id == warehouse_id,
            models.Stock.product_id == product_id,
        )

    def _update(self, tenant_id: str, warehouse_id: UUID, product_id: UUID, values: dict) -> int:
        result = self.db.execute(
            update(models.Stock)
            .where(*self._where(tenant_id, warehouse_id, product_id))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def _insert(self, tenant_id: str, warehouse_id: UUID, product_id: UUID, quantity: int) -> bool:
        savepoint = self.db.begin_nested()
        try:
            self.db.add(models.Stock(
                tenant_id=tenant_id, warehouse_id=warehouse_id, product_id=product_id, quantity=quantity
            ))
            self.db.flush()
            savepoint.commit()
            return True
        except IntegrityError:
            savepoint.rollback()
            logger.debug("Stock row for product %s created concurrently, retrying update", product_id)
            return False

    def adjust(self, tenant_id: str, warehouse_id: UUID, product_id: UUID, delta: int) -> int:
        values = {"quantity": models.Stock.quantity + delta}
        if self._update(tenant_id, warehouse_id, product_id, values) == 0:
            if not self._insert(tenant_id, warehouse_id, product_id, delta):
                self._update(tenant_id, warehouse_id, product_id, values)
        return self.get_quantity(tenant_id, warehouse_id, product_id)

    def set_quantity(self, tenant_id: str, warehouse_id: UUID, product_id: UUID, quantity: int) -> None:
        values = {"quantity": quantity}
        if self._update(tenant_id, warehouse_id, product_id, values) == 0:
            if not self._insert(tenant_id, warehouse_id, product_id, quantity):
                self._update(tenant_id, warehouse_id, product_id, values)

    def get_quantity(self, tenant_id: str, warehouse_id: UUID, product_id: UUID) -> int | None:
        return (
            self.db.query(models.Stock.quantity)
            .filter(*self._where(tenant_id, warehouse_id, product_id))
            .scalar()
        )

    def _levels(self, query) -> list[entities.StockLevel]:
        return [
            entities.StockLevel(
                tenant_id=r.tenant_id,
                warehouse_id=r.warehouse_id,
                product_id=r.product_id,
                quantity=r.quantity,
            )
            for r in query.all()
        ]

    def list_by_warehouse(self, tenant_id: str, warehouse_id: UUID) -> list[entities.StockLevel]:
        return self._levels(
            self.db.query(models.Stock)
            .filter(models.Stock.tenant_id == tenant_id, models.Stock.warehouse_id == warehouse_id)
            .populate_existing()
        )

    def list_by_tenant(self, tenant_id: str) -> list[entities.StockLevel]:
        return self._levels(
            self.db.query(models.Stock).filter(models.Stock.tenant_id == tenant_id).populate_existing()
        )


class SqlProductRepository(IProductRepository):

    def __init__(self, db: Session):
        self.db = db

    def add(self, product: entities.Product) -> entities.Product:
        self.db.add(models.Product(
            id=product.id,
            tenant_id=product.tenant_id,
            name=product.name,
            sku=product.sku,
            price=product.price,
            cost=product.cost,
        ))
        self.db.flush()
        return product

    def get_many(self, tenant_id: str, product_ids: Iterable[UUID]) -> dict[UUID, entities.Product]:
        product_ids = list(product_ids)
        if not product_ids:
            return {}
        rows = (
            self.db.query(models.Product)
            .filter(models.Product.tenant_id == tenant_id, models.Product.id.in_(product_ids))
            .populate_existing()
            .all()
        )
        return {r.id: _product(r) for r in rows}

    def update_cost(self, tenant_id: str, product_id: UUID, cost: Decimal) -> None:
        self.db.execute(
            update(models.Product)
            .where(models.Product.tenant_id == tenant_id, models.Product.id == product_id)
            .values(cost=cost, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )


class SqlSequenceRepository(ISequenceRepository):

    def __init__(self, db: Session):
        self.db = db

    def _locked(self, tenant_id: str, name: str) -> models.SequenceCounter | None:
        return (
            self.db.query(models.SequenceCounter)
            .filter(models.SequenceCounter.tenant_id == tenant_id, models.SequenceCounter.name == name)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )

    def next_value(self, tenant_id: str, name: str) -> int:
        counter = self._locked(tenant_id, name)
        if counter is None:
            savepoint = self.db.begin_nested()
            try:
                self.db.add(models.SequenceCounter(tenant_id=tenant_id, name=name, current_value=1))
                self.db.flush()
                savepoint.commit()
                logger.debug("Sequence %s started for tenant %s", name, tenant_id)
                return 1
            except IntegrityError:
                savepoint.rollback()
                counter = self._locked(tenant_id, name)

        counter.current_value += 1
        self.db.flush()
        logger.debug("Sequence %s for tenant %s allocated %d", name, tenant_id, counter.current_value)
        return counter.current_value


class SqlDocumentRepository(IDocumentRepository):

    def __init__(self, db: Session):
        self.db = db

    def add_sale(self, sale: entities.Sale) -> entities.Sale:
        self.db.add(models.Sale(
            id=sale.id,
            tenant_id=sale.tenant_id,
            number=sale.number,
            warehouse_id=sale.warehouse_id,
            customer_id=sale.customer_id,
            payment_type=sale.payment_type,
            subtotal=sale.subtotal,
            discount_amount=sale.discount_amount,
            total=sale.total,
            invoice_token=sale.invoice_token,
            status=SaleStatus(sale.status).value,
            created_at=sale.created_at,
        ))
        self.db.flush()
        for line in sale.lines:
            self.db.add(models.SaleItem(
                sale_id=sale.id,
                product_id=line.product_id,
                quantity=line.quantity,
                price=line.price,
                cost=line.cost,
            ))
        self.db.flush()
        return sale

    def get_sale(self, tenant_id: str, sale_id: UUID, for_update: bool = False) -> entities.Sale | None:
        query = (
            self.db.query(models.Sale)
            .options(selectinload(models.Sale.items))
            .filter(models.Sale.tenant_id == tenant_id, models.Sale.id == sale_id)
            .populate_existing()
        )
        if for_update:
            query = query.with_for_update(of=models.Sale)
        row = query.first()
        if row is None:
            return None
        return entities.Sale(
            id=row.id,
            tenant_id=row.tenant_id,
            number=row.number,
            warehouse_id=row.warehouse_id,
            customer_id=row.customer_id,
            payment_type=row.payment_type,
            subtotal=row.subtotal,
            discount_amount=row.discount_amount,
            total=row.total,
            invoice_token=row.invoice_token,
            status=SaleStatus(row.status),
            created_at=as_utc(row.created_at),
            lines=[
                entities.SaleLine(product_id=i.product_id, quantity=i.quantity, price=i.price, cost=i.cost)
                for i in row.items
            ],
        )

    def save_sale_status(self, tenant_id: str, sale_id: UUID, status: SaleStatus) -> None:
        self.db.execute(
            update(models.Sale)
            .where(models.Sale.tenant_id == tenant_id, models.Sale.id == sale_id)
            .values(status=SaleStatus(status).value)
            .execution_options(synchronize_session=False)
        )

    def add_return(self, sale_return: entities.SaleReturn) -> entities.SaleReturn:
        self.db.add(models.SaleReturn(
            id=sale_return.id,
            tenant_id=sale_return.tenant_id,
            sale_id=sale_return.sale_id,
            number=sale_return.number,
            token=sale_return.token,
            return_type=sale_return.return_type.value,
            reason=sale_return.reason,
            notes=sale_return.notes,
            payment_type=sale_return.payment_type,
            items_total=sale_return.items_total,
            discount_share=sale_return.discount_share,
            refund_amount=sale_return.refund_amount,
            cost_total=sale_return.cost_total,
            created_at=sale_return.created_at,
        ))
        self.db.flush()
        for line in sale_return.lines:
            self.db.add(models.SaleReturnItem(
                return_id=sale_return.id,
                product_id=line.product_id,
                quantity=line.quantity,
                price=line.price,
                cost=line.cost,
            ))
        self.db.flush()
        return sale_return

    def returned_quantities(self, tenant_id: str, sale_id: UUID) -> dict[UUID, int]:
        rows = (
            self.db.query(models.SaleReturnItem.product_id, func.sum(models.SaleReturnItem.quantity))
            .join(models.SaleReturn, models.SaleReturnItem.return_id == models.SaleReturn.id)
            .filter(models.SaleReturn.tenant_id == tenant_id, models.SaleReturn.sale_id == sale_id)
            .group_by(models.SaleReturnItem.product_id)
            .all()
        )
        return {product_id: int(quantity) for product_id, quantity in rows}

    def add_purchase_order(self, order: entities.PurchaseOrder) -> entities.PurchaseOrder:
        self.db.add(models.PurchaseOrder(
            id=order.id,
            tenant_id=order.tenant_id,
            number=order.number,
            warehouse_id=order.warehouse_id,
            supplier=order.supplier,
            total=order.total,
            status=order.status,
            created_at=order.created_at,
        ))
        self.db.flush()
        for line in order.lines:
            self.db.add(models.PurchaseItem(
                purchase_id=order.id,
                product_id=line.product_id,
                quantity=line.quantity,
                cost=line.cost,
            ))
        self.db.flush()
        return order

    def add_expense(self, expense: entities.Expense) -> entities.Expense:
        self.db.add(models.Expense(
            id=expense.id,
            tenant_id=expense.tenant_id,
            description=expense.description,
            amount=expense.amount,
            category=expense.category,
            created_at=expense.created_at,
        ))
        self.db.flush()
        return expense


class SqlInventoryCountRepository(IInventoryCountRepository):

    def __init__(self, db: Session):
        self.db = db

    def add(self, count: entities.InventoryCount) -> entities.InventoryCount:
        self.db.add(models.InventoryCount(
            id=count.id,
            tenant_id=count.tenant_id,
            warehouse_id=count.warehouse_id,
            status=count.status.value,
            created_at=count.created_at,
        ))
        self.db.flush()
        for line in count.lines:
            self.db.add(models.InventoryCountLine(
                id=line.id,
                count_id=count.id,
                product_id=line.product_id,
                system_qty=line.system_qty,
                counted_qty=line.counted_qty,
                difference=line.difference,
            ))
        self.db.flush()
        return count

    def get(self, tenant_id: str, count_id: UUID) -> entities.InventoryCount | None:
        row = (
            self.db.query(models.InventoryCount)
            .options(selectinload(models.InventoryCount.lines))
            .filter(models.InventoryCount.tenant_id == tenant_id, models.InventoryCount.id == count_id)
            .populate_existing()
            .first()
        )
        return _count(row) if row else None

    def get_line(
        self,
        tenant_id: str,
        line_id: UUID
    ) -> tuple[entities.InventoryCountLine, entities.InventoryCount] | None:
        line = (
            self.db.query(models.InventoryCountLine)
            .join(models.InventoryCount, models.InventoryCountLine.count_id == models.InventoryCount.id)
            .filter(models.InventoryCountLine.id == line_id, models.InventoryCount.tenant_id == tenant_id)
            .first()
        )
        if line is None:
            return None
        return _count_line(line), self.get(tenant_id, line.count_id)

    def save_line(self, line: entities.InventoryCountLine) -> None:
        self.db.execute(
            update(models.InventoryCountLine)
            .where(models.InventoryCountLine.id == line.id)
            .values(counted_qty=line.counted_qty, difference=line.difference)
            .execution_options(synchronize_session=False)
        )

    def save_status(self, count: entities.InventoryCount) -> None:
        self.db.execute(
            update(models.InventoryCount)
            .where(models.InventoryCount.tenant_id == count.tenant_id, models.InventoryCount.id == count.id)
            .values(status=count.status.value, completed_at=count.completed_at)
            .execution_options(synchronize_session=False)
        )
