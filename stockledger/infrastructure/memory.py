"""
In-memory storage - same contracts as the SQL repositories, for tests and demos.

A unit of work holds the store lock for its whole lifetime and works on the
live dictionaries; a snapshot taken on enter is restored on rollback.
"""

import copy
import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from decimal import Decimal
from uuid import UUID

from stockledger.domain.entities import (
    Account,
    Expense,
    InventoryCount,
    InventoryCountLine,
    JournalEntry,
    Product,
    PurchaseOrder,
    Sale,
    SaleReturn,
    StockLevel,
)
from stockledger.domain.services import (
    IAccountRepository,
    IDocumentRepository,
    IInventoryCountRepository,
    IJournalEntryRepository,
    IProductRepository,
    ISequenceRepository,
    IStockRepository,
    IUnitOfWork,
    PostedLine,
)
from stockledger.domain.value_objects import ZERO, AccountCode, EntryType, SaleStatus

logger = logging.getLogger(__name__)

StockKey = tuple[str, UUID, UUID]


@dataclass
class InMemoryState:
    accounts: dict[UUID, Account] = field(default_factory=dict)
    entries: list[JournalEntry] = field(default_factory=list)
    stock: dict[StockKey, int] = field(default_factory=dict)
    products: dict[UUID, Product] = field(default_factory=dict)
    sequences: dict[tuple[str, str], int] = field(default_factory=dict)
    sales: dict[UUID, Sale] = field(default_factory=dict)
    returns: dict[UUID, SaleReturn] = field(default_factory=dict)
    purchase_orders: dict[UUID, PurchaseOrder] = field(default_factory=dict)
    expenses: dict[UUID, Expense] = field(default_factory=dict)
    counts: dict[UUID, InventoryCount] = field(default_factory=dict)


class InMemoryStore:
    """Process-local database shared by every unit of work created on it."""

    def __init__(self):
        self.state = InMemoryState()
        self.lock = threading.RLock()


class InMemoryAccountRepository(IAccountRepository):

    def __init__(self, state: InMemoryState):
        self.state = state

    def _tenant(self, tenant_id: str) -> list[Account]:
        return [a for a in self.state.accounts.values() if a.tenant_id == tenant_id]

    def get(self, tenant_id: str, account_id: UUID) -> Account | None:
        account = self.state.accounts.get(account_id)
        return account if account and account.tenant_id == tenant_id else None

    def get_by_code(self, tenant_id: str, code: AccountCode) -> Account | None:
        return next((a for a in self._tenant(tenant_id) if a.code == code), None)

    def find_by_codes(self, tenant_id: str, codes: Iterable[AccountCode]) -> list[Account]:
        wanted = set(codes)
        return [a for a in self._tenant(tenant_id) if a.code in wanted]

    def list_by_tenant(self, tenant_id: str) -> list[Account]:
        return sorted(self._tenant(tenant_id), key=lambda a: a.code)

    def add_if_absent(self, account: Account) -> Account:
        existing = self.get_by_code(account.tenant_id, account.code)
        if existing is not None:
            return existing
        self.state.accounts[account.id] = account
        return account


class InMemoryJournalEntryRepository(IJournalEntryRepository):

    def __init__(self, state: InMemoryState):
        self.state = state

    def add(self, entry: JournalEntry) -> JournalEntry:
        for line in entry.lines:
            line.journal_entry_id = entry.id
        self.state.entries.append(entry)
        return entry

    def list_by_tenant(self, tenant_id: str) -> list[JournalEntry]:
        entries = [e for e in self.state.entries if e.tenant_id == tenant_id]
        return sorted(entries, key=lambda e: (e.date, str(e.id)), reverse=True)

    def find_by_reference(self, tenant_id: str, reference: str) -> list[JournalEntry]:
        return [e for e in self.state.entries if e.tenant_id == tenant_id and e.reference == reference]

    def lines_for_account(self, tenant_id: str, account_id: UUID) -> list[PostedLine]:
        postings = [
            PostedLine(
                line=line,
                entry_id=entry.id,
                entry_date=entry.date,
                description=entry.description,
                reference=entry.reference,
            )
            for entry in self.state.entries if entry.tenant_id == tenant_id
            for line in entry.lines if line.account_id == account_id
        ]
        return sorted(postings, key=lambda p: p.sort_key)

    def totals_by_account(self, tenant_id: str) -> dict[UUID, tuple[Decimal, Decimal]]:
        totals: dict[UUID, tuple[Decimal, Decimal]] = {}
        for entry in self.state.entries:
            if entry.tenant_id != tenant_id:
                continue
            for line in entry.lines:
                debit, credit = totals.get(line.account_id, (ZERO, ZERO))
                if line.entry_type == EntryType.DEBIT:
                    debit += line.amount
                else:
                    credit += line.amount
                totals[line.account_id] = (debit, credit)
        return totals


class InMemoryStockRepository(IStockRepository):

    def __init__(self, state: InMemoryState):
        self.state = state

    def adjust(self, tenant_id: str, warehouse_id: UUID, product_id: UUID, delta: int) -> int:
        key = (tenant_id, warehouse_id, product_id)
        self.state.stock[key] = self.state.stock.get(key, 0) + delta
        return self.state.stock[key]

    def set_quantity(self, tenant_id: str, warehouse_id: UUID, product_id: UUID, quantity: int) -> None:
        self.state.stock[(tenant_id, warehouse_id, product_id)] = quantity

    def get_quantity(self, tenant_id: str, warehouse_id: UUID, product_id: UUID) -> int | None:
        return self.state.stock.get((tenant_id, warehouse_id, product_id))

    def _levels(self, keep) -> list[StockLevel]:
        return [
            StockLevel(tenant_id=t, warehouse_id=w, product_id=p, quantity=q)
            for (t, w, p), q in self.state.stock.items() if keep(t, w)
        ]

    def list_by_warehouse(self, tenant_id: str, warehouse_id: UUID) -> list[StockLevel]:
        return self._levels(lambda t, w: t == tenant_id and w == warehouse_id)

    def list_by_tenant(self, tenant_id: str) -> list[StockLevel]:
        return self._levels(lambda t, w: t == tenant_id)


class InMemoryProductRepository(IProductRepository):

    def __init__(self, state: InMemoryState):
        self.state = state

    def add(self, product: Product) -> Product:
        self.state.products[product.id] = product
        return product

    def get_many(self, tenant_id: str, product_ids: Iterable[UUID]) -> dict[UUID, Product]:
        found = {}
        for product_id in product_ids:
            product = self.state.products.get(product_id)
            if product is not None and product.tenant_id == tenant_id:
                found[product_id] = product
        return found

    def update_cost(self, tenant_id: str, product_id: UUID, cost: Decimal) -> None:
        product = self.state.products.get(product_id)
        if product is not None and product.tenant_id == tenant_id:
            self.state.products[product_id] = replace(product, cost=cost)


class InMemorySequenceRepository(ISequenceRepository):

    def __init__(self, state: InMemoryState):
        self.state = state

    def next_value(self, tenant_id: str, name: str) -> int:
        key = (tenant_id, name)
        self.state.sequences[key] = self.state.sequences.get(key, 0) + 1
        return self.state.sequences[key]


class InMemoryDocumentRepository(IDocumentRepository):

    def __init__(self, state: InMemoryState):
        self.state = state

    def add_sale(self, sale: Sale) -> Sale:
        self.state.sales[sale.id] = sale
        return sale

    def add_purchase_order(self, order: PurchaseOrder) -> PurchaseOrder:
        self.state.purchase_orders[order.id] = order
        return order

    def add_expense(self, expense: Expense) -> Expense:
        self.state.expenses[expense.id] = expense
        return expense

    def get_sale(self, tenant_id: str, sale_id: UUID, for_update: bool = False) -> Sale | None:
        sale = self.state.sales.get(sale_id)
        return sale if sale and sale.tenant_id == tenant_id else None

    def save_sale_status(self, tenant_id: str, sale_id: UUID, status: SaleStatus) -> None:
        sale = self.get_sale(tenant_id, sale_id)
        if sale is not None:
            self.state.sales[sale_id] = replace(sale, status=status)

    def add_return(self, sale_return: SaleReturn) -> SaleReturn:
        self.state.returns[sale_return.id] = sale_return
        return sale_return

    def returned_quantities(self, tenant_id: str, sale_id: UUID) -> dict[UUID, int]:
        returned: dict[UUID, int] = {}
        for sale_return in self.state.returns.values():
            if sale_return.tenant_id != tenant_id or sale_return.sale_id != sale_id:
                continue
            for line in sale_return.lines:
                returned[line.product_id] = returned.get(line.product_id, 0) + line.quantity
        return returned


class InMemoryInventoryCountRepository(IInventoryCountRepository):

    def __init__(self, state: InMemoryState):
        self.state = state

    def add(self, count: InventoryCount) -> InventoryCount:
        self.state.counts[count.id] = copy.deepcopy(count)
        return count

    def get(self, tenant_id: str, count_id: UUID) -> InventoryCount | None:
        count = self.state.counts.get(count_id)
        if count is None or count.tenant_id != tenant_id:
            return None
        return copy.deepcopy(count)

    def get_line(self, tenant_id: str, line_id: UUID) -> tuple[InventoryCountLine, InventoryCount] | None:
        for count in self.state.counts.values():
            if count.tenant_id != tenant_id:
                continue
            for line in count.lines:
                if line.id == line_id:
                    return copy.deepcopy(line), copy.deepcopy(count)
        return None

    def save_line(self, line: InventoryCountLine) -> None:
        count = self.state.counts[line.count_id]
        count.lines = [line if l.id == line.id else l for l in count.lines]

    def save_status(self, count: InventoryCount) -> None:
        stored = self.state.counts[count.id]
        self.state.counts[count.id] = replace(
            stored, status=count.status, completed_at=count.completed_at
        )


class InMemoryUnitOfWork(IUnitOfWork):

    def __init__(self, store: InMemoryStore):
        self.store = store
        state = store.state
        self.accounts = InMemoryAccountRepository(state)
        self.journal = InMemoryJournalEntryRepository(state)
        self.stock = InMemoryStockRepository(state)
        self.products = InMemoryProductRepository(state)
        self.sequences = InMemorySequenceRepository(state)
        self.documents = InMemoryDocumentRepository(state)
        self.counts = InMemoryInventoryCountRepository(state)
        self._snapshot: InMemoryState | None = None

    def __enter__(self) -> "InMemoryUnitOfWork":
        self.store.lock.acquire()
        self._snapshot = copy.deepcopy(self.store.state)
        return super().__enter__()

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            super().__exit__(exc_type, exc, tb)
        finally:
            self._snapshot = None
            self.store.lock.release()

    def _commit(self) -> None:
        self._snapshot = copy.deepcopy(self.store.state)

    def rollback(self) -> None:
        if self._snapshot is None:
            return
        # Restore in place so repositories keep pointing at the live state.
        for name in vars(self._snapshot):
            setattr(self.store.state, name, copy.deepcopy(getattr(self._snapshot, name)))
        logger.debug("In-memory unit of work rolled back")
