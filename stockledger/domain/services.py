"""
Domain Services - Repository contracts, the unit of work, and pure ledger logic.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from .entities import (
    Account,
    Expense,
    InventoryCount,
    InventoryCountLine,
    JournalEntry,
    LedgerLine,
    Product,
    PurchaseOrder,
    Sale,
    SaleReturn,
    StockLevel,
)
from .value_objects import ZERO, AccountCode, AccountType, EntryType, SaleStatus, money

logger = logging.getLogger(__name__)


class IAccountRepository(ABC):

    @abstractmethod
    def get(self, tenant_id: str, account_id: UUID) -> Account | None:
        ...

    @abstractmethod
    def get_by_code(self, tenant_id: str, code: AccountCode) -> Account | None:
        ...

    @abstractmethod
    def find_by_codes(self, tenant_id: str, codes: Iterable[AccountCode]) -> list[Account]:
        ...

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> list[Account]:
        ...

    @abstractmethod
    def add_if_absent(self, account: Account) -> Account:
        """Insert the account unless (tenant_id, code) exists; return the stored row."""
        ...


class IJournalEntryRepository(ABC):

    @abstractmethod
    def add(self, entry: JournalEntry) -> JournalEntry:
        ...

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> list[JournalEntry]:
        ...

    @abstractmethod
    def find_by_reference(self, tenant_id: str, reference: str) -> list[JournalEntry]:
        ...

    @abstractmethod
    def lines_for_account(self, tenant_id: str, account_id: UUID) -> list["PostedLine"]:
        """Lines of one account ordered by entry date, then entry id."""
        ...

    @abstractmethod
    def totals_by_account(self, tenant_id: str) -> dict[UUID, tuple[Decimal, Decimal]]:
        """(debit total, credit total) per account id."""
        ...


class IStockRepository(ABC):

    @abstractmethod
    def adjust(self, tenant_id: str, warehouse_id: UUID, product_id: UUID, delta: int) -> int:
        """Atomically add delta to the row, creating it from zero; return the new quantity."""
        ...

    @abstractmethod
    def set_quantity(self, tenant_id: str, warehouse_id: UUID, product_id: UUID, quantity: int) -> None:
        ...

    @abstractmethod
    def get_quantity(self, tenant_id: str, warehouse_id: UUID, product_id: UUID) -> int | None:
        ...

    @abstractmethod
    def list_by_warehouse(self, tenant_id: str, warehouse_id: UUID) -> list[StockLevel]:
        ...

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> list[StockLevel]:
        ...


class IProductRepository(ABC):

    @abstractmethod
    def add(self, product: Product) -> Product:
        ...

    @abstractmethod
    def get_many(self, tenant_id: str, product_ids: Iterable[UUID]) -> dict[UUID, Product]:
        ...

    @abstractmethod
    def update_cost(self, tenant_id: str, product_id: UUID, cost: Decimal) -> None:
        ...


class ISequenceRepository(ABC):

    @abstractmethod
    def next_value(self, tenant_id: str, name: str) -> int:
        """Next number of a per-tenant counter, serialized against concurrent callers."""
        ...


class IDocumentRepository(ABC):

    @abstractmethod
    def add_sale(self, sale: Sale) -> Sale:
        ...

    @abstractmethod
    def add_purchase_order(self, order: PurchaseOrder) -> PurchaseOrder:
        ...

    @abstractmethod
    def add_expense(self, expense: Expense) -> Expense:
        ...

    @abstractmethod
    def get_sale(self, tenant_id: str, sale_id: UUID, for_update: bool = False) -> Sale | None:
        """The sale with its lines; for_update locks it until the unit of work ends."""
        ...

    @abstractmethod
    def save_sale_status(self, tenant_id: str, sale_id: UUID, status: SaleStatus) -> None:
        ...

    @abstractmethod
    def add_return(self, sale_return: SaleReturn) -> SaleReturn:
        ...

    @abstractmethod
    def returned_quantities(self, tenant_id: str, sale_id: UUID) -> dict[UUID, int]:
        """Quantity already returned per product of a sale."""
        ...


class IInventoryCountRepository(ABC):

    @abstractmethod
    def add(self, count: InventoryCount) -> InventoryCount:
        ...

    @abstractmethod
    def get(self, tenant_id: str, count_id: UUID) -> InventoryCount | None:
        ...

    @abstractmethod
    def get_line(self, tenant_id: str, line_id: UUID) -> tuple[InventoryCountLine, InventoryCount] | None:
        ...

    @abstractmethod
    def save_line(self, line: InventoryCountLine) -> None:
        ...

    @abstractmethod
    def save_status(self, count: InventoryCount) -> None:
        ...


class IUnitOfWork(ABC):
    """
    Atomic boundary for one business event.

    Everything done through the repositories between __enter__ and commit()
    is applied as one unit; leaving the block without commit(), or with an
    exception, rolls all of it back.
    """

    accounts: IAccountRepository
    journal: IJournalEntryRepository
    stock: IStockRepository
    products: IProductRepository
    sequences: ISequenceRepository
    documents: IDocumentRepository
    counts: IInventoryCountRepository

    def __enter__(self) -> "IUnitOfWork":
        self._committed = False
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            logger.warning("Rolling back unit of work after %s", exc_type.__name__)
            self.rollback()
        elif not self._committed:
            self.rollback()

    def commit(self) -> None:
        self._commit()
        self._committed = True

    @abstractmethod
    def _commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...


@dataclass(frozen=True)
class PostedLine:
    """A ledger line together with the entry fields needed to order and show it."""
    line: LedgerLine
    entry_id: UUID
    entry_date: datetime
    description: str
    reference: str | None = None

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.entry_date, str(self.entry_id))


@dataclass(frozen=True)
class RunningBalanceRow:
    posting: PostedLine
    balance_after: Decimal


class LedgerProjector:
    """
    Running balance of an account, recomputed from its lines on every call.

    ASSET and EXPENSE accounts grow with debits; LIABILITY, EQUITY and
    REVENUE accounts grow with credits.
    """

    @staticmethod
    def signed_amount(account_type: AccountType, entry_type: EntryType, amount: Decimal) -> Decimal:
        increases = EntryType.DEBIT if account_type.is_debit_normal else EntryType.CREDIT
        return amount if entry_type == increases else -amount

    @staticmethod
    def order(postings: Iterable[PostedLine]) -> list[PostedLine]:
        return sorted(postings, key=lambda p: p.sort_key)

    def running_balance(
        self,
        account: Account,
        ordered_lines: Sequence[PostedLine]
    ) -> list[RunningBalanceRow]:
        balance = ZERO
        rows = []
        for posting in ordered_lines:
            balance += self.signed_amount(
                account.account_type, posting.line.entry_type, posting.line.amount
            )
            rows.append(RunningBalanceRow(posting=posting, balance_after=money(balance)))
        return rows


class InventoryService:
    """Valuation of physical stock differences."""

    def reconcile_count_line(
        self,
        difference: int,
        unit_cost: Decimal,
        shrinkage_code: AccountCode,
        overage_code: AccountCode
    ) -> tuple[Decimal, AccountCode | None]:
        """
        Value one count difference at the recorded unit cost.
        Shortages go to the shrinkage expense, surpluses to the overage account.
        """
        amount = money(abs(difference) * unit_cost)
        if difference < 0:
            return amount, shrinkage_code
        elif difference > 0:
            return amount, overage_code
        else:
            return ZERO, None
