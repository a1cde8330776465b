"""Domain layer - Pure Python business logic."""

from stockledger.domain.entities import (
    Account,
    Expense,
    InventoryCount,
    InventoryCountLine,
    JournalEntry,
    LedgerLine,
    Product,
    PurchaseOrder,
    ReturnLine,
    Sale,
    SaleReturn,
    StockLevel,
)
from stockledger.domain.exceptions import (
    EntityNotFound,
    ImbalancedEntry,
    InsufficientData,
    InvalidState,
    LedgerError,
    SaleProcessingFailed,
    TransactionFailure,
    UnknownAccount,
)
from stockledger.domain.services import (
    IUnitOfWork,
    InventoryService,
    LedgerProjector,
    PostedLine,
    RunningBalanceRow,
)
from stockledger.domain.value_objects import (
    AccountCode,
    AccountType,
    CountStatus,
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
)
