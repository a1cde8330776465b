"""
Core configuration - account code tables and environment settings.
"""

import logging
import os
from dataclasses import dataclass, field

from stockledger.domain.value_objects import AccountCode, AccountSpec, AccountType, MovementType, PaymentType

DEFAULT_ACCOUNTS: tuple[AccountSpec, ...] = (
    # Assets
    AccountSpec(AccountCode("1001"), "Cash", AccountType.ASSET),
    AccountSpec(AccountCode("1002"), "Bank", AccountType.ASSET),
    AccountSpec(AccountCode("1200"), "Accounts Receivable", AccountType.ASSET),
    AccountSpec(AccountCode("1300"), "Inventory", AccountType.ASSET),
    # Liabilities
    AccountSpec(AccountCode("2001"), "Accounts Payable", AccountType.LIABILITY),
    AccountSpec(AccountCode("2002"), "Sales Tax Payable", AccountType.LIABILITY),
    # Equity
    AccountSpec(AccountCode("3001"), "Owner's Equity", AccountType.EQUITY),
    # Revenue
    AccountSpec(AccountCode("4001"), "Sales Revenue", AccountType.REVENUE),
    # Expenses
    AccountSpec(AccountCode("5001"), "Cost of Goods Sold", AccountType.EXPENSE),
    AccountSpec(AccountCode("5100"), "Rent Expense", AccountType.EXPENSE),
    AccountSpec(AccountCode("5200"), "Utilities Expense", AccountType.EXPENSE),
    AccountSpec(AccountCode("5300"), "Salaries Expense", AccountType.EXPENSE),
    AccountSpec(AccountCode("5999"), "General Expense", AccountType.EXPENSE),
)


def _default_expense_categories() -> dict[str, AccountCode]:
    return {
        "Rent": AccountCode("5100"),
        "Utilities": AccountCode("5200"),
        "Salaries": AccountCode("5300"),
        "Marketing": AccountCode("5999"),
        "Maintenance": AccountCode("5999"),
        "Other": AccountCode("5999"),
    }


@dataclass(frozen=True)
class PostingAccounts:
    """
    Account codes used by the posting engine.

    Injected into EventPoster; a tenant with a customised chart gets its own
    instance instead of code changes.
    """
    cash: AccountCode = AccountCode("1001")
    receivable: AccountCode = AccountCode("1200")
    inventory: AccountCode = AccountCode("1300")
    payable: AccountCode = AccountCode("2001")
    revenue: AccountCode = AccountCode("4001")
    cost_of_goods_sold: AccountCode = AccountCode("5001")
    default_expense: AccountCode = AccountCode("5999")
    expense_categories: dict[str, AccountCode] = field(default_factory=_default_expense_categories)

    # Lazily created on first use.
    treasury: AccountSpec = AccountSpec(AccountCode("1101"), "Treasury", AccountType.ASSET)
    bank_clearing: AccountSpec = AccountSpec(AccountCode("1102"), "Bank Account", AccountType.ASSET)
    deposit_contra: AccountSpec = AccountSpec(AccountCode("3101"), "Capital Contributions", AccountType.EQUITY)
    withdraw_contra: AccountSpec = AccountSpec(AccountCode("5101"), "Treasury Withdrawals", AccountType.EXPENSE)
    shrinkage: AccountSpec = AccountSpec(AccountCode("5400"), "Inventory Shrinkage", AccountType.EXPENSE)
    overage: AccountSpec = AccountSpec(AccountCode("4900"), "Inventory Overage", AccountType.REVENUE)

    def expense_account(self, category: str) -> AccountCode:
        return self.expense_categories.get(category, self.default_expense)

    def treasury_contra(self, movement: MovementType) -> AccountSpec:
        if movement == MovementType.DEPOSIT:
            return self.deposit_contra
        return self.withdraw_contra

    def sale_debit_account(self, payment_type: PaymentType | None) -> AccountSpec | AccountCode:
        """Cash sales land in the treasury, transfers in the bank account, the rest on credit."""
        if payment_type == PaymentType.CASH:
            return self.treasury
        if payment_type == PaymentType.BANK_TRANSFER:
            return self.bank_clearing
        return self.receivable


@dataclass(frozen=True)
class Settings:
    database_type: str = "sqlite"
    isolation_level: str = "SERIALIZABLE"
    post_count_adjustments: bool = False
    log_level: str = "INFO"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    """Settings from environment variables."""
    return Settings(
        database_type=os.getenv("DATABASE_TYPE", "sqlite"),
        isolation_level=os.getenv("DATABASE_ISOLATION_LEVEL", "SERIALIZABLE"),
        post_count_adjustments=_env_flag("LEDGER_POST_COUNT_ADJUSTMENTS"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
