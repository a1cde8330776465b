"""
Financial reports - Trial Balance, Balance Sheet, Profit & Loss.

Read-only: built from committed ledger lines, never part of a write.
"""

from collections.abc import Callable
from decimal import Decimal

from stockledger.application.dto.ledger_dto import (
    BalanceSheetDTO,
    InventoryValuationDTO,
    ProfitAndLossDTO,
    StatementLineDTO,
    TrialBalanceDTO,
    TrialBalanceRowDTO,
)
from stockledger.domain.services import IUnitOfWork
from stockledger.domain.value_objects import BALANCE_EPSILON, ZERO, AccountType, money

CURRENT_EARNINGS_CODE = "CURRENT"
CURRENT_EARNINGS_NAME = "Current Earnings"


def _total(lines: list[StatementLineDTO]) -> Decimal:
    return money(sum((l.amount for l in lines), ZERO))


class FinancialReports:

    def __init__(self, uow_factory: Callable[[], IUnitOfWork]):
        self.uow_factory = uow_factory

    def trial_balance(self, tenant_id: str) -> TrialBalanceDTO:
        """
        Debits and credits summed separately per account, balance = debit - credit.
        Every account of the tenant is listed, posted to or not.
        """
        with self.uow_factory() as uow:
            accounts = sorted(uow.accounts.list_by_tenant(tenant_id), key=lambda a: a.code)
            totals = uow.journal.totals_by_account(tenant_id)

        rows = []
        for account in accounts:
            debit, credit = totals.get(account.id, (ZERO, ZERO))
            rows.append(TrialBalanceRowDTO(
                account_id=account.id,
                code=account.code,
                name=account.name,
                account_type=account.account_type,
                debit_total=money(debit),
                credit_total=money(credit),
                balance=money(debit - credit),
            ))

        total_debit = money(sum((r.debit_total for r in rows), ZERO))
        total_credit = money(sum((r.credit_total for r in rows), ZERO))
        return TrialBalanceDTO(
            rows=rows,
            total_debit=total_debit,
            total_credit=total_credit,
            difference=total_debit - total_credit,
            is_balanced=abs(total_debit - total_credit) <= BALANCE_EPSILON,
        )

    def profit_and_loss(self, tenant_id: str) -> ProfitAndLossDTO:
        return self._profit_and_loss(self.trial_balance(tenant_id))

    def balance_sheet(self, tenant_id: str) -> BalanceSheetDTO:
        """
        Assets against liabilities plus equity.

        Revenue and expense accounts are never closed, so the period's net
        income is shown as a Current Earnings equity line.
        """
        trial = self.trial_balance(tenant_id)

        def bucket(account_type: AccountType) -> list[StatementLineDTO]:
            lines = []
            for row in trial.rows:
                if row.account_type != account_type:
                    continue
                amount = row.balance if account_type.is_debit_normal else -row.balance
                lines.append(StatementLineDTO(code=row.code, name=row.name, amount=amount))
            return lines

        assets = bucket(AccountType.ASSET)
        liabilities = bucket(AccountType.LIABILITY)
        equity = bucket(AccountType.EQUITY)
        net_income = self._profit_and_loss(trial).net_income
        if net_income != 0:
            equity.append(StatementLineDTO(
                code=CURRENT_EARNINGS_CODE, name=CURRENT_EARNINGS_NAME, amount=net_income
            ))

        total_assets = _total(assets)
        total_liabilities = _total(liabilities)
        total_equity = _total(equity)
        return BalanceSheetDTO(
            assets=assets,
            liabilities=liabilities,
            equity=equity,
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            total_equity=total_equity,
            is_balanced=abs(total_assets - (total_liabilities + total_equity)) <= BALANCE_EPSILON,
        )

    def inventory_valuation(self, tenant_id: str) -> InventoryValuationDTO:
        """Stock on hand valued at each product's recorded cost."""
        with self.uow_factory() as uow:
            stocks = uow.stock.list_by_tenant(tenant_id)
            products = uow.products.get_many(tenant_id, {s.product_id for s in stocks})

        total_value = ZERO
        for stock in stocks:
            product = products.get(stock.product_id)
            if product is not None:
                total_value += stock.quantity * product.cost
        return InventoryValuationDTO(
            total_value=money(total_value),
            total_items=sum(s.quantity for s in stocks),
        )

    @staticmethod
    def _profit_and_loss(trial: TrialBalanceDTO) -> ProfitAndLossDTO:
        revenue = [
            StatementLineDTO(code=r.code, name=r.name, amount=r.credit_total - r.debit_total)
            for r in trial.rows if r.account_type == AccountType.REVENUE
        ]
        expenses = [
            StatementLineDTO(code=r.code, name=r.name, amount=r.debit_total - r.credit_total)
            for r in trial.rows if r.account_type == AccountType.EXPENSE
        ]
        total_revenue = _total(revenue)
        total_expenses = _total(expenses)
        return ProfitAndLossDTO(
            revenue=revenue,
            expenses=expenses,
            total_revenue=total_revenue,
            total_expenses=total_expenses,
            net_income=total_revenue - total_expenses,
        )
