"""
API Routers - Financial reports endpoints.
"""

from fastapi import APIRouter, Depends

from stockledger.api.dependencies import get_reports, get_tenant_id
from stockledger.application.dto.ledger_dto import (
    BalanceSheetDTO,
    InventoryValuationDTO,
    ProfitAndLossDTO,
    TrialBalanceDTO,
)
from stockledger.application.reports import FinancialReports

router = APIRouter(prefix="/api/v1/reports", tags=["Reports"])


@router.get("/trial-balance", response_model=TrialBalanceDTO)
def get_trial_balance(
    tenant_id: str = Depends(get_tenant_id),
    reports: FinancialReports = Depends(get_reports)
):
    """
    Trial balance of every account of the tenant.

    is_balanced holds when Σ Debit and Σ Credit differ by less than 0.01.
    """
    return reports.trial_balance(tenant_id)


@router.get("/balance-sheet", response_model=BalanceSheetDTO)
def get_balance_sheet(
    tenant_id: str = Depends(get_tenant_id),
    reports: FinancialReports = Depends(get_reports)
):
    """Assets = Liabilities + Equity, with unclosed net income shown as Current Earnings."""
    return reports.balance_sheet(tenant_id)


@router.get("/profit-and-loss", response_model=ProfitAndLossDTO)
def get_profit_and_loss(
    tenant_id: str = Depends(get_tenant_id),
    reports: FinancialReports = Depends(get_reports)
):
    return reports.profit_and_loss(tenant_id)


@router.get("/inventory-valuation", response_model=InventoryValuationDTO)
def get_inventory_valuation(
    tenant_id: str = Depends(get_tenant_id),
    reports: FinancialReports = Depends(get_reports)
):
    return reports.inventory_valuation(tenant_id)
