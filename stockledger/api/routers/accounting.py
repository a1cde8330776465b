"""
API Routers - chart of accounts, journal entries and account ledgers.
"""

from collections.abc import Callable
from uuid import UUID

from fastapi import APIRouter, Depends, status

from stockledger.api.dependencies import get_chart, get_journal_engine, get_tenant_id
from stockledger.application.chart_of_accounts import ChartOfAccounts
from stockledger.application.dto.ledger_dto import (
    AccountLedgerDTO,
    AccountResponseDTO,
    JournalEntryCreateDTO,
    JournalEntryResponseDTO,
    LedgerRowDTO,
)
from stockledger.application.journal_engine import JournalEngine
from stockledger.domain.services import IUnitOfWork
from stockledger.domain.value_objects import ZERO, AccountCode, JournalLineInput
from stockledger.infrastructure.database import get_unit_of_work

router = APIRouter(prefix="/api/v1", tags=["Ledger"])


@router.post("/tenants/seed", response_model=list[AccountResponseDTO], status_code=status.HTTP_201_CREATED)
def seed_chart_of_accounts(
    tenant_id: str = Depends(get_tenant_id),
    chart: ChartOfAccounts = Depends(get_chart),
    uow_factory: Callable[[], IUnitOfWork] = Depends(get_unit_of_work)
):
    """
    Create the default chart of accounts for the tenant.

    Re-running it adds only the codes that are missing.
    """
    with uow_factory() as uow:
        accounts = chart.seed(uow, tenant_id)
        uow.commit()
    return [AccountResponseDTO.model_validate(a) for a in accounts]


@router.get("/accounts", response_model=list[AccountResponseDTO])
def list_accounts(
    tenant_id: str = Depends(get_tenant_id),
    chart: ChartOfAccounts = Depends(get_chart),
    uow_factory: Callable[[], IUnitOfWork] = Depends(get_unit_of_work)
):
    with uow_factory() as uow:
        accounts = chart.list_accounts(uow, tenant_id)
    return [AccountResponseDTO.model_validate(a) for a in accounts]


@router.get("/accounts/{account_id}/ledger", response_model=AccountLedgerDTO)
def get_account_ledger(
    account_id: UUID,
    tenant_id: str = Depends(get_tenant_id),
    engine: JournalEngine = Depends(get_journal_engine),
    uow_factory: Callable[[], IUnitOfWork] = Depends(get_unit_of_work)
):
    """Every line posted to the account with the running balance after it."""
    with uow_factory() as uow:
        account, rows = engine.account_ledger(uow, tenant_id, account_id)

    return AccountLedgerDTO(
        account=AccountResponseDTO.model_validate(account),
        rows=[
            LedgerRowDTO(
                entry_id=row.posting.entry_id,
                date=row.posting.entry_date,
                description=row.posting.description,
                reference=row.posting.reference,
                type=row.posting.line.entry_type,
                amount=row.posting.line.amount,
                balance_after=row.balance_after,
            )
            for row in rows
        ],
        balance=rows[-1].balance_after if rows else ZERO,
    )


@router.get("/journal-entries", response_model=list[JournalEntryResponseDTO])
def list_journal_entries(
    tenant_id: str = Depends(get_tenant_id),
    engine: JournalEngine = Depends(get_journal_engine),
    uow_factory: Callable[[], IUnitOfWork] = Depends(get_unit_of_work)
):
    with uow_factory() as uow:
        entries = engine.list_entries(uow, tenant_id)
    return [JournalEntryResponseDTO.model_validate(e) for e in entries]


@router.post("/journal-entries", response_model=JournalEntryResponseDTO, status_code=status.HTTP_201_CREATED)
def create_journal_entry(
    dto: JournalEntryCreateDTO,
    tenant_id: str = Depends(get_tenant_id),
    engine: JournalEngine = Depends(get_journal_engine),
    uow_factory: Callable[[], IUnitOfWork] = Depends(get_unit_of_work)
):
    """
    Post a manual journal entry.

    - Σ Debit must equal Σ Credit within 0.01
    - Every account code must already exist for the tenant
    """
    lines = [JournalLineInput(AccountCode(l.account_code), l.type, l.amount) for l in dto.lines]
    with uow_factory() as uow:
        entry = engine.post(uow, tenant_id, dto.description, lines, reference=dto.reference, date=dto.date)
        uow.commit()
    return JournalEntryResponseDTO.model_validate(entry)
