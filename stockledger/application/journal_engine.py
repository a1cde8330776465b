"""
Journal engine - the only writer of ledger data.
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from stockledger.application.chart_of_accounts import ChartOfAccounts
from stockledger.domain.entities import Account, JournalEntry, LedgerLine
from stockledger.domain.exceptions import EntityNotFound, ImbalancedEntry, InsufficientData
from stockledger.domain.services import IUnitOfWork, LedgerProjector, RunningBalanceRow
from stockledger.domain.value_objects import (
    BALANCE_EPSILON,
    ZERO,
    EntryType,
    JournalLineInput,
    as_utc,
    money,
    utc_now,
)

logger = logging.getLogger(__name__)


class JournalEngine:
    """
    Validates and stores balanced journal entries.

    post() runs inside the caller's unit of work and never commits: the entry
    lands together with whatever else the caller changed, or not at all.
    """

    def __init__(
        self,
        chart: ChartOfAccounts | None = None,
        projector: LedgerProjector | None = None
    ):
        self.chart = chart or ChartOfAccounts()
        self.projector = projector or LedgerProjector()

    def post(
        self,
        uow: IUnitOfWork,
        tenant_id: str,
        description: str,
        lines: Sequence[JournalLineInput],
        reference: str | None = None,
        date: datetime | None = None
    ) -> JournalEntry:
        if not lines:
            raise InsufficientData("lines", "A journal entry needs at least one line")

        # Checks run on the stored two-place amounts.
        amounts = []
        for line in lines:
            amount = money(line.amount)
            if amount <= 0:
                raise InsufficientData(
                    "amount", f"Line amount for account {line.account_code} must be positive"
                )
            amounts.append(amount)

        total_debit = sum(
            (a for l, a in zip(lines, amounts) if l.entry_type == EntryType.DEBIT), ZERO
        )
        total_credit = sum(
            (a for l, a in zip(lines, amounts) if l.entry_type == EntryType.CREDIT), ZERO
        )
        if abs(total_debit - total_credit) > BALANCE_EPSILON:
            raise ImbalancedEntry(total_debit, total_credit)

        account_ids = self.chart.lookup_many(uow, tenant_id, (l.account_code for l in lines))

        entry = JournalEntry(
            tenant_id=tenant_id,
            description=description,
            reference=reference,
            date=as_utc(date) if date else utc_now(),
        )
        entry.lines = [
            LedgerLine(
                journal_entry_id=entry.id,
                account_id=account_ids[l.account_code],
                account_code=l.account_code,
                entry_type=EntryType(l.entry_type),
                amount=amount,
            )
            for l, amount in zip(lines, amounts)
        ]
        stored = uow.journal.add(entry)
        logger.info(
            "Posted journal entry %s for tenant %s: Dr %s / Cr %s (%d lines)",
            stored.id, tenant_id, total_debit, total_credit, len(stored.lines)
        )
        return stored

    def list_entries(self, uow: IUnitOfWork, tenant_id: str) -> list[JournalEntry]:
        return uow.journal.list_by_tenant(tenant_id)

    def account_ledger(
        self,
        uow: IUnitOfWork,
        tenant_id: str,
        account_id: UUID
    ) -> tuple[Account, list[RunningBalanceRow]]:
        """An account with every line posted to it and the balance after each."""
        account = uow.accounts.get(tenant_id, account_id)
        if account is None:
            raise EntityNotFound("Account", account_id)
        postings = self.projector.order(uow.journal.lines_for_account(tenant_id, account_id))
        return account, self.projector.running_balance(account, postings)
