"""
Unit tests - Chart of accounts and journal engine against both storage backends.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from stockledger.core.config import DEFAULT_ACCOUNTS
from stockledger.domain.exceptions import EntityNotFound, ImbalancedEntry, InsufficientData, UnknownAccount
from stockledger.domain.value_objects import AccountCode, AccountType, EntryType, JournalLineInput


def _lines(*specs) -> list[JournalLineInput]:
    return [JournalLineInput(AccountCode(code), entry_type, Decimal(amount)) for code, entry_type, amount in specs]


class TestChartOfAccounts:
    """Seeding and account resolution."""

    def test_seed_creates_default_catalog(self, uow_factory, chart, seeded):
        with uow_factory() as uow:
            accounts = chart.list_accounts(uow, seeded)
        codes = [a.code for a in accounts]
        assert codes == sorted(spec.code for spec in DEFAULT_ACCOUNTS)

    def test_seed_twice_keeps_one_account_per_code(self, uow_factory, chart, seeded):
        with uow_factory() as uow:
            chart.seed(uow, seeded)
            uow.commit()
        with uow_factory() as uow:
            codes = [a.code for a in chart.list_accounts(uow, seeded)]
        for code in ("1001", "1200", "1300", "2001", "3001", "4001", "5001"):
            assert codes.count(code) == 1
        assert len(codes) == len(DEFAULT_ACCOUNTS)

    def test_seed_requires_tenant(self, uow_factory, chart):
        with uow_factory() as uow:
            with pytest.raises(InsufficientData):
                chart.seed(uow, "")

    def test_seed_is_tenant_scoped(self, uow_factory, chart, seeded, other_tenant_id):
        with uow_factory() as uow:
            assert chart.list_accounts(uow, other_tenant_id) == []

    def test_resolve_existing(self, uow_factory, chart, seeded):
        with uow_factory() as uow:
            account = chart.resolve(uow, seeded, AccountCode("1001"))
        assert account.name == "Cash"
        assert account.account_type == AccountType.ASSET

    def test_resolve_unknown_without_fallback(self, uow_factory, chart, seeded):
        with uow_factory() as uow:
            with pytest.raises(UnknownAccount):
                chart.resolve(uow, seeded, AccountCode("9999"))

    def test_resolve_creates_from_fallback_once(self, uow_factory, chart, seeded):
        with uow_factory() as uow:
            first = chart.resolve(uow, seeded, AccountCode("1101"), "Treasury", AccountType.ASSET)
            second = chart.resolve(uow, seeded, AccountCode("1101"), "Treasury", AccountType.ASSET)
            uow.commit()
        assert first.id == second.id
        with uow_factory() as uow:
            codes = [a.code for a in chart.list_accounts(uow, seeded)]
        assert codes.count("1101") == 1

    def test_lookup_many_reports_missing_code(self, uow_factory, chart, seeded):
        with uow_factory() as uow:
            with pytest.raises(UnknownAccount) as exc_info:
                chart.lookup_many(uow, seeded, [AccountCode("1001"), AccountCode("8888")])
        assert exc_info.value.code == "8888"


class TestJournalEngine:
    """Posting rules: positive amounts, Σ Debit = Σ Credit, known accounts."""

    def test_post_balanced_entry(self, uow_factory, engine, seeded):
        with uow_factory() as uow:
            entry = engine.post(
                uow, seeded, "Owner capital",
                _lines(("1001", EntryType.DEBIT, "1000"), ("3001", EntryType.CREDIT, "1000")),
                reference="capital-1",
            )
            uow.commit()

        with uow_factory() as uow:
            stored = uow.journal.find_by_reference(seeded, "capital-1")
        assert len(stored) == 1
        assert stored[0].id == entry.id
        assert stored[0].total_debit == stored[0].total_credit == Decimal("1000")
        assert sorted(l.account_code for l in stored[0].lines) == ["1001", "3001"]

    def test_imbalanced_entry_rejected_without_writes(self, uow_factory, engine, seeded):
        with uow_factory() as uow:
            with pytest.raises(ImbalancedEntry) as exc_info:
                engine.post(
                    uow, seeded, "Broken",
                    _lines(("1001", EntryType.DEBIT, "100"), ("4001", EntryType.CREDIT, "90")),
                )
            uow.commit()

        assert exc_info.value.total_debit == Decimal("100")
        assert exc_info.value.total_credit == Decimal("90")
        with uow_factory() as uow:
            assert uow.journal.list_by_tenant(seeded) == []
            assert uow.journal.totals_by_account(seeded) == {}

    def test_one_cent_tolerance(self, uow_factory, engine, seeded):
        with uow_factory() as uow:
            engine.post(
                uow, seeded, "Rounding",
                _lines(("1001", EntryType.DEBIT, "100.00"), ("4001", EntryType.CREDIT, "99.99")),
            )
            with pytest.raises(ImbalancedEntry):
                engine.post(
                    uow, seeded, "Too far",
                    _lines(("1001", EntryType.DEBIT, "100.00"), ("4001", EntryType.CREDIT, "99.98")),
                )

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_amount_rejected(self, uow_factory, engine, seeded, amount):
        with uow_factory() as uow:
            with pytest.raises(InsufficientData):
                engine.post(
                    uow, seeded, "Zero",
                    _lines(("1001", EntryType.DEBIT, amount), ("4001", EntryType.CREDIT, amount)),
                )

    def test_balance_is_checked_on_rounded_amounts(self, uow_factory, engine, seeded):
        """Ten debits of 0.005 store as 0.01 each: Dr 0.10 against Cr 0.05."""
        lines = _lines(*[("1001", EntryType.DEBIT, "0.005")] * 10, ("4001", EntryType.CREDIT, "0.05"))
        with uow_factory() as uow:
            with pytest.raises(ImbalancedEntry) as exc_info:
                engine.post(uow, seeded, "Dust", lines)
            uow.commit()

        assert exc_info.value.total_debit == Decimal("0.10")
        assert exc_info.value.total_credit == Decimal("0.05")
        with uow_factory() as uow:
            assert uow.journal.list_by_tenant(seeded) == []

    def test_amount_rounding_to_zero_rejected(self, uow_factory, engine, seeded):
        with uow_factory() as uow:
            with pytest.raises(InsufficientData):
                engine.post(
                    uow, seeded, "Dust",
                    _lines(("1001", EntryType.DEBIT, "0.004"), ("4001", EntryType.CREDIT, "0.004")),
                )

    def test_stored_amounts_have_two_places(self, uow_factory, engine, seeded, reports):
        with uow_factory() as uow:
            engine.post(
                uow, seeded, "Half cent",
                _lines(("1001", EntryType.DEBIT, "10.005"), ("4001", EntryType.CREDIT, "10.005")),
                reference="half-cent",
            )
            uow.commit()

        with uow_factory() as uow:
            stored = uow.journal.find_by_reference(seeded, "half-cent")[0]
        assert [l.amount for l in stored.lines] == [Decimal("10.01"), Decimal("10.01")]
        assert reports.trial_balance(seeded).is_balanced is True

    def test_empty_lines_rejected(self, uow_factory, engine, seeded):
        with uow_factory() as uow:
            with pytest.raises(InsufficientData):
                engine.post(uow, seeded, "Nothing", [])

    def test_unknown_account_rejected(self, uow_factory, engine, seeded):
        with uow_factory() as uow:
            with pytest.raises(UnknownAccount):
                engine.post(
                    uow, seeded, "Unknown",
                    _lines(("1001", EntryType.DEBIT, "10"), ("9999", EntryType.CREDIT, "10")),
                )

    def test_accounts_of_another_tenant_are_unknown(self, uow_factory, engine, seeded, other_tenant_id):
        with uow_factory() as uow:
            with pytest.raises(UnknownAccount):
                engine.post(
                    uow, other_tenant_id, "Cross tenant",
                    _lines(("1001", EntryType.DEBIT, "10"), ("3001", EntryType.CREDIT, "10")),
                )

    def test_uncommitted_entry_is_discarded(self, uow_factory, engine, seeded):
        with uow_factory() as uow:
            engine.post(
                uow, seeded, "Never committed",
                _lines(("1001", EntryType.DEBIT, "10"), ("3001", EntryType.CREDIT, "10")),
            )
        with uow_factory() as uow:
            assert uow.journal.list_by_tenant(seeded) == []


class TestAccountLedger:

    def test_running_balance_in_date_order(self, uow_factory, engine, seeded):
        with uow_factory() as uow:
            engine.post(
                uow, seeded, "Second",
                _lines(("1001", EntryType.CREDIT, "30"), ("5999", EntryType.DEBIT, "30")),
                date=datetime(2025, 1, 2),
            )
            engine.post(
                uow, seeded, "First",
                _lines(("1001", EntryType.DEBIT, "100"), ("3001", EntryType.CREDIT, "100")),
                date=datetime(2025, 1, 1),
            )
            uow.commit()

        with uow_factory() as uow:
            cash = uow.accounts.get_by_code(seeded, AccountCode("1001"))
            account, rows = engine.account_ledger(uow, seeded, cash.id)

        assert account.code == "1001"
        assert [r.posting.description for r in rows] == ["First", "Second"]
        assert [r.balance_after for r in rows] == [Decimal("100"), Decimal("70")]

    def test_missing_account(self, uow_factory, engine, seeded):
        with uow_factory() as uow:
            with pytest.raises(EntityNotFound):
                engine.account_ledger(uow, seeded, uuid4())

    def test_aware_naive_and_default_dates_share_one_timeline(self, uow_factory, engine, seeded):
        """09:00+07:00 is 02:00 UTC; a naive 03:00 is taken as UTC."""
        capital = _lines(("1001", EntryType.DEBIT, "10"), ("3001", EntryType.CREDIT, "10"))
        with uow_factory() as uow:
            engine.post(uow, seeded, "Now", capital)
            engine.post(uow, seeded, "Naive", capital, date=datetime(2025, 1, 1, 3, 0))
            engine.post(
                uow, seeded, "Hanoi morning", capital,
                date=datetime(2025, 1, 1, 9, 0, tzinfo=timezone(timedelta(hours=7))),
            )
            uow.commit()

        with uow_factory() as uow:
            cash = uow.accounts.get_by_code(seeded, AccountCode("1001"))
            _, rows = engine.account_ledger(uow, seeded, cash.id)
            entries = engine.list_entries(uow, seeded)

        assert [r.posting.description for r in rows] == ["Hanoi morning", "Naive", "Now"]
        assert rows[0].posting.entry_date == datetime(2025, 1, 1, 2, 0, tzinfo=timezone.utc)
        assert all(r.posting.entry_date.utcoffset() == timedelta(0) for r in rows)
        assert [e.description for e in entries] == ["Now", "Naive", "Hanoi morning"]
