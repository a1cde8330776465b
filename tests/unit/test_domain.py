"""
Unit tests - Domain layer: balance checks, money, discounts, running balances, counts.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from stockledger.core.config import PostingAccounts
from stockledger.domain.entities import (
    Account,
    InventoryCount,
    InventoryCountLine,
    JournalEntry,
    LedgerLine,
    Sale,
    SaleLine,
)
from stockledger.domain.exceptions import InvalidState, LedgerError, SaleProcessingFailed, TransactionFailure
from stockledger.domain.services import InventoryService, LedgerProjector, PostedLine
from stockledger.domain.value_objects import (
    AccountCode,
    AccountType,
    CountStatus,
    DiscountType,
    EntryType,
    MovementType,
    PaymentType,
    SaleStatus,
    as_utc,
    calculate_discount,
    calculate_proportional_refund,
    money,
    utc_now,
)


def _line(entry_type: EntryType, amount: str) -> LedgerLine:
    return LedgerLine(account_id=uuid4(), entry_type=entry_type, amount=Decimal(amount))


def _posting(entry_type: EntryType, amount: str, when: datetime, entry_id=None) -> PostedLine:
    return PostedLine(
        line=_line(entry_type, amount),
        entry_id=entry_id or uuid4(),
        entry_date=when,
        description="test",
    )


class TestBalanceCheck:
    """Double-entry rule: Σ Debit = Σ Credit."""

    def test_balanced_entry(self):
        entry = JournalEntry(
            tenant_id="t",
            description="Sale",
            date=datetime(2025, 1, 1),
            lines=[_line(EntryType.DEBIT, "100"), _line(EntryType.CREDIT, "100")],
        )
        assert entry.total_debit == Decimal("100")
        assert entry.total_credit == Decimal("100")
        assert entry.is_balanced() is True

    def test_unbalanced_entry(self):
        entry = JournalEntry(
            tenant_id="t",
            description="Sale",
            date=datetime(2025, 1, 1),
            lines=[_line(EntryType.DEBIT, "100"), _line(EntryType.CREDIT, "90")],
        )
        assert entry.is_balanced() is False

    def test_one_cent_gap_is_tolerated(self):
        entry = JournalEntry(
            tenant_id="t",
            description="Rounding",
            date=datetime(2025, 1, 1),
            lines=[_line(EntryType.DEBIT, "100.00"), _line(EntryType.CREDIT, "99.99")],
        )
        assert entry.is_balanced() is True

    def test_entry_without_lines_is_not_balanced(self):
        entry = JournalEntry(tenant_id="t", description="Empty", date=datetime(2025, 1, 1))
        assert entry.is_balanced() is False


class TestMoney:

    def test_rounds_half_up_to_cents(self):
        assert money("10.005") == Decimal("10.01")
        assert money(Decimal("2.344")) == Decimal("2.34")

    def test_accepts_floats_without_binary_noise(self):
        assert money(0.1) == Decimal("0.10")

    def test_none_is_zero(self):
        assert money(None) == Decimal("0.00")


class TestTimestamps:

    def test_now_is_aware_utc(self):
        assert utc_now().utcoffset() == timedelta(0)

    def test_naive_is_taken_as_utc(self):
        assert as_utc(datetime(2025, 1, 1, 3, 0)) == datetime(2025, 1, 1, 3, 0, tzinfo=timezone.utc)

    def test_offset_is_converted(self):
        local = datetime(2025, 1, 1, 9, 0, tzinfo=timezone(timedelta(hours=7)))
        converted = as_utc(local)
        assert converted == local
        assert converted.tzinfo == timezone.utc
        assert converted.hour == 2


class TestDiscount:

    def test_percentage(self):
        assert calculate_discount(Decimal("200"), DiscountType.PERCENTAGE, Decimal("10")) == Decimal("20.00")

    def test_percentage_capped_at_100(self):
        assert calculate_discount(Decimal("80"), DiscountType.PERCENTAGE, Decimal("150")) == Decimal("80.00")

    def test_fixed_capped_at_subtotal(self):
        assert calculate_discount(Decimal("30"), DiscountType.FIXED, Decimal("45")) == Decimal("30.00")
        assert calculate_discount(Decimal("30"), DiscountType.FIXED, Decimal("5")) == Decimal("5.00")

    @pytest.mark.parametrize("discount_type,value", [
        (None, Decimal("10")),
        (DiscountType.FIXED, None),
        (DiscountType.PERCENTAGE, Decimal("0")),
    ])
    def test_no_discount(self, discount_type, value):
        assert calculate_discount(Decimal("100"), discount_type, value) == Decimal("0")

    def test_proportional_refund(self):
        assert calculate_proportional_refund(Decimal("50"), Decimal("100"), Decimal("10")) == (
            Decimal("5.00"), Decimal("45.00")
        )

    def test_refund_share_rounds_half_up(self):
        assert calculate_proportional_refund(Decimal("10"), Decimal("30"), Decimal("1")) == (
            Decimal("0.33"), Decimal("9.67")
        )

    def test_refund_without_subtotal(self):
        assert calculate_proportional_refund(Decimal("10"), Decimal("0"), Decimal("0")) == (
            Decimal("0.00"), Decimal("0.00")
        )


class TestAccountType:

    @pytest.mark.parametrize("account_type,expected", [
        (AccountType.ASSET, True),
        (AccountType.EXPENSE, True),
        (AccountType.LIABILITY, False),
        (AccountType.EQUITY, False),
        (AccountType.REVENUE, False),
    ])
    def test_debit_normal(self, account_type, expected):
        assert account_type.is_debit_normal is expected


class TestLedgerProjector:
    """Running balance per account-type sign convention."""

    def test_signed_amount(self):
        assert LedgerProjector.signed_amount(AccountType.ASSET, EntryType.DEBIT, Decimal("5")) == Decimal("5")
        assert LedgerProjector.signed_amount(AccountType.ASSET, EntryType.CREDIT, Decimal("5")) == Decimal("-5")
        assert LedgerProjector.signed_amount(AccountType.REVENUE, EntryType.CREDIT, Decimal("5")) == Decimal("5")
        assert LedgerProjector.signed_amount(AccountType.LIABILITY, EntryType.DEBIT, Decimal("5")) == Decimal("-5")

    def test_asset_running_balance(self):
        account = Account(tenant_id="t", code=AccountCode("1001"), name="Cash", account_type=AccountType.ASSET)
        postings = [
            _posting(EntryType.DEBIT, "100", datetime(2025, 1, 1)),
            _posting(EntryType.CREDIT, "30", datetime(2025, 1, 2)),
            _posting(EntryType.DEBIT, "5.50", datetime(2025, 1, 3)),
        ]
        rows = LedgerProjector().running_balance(account, postings)
        assert [r.balance_after for r in rows] == [Decimal("100"), Decimal("70"), Decimal("75.50")]

    def test_revenue_running_balance_grows_with_credits(self):
        account = Account(tenant_id="t", code=AccountCode("4001"), name="Sales", account_type=AccountType.REVENUE)
        postings = [
            _posting(EntryType.CREDIT, "100", datetime(2025, 1, 1)),
            _posting(EntryType.DEBIT, "40", datetime(2025, 1, 2)),
        ]
        rows = LedgerProjector().running_balance(account, postings)
        assert [r.balance_after for r in rows] == [Decimal("100"), Decimal("60")]

    def test_order_is_by_date_then_entry_id(self):
        same_day = datetime(2025, 3, 1)
        late = _posting(EntryType.DEBIT, "1", datetime(2025, 3, 2))
        b = _posting(EntryType.DEBIT, "2", same_day)
        a = _posting(EntryType.DEBIT, "3", same_day)
        ordered = LedgerProjector.order([late, b, a])
        assert ordered[-1] is late
        assert [p.entry_id for p in ordered[:2]] == sorted([a.entry_id, b.entry_id], key=str)

    def test_deterministic_regardless_of_input_order(self):
        account = Account(tenant_id="t", code=AccountCode("1300"), name="Inventory", account_type=AccountType.ASSET)
        postings = [
            _posting(EntryType.DEBIT, "50", datetime(2025, 1, 1)),
            _posting(EntryType.CREDIT, "20", datetime(2025, 1, 1)),
            _posting(EntryType.DEBIT, "7", datetime(2025, 1, 2)),
        ]
        projector = LedgerProjector()
        forward = projector.running_balance(account, projector.order(postings))
        backward = projector.running_balance(account, projector.order(reversed(postings)))
        assert [r.balance_after for r in forward] == [r.balance_after for r in backward]
        assert forward[-1].balance_after == Decimal("37")


class TestInventoryCountEntity:

    def test_record_count_sets_difference(self):
        line = InventoryCountLine(count_id=uuid4(), product_id=uuid4(), system_qty=50, difference=-50)
        updated = line.record_count(45)
        assert updated.counted_qty == 45
        assert updated.difference == -5
        assert line.counted_qty == 0

    def test_complete_moves_draft_to_completed(self):
        count = InventoryCount(tenant_id="t", warehouse_id=uuid4())
        completed = count.complete()
        assert completed.status == CountStatus.COMPLETED
        assert completed.completed_at is not None
        assert count.status == CountStatus.DRAFT

    def test_completed_count_cannot_complete_again(self):
        count = InventoryCount(tenant_id="t", warehouse_id=uuid4()).complete()
        with pytest.raises(InvalidState):
            count.complete()


class TestSaleEntity:

    def _sale(self, *lines) -> Sale:
        return Sale(
            tenant_id="t", number=1, warehouse_id=uuid4(), subtotal=Decimal("0"),
            discount_amount=Decimal("0"), total=Decimal("0"), invoice_token="INV-2025-0001",
            lines=list(lines),
        )

    def test_returnable_quantities_net_of_returns(self):
        product = uuid4()
        sale = self._sale(
            SaleLine(product, 2, Decimal("50"), Decimal("30")),
            SaleLine(product, 1, Decimal("20"), Decimal("30")),
        )
        assert sale.returnable_quantities({product: 1}) == {product: 2}
        assert sale.unit_amounts(product) == (Decimal("40"), Decimal("30"))

    def test_unknown_product_has_no_amounts(self):
        assert self._sale().unit_amounts(uuid4()) == (Decimal("0"), Decimal("0"))

    def test_refunded_sale_is_not_returnable(self):
        sale = self._sale()
        sale.ensure_returnable()
        sale.status = SaleStatus.REFUNDED
        with pytest.raises(InvalidState):
            sale.ensure_returnable()


class TestInventoryService:

    def test_shortage_goes_to_shrinkage(self):
        amount, code = InventoryService().reconcile_count_line(
            -5, Decimal("30"), AccountCode("5400"), AccountCode("4900")
        )
        assert amount == Decimal("150.00")
        assert code == "5400"

    def test_surplus_goes_to_overage(self):
        amount, code = InventoryService().reconcile_count_line(
            3, Decimal("2.50"), AccountCode("5400"), AccountCode("4900")
        )
        assert amount == Decimal("7.50")
        assert code == "4900"

    def test_no_difference(self):
        amount, code = InventoryService().reconcile_count_line(
            0, Decimal("9"), AccountCode("5400"), AccountCode("4900")
        )
        assert amount == 0
        assert code is None


class TestPostingAccounts:

    def test_expense_categories(self):
        accounts = PostingAccounts()
        assert accounts.expense_account("Rent") == "5100"
        assert accounts.expense_account("Utilities") == "5200"
        assert accounts.expense_account("Salaries") == "5300"
        assert accounts.expense_account("Travel") == "5999"

    def test_treasury_contra(self):
        accounts = PostingAccounts()
        assert accounts.treasury_contra(MovementType.DEPOSIT).code == "3101"
        assert accounts.treasury_contra(MovementType.WITHDRAW).code == "5101"

    def test_sale_debit_account_by_payment_type(self):
        accounts = PostingAccounts()
        assert accounts.sale_debit_account(PaymentType.CASH).code == "1101"
        assert accounts.sale_debit_account(PaymentType.BANK_TRANSFER).code == "1102"
        assert accounts.sale_debit_account(PaymentType.DEFERRED) == "1200"
        assert accounts.sale_debit_account(None) == "1200"

    def test_custom_table_is_injectable(self):
        accounts = PostingAccounts(expense_categories={"Rent": AccountCode("6100")})
        assert accounts.expense_account("Rent") == "6100"
        assert accounts.expense_account("Utilities") == "5999"


class TestErrorTaxonomy:

    def test_sale_failure_is_transaction_failure(self):
        error = SaleProcessingFailed()
        assert isinstance(error, TransactionFailure)
        assert isinstance(error, LedgerError)
        assert not isinstance(error, ValueError)
        assert str(error) == "Failed to process sale"
