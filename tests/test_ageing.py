from datetime import date, timedelta
from decimal import Decimal

import pytest

from ledger_sync.ageing import (
    OPENING_BALANCE_DATE,
    age_in_days,
    bucket_for,
    compute_ageing,
    overdue_items,
    risk_category,
)
from ledger_sync.models import Sign, Transaction

TODAY = date(2025, 6, 30)


def _txn(days_ago: int, amount, sign: Sign, voucher_type: str = "") -> Transaction:
    return Transaction(
        date=TODAY - timedelta(days=days_ago),
        voucher_type=voucher_type or ("Sales" if sign is Sign.DEBIT else "Receipt"),
        voucher_number="",
        counter_account="",
        amount=Decimal(str(amount)),
        sign=sign,
    )


def test_opening_debit_is_knocked_off_first():
    transactions = [
        _txn(40, 600, Sign.DEBIT),
        _txn(10, 1000, Sign.CREDIT),
    ]
    buckets = compute_ageing(transactions, "-1000", today=TODAY)
    assert buckets == {
        "0-30": Decimal("0"),
        "30-60": Decimal("600"),
        "60-90": Decimal("0"),
        "90+": Decimal("0"),
    }


@pytest.mark.parametrize("opening", [None, "", "0", "500", "1,250.00"])
def test_no_transactions_and_non_negative_opening_gives_zero_buckets(opening):
    buckets = compute_ageing([], opening, today=TODAY)
    assert list(buckets) == ["0-30", "30-60", "60-90", "90+"]
    assert all(amount == 0 for amount in buckets.values())


def test_credits_covering_debits_leave_nothing_overdue():
    transactions = [
        _txn(120, 300, Sign.DEBIT),
        _txn(45, 200, Sign.DEBIT),
        _txn(5, 500, Sign.CREDIT),
    ]
    assert overdue_items(transactions, None) == []
    assert sum(compute_ageing(transactions, None, today=TODAY).values()) == 0


def test_partial_knock_off_leaves_shortfall_on_oldest_unpaid_debit():
    transactions = [
        _txn(10, 300, Sign.DEBIT),
        _txn(100, 100, Sign.DEBIT),
        _txn(50, 200, Sign.DEBIT),
        _txn(3, 250, Sign.CREDIT),
    ]
    items = overdue_items(transactions, None)
    assert [(item.amount, item.original_amount) for item in items] == [
        (Decimal("50"), Decimal("200")),
        (Decimal("300"), Decimal("300")),
    ]
    buckets = compute_ageing(transactions, None, today=TODAY)
    assert buckets["0-30"] == Decimal("300")
    assert buckets["30-60"] == Decimal("50")
    assert buckets["90+"] == Decimal("0")
    total_debits = Decimal("600")
    assert sum(buckets.values()) == sum(item.amount for item in items) <= total_debits


def test_positive_opening_balance_counts_as_credit():
    transactions = [_txn(70, 400, Sign.DEBIT)]
    buckets = compute_ageing(transactions, "150", today=TODAY)
    assert buckets["60-90"] == Decimal("250")


def test_negative_opening_balance_is_dated_at_anchor():
    items = overdue_items([], "-75.50")
    assert len(items) == 1
    assert items[0].date == OPENING_BALANCE_DATE
    assert items[0].amount == Decimal("75.50")
    assert compute_ageing([], "-75.50", today=TODAY)["90+"] == Decimal("75.50")


def test_ageing_is_repeatable_for_the_same_day():
    transactions = [_txn(95, 10, Sign.DEBIT), _txn(31, 20, Sign.DEBIT), _txn(1, 5, Sign.CREDIT)]
    first = compute_ageing(transactions, "-3", today=TODAY)
    second = compute_ageing(transactions, "-3", today=TODAY)
    assert first == second


@pytest.mark.parametrize(
    "days, label",
    [(0, "0-30"), (30, "0-30"), (31, "30-60"), (60, "30-60"), (61, "60-90"), (90, "60-90"), (91, "90+")],
)
def test_bucket_bounds_are_inclusive(days, label):
    assert bucket_for(days) == label


@pytest.mark.parametrize(
    "days_ago, label",
    [(0, "0-30"), (1, "0-30"), (29, "0-30"), (30, "30-60"), (59, "30-60"), (60, "60-90"), (89, "60-90"), (90, "90+")],
)
def test_debit_raised_on_a_boundary_day_moves_to_the_older_band(days_ago, label):
    buckets = compute_ageing([_txn(days_ago, 100, Sign.DEBIT)], None, today=TODAY)
    assert buckets[label] == Decimal("100")
    assert sum(buckets.values()) == Decimal("100")


def test_age_counts_the_day_the_item_was_raised():
    assert age_in_days(TODAY, TODAY) == 0
    assert age_in_days(TODAY - timedelta(days=1), TODAY) == 2
    assert age_in_days(TODAY - timedelta(days=30), TODAY) == 31
    assert age_in_days(TODAY + timedelta(days=3), TODAY) == 3


def test_risk_category_picks_oldest_non_empty_band():
    buckets = compute_ageing([_txn(100, 5, Sign.DEBIT), _txn(2, 5, Sign.DEBIT)], None, today=TODAY)
    assert risk_category(buckets) == "90+"
    assert risk_category(compute_ageing([], None, today=TODAY)) == "0-30"
    assert risk_category({"0-30": Decimal("0"), "30-60": Decimal("1")}) == "30-60"
