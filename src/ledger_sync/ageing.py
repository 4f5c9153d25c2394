"""FIFO ageing of outstanding ledger balances.

Credits (receipts, or a credit opening balance) are knocked off against the
oldest debits first. Whatever debit amount is left uncovered is overdue and is
bucketed by how many days old the debit is.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from ledger_sync.models import ZERO, Sign, Transaction, parse_amount

OPENING_BALANCE_DATE = date(2020, 1, 1)
OPENING_BALANCE_LABEL = "Opening Balance"

# (label, inclusive upper bound in days); None is unbounded.
BUCKETS = (
    ("0-30", 30),
    ("30-60", 60),
    ("60-90", 90),
    ("90+", None),
)


@dataclass(frozen=True)
class OverdueItem:
    date: date
    amount: Decimal
    original_amount: Decimal
    voucher_type: str = ""


@dataclass(frozen=True)
class _Debit:
    date: date
    amount: Decimal
    voucher_type: str


def empty_buckets() -> "OrderedDict[str, Decimal]":
    return OrderedDict((label, ZERO) for label, _ in BUCKETS)


def overdue_items(
    transactions: Iterable[Transaction],
    opening_balance: Optional[str],
) -> List[OverdueItem]:
    """Return the debits left unpaid after FIFO knock-off, oldest first."""

    debits: List[_Debit] = []
    total_credits = ZERO

    opening = parse_amount(opening_balance)
    if opening < 0:
        debits.append(_Debit(OPENING_BALANCE_DATE, -opening, OPENING_BALANCE_LABEL))
    elif opening > 0:
        total_credits += opening

    # sorted() is stable, so same-day vouchers keep their input order.
    for txn in sorted(transactions, key=lambda t: t.date):
        if txn.sign is Sign.DEBIT:
            debits.append(_Debit(txn.date, txn.amount, txn.voucher_type))
        else:
            total_credits += txn.amount

    overdue: List[OverdueItem] = []
    remaining_credit = total_credits
    for debit in debits:
        if remaining_credit >= debit.amount:
            remaining_credit -= debit.amount
            continue
        overdue.append(
            OverdueItem(
                date=debit.date,
                amount=debit.amount - remaining_credit,
                original_amount=debit.amount,
                voucher_type=debit.voucher_type,
            )
        )
        remaining_credit = ZERO
    return overdue


def age_in_days(item_date: date, today: date) -> int:
    """Days an item has been open, counting the day it was raised.

    An item dated yesterday is 2 days old; one dated today is 0.
    """

    days = (today - item_date).days
    if days > 0:
        return days + 1
    return abs(days)


def bucket_for(days: int) -> str:
    for label, upper in BUCKETS:
        if upper is None or days <= upper:
            return label
    raise AssertionError("unreachable: last bucket is unbounded")


def compute_ageing(
    transactions: Iterable[Transaction],
    opening_balance: Optional[str],
    today: Optional[date] = None,
) -> "OrderedDict[str, Decimal]":
    """Bucket the overdue amounts of a ledger into 0-30/30-60/60-90/90+ days."""

    today = today or date.today()
    buckets = empty_buckets()
    for item in overdue_items(transactions, opening_balance):
        buckets[bucket_for(age_in_days(item.date, today))] += item.amount
    return buckets


def risk_category(buckets: Mapping[str, Decimal]) -> str:
    """Return the oldest band holding a non-zero amount."""

    for label, _ in reversed(BUCKETS):
        if buckets.get(label, ZERO) > 0:
            return label
    return BUCKETS[0][0]
