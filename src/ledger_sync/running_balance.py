"""Chronological running balance of a ledger, as shown in a ledger statement."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from ledger_sync.models import Sign, Transaction, parse_amount, signed_amount, split_signed


@dataclass(frozen=True)
class LedgerLine:
    transaction: Transaction
    balance: Decimal
    sign: Sign
    signed_balance: Decimal


def compute_running_balances(
    transactions: Iterable[Transaction],
    opening_balance: Optional[str],
    newest_first: bool = False,
) -> List[LedgerLine]:
    """Apply each transaction in date order to the opening balance.

    Debit vouchers move the balance towards Dr and credit vouchers towards Cr,
    using the same Dr-negative signed convention as the rest of the package.
    """

    balance = parse_amount(opening_balance)
    lines: List[LedgerLine] = []
    for txn in sorted(transactions, key=lambda t: t.date):
        balance += signed_amount(txn.amount, txn.sign)
        magnitude, sign = split_signed(balance)
        lines.append(LedgerLine(transaction=txn, balance=magnitude, sign=sign, signed_balance=balance))
    if newest_first:
        lines.reverse()
    return lines
