"""Decide which ledgers need their transaction history re-fetched."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from ledger_sync.models import ZERO, Account, RemoteBalance

TOLERANCE = Decimal("0.1")  # absolute, absorbs rounding noise in the closing balances


@dataclass
class ReconciliationResult:
    account: str
    local_signed: Decimal
    remote_signed: Decimal
    cold_start: bool = False
    tolerance: Decimal = TOLERANCE

    @property
    def difference(self) -> Decimal:
        return self.remote_signed - self.local_signed

    @property
    def is_ok(self) -> bool:
        return abs(self.difference) <= self.tolerance

    @property
    def needs_full_resync(self) -> bool:
        return not self.is_ok or self.cold_start


def plan_account(
    name: str,
    cached: Optional[Account],
    remote: Optional[RemoteBalance],
    tolerance: Decimal = TOLERANCE,
) -> ReconciliationResult:
    local_signed = cached.signed_balance if cached else ZERO
    remote_signed = remote.signed if remote else ZERO
    has_history = bool(cached and cached.transactions)
    return ReconciliationResult(
        account=name,
        local_signed=local_signed,
        remote_signed=remote_signed,
        cold_start=abs(remote_signed) > tolerance and not has_history,
        tolerance=tolerance,
    )


def build_plan(
    names: Iterable[str],
    cached_index: Mapping[str, Account],
    balances: Mapping[str, RemoteBalance],
    tolerance: Decimal = TOLERANCE,
) -> List[ReconciliationResult]:
    return [plan_account(name, cached_index.get(name), balances.get(name), tolerance) for name in names]
