"""Ledger data model shared by the sync, ageing and reporting code.

Signed amounts follow the accounting system's raw convention throughout the
package: a Debit balance is negative and a Credit balance is positive. An
opening balance string of ``"-1000"`` is therefore 1000 Dr.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from ledger_sync.dates import parse_date

LOGGER = logging.getLogger(__name__)

NO_GROUP = "No-Group"
ZERO = Decimal("0")


class Sign(str, Enum):
    DEBIT = "Dr"
    CREDIT = "Cr"

    @classmethod
    def parse(cls, raw: object, default: "Sign | None" = None) -> "Sign":
        text = str(raw or "").strip().lower()
        if text in ("dr", "debit"):
            return cls.DEBIT
        if text in ("cr", "credit"):
            return cls.CREDIT
        if default is None:
            raise ValueError(f"Unknown balance sign: {raw!r}")
        return default


def parse_amount(raw: object) -> Decimal:
    """Parse a possibly comma-grouped amount, returning zero when malformed."""

    if raw is None:
        return ZERO
    if isinstance(raw, Decimal):
        return raw
    if isinstance(raw, (int, float)):
        return Decimal(str(raw))
    text = str(raw).replace(",", "").strip()
    if not text:
        return ZERO
    try:
        value = Decimal(text)
    except InvalidOperation:
        LOGGER.warning("Malformed amount %r, treating as zero", raw)
        return ZERO
    if not value.is_finite():
        LOGGER.warning("Non-finite amount %r, treating as zero", raw)
        return ZERO
    return value


def signed_amount(amount: Decimal, sign: Sign) -> Decimal:
    """Return ``amount`` signed by the Dr-negative convention."""

    magnitude = abs(amount)
    return -magnitude if sign is Sign.DEBIT else magnitude


def split_signed(value: Decimal) -> Tuple[Decimal, Sign]:
    """Inverse of :func:`signed_amount`; zero is reported as Dr."""

    return abs(value), (Sign.CREDIT if value > 0 else Sign.DEBIT)


@dataclass(frozen=True)
class Transaction:
    """A single voucher line posted against a ledger."""

    date: date
    voucher_type: str
    voucher_number: str
    counter_account: str
    amount: Decimal
    sign: Sign

    def to_dict(self) -> Dict[str, str]:
        return {
            "date": self.date.isoformat(),
            "type": self.voucher_type,
            "no": self.voucher_number,
            "account": self.counter_account,
            "amount": str(self.amount),
            "sign": self.sign.value,
        }

    @classmethod
    def from_dict(cls, payload: Dict) -> "Transaction":
        return cls(
            date=parse_date(payload.get("date")),
            voucher_type=payload.get("type", "") or "",
            voucher_number=payload.get("no", "") or "",
            counter_account=payload.get("account", "") or "",
            amount=abs(parse_amount(payload.get("amount"))),
            sign=Sign.parse(payload.get("sign"), default=Sign.DEBIT),
        )


@dataclass
class Account:
    """A receivable or payable ledger with its closing balance and history."""

    name: str
    amount: Decimal = ZERO
    sign: Sign = Sign.DEBIT
    transactions: List[Transaction] = field(default_factory=list)
    opening_balance: str = ""
    parent: Optional[str] = None

    def __post_init__(self) -> None:
        self.amount = abs(self.amount)

    @property
    def signed_balance(self) -> Decimal:
        return signed_amount(self.amount, self.sign)

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "amount": str(self.amount),
            "type": self.sign.value,
            "transactions": [txn.to_dict() for txn in self.transactions],
            "openingBalance": self.opening_balance,
            "parent": self.parent,
        }

    @classmethod
    def from_dict(cls, payload: Dict) -> "Account":
        return cls(
            name=payload["name"],
            amount=abs(parse_amount(payload.get("amount"))),
            sign=Sign.parse(payload.get("type"), default=Sign.DEBIT),
            transactions=[Transaction.from_dict(item) for item in payload.get("transactions") or []],
            opening_balance=payload.get("openingBalance") or "",
            parent=payload.get("parent"),
        )


@dataclass(frozen=True)
class LedgerRecord:
    """A group or ledger row from the accounting system's list of accounts."""

    name: str
    parent: Optional[str]
    opening_balance: str = ""


@dataclass(frozen=True)
class RemoteBalance:
    amount: Decimal
    sign: Sign

    @property
    def signed(self) -> Decimal:
        return signed_amount(self.amount, self.sign)


@dataclass
class Snapshot:
    """The persisted result of a sync cycle.

    ``groups`` holds receivable accounts by organisational group, ``ungrouped``
    the receivables that sit under no known group and ``payables`` every
    account under the payables root.
    """

    updated_at: Optional[datetime] = None
    groups: Dict[str, List[Account]] = field(default_factory=dict)
    ungrouped: List[Account] = field(default_factory=list)
    payables: List[Account] = field(default_factory=list)

    def receivables(self) -> Iterator[Account]:
        for accounts in self.groups.values():
            yield from accounts
        yield from self.ungrouped

    def accounts(self) -> Iterator[Account]:
        yield from self.receivables()
        yield from self.payables

    def index(self) -> Dict[str, Account]:
        return {account.name: account for account in self.accounts()}

    def to_dict(self) -> Dict:
        debtors = {name: [account.to_dict() for account in accounts] for name, accounts in self.groups.items()}
        debtors[NO_GROUP] = [account.to_dict() for account in self.ungrouped]
        return {
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "debtors": debtors,
            "creditors": [account.to_dict() for account in self.payables],
        }

    @classmethod
    def from_dict(cls, payload: Dict) -> "Snapshot":
        updated_raw = payload.get("updatedAt")
        try:
            updated_at = datetime.fromisoformat(updated_raw) if updated_raw else None
        except (TypeError, ValueError):
            updated_at = None
        groups: Dict[str, List[Account]] = {}
        ungrouped: List[Account] = []
        for name, accounts in (payload.get("debtors") or {}).items():
            parsed = [Account.from_dict(item) for item in accounts or []]
            if name == NO_GROUP:
                ungrouped = parsed
            else:
                groups[name] = parsed
        return cls(
            updated_at=updated_at,
            groups=groups,
            ungrouped=ungrouped,
            payables=[Account.from_dict(item) for item in payload.get("creditors") or []],
        )
