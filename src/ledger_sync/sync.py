"""One sync cycle: classify ledgers, reconcile balances, refresh stale histories."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Collection, Dict, List, Optional, Protocol

from ledger_sync.hierarchy import DEFAULT_MAX_DEPTH, GroupHierarchy
from ledger_sync.models import ZERO, Account, LedgerRecord, RemoteBalance, Sign, Snapshot, Transaction
from ledger_sync.reconciliation import TOLERANCE, ReconciliationResult, plan_account
from ledger_sync.tally_client import TallyAPIError, TallyConnectionError

LOGGER = logging.getLogger(__name__)

RECEIVABLES_ROOT = "Sundry Debtors"
PAYABLES_ROOT = "Sundry Creditors"
BATCH_SIZE = 20


class LedgerSource(Protocol):
    """What the orchestrator needs from the accounting system."""

    def check_connection(self) -> bool:
        ...

    def list_accounts(self, kind: str) -> List[LedgerRecord]:
        ...

    def fetch_balances(self) -> Dict[str, RemoteBalance]:
        ...

    def fetch_transactions(
        self, ledger_name: str, from_date: Optional[str] = None, to_date: Optional[str] = None
    ) -> List[Transaction]:
        ...


@dataclass
class SyncReport:
    snapshot: Snapshot
    plan: List[ReconciliationResult] = field(default_factory=list)
    fetched: List[str] = field(default_factory=list)
    reused: List[str] = field(default_factory=list)
    excluded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def drifted(self) -> List[ReconciliationResult]:
        return [result for result in self.plan if not result.is_ok]


class SyncOrchestrator:
    """Builds a fresh :class:`Snapshot` from the accounting system.

    The previous snapshot is only read; persisting the returned snapshot is
    left to the caller so a failed cycle never replaces a good one.
    """

    def __init__(
        self,
        source: LedgerSource,
        *,
        known_groups: Collection[str],
        receivables_root: str = RECEIVABLES_ROOT,
        payables_root: str = PAYABLES_ROOT,
        batch_size: int = BATCH_SIZE,
        max_depth: int = DEFAULT_MAX_DEPTH,
        tolerance: Decimal = TOLERANCE,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._source = source
        self._known_groups = list(dict.fromkeys(known_groups))
        self._receivables_root = receivables_root
        self._payables_root = payables_root
        self._batch_size = batch_size
        self._max_depth = max_depth
        self._tolerance = tolerance
        self._from_date = from_date
        self._to_date = to_date

    def run(self, previous: Snapshot, *, now: Optional[datetime] = None, force: bool = False) -> SyncReport:
        """Run a full cycle. ``force`` re-fetches every ledger's history."""

        if not self._source.check_connection():
            raise TallyConnectionError("Accounting system is not reachable")

        groups = self._source.list_accounts("Groups")
        ledgers = self._source.list_accounts("Ledgers")
        hierarchy = GroupHierarchy.from_records(groups, ledgers, max_depth=self._max_depth)
        balances = self._source.fetch_balances()
        cached_index = previous.index()

        snapshot = Snapshot(
            updated_at=now or datetime.now(timezone.utc),
            groups={name: [] for name in self._known_groups},
        )
        report = SyncReport(snapshot=snapshot)
        known = set(self._known_groups)
        to_fetch: List[Account] = []

        for record in ledgers:
            classification = hierarchy.classify(
                record.parent, known, roots=(self._receivables_root, self._payables_root)
            )
            is_receivable = classification.is_under_root(self._receivables_root)
            if not is_receivable and not classification.is_under_root(self._payables_root):
                report.excluded.append(record.name)
                continue

            cached = cached_index.get(record.name)
            result = plan_account(record.name, cached, balances.get(record.name), self._tolerance)
            report.plan.append(result)

            if force or result.needs_full_resync or cached is None:
                account = self._fresh_account(record, balances.get(record.name), is_receivable)
                if force or result.needs_full_resync:
                    to_fetch.append(account)
            else:
                account = cached
                report.reused.append(record.name)

            if not is_receivable:
                snapshot.payables.append(account)
            elif classification.bucket in snapshot.groups:
                snapshot.groups[classification.bucket].append(account)
            else:
                snapshot.ungrouped.append(account)

        if report.excluded:
            LOGGER.info("Skipped %d ledgers outside %s/%s", len(report.excluded), self._receivables_root, self._payables_root)
        LOGGER.info(
            "Reconciled %d ledgers: %d need a full re-fetch, %d unchanged",
            len(report.plan),
            len(to_fetch),
            len(report.reused),
        )

        report.failed = self._fetch_histories(to_fetch)
        report.fetched = [account.name for account in to_fetch]
        return report

    @staticmethod
    def _fresh_account(record: LedgerRecord, remote: Optional[RemoteBalance], is_receivable: bool) -> Account:
        default_sign = Sign.DEBIT if is_receivable else Sign.CREDIT
        return Account(
            name=record.name,
            amount=remote.amount if remote else ZERO,
            sign=remote.sign if remote else default_sign,
            opening_balance=record.opening_balance,
            parent=record.parent,
        )

    def _fetch_histories(self, accounts: List[Account]) -> List[str]:
        """Fetch vouchers in batches of ``batch_size``, one batch at a time."""

        failed: List[str] = []
        if not accounts:
            return failed
        total = len(accounts)
        with ThreadPoolExecutor(max_workers=self._batch_size) as executor:
            for start in range(0, total, self._batch_size):
                batch = accounts[start : start + self._batch_size]
                futures = {
                    executor.submit(
                        self._source.fetch_transactions, account.name, self._from_date, self._to_date
                    ): account
                    for account in batch
                }
                for future in as_completed(futures):
                    account = futures[future]
                    try:
                        account.transactions = list(future.result())
                    except TallyAPIError as exc:
                        LOGGER.warning("Fetching vouchers for %s failed; keeping it empty: %s", account.name, exc)
                        account.transactions = []
                        failed.append(account.name)
                    except Exception:
                        LOGGER.exception("Fetching history for %s failed; keeping it empty", account.name)
                        account.transactions = []
                        failed.append(account.name)
                LOGGER.info("Fetched histories %d/%d", min(start + self._batch_size, total), total)
        return failed
