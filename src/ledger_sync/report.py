"""Summaries of a snapshot for logging and the command line."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List

from ledger_sync.models import NO_GROUP, ZERO, Account, Sign, Snapshot
from ledger_sync.sync import SyncReport


@dataclass(frozen=True)
class SnapshotTotals:
    receivable: Decimal
    payable: Decimal
    receivable_count: int
    payable_count: int


def _net(accounts: List[Account], positive: Sign) -> Decimal:
    return sum((account.amount if account.sign is positive else -account.amount for account in accounts), ZERO)


def snapshot_totals(snapshot: Snapshot) -> SnapshotTotals:
    """Net receivables (Dr positive) and net payables (Cr positive)."""

    receivables = list(snapshot.receivables())
    return SnapshotTotals(
        receivable=_net(receivables, Sign.DEBIT),
        payable=_net(snapshot.payables, Sign.CREDIT),
        receivable_count=len(receivables),
        payable_count=len(snapshot.payables),
    )


def search_groups(snapshot: Snapshot, term: str) -> Dict[str, List[Account]]:
    groups: Dict[str, List[Account]] = dict(snapshot.groups)
    groups[NO_GROUP] = list(snapshot.ungrouped)
    if not term:
        return groups
    needle = term.lower()
    matches: Dict[str, List[Account]] = {}
    for group, accounts in groups.items():
        found = [account for account in accounts if needle in account.name.lower()]
        if found:
            matches[group] = found
    return matches


def format_sync_summary(report: SyncReport) -> List[str]:
    """Return human-friendly descriptions of what a sync cycle did."""

    summary: List[str] = []
    if report.fetched:
        summary.append(f"re-fetched {len(report.fetched)} ledger(s)")
    if report.reused:
        summary.append(f"kept {len(report.reused)} unchanged ledger(s)")
    if report.failed:
        summary.append(f"{len(report.failed)} ledger fetch(es) failed")
    if report.excluded:
        summary.append(f"skipped {len(report.excluded)} unclassified ledger(s)")
    if not summary:
        summary.append("no ledgers to sync")
    return summary
