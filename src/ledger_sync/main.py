"""Entrypoint for syncing Tally receivable/payable ledgers into a local snapshot."""
from __future__ import annotations

import argparse
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, Sequence

from ledger_sync.ageing import compute_ageing, risk_category
from ledger_sync.git_publisher import GitPublisher
from ledger_sync.models import Snapshot
from ledger_sync.report import format_sync_summary, search_groups, snapshot_totals
from ledger_sync.running_balance import compute_running_balances
from ledger_sync.sheets_client import SheetsClient, build_report_rows
from ledger_sync.state_manager import SnapshotStore
from ledger_sync.sync import BATCH_SIZE, PAYABLES_ROOT, RECEIVABLES_ROOT, SyncOrchestrator
from ledger_sync.tally_client import TallyAPIError, TallyClient

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
LOGGER = logging.getLogger(__name__)

# Get project root (2 levels up from this file: src/ledger_sync/main.py -> root)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def load_config(path: str | Path) -> Dict:
    with open(path, "r", encoding="utf-8") as config_file:
        return json.load(config_file)


def _config_path() -> Path:
    config_env = os.environ.get("SYNC_CONFIG")
    return Path(config_env) if config_env else PROJECT_ROOT / "config" / "config.json"


def _snapshot_path(config: Dict) -> Path:
    return Path(config.get("snapshot_file", PROJECT_ROOT / "data" / "credit-data.json"))


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the sync and log the plan without writing or publishing the snapshot",
    )
    parser.add_argument(
        "--full-resync",
        action="store_true",
        help="Ignore the saved snapshot and re-fetch every ledger's vouchers",
    )
    parser.add_argument(
        "--no-publish",
        action="store_true",
        help="Skip the git push and Google Sheets report after saving",
    )
    parser.add_argument(
        "--report",
        action="store_true",
        help="Summarise the saved snapshot and exit",
    )
    parser.add_argument(
        "--statement",
        type=str,
        metavar="LEDGER",
        help="Print the running-balance statement of one ledger from the saved snapshot",
    )
    parser.add_argument(
        "--search",
        type=str,
        metavar="TERM",
        help="List saved receivable ledgers whose name contains TERM, by group",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    config = load_config(_config_path())
    if args.report:
        report_snapshot(config)
        return 0
    if args.statement:
        return print_statement(config, args.statement)
    if args.search:
        return search_snapshot(config, args.search)
    try:
        run_sync(config, dry_run=args.dry_run, full_resync=args.full_resync, publish=not args.no_publish)
    except TallyAPIError as exc:
        LOGGER.error("Sync failed, previous snapshot kept: %s", exc)
        return 1
    return 0


def run_sync(config: Dict, dry_run: bool = False, full_resync: bool = False, publish: bool = True) -> None:
    store = SnapshotStore(_snapshot_path(config))
    previous = store.load()

    client = TallyClient(
        base_url=config.get("tally_url", "http://localhost:9000"),
        from_date=str(config.get("from_date", "20210401")),
        to_date=str(config["to_date"]) if config.get("to_date") else None,
        timeout=float(config.get("timeout", 30)),
    )
    orchestrator = SyncOrchestrator(
        client,
        known_groups=config.get("known_groups", []),
        receivables_root=config.get("receivables_root", RECEIVABLES_ROOT),
        payables_root=config.get("payables_root", PAYABLES_ROOT),
        batch_size=int(config.get("batch_size", BATCH_SIZE)),
        max_depth=int(config.get("max_depth", 15)),
    )

    LOGGER.info("--- STARTING SYNC ---")
    report = orchestrator.run(previous, force=full_resync)
    for result in report.drifted:
        LOGGER.info(
            "Balance drift for %s: cached %s vs remote %s (diff %s)",
            result.account,
            result.local_signed,
            result.remote_signed,
            result.difference,
        )
    for line in format_sync_summary(report):
        LOGGER.info("%s%s", "Dry-run: " if dry_run else "", line)

    if dry_run:
        return

    store.save(report.snapshot)
    LOGGER.info("Saved snapshot to %s", store.path)
    if publish:
        publish_snapshot(config, report.snapshot, store.path)


def publish_snapshot(config: Dict, snapshot: Snapshot, snapshot_path: Path) -> None:
    """Push the saved snapshot to the configured side channels.

    Failures are logged only; the snapshot on disk stays authoritative.
    """

    if config.get("publish_to_git", False):
        publisher = GitPublisher(
            repo_dir=config.get("git_repo_dir", PROJECT_ROOT),
            path=snapshot_path,
            remote=config.get("git_remote", "origin"),
            branch=config.get("git_branch", "main"),
        )
        result = publisher.publish(f"Auto Sync {datetime.now().isoformat(timespec='seconds')}")
        if not result.success:
            LOGGER.warning("Snapshot saved locally, git publish failed: %s", result.error)

    spreadsheet_id = config.get("spreadsheet_id")
    if spreadsheet_id:
        credentials_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS") or config.get("google_service_file")
        if not credentials_path:
            LOGGER.warning("spreadsheet_id is set but no Google credentials are configured; skipping report")
            return
        try:
            sheets_client = SheetsClient(
                spreadsheet_id=spreadsheet_id,
                credentials_path=credentials_path,
                report_tab=config.get("report_tab", "Ageing"),
            )
            sheets_client.publish_ageing_report(build_report_rows(snapshot))
        except Exception:
            LOGGER.exception("Snapshot saved locally, Google Sheets report failed")


def report_snapshot(config: Dict) -> None:
    snapshot = SnapshotStore(_snapshot_path(config)).load()
    totals = snapshot_totals(snapshot)
    LOGGER.info("Snapshot updated at %s", snapshot.updated_at or "never")
    LOGGER.info("Receivables: %s across %d ledgers", totals.receivable, totals.receivable_count)
    LOGGER.info("Payables: %s across %d ledgers", totals.payable, totals.payable_count)
    for group, accounts in snapshot.groups.items():
        if not accounts:
            continue
        overdue = sum(1 for account in accounts if risk_category(compute_ageing(account.transactions, account.opening_balance)) == "90+")
        LOGGER.info("%s: %d ledgers, %d with dues over 90 days", group, len(accounts), overdue)


def search_snapshot(config: Dict, term: str) -> int:
    snapshot = SnapshotStore(_snapshot_path(config)).load()
    matches = search_groups(snapshot, term)
    if not matches:
        LOGGER.info("No receivable ledgers match %r", term)
        return 1
    for group, accounts in matches.items():
        LOGGER.info("%s:", group)
        for account in accounts:
            LOGGER.info("  %s %s %s", account.name, account.amount, account.sign.value)
    return 0


def print_statement(config: Dict, ledger_name: str) -> int:
    snapshot = SnapshotStore(_snapshot_path(config)).load()
    account = snapshot.index().get(ledger_name)
    if account is None:
        LOGGER.error("Ledger %s is not in the saved snapshot", ledger_name)
        return 1
    LOGGER.info("%s: closing balance %s %s, opening %s", account.name, account.amount, account.sign.value, account.opening_balance or "0")
    for line in compute_running_balances(account.transactions, account.opening_balance, newest_first=True):
        txn = line.transaction
        LOGGER.info(
            "%s %-12s %-8s %12s %s  balance %s %s",
            txn.date.isoformat(),
            txn.voucher_type,
            txn.voucher_number,
            txn.amount,
            txn.sign.value,
            line.balance,
            line.sign.value,
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
