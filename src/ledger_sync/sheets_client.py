"""Google Sheets publisher for the ledger ageing report."""
from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from google.oauth2.service_account import Credentials

from ledger_sync.ageing import compute_ageing, risk_category
from ledger_sync.models import NO_GROUP, Account, Snapshot

LOGGER = logging.getLogger(__name__)

REPORT_HEADERS = [
    "name",
    "category",
    "group",
    "balance",
    "sign",
    "0-30",
    "30-60",
    "60-90",
    "90+",
    "risk",
]


def _report_row(account: Account, category: str, group: str, today: date) -> List[str]:
    buckets = compute_ageing(account.transactions, account.opening_balance, today=today)
    return [
        account.name,
        category,
        group,
        f"{account.amount:.2f}",
        account.sign.value,
        *(f"{amount:.2f}" for amount in buckets.values()),
        risk_category(buckets),
    ]


def build_report_rows(snapshot: Snapshot, today: Optional[date] = None) -> List[List[str]]:
    """Return one ageing row per account, receivables first."""

    today = today or date.today()
    rows: List[List[str]] = []
    for group, accounts in snapshot.groups.items():
        rows.extend(_report_row(account, "Receivable", group, today) for account in accounts)
    rows.extend(_report_row(account, "Receivable", NO_GROUP, today) for account in snapshot.ungrouped)
    rows.extend(_report_row(account, "Payable", "", today) for account in snapshot.payables)
    return rows


class SheetsClient:
    def __init__(
        self,
        *,
        spreadsheet_id: str,
        credentials_path: str,
        report_tab: str = "Ageing",
    ) -> None:
        self._spreadsheet_id = spreadsheet_id
        self._report_tab = report_tab
        credentials = Credentials.from_service_account_file(
            credentials_path, scopes=["https://www.googleapis.com/auth/spreadsheets"]
        )
        self._service = build("sheets", "v4", credentials=credentials, cache_discovery=False)

    def publish_ageing_report(self, rows: Iterable[List[str]]) -> int:
        """Replace the report tab with a header row followed by ``rows``."""

        values = [REPORT_HEADERS] + [list(row) for row in rows]
        try:
            self._service.spreadsheets().values().clear(
                spreadsheetId=self._spreadsheet_id,
                range=f"{self._report_tab}!A:J",
            ).execute()
            LOGGER.info("Cleared %s", self._report_tab)
            self._service.spreadsheets().values().update(
                spreadsheetId=self._spreadsheet_id,
                range=f"{self._report_tab}!A1:J",
                valueInputOption="USER_ENTERED",
                body={"values": values},
            ).execute()
        except HttpError:
            LOGGER.exception("Failed publishing ageing report")
            raise
        LOGGER.info("Uploaded %d ageing rows to %s", len(values) - 1, self._report_tab)
        return len(values) - 1
