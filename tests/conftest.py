import sys
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from ledger_sync.models import LedgerRecord, RemoteBalance, Transaction  # noqa: E402


class FakeSource:
    """In-memory stand-in for the Tally client."""

    def __init__(
        self,
        groups: List[LedgerRecord],
        ledgers: List[LedgerRecord],
        balances: Optional[Dict[str, RemoteBalance]] = None,
        vouchers: Optional[Dict[str, List[Transaction]]] = None,
        connected: bool = True,
        failing: tuple = (),
        delay: float = 0.0,
    ):
        self.groups = groups
        self.ledgers = ledgers
        self.balances = balances or {}
        self.vouchers = vouchers or {}
        self.connected = connected
        self.failing = set(failing)
        self.delay = delay
        self.fetch_calls: List[str] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def check_connection(self) -> bool:
        return self.connected

    def list_accounts(self, kind: str) -> List[LedgerRecord]:
        return list(self.groups if kind == "Groups" else self.ledgers)

    def fetch_balances(self) -> Dict[str, RemoteBalance]:
        return dict(self.balances)

    def fetch_transactions(self, ledger_name, from_date=None, to_date=None):
        with self._lock:
            self.fetch_calls.append(ledger_name)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if ledger_name in self.failing:
                raise RuntimeError(f"boom: {ledger_name}")
            return list(self.vouchers.get(ledger_name, []))
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def fake_source_cls():
    return FakeSource
