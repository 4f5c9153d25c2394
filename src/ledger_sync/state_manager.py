"""Persistence for the ledger snapshot produced by each sync."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from ledger_sync.models import Snapshot

LOGGER = logging.getLogger(__name__)


class SnapshotStore:
    """Loads and atomically replaces the JSON snapshot on disk."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> Snapshot:
        if not self.path.exists():
            return Snapshot()
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            LOGGER.warning("Could not read snapshot %s, starting empty", self.path, exc_info=True)
            return Snapshot()
        try:
            return Snapshot.from_dict(payload)
        except (AttributeError, KeyError, TypeError, ValueError):
            LOGGER.warning("Snapshot %s has an unexpected shape, starting empty", self.path, exc_info=True)
            return Snapshot()

    def save(self, snapshot: Snapshot) -> None:
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(snapshot.to_dict(), indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)
