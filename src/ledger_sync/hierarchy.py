"""Classification of ledgers by walking the account group parent chain.

The hierarchy is held as a flat ``name -> parent`` mapping. Every walk is
bounded by ``max_depth`` hops so cyclic or malformed parent data terminates.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Collection, Dict, FrozenSet, Iterable, Iterator, Mapping, Optional

from ledger_sync.models import NO_GROUP, LedgerRecord

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 15


@dataclass(frozen=True)
class Classification:
    bucket: Optional[str]
    roots: FrozenSet[str] = field(default_factory=frozenset)

    def is_under_root(self, root_name: str) -> bool:
        return root_name in self.roots


class GroupHierarchy:
    def __init__(self, parent_of: Mapping[str, Optional[str]], max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self._parent_of: Dict[str, Optional[str]] = dict(parent_of)
        self._max_depth = max_depth

    @classmethod
    def from_records(
        cls,
        groups: Iterable[LedgerRecord],
        ledgers: Iterable[LedgerRecord] = (),
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> "GroupHierarchy":
        parent_of: Dict[str, Optional[str]] = {}
        for record in list(groups) + list(ledgers):
            parent_of[record.name] = record.parent or None
        return cls(parent_of, max_depth=max_depth)

    def parent(self, name: str) -> Optional[str]:
        return self._parent_of.get(name)

    def ancestors(self, start_name: Optional[str]) -> Iterator[str]:
        """Yield ``start_name`` and its ancestors, at most ``max_depth + 1`` names."""

        current = start_name
        for _ in range(self._max_depth + 1):
            if not current:
                return
            yield current
            current = self._parent_of.get(current)
        if current:
            LOGGER.warning("Parent chain of %r exceeds %d levels; treating as unresolved", start_name, self._max_depth)

    def traces_to_root(self, start_name: Optional[str], root_name: str) -> bool:
        return any(name == root_name for name in self.ancestors(start_name))

    def nearest_known_group(
        self,
        start_name: Optional[str],
        known_groups: Collection[str],
        fallback: str = NO_GROUP,
    ) -> str:
        for name in self.ancestors(start_name):
            if name in known_groups:
                return name
        return fallback

    def classify(
        self,
        account_parent: Optional[str],
        known_groups: Collection[str],
        roots: Collection[str] = (),
    ) -> Classification:
        """Return the nearest known group and which of ``roots`` the chain reaches."""

        chain = list(self.ancestors(account_parent))
        bucket = next((name for name in chain if name in known_groups), NO_GROUP)
        return Classification(bucket=bucket, roots=frozenset(root for root in roots if root in chain))
