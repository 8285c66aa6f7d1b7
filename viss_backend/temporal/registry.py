"""
HIV Registry
============

Set of individual ids currently believed HIV-positive.

Owned by exactly one tracker for exactly one pass. Membership is the
source of truth; the count is derived from the set, so removing an id
that was never inserted cannot make the count drift.
"""

from __future__ import annotations
from typing import FrozenSet, Iterator, Optional, Set


class HivRegistry:
    """Mutable per-pass membership set."""

    def __init__(self):
        self._positive: Set[str] = set()
        self._ignored_removals = 0

    def insert(self, individual_id: Optional[str]) -> bool:
        """Mark an id positive. Returns True if it was newly added."""
        if not individual_id or individual_id in self._positive:
            return False
        self._positive.add(individual_id)
        return True

    def remove(self, individual_id: Optional[str]) -> bool:
        """
        Drop an id on death.

        Removing a non-member is a no-op (returns False), never an error.
        """
        if not individual_id:
            return False
        if individual_id not in self._positive:
            self._ignored_removals += 1
            return False
        self._positive.discard(individual_id)
        return True

    def __contains__(self, individual_id: object) -> bool:
        return individual_id in self._positive

    def __len__(self) -> int:
        return len(self._positive)

    def __iter__(self) -> Iterator[str]:
        return iter(self._positive)

    @property
    def ignored_removals(self) -> int:
        """Mortality events naming ids that were not registered."""
        return self._ignored_removals

    def frozen(self) -> FrozenSet[str]:
        return frozenset(self._positive)
