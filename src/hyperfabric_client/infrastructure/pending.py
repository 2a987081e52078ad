"""Lock-guarded bookkeeping of fabrics with uncommitted changes."""

from __future__ import annotations

import threading
from typing import override

from ..protocols import PendingChanges


class PendingChangeSet(PendingChanges):
    """Set of fabric ids awaiting a commit.

    Every method holds the lock only for the set operation itself; callers must never
    perform network I/O while holding it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._fabric_ids: set[str] = set()

    @override
    def mark(self, fabric_id: str) -> None:
        with self._lock:
            self._fabric_ids.add(fabric_id)

    @override
    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._fabric_ids)

    @override
    def discard(self, fabric_id: str) -> None:
        with self._lock:
            self._fabric_ids.discard(fabric_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._fabric_ids)

    def __contains__(self, fabric_id: object) -> bool:
        with self._lock:
            return fabric_id in self._fabric_ids
