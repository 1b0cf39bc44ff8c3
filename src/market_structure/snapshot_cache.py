"""
Latest-structure cache keyed by (symbol, interval).

Writers for the same key are serialized by a per-key lock; writers for
different keys never contend. Readers take no lock: a snapshot is an
immutable object published by replacing the dict entry in one assignment,
so a reader sees either the previous snapshot or the next one, never a
partial update.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .engine import StructureResult

logger = logging.getLogger(__name__)

Key = Tuple[str, str]


@dataclass(frozen=True)
class Snapshot:
    """Published structure for one key; ``version`` increases per publish."""
    symbol: str
    interval: str
    result: StructureResult
    version: int
    published_at: float


class SnapshotCache:
    """Thread-safe store of the latest StructureResult per key."""

    def __init__(self):
        self._snapshots: Dict[Key, Snapshot] = {}
        self._locks: Dict[Key, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def writer_lock(self, symbol: str, interval: str) -> threading.Lock:
        """Lock serializing writers of one key."""
        key = (symbol, interval)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def get(self, symbol: str, interval: str) -> Optional[Snapshot]:
        """Latest snapshot for a key, or None if never published."""
        return self._snapshots.get((symbol, interval))

    def keys(self) -> List[Key]:
        return list(self._snapshots.keys())

    def publish(self, symbol: str, interval: str, result: StructureResult) -> Snapshot:
        """Replace the snapshot for a key."""
        with self.writer_lock(symbol, interval):
            return self._swap(symbol, interval, result)

    def update(
        self,
        symbol: str,
        interval: str,
        compute: Callable[[Optional[Snapshot]], StructureResult],
    ) -> Snapshot:
        """
        Compute and publish a new result while holding the key's writer lock.

        ``compute`` receives the current snapshot (or None). If it raises,
        nothing is published and the exception propagates.
        """
        with self.writer_lock(symbol, interval):
            result = compute(self._snapshots.get((symbol, interval)))
            return self._swap(symbol, interval, result)

    def invalidate(self, symbol: str, interval: str) -> None:
        with self.writer_lock(symbol, interval):
            self._snapshots.pop((symbol, interval), None)

    def _swap(self, symbol: str, interval: str, result: StructureResult) -> Snapshot:
        previous = self._snapshots.get((symbol, interval))
        snapshot = Snapshot(
            symbol=symbol,
            interval=interval,
            result=result,
            version=previous.version + 1 if previous else 1,
            published_at=time.time(),
        )
        self._snapshots[(symbol, interval)] = snapshot
        logger.debug(f"Published {symbol} {interval} v{snapshot.version}")
        return snapshot
