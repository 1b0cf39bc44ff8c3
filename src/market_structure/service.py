"""
Structure Service

Ties a bar source, the engine and the snapshot cache together for many
(symbol, interval) keys. Keys are independent, so ``refresh_many`` computes
them in parallel on a thread pool; writes to one key are serialized by the
cache's per-key writer lock.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, Optional, Tuple

from .data.bar_source import BarSource
from .engine import ResultLevel, StructureEngine
from .incremental import IncrementalAnalyzer
from .snapshot_cache import Snapshot, SnapshotCache
from .structure_config import StructureConfig
from .types import Bar
from .validation import validate_bars

logger = logging.getLogger(__name__)

Key = Tuple[str, str]


class StructureService:
    """
    Computes and publishes structure for (symbol, interval) keys.

    Example:
        >>> service = StructureService(CsvBarSource("Data/Historical"))
        >>> snapshot = service.refresh("BTCUSDT", "1h", limit=1000)
        >>> snapshot.result.strokes
    """

    def __init__(
        self,
        source: BarSource,
        config: Optional[StructureConfig] = None,
        cache: Optional[SnapshotCache] = None,
        max_workers: int = 4,
    ):
        self.source = source
        self.config = config or StructureConfig.default()
        self.cache = cache or SnapshotCache()
        self.max_workers = max_workers
        self._engine = StructureEngine(self.config)
        self._analyzers: Dict[Key, IncrementalAnalyzer] = {}

    def latest(self, symbol: str, interval: str) -> Optional[Snapshot]:
        """Most recently published snapshot; never blocks on writers."""
        return self.cache.get(symbol, interval)

    def refresh(
        self,
        symbol: str,
        interval: str,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
        level: ResultLevel = "full",
    ) -> Snapshot:
        """
        Recompute a key from its bar source and publish the result.

        Raises:
            InvalidInputError: if the source returns no bars or bad bars.
            KeyError, FileNotFoundError: from the bar source.
        """
        def compute(_previous):
            bars = self.source.get_bars(
                symbol, interval, start_time=start_time, end_time=end_time, limit=limit
            )
            validate_bars(bars, allow_empty=False)
            # A full refresh supersedes any streaming state for the key.
            self._analyzers.pop((symbol, interval), None)
            if level == "basic":
                return self._engine.calculate(bars)
            return self._engine.calculate_full(bars)

        logger.info(f"Refreshing {symbol} {interval}")
        return self.cache.update(symbol, interval, compute)

    def refresh_many(
        self,
        keys: Iterable[Key],
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
        level: ResultLevel = "full",
    ) -> Dict[Key, Snapshot]:
        """
        Refresh several keys in parallel.

        A failing key is logged and left out of the returned dict; other
        keys are unaffected.
        """
        keys = list(dict.fromkeys(keys))
        results: Dict[Key, Snapshot] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                key: executor.submit(self.refresh, key[0], key[1], start_time, end_time, limit, level)
                for key in keys
            }
            for key, future in futures.items():
                try:
                    results[key] = future.result()
                except Exception:
                    logger.exception(f"Refresh failed for {key[0]} {key[1]}")
        logger.info(f"Refreshed {len(results)}/{len(keys)} keys")
        return results

    def push_bar(self, symbol: str, interval: str, bar: Bar) -> Snapshot:
        """
        Feed one live bar to the key's incremental analyzer and publish.

        The first bar for a key seeds the analyzer from the key's current
        bar source contents.
        """
        def compute(_previous):
            analyzer = self._analyzers.get((symbol, interval))
            if analyzer is None:
                analyzer = IncrementalAnalyzer(self.config)
                history = self.source.get_bars(symbol, interval, end_time=bar.time - 1)
                analyzer.extend(history)
                self._analyzers[(symbol, interval)] = analyzer
            return analyzer.update(bar)

        return self.cache.update(symbol, interval, compute)
