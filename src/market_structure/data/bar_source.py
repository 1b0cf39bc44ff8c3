"""
Bar sources: the only external collaborator the engine consumes.

A bar source returns Bars for a (symbol, interval) key, optionally bounded
by time and count. Whether bars come from memory, files or an exchange is
invisible to the engine.
"""

import logging
import os
import threading
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from ..types import Bar
from ..validation import validate_bar, validate_bars
from .ohlc_loader import load_bars

logger = logging.getLogger(__name__)


class BarSource(Protocol):
    def get_bars(
        self,
        symbol: str,
        interval: str,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Bar]:
        ...


def bound_bars(
    bars: Sequence[Bar],
    start_time: Optional[int] = None,
    end_time: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[Bar]:
    """Inclusive time bounds, then keep the ``limit`` most recent bars."""
    selected = [
        b for b in bars
        if (start_time is None or b.time >= start_time)
        and (end_time is None or b.time <= end_time)
    ]
    if limit is not None:
        selected = selected[-limit:] if limit > 0 else []
    return selected


class InMemoryBarSource:
    """Bar source backed by validated in-memory lists."""

    def __init__(self, data: Optional[Dict[Tuple[str, str], Sequence[Bar]]] = None):
        self._data: Dict[Tuple[str, str], List[Bar]] = {}
        self._lock = threading.Lock()
        for (symbol, interval), bars in (data or {}).items():
            self.put(symbol, interval, bars)

    def put(self, symbol: str, interval: str, bars: Sequence[Bar]) -> None:
        validate_bars(bars)
        with self._lock:
            self._data[(symbol, interval)] = list(bars)

    def append(self, symbol: str, interval: str, bar: Bar) -> None:
        """Append one bar, keeping the key's sequence valid."""
        with self._lock:
            bars = self._data.setdefault((symbol, interval), [])
            validate_bar(bar, len(bars), bars[-1] if bars else None)
            bars.append(bar)

    def get_bars(
        self,
        symbol: str,
        interval: str,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Bar]:
        with self._lock:
            try:
                bars = list(self._data[(symbol, interval)])
            except KeyError:
                raise KeyError(f"No bars for {symbol} {interval}") from None
        return bound_bars(bars, start_time, end_time, limit)


class CsvBarSource:
    """
    Bar source reading ``{data_folder}/{symbol}_{interval}.csv``.

    Example:
        >>> source = CsvBarSource("Data/Historical")
        >>> bars = source.get_bars("BTCUSDT", "1h", limit=500)
    """

    def __init__(self, data_folder: str):
        self.data_folder = data_folder

    def path_for(self, symbol: str, interval: str) -> str:
        return os.path.join(self.data_folder, f"{symbol}_{interval}.csv")

    def get_bars(
        self,
        symbol: str,
        interval: str,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Bar]:
        path = self.path_for(symbol, interval)
        logger.debug(f"Reading {symbol} {interval} from {path}")
        return load_bars(path, start_time=start_time, end_time=end_time, limit=limit)
