"""
MACD momentum helper used to confirm level-1 divergence.

DIF = EMA(fast) - EMA(slow), DEA = EMA(DIF, signal), histogram =
(DIF - DEA) * 2. Each EMA is seeded with the simple average of its first
``period`` values. Positions without enough history hold None.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import List, NamedTuple, Optional, Sequence

QUANT = Decimal("0.00000001")


class MacdPoint(NamedTuple):
    dif: Optional[Decimal]
    dea: Optional[Decimal]
    histogram: Optional[Decimal]


def _q(value: Decimal) -> Decimal:
    return value.quantize(QUANT, rounding=ROUND_HALF_UP)


def _ema_at(
    values: Sequence[Optional[Decimal]],
    position: int,
    previous: Optional[Decimal],
    first: int,
    period: int,
) -> Optional[Decimal]:
    """EMA at ``position`` given the EMA one position earlier."""
    seed_at = first + period - 1
    if position < seed_at:
        return None
    if position == seed_at:
        return _q(sum(values[first:seed_at + 1], Decimal(0)) / Decimal(period))
    k = Decimal(2) / Decimal(period + 1)
    return _q(values[position] * k + previous * (1 - k))


def ema(values: Sequence[Optional[Decimal]], period: int) -> List[Optional[Decimal]]:
    """Exponential moving average over the non-None suffix of ``values``."""
    result: List[Optional[Decimal]] = [None] * len(values)
    first = next((i for i, v in enumerate(values) if v is not None), None)
    if first is None:
        return result

    previous = None
    for i in range(first, len(values)):
        previous = _ema_at(values, i, previous, first, period)
        result[i] = previous
    return result


class MacdSeries:
    """
    MACD maintained as closes are appended or trimmed from the end.

    Each position depends only on the closes up to it, so replacing the
    last few merged bars only recomputes those positions.

    Example:
        >>> series = MacdSeries()
        >>> series.truncate(changed_from)
        >>> for bar in merged[changed_from:]:
        ...     series.append(bar.close)
    """

    def __init__(self, fast: int = 12, slow: int = 26, signal: int = 9):
        self.fast = fast
        self.slow = slow
        self.signal = signal
        self._closes: List[Decimal] = []
        self._fast: List[Optional[Decimal]] = []
        self._slow: List[Optional[Decimal]] = []
        self._difs: List[Optional[Decimal]] = []
        self._points: List[MacdPoint] = []

    @property
    def points(self) -> List[MacdPoint]:
        """Live point list; it is updated in place, callers must not modify it."""
        return self._points

    def truncate(self, length: int) -> None:
        for values in (self._closes, self._fast, self._slow, self._difs, self._points):
            del values[length:]

    def append(self, close: Decimal) -> MacdPoint:
        position = len(self._closes)
        self._closes.append(close)
        fast = _ema_at(self._closes, position, self._fast[-1] if self._fast else None, 0, self.fast)
        slow = _ema_at(self._closes, position, self._slow[-1] if self._slow else None, 0, self.slow)
        self._fast.append(fast)
        self._slow.append(slow)

        dif = fast - slow if fast is not None and slow is not None else None
        self._difs.append(dif)
        previous_dea = self._points[-1].dea if self._points else None
        dea = _ema_at(self._difs, position, previous_dea, max(self.fast, self.slow) - 1, self.signal)

        point = MacdPoint(dif, dea, (dif - dea) * 2 if dif is not None and dea is not None else None)
        self._points.append(point)
        return point


def compute_macd(
    closes: Sequence[Decimal],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> List[MacdPoint]:
    """MACD series aligned with ``closes``; all None when too short."""
    series = MacdSeries(fast, slow, signal)
    for close in closes:
        series.append(close)
    return series.points


def histogram_area(macd: Sequence[MacdPoint], start: int, end: int) -> Decimal:
    """Sum of absolute histogram values over positions start..end inclusive."""
    return sum(
        (abs(p.histogram) for p in macd[start:end + 1] if p.histogram is not None),
        Decimal(0),
    )
