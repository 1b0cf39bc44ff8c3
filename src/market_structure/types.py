"""
Core data types for market structure analysis.

Every entity is a frozen dataclass. Prices are Decimal so that equality
boundaries used by the inclusion and overlap rules compare exactly.
Cross references between entities are integer positions into the owning
list (a Stroke stores fractal positions, a Segment stores stroke
positions, a Pivot stores unit positions).
"""

from dataclasses import dataclass, fields
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional


class Direction(str, Enum):
    """Direction of a merged bar, stroke or segment."""
    UP = "up"
    DOWN = "down"
    NONE = "none"


class FractalKind(str, Enum):
    """Turning point kind."""
    TOP = "top"
    BOTTOM = "bottom"


class PivotLevel(str, Enum):
    """Granularity of the units a pivot was built from."""
    STROKE = "stroke"
    SEGMENT = "segment"


class PointType(str, Enum):
    """Trading point side."""
    BUY = "buy"
    SELL = "sell"


class Confidence(str, Enum):
    """Confidence attached to a trading point."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _as_dict(obj: Any) -> Dict[str, Any]:
    return {f.name: _jsonable(getattr(obj, f.name)) for f in fields(obj)}


@dataclass(frozen=True)
class Bar:
    """Single OHLCV bar. ``time`` is epoch milliseconds."""
    time: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal("0")

    @property
    def date(self) -> datetime:
        return datetime.fromtimestamp(self.time / 1000, tz=timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return _as_dict(self)


@dataclass(frozen=True)
class MergedBar:
    """
    A logical bar produced by the candle merger.

    ``start_time`` is the time of the first absorbed raw bar and ``time``
    the time of the last, so a merged bar covers every raw bar it absorbed.
    ``direction`` is the bar's trend relative to its predecessor in the
    merged sequence.
    """
    time: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    start_time: int
    source_count: int = 1
    direction: Direction = Direction.NONE

    @classmethod
    def from_bar(cls, bar: Bar, direction: Direction = Direction.NONE) -> "MergedBar":
        return cls(
            time=bar.time,
            open=bar.open,
            high=bar.high,
            low=bar.low,
            close=bar.close,
            volume=bar.volume,
            start_time=bar.time,
            source_count=1,
            direction=direction,
        )

    def to_dict(self) -> Dict[str, Any]:
        return _as_dict(self)


@dataclass(frozen=True)
class Fractal:
    """
    A 3-bar turning point on the merged sequence.

    ``price`` is the bar high for tops and the bar low for bottoms.
    """
    index: int
    kind: FractalKind
    price: Decimal
    time: int
    high: Decimal
    low: Decimal
    confirmed: bool = True

    @property
    def is_top(self) -> bool:
        return self.kind == FractalKind.TOP

    def more_extreme_than(self, other: "Fractal") -> bool:
        """True when this fractal strictly beats ``other`` of the same kind."""
        if self.is_top:
            return self.price > other.price
        return self.price < other.price

    def to_dict(self) -> Dict[str, Any]:
        return _as_dict(self)


@dataclass(frozen=True)
class Stroke:
    """
    Minimal directional swing between two alternating fractals.

    ``start_fractal`` and ``end_fractal`` are positions in the fractal list;
    ``start_index`` and ``end_index`` are the merged-bar positions of those
    fractals, denormalized so later stages need not re-resolve them.
    """
    start_fractal: int
    end_fractal: int
    direction: Direction
    bar_count: int
    start_index: int
    end_index: int
    start_price: Decimal
    end_price: Decimal
    start_time: int
    end_time: int
    confirmed: bool = True

    @property
    def high(self) -> Decimal:
        return max(self.start_price, self.end_price)

    @property
    def low(self) -> Decimal:
        return min(self.start_price, self.end_price)

    @property
    def price_range(self) -> Decimal:
        return self.high - self.low

    def to_dict(self) -> Dict[str, Any]:
        return _as_dict(self)


@dataclass(frozen=True)
class Segment:
    """Trend unit of at least three strokes (stroke positions inclusive)."""
    start_index: int
    end_index: int
    direction: Direction
    stroke_count: int
    high: Decimal
    low: Decimal
    start_price: Decimal
    end_price: Decimal
    start_time: int
    end_time: int
    confirmed: bool = True

    @property
    def price_range(self) -> Decimal:
        return self.high - self.low

    def to_dict(self) -> Dict[str, Any]:
        return _as_dict(self)


@dataclass(frozen=True)
class Pivot:
    """
    Consolidation zone shared by at least three consecutive units.

    ``start_index`` and ``end_index`` are positions in the unit list the
    pivot was built from (strokes or segments, per ``level``).
    """
    level: PivotLevel
    high: Decimal
    low: Decimal
    center: Decimal
    start_index: int
    end_index: int
    oscillation_count: int
    start_time: int
    end_time: int
    confirmed: bool = True

    @property
    def unit_count(self) -> int:
        return self.end_index - self.start_index + 1

    def contains(self, price: Decimal) -> bool:
        """Strictly inside the band."""
        return self.low < price < self.high

    def to_dict(self) -> Dict[str, Any]:
        return _as_dict(self)


@dataclass(frozen=True)
class TradingPoint:
    """
    Classified buy/sell signal.

    Level 1 points reference the fractal that ended the diverging stroke;
    level 2 and 3 points reference a stroke-level pivot. ``reason`` is for
    audit only.
    """
    type: PointType
    level: int
    price: Decimal
    time: int
    confidence: Confidence
    reason: str
    stroke_index: int
    source_fractal: Optional[int] = None
    source_pivot: Optional[int] = None

    def __post_init__(self):
        if (self.source_fractal is None) == (self.source_pivot is None):
            raise ValueError("TradingPoint needs exactly one of source_fractal or source_pivot")
        if self.level not in (1, 2, 3):
            raise ValueError(f"TradingPoint level must be 1, 2 or 3, got {self.level}")

    @property
    def date(self) -> datetime:
        return datetime.fromtimestamp(self.time / 1000, tz=timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return _as_dict(self)
