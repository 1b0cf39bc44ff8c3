"""
Shared test fixtures and helpers for market structure tests.
"""

import random
from decimal import Decimal
from typing import List, Sequence, Tuple

import pytest

from market_structure.types import Bar, Direction, Fractal, FractalKind, Stroke

BASE_TIME = 1_700_000_000_000
MINUTE_MS = 60_000

# Mids producing bottoms at 2 and 10 and tops at 6 and 14 (bars are mid +/- 1).
EXAMPLE_4_MIDS = [14, 12, 10, 12, 14, 16, 18, 16, 14, 12, 11, 13, 15, 17, 20, 18, 16]


def t(index: int) -> int:
    """Timestamp for bar ``index``."""
    return BASE_TIME + index * MINUTE_MS


def make_bar(
    index: int,
    open_,
    high,
    low,
    close,
    time: int = None,
    volume=1,
) -> Bar:
    """Helper to create Bar objects for testing.

    Args:
        index: Bar index in the sequence
        open_: Opening price
        high: High price
        low: Low price
        close: Closing price
        time: Epoch ms (defaults to BASE_TIME + index minutes)
        volume: Traded volume

    Returns:
        Bar with Decimal prices
    """
    return Bar(
        time=time if time is not None else t(index),
        open=Decimal(str(open_)),
        high=Decimal(str(high)),
        low=Decimal(str(low)),
        close=Decimal(str(close)),
        volume=Decimal(str(volume)),
    )


def bars_from_mids(mids: Sequence, half_range=1) -> List[Bar]:
    """Bars centred on each mid, spanning mid - half_range to mid + half_range."""
    return [
        make_bar(i, mid, mid + half_range, mid - half_range, mid)
        for i, mid in enumerate(mids)
    ]


def random_walk_bars(count: int, seed: int = 7) -> List[Bar]:
    """Deterministic random walk with uneven ranges, including inside bars."""
    rng = random.Random(seed)
    bars = []
    mid = 1000
    for i in range(count):
        mid += rng.choice([-9, -6, -4, -2, 2, 4, 6, 9])
        high = mid + rng.randint(0, 6)
        low = mid - rng.randint(0, 6)
        open_ = rng.randint(low, high)
        close = rng.randint(low, high)
        bars.append(make_bar(i, open_, high, low, close, volume=rng.randint(1, 50)))
    return bars


def make_fractals(points: Sequence[Tuple[int, str, object]], confirmed: bool = True) -> List[Fractal]:
    """Fractals from (merged index, 'top'|'bottom', price) tuples."""
    fractals = []
    for index, kind, price in points:
        price = Decimal(str(price))
        fractals.append(Fractal(
            index=index,
            kind=FractalKind(kind),
            price=price,
            time=t(index),
            high=price if kind == "top" else price + 1,
            low=price if kind == "bottom" else price - 1,
            confirmed=confirmed,
        ))
    return fractals


def strokes_from_path(prices: Sequence, bars_per_stroke: int = 5, last_open: bool = False) -> List[Stroke]:
    """Consecutive strokes visiting each price in turn."""
    strokes = []
    for k in range(len(prices) - 1):
        start, end = Decimal(str(prices[k])), Decimal(str(prices[k + 1]))
        strokes.append(Stroke(
            start_fractal=k,
            end_fractal=k + 1,
            direction=Direction.UP if end > start else Direction.DOWN,
            bar_count=bars_per_stroke + 1,
            start_index=k * bars_per_stroke,
            end_index=(k + 1) * bars_per_stroke,
            start_price=start,
            end_price=end,
            start_time=t(k * bars_per_stroke),
            end_time=t((k + 1) * bars_per_stroke),
            confirmed=not (last_open and k == len(prices) - 2),
        ))
    return strokes


@pytest.fixture
def example_4_bars() -> List[Bar]:
    return bars_from_mids(EXAMPLE_4_MIDS)


@pytest.fixture
def walk_bars() -> List[Bar]:
    return random_walk_bars(400)
