"""
Candle Merger

Collapses bars in an inclusion relationship into single logical bars.

Merging is stack based: each incoming bar is compared with the last merged
bar and, while the two are in inclusion, the last bar is popped and merged
into the incoming one. The merge keeps the higher extremes when the popped
bar was trending up relative to its predecessor and the lower extremes
otherwise, so merging can cascade backwards through the stack.
"""

import logging
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from .types import Bar, Direction, MergedBar

logger = logging.getLogger(__name__)

# Below this many raw bars the input passes through unmerged.
MIN_BARS_TO_MERGE = 3


def is_inclusion(a, b) -> bool:
    """
    True when one bar's [low, high] range contains the other's.

    Containment must be strict at both ends, unless the ranges are
    identical. Bars sharing a single boundary are not in inclusion.
    """
    if a.high == b.high and a.low == b.low:
        return True
    if a.high > b.high and a.low < b.low:
        return True
    return b.high > a.high and b.low < a.low


def trend_between(previous: Optional[MergedBar], current) -> Direction:
    """Direction of ``current`` relative to the merged bar before it."""
    if previous is None:
        return Direction.NONE
    if current.high > previous.high:
        return Direction.UP
    if current.high == previous.high and current.low > previous.low:
        return Direction.UP
    return Direction.DOWN


def merge_pair(first: MergedBar, second: MergedBar, direction: Direction) -> MergedBar:
    """
    Merge two bars in inclusion.

    An up merge keeps the higher high and higher low; anything else keeps
    the lower high and lower low. The result spans both bars in time.
    """
    if direction == Direction.UP:
        high = max(first.high, second.high)
        low = max(first.low, second.low)
    else:
        high = min(first.high, second.high)
        low = min(first.low, second.low)
    return MergedBar(
        time=second.time,
        open=first.open,
        high=high,
        low=low,
        close=second.close,
        volume=first.volume + second.volume,
        start_time=first.start_time,
        source_count=first.source_count + second.source_count,
        direction=direction,
    )


class CandleMerger:
    """
    Incremental candle merger.

    Bars are pushed one at a time; ``push`` reports the lowest merged
    position whose value changed so downstream stages know how much of
    their own output to recompute.
    """

    def __init__(self):
        self._stack: List[MergedBar] = []
        self._head: List[Bar] = []
        self._raw_count = 0

    @property
    def raw_count(self) -> int:
        return self._raw_count

    def push(self, bar: Bar) -> int:
        """
        Absorb one raw bar.

        Returns:
            Lowest position in ``bars()`` that differs from the previous
            materialized output.
        """
        self._raw_count += 1
        if len(self._head) < MIN_BARS_TO_MERGE - 1:
            self._head.append(bar)

        current = MergedBar.from_bar(bar)
        changed_from = len(self._stack)
        while self._stack and is_inclusion(self._stack[-1], current):
            top = self._stack.pop()
            changed_from = len(self._stack)
            # No prior trend means a down merge.
            direction = top.direction if top.direction == Direction.UP else Direction.DOWN
            current = merge_pair(top, current, direction)
            logger.debug(
                f"Merged bar at time {bar.time} into position {changed_from} "
                f"({direction.value}, {current.source_count} sources)"
            )

        previous = self._stack[-1] if self._stack else None
        self._stack.append(replace(current, direction=trend_between(previous, current)))

        if self._raw_count <= MIN_BARS_TO_MERGE:
            # Output switches from pass-through to merged at this point.
            return 0
        return changed_from

    @property
    def merged(self) -> Sequence[MergedBar]:
        """Current merged sequence without copying; callers must not modify it."""
        if self._raw_count < MIN_BARS_TO_MERGE:
            return [MergedBar.from_bar(b) for b in self._head]
        return self._stack

    def bars(self) -> List[MergedBar]:
        """Materialize the current merged sequence."""
        return list(self.merged)


def merge_bars(bars: Iterable[Bar]) -> List[MergedBar]:
    """
    Merge a whole bar sequence.

    Example:
        >>> merged = merge_bars(bars)
        >>> sum(m.source_count for m in merged) == len(bars)
        True
    """
    merger = CandleMerger()
    for bar in bars:
        merger.push(bar)
    return merger.bars()
