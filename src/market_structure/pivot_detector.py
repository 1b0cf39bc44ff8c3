"""
Pivot Detector

Finds consolidation zones where consecutive strokes (or segments) share a
price band.

A pivot forms when ``min_pivot_units`` consecutive units have a strictly
non-empty common range [max of lows, min of highs]. It then extends over
each following unit whose range keeps the narrowed band non-empty. The
unit that breaks the band closes the pivot and becomes the earliest unit
the next pivot may use, so pivots never share units.
"""

from dataclasses import replace
from decimal import Decimal
from typing import List, NamedTuple, Optional, Sequence, Union

from .stage import run_stage
from .structure_config import StructureConfig
from .types import Pivot, PivotLevel, Segment, Stroke

Unit = Union[Stroke, Segment]

TWO = Decimal(2)


class Band(NamedTuple):
    start: int
    end: int
    high: Decimal
    low: Decimal


class PivotScanState(NamedTuple):
    search_from: int = 0
    active: Optional[Band] = None


def count_oscillations(units: Sequence[Unit], center: Decimal) -> int:
    """Units whose path crosses ``center`` from one side to the other."""
    return sum(
        1 for u in units
        if (u.start_price - center) * (u.end_price - center) < 0
    )


def make_pivot(units: Sequence[Unit], band: Band, level: PivotLevel, confirmed: bool = True) -> Pivot:
    center = (band.high + band.low) / TWO
    return Pivot(
        level=level,
        high=band.high,
        low=band.low,
        center=center,
        start_index=band.start,
        end_index=band.end,
        oscillation_count=count_oscillations(units[band.start:band.end + 1], center),
        start_time=units[band.start].start_time,
        end_time=units[band.end].end_time,
        confirmed=confirmed,
    )


class PivotStage:
    """Stepwise pivot detection over strokes or segments."""

    name = "pivots"

    def __init__(self, config: StructureConfig, level: PivotLevel = PivotLevel.STROKE):
        self.config = config
        self.level = level

    def initial_state(self) -> PivotScanState:
        return PivotScanState()

    def _advance(
        self,
        state: PivotScanState,
        units: Sequence[Unit],
        position: int,
        committed: List[Pivot],
    ) -> PivotScanState:
        band = state.active
        if band is None:
            first = position - self.config.min_pivot_units + 1
            if first < state.search_from:
                return state
            window = units[first:position + 1]
            low = max(u.low for u in window)
            high = min(u.high for u in window)
            if low < high:
                return state._replace(active=Band(first, position, high, low))
            return state

        unit = units[position]
        low = max(band.low, unit.low)
        high = min(band.high, unit.high)
        if low < high:
            return state._replace(active=Band(band.start, position, high, low))

        committed.append(make_pivot(units, band, self.level))
        return PivotScanState(search_from=position)

    def step(
        self,
        state: PivotScanState,
        units: Sequence[Unit],
        position: int,
        committed: List[Pivot],
    ) -> PivotScanState:
        if not units[position].confirmed:
            return state
        return self._advance(state, units, position, committed)

    def finish(self, state: PivotScanState, units: Sequence[Unit]) -> List[Pivot]:
        # Open units trail the list; they are tried against a scratch list, never committed.
        tail_start = len(units)
        while tail_start > 0 and not units[tail_start - 1].confirmed:
            tail_start -= 1
        scratch: List[Pivot] = []
        for position in range(tail_start, len(units)):
            state = self._advance(state, units, position, scratch)
        tail = [replace(p, confirmed=False) for p in scratch]
        if state.active is not None:
            tail.append(make_pivot(units, state.active, self.level, confirmed=False))
        return tail


def detect_pivots(
    units: Sequence[Unit],
    level: PivotLevel = PivotLevel.STROKE,
    config: Optional[StructureConfig] = None,
) -> List[Pivot]:
    """Detect pivots over a stroke or segment list."""
    return run_stage(PivotStage(config or StructureConfig.default(), level), units)
