"""
Fractal Detector

Finds 3-bar turning points on the merged bar sequence.

A candidate at position i is evaluated once bar i + 2 exists. That bar
confirms the candidate unless it pushes past the candidate's extreme, in
which case the turning point has moved and the candidate is dropped.

Confirmed fractals pass through an alternation filter that holds the most
recent fractal as pending: a later same-kind fractal replaces it only when
more extreme, and an opposite-kind fractal commits it. The pending
fractal is reported at the end of the list and may still be replaced.
"""

from typing import List, NamedTuple, Optional, Sequence

from .stage import run_stage
from .types import Fractal, FractalKind, MergedBar

# Bars strictly between two opposite fractals.
MIN_FRACTAL_GAP = 1


class FractalScanState(NamedTuple):
    pending: Optional[Fractal] = None


def fractal_at(bars: Sequence[MergedBar], i: int, confirmed: bool = True) -> Optional[Fractal]:
    """Return the fractal at merged position ``i`` if bars i-1..i+1 form one."""
    if i < 1 or i + 1 >= len(bars):
        return None
    left, mid, right = bars[i - 1], bars[i], bars[i + 1]

    if (mid.high > left.high and mid.high > right.high
            and mid.low >= left.low and mid.low >= right.low):
        return Fractal(
            index=i, kind=FractalKind.TOP, price=mid.high, time=mid.time,
            high=mid.high, low=mid.low, confirmed=confirmed,
        )
    if (mid.low < left.low and mid.low < right.low
            and mid.high <= left.high and mid.high <= right.high):
        return Fractal(
            index=i, kind=FractalKind.BOTTOM, price=mid.low, time=mid.time,
            high=mid.high, low=mid.low, confirmed=confirmed,
        )
    return None


def is_contradicted(fractal: Fractal, bar: MergedBar) -> bool:
    """True when ``bar`` re-extends the extreme past the fractal."""
    if fractal.is_top:
        return bar.high > fractal.high
    return bar.low < fractal.low


def _separated(earlier: Fractal, later: Fractal) -> bool:
    return later.index - earlier.index > MIN_FRACTAL_GAP


class FractalStage:
    """Stepwise fractal detection over merged bars."""

    name = "fractals"

    def initial_state(self) -> FractalScanState:
        return FractalScanState()

    def step(
        self,
        state: FractalScanState,
        bars: Sequence[MergedBar],
        position: int,
        committed: List[Fractal],
    ) -> FractalScanState:
        candidate = fractal_at(bars, position - 2)
        if candidate is None or is_contradicted(candidate, bars[position]):
            return state

        pending = state.pending
        if pending is None:
            return FractalScanState(candidate)

        if candidate.kind == pending.kind:
            if candidate.more_extreme_than(pending):
                return FractalScanState(candidate)
            return state

        if not _separated(pending, candidate):
            return state

        committed.append(pending)
        return FractalScanState(candidate)

    def finish(self, state: FractalScanState, bars: Sequence[MergedBar]) -> List[Fractal]:
        tail: List[Fractal] = []
        pending = state.pending
        if pending is not None:
            tail.append(pending)

        # The newest candidate has no confirming bar yet.
        candidate = fractal_at(bars, len(bars) - 2, confirmed=False)
        if candidate is not None:
            if pending is None or (candidate.kind != pending.kind and _separated(pending, candidate)):
                tail.append(candidate)
        return tail


def detect_fractals(bars: Sequence[MergedBar]) -> List[Fractal]:
    """
    Detect alternating fractals over a merged bar sequence.

    Fewer than 3 bars yields an empty list.
    """
    return run_stage(FractalStage(), bars)
