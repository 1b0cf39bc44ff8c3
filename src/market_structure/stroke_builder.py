"""
Stroke Builder

Connects alternating confirmed fractals into strokes.

The builder keeps an anchor fractal and the newest stroke. A candidate
stroke from the current endpoint to an opposite fractal must span at least
``min_stroke_bars`` merged bars (both boundary bars included) and move in
its own direction. Candidates that fail are skipped and the endpoint is
retried against later fractals, so a short swing and its intervening
fractal drop out. A same-kind fractal that is more extreme than the
current endpoint moves that endpoint.

The newest stroke is only committed when the following stroke starts; until
then it is reported with ``confirmed=False``.
"""

from dataclasses import replace
from typing import List, NamedTuple, Optional, Sequence

from .stage import run_stage
from .structure_config import StructureConfig
from .types import Direction, Fractal, FractalKind, Stroke


class StrokeScanState(NamedTuple):
    anchor: Optional[int] = None
    pending: Optional[Stroke] = None


def make_stroke(fractals: Sequence[Fractal], start: int, end: int, confirmed: bool = True) -> Stroke:
    """Build a stroke between fractal positions ``start`` and ``end``."""
    first, last = fractals[start], fractals[end]
    direction = Direction.UP if first.kind == FractalKind.BOTTOM else Direction.DOWN
    return Stroke(
        start_fractal=start,
        end_fractal=end,
        direction=direction,
        bar_count=last.index - first.index + 1,
        start_index=first.index,
        end_index=last.index,
        start_price=first.price,
        end_price=last.price,
        start_time=first.time,
        end_time=last.time,
        confirmed=confirmed,
    )


class StrokeStage:
    """Stepwise stroke construction over the fractal list."""

    name = "strokes"

    def __init__(self, config: StructureConfig):
        self.config = config

    def is_valid(self, start: Fractal, end: Fractal) -> bool:
        """Check the length and price relation of a candidate stroke."""
        if start.kind == end.kind:
            return False
        if end.index - start.index + 1 < self.config.min_stroke_bars:
            return False
        if start.kind == FractalKind.BOTTOM:
            return end.price > start.price
        return end.price < start.price

    def initial_state(self) -> StrokeScanState:
        return StrokeScanState()

    def step(
        self,
        state: StrokeScanState,
        fractals: Sequence[Fractal],
        position: int,
        committed: List[Stroke],
    ) -> StrokeScanState:
        fractal = fractals[position]
        if not fractal.confirmed:
            return state

        if state.pending is None:
            if state.anchor is None:
                return StrokeScanState(anchor=position)
            anchor = fractals[state.anchor]
            if fractal.kind == anchor.kind:
                if fractal.more_extreme_than(anchor):
                    return StrokeScanState(anchor=position)
                return state
            if self.is_valid(anchor, fractal):
                return StrokeScanState(state.anchor, make_stroke(fractals, state.anchor, position))
            return state

        pending = state.pending
        end = fractals[pending.end_fractal]
        if fractal.kind == end.kind:
            if fractal.more_extreme_than(end):
                extended = make_stroke(fractals, pending.start_fractal, position)
                return state._replace(pending=extended)
            return state

        if self.is_valid(end, fractal):
            committed.append(pending)
            return StrokeScanState(pending.end_fractal, make_stroke(fractals, pending.end_fractal, position))
        return state

    def finish(self, state: StrokeScanState, fractals: Sequence[Fractal]) -> List[Stroke]:
        if state.pending is None:
            return []
        return [replace(state.pending, confirmed=False)]


def build_strokes(fractals: Sequence[Fractal], config: Optional[StructureConfig] = None) -> List[Stroke]:
    """Build strokes from a fractal list; fewer than 2 fractals yields none."""
    return run_stage(StrokeStage(config or StructureConfig.default()), fractals)
