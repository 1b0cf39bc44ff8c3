"""
Segment Builder

Aggregates consecutive strokes into trend segments.

A candidate segment starts at some stroke and takes that stroke's
direction. Strokes moving the same way are trend strokes; the others are
counter strokes. While the candidate is open, its end follows the most
extreme trend stroke. A counter stroke that pushes past the previous
counter stroke's extreme is a characteristic sequence break: the candidate
ends at the best trend stroke before the break, provided it holds at least
``min_segment_strokes`` strokes and its net move exceeds the largest
counter stroke inside it. Otherwise the candidate keeps absorbing strokes.

A counter stroke reaching back past the candidate's origin invalidates the
candidate and the search restarts one stroke later.
"""

import logging
from typing import List, NamedTuple, Optional, Sequence

from .stage import run_stage
from .structure_config import StructureConfig
from .types import Direction, Segment, Stroke

logger = logging.getLogger(__name__)


class SegmentScanState(NamedTuple):
    start: int = 0
    end: int = 0
    cursor: int = 0


def _beyond(direction: Direction, price, reference) -> bool:
    if direction == Direction.UP:
        return price > reference
    return price < reference


def make_segment(strokes: Sequence[Stroke], start: int, end: int, confirmed: bool = True) -> Segment:
    """Build a segment over strokes ``start..end`` inclusive."""
    span = strokes[start:end + 1]
    first, last = span[0], span[-1]
    if confirmed:
        direction = first.direction
    elif last.end_price > first.start_price:
        direction = Direction.UP
    elif last.end_price < first.start_price:
        direction = Direction.DOWN
    else:
        direction = first.direction
    return Segment(
        start_index=start,
        end_index=end,
        direction=direction,
        stroke_count=end - start + 1,
        high=max(s.high for s in span),
        low=min(s.low for s in span),
        start_price=first.start_price,
        end_price=last.end_price,
        start_time=first.start_time,
        end_time=last.end_time,
        confirmed=confirmed,
    )


class SegmentStage:
    """Stepwise segment construction over the stroke list."""

    name = "segments"

    def __init__(self, config: StructureConfig):
        self.config = config

    def initial_state(self) -> SegmentScanState:
        return SegmentScanState()

    def confirms(self, strokes: Sequence[Stroke], start: int, end: int) -> bool:
        """Check stroke count and net progress against the largest counter stroke."""
        if end - start + 1 < self.config.min_segment_strokes:
            return False
        move = abs(strokes[end].end_price - strokes[start].start_price)
        largest_counter = max(
            (strokes[i].price_range for i in range(start + 1, end, 2)), default=0
        )
        return move > largest_counter

    def _examine(
        self,
        state: SegmentScanState,
        strokes: Sequence[Stroke],
        committed: List[Segment],
    ) -> SegmentScanState:
        start, end, k = state
        if k == start:
            return SegmentScanState(start, start, k + 1)

        origin = strokes[start]
        direction = origin.direction
        stroke = strokes[k]

        if stroke.direction == direction:
            if _beyond(direction, stroke.end_price, strokes[end].end_price):
                end = k
            return SegmentScanState(start, end, k + 1)

        if not _beyond(direction, stroke.end_price, origin.start_price):
            # Counter stroke undid the whole candidate.
            return SegmentScanState(start + 1, start + 1, start + 1)

        previous_counter = k - 2
        if previous_counter > start and _beyond(
            direction, strokes[previous_counter].end_price, stroke.end_price
        ):
            if self.confirms(strokes, start, end):
                segment = make_segment(strokes, start, end)
                committed.append(segment)
                logger.debug(
                    f"Segment {segment.direction.value} confirmed over strokes {start}-{end} "
                    f"by break at stroke {k}"
                )
                return SegmentScanState(end + 1, end + 1, end + 1)

        return SegmentScanState(start, end, k + 1)

    def step(
        self,
        state: SegmentScanState,
        strokes: Sequence[Stroke],
        position: int,
        committed: List[Segment],
    ) -> SegmentScanState:
        if not strokes[position].confirmed:
            return state
        # A restart or confirmation moves the cursor back to rescan; start
        # only ever increases, so the loop ends.
        while state.cursor <= position:
            state = self._examine(state, strokes, committed)
        return state

    def finish(self, state: SegmentScanState, strokes: Sequence[Stroke]) -> List[Segment]:
        last = len(strokes) - 1
        if last - state.start + 1 < self.config.min_segment_strokes:
            return []
        return [make_segment(strokes, state.start, last, confirmed=False)]


def build_segments(strokes: Sequence[Stroke], config: Optional[StructureConfig] = None) -> List[Segment]:
    """Build segments from a stroke list; fewer than 3 strokes yields none."""
    return run_stage(SegmentStage(config or StructureConfig.default()), strokes)
