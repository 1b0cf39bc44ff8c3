"""
Signal Classifier

Labels structural events as level 1, 2 and 3 buy/sell points.

Strokes are walked in order and only confirmed strokes are classified: a
stroke is confirmed once the next stroke has started, so a point is never
emitted from a swing that may still extend. A down stroke can only produce
buy points and an up stroke only sell points. Each stroke offers at most
one event per side to that side's track: level 1 when the stroke diverges
from the previous same-direction stroke, otherwise the level the track is
waiting for. Only events a track accepts become trading points.

Stroke-level pivots are read as they stood when each stroke confirmed,
using the same scan as the pivot detector, so a point never depends on
strokes after it. A level-2 pullback is judged against the band built
before it; a level-3 pullback against the pivot it closes.

Level 1 uses a price-range proxy for momentum divergence: the new stroke
reaches a new extreme while covering a smaller range in no more bars.
When ``macd_confirmation`` is on and MACD points are supplied, the
stroke's MACD histogram area must shrink as well.
"""

import logging
from decimal import Decimal
from typing import List, NamedTuple, Optional, Sequence, Tuple

from .macd import MacdPoint, compute_macd, histogram_area
from .pivot_detector import PivotScanState, PivotStage, make_pivot
from .signal_state import SignalEvent, TrackState, advance
from .stage import run_stage
from .structure_config import StructureConfig
from .types import (
    Confidence,
    Direction,
    MergedBar,
    Pivot,
    PivotLevel,
    PointType,
    Stroke,
    TradingPoint,
)

logger = logging.getLogger(__name__)

Reference = Tuple[int, Pivot]


def _side_for(stroke: Stroke) -> PointType:
    return PointType.BUY if stroke.direction == Direction.DOWN else PointType.SELL


class SignalScanState(NamedTuple):
    """Both tracks plus the stroke-pivot scan as of the last confirmed stroke."""
    buy: TrackState
    sell: TrackState
    pivots: PivotScanState
    pivot_count: int = 0
    last_pivot: Optional[Pivot] = None

    def track(self, side: PointType) -> TrackState:
        return self.buy if side == PointType.BUY else self.sell


class SignalStage:
    """
    Stepwise trading point classification over strokes.

    ``macd`` is an optional MACD point list aligned with the merged bars.
    It is only read at positions covered by confirmed strokes.
    """

    name = "signals"

    def __init__(self, config: StructureConfig, macd: Optional[Sequence[MacdPoint]] = None):
        self.config = config
        self.macd = macd
        self._pivot_scan = PivotStage(config, PivotLevel.STROKE)

    def initial_state(self) -> SignalScanState:
        return SignalScanState(
            TrackState.start(PointType.BUY),
            TrackState.start(PointType.SELL),
            self._pivot_scan.initial_state(),
        )

    def step(
        self,
        state: SignalScanState,
        strokes: Sequence[Stroke],
        position: int,
        committed: List[TradingPoint],
    ) -> SignalScanState:
        stroke = strokes[position]
        if not stroke.confirmed:
            return state

        side = _side_for(stroke)
        track = state.track(side)
        previous = state
        state = self._scan_pivot(state, strokes, position)

        candidate = self._level_one(strokes, position)
        event = None
        if candidate is None:
            if track.expects_level == 2:
                reference = self._active_pivot(previous, strokes)
                candidate = self._level_two(strokes, position, reference, track)
                if candidate is None:
                    event = SignalEvent.invalidation(side, stroke.end_price, position)
                    logger.debug(
                        f"Stroke {position} fails the pullback after L1 {side.value} at "
                        f"{track.anchor_price}; waiting for a new level 1"
                    )
            elif track.expects_level == 3:
                candidate = self._level_three(strokes, position, state)

        if candidate is not None:
            event = SignalEvent(candidate.type, candidate.level, candidate.price, position)
        if event is None:
            return state

        buy, took_buy = advance(state.buy, event)
        sell, took_sell = advance(state.sell, event)
        if candidate is not None and (took_buy or took_sell):
            committed.append(candidate)
            logger.debug(f"Level-{candidate.level} {candidate.type.value} at {candidate.price}")
        return state._replace(buy=buy, sell=sell)

    def finish(self, state: SignalScanState, strokes: Sequence[Stroke]) -> List[TradingPoint]:
        # The open stroke can still extend, so it never yields a point.
        return []

    def _scan_pivot(self, state: SignalScanState, strokes: Sequence[Stroke], position: int) -> SignalScanState:
        closed: List[Pivot] = []
        pivots = self._pivot_scan.step(state.pivots, strokes, position, closed)
        if closed:
            return state._replace(
                pivots=pivots,
                pivot_count=state.pivot_count + len(closed),
                last_pivot=closed[-1],
            )
        return state._replace(pivots=pivots)

    def _active_pivot(self, state: SignalScanState, strokes: Sequence[Stroke]) -> Optional[Reference]:
        """Latest pivot known before the current stroke, still forming or closed."""
        if state.pivots.active is not None:
            band = state.pivots.active
            return state.pivot_count, make_pivot(strokes, band, PivotLevel.STROKE, confirmed=False)
        if state.last_pivot is not None:
            return state.pivot_count - 1, state.last_pivot
        return None

    def _level_one(self, strokes: Sequence[Stroke], k: int) -> Optional[TradingPoint]:
        if k < 2:
            return None
        stroke, prior = strokes[k], strokes[k - 2]

        if stroke.direction == Direction.DOWN:
            new_extreme = stroke.end_price < prior.end_price
        else:
            new_extreme = stroke.end_price > prior.end_price
        if not new_extreme:
            return None
        if stroke.price_range >= prior.price_range or stroke.bar_count > prior.bar_count:
            return None

        macd_note = ""
        if self.macd is not None:
            area = histogram_area(self.macd, stroke.start_index, stroke.end_index)
            prior_area = histogram_area(self.macd, prior.start_index, prior.end_index)
            # No histogram yet for the earlier stroke: price proxy only.
            if prior_area > 0:
                if area >= prior_area:
                    return None
                macd_note = f", MACD area {area} < {prior_area}"

        magnitude = Decimal(1) - stroke.price_range / prior.price_range
        confidence = Confidence.HIGH if magnitude >= self.config.divergence_threshold else Confidence.MEDIUM
        side = _side_for(stroke)
        extreme = "low" if side == PointType.BUY else "high"
        return TradingPoint(
            type=side,
            level=1,
            price=stroke.end_price,
            time=stroke.end_time,
            confidence=confidence,
            reason=(
                f"L1 {side.value}: stroke {k} makes new {extreme} {stroke.end_price} with range "
                f"{stroke.price_range} < {prior.price_range} of stroke {k - 2} in "
                f"{stroke.bar_count} <= {prior.bar_count} bars (divergence {magnitude:.3f}{macd_note})"
            ),
            stroke_index=k,
            source_fractal=stroke.end_fractal,
        )

    def _level_two(
        self,
        strokes: Sequence[Stroke],
        k: int,
        reference: Optional[Reference],
        track: TrackState,
    ) -> Optional[TradingPoint]:
        if reference is None or track.anchor_price is None:
            return None
        stroke = strokes[k]
        pivot_index, pivot = reference
        side = _side_for(stroke)
        price = stroke.end_price

        if side == PointType.BUY:
            holds = price > track.anchor_price and price >= pivot.low
            boundary = f"pivot low {pivot.low}"
        else:
            holds = price < track.anchor_price and price <= pivot.high
            boundary = f"pivot high {pivot.high}"
        if not holds:
            return None

        confidence = Confidence.HIGH if pivot.contains(price) else Confidence.MEDIUM
        return TradingPoint(
            type=side,
            level=2,
            price=price,
            time=stroke.end_time,
            confidence=confidence,
            reason=(
                f"L2 {side.value}: stroke {k} pulls back to {price} after L1 at "
                f"{track.anchor_price} (stroke {track.anchor_stroke}) without breaching "
                f"{boundary} of pivot {pivot_index}"
            ),
            stroke_index=k,
            source_pivot=pivot_index,
        )

    def _level_three(
        self,
        strokes: Sequence[Stroke],
        k: int,
        state: SignalScanState,
    ) -> Optional[TradingPoint]:
        if k < 1 or state.last_pivot is None:
            return None
        stroke, breakout = strokes[k], strokes[k - 1]
        pivot_index, pivot = state.pivot_count - 1, state.last_pivot
        side = _side_for(stroke)
        price = stroke.end_price

        if side == PointType.BUY:
            if not (breakout.end_price > pivot.high and price > pivot.high):
                return None
            gap = price - pivot.high
            edge = f"above pivot high {pivot.high}"
        else:
            if not (breakout.end_price < pivot.low and price < pivot.low):
                return None
            gap = pivot.low - price
            edge = f"below pivot low {pivot.low}"

        margin = self.config.pullback_margin * (pivot.high - pivot.low)
        confidence = Confidence.HIGH if gap >= margin else Confidence.LOW
        return TradingPoint(
            type=side,
            level=3,
            price=price,
            time=stroke.end_time,
            confidence=confidence,
            reason=(
                f"L3 {side.value}: stroke {k - 1} broke out of pivot {pivot_index} and the "
                f"pullback of stroke {k} held at {price}, {edge} by {gap} (margin {margin})"
            ),
            stroke_index=k,
            source_pivot=pivot_index,
        )


class SignalClassifier:
    """
    Derives trading points from a stroke list.

    Example:
        >>> classifier = SignalClassifier(StructureConfig.default())
        >>> points = classifier.classify(strokes, merged_bars)
    """

    def __init__(self, config: Optional[StructureConfig] = None):
        self.config = config or StructureConfig.default()

    def classify(
        self,
        strokes: Sequence[Stroke],
        merged_bars: Optional[Sequence[MergedBar]] = None,
    ) -> List[TradingPoint]:
        macd = None
        if self.config.macd_confirmation and merged_bars:
            macd = compute_macd(
                [b.close for b in merged_bars],
                self.config.macd_fast,
                self.config.macd_slow,
                self.config.macd_signal,
            )
        return run_stage(SignalStage(self.config, macd), strokes)


def classify_signals(
    strokes: Sequence[Stroke],
    config: Optional[StructureConfig] = None,
    merged_bars: Optional[Sequence[MergedBar]] = None,
) -> List[TradingPoint]:
    """Classify trading points; missing structure simply yields fewer points."""
    return SignalClassifier(config).classify(strokes, merged_bars)
