"""
Incremental Analyzer

Streaming form of the engine: bars arrive one at a time and each derived
list is brought up to date by replaying only its unconfirmed tail.

The candle merger reports the lowest merged position a new bar changed.
Each downstream StageRunner restores its checkpoint at that position,
truncates its committed output to the checkpoint and replays from there,
then reports its own first changed output position to the next stage.
Trading points are a stage over strokes like the others, and the MACD
series is trimmed and extended from the changed merged position. The
result after any number of updates equals a batch computation over the
same bars.
"""

import logging
from typing import Iterable, Optional

from .candle_merger import CandleMerger
from .engine import StructureEngine, StructureResult
from .fractal_detector import FractalStage
from .macd import MacdSeries
from .pivot_detector import PivotStage
from .segment_builder import SegmentStage
from .signal_classifier import SignalStage
from .stage import StageRunner
from .stroke_builder import StrokeStage
from .structure_config import StructureConfig
from .types import Bar, PivotLevel
from .validation import validate_bar

logger = logging.getLogger(__name__)


class IncrementalAnalyzer:
    """
    Maintains a full StructureResult across bar updates.

    Example:
        >>> analyzer = IncrementalAnalyzer()
        >>> for bar in bars:
        ...     result = analyzer.update(bar)
        >>> result.to_dict() == analyze(bars).to_dict()
        True
    """

    def __init__(self, config: Optional[StructureConfig] = None):
        self.config = config or StructureConfig.default()
        self._engine = StructureEngine(self.config)
        self._merger = CandleMerger()
        self._fractals = StageRunner(FractalStage())
        self._strokes = StageRunner(StrokeStage(self.config))
        self._segments = StageRunner(SegmentStage(self.config))
        self._stroke_pivots = StageRunner(PivotStage(self.config, PivotLevel.STROKE))
        self._segment_pivots = StageRunner(PivotStage(self.config, PivotLevel.SEGMENT))
        self._macd: Optional[MacdSeries] = None
        if self.config.macd_confirmation:
            self._macd = MacdSeries(self.config.macd_fast, self.config.macd_slow, self.config.macd_signal)
        self._signals = StageRunner(SignalStage(self.config, self._macd.points if self._macd else None))
        self._last_bar: Optional[Bar] = None
        self._bar_count = 0
        self._result = self._engine.derive(0, [], [], [], [], "full")

    @property
    def result(self) -> StructureResult:
        """Latest full result."""
        return self._result

    @property
    def bar_count(self) -> int:
        return self._bar_count

    def update(self, bar: Bar) -> StructureResult:
        """
        Absorb one bar and return the updated result.

        Raises:
            InvalidInputError: if the bar is malformed or not strictly after
                the previous bar. The analyzer state is left unchanged.
        """
        validate_bar(bar, self._bar_count, self._last_bar)
        self._last_bar = bar
        self._bar_count += 1

        changed = self._merger.push(bar)
        merged = self._merger.merged
        if self._macd is not None:
            self._macd.truncate(changed)
            for merged_bar in merged[changed:]:
                self._macd.append(merged_bar.close)

        fractals, changed = self._fractals.sync(merged, changed)
        strokes, changed = self._strokes.sync(fractals, changed)
        segments, segment_changed = self._segments.sync(strokes, changed)
        stroke_pivots, _ = self._stroke_pivots.sync(strokes, changed)
        segment_pivots, _ = self._segment_pivots.sync(segments, segment_changed)
        points, _ = self._signals.sync(strokes, changed)

        pivots = stroke_pivots + segment_pivots
        self._result = StructureResult(
            "full", self._bar_count, merged, fractals, strokes, segments, pivots, points
        )
        logger.debug(
            f"Update {self._bar_count}: {len(merged)} merged, {len(fractals)} fractals, "
            f"{len(strokes)} strokes, {len(segments)} segments"
        )
        return self._result

    def extend(self, bars: Iterable[Bar]) -> StructureResult:
        """Absorb several bars in order."""
        for bar in bars:
            self.update(bar)
        return self._result
