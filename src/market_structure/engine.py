"""
Structure Engine

Runs the full decomposition pipeline over a validated bar sequence:

    bars -> merged bars -> fractals -> strokes -> segments -> pivots -> trading points

Each query validates its input first, so a malformed batch raises
InvalidInputError before any stage runs and never yields partial output.
Stages with too little input return empty lists.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

from .candle_merger import merge_bars
from .fractal_detector import detect_fractals
from .pivot_detector import detect_pivots
from .segment_builder import build_segments
from .signal_classifier import classify_signals
from .stroke_builder import build_strokes
from .structure_config import StructureConfig
from .types import Bar, Fractal, MergedBar, Pivot, PivotLevel, Segment, Stroke, TradingPoint
from .validation import validate_bars

logger = logging.getLogger(__name__)

ResultLevel = Literal["basic", "full"]


@dataclass(frozen=True)
class StructureResult:
    """
    Aggregate result of one computation.

    A basic result carries merged bars, fractals and strokes; a full result
    adds segments, pivots (stroke-level first, then segment-level) and
    trading points. Results are shared between readers of the snapshot
    cache, so every sequence is stored as a tuple.
    """
    level: str
    bar_count: int
    merged_bars: Tuple[MergedBar, ...]
    fractals: Tuple[Fractal, ...]
    strokes: Tuple[Stroke, ...]
    segments: Tuple[Segment, ...] = ()
    pivots: Tuple[Pivot, ...] = ()
    trading_points: Tuple[TradingPoint, ...] = ()

    def __post_init__(self):
        for name in ("merged_bars", "fractals", "strokes", "segments", "pivots", "trading_points"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @property
    def stroke_pivots(self) -> List[Pivot]:
        return [p for p in self.pivots if p.level == PivotLevel.STROKE]

    @property
    def segment_pivots(self) -> List[Pivot]:
        return [p for p in self.pivots if p.level == PivotLevel.SEGMENT]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: Dict[str, Any] = {
            "level": self.level,
            "bar_count": self.bar_count,
            "merged_bars": [b.to_dict() for b in self.merged_bars],
            "fractals": [f.to_dict() for f in self.fractals],
            "strokes": [s.to_dict() for s in self.strokes],
        }
        if self.level == "full":
            data["segments"] = [s.to_dict() for s in self.segments]
            data["pivots"] = [p.to_dict() for p in self.pivots]
            data["trading_points"] = [t.to_dict() for t in self.trading_points]
        return data

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)


class StructureEngine:
    """
    Stateless façade over the pipeline stages.

    Example:
        >>> engine = StructureEngine()
        >>> result = engine.calculate_full(bars)
        >>> len(result.strokes)
        3
    """

    def __init__(self, config: Optional[StructureConfig] = None):
        self.config = config or StructureConfig.default()

    def merged_bars(self, bars: Sequence[Bar]) -> List[MergedBar]:
        validate_bars(bars)
        return merge_bars(bars)

    def fractals(self, bars: Sequence[Bar]) -> List[Fractal]:
        return list(self.calculate(bars).fractals)

    def strokes(self, bars: Sequence[Bar]) -> List[Stroke]:
        return list(self.calculate(bars).strokes)

    def segments(self, bars: Sequence[Bar]) -> List[Segment]:
        return list(self.calculate_full(bars).segments)

    def pivots(self, bars: Sequence[Bar], level: Optional[PivotLevel] = None) -> List[Pivot]:
        """Pivots of one level, or both levels when ``level`` is None."""
        pivots = self.calculate_full(bars).pivots
        if level is None:
            return list(pivots)
        return [p for p in pivots if p.level == PivotLevel(level)]

    def trading_points(self, bars: Sequence[Bar]) -> List[TradingPoint]:
        return list(self.calculate_full(bars).trading_points)

    def calculate(self, bars: Sequence[Bar]) -> StructureResult:
        """Basic result: merged bars, fractals and strokes."""
        return self._run(bars, "basic")

    def calculate_full(self, bars: Sequence[Bar]) -> StructureResult:
        """Full result including segments, pivots and trading points."""
        return self._run(bars, "full")

    def derive(
        self,
        bar_count: int,
        merged: Sequence[MergedBar],
        fractals: Sequence[Fractal],
        strokes: Sequence[Stroke],
        segments: Sequence[Segment],
        level: ResultLevel,
    ) -> StructureResult:
        """Assemble a result from already computed lower stages."""
        if level == "basic":
            return StructureResult("basic", bar_count, merged, fractals, strokes)

        pivots = (
            detect_pivots(strokes, PivotLevel.STROKE, self.config)
            + detect_pivots(segments, PivotLevel.SEGMENT, self.config)
        )
        logger.debug(f"Detected {len(pivots)} pivots")
        points = classify_signals(strokes, self.config, merged)
        logger.debug(f"Classified {len(points)} trading points")
        return StructureResult("full", bar_count, merged, fractals, strokes, segments, pivots, points)

    def _run(self, bars: Sequence[Bar], level: ResultLevel) -> StructureResult:
        validate_bars(bars)
        logger.info(f"Computing {level} structure over {len(bars)} bars")

        merged = merge_bars(bars)
        logger.debug(f"Merged {len(bars)} bars into {len(merged)}")
        fractals = detect_fractals(merged)
        logger.debug(f"Detected {len(fractals)} fractals")
        strokes = build_strokes(fractals, self.config)
        logger.debug(f"Built {len(strokes)} strokes")
        segments = build_segments(strokes, self.config) if level == "full" else []
        if level == "full":
            logger.debug(f"Built {len(segments)} segments")

        result = self.derive(len(bars), merged, fractals, strokes, segments, level)
        logger.info(
            f"Structure complete: {len(result.fractals)} fractals, {len(result.strokes)} strokes, "
            f"{len(result.segments)} segments, {len(result.pivots)} pivots, "
            f"{len(result.trading_points)} trading points"
        )
        return result


def analyze(
    bars: Sequence[Bar],
    config: Optional[StructureConfig] = None,
    level: ResultLevel = "full",
) -> StructureResult:
    """
    Convenience function to analyze a bar sequence in one call.

    Args:
        bars: Time-ordered bars for one instrument and interval.
        config: Engine thresholds (defaults when None).
        level: "basic" or "full".

    Returns:
        StructureResult for the requested level.

    Raises:
        InvalidInputError: when the bars fail validation.
    """
    engine = StructureEngine(config)
    if level == "basic":
        return engine.calculate(bars)
    if level == "full":
        return engine.calculate_full(bars)
    raise ValueError(f"Unknown result level: {level}")
