# Market Structure Module
#
# Hierarchical decomposition of OHLCV bars into merged candles, fractals,
# strokes, segments and pivots, with buy/sell trading point classification.

from .candle_merger import CandleMerger, merge_bars
from .engine import StructureEngine, StructureResult, analyze
from .errors import ConfigurationError, InvalidInputError, StructureError
from .fractal_detector import detect_fractals
from .incremental import IncrementalAnalyzer
from .pivot_detector import detect_pivots
from .segment_builder import build_segments
from .signal_classifier import classify_signals
from .stroke_builder import build_strokes
from .structure_config import StructureConfig
from .summary import StructureSummary, summarize
from .types import (
    Bar,
    Confidence,
    Direction,
    Fractal,
    FractalKind,
    MergedBar,
    Pivot,
    PivotLevel,
    PointType,
    Segment,
    Stroke,
    TradingPoint,
)

__all__ = [
    "Bar",
    "CandleMerger",
    "Confidence",
    "ConfigurationError",
    "Direction",
    "Fractal",
    "FractalKind",
    "IncrementalAnalyzer",
    "InvalidInputError",
    "MergedBar",
    "Pivot",
    "PivotLevel",
    "PointType",
    "Segment",
    "Stroke",
    "StructureConfig",
    "StructureEngine",
    "StructureError",
    "StructureResult",
    "StructureSummary",
    "TradingPoint",
    "analyze",
    "build_segments",
    "build_strokes",
    "classify_signals",
    "detect_fractals",
    "detect_pivots",
    "merge_bars",
    "summarize",
]
