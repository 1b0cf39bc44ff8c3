"""Statistics view derived purely from a StructureResult."""

from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Dict

from .engine import StructureResult
from .types import Direction, FractalKind, PivotLevel, PointType


@dataclass(frozen=True)
class StructureSummary:
    """Counts per kind, direction, type and level."""
    level: str
    bar_count: int
    merged_bar_count: int
    fractal_count: int
    top_fractal_count: int
    bottom_fractal_count: int
    stroke_count: int
    up_stroke_count: int
    down_stroke_count: int
    segment_count: int = 0
    up_segment_count: int = 0
    down_segment_count: int = 0
    pivot_count: int = 0
    stroke_pivot_count: int = 0
    segment_pivot_count: int = 0
    trading_point_count: int = 0
    buy_point_count: int = 0
    sell_point_count: int = 0
    points_by_level: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def summarize(result: StructureResult) -> StructureSummary:
    """Derive counts from a result; holds no state of its own."""
    fractal_kinds = Counter(f.kind for f in result.fractals)
    stroke_dirs = Counter(s.direction for s in result.strokes)
    segment_dirs = Counter(s.direction for s in result.segments)
    pivot_levels = Counter(p.level for p in result.pivots)
    point_types = Counter(t.type for t in result.trading_points)
    point_levels = Counter(t.level for t in result.trading_points)

    return StructureSummary(
        level=result.level,
        bar_count=result.bar_count,
        merged_bar_count=len(result.merged_bars),
        fractal_count=len(result.fractals),
        top_fractal_count=fractal_kinds[FractalKind.TOP],
        bottom_fractal_count=fractal_kinds[FractalKind.BOTTOM],
        stroke_count=len(result.strokes),
        up_stroke_count=stroke_dirs[Direction.UP],
        down_stroke_count=stroke_dirs[Direction.DOWN],
        segment_count=len(result.segments),
        up_segment_count=segment_dirs[Direction.UP],
        down_segment_count=segment_dirs[Direction.DOWN],
        pivot_count=len(result.pivots),
        stroke_pivot_count=pivot_levels[PivotLevel.STROKE],
        segment_pivot_count=pivot_levels[PivotLevel.SEGMENT],
        trading_point_count=len(result.trading_points),
        buy_point_count=point_types[PointType.BUY],
        sell_point_count=point_types[PointType.SELL],
        points_by_level={f"level_{lvl}": point_levels[lvl] for lvl in (1, 2, 3)},
    )


def format_summary(summary: StructureSummary) -> str:
    """Human-readable multi-line summary for the CLI."""
    lines = [
        f"Bars: {summary.bar_count} raw, {summary.merged_bar_count} merged",
        f"Fractals: {summary.fractal_count} "
        f"({summary.top_fractal_count} top, {summary.bottom_fractal_count} bottom)",
        f"Strokes: {summary.stroke_count} "
        f"({summary.up_stroke_count} up, {summary.down_stroke_count} down)",
    ]
    if summary.level == "full":
        lines.extend([
            f"Segments: {summary.segment_count} "
            f"({summary.up_segment_count} up, {summary.down_segment_count} down)",
            f"Pivots: {summary.pivot_count} "
            f"({summary.stroke_pivot_count} stroke-level, {summary.segment_pivot_count} segment-level)",
            f"Trading points: {summary.trading_point_count} "
            f"({summary.buy_point_count} buy, {summary.sell_point_count} sell)",
        ])
        for name, count in summary.points_by_level.items():
            lines.append(f"  {name.replace('_', ' ')}: {count}")
    return "\n".join(lines)
