"""
Tests for pivot detection over strokes and segments.
"""

from decimal import Decimal

from conftest import strokes_from_path, t

from market_structure.engine import analyze
from market_structure.pivot_detector import count_oscillations, detect_pivots
from market_structure.structure_config import StructureConfig
from market_structure.types import Direction, PivotLevel, Segment


def make_segments(ranges, confirmed=True):
    """Alternating segments over (low, high) ranges."""
    segments = []
    for i, (low, high) in enumerate(ranges):
        low, high = Decimal(str(low)), Decimal(str(high))
        up = i % 2 == 0
        segments.append(Segment(
            start_index=i * 3,
            end_index=i * 3 + 2,
            direction=Direction.UP if up else Direction.DOWN,
            stroke_count=3,
            high=high,
            low=low,
            start_price=low if up else high,
            end_price=high if up else low,
            start_time=t(i * 10),
            end_time=t(i * 10 + 10),
            confirmed=confirmed,
        ))
    return segments


class TestStrokePivots:
    """Tests for stroke-level pivots."""

    def test_pivot_closed_by_breaking_stroke(self):
        """Five strokes share a band until a stroke leaves it."""
        strokes = strokes_from_path([10, 20, 12, 18, 14, 30, 25])

        pivots = detect_pivots(strokes)

        assert len(pivots) == 1
        pivot = pivots[0]
        assert pivot.level == PivotLevel.STROKE
        assert (pivot.start_index, pivot.end_index) == (0, 4)
        assert pivot.high == Decimal("18")
        assert pivot.low == Decimal("14")
        assert pivot.center == Decimal("16")
        assert pivot.oscillation_count == 5
        assert pivot.unit_count == 5
        assert pivot.start_time == strokes[0].start_time
        assert pivot.end_time == strokes[4].end_time
        assert pivot.confirmed

    def test_pivots_do_not_share_units(self):
        """The next pivot starts at or after the unit that broke the last one."""
        strokes = strokes_from_path([10, 20, 12, 18, 14, 30, 25, 40, 32, 38])

        pivots = detect_pivots(strokes)

        assert [(p.start_index, p.end_index) for p in pivots] == [(0, 4), (6, 8)]
        assert pivots[0].confirmed
        assert not pivots[1].confirmed
        assert (pivots[1].low, pivots[1].high) == (Decimal("32"), Decimal("38"))

    def test_too_few_units(self):
        assert detect_pivots([]) == []
        assert detect_pivots(strokes_from_path([10, 20, 15])) == []

    def test_unconfirmed_stroke_only_in_tail(self):
        """A band completed by an open stroke is reported unconfirmed."""
        strokes = strokes_from_path([10, 20, 12, 18], last_open=True)

        pivots = detect_pivots(strokes)

        assert len(pivots) == 1
        assert not pivots[0].confirmed
        assert (pivots[0].low, pivots[0].high) == (Decimal("12"), Decimal("18"))

    def test_min_pivot_units(self):
        config = StructureConfig.default().with_overrides(min_pivot_units=4)
        strokes = strokes_from_path([10, 20, 12, 18])
        assert detect_pivots(strokes, config=config) == []

    def test_band_is_common_to_every_unit(self, walk_bars):
        """Each pivot's band lies within every unit it spans."""
        result = analyze(walk_bars)

        assert result.stroke_pivots
        previous_end = -1
        for pivot in result.stroke_pivots:
            assert pivot.low < pivot.high
            assert pivot.low < pivot.center < pivot.high
            assert pivot.unit_count >= 3
            assert pivot.start_index > previous_end
            previous_end = pivot.end_index
            for stroke in result.strokes[pivot.start_index:pivot.end_index + 1]:
                assert stroke.low <= pivot.low
                assert stroke.high >= pivot.high


class TestSegmentPivots:
    """Tests for segment-level pivots."""

    def test_disjoint_segments(self):
        """No common band means no pivot."""
        segments = make_segments([(10, 20), (15, 25), (22, 30)])
        assert detect_pivots(segments, PivotLevel.SEGMENT) == []

    def test_open_segment_pivot(self):
        """A band still extendable at the end is reported unconfirmed."""
        segments = make_segments([(10, 20), (15, 25), (12, 22)])

        pivots = detect_pivots(segments, PivotLevel.SEGMENT)

        assert len(pivots) == 1
        assert pivots[0].level == PivotLevel.SEGMENT
        assert (pivots[0].low, pivots[0].high) == (Decimal("15"), Decimal("20"))
        assert not pivots[0].confirmed

    def test_single_point_band_rejected(self):
        """Units touching at one price do not form a pivot."""
        segments = make_segments([(10, 20), (20, 30), (15, 25)])
        assert detect_pivots(segments, PivotLevel.SEGMENT) == []


class TestOscillations:
    """Tests for count_oscillations."""

    def test_counts_crossings_of_center(self):
        strokes = strokes_from_path([10, 20, 16, 30])
        # Only 10->20 crosses 15.
        assert count_oscillations(strokes, Decimal("15")) == 1
        assert count_oscillations(strokes, Decimal("18")) == 3

    def test_touching_center_does_not_count(self):
        strokes = strokes_from_path([15, 20])
        assert count_oscillations(strokes, Decimal("15")) == 0

