"""
Tests for the structure engine.

Verifies:
- Worked examples from merged bars through trading points
- Input validation before any stage runs
- Basic vs full result levels and JSON output
- Determinism over generated data
"""

import json
from decimal import Decimal

import pytest

from conftest import bars_from_mids, make_bar, random_walk_bars

from market_structure.engine import StructureEngine, StructureResult, analyze
from market_structure.errors import InvalidInputError
from market_structure.types import Bar, Direction, FractalKind, PivotLevel


class TestWorkedExamples:
    """End-to-end scenarios."""

    def test_no_inclusion(self):
        raw = [(10, 12, 9, 11), (11, 13, 10, 12), (12, 11, 9, 10), (9, 10, 7, 8), (8, 11, 7, 10)]
        bars = [make_bar(i, *ohlc) for i, ohlc in enumerate(raw)]

        merged = StructureEngine().merged_bars(bars)

        assert len(merged) == 5
        assert all(m.source_count == 1 for m in merged)

    def test_inside_bar(self):
        bars = [make_bar(0, 9, 10, 8, 9), make_bar(1, 10, 12, 9, 11), make_bar(2, 11, 11.5, 9.5, 10)]

        merged = StructureEngine().merged_bars(bars)

        assert len(merged) == 2
        assert merged[1].source_count == 2

    def test_single_peak(self):
        result = analyze(bars_from_mids([10, 12, 14, 16, 14, 12, 10]))

        assert [(f.index, f.kind) for f in result.fractals] == [(3, FractalKind.TOP)]
        assert result.strokes == ()
        assert result.segments == ()
        assert result.trading_points == ()

    def test_four_fractals_three_strokes(self, example_4_bars):
        result = analyze(example_4_bars)

        assert [(f.index, f.kind) for f in result.fractals] == [
            (2, FractalKind.BOTTOM), (6, FractalKind.TOP), (10, FractalKind.BOTTOM), (14, FractalKind.TOP)
        ]
        assert all(f.confirmed for f in result.fractals)
        assert [s.direction for s in result.strokes] == [Direction.UP, Direction.DOWN, Direction.UP]
        assert [s.bar_count for s in result.strokes] == [5, 5, 5]
        assert [s.confirmed for s in result.strokes] == [True, True, False]
        assert result.trading_points == ()

        assert len(result.segments) == 1
        assert (result.segments[0].start_index, result.segments[0].end_index) == (0, 2)
        assert not result.segments[0].confirmed

        assert len(result.pivots) == 1
        pivot = result.pivots[0]
        assert pivot.level == PivotLevel.STROKE
        assert (pivot.low, pivot.high, pivot.center) == (Decimal("10"), Decimal("19"), Decimal("14.5"))
        assert pivot.oscillation_count == 3
        assert not pivot.confirmed

    def test_empty_input(self):
        engine = StructureEngine()

        result = engine.calculate_full([])

        assert result.bar_count == 0
        assert result.merged_bars == ()
        assert result.fractals == ()
        assert result.strokes == ()
        assert result.segments == ()
        assert result.pivots == ()
        assert result.trading_points == ()
        assert engine.merged_bars([]) == []
        assert engine.pivots([]) == []

    def test_high_below_low_rejected(self):
        bars = bars_from_mids([10, 12, 14]) + [make_bar(3, 12, 11, 13, 12)]

        with pytest.raises(InvalidInputError, match="below low") as excinfo:
            analyze(bars)
        assert excinfo.value.index == 3


class TestValidation:
    """Tests for input rejection."""

    def test_float_price_rejected(self):
        bar = Bar(time=1, open=1.0, high=Decimal("2"), low=Decimal("0"), close=Decimal("1"))
        with pytest.raises(InvalidInputError, match="float"):
            analyze([bar])

    def test_duplicate_timestamp_rejected(self):
        bars = [make_bar(0, 1, 2, 0, 1), make_bar(1, 1, 2, 0, 1, time=make_bar(0, 1, 2, 0, 1).time)]
        with pytest.raises(InvalidInputError, match="duplicate"):
            StructureEngine().calculate(bars)

    def test_backwards_timestamp_rejected(self):
        bars = [make_bar(5, 1, 2, 0, 1), make_bar(4, 1, 2, 0, 1)]
        with pytest.raises(InvalidInputError, match="backwards") as excinfo:
            StructureEngine().strokes(bars)
        assert excinfo.value.index == 1

    def test_non_finite_rejected(self):
        bar = make_bar(0, 1, 2, 0, "NaN")
        with pytest.raises(InvalidInputError, match="finite"):
            analyze([bar])


class TestResultLevels:
    """Tests for basic vs full results."""

    def test_basic_omits_higher_structure(self, example_4_bars):
        result = analyze(example_4_bars, level="basic")

        assert result.level == "basic"
        assert len(result.strokes) == 3
        assert result.segments == ()
        assert result.pivots == ()
        assert set(result.to_dict()) == {"level", "bar_count", "merged_bars", "fractals", "strokes"}

    def test_full_dict_keys(self, example_4_bars):
        data = analyze(example_4_bars).to_dict()
        assert {"segments", "pivots", "trading_points"} <= set(data)

    def test_json_uses_strings_for_prices(self, example_4_bars):
        data = json.loads(analyze(example_4_bars).to_json())

        assert data["bar_count"] == 17
        assert data["fractals"][0]["kind"] == "bottom"
        assert data["fractals"][0]["price"] == "9"
        assert data["pivots"][0]["level"] == "stroke"

    def test_unknown_level(self, example_4_bars):
        with pytest.raises(ValueError, match="Unknown result level"):
            analyze(example_4_bars, level="everything")

    def test_query_methods_agree(self, example_4_bars):
        engine = StructureEngine()
        full = engine.calculate_full(example_4_bars)

        assert engine.fractals(example_4_bars) == list(full.fractals)
        assert engine.strokes(example_4_bars) == list(full.strokes)
        assert engine.segments(example_4_bars) == list(full.segments)
        assert engine.pivots(example_4_bars, PivotLevel.STROKE) == full.stroke_pivots
        assert engine.pivots(example_4_bars, "segment") == full.segment_pivots
        assert engine.trading_points(example_4_bars) == list(full.trading_points)

    def test_result_sequences_are_read_only(self, example_4_bars):
        """Results are shared with cache readers, so their sequences are tuples."""
        result = analyze(example_4_bars)

        assert isinstance(result.strokes, tuple)
        assert isinstance(result.trading_points, tuple)
        with pytest.raises(AttributeError):
            result.strokes.append(result.strokes[0])

    def test_result_copies_its_inputs(self, example_4_bars):
        strokes = StructureEngine().strokes(example_4_bars)
        result = StructureResult("basic", 17, [], [], strokes)
        strokes.clear()
        assert len(result.strokes) == 3


class TestDeterminism:
    """Properties over generated data."""

    def test_idempotent(self, walk_bars):
        engine = StructureEngine()
        first = engine.calculate_full(walk_bars)
        second = engine.calculate_full(list(walk_bars))

        assert isinstance(first, StructureResult)
        assert first == second
        assert first.to_json() == second.to_json()

    @pytest.mark.parametrize("seed", [2, 8, 13])
    def test_segments_cover_three_strokes(self, seed):
        result = analyze(random_walk_bars(500, seed=seed))

        previous_end = -1
        for segment in result.segments:
            assert segment.stroke_count >= 3
            assert segment.stroke_count == segment.end_index - segment.start_index + 1
            assert segment.start_index > previous_end
            previous_end = segment.end_index
        assert all(s.confirmed for s in result.segments[:-1])
