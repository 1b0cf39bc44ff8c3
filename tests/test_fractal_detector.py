"""
Tests for fractal detection on merged bars.
"""

from decimal import Decimal

from conftest import bars_from_mids, random_walk_bars

from market_structure.candle_merger import merge_bars
from market_structure.fractal_detector import detect_fractals, fractal_at, is_contradicted
from market_structure.types import FractalKind


def fractals_for(mids):
    return detect_fractals(merge_bars(bars_from_mids(mids)))


class TestFractalAt:
    """Tests for the 3-bar pattern."""

    def test_top_pattern(self):
        merged = merge_bars(bars_from_mids([10, 12, 11]))
        fractal = fractal_at(merged, 1)
        assert fractal.kind == FractalKind.TOP
        assert fractal.price == Decimal("13")

    def test_bottom_pattern(self):
        merged = merge_bars(bars_from_mids([12, 10, 11]))
        fractal = fractal_at(merged, 1)
        assert fractal.kind == FractalKind.BOTTOM
        assert fractal.price == Decimal("9")

    def test_edges_have_no_fractal(self):
        merged = merge_bars(bars_from_mids([12, 10, 11]))
        assert fractal_at(merged, 0) is None
        assert fractal_at(merged, 2) is None

    def test_contradiction(self):
        """A later bar beyond the extreme contradicts the fractal."""
        merged = merge_bars(bars_from_mids([10, 12, 11, 13]))
        fractal = fractal_at(merged, 1)
        assert is_contradicted(fractal, merged[3])
        assert not is_contradicted(fractal, merged[2])


class TestDetectFractals:
    """Tests for the alternation filter and confirmation."""

    def test_single_peak(self):
        """A rise then fall gives one confirmed top and nothing else."""
        fractals = fractals_for([10, 12, 14, 16, 14, 12, 10])

        assert len(fractals) == 1
        assert fractals[0].kind == FractalKind.TOP
        assert fractals[0].index == 3
        assert fractals[0].price == Decimal("17")
        assert fractals[0].confirmed

    def test_fewer_than_three_bars(self):
        assert fractals_for([]) == []
        assert fractals_for([10]) == []
        assert fractals_for([10, 12]) == []

    def test_newest_candidate_is_unconfirmed(self):
        """A pattern with no confirming bar is reported unconfirmed."""
        fractals = fractals_for([10, 12, 14, 12])

        assert len(fractals) == 1
        assert fractals[0].index == 2
        assert fractals[0].kind == FractalKind.TOP
        assert not fractals[0].confirmed

    def test_contradicted_candidate_dropped(self):
        """A top re-extended by the confirming bar never appears."""
        fractals = fractals_for([10, 12, 14, 12, 16, 14, 12])

        assert [f.index for f in fractals] == [3]
        assert fractals[0].kind == FractalKind.BOTTOM

    def test_more_extreme_same_kind_replaces(self):
        """An adjacent bottom is skipped and the higher top wins."""
        fractals = fractals_for([10, 12, 14, 12, 13, 16, 14, 12])

        assert len(fractals) == 1
        assert fractals[0].index == 5
        assert fractals[0].price == Decimal("17")

    def test_alternation_and_spacing(self):
        """Fractals alternate kind, move forward and are separated."""
        fractals = detect_fractals(merge_bars(random_walk_bars(400, seed=5)))

        assert len(fractals) > 4
        for a, b in zip(fractals, fractals[1:]):
            assert a.kind != b.kind
            assert b.index - a.index > 1
        assert all(f.confirmed for f in fractals[:-1])
