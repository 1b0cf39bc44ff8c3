"""Bar loading and bar sources."""

from .bar_source import BarSource, CsvBarSource, InMemoryBarSource, bound_bars
from .ohlc_loader import dataframe_to_bars, detect_format, load_bars

__all__ = [
    "BarSource",
    "CsvBarSource",
    "InMemoryBarSource",
    "bound_bars",
    "dataframe_to_bars",
    "detect_format",
    "load_bars",
]
