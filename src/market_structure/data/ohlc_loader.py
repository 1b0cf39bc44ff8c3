"""
OHLCV CSV loading.

Two layouts are recognised:

- ``semicolon``: ``DD/MM/YYYY;HH:MM:SS;open;high;low;close;volume``,
  no header.
- ``comma``: header row with ``time,open,high,low,close[,volume]``, where
  ``time`` is a Unix epoch in seconds or milliseconds.
- ``comma_headerless``: the same columns in that order with no header
  row, recognised by a numeric first field.

Prices are read as text and converted straight to Decimal so no binary
float ever touches them. Rows are kept in file order: out-of-order and
duplicate timestamps are reported as InvalidInputError rather than
silently repaired.
"""

import logging
import os
from decimal import Decimal, InvalidOperation
from typing import List, Optional

import numpy as np
import pandas as pd

from ..errors import InvalidInputError
from ..types import Bar
from ..validation import validate_bars

logger = logging.getLogger(__name__)

PRICE_COLUMNS = ['open', 'high', 'low', 'close', 'volume']

# Epoch values below this are seconds, not milliseconds.
_MS_THRESHOLD = 10 ** 11


def detect_format(filepath: str) -> str:
    """
    Detect the CSV layout.

    Returns:
        "semicolon", "comma" (with a header row) or "comma_headerless".

    Raises:
        FileNotFoundError, ValueError.
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"File not found: {filepath}")

    with open(filepath, 'r') as f:
        lines = [line.strip() for line in (f.readline() for _ in range(10)) if line.strip()]

    if not lines:
        raise ValueError("File is empty")

    first_line = lines[0]
    if ';' in first_line:
        return "semicolon"
    if ',' in first_line:
        lowered = first_line.lower()
        if "time" in lowered and "open" in lowered:
            return "comma"
        # No header: the first field is already an epoch timestamp.
        if first_line.split(',')[0].strip().isdigit():
            return "comma_headerless"
    raise ValueError(
        "Could not detect CSV format. Expected semicolon-separated rows "
        "or comma-separated rows starting with an epoch time, with or without "
        "a time,open,high,low,close header."
    )


def read_ohlc_frame(filepath: str) -> pd.DataFrame:
    """
    Read a CSV into a DataFrame with ``time`` (epoch ms) and text price columns.

    Raises:
        FileNotFoundError, ValueError.
    """
    fmt = detect_format(filepath)
    text_columns = {c: str for c in PRICE_COLUMNS}

    try:
        if fmt == "semicolon":
            df = pd.read_csv(
                filepath,
                sep=';',
                header=None,
                names=['date', 'clock'] + PRICE_COLUMNS,
                dtype={'date': str, 'clock': str, **text_columns},
                engine='c',
            )
            stamps = pd.to_datetime(df['date'] + ' ' + df['clock'], format='%d/%m/%Y %H:%M:%S', utc=True)
            df['time'] = (stamps - pd.Timestamp('1970-01-01', tz='UTC')) // pd.Timedelta(milliseconds=1)
            df.drop(columns=['date', 'clock'], inplace=True)
        elif fmt == "comma_headerless":
            df = pd.read_csv(filepath, sep=',', header=None, dtype=str, engine='c')
            if df.shape[1] < 5:
                raise ValueError(f"Expected at least 5 columns, found {df.shape[1]}")
            df = df.iloc[:, :6]
            df.columns = (['time'] + PRICE_COLUMNS)[:df.shape[1]]
        else:
            df = pd.read_csv(filepath, sep=',', dtype=str, engine='c')
            df.columns = df.columns.str.strip().str.lower()
            required = {'time', 'open', 'high', 'low', 'close'}
            if not required.issubset(df.columns):
                raise ValueError(f"Missing required columns. Found: {df.columns.tolist()}")

        if fmt != "semicolon":
            if 'volume' not in df.columns:
                df['volume'] = '0'
            times = df['time'].astype('int64')
            df['time'] = np.where(times < _MS_THRESHOLD, times * 1000, times)
    except (KeyError, TypeError, pd.errors.ParserError) as e:
        raise ValueError(f"Error parsing file: {e}") from e

    df['volume'] = df['volume'].fillna('0')
    return df[['time'] + PRICE_COLUMNS]


def check_time_order(times: np.ndarray) -> None:
    """Raise InvalidInputError at the first time that does not increase."""
    if len(times) < 2:
        return
    steps = np.diff(times)
    bad = np.flatnonzero(steps <= 0)
    if bad.size:
        index = int(bad[0]) + 1
        kind = "duplicate timestamp" if steps[bad[0]] == 0 else "timestamp goes backwards"
        raise InvalidInputError(kind, index=index, time=int(times[index]))


def dataframe_to_bars(df: pd.DataFrame) -> List[Bar]:
    """
    Convert a DataFrame with time and text price columns to Bars.

    Raises:
        InvalidInputError: on unparsable prices or bad time order.
    """
    times = df['time'].to_numpy(dtype='int64')
    check_time_order(times)

    bars = []
    for i, row in enumerate(df.itertuples(index=False)):
        try:
            values = {c: Decimal(str(getattr(row, c)).strip()) for c in PRICE_COLUMNS}
        except InvalidOperation as e:
            raise InvalidInputError(f"unparsable price: {e}", index=i, time=int(times[i])) from e
        bars.append(Bar(time=int(times[i]), **values))
    validate_bars(bars)
    return bars


def load_bars(
    filepath: str,
    start_time: Optional[int] = None,
    end_time: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[Bar]:
    """
    Load bars from a CSV file, optionally bounded.

    Args:
        filepath: Path to the CSV file.
        start_time: Inclusive lower bound, epoch ms.
        end_time: Inclusive upper bound, epoch ms.
        limit: Keep at most this many of the most recent bars in range.

    Returns:
        Bars in file order.

    Raises:
        FileNotFoundError, ValueError, InvalidInputError.
    """
    df = read_ohlc_frame(filepath)
    # Order is checked on the whole file before any bounding.
    check_time_order(df['time'].to_numpy(dtype='int64'))

    if start_time is not None:
        df = df[df['time'] >= start_time]
    if end_time is not None:
        df = df[df['time'] <= end_time]
    if limit is not None:
        df = df.tail(limit)

    bars = dataframe_to_bars(df.reset_index(drop=True))
    logger.info(f"Loaded {len(bars)} bars from {os.path.basename(filepath)}")
    return bars
