"""Bar sequence validation, run before any stage."""

from decimal import Decimal
from typing import Optional, Sequence

from .errors import InvalidInputError
from .types import Bar

_PRICE_FIELDS = ("open", "high", "low", "close", "volume")


def validate_bar(bar: Bar, index: int, previous: Optional[Bar] = None) -> None:
    """
    Check a single bar, and its ordering against the bar before it.

    Raises:
        InvalidInputError: on float or non-decimal prices, high < low,
            or a time that does not strictly increase.
    """
    for name in _PRICE_FIELDS:
        value = getattr(bar, name)
        if isinstance(value, float):
            raise InvalidInputError(
                f"{name} is a binary float ({value!r}); use Decimal prices",
                index=index, time=bar.time,
            )
        if not isinstance(value, Decimal):
            raise InvalidInputError(
                f"{name} must be Decimal, got {type(value).__name__}",
                index=index, time=bar.time,
            )
        if not value.is_finite():
            raise InvalidInputError(f"{name} is not finite: {value}", index=index, time=bar.time)

    if bar.high < bar.low:
        raise InvalidInputError(
            f"high {bar.high} is below low {bar.low}", index=index, time=bar.time
        )

    if previous is not None:
        if bar.time == previous.time:
            raise InvalidInputError("duplicate timestamp", index=index, time=bar.time)
        if bar.time < previous.time:
            raise InvalidInputError(
                f"timestamp goes backwards from {previous.time}", index=index, time=bar.time
            )


def validate_bars(bars: Sequence[Bar], allow_empty: bool = True) -> None:
    """
    Validate a whole batch, failing fast on the first bad bar.

    An empty sequence is valid by default (every stage then returns an
    empty result); callers that require data pass ``allow_empty=False``.
    """
    if not bars:
        if not allow_empty:
            raise InvalidInputError("bar sequence is empty")
        return

    previous = None
    for i, bar in enumerate(bars):
        validate_bar(bar, i, previous)
        previous = bar
