"""
Structure Engine Configuration

Centralized thresholds for every pipeline stage. The engine never reads
global state; each computation receives one StructureConfig.
"""

from dataclasses import dataclass, asdict, replace
from decimal import Decimal
from typing import Any, Dict

from .errors import ConfigurationError


@dataclass(frozen=True)
class StructureConfig:
    """
    All configurable parameters for structure detection.

    Attributes:
        min_stroke_bars: Minimum merged bars a stroke spans, counting both
            boundary fractal bars. Default 4.
        min_segment_strokes: Minimum strokes in a segment. Default 3.
        min_pivot_units: Minimum consecutive units that must share a price
            band to form a pivot. Default 3.
        divergence_threshold: Level-1 divergence magnitude
            (1 - range ratio) at or above which confidence is high.
            Default 0.3.
        pullback_margin: Fraction of the pivot height a level-3 pullback
            must stay outside the band for high confidence. Default 0.1.
        macd_confirmation: Require a shrinking MACD histogram area in
            addition to the price-range proxy for level-1 divergence.
        macd_fast: Fast EMA period. Default 12.
        macd_slow: Slow EMA period. Default 26.
        macd_signal: Signal EMA period. Default 9.

    Example:
        >>> config = StructureConfig.default()
        >>> config.min_stroke_bars
        4
    """
    min_stroke_bars: int = 4
    min_segment_strokes: int = 3
    min_pivot_units: int = 3
    divergence_threshold: Decimal = Decimal("0.3")
    pullback_margin: Decimal = Decimal("0.1")
    macd_confirmation: bool = False
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9

    def __post_init__(self):
        # Thresholds may arrive as int/str from JSON; normalize to Decimal.
        for name in ("divergence_threshold", "pullback_margin"):
            value = getattr(self, name)
            if isinstance(value, float):
                value = Decimal(str(value))
            elif not isinstance(value, Decimal):
                try:
                    value = Decimal(value)
                except (ArithmeticError, TypeError, ValueError) as e:
                    raise ConfigurationError(f"{name} is not a number: {value!r}") from e
            object.__setattr__(self, name, value)

        if self.min_stroke_bars < 1:
            raise ConfigurationError(f"min_stroke_bars must be >= 1, got {self.min_stroke_bars}")
        if self.min_segment_strokes < 3:
            raise ConfigurationError(f"min_segment_strokes must be >= 3, got {self.min_segment_strokes}")
        if self.min_pivot_units < 3:
            raise ConfigurationError(f"min_pivot_units must be >= 3, got {self.min_pivot_units}")
        if not Decimal("0") < self.divergence_threshold < Decimal("1"):
            raise ConfigurationError(
                f"divergence_threshold must be between 0 and 1, got {self.divergence_threshold}"
            )
        if self.pullback_margin < 0:
            raise ConfigurationError(f"pullback_margin must be >= 0, got {self.pullback_margin}")
        if min(self.macd_fast, self.macd_slow, self.macd_signal) < 1:
            raise ConfigurationError("MACD periods must be positive")
        if self.macd_fast >= self.macd_slow:
            raise ConfigurationError(
                f"macd_fast ({self.macd_fast}) must be less than macd_slow ({self.macd_slow})"
            )

    @classmethod
    def default(cls) -> "StructureConfig":
        """Create a config with default values."""
        return cls()

    def with_overrides(self, **kwargs: Any) -> "StructureConfig":
        """
        Create a new config with some fields replaced.

        Since StructureConfig is frozen, this creates a new instance and
        re-runs validation.

        Example:
            >>> config = StructureConfig.default().with_overrides(min_stroke_bars=5)
            >>> config.min_stroke_bars
            5
        """
        unknown = set(kwargs) - set(asdict(self))
        if unknown:
            raise ConfigurationError(f"Unknown config fields: {sorted(unknown)}")
        return replace(self, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["divergence_threshold"] = str(self.divergence_threshold)
        data["pullback_margin"] = str(self.pullback_margin)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructureConfig":
        """Create from dictionary, applying defaults for missing fields."""
        return cls.default().with_overrides(**data)
