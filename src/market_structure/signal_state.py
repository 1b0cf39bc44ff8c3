"""
Per-track signal state machine.

Each side (buy, sell) has its own track. A track starts awaiting a
level-1 point, then requires level 2 and level 3 in that order. A level-1
point of the opposite side resets the track to idle, dropping any pending
expectation. A failed first pullback after the level-1 point invalidates
it and the track waits for a fresh level 1. ``advance`` is a pure
function so the transitions can be tested without running the pipeline.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from .types import PointType


class TrackPhase(str, Enum):
    AWAITING_L1 = "awaiting_l1"
    AWAITING_L2 = "awaiting_l2"
    AWAITING_L3 = "awaiting_l3"
    IDLE = "idle"


@dataclass(frozen=True)
class TrackState:
    """
    State of one signal track.

    ``anchor_price`` and ``anchor_stroke`` record the level-1 point the
    track is following; they are None while awaiting level 1 or idle.
    """
    side: PointType
    phase: TrackPhase = TrackPhase.AWAITING_L1
    anchor_price: Optional[Decimal] = None
    anchor_stroke: Optional[int] = None

    @classmethod
    def start(cls, side: PointType) -> "TrackState":
        return cls(side=side)

    @property
    def expects_level(self) -> Optional[int]:
        """Next level this track accepts besides a fresh level 1."""
        if self.phase == TrackPhase.AWAITING_L2:
            return 2
        if self.phase == TrackPhase.AWAITING_L3:
            return 3
        return None


@dataclass(frozen=True)
class SignalEvent:
    """
    A candidate trading point offered to the tracks.

    ``failed`` marks a level-2 pullback that broke the level-1 extreme or
    the pivot band; it never becomes a trading point.
    """
    type: PointType
    level: int
    price: Decimal
    stroke_index: int
    failed: bool = False

    @classmethod
    def invalidation(cls, side: PointType, price: Decimal, stroke_index: int) -> "SignalEvent":
        return cls(side, 2, price, stroke_index, failed=True)


def advance(state: TrackState, event: SignalEvent) -> Tuple[TrackState, bool]:
    """
    Apply one event to a track.

    Returns:
        Tuple of (next state, whether this track accepted the event).
    """
    if event.level == 1:
        if event.type == state.side:
            return TrackState(state.side, TrackPhase.AWAITING_L2, event.price, event.stroke_index), True
        if state.phase == TrackPhase.IDLE:
            return state, False
        return TrackState(state.side, TrackPhase.IDLE), False

    if event.type != state.side:
        return state, False

    if event.failed:
        if state.phase == TrackPhase.AWAITING_L2:
            return TrackState(state.side, TrackPhase.AWAITING_L1), False
        return state, False

    if event.level == 2 and state.phase == TrackPhase.AWAITING_L2:
        return TrackState(state.side, TrackPhase.AWAITING_L3, state.anchor_price, state.anchor_stroke), True
    if event.level == 3 and state.phase == TrackPhase.AWAITING_L3:
        return TrackState(state.side, TrackPhase.IDLE), True
    return state, False
