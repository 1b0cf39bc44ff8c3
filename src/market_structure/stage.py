"""
Stepwise stage protocol shared by batch and incremental computation.

A stage consumes its input list one position at a time. ``step`` may read
any input at or before the current position, appends finalized outputs to
``committed`` and returns its next state. The state must be immutable (a
NamedTuple of plain values) so snapshots can be kept for rollback.
``finish`` derives the still-open tail from the final state without
touching ``committed``.

Because a step never looks ahead, the committed outputs and the state
after position ``p`` depend only on ``items[:p + 1]``. StageRunner relies
on this to replay only the inputs after the first changed position.
"""

import logging
from typing import Generic, List, NamedTuple, Protocol, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

In = TypeVar("In")
Out = TypeVar("Out")
S = TypeVar("S")


class Stage(Protocol[In, Out, S]):
    """A stepwise transform from one derived list to the next."""

    name: str

    def initial_state(self) -> S:
        ...

    def step(self, state: S, items: Sequence[In], position: int, committed: List[Out]) -> S:
        ...

    def finish(self, state: S, items: Sequence[In]) -> List[Out]:
        ...


def run_stage(stage: Stage, items: Sequence) -> List:
    """Run a stage over a whole input list (batch mode)."""
    committed: List = []
    state = stage.initial_state()
    for position in range(len(items)):
        state = stage.step(state, items, position, committed)
    return committed + stage.finish(state, items)


class Checkpoint(NamedTuple):
    """Stage state before processing ``input_pos``, with committed length."""
    input_pos: int
    committed_len: int
    state: object


class StageRunner(Generic[In, Out]):
    """
    Incremental driver for one stage.

    Keeps a rollback log with one checkpoint per consumed input. When
    inputs change from some position onwards, the runner restores the
    checkpoint taken just before that position, truncates committed output
    back to it and replays only the changed inputs. Output committed
    before the checkpoint is never revisited.
    """

    def __init__(self, stage: Stage):
        self.stage = stage
        self._committed: List = []
        self._checkpoints: List[Checkpoint] = [Checkpoint(0, 0, stage.initial_state())]
        self._processed = 0

    @property
    def committed_count(self) -> int:
        return len(self._committed)

    def sync(self, items: Sequence[In], changed_from: int) -> Tuple[List[Out], int]:
        """
        Bring output up to date with ``items``.

        Args:
            items: The full current input list.
            changed_from: Lowest input position that differs from the last
                call (or ``len`` of the old input when only appended).

        Returns:
            Tuple of (full output list, lowest output position that may
            differ from the previous output).
        """
        changed_from = min(changed_from, self._processed, len(items))
        while self._checkpoints[-1].input_pos > changed_from:
            self._checkpoints.pop()

        checkpoint = self._checkpoints[-1]
        del self._committed[checkpoint.committed_len:]
        state = checkpoint.state

        replayed = len(items) - checkpoint.input_pos
        for position in range(checkpoint.input_pos, len(items)):
            state = self.stage.step(state, items, position, self._committed)
            self._checkpoints.append(Checkpoint(position + 1, len(self._committed), state))
        self._processed = len(items)

        if replayed > 1:
            logger.debug(f"{self.stage.name}: replayed {replayed} inputs from {checkpoint.input_pos}")
        return self._committed + self.stage.finish(state, items), checkpoint.committed_len
