from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .clock import ScheduledCall, Scheduler
from .core import Rng
from .problems import DifficultyConfig, SequenceStep, Sign, generate_sequence

logger = logging.getLogger(__name__)

STEP_INTERVAL_S = 1.0


class SequenceState(str, Enum):
    IDLE = "idle"
    DISPLAYING = "displaying"
    AWAITING_ANSWER = "awaiting_answer"
    RESOLVED = "resolved"


@dataclass(frozen=True, slots=True)
class SequenceStepEvent:
    index: int
    value: int
    sign: Sign
    total_steps: int
    text: str


class SequencePlayer:
    """Flash-math round: reveal signed numbers one at a time, then ask for the total.

      IDLE -> DISPLAYING -> AWAITING_ANSWER -> RESOLVED

    Step 0 is revealed as soon as the round starts and each following step
    one interval later. One interval after the last step the player moves to
    AWAITING_ANSWER and calls ``on_complete``.
    """

    def __init__(
        self,
        *,
        scheduler: Scheduler,
        rng: Rng,
        step_interval_s: float = STEP_INTERVAL_S,
        on_step: Callable[[SequenceStepEvent], None] | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        if step_interval_s <= 0.0:
            raise ValueError("step_interval_s must be > 0")
        self._scheduler = scheduler
        self._rng = rng
        self._step_interval_s = float(step_interval_s)
        self._on_step = on_step
        self._on_complete = on_complete

        self._state = SequenceState.IDLE
        self._steps: list[SequenceStep] = []
        self._total = 0
        self._next_index = 0
        self._pending: ScheduledCall | None = None

    @property
    def state(self) -> SequenceState:
        return self._state

    @property
    def steps(self) -> tuple[SequenceStep, ...]:
        return tuple(self._steps)

    @property
    def total(self) -> int:
        return self._total

    @property
    def revealed(self) -> int:
        return self._next_index

    def start(self, length: int, config: DifficultyConfig) -> int:
        """Begin a fresh round. Returns the precomputed total."""

        total = self.prepare(length, config)
        self.play()
        return total

    def prepare(self, length: int, config: DifficultyConfig) -> int:
        """Generate the next round without revealing anything yet."""

        self.cancel()
        self._steps, self._total = generate_sequence(length, config, self._rng)
        self._next_index = 0
        logger.debug("Flash round: %d steps, total %d", len(self._steps), self._total)
        return self._total

    def play(self) -> None:
        if self._state is not SequenceState.IDLE or not self._steps or self._next_index:
            return
        self._state = SequenceState.DISPLAYING
        self._reveal_next()

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._state = SequenceState.IDLE

    def mark_resolved(self) -> None:
        if self._state is SequenceState.AWAITING_ANSWER:
            self._state = SequenceState.RESOLVED

    def _reveal_next(self) -> None:
        self._pending = None
        if self._state is not SequenceState.DISPLAYING:
            return

        if self._next_index >= len(self._steps):
            self._state = SequenceState.AWAITING_ANSWER
            if self._on_complete is not None:
                self._on_complete()
            return

        index = self._next_index
        step = self._steps[index]
        self._next_index += 1
        if self._on_step is not None:
            self._on_step(
                SequenceStepEvent(
                    index=index,
                    value=step.value,
                    sign=step.sign,
                    total_steps=len(self._steps),
                    text=step.display(index),
                )
            )
        self._pending = self._scheduler.call_later(self._step_interval_s, self._reveal_next)
