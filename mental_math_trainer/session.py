"""Practice-session state machine.

A session issues one problem at a time, accepts exactly one resolution for it
(an answer, a skip, or a timeout), records the outcome, and after a short
presentation delay moves on to the next problem. Chain mode swaps the
immediate problem for a flash round played by :class:`SequencePlayer`.

    IDLE -> ACTIVE -> ENDED

While ACTIVE the current problem is DISPLAYING (chain only), then
AWAITING_ANSWER, then RESOLVED until the delay elapses.

All time comes from the injected clock and scheduler. Every transition cancels
the timer tick, the pending advance and any flash reveal before starting
anything new, so a stale callback can never act on the wrong problem.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from .clock import Clock, ScheduledCall, Scheduler
from .core import Rng, SeededRng, round_half_up, try_parse_int
from .problems import OperationKind, Problem, generate_problem
from .results import SessionSummary, summarize_session
from .sequence import SequencePlayer, SequenceState, SequenceStepEvent, STEP_INTERVAL_S
from .settings import Settings
from .stats import StatisticsEngine
from .timer import ProblemTimer, TimerTick

logger = logging.getLogger(__name__)

DEFAULT_TIME_LIMIT_S = 30.0
SUBMIT_DELAY_S = 0.8
SKIP_DELAY_S = 0.6
TIMEOUT_DELAY_S = 1.0


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ENDED = "ended"


class ProblemState(str, Enum):
    DISPLAYING = "displaying"
    AWAITING_ANSWER = "awaiting_answer"
    RESOLVED = "resolved"


class ResolutionReason(str, Enum):
    ANSWERED = "answered"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Per-session configuration: generator settings plus the answer deadline.

    ``time_limit_s`` of None or 0 means unlimited time per problem.
    """

    settings: Settings = field(default_factory=Settings)
    time_limit_s: float | None = DEFAULT_TIME_LIMIT_S


@dataclass(frozen=True, slots=True)
class AnswerResolution:
    problem: Problem
    correct: bool
    elapsed_s: float
    submitted_answer: int | None
    reason: ResolutionReason

    @property
    def correct_answer(self) -> int:
        return self.problem.answer

    def feedback(self) -> str:
        if self.correct:
            return f"Correct! {self.elapsed_s:.2f}s"
        if self.reason is ResolutionReason.SKIPPED:
            return f"Skipped. Answer: {self.problem.answer}"
        if self.reason is ResolutionReason.TIMED_OUT:
            return f"Time's up! Answer: {self.problem.answer}"
        return f"Wrong! Answer: {self.problem.answer}"


@dataclass(frozen=True, slots=True)
class LiveStats:
    correct: int
    total: int
    accuracy_percent: int
    average_latency_s: float | None


class SessionListener:
    """Presentation hooks. Subclass and override what you need."""

    def on_problem_changed(self, problem: Problem, accepting_input: bool) -> None:
        pass

    def on_timer_tick(self, tick: TimerTick) -> None:
        pass

    def on_answer_resolved(self, resolution: AnswerResolution) -> None:
        pass

    def on_sequence_step(self, step: SequenceStepEvent) -> None:
        pass

    def on_session_ended(self, summary: SessionSummary) -> None:
        pass


class SessionController:
    def __init__(
        self,
        *,
        clock: Clock,
        scheduler: Scheduler,
        stats: StatisticsEngine,
        rng: Rng | None = None,
        listener: SessionListener | None = None,
        wall_clock: Callable[[], float] = time.time,
        step_interval_s: float = STEP_INTERVAL_S,
        submit_delay_s: float = SUBMIT_DELAY_S,
        skip_delay_s: float = SKIP_DELAY_S,
        timeout_delay_s: float = TIMEOUT_DELAY_S,
    ) -> None:
        if min(submit_delay_s, skip_delay_s, timeout_delay_s) < 0.0:
            raise ValueError("presentation delays must be >= 0")

        self._clock = clock
        self._scheduler = scheduler
        self._stats = stats
        self._rng: Rng = rng if rng is not None else SeededRng()
        self._listener = listener if listener is not None else SessionListener()
        self._wall_clock = wall_clock
        self._submit_delay_s = float(submit_delay_s)
        self._skip_delay_s = float(skip_delay_s)
        self._timeout_delay_s = float(timeout_delay_s)

        self._timer = ProblemTimer(clock=clock, scheduler=scheduler)
        self._sequence = SequencePlayer(
            scheduler=scheduler,
            rng=self._rng,
            step_interval_s=step_interval_s,
            on_step=self._on_sequence_step,
            on_complete=self._on_sequence_complete,
        )

        self._state = SessionState.IDLE
        self._mode: OperationKind | None = None
        self._config = SessionConfig()
        self._current: Problem | None = None
        self._problem_state: ProblemState | None = None
        self._pending_advance: ScheduledCall | None = None

        self._correct = 0
        self._total = 0
        self._latencies: list[float] = []
        self._outcomes: list[AnswerResolution] = []
        self._summary: SessionSummary | None = None

    # -- Read-only views -----------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def listener(self) -> SessionListener:
        return self._listener

    @listener.setter
    def listener(self, value: SessionListener | None) -> None:
        self._listener = value if value is not None else SessionListener()

    @property
    def mode(self) -> OperationKind | None:
        return self._mode

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def current_problem(self) -> Problem | None:
        return self._current

    @property
    def problem_state(self) -> ProblemState | None:
        return self._problem_state

    @property
    def sequence(self) -> SequencePlayer:
        return self._sequence

    @property
    def timer(self) -> ProblemTimer:
        return self._timer

    @property
    def outcomes(self) -> tuple[AnswerResolution, ...]:
        return tuple(self._outcomes)

    @property
    def summary(self) -> SessionSummary | None:
        return self._summary

    def live_stats(self) -> LiveStats:
        accuracy = 0 if self._total == 0 else round_half_up(self._correct / self._total * 100.0)
        mean = None if not self._latencies else sum(self._latencies) / len(self._latencies)
        return LiveStats(
            correct=self._correct,
            total=self._total,
            accuracy_percent=accuracy,
            average_latency_s=mean,
        )

    # -- Transitions ---------------------------------------------------------
    def start_session(self, mode: OperationKind | str, config: SessionConfig | None = None) -> None:
        kind = OperationKind.parse(mode)
        if kind is None:
            raise ValueError(f"unknown practice mode: {mode!r}")

        self._cancel_pending()
        self._mode = kind
        self._config = config if config is not None else SessionConfig()
        self._correct = 0
        self._total = 0
        self._latencies = []
        self._outcomes = []
        self._summary = None
        self._state = SessionState.ACTIVE
        logger.info("Session started: %s", kind.value)
        self._next_problem()

    def submit_answer(self, raw: str) -> bool:
        """Submit typed input for the current problem. Returns True if accepted."""

        if self._sequence.state is SequenceState.DISPLAYING:
            return False
        if not self._awaiting_answer():
            return False

        value = try_parse_int(raw)
        if value is None:
            return False

        assert self._current is not None
        elapsed = self._timer.stop()
        self._resolve(
            correct=value == self._current.answer,
            elapsed_s=elapsed,
            submitted=value,
            reason=ResolutionReason.ANSWERED,
            delay_s=self._submit_delay_s,
        )
        return True

    def skip(self) -> bool:
        if not self._awaiting_answer():
            return False
        elapsed = self._timer.stop()
        self._resolve(
            correct=False,
            elapsed_s=elapsed,
            submitted=None,
            reason=ResolutionReason.SKIPPED,
            delay_s=self._skip_delay_s,
        )
        return True

    def timeout(self) -> bool:
        if not self._awaiting_answer():
            return False
        elapsed = self._timer.stop()
        self._resolve(
            correct=False,
            elapsed_s=elapsed,
            submitted=None,
            reason=ResolutionReason.TIMED_OUT,
            delay_s=self._timeout_delay_s,
        )
        return True

    def end_session(self) -> SessionSummary | None:
        if self._state is not SessionState.ACTIVE:
            return None
        assert self._mode is not None

        self._cancel_pending()
        summary = summarize_session(
            mode=self._mode.value,
            correct=self._correct,
            total=self._total,
            latencies_s=self._latencies,
        )
        self._state = SessionState.ENDED
        self._current = None
        self._problem_state = None
        self._summary = summary
        self._stats.record_session(summary.to_record(timestamp=self._wall_clock()))
        self._listener.on_session_ended(summary)
        return summary

    # -- Internals -------------------------------------------------------------
    def _awaiting_answer(self) -> bool:
        return (
            self._state is SessionState.ACTIVE
            and self._problem_state is ProblemState.AWAITING_ANSWER
            and self._current is not None
        )

    def _cancel_pending(self) -> None:
        self._timer.stop()
        if self._pending_advance is not None:
            self._pending_advance.cancel()
            self._pending_advance = None
        self._sequence.cancel()

    def _next_problem(self) -> None:
        self._pending_advance = None
        if self._state is not SessionState.ACTIVE:
            return
        assert self._mode is not None

        self._cancel_pending()
        settings = self._config.settings
        if self._mode is OperationKind.CHAIN:
            total = self._sequence.prepare(settings.chain_length, settings)
            self._current = Problem.chain(total)
            self._problem_state = ProblemState.DISPLAYING
            self._listener.on_problem_changed(self._current, False)
            self._sequence.play()
            return

        self._current = generate_problem(self._mode, settings, self._rng)
        self._problem_state = ProblemState.AWAITING_ANSWER
        self._listener.on_problem_changed(self._current, True)
        self._start_timer()

    def _start_timer(self) -> None:
        self._timer.start(
            deadline_s=self._config.time_limit_s,
            on_tick=self._listener.on_timer_tick,
            on_timeout=self.timeout,
        )

    def _on_sequence_step(self, step: SequenceStepEvent) -> None:
        self._listener.on_sequence_step(step)

    def _on_sequence_complete(self) -> None:
        if self._state is not SessionState.ACTIVE or self._current is None:
            return
        self._problem_state = ProblemState.AWAITING_ANSWER
        self._listener.on_problem_changed(self._current, True)
        self._start_timer()

    def _resolve(
        self,
        *,
        correct: bool,
        elapsed_s: float,
        submitted: int | None,
        reason: ResolutionReason,
        delay_s: float,
    ) -> None:
        assert self._current is not None
        assert self._mode is not None

        self._total += 1
        if correct:
            self._correct += 1
            self._latencies.append(elapsed_s)

        resolution = AnswerResolution(
            problem=self._current,
            correct=correct,
            elapsed_s=elapsed_s,
            submitted_answer=submitted,
            reason=reason,
        )
        self._outcomes.append(resolution)
        self._problem_state = ProblemState.RESOLVED
        self._sequence.mark_resolved()
        self._stats.record_outcome(
            mode=self._mode,
            problem=self._current,
            correct=correct,
            elapsed_s=elapsed_s,
            submitted=submitted,
        )
        self._listener.on_answer_resolved(resolution)

        if self._pending_advance is not None:
            self._pending_advance.cancel()
        self._pending_advance = self._scheduler.call_later(delay_s, self._next_problem)
