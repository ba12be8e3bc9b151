from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .clock import Clock, ScheduledCall, Scheduler
from .core import clamp01

TICK_INTERVAL_S = 0.05
WARNING_PROGRESS = 0.6
DANGER_PROGRESS = 0.8


class TimerLevel(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    DANGER = "danger"


@dataclass(frozen=True, slots=True)
class TimerTick:
    elapsed_s: float
    progress: float | None
    level: TimerLevel


def level_for_progress(progress: float | None) -> TimerLevel:
    if progress is None:
        return TimerLevel.NORMAL
    if progress > DANGER_PROGRESS:
        return TimerLevel.DANGER
    if progress > WARNING_PROGRESS:
        return TimerLevel.WARNING
    return TimerLevel.NORMAL


class ProblemTimer:
    """Stopwatch for the problem currently on screen.

    ``start`` records the reference instant and begins periodic ticks;
    ``stop`` returns elapsed seconds and clears it. With a deadline, the
    ``on_timeout`` callback fires exactly once when elapsed reaches it, after
    which the timer stops itself and ticks cease.
    """

    def __init__(
        self,
        *,
        clock: Clock,
        scheduler: Scheduler,
        tick_interval_s: float = TICK_INTERVAL_S,
    ) -> None:
        if tick_interval_s <= 0.0:
            raise ValueError("tick_interval_s must be > 0")
        self._clock = clock
        self._scheduler = scheduler
        self._tick_interval_s = float(tick_interval_s)

        self._started_at_s: float | None = None
        self._deadline_s: float | None = None
        self._tick_handle: ScheduledCall | None = None
        self._on_tick: Callable[[TimerTick], None] | None = None
        self._on_timeout: Callable[[], None] | None = None
        self._run_id = 0

    @property
    def running(self) -> bool:
        return self._started_at_s is not None

    @property
    def deadline_s(self) -> float | None:
        return self._deadline_s

    def start(
        self,
        *,
        deadline_s: float | None = None,
        on_tick: Callable[[TimerTick], None] | None = None,
        on_timeout: Callable[[], None] | None = None,
    ) -> None:
        self._cancel_tick()
        self._run_id += 1
        self._started_at_s = self._clock.now()
        self._deadline_s = float(deadline_s) if deadline_s is not None and deadline_s > 0 else None
        self._on_tick = on_tick
        self._on_timeout = on_timeout
        self._tick_handle = self._scheduler.call_later(self._tick_interval_s, self._tick)

    def elapsed_s(self) -> float:
        if self._started_at_s is None:
            return 0.0
        return max(0.0, self._clock.now() - self._started_at_s)

    def progress(self) -> float | None:
        if self._deadline_s is None or self._started_at_s is None:
            return None
        return clamp01(self.elapsed_s() / self._deadline_s)

    def stop(self) -> float:
        """Stop the timer. Returns elapsed seconds, or 0 when not running."""

        self._cancel_tick()
        if self._started_at_s is None:
            return 0.0
        elapsed = self.elapsed_s()
        self._started_at_s = None
        self._on_tick = None
        self._on_timeout = None
        return elapsed

    def _cancel_tick(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

    def _tick(self) -> None:
        self._tick_handle = None
        if self._started_at_s is None:
            return

        elapsed = self.elapsed_s()
        progress = self.progress()
        if self._on_tick is not None:
            self._on_tick(TimerTick(elapsed_s=elapsed, progress=progress, level=level_for_progress(progress)))

        if self._deadline_s is not None and elapsed >= self._deadline_s:
            self._expire()
            return

        self._tick_handle = self._scheduler.call_later(self._tick_interval_s, self._tick)

    def _expire(self) -> None:
        run_id = self._run_id
        callback = self._on_timeout
        self._on_timeout = None
        if callback is not None:
            callback()
        # The callback normally stops us to read elapsed time; if it restarted
        # the timer, leave the new run alone.
        if self._run_id == run_id and self._started_at_s is not None:
            self.stop()
