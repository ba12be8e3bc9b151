from __future__ import annotations

import heapq
import itertools
import time
from collections.abc import Callable
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class ScheduledCall:
    """Handle for a callback registered with a scheduler."""

    __slots__ = ("due_s", "callback", "_cancelled")

    def __init__(self, due_s: float, callback: Callable[[], None]) -> None:
        self.due_s = float(due_s)
        self.callback = callback
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledCall: ...


class PollingScheduler:
    """Deferred callbacks driven by an explicit pump.

    Nothing runs on its own: the owner calls :meth:`run_due` (once per frame in
    the UI, or after advancing a fake clock in tests) and every callback whose
    due time has passed runs in due order. Callbacks may schedule further
    calls; those only run on a later pump unless already due.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._queue: list[tuple[float, int, ScheduledCall]] = []
        self._seq = itertools.count()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledCall:
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        call = ScheduledCall(self._clock.now() + float(delay_s), callback)
        heapq.heappush(self._queue, (call.due_s, next(self._seq), call))
        return call

    def pending(self) -> int:
        return sum(1 for _, _, c in self._queue if not c.cancelled)

    def run_due(self) -> int:
        """Run every due, non-cancelled callback. Returns how many ran."""

        now = self._clock.now()
        ran = 0
        while self._queue and self._queue[0][0] <= now:
            _, _, call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            # Mark consumed so a late cancel() from the callback is harmless.
            call.cancel()
            call.callback()
            ran += 1
        return ran
