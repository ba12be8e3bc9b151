"""Rolling averages and aggregate statistics over stored practice data.

Ao-N follows the speedcubing convention: take the most recent ``n`` solve
times, drop the single fastest and single slowest, and average the rest.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .core import round_half_up, round_half_up_to
from .persistence import Repository
from .problems import OperationKind, Problem
from .results import SessionRecord, SolveSample, WrongAnswerRecord

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50


@dataclass(frozen=True, slots=True)
class OperationStats:
    kind: OperationKind
    correct: int
    total: int
    accuracy_percent: int | None
    sample_count: int
    average_latency_s: float | None

    @property
    def has_data(self) -> bool:
        return self.total > 0


@dataclass(frozen=True, slots=True)
class OverallStats:
    total_problems: int
    total_correct: int
    accuracy_percent: float
    average_latency_s: float | None
    personal_best_s: float | None


@dataclass(frozen=True, slots=True)
class AnalyticsReport:
    ao5_s: float | None
    ao12_s: float | None
    overall: OverallStats
    operations: tuple[OperationStats, ...]


@dataclass(frozen=True, slots=True)
class HistoryReport:
    sessions: tuple[SessionRecord, ...]
    wrong_answers: tuple[WrongAnswerRecord, ...]


def average_of_n(latencies: Sequence[float], n: int) -> float | None:
    """Trimmed mean of the last ``n`` latencies, or None with fewer than ``n``."""

    if n < 3:
        raise ValueError("n must be >= 3")
    if len(latencies) < n:
        return None
    window = sorted(latencies[-n:])
    trimmed = window[1:-1]
    return sum(trimmed) / len(trimmed)


def aggregate_by_operation(
    sessions: Sequence[SessionRecord],
    samples: Sequence[SolveSample],
) -> tuple[OperationStats, ...]:
    correct: dict[str, int] = {k.value: 0 for k in OperationKind}
    total: dict[str, int] = {k.value: 0 for k in OperationKind}
    times: dict[str, list[float]] = {k.value: [] for k in OperationKind}

    for s in sessions:
        if s.mode in total:
            correct[s.mode] += s.correct
            total[s.mode] += s.total
    for sample in samples:
        if sample.mode in times:
            times[sample.mode].append(sample.latency_s)

    out: list[OperationStats] = []
    for kind in OperationKind:
        c = correct[kind.value]
        t = total[kind.value]
        ts = times[kind.value]
        out.append(
            OperationStats(
                kind=kind,
                correct=c,
                total=t,
                accuracy_percent=None if t == 0 else round_half_up(c / t * 100.0),
                sample_count=len(ts),
                average_latency_s=None if not ts else sum(ts) / len(ts),
            )
        )
    return tuple(out)


def overall_stats(sessions: Sequence[SessionRecord], samples: Sequence[SolveSample]) -> OverallStats:
    total_problems = sum(s.total for s in sessions)
    total_correct = sum(s.correct for s in sessions)
    accuracy = 0.0 if total_problems == 0 else round_half_up_to(total_correct / total_problems * 100.0, 1)

    times = [s.latency_s for s in samples]
    return OverallStats(
        total_problems=total_problems,
        total_correct=total_correct,
        accuracy_percent=accuracy,
        average_latency_s=None if not times else sum(times) / len(times),
        personal_best_s=None if not times else min(times),
    )


class StatisticsEngine:
    """Records outcomes into the repository and builds reports from it."""

    def __init__(self, repository: Repository, *, wall_clock: Callable[[], float] = time.time) -> None:
        self._repo = repository
        self._wall_clock = wall_clock

    @property
    def repository(self) -> Repository:
        return self._repo

    def record_outcome(
        self,
        *,
        mode: OperationKind | str,
        problem: Problem,
        correct: bool,
        elapsed_s: float,
        submitted: int | None,
    ) -> None:
        """Store what one resolved problem contributes to long-term stats.

        Correct answers add a solve sample tagged with the session mode. A wrong
        numeric answer adds a wrong-answer record. Skips and timeouts carry no
        submitted value and are not logged as wrong answers.
        """

        now = self._wall_clock()
        mode_value = mode.value if isinstance(mode, OperationKind) else str(mode)
        if correct:
            self._repo.append_solve_sample(SolveSample(latency_s=float(elapsed_s), mode=mode_value, timestamp=now))
            return
        if submitted is None:
            return
        self._repo.append_wrong_answer(
            WrongAnswerRecord(
                problem_text=problem.display_text,
                submitted_answer=int(submitted),
                correct_answer=int(problem.answer),
                operation_kind=problem.operation_kind.value,
                timestamp=now,
            )
        )

    def record_session(self, record: SessionRecord) -> None:
        self._repo.append_session(record)
        logger.info(
            "Session saved: %s %d/%d (%d%%)", record.mode, record.correct, record.total, record.accuracy_percent
        )

    def analytics(self) -> AnalyticsReport:
        sessions = self._repo.load_sessions()
        samples = self._repo.load_solve_samples()
        latencies = [s.latency_s for s in samples]
        return AnalyticsReport(
            ao5_s=average_of_n(latencies, 5),
            ao12_s=average_of_n(latencies, 12),
            overall=overall_stats(sessions, samples),
            operations=aggregate_by_operation(sessions, samples),
        )

    def history(self, *, limit: int = HISTORY_LIMIT) -> HistoryReport:
        sessions = sorted(reversed(self._repo.load_sessions()), key=lambda s: s.timestamp, reverse=True)
        wrong = sorted(reversed(self._repo.load_wrong_answers()), key=lambda w: w.timestamp, reverse=True)
        return HistoryReport(sessions=tuple(sessions[:limit]), wrong_answers=tuple(wrong[:limit]))
