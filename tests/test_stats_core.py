from __future__ import annotations

import pytest

from mental_math_trainer.persistence import InMemoryRepository
from mental_math_trainer.problems import OperationKind, Problem
from mental_math_trainer.results import SessionRecord, SolveSample, format_percent, format_time
from mental_math_trainer.stats import (
    StatisticsEngine,
    aggregate_by_operation,
    average_of_n,
    overall_stats,
)


def _session(mode: str, correct: int, total: int, ts: float = 0.0) -> SessionRecord:
    return SessionRecord(
        mode=mode,
        correct=correct,
        total=total,
        accuracy_percent=0,
        average_latency_s=None,
        best_latency_s=None,
        latencies_s=(),
        timestamp=ts,
    )


def _sample(latency: float, mode: str = "addition") -> SolveSample:
    return SolveSample(latency_s=latency, mode=mode, timestamp=0.0)


def test_ao5_drops_fastest_and_slowest() -> None:
    assert average_of_n([1.0, 2.0, 3.0, 4.0, 5.0], 5) == pytest.approx(3.0)
    assert average_of_n([2.0, 2.0, 2.0, 2.0, 9.0], 5) == pytest.approx(2.0)


def test_ao5_uses_most_recent_window() -> None:
    assert average_of_n([60.0, 1.0, 2.0, 3.0, 4.0, 5.0], 5) == pytest.approx(3.0)


def test_ao12_over_twelve_values() -> None:
    assert average_of_n([float(i) for i in range(1, 13)], 12) == pytest.approx(6.5)


def test_average_of_n_needs_enough_samples() -> None:
    assert average_of_n([1.0, 2.0, 3.0, 4.0], 5) is None
    assert average_of_n([], 12) is None
    with pytest.raises(ValueError):
        average_of_n([1.0, 2.0], 2)


def test_aggregate_by_operation_covers_every_kind() -> None:
    sessions = [_session("multiplication", 8, 10), _session("multiplication", 2, 5), _session("chain", 1, 1)]
    samples = [_sample(2.0, "multiplication"), _sample(4.0, "multiplication"), _sample(9.0, "chain")]

    ops = {s.kind: s for s in aggregate_by_operation(sessions, samples)}
    assert set(ops) == set(OperationKind)

    mult = ops[OperationKind.MULTIPLICATION]
    assert (mult.correct, mult.total, mult.accuracy_percent) == (10, 15, 67)
    assert mult.sample_count == 2
    assert mult.average_latency_s == pytest.approx(3.0)

    add = ops[OperationKind.ADDITION]
    assert add.has_data is False
    assert add.accuracy_percent is None
    assert add.average_latency_s is None

    assert ops[OperationKind.CHAIN].accuracy_percent == 100


def test_overall_stats() -> None:
    o = overall_stats([_session("addition", 10, 15)], [_sample(1.5), _sample(0.5), _sample(1.0)])
    assert (o.total_problems, o.total_correct) == (15, 10)
    assert o.accuracy_percent == pytest.approx(66.7)
    assert o.average_latency_s == pytest.approx(1.0)
    assert o.personal_best_s == pytest.approx(0.5)

    empty = overall_stats([], [])
    assert empty.accuracy_percent == 0.0
    assert empty.average_latency_s is None
    assert empty.personal_best_s is None


def test_record_outcome_routes_by_result() -> None:
    repo = InMemoryRepository()
    engine = StatisticsEngine(repo, wall_clock=lambda: 42.0)
    problem = Problem.binary(6, 7, 42, OperationKind.MULTIPLICATION)

    engine.record_outcome(mode="mixed", problem=problem, correct=True, elapsed_s=1.25, submitted=42)
    engine.record_outcome(mode=OperationKind.MIXED, problem=problem, correct=False, elapsed_s=2.0, submitted=41)
    engine.record_outcome(mode="mixed", problem=problem, correct=False, elapsed_s=3.0, submitted=None)

    assert repo.load_solve_samples() == [SolveSample(latency_s=1.25, mode="mixed", timestamp=42.0)]
    wrong = repo.load_wrong_answers()
    assert len(wrong) == 1
    assert wrong[0].operation_kind == "multiplication"
    assert wrong[0].problem_text == "6 × 7"


def test_analytics_report_from_repository() -> None:
    repo = InMemoryRepository()
    engine = StatisticsEngine(repo)
    for latency in (1.0, 2.0, 3.0, 4.0, 5.0):
        repo.append_solve_sample(_sample(latency))
    engine.record_session(_session("addition", 5, 5, ts=1.0))

    report = engine.analytics()
    assert report.ao5_s == pytest.approx(3.0)
    assert report.ao12_s is None
    assert report.overall.accuracy_percent == 100.0
    assert report.overall.personal_best_s == 1.0


def test_history_is_newest_first_and_limited() -> None:
    repo = InMemoryRepository()
    engine = StatisticsEngine(repo)
    for ts in (5.0, 1.0, 9.0, 3.0):
        repo.append_session(_session("addition", 1, 1, ts=ts))

    history = engine.history()
    assert [s.timestamp for s in history.sessions] == [9.0, 5.0, 3.0, 1.0]
    assert history.wrong_answers == ()

    limited = engine.history(limit=2)
    assert [s.timestamp for s in limited.sessions] == [9.0, 5.0]


def test_history_ties_keep_later_entries_first() -> None:
    repo = InMemoryRepository()
    engine = StatisticsEngine(repo)
    repo.append_session(_session("addition", 1, 1, ts=7.0))
    repo.append_session(_session("subtraction", 1, 1, ts=7.0))

    assert [s.mode for s in engine.history().sessions] == ["subtraction", "addition"]


def test_formatters() -> None:
    assert format_time(None) == "--"
    assert format_time(1.234) == "1.23s"
    assert format_percent(66.7, places=1) == "66.7%"
    assert format_percent(None) == "--"
