from __future__ import annotations

from dataclasses import dataclass

import pytest

from mental_math_trainer.clock import PollingScheduler
from mental_math_trainer.core import SeededRng
from mental_math_trainer.persistence import InMemoryRepository
from mental_math_trainer.problems import OperationKind
from mental_math_trainer.settings import Settings
from mental_math_trainer.trainer import Trainer


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _trainer(repo: InMemoryRepository, clock: FakeClock, seed: int = 555) -> Trainer:
    return Trainer(
        repo,
        clock=clock,
        scheduler=PollingScheduler(clock),
        rng=SeededRng(seed),
        wall_clock=lambda: clock.t + 1_000.0,
    )


def _answer(trainer: Trainer, clock: FakeClock, *, latency: float, correct: bool) -> None:
    p = trainer.controller.current_problem
    assert p is not None
    clock.advance(latency)
    assert trainer.submit_answer(str(p.answer if correct else p.answer + 1)) is True
    clock.advance(1.0)
    trainer.pump()


def test_headless_scripted_run_produces_expected_reports() -> None:
    repo = InMemoryRepository()
    clock = FakeClock()
    trainer = _trainer(repo, clock)

    trainer.start_session("addition")
    for latency in (1.0, 2.0, 3.0):
        _answer(trainer, clock, latency=latency, correct=True)
    _answer(trainer, clock, latency=0.5, correct=False)
    clock.advance(0.5)
    assert trainer.skip() is True

    summary = trainer.end_session()
    assert summary is not None
    assert (summary.correct, summary.total, summary.accuracy_percent) == (3, 5, 60)
    assert summary.best_latency_s == pytest.approx(1.0)

    report = trainer.load_analytics()
    assert report.ao5_s is None
    assert report.overall.total_problems == 5
    assert report.overall.accuracy_percent == 60.0
    addition = next(op for op in report.operations if op.kind is OperationKind.ADDITION)
    assert addition.accuracy_percent == 60
    assert addition.sample_count == 3
    assert addition.average_latency_s == pytest.approx(2.0)

    history = trainer.load_history()
    assert len(history.sessions) == 1
    assert len(history.wrong_answers) == 1


def test_ao5_after_five_correct_answers() -> None:
    repo = InMemoryRepository()
    clock = FakeClock()
    trainer = _trainer(repo, clock)

    trainer.start_session(OperationKind.MIXED)
    for latency in (1.0, 2.0, 3.0, 4.0, 5.0):
        _answer(trainer, clock, latency=latency, correct=True)
    trainer.end_session()

    assert trainer.load_analytics().ao5_s == pytest.approx(3.0)


def test_settings_apply_to_new_sessions_and_persist() -> None:
    repo = InMemoryRepository()
    clock = FakeClock()
    trainer = _trainer(repo, clock)

    updated = trainer.update_settings({"digit_range": 1, "chain_length": "6", "target_time": "x"})
    assert updated == Settings(digit_range=1, chain_length=6)
    assert _trainer(repo, clock).settings == updated

    for _ in range(20):
        trainer.start_session("addition")
        p = trainer.controller.current_problem
        assert p is not None
        assert p.operand_a is not None and p.operand_a <= 9
        assert p.operand_b is not None and p.operand_b <= 9

    trainer.start_session("chain")
    assert len(trainer.controller.sequence.steps) == 6


def test_time_limit_normalisation() -> None:
    trainer = _trainer(InMemoryRepository(), FakeClock())
    assert trainer.time_limit_s == 30.0

    trainer.time_limit_s = 0
    assert trainer.time_limit_s is None
    trainer.start_session("division")
    assert trainer.controller.config.time_limit_s is None
    assert trainer.controller.timer.deadline_s is None

    trainer.time_limit_s = 10
    trainer.start_session("division")
    assert trainer.controller.timer.deadline_s == 10.0


def test_clear_all_ends_session_and_resets_everything() -> None:
    repo = InMemoryRepository()
    clock = FakeClock()
    trainer = _trainer(repo, clock)
    trainer.update_settings({"digit_range": 3})

    trainer.start_session("subtraction")
    _answer(trainer, clock, latency=1.0, correct=True)

    trainer.clear_all()
    assert trainer.settings == Settings()
    assert repo.load_sessions() == []
    assert repo.load_solve_samples() == []
    assert trainer.load_analytics().overall.total_problems == 0

    clock.advance(5.0)
    assert trainer.pump() == 0
