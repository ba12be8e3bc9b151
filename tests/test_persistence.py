from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

import pytest

from mental_math_trainer.persistence import (
    DB_PATH_ENV,
    SESSIONS_CAP,
    SESSIONS_KEY,
    SETTINGS_KEY,
    SOLVE_SAMPLES_CAP,
    SOLVE_SAMPLES_KEY,
    WRONG_ANSWERS_CAP,
    InMemoryRepository,
    SqliteRepository,
    default_db_path,
    open_db,
)
from mental_math_trainer.results import SessionRecord, SolveSample, WrongAnswerRecord
from mental_math_trainer.settings import Settings


def _session(ts: float, mode: str = "addition") -> SessionRecord:
    return SessionRecord(
        mode=mode,
        correct=3,
        total=4,
        accuracy_percent=75,
        average_latency_s=1.5,
        best_latency_s=1.0,
        latencies_s=(1.0, 1.5, 2.0),
        timestamp=ts,
    )


def _wrong(ts: float) -> WrongAnswerRecord:
    return WrongAnswerRecord(
        problem_text="7 × 8",
        submitted_answer=54,
        correct_answer=56,
        operation_kind="multiplication",
        timestamp=ts,
    )


def test_sessions_store_keeps_newest_hundred() -> None:
    repo = InMemoryRepository()
    for i in range(SESSIONS_CAP + 1):
        repo.append_session(_session(float(i)))

    sessions = repo.load_sessions()
    assert len(sessions) == 100
    assert sessions[0].timestamp == 1.0
    assert sessions[-1].timestamp == 100.0


def test_solve_samples_and_wrong_answers_are_capped() -> None:
    repo = InMemoryRepository()
    for i in range(SOLVE_SAMPLES_CAP + 5):
        repo.append_solve_sample(SolveSample(latency_s=1.0, mode="addition", timestamp=float(i)))
    for i in range(WRONG_ANSWERS_CAP + 3):
        repo.append_wrong_answer(_wrong(float(i)))

    samples = repo.load_solve_samples()
    assert len(samples) == 500
    assert samples[0].timestamp == 5.0

    wrong = repo.load_wrong_answers()
    assert len(wrong) == 100
    assert wrong[0].timestamp == 3.0


def test_records_survive_a_round_trip() -> None:
    repo = InMemoryRepository()
    record = _session(12.5, mode="chain")
    repo.append_session(record)
    assert repo.load_sessions() == [record]


def test_corrupt_values_read_as_empty() -> None:
    repo = InMemoryRepository()
    repo._write(SESSIONS_KEY, "{not json")
    repo._write(SOLVE_SAMPLES_KEY, json.dumps({"latency_s": 1.0}))
    repo._write(SETTINGS_KEY, "[[[")

    assert repo.load_sessions() == []
    assert repo.load_solve_samples() == []
    assert repo.load_settings() == Settings()

    repo.append_session(_session(1.0))
    assert len(repo.load_sessions()) == 1


def test_malformed_entries_are_skipped() -> None:
    repo = InMemoryRepository()
    good = _session(2.0)
    repo._write(SESSIONS_KEY, json.dumps([good.to_dict(), {"mode": "addition"}, 5, "x"]))

    assert repo.load_sessions() == [good]


def test_settings_merge_over_defaults() -> None:
    repo = InMemoryRepository()
    assert repo.load_settings() == Settings()

    repo._write(SETTINGS_KEY, json.dumps({"chain_length": 8}))
    assert repo.load_settings() == Settings(chain_length=8)

    repo.save_settings(Settings(digit_range=3, target_streak=20))
    assert repo.load_settings() == Settings(digit_range=3, target_streak=20)


def test_clear_all_removes_everything() -> None:
    repo = InMemoryRepository()
    repo.append_session(_session(1.0))
    repo.append_solve_sample(SolveSample(latency_s=1.0, mode="addition", timestamp=1.0))
    repo.append_wrong_answer(_wrong(1.0))
    repo.save_settings(Settings(digit_range=1))

    repo.clear_all()
    assert repo.load_sessions() == []
    assert repo.load_solve_samples() == []
    assert repo.load_wrong_answers() == []
    assert repo.load_settings() == Settings()


def test_sqlite_repository_persists_across_reopen(tmp_path: Path) -> None:
    path = tmp_path / "progress.sqlite3"
    repo = SqliteRepository(path)
    repo.append_session(_session(1.0))
    repo.append_session(_session(2.0))
    repo.append_wrong_answer(_wrong(3.0))
    repo.save_settings(Settings(chain_length=7))
    repo.close()

    reopened = SqliteRepository(path)
    try:
        assert [s.timestamp for s in reopened.load_sessions()] == [1.0, 2.0]
        assert reopened.load_wrong_answers() == [_wrong(3.0)]
        assert reopened.load_settings().chain_length == 7

        reopened.clear_all()
        assert reopened.load_sessions() == []
        assert reopened.load_settings() == Settings()
    finally:
        reopened.close()


def test_open_db_sets_schema_version(tmp_path: Path) -> None:
    conn = open_db(tmp_path / "schema.sqlite3")
    try:
        assert conn.execute("PRAGMA user_version;").fetchone()[0] == 1
        names = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert "kv" in names
    finally:
        conn.close()


def test_default_db_path_honours_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv(DB_PATH_ENV, str(tmp_path / "custom.sqlite3"))
    assert default_db_path() == tmp_path / "custom.sqlite3"

    monkeypatch.delenv(DB_PATH_ENV)
    assert default_db_path().name == ".mental_math_trainer.sqlite3"


def test_writes_to_a_locked_database_are_logged_and_dropped(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    path = tmp_path / "locked.sqlite3"
    repo = SqliteRepository(path, timeout_s=0.05)
    repo.append_session(_session(1.0))

    blocker = sqlite3.connect(path, timeout=0.05, isolation_level=None)
    blocker.execute("BEGIN EXCLUSIVE")
    try:
        with caplog.at_level(logging.WARNING, logger="mental_math_trainer.persistence"):
            repo.append_session(_session(2.0))
            repo.append_wrong_answer(_wrong(2.0))
            repo.save_settings(Settings(digit_range=3))
            repo.clear_all()
        assert "Could not write" in caplog.text
        assert "Could not clear" in caplog.text
    finally:
        blocker.execute("ROLLBACK")
        blocker.close()

    try:
        assert [s.timestamp for s in repo.load_sessions()] == [1.0]
        assert repo.load_wrong_answers() == []
        assert repo.load_settings() == Settings()

        repo.append_session(_session(3.0))
        assert [s.timestamp for s in repo.load_sessions()] == [1.0, 3.0]
    finally:
        repo.close()
