"""Local storage for sessions, solve times, wrong answers and settings.

Every store is a JSON list under one key. Appends are whole-value
read-modify-write-trim operations: read the full list, append, keep the newest
``cap`` entries, write the list back. That is only safe with a single writer,
which holds because one practice session runs at a time.

Reads and writes are best-effort: a missing or corrupt value reads as an empty
list (or default settings), a malformed entry is skipped, and a failed write is
logged and dropped, so the worst a damaged or locked database can do is lose
statistics.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol, TypeVar

from .results import SessionRecord, SolveSample, WrongAnswerRecord
from .settings import Settings

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
DB_PATH_ENV = "MENTAL_MATH_DB_PATH"

SESSIONS_KEY = "sessions"
SOLVE_SAMPLES_KEY = "solve_samples"
WRONG_ANSWERS_KEY = "wrong_answers"
SETTINGS_KEY = "settings"

SESSIONS_CAP = 100
SOLVE_SAMPLES_CAP = 500
WRONG_ANSWERS_CAP = 100

R = TypeVar("R")


class Repository(Protocol):
    def append_session(self, record: SessionRecord) -> None: ...
    def append_solve_sample(self, sample: SolveSample) -> None: ...
    def append_wrong_answer(self, record: WrongAnswerRecord) -> None: ...
    def load_sessions(self) -> list[SessionRecord]: ...
    def load_solve_samples(self) -> list[SolveSample]: ...
    def load_wrong_answers(self) -> list[WrongAnswerRecord]: ...
    def load_settings(self) -> Settings: ...
    def save_settings(self, settings: Settings) -> None: ...
    def clear_all(self) -> None: ...


def default_db_path() -> Path:
    explicit = os.environ.get(DB_PATH_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return Path.home() / ".mental_math_trainer.sqlite3"


class KeyValueRepository:
    """Repository logic over an abstract string key-value store."""

    def _read(self, key: str) -> str | None:
        raise NotImplementedError

    def _write(self, key: str, value: str) -> None:
        raise NotImplementedError

    def _delete_all(self) -> None:
        raise NotImplementedError

    # -- Sessions / samples / wrong answers -------------------------------
    def append_session(self, record: SessionRecord) -> None:
        self._append(SESSIONS_KEY, record.to_dict(), SESSIONS_CAP)

    def append_solve_sample(self, sample: SolveSample) -> None:
        self._append(SOLVE_SAMPLES_KEY, sample.to_dict(), SOLVE_SAMPLES_CAP)

    def append_wrong_answer(self, record: WrongAnswerRecord) -> None:
        self._append(WRONG_ANSWERS_KEY, record.to_dict(), WRONG_ANSWERS_CAP)

    def load_sessions(self) -> list[SessionRecord]:
        return self._load_records(SESSIONS_KEY, SessionRecord.from_dict)

    def load_solve_samples(self) -> list[SolveSample]:
        return self._load_records(SOLVE_SAMPLES_KEY, SolveSample.from_dict)

    def load_wrong_answers(self) -> list[WrongAnswerRecord]:
        return self._load_records(WRONG_ANSWERS_KEY, WrongAnswerRecord.from_dict)

    # -- Settings -----------------------------------------------------------
    def load_settings(self) -> Settings:
        return Settings.from_dict(self._load_json(SETTINGS_KEY))

    def save_settings(self, settings: Settings) -> None:
        self._write(SETTINGS_KEY, json.dumps(settings.to_dict()))

    def clear_all(self) -> None:
        self._delete_all()
        logger.info("Cleared all stored progress")

    # -- Helpers ------------------------------------------------------------
    def _append(self, key: str, item: dict[str, Any], cap: int) -> None:
        items = self._load_list(key)
        items.append(item)
        self._write(key, json.dumps(items[-cap:]))

    def _load_json(self, key: str) -> object:
        raw = self._read(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Stored value for %r is not valid JSON; ignoring it", key)
            return None

    def _load_list(self, key: str) -> list[Any]:
        data = self._load_json(key)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning("Stored value for %r is not a list; ignoring it", key)
            return []
        return data

    def _load_records(self, key: str, parse: Callable[[dict[str, Any]], R]) -> list[R]:
        out: list[R] = []
        for item in self._load_list(key):
            if not isinstance(item, dict):
                logger.warning("Skipping malformed %s entry: %r", key, item)
                continue
            try:
                out.append(parse(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed %s entry: %r", key, item)
        return out


class InMemoryRepository(KeyValueRepository):
    """Dict-backed repository for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def _read(self, key: str) -> str | None:
        return self._data.get(key)

    def _write(self, key: str, value: str) -> None:
        self._data[key] = value

    def _delete_all(self) -> None:
        self._data.clear()


def open_db(path: Path | str, *, timeout_s: float = 5.0) -> sqlite3.Connection:
    conn = sqlite3.connect(path, timeout=timeout_s)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
            """
        )
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


class SqliteRepository(KeyValueRepository):
    """Durable repository: one sqlite row per key holding a JSON document."""

    def __init__(self, path: Path | str, *, timeout_s: float = 5.0) -> None:
        self._path = path
        self._conn = open_db(path, timeout_s=timeout_s)

    @classmethod
    def open_default(cls) -> "SqliteRepository":
        path = default_db_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        return cls(path)

    def close(self) -> None:
        self._conn.close()

    def _read(self, key: str) -> str | None:
        try:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error:
            logger.warning("Could not read %r from %s", key, self._path, exc_info=True)
            return None
        return None if row is None else str(row[0])

    def _write(self, key: str, value: str) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO kv(key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
        except sqlite3.Error:
            logger.warning("Could not write %r to %s", key, self._path, exc_info=True)

    def _delete_all(self) -> None:
        try:
            with self._conn:
                self._conn.execute("DELETE FROM kv")
        except sqlite3.Error:
            logger.warning("Could not clear %s", self._path, exc_info=True)
