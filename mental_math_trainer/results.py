from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from .core import round_half_up


@dataclass(frozen=True, slots=True)
class SolveSample:
    """Latency of one correctly solved problem, tagged with the practice mode."""

    latency_s: float
    mode: str
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {"latency_s": float(self.latency_s), "mode": str(self.mode), "timestamp": float(self.timestamp)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SolveSample":
        return cls(
            latency_s=float(data["latency_s"]),
            mode=str(data["mode"]),
            timestamp=float(data.get("timestamp", 0.0)),
        )


@dataclass(frozen=True, slots=True)
class SessionRecord:
    """Persistable summary of one practice run."""

    mode: str
    correct: int
    total: int
    accuracy_percent: int
    average_latency_s: float | None
    best_latency_s: float | None
    latencies_s: tuple[float, ...]
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": str(self.mode),
            "correct": int(self.correct),
            "total": int(self.total),
            "accuracy_percent": int(self.accuracy_percent),
            "average_latency_s": _opt_float(self.average_latency_s),
            "best_latency_s": _opt_float(self.best_latency_s),
            "latencies_s": [float(t) for t in self.latencies_s],
            "timestamp": float(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionRecord":
        return cls(
            mode=str(data["mode"]),
            correct=int(data["correct"]),
            total=int(data["total"]),
            accuracy_percent=int(data.get("accuracy_percent", 0)),
            average_latency_s=_opt_float(data.get("average_latency_s")),
            best_latency_s=_opt_float(data.get("best_latency_s")),
            latencies_s=tuple(float(t) for t in data.get("latencies_s") or ()),
            timestamp=float(data.get("timestamp", 0.0)),
        )


@dataclass(frozen=True, slots=True)
class WrongAnswerRecord:
    problem_text: str
    submitted_answer: int
    correct_answer: int
    operation_kind: str
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "problem_text": str(self.problem_text),
            "submitted_answer": int(self.submitted_answer),
            "correct_answer": int(self.correct_answer),
            "operation_kind": str(self.operation_kind),
            "timestamp": float(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WrongAnswerRecord":
        return cls(
            problem_text=str(data["problem_text"]),
            submitted_answer=int(data["submitted_answer"]),
            correct_answer=int(data["correct_answer"]),
            operation_kind=str(data["operation_kind"]),
            timestamp=float(data.get("timestamp", 0.0)),
        )


@dataclass(frozen=True, slots=True)
class SessionSummary:
    """Final stats shown on the results screen."""

    mode: str
    correct: int
    total: int
    accuracy_percent: int
    average_latency_s: float | None
    best_latency_s: float | None
    latencies_s: tuple[float, ...] = field(default=())

    def to_record(self, *, timestamp: float) -> SessionRecord:
        return SessionRecord(
            mode=self.mode,
            correct=self.correct,
            total=self.total,
            accuracy_percent=self.accuracy_percent,
            average_latency_s=self.average_latency_s,
            best_latency_s=self.best_latency_s,
            latencies_s=self.latencies_s,
            timestamp=float(timestamp),
        )


def summarize_session(*, mode: str, correct: int, total: int, latencies_s: list[float]) -> SessionSummary:
    """Aggregate a run: accuracy is a rounded percentage, latencies cover correct answers only."""

    accuracy = 0 if total <= 0 else round_half_up(correct / total * 100.0)
    if latencies_s:
        average: float | None = sum(latencies_s) / len(latencies_s)
        best: float | None = min(latencies_s)
    else:
        average = None
        best = None
    return SessionSummary(
        mode=str(mode),
        correct=int(correct),
        total=int(total),
        accuracy_percent=int(accuracy),
        average_latency_s=average,
        best_latency_s=best,
        latencies_s=tuple(float(t) for t in latencies_s),
    )


def format_time(seconds: float | None) -> str:
    if seconds is None:
        return "--"
    return f"{seconds:.2f}s"


def format_percent(value: float | None, *, places: int = 0) -> str:
    if value is None:
        return "--"
    return f"{value:.{places}f}%"


def format_timestamp(timestamp: float) -> str:
    return time.strftime("%b %d %H:%M", time.localtime(timestamp))


def _opt_float(value: object) -> float | None:
    if value is None:
        return None
    return float(value)  # type: ignore[arg-type]
