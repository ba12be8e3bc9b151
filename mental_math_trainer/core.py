from __future__ import annotations

import math
import random
from collections.abc import Sequence
from typing import Protocol, TypeVar

T = TypeVar("T")


class Rng(Protocol):
    """Random source used by the generators (``random.Random`` satisfies it)."""

    def randint(self, a: int, b: int) -> int: ...

    def random(self) -> float: ...

    def choice(self, seq: Sequence[T]) -> T: ...


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def random(self) -> float:
        return self._rng.random()

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)


def clamp01(x: float) -> float:
    return 0.0 if x <= 0.0 else 1.0 if x >= 1.0 else float(x)


def round_half_up(x: float) -> int:
    # Percentages shown to the learner round .5 up, never to even.
    return int(math.floor(x + 0.5))


def round_half_up_to(x: float, places: int) -> float:
    scale = 10**places
    return math.floor(x * scale + 0.5) / scale


def try_parse_int(text: str) -> int | None:
    s = str(text).strip()
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        return None
