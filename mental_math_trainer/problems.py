"""Problem generation for the practice modes.

Both generators are pure given the random source passed in: the same scripted
or seeded ``Rng`` always yields the same problem, which is how the tests pin
operands. Difficulty comes from ``digit_range`` only.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .core import Rng


class OperationKind(str, Enum):
    MULTIPLICATION = "multiplication"
    ADDITION = "addition"
    SUBTRACTION = "subtraction"
    DIVISION = "division"
    MIXED = "mixed"
    CHAIN = "chain"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]

    @classmethod
    def parse(cls, value: "OperationKind | str") -> "OperationKind | None":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return None


_DISPLAY_NAMES = {
    OperationKind.MULTIPLICATION: "Multiplication",
    OperationKind.ADDITION: "Addition",
    OperationKind.SUBTRACTION: "Subtraction",
    OperationKind.DIVISION: "Division",
    OperationKind.MIXED: "Mixed",
    OperationKind.CHAIN: "Chain Math",
}

_SYMBOLS = {
    OperationKind.MULTIPLICATION: "×",
    OperationKind.ADDITION: "+",
    OperationKind.SUBTRACTION: "−",
    OperationKind.DIVISION: "÷",
    OperationKind.MIXED: "?",
    OperationKind.CHAIN: "⟶",
}

MIXED_CHOICES = (
    OperationKind.MULTIPLICATION,
    OperationKind.ADDITION,
    OperationKind.SUBTRACTION,
    OperationKind.DIVISION,
)

CHAIN_DISPLAY_TEXT = "Chain Math"

# Multiplication/division operands never exceed the times tables.
TABLES_MAX = 12
# Flash steps stay small enough to add up in your head.
SEQUENCE_STEP_MAX = 50
SEQUENCE_ADD_THRESHOLD = 0.4


class DifficultyConfig(Protocol):
    @property
    def digit_range(self) -> int: ...


@dataclass(frozen=True, slots=True)
class Problem:
    answer: int
    operation_kind: OperationKind
    display_text: str
    operand_a: int | None = None
    operand_b: int | None = None
    operator_symbol: str | None = None

    @classmethod
    def binary(cls, a: int, b: int, answer: int, kind: OperationKind) -> "Problem":
        return cls(
            answer=answer,
            operation_kind=kind,
            display_text=f"{a} {kind.symbol} {b}",
            operand_a=a,
            operand_b=b,
            operator_symbol=kind.symbol,
        )

    @classmethod
    def chain(cls, total: int) -> "Problem":
        return cls(answer=total, operation_kind=OperationKind.CHAIN, display_text=CHAIN_DISPLAY_TEXT)


class Sign(str, Enum):
    PLUS = "+"
    MINUS = "-"


@dataclass(frozen=True, slots=True)
class SequenceStep:
    value: int
    sign: Sign

    @property
    def signed_value(self) -> int:
        return self.value if self.sign is Sign.PLUS else -self.value

    def display(self, index: int) -> str:
        if index == 0:
            return str(self.value)
        return f"+{self.value}" if self.sign is Sign.PLUS else f"−{self.value}"


def operand_ceiling(digit_range: object) -> int:
    """Largest operand for a digit range (1 -> 9, 2 -> 99, 3 -> 999)."""

    if isinstance(digit_range, int) and not isinstance(digit_range, bool):
        return _CEILINGS.get(digit_range, 99)
    return 99


_CEILINGS = {1: 9, 2: 99, 3: 999}


def generate_problem(kind: OperationKind | str, config: DifficultyConfig, rng: Rng) -> Problem:
    ceiling = operand_ceiling(config.digit_range)
    tables_max = min(ceiling, TABLES_MAX)

    op = OperationKind.parse(kind)
    if op is OperationKind.MIXED:
        op = rng.choice(MIXED_CHOICES)

    if op is OperationKind.MULTIPLICATION:
        a = rng.randint(2, tables_max)
        b = rng.randint(2, tables_max)
        return Problem.binary(a, b, a * b, op)

    if op is OperationKind.SUBTRACTION:
        a = rng.randint(1, ceiling)
        b = rng.randint(1, a)
        return Problem.binary(a, b, a - b, op)

    if op is OperationKind.DIVISION:
        divisor = rng.randint(2, tables_max)
        quotient = rng.randint(1, tables_max)
        return Problem.binary(divisor * quotient, divisor, quotient, op)

    # Addition, and the fallback for chain/unknown kinds.
    a = rng.randint(1, ceiling)
    b = rng.randint(1, ceiling)
    return Problem.binary(a, b, a + b, OperationKind.ADDITION)


def generate_sequence(length: int, config: DifficultyConfig, rng: Rng) -> tuple[list[SequenceStep], int]:
    """Build a flash sequence whose running total never drops below zero."""

    step_max = min(operand_ceiling(config.digit_range), SEQUENCE_STEP_MAX)
    n = max(1, int(length))

    steps: list[SequenceStep] = []
    total = 0
    for i in range(n):
        if i == 0 or rng.random() > SEQUENCE_ADD_THRESHOLD:
            value = rng.randint(1, step_max)
            steps.append(SequenceStep(value, Sign.PLUS))
            total += value
            continue

        max_sub = min(total - 1, step_max)
        if max_sub > 0:
            value = rng.randint(1, max_sub)
            steps.append(SequenceStep(value, Sign.MINUS))
            total -= value
        else:
            value = rng.randint(1, step_max)
            steps.append(SequenceStep(value, Sign.PLUS))
            total += value

    return steps, total
