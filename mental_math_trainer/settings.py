from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from typing import Any

logger = logging.getLogger(__name__)

DIGIT_RANGES = (1, 2, 3)


@dataclass(frozen=True, slots=True)
class Settings:
    """Process-wide practice settings.

    ``digit_range`` selects the operand ceiling (9/99/999), ``chain_length`` the
    number of steps in a flash round. ``target_time`` and ``target_streak`` are
    goals shown to the learner; nothing in the core enforces them.
    """

    digit_range: int = 2
    chain_length: int = 5
    target_time: int = 5
    target_streak: int = 10

    def to_dict(self) -> dict[str, Any]:
        return {
            "digit_range": int(self.digit_range),
            "chain_length": int(self.chain_length),
            "target_time": int(self.target_time),
            "target_streak": int(self.target_streak),
        }

    @classmethod
    def from_dict(cls, data: object) -> "Settings":
        """Merge stored values over the defaults, field by field."""

        if not isinstance(data, dict):
            return cls()
        return cls().merged(data)

    def merged(self, partial: dict[str, Any]) -> "Settings":
        """Return a copy with the valid entries of ``partial`` applied.

        Unknown keys are ignored and invalid values keep the current value.
        """

        changes: dict[str, int] = {}
        for f in fields(self):
            if f.name not in partial:
                continue
            value = _as_positive_int(partial[f.name])
            if value is None:
                logger.warning("Ignoring invalid setting %s=%r", f.name, partial[f.name])
                continue
            if f.name == "digit_range" and value not in DIGIT_RANGES:
                logger.warning("Ignoring out-of-range digit_range=%r", value)
                continue
            changes[f.name] = value
        return replace(self, **changes)


DEFAULT_SETTINGS = Settings()


def _as_positive_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        out = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return None
    return out if out > 0 else None
