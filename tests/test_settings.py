from __future__ import annotations

from mental_math_trainer.settings import DEFAULT_SETTINGS, Settings


def test_defaults() -> None:
    s = Settings()
    assert (s.digit_range, s.chain_length, s.target_time, s.target_streak) == (2, 5, 5, 10)
    assert Settings.from_dict(None) == DEFAULT_SETTINGS
    assert Settings.from_dict([1, 2]) == DEFAULT_SETTINGS


def test_from_dict_coerces_and_ignores_invalid_values() -> None:
    s = Settings.from_dict(
        {
            "digit_range": 3,
            "chain_length": "7",
            "target_time": "oops",
            "target_streak": -4,
            "unknown": 1,
        }
    )
    assert s == Settings(digit_range=3, chain_length=7)


def test_merged_rejects_out_of_range_digit_range_and_bools() -> None:
    base = Settings(digit_range=1)
    assert base.merged({"digit_range": 4}) == base
    assert base.merged({"chain_length": True}) == base
    assert base.merged({"digit_range": 2, "target_time": 12}) == Settings(digit_range=2, target_time=12)


def test_to_dict_round_trip() -> None:
    s = Settings(digit_range=3, chain_length=9, target_time=4, target_streak=25)
    assert Settings.from_dict(s.to_dict()) == s
