"""Remaining life expectancy from the SSA 2021 period life table."""

from __future__ import annotations

_MIN_AGE = 50
_MAX_AGE = 90

# Remaining years of life at ages 50..90.
_MALE: tuple[float, ...] = (
    28.3, 27.5, 26.7, 25.9, 25.1, 24.3, 23.5, 22.8, 22.0, 21.2,
    20.5, 19.7, 19.0, 18.2, 17.5, 16.8, 16.1, 15.4, 14.7, 14.0,
    13.4, 12.7, 12.1, 11.5, 10.9, 10.3, 9.7, 9.2, 8.7, 8.1,
    7.7, 7.2, 6.7, 6.3, 5.9, 5.5, 5.1, 4.7, 4.4, 4.1,
    3.8,
)  # fmt: skip

_FEMALE: tuple[float, ...] = (
    32.7, 31.9, 31.0, 30.2, 29.4, 28.5, 27.7, 26.9, 26.1, 25.3,
    24.5, 23.7, 22.9, 22.1, 21.3, 20.6, 19.8, 19.0, 18.3, 17.5,
    16.8, 16.1, 15.4, 14.7, 14.0, 13.3, 12.7, 12.0, 11.4, 10.8,
    10.2, 9.6, 9.1, 8.5, 8.0, 7.5, 7.0, 6.6, 6.1, 5.7,
    5.3,
)  # fmt: skip


def remaining_life_expectancy(age: int, sex: str | None = None) -> float:
    """Expected remaining years of life; ages outside 50..90 are clamped.

    The male table is used when ``sex`` is unknown.
    """
    table = _FEMALE if sex == "female" else _MALE
    clamped = min(_MAX_AGE, max(_MIN_AGE, age))
    return table[clamped - _MIN_AGE]


def default_plan_to_age(birth_year: int, as_of_year: int, sex: str | None = None) -> int:
    """Current age plus rounded remaining life expectancy."""
    age = as_of_year - birth_year
    return age + round(remaining_life_expectancy(age, sex))
