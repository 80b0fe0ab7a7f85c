"""Required Minimum Distribution (RMD) computation."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from retireplan.utils.exceptions import NoDivisorForAge


def rmd_start_age(birth_year: int, start_ages: Sequence[tuple[int | None, int]]) -> int:
    """SECURE 2.0 RMD start age for a birth year.

    Args:
        birth_year: Owner's birth year.
        start_ages: ``(last_birth_year, start_age)`` pairs in ascending order;
            a None birth year covers everyone born later.
    """
    for last_birth_year, age in start_ages:
        if last_birth_year is None or birth_year <= last_birth_year:
            return age
    return start_ages[-1][1]


def divisor_for_age(age: int, divisors: Mapping[int, float]) -> float:
    """Look up the Uniform Lifetime divisor; ages past the table use its last entry.

    Raises:
        NoDivisorForAge: If ``age`` is younger than the youngest table age.
    """
    youngest = min(divisors)
    oldest = max(divisors)
    if age < youngest:
        raise NoDivisorForAge(age)
    return divisors.get(min(age, oldest), divisors[oldest])


def rmd_amount(
    prior_year_end_balance: float,
    age: int,
    divisors: Mapping[int, float],
    start_age: int | None = None,
) -> float:
    """Compute the RMD for a year.

    Args:
        prior_year_end_balance: Tax-deferred balance on December 31 of the
            prior year.
        age: Age attained in the distribution year.
        divisors: Uniform Lifetime Table, age to divisor.
        start_age: Owner's RMD start age; defaults to the youngest table age.

    Returns:
        ``balance / divisor``; zero for a zero balance.

    Raises:
        NoDivisorForAge: If ``age`` is below the start age or the table.
    """
    if start_age is not None and age < start_age:
        raise NoDivisorForAge(age)
    divisor = divisor_for_age(age, divisors)
    if prior_year_end_balance <= 0:
        return 0.0
    return prior_year_end_balance / divisor
