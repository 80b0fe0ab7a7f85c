"""Contribution policy: workplace savings while a household still earns wages."""

from __future__ import annotations

from dataclasses import dataclass

from retireplan.config.schema import MemberPlan


@dataclass(frozen=True, slots=True)
class ContributionSplit:
    """One year's contributions for the household.

    Attributes:
        deferred: Employee pre-tax deferrals (reduce taxable wages).
        employer_match: Employer match deposited to the deferred account.
        roth: Roth contributions paid from take-home cash.
    """

    deferred: float = 0.0
    employer_match: float = 0.0
    roth: float = 0.0

    @property
    def to_traditional(self) -> float:
        return self.deferred + self.employer_match


def is_working(year: int, retirement_year: int | None) -> bool:
    """Wages are earned strictly before the retirement year."""
    return retirement_year is not None and year < retirement_year


def annual_contributions(
    plans: tuple[MemberPlan, ...],
    alive: tuple[bool, ...],
    w2_income: float,
    working: bool,
) -> ContributionSplit:
    """Compute the household's contributions for a year.

    Deferrals are capped at the household's wages; the employer match is
    ``employer_match_pct * w2_income`` per member. Nothing is contributed
    once the household has retired, nor for a deceased member.

    Args:
        plans: Member plans, primary first.
        alive: Living flag per member, aligned with ``plans``.
        w2_income: Household W-2 income for the year.
        working: Whether wages are earned this year.
    """
    if not working:
        return ContributionSplit()
    deferred = match = roth = 0.0
    for plan, living in zip(plans, alive):
        if not living:
            continue
        deferred += plan.annual_deferred_contribution
        match += plan.employer_match_pct * w2_income
        roth += plan.annual_roth_contribution
    return ContributionSplit(
        deferred=min(deferred, w2_income),
        employer_match=match,
        roth=roth,
    )
