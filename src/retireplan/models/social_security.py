"""Social Security benefit streams with cost-of-living adjustments."""

from __future__ import annotations

from retireplan.config.schema import MemberPlan


def benefit_for_year(plan: MemberPlan, year: int, cola_rate: float) -> float:
    """Annual benefit paid to one member in ``year``.

    The benefit starts in ``ss_start_year`` at ``ss_annual_benefit`` and grows
    by ``cola_rate`` each year after.
    """
    if plan.ss_start_year is None or year < plan.ss_start_year:
        return 0.0
    return plan.ss_annual_benefit * (1.0 + cola_rate) ** (year - plan.ss_start_year)


def household_benefit(
    benefits: tuple[float, float],
    alive: tuple[bool, bool],
    married: bool,
) -> float:
    """Combine member benefits for the household.

    While both spouses live the benefits add; a survivor keeps the larger of
    the two (survivor benefit rule).

    Args:
        benefits: ``(primary, spouse)`` benefits for the year.
        alive: ``(primary, spouse)`` living flags for the year.
        married: Whether the household started the plan married.
    """
    primary, spouse = benefits
    if not married:
        return primary if alive[0] else 0.0
    if alive[0] and alive[1]:
        return primary + spouse
    if alive[0] or alive[1]:
        return max(primary, spouse)
    return 0.0
