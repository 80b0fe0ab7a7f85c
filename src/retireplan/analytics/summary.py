"""Lifetime summaries of a projection and baseline-vs-optimized comparison."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from retireplan.core.results import ProjectionResult
from retireplan.core.timeline import Timeline

# Inherited IRAs must be emptied within 10 years; heirs spread it evenly.
HEIR_DISTRIBUTION_YEARS = 10


@dataclass(frozen=True)
class ProjectionSummary:
    """Lifetime totals and ending position of one projection."""

    first_year: int
    last_year: int
    n_years: int
    lifetime_federal_tax: float
    lifetime_state_tax: float
    lifetime_tax: float
    lifetime_irmaa: float
    lifetime_medicare_premiums: float
    lifetime_cost: float
    total_roth_converted: float
    total_rmds: float
    total_qcds: float
    final_traditional_balance: float
    final_roth_balance: float
    final_taxable_balance: float
    final_total_balance: float
    heir_annual_ira_distribution: float
    first_shortfall_year: int | None
    first_death_year: int | None


def _column(result: ProjectionResult, name: str) -> np.ndarray:
    return np.array([getattr(row, name) for row in result.rows], dtype=float)


def _total(result: ProjectionResult, name: str) -> float:
    return round(float(_column(result, name).sum()), 2)


def summarize(result: ProjectionResult) -> ProjectionSummary:
    """Aggregate a projection into lifetime totals.

    Args:
        result: A completed projection.

    Returns:
        ProjectionSummary; ``heir_annual_ira_distribution`` spreads the final
        traditional balance evenly over the 10-year inherited-IRA window.
    """
    if not result.rows:
        raise ValueError("cannot summarize an empty projection")
    final = result.final_row
    federal = (
        _column(result, "federal_tax")
        + _column(result, "capital_gains_tax")
        + _column(result, "niit")
    )
    state = _column(result, "state_tax")
    irmaa = _column(result, "irmaa_surcharge")
    timeline = Timeline.from_profile(result.profile, result.as_of_year)
    return ProjectionSummary(
        first_year=result.rows[0].year,
        last_year=final.year,
        n_years=len(result.rows),
        lifetime_federal_tax=round(float(federal.sum()), 2),
        lifetime_state_tax=round(float(state.sum()), 2),
        lifetime_tax=round(float((federal + state).sum()), 2),
        lifetime_irmaa=round(float(irmaa.sum()), 2),
        lifetime_medicare_premiums=_total(result, "medicare_premium"),
        lifetime_cost=round(float((federal + state + irmaa).sum()), 2),
        total_roth_converted=_total(result, "roth_conversion"),
        total_rmds=_total(result, "rmd"),
        total_qcds=_total(result, "qcd"),
        final_traditional_balance=final.traditional_balance,
        final_roth_balance=final.roth_balance,
        final_taxable_balance=final.taxable_balance,
        final_total_balance=round(final.total_balance, 2),
        heir_annual_ira_distribution=round(
            final.traditional_balance / HEIR_DISTRIBUTION_YEARS, 2
        ),
        first_shortfall_year=result.first_shortfall_year,
        first_death_year=timeline.first_death_year(),
    )


@dataclass(frozen=True)
class ScenarioComparison:
    """Baseline (no conversions) against optimized (with conversions)."""

    baseline: ProjectionSummary
    optimized: ProjectionSummary

    @property
    def lifetime_savings(self) -> float:
        """Tax plus IRMAA avoided by converting; negative when conversions cost more."""
        return round(self.baseline.lifetime_cost - self.optimized.lifetime_cost, 2)

    @property
    def roth_shift(self) -> float:
        """Extra Roth balance left to heirs."""
        return round(self.optimized.final_roth_balance - self.baseline.final_roth_balance, 2)

    @property
    def heir_distribution_reduction(self) -> float:
        return round(
            self.baseline.heir_annual_ira_distribution
            - self.optimized.heir_annual_ira_distribution,
            2,
        )


def compare(baseline: ProjectionResult, optimized: ProjectionResult) -> ScenarioComparison:
    """Summarize both runs of a baseline/optimized pair."""
    return ScenarioComparison(baseline=summarize(baseline), optimized=summarize(optimized))
