"""Projection output records."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from retireplan.config.schema import HouseholdProfile, TaxScenarioInputs


@dataclass(frozen=True, slots=True)
class YearlyProjectionResult:
    """One projected year, as displayed to the household. Currency in dollars."""

    year: int
    age: int
    spouse_age: int | None
    filing_status: str

    # Gross income breakdown
    wages: float
    interest: float
    dividends: float
    capital_gains: float
    other_income: float
    social_security: float
    rmd: float
    ira_withdrawal: float
    roth_conversion: float
    qcd: float

    # Contributions and growth
    deferred_contributions: float
    roth_contributions: float
    employer_match: float
    growth: float

    # Tax computation
    ordinary_income: float
    preferential_income: float
    taxable_social_security: float
    magi: float
    taxable_income: float
    federal_tax: float
    capital_gains_tax: float
    niit: float
    state_tax: float

    # Medicare
    irmaa_lookback_magi: float | None
    irmaa_tier: int | None
    medicare_enrollees: int
    medicare_premium: float
    irmaa_surcharge: float

    # Cash flow
    living_expenses: float
    taxable_draw: float
    traditional_draw: float
    roth_draw: float
    net_cash_flow: float
    surplus_reinvested: float
    insufficient_funds: bool
    unfunded_shortfall: float

    # Ending balances
    traditional_balance: float
    roth_balance: float
    taxable_balance: float
    other_assets: float
    real_estate_value: float

    @property
    def total_tax(self) -> float:
        return self.federal_tax + self.capital_gains_tax + self.niit + self.state_tax

    @property
    def total_cost(self) -> float:
        """Taxes plus IRMAA surcharges, the quantity conversions try to minimize."""
        return self.total_tax + self.irmaa_surcharge

    @property
    def total_balance(self) -> float:
        """Ending investable balances (real estate excluded)."""
        return (
            self.traditional_balance + self.roth_balance + self.taxable_balance + self.other_assets
        )

    @property
    def effective_tax_rate(self) -> float:
        return self.total_tax / max(1.0, self.magi)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["total_tax"] = round(self.total_tax, 2)
        data["total_balance"] = round(self.total_balance, 2)
        return data


@dataclass(frozen=True)
class ProjectionResult:
    """Output of a projection run: one row per year, year-ascending."""

    rows: tuple[YearlyProjectionResult, ...]
    profile: HouseholdProfile
    scenario: TaxScenarioInputs
    as_of_year: int
    config_hash: str = ""
    engine_version: str = ""

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def years(self) -> list[int]:
        return [row.year for row in self.rows]

    @property
    def final_row(self) -> YearlyProjectionResult:
        return self.rows[-1]

    @property
    def first_shortfall_year(self) -> int | None:
        """First year expenses could not be funded, if any."""
        for row in self.rows:
            if row.insufficient_funds:
                return row.year
        return None
