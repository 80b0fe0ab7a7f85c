"""Pydantic v2 input models for retireplan."""

from __future__ import annotations

from datetime import date
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

FilingStatus = Literal["single", "married_jointly"]
Sex = Literal["male", "female"]


class Person(BaseModel):
    """A household member."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    birth_date: date
    plan_to_age: int | None = Field(
        default=None,
        ge=1,
        le=120,
        description="Age through which to plan; None derives it from the SSA life table",
    )
    sex: Sex | None = Field(default=None, description="Selects the life-expectancy table")

    @property
    def birth_year(self) -> int:
        return self.birth_date.year


class SingleHousehold(BaseModel):
    """One-person household."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["single"] = "single"
    person: Person

    @property
    def members(self) -> tuple[Person, ...]:
        return (self.person,)


class MarriedHousehold(BaseModel):
    """Two-person household."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["married"] = "married"
    person: Person
    spouse: Person

    @property
    def members(self) -> tuple[Person, ...]:
        return (self.person, self.spouse)


Household = Annotated[SingleHousehold | MarriedHousehold, Field(discriminator="kind")]


class HouseholdProfile(BaseModel):
    """Who the plan is for. Read-only to the engine."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    household: Household
    filing_status: FilingStatus
    zip_code: str = Field(
        default="",
        pattern=r"^(\d{5}(-?\d{4})?)?$",
        description="ZIP or ZIP+4 used for the state tax lookup",
    )

    @model_validator(mode="after")
    def _validate_filing_status(self) -> HouseholdProfile:
        if isinstance(self.household, SingleHousehold) and self.filing_status != "single":
            raise ValueError("a single household must file as 'single'")
        if isinstance(self.household, MarriedHousehold) and self.filing_status != "married_jointly":
            raise ValueError("a married household must file as 'married_jointly'")
        return self

    @property
    def is_married(self) -> bool:
        return isinstance(self.household, MarriedHousehold)


class MemberPlan(BaseModel):
    """Social Security and workplace-savings inputs for one household member."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    ss_start_year: int | None = Field(default=None, ge=1900, le=2200)
    ss_annual_benefit: float = Field(
        default=0.0, ge=0, description="Annual benefit in start-year dollars"
    )
    annual_deferred_contribution: float = Field(default=0.0, ge=0)
    annual_roth_contribution: float = Field(default=0.0, ge=0)
    employer_match_pct: float = Field(
        default=0.0, ge=0, le=1, description="Employer match as a fraction of W-2 income"
    )

    @property
    def is_empty(self) -> bool:
        return self == MemberPlan()


class ConversionWindow(BaseModel):
    """Years in which Roth conversions may be recommended."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    mode: Literal["always", "before_ss", "before_rmd", "years"] = "always"
    start_year: int | None = Field(default=None, description="First year (mode='years')")
    stop_year: int | None = Field(
        default=None, description="First year with no conversions (mode='years')"
    )

    @model_validator(mode="after")
    def _validate_years(self) -> ConversionWindow:
        if self.mode == "years":
            if self.start_year is None or self.stop_year is None:
                raise ValueError("mode='years' requires start_year and stop_year")
            if self.stop_year <= self.start_year:
                raise ValueError("stop_year must be greater than start_year")
        return self


class RothConversionConfig(BaseModel):
    """Roth conversion policy configuration."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    strategy: Literal["irmaa_tier", "fill_bracket"] = Field(
        default="irmaa_tier",
        description="Ceiling that conversions fill up to",
    )
    irmaa_target_tier: int = Field(
        default=0, ge=0, le=4, description="IRMAA tier whose ceiling must not be crossed"
    )
    fill_to_bracket_top: float = Field(
        default=0.22,
        gt=0,
        le=0.37,
        description="Target marginal ordinary rate for strategy='fill_bracket'",
    )
    window: ConversionWindow = Field(default_factory=ConversionWindow)


class TaxScenarioInputs(BaseModel):
    """Financial parameters of one household's active tax scenario."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Income (nominal, held flat)
    w2_income: float = Field(default=0.0, ge=0)
    interest_income: float = Field(default=0.0, ge=0)
    dividend_income: float = Field(default=0.0, ge=0, description="Qualified dividends")
    cap_gains_distributions: float = Field(default=0.0, ge=0)
    short_term_gains: float = Field(default=0.0, ge=0)
    long_term_gains: float = Field(default=0.0, ge=0)
    other_income: float = Field(default=0.0, ge=0, description="Pension, rental, etc.")

    # Starting balances
    traditional_balance: float = Field(default=0.0, ge=0, description="Tax-deferred IRA/401(k)")
    roth_balance: float = Field(default=0.0, ge=0)
    taxable_balance: float = Field(default=0.0, ge=0)
    other_assets: float = Field(default=0.0, ge=0)
    real_estate_value: float = Field(default=0.0, ge=0)

    # Assumptions
    annual_living_expenses: float = Field(default=0.0, ge=0)
    portfolio_growth_rate: float = Field(default=0.05, ge=-0.5, le=0.5)
    inflation_rate: float = Field(default=0.025, ge=-0.05, le=0.2)
    retirement_year: int | None = Field(
        default=None, description="First year without wages; None means already retired"
    )

    primary: MemberPlan = Field(default_factory=MemberPlan)
    spouse: MemberPlan = Field(default_factory=MemberPlan)

    medicare_enrollees: int = Field(default=1, ge=0, le=2)
    medicare_start_year: int | None = Field(
        default=None,
        description="First Part B year; None means max(retirement_year, year turning 65)",
    )

    roth_conversion: RothConversionConfig = Field(default_factory=RothConversionConfig)
    qcd_amount: float = Field(default=0.0, ge=0, description="Annual QCD from RMDs")
    ira_withdrawals: float = Field(
        default=0.0, ge=0, description="Voluntary taxable IRA withdrawal in years with no RMD"
    )

    magi_history: dict[int, float] = Field(
        default_factory=dict,
        description="Actual MAGI of years before the projection (IRMAA look-back)",
    )
    state_tax_rate: float | None = Field(
        default=None, ge=0, le=0.15, description="Overrides the ZIP-derived rate"
    )
    include_niit: bool = False

    @property
    def starting_balances(self) -> tuple[float, float, float, float]:
        """``(traditional, roth, taxable, other)``."""
        return (
            self.traditional_balance,
            self.roth_balance,
            self.taxable_balance,
            self.other_assets,
        )
