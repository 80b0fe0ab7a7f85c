"""Default configuration values for retireplan."""

from __future__ import annotations

from datetime import date

from retireplan.config.schema import (
    ConversionWindow,
    HouseholdProfile,
    MarriedHousehold,
    MemberPlan,
    Person,
    RothConversionConfig,
    TaxScenarioInputs,
)

DEFAULT_AS_OF_YEAR = 2025


def default_profile() -> HouseholdProfile:
    """Married couple filing jointly in Arizona, both planning into their 90s."""
    return HouseholdProfile(
        household=MarriedHousehold(
            person=Person(birth_date=date(1959, 3, 15), plan_to_age=92, sex="male"),
            spouse=Person(birth_date=date(1961, 7, 2), plan_to_age=95, sex="female"),
        ),
        filing_status="married_jointly",
        zip_code="85004",
    )


def default_scenario() -> TaxScenarioInputs:
    """Recently retired couple with a large IRA, converting up to IRMAA tier 0."""
    return TaxScenarioInputs(
        interest_income=4_000,
        dividend_income=6_000,
        long_term_gains=5_000,
        traditional_balance=1_200_000,
        roth_balance=150_000,
        taxable_balance=400_000,
        real_estate_value=650_000,
        annual_living_expenses=90_000,
        portfolio_growth_rate=0.05,
        inflation_rate=0.025,
        retirement_year=2024,
        primary=MemberPlan(ss_start_year=2029, ss_annual_benefit=42_000),
        spouse=MemberPlan(ss_start_year=2028, ss_annual_benefit=24_000),
        medicare_enrollees=2,
        roth_conversion=RothConversionConfig(
            enabled=True,
            strategy="irmaa_tier",
            irmaa_target_tier=0,
            window=ConversionWindow(mode="before_rmd"),
        ),
        qcd_amount=5_000,
        magi_history={2023: 150_000, 2024: 95_000},
    )
