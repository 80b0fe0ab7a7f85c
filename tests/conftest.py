"""Shared test fixtures."""

from __future__ import annotations

from datetime import date

import pytest

from retireplan.config.schema import (
    HouseholdProfile,
    MarriedHousehold,
    Person,
    SingleHousehold,
)
from retireplan.taxes.law import PackageTaxLawProvider, YearlyTaxLawTable


@pytest.fixture(scope="session")
def provider() -> PackageTaxLawProvider:
    """Packaged tables, extrapolated at 2.5% a year."""
    return PackageTaxLawProvider(inflation_rate=0.025)


@pytest.fixture(scope="session")
def table_2024(provider: PackageTaxLawProvider) -> YearlyTaxLawTable:
    return provider.get_year_data(2024)


@pytest.fixture(scope="session")
def table_2025(provider: PackageTaxLawProvider) -> YearlyTaxLawTable:
    return provider.get_year_data(2025)


def single_profile(
    birth_year: int = 1952,
    plan_to_age: int = 80,
    zip_code: str = "78701",
) -> HouseholdProfile:
    """Single filer (Texas ZIP, no state income tax by default)."""
    return HouseholdProfile(
        household=SingleHousehold(
            person=Person(birth_date=date(birth_year, 6, 1), plan_to_age=plan_to_age)
        ),
        filing_status="single",
        zip_code=zip_code,
    )


def married_profile(
    birth_year: int = 1955,
    spouse_birth_year: int = 1957,
    plan_to_age: int = 85,
    spouse_plan_to_age: int = 90,
    zip_code: str = "78701",
) -> HouseholdProfile:
    return HouseholdProfile(
        household=MarriedHousehold(
            person=Person(birth_date=date(birth_year, 1, 10), plan_to_age=plan_to_age),
            spouse=Person(
                birth_date=date(spouse_birth_year, 9, 20), plan_to_age=spouse_plan_to_age
            ),
        ),
        filing_status="married_jointly",
        zip_code=zip_code,
    )
