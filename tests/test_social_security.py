"""Tests for Social Security taxation and benefit streams."""

from __future__ import annotations

import numpy as np
import pytest

from retireplan.config.schema import MemberPlan
from retireplan.models.social_security import benefit_for_year, household_benefit
from retireplan.taxes.law import YearlyTaxLawTable
from retireplan.taxes.us_federal import taxable_social_security


class TestTaxableSocialSecurity:
    def test_below_first_threshold(self, table_2024: YearlyTaxLawTable) -> None:
        assert taxable_social_security(24_000, 20_000, table_2024.ss_thresholds, "single") == 0.0

    def test_between_thresholds(self, table_2024: YearlyTaxLawTable) -> None:
        # 0.5 * (30000 - 25000) = 2500 < 0.5 * 20000
        taxable = taxable_social_security(30_000, 20_000, table_2024.ss_thresholds, "single")
        assert taxable == pytest.approx(2_500)

    def test_above_second_threshold(self, table_2024: YearlyTaxLawTable) -> None:
        # 0.85 * (50000 - 34000) + min(15000, 4500) = 13600 + 4500
        taxable = taxable_social_security(50_000, 30_000, table_2024.ss_thresholds, "single")
        assert taxable == pytest.approx(18_100)

    def test_capped_at_85_percent(self, table_2024: YearlyTaxLawTable) -> None:
        taxable = taxable_social_security(
            300_000, 40_000, table_2024.ss_thresholds, "married_jointly"
        )
        assert taxable == pytest.approx(0.85 * 40_000)

    def test_zero_benefit(self, table_2024: YearlyTaxLawTable) -> None:
        assert taxable_social_security(90_000, 0, table_2024.ss_thresholds, "single") == 0.0

    @pytest.mark.parametrize("status", ["single", "married_jointly"])
    def test_bounds_hold_everywhere(self, table_2024: YearlyTaxLawTable, status: str) -> None:
        for benefit in (5_000.0, 24_000.0, 60_000.0):
            for provisional in np.linspace(0, 200_000, 401):
                taxable = taxable_social_security(
                    float(provisional), benefit, table_2024.ss_thresholds, status
                )
                assert 0.0 <= taxable <= 0.85 * benefit + 1e-9


class TestBenefitStream:
    def test_before_start(self) -> None:
        plan = MemberPlan(ss_start_year=2027, ss_annual_benefit=30_000)
        assert benefit_for_year(plan, 2026, 0.025) == 0.0

    def test_cola_growth(self) -> None:
        plan = MemberPlan(ss_start_year=2025, ss_annual_benefit=30_000)
        assert benefit_for_year(plan, 2025, 0.025) == pytest.approx(30_000)
        assert benefit_for_year(plan, 2027, 0.025) == pytest.approx(30_000 * 1.025**2)

    def test_never_claimed(self) -> None:
        assert benefit_for_year(MemberPlan(), 2030, 0.025) == 0.0


class TestHouseholdBenefit:
    def test_both_alive_add(self) -> None:
        assert household_benefit((30_000, 18_000), (True, True), True) == 48_000

    def test_survivor_keeps_larger(self) -> None:
        assert household_benefit((30_000, 18_000), (False, True), True) == 30_000
        assert household_benefit((30_000, 18_000), (True, False), True) == 30_000

    def test_single_household(self) -> None:
        assert household_benefit((25_000, 0.0), (True, False), False) == 25_000
