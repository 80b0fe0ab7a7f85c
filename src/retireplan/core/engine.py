"""Projection engine: one household, one scenario, one simulated year at a time."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from retireplan import __version__
from retireplan.config.schema import HouseholdProfile, MemberPlan, TaxScenarioInputs
from retireplan.core.results import ProjectionResult, YearlyProjectionResult
from retireplan.core.state import HouseholdFinancialState
from retireplan.core.timeline import Timeline
from retireplan.io.serialize import compute_config_hash
from retireplan.models.social_security import benefit_for_year, household_benefit
from retireplan.policies.contributions import annual_contributions, is_working
from retireplan.policies.roth import (
    ConversionContext,
    conversion_ceiling,
    fit_conversion,
    recommend_conversion,
    target_income,
)
from retireplan.policies.withdrawals import DrawResult, settle_shortfall
from retireplan.taxes.base import TaxLawProvider
from retireplan.taxes.law import PackageTaxLawProvider, YearlyTaxLawTable
from retireplan.taxes.medicare import annual_premiums, irmaa_tier
from retireplan.taxes.rmd import rmd_amount, rmd_start_age
from retireplan.taxes.state import StateTaxProfile, state_tax_profile
from retireplan.taxes.us_federal import FederalTaxBreakdown, compute_federal_taxes
from retireplan.utils.exceptions import InvalidInputs, SimulationError

logger = logging.getLogger(__name__)

MEDICARE_AGE = 65

# Tolerance on the conversion target after the year is funded
_TARGET_SLACK = 1e-6


class EngineStatus(enum.Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ProjectionContext:
    """Read-only inputs shared by every simulated year of one run."""

    profile: HouseholdProfile
    scenario: TaxScenarioInputs
    timeline: Timeline
    tax_law: TaxLawProvider
    state_tax: StateTaxProfile

    @property
    def plans(self) -> tuple[MemberPlan, ...]:
        if self.profile.is_married:
            return (self.scenario.primary, self.scenario.spouse)
        return (self.scenario.primary,)

    def medicare_start_year(self, member: int) -> int:
        """First Part B year for a member: explicit, else max(retirement, turning 65)."""
        if self.scenario.medicare_start_year is not None:
            return self.scenario.medicare_start_year
        turning_65 = self.timeline.birth_years[member] + MEDICARE_AGE
        retirement = self.scenario.retirement_year
        return turning_65 if retirement is None else max(retirement, turning_65)


def validate_inputs(
    profile: HouseholdProfile,
    scenario: TaxScenarioInputs,
    as_of_year: int,
) -> Timeline:
    """Cross-check the inputs before any simulation work.

    Field-level bounds such as non-negative balances are enforced by the
    models themselves and surface as pydantic ``ValidationError``.

    Returns:
        The projection timeline.

    Raises:
        InvalidInputs: If the inputs are inconsistent with each other or with
            ``as_of_year``.
    """
    if not profile.is_married:
        if not scenario.spouse.is_empty:
            raise InvalidInputs("spouse plan given for a single household")
        if scenario.medicare_enrollees > 1:
            raise InvalidInputs("a single household has at most one Medicare enrollee")
    late = sorted(year for year in scenario.magi_history if year >= as_of_year)
    if late:
        raise InvalidInputs(
            f"magi_history may only hold years before {as_of_year}, got {late[0]}"
        )
    return Timeline.from_profile(profile, as_of_year)


def _cents(value: float) -> float:
    return round(value, 2) + 0.0


def advance(
    state: HouseholdFinancialState,
    ctx: ProjectionContext,
) -> tuple[HouseholdFinancialState, YearlyProjectionResult]:
    """Simulate the year after ``state.year``.

    Pure: returns the next state and the year's record without touching
    ``state``.

    Raises:
        UnsupportedYear: If the provider has no table for the year.
    """
    scenario = ctx.scenario
    timeline = ctx.timeline
    year = state.year + 1
    table = ctx.tax_law.get_year_data(year)
    married = ctx.profile.is_married

    # 1. Ages, survivorship, enrollment
    n_members = len(timeline.birth_years)
    alive = tuple(timeline.is_alive(year, m) for m in range(n_members))
    both_alive = married and all(alive)
    filing_status = "married_jointly" if both_alive else "single"
    age = timeline.age_at(year, 0)
    spouse_age = timeline.age_at(year, 1) if married and alive[1] else None

    plans = ctx.plans
    collecting = tuple(
        alive[m] and plans[m].ss_start_year is not None and year >= plans[m].ss_start_year
        for m in range(n_members)
    )
    on_medicare = tuple(
        alive[m]
        and timeline.age_at(year, m) >= MEDICARE_AGE
        and year >= ctx.medicare_start_year(m)
        for m in range(n_members)
    )
    enrollees = min(sum(on_medicare), scenario.medicare_enrollees)

    # 2. Growth on prior year-end balances
    rate = scenario.portfolio_growth_rate
    traditional = state.traditional * (1.0 + rate)
    roth = state.roth * (1.0 + rate)
    taxable = state.taxable * (1.0 + rate)
    other = state.other * (1.0 + rate)
    growth = (traditional + roth + taxable + other) - state.total_wealth

    # 3. Contributions while working
    working = is_working(year, scenario.retirement_year)
    wages = scenario.w2_income if working else 0.0
    contributions = annual_contributions(plans, alive, scenario.w2_income, working)
    traditional += contributions.to_traditional
    roth += contributions.roth
    net_wages = wages - contributions.deferred

    # 4. RMD; the deferred account passes to the survivor
    owner = 0 if alive[0] else 1
    owner_birth_year = timeline.birth_years[owner]
    start_age = rmd_start_age(owner_birth_year, table.rmd_start_ages)
    owner_age = year - owner_birth_year
    rmd_due = owner_age >= start_age
    rmd = ira_withdrawal = 0.0
    if rmd_due and state.traditional > 0:
        rmd = _cents(rmd_amount(state.traditional, owner_age, table.rmd_divisors, start_age))
        rmd = min(rmd, traditional)
    elif not rmd_due:
        # Voluntary withdrawals stand in for the RMD until one is due
        ira_withdrawal = min(scenario.ira_withdrawals, traditional)
    traditional -= rmd + ira_withdrawal

    # QCD comes out of the RMD before it reaches income
    qcd = min(scenario.qcd_amount, rmd, table.qcd_limit)
    taxable_distribution = rmd - qcd + ira_withdrawal

    # 5. Social Security
    benefits = (
        benefit_for_year(scenario.primary, year, scenario.inflation_rate),
        benefit_for_year(scenario.spouse, year, scenario.inflation_rate) if married else 0.0,
    )
    ss_benefit = household_benefit(benefits, (alive[0], married and alive[1]), married)

    # 6. Income composition before any conversion
    capital_gains = (
        scenario.cap_gains_distributions + scenario.short_term_gains + scenario.long_term_gains
    )
    ordinary = (
        net_wages
        + scenario.interest_income
        + scenario.short_term_gains
        + scenario.other_income
        + taxable_distribution
    )
    preferential = (
        scenario.dividend_income + scenario.cap_gains_distributions + scenario.long_term_gains
    )
    investment_income = scenario.interest_income + scenario.dividend_income + capital_gains

    # 7. Medicare premiums from look-back MAGI
    lookback_years = table.irmaa_lookback_years
    lookback_magi = state.lookback_magi(year, lookback_years)
    tier_index: int | None = None
    premium = surcharge = 0.0
    if enrollees > 0:
        # Unknown look-back MAGI is billed at the standard premium.
        tier = irmaa_tier(
            lookback_magi if lookback_magi is not None else 0.0,
            table.irmaa_brackets[filing_status],
        )
        tier_index = tier.tier
        premium, surcharge = annual_premiums(tier, enrollees)

    # 8. Taxes and cash flow for a given conversion
    living_expenses = scenario.annual_living_expenses * (1.0 + scenario.inflation_rate) ** (
        year - timeline.start_year
    )
    inflows = (
        net_wages
        + scenario.interest_income
        + scenario.dividend_income
        + capital_gains
        + scenario.other_income
        + ss_benefit
        + taxable_distribution
    )
    fixed_outflows = living_expenses + premium + contributions.roth

    def taxes_for(conversion: float, draw: float) -> tuple[FederalTaxBreakdown, float]:
        federal = compute_federal_taxes(
            table,
            filing_status,
            ordinary + conversion + draw,
            preferential,
            ss_benefit,
            net_investment_income=investment_income,
            include_niit=scenario.include_niit,
        )
        state_tax = ctx.state_tax.tax(
            federal.magi,
            federal.taxable_social_security,
            taxable_distribution + conversion + draw,
        )
        return federal, state_tax

    def fund_year(conversion: float) -> tuple[FederalTaxBreakdown, float, DrawResult]:
        """Taxes and shortfall draws once ``conversion`` has moved to Roth."""
        federal, state_tax = taxes_for(conversion, 0.0)
        base_tax = federal.total + state_tax

        def extra_tax(draw: float) -> float:
            fed, st = taxes_for(conversion, draw)
            return fed.total + st - base_tax

        draws = settle_shortfall(
            fixed_outflows + base_tax - inflows,
            {
                "taxable": taxable,
                "traditional": traditional - conversion,
                "roth": roth + conversion,
            },
            extra_tax,
        )
        if draws.traditional > 0:
            federal, state_tax = taxes_for(conversion, draws.traditional)
        return federal, state_tax, draws

    # 9. Roth conversion, sized so the year's own draws cannot push income past the target
    conversion = 0.0
    policy = scenario.roth_conversion
    premium_table: YearlyTaxLawTable | None = None
    if policy.enabled:
        primary_birth_year = timeline.birth_years[0]
        conversion_context = ConversionContext(
            year=year,
            filing_status=filing_status,
            ordinary_income=ordinary,
            preferential_income=preferential,
            ss_benefit=ss_benefit,
            traditional_available=traditional,
            ss_start_year=scenario.primary.ss_start_year,
            rmd_start_year=primary_birth_year
            + rmd_start_age(primary_birth_year, table.rmd_start_ages),
        )
        premium_table = _premium_table(ctx.tax_law, table)
        conversion = min(
            recommend_conversion(conversion_context, table, policy, premium_table=premium_table),
            traditional,
        )
    federal, state_tax, draws = fund_year(conversion)
    if conversion > 0:
        ceiling = conversion_ceiling(policy, table, filing_status, premium_table)

        def within_target(amount: float) -> bool:
            return target_income(policy, fund_year(amount)[0]) <= ceiling + _TARGET_SLACK

        if target_income(policy, federal) > ceiling + _TARGET_SLACK:
            logger.debug("Refitting %d conversion of %.2f around funding draws", year, conversion)
            conversion = fit_conversion(conversion, within_target)
            federal, state_tax, draws = fund_year(conversion)

    # 10. Apply conversion and draws; reinvest any surplus in the taxable account
    traditional -= conversion + draws.traditional
    roth += conversion - draws.roth
    taxable -= draws.taxable
    ordinary += conversion
    net_cash_flow = inflows + draws.total - (fixed_outflows + federal.total + state_tax)
    insufficient = draws.unfunded >= 0.01
    surplus = max(0.0, net_cash_flow)
    taxable += surplus

    # 11. Next state and record
    history = dict(state.magi_history)
    history[year] = _cents(federal.magi)
    new_state = HouseholdFinancialState(
        year=year,
        traditional=max(0.0, _cents(traditional)),
        roth=max(0.0, _cents(roth)),
        taxable=max(0.0, _cents(taxable)),
        other=max(0.0, _cents(other)),
        cumulative_rmd=_cents(state.cumulative_rmd + rmd),
        collecting_ss=_pad(collecting),
        on_medicare=_pad(on_medicare),
        magi_history=history,
    )
    row = YearlyProjectionResult(
        year=year,
        age=age,
        spouse_age=spouse_age,
        filing_status=filing_status,
        wages=_cents(wages),
        interest=_cents(scenario.interest_income),
        dividends=_cents(scenario.dividend_income),
        capital_gains=_cents(capital_gains),
        other_income=_cents(scenario.other_income),
        social_security=_cents(ss_benefit),
        rmd=_cents(rmd),
        ira_withdrawal=_cents(ira_withdrawal),
        roth_conversion=_cents(conversion),
        qcd=_cents(qcd),
        deferred_contributions=_cents(contributions.deferred),
        roth_contributions=_cents(contributions.roth),
        employer_match=_cents(contributions.employer_match),
        growth=_cents(growth),
        ordinary_income=_cents(ordinary + draws.traditional),
        preferential_income=_cents(preferential),
        taxable_social_security=_cents(federal.taxable_social_security),
        magi=_cents(federal.magi),
        taxable_income=_cents(federal.taxable_income),
        federal_tax=_cents(federal.ordinary_tax),
        capital_gains_tax=_cents(federal.capital_gains_tax),
        niit=_cents(federal.niit),
        state_tax=_cents(state_tax),
        irmaa_lookback_magi=lookback_magi,
        irmaa_tier=tier_index,
        medicare_enrollees=enrollees,
        medicare_premium=_cents(premium),
        irmaa_surcharge=_cents(surcharge),
        living_expenses=_cents(living_expenses),
        taxable_draw=_cents(draws.taxable),
        traditional_draw=_cents(draws.traditional),
        roth_draw=_cents(draws.roth),
        net_cash_flow=_cents(net_cash_flow),
        surplus_reinvested=_cents(surplus),
        insufficient_funds=insufficient,
        unfunded_shortfall=_cents(draws.unfunded) if insufficient else 0.0,
        traditional_balance=new_state.traditional,
        roth_balance=new_state.roth,
        taxable_balance=new_state.taxable,
        other_assets=new_state.other,
        real_estate_value=_cents(scenario.real_estate_value),
    )
    return new_state, row


def _pad(flags: tuple[bool, ...]) -> tuple[bool, bool]:
    return (flags[0], flags[1] if len(flags) > 1 else False)


def _premium_table(tax_law: TaxLawProvider, table: YearlyTaxLawTable) -> YearlyTaxLawTable | None:
    """Table of the year whose premiums this year's MAGI will determine."""
    premium_year = table.year + table.irmaa_lookback_years
    if tax_law.supports(premium_year):
        return tax_law.get_year_data(premium_year)
    return None


class ProjectionEngine:
    """Year-by-year projection for one household and scenario.

    The engine moves ``NOT_STARTED -> RUNNING -> COMPLETED``. Each
    :meth:`step` simulates one calendar year; :meth:`run` steps to the end and
    returns the full result. A run never reads the clock: the first projected
    year is the explicit ``as_of_year``.

    Args:
        profile: Who the plan is for.
        scenario: The household's active tax scenario.
        as_of_year: First projected calendar year.
        tax_law: Tax-law provider; defaults to the packaged tables,
            extrapolated at the scenario's inflation rate.

    Raises:
        InvalidInputs: If the inputs fail validation.
        UnsupportedYear: If any projected year has no tax-law table.
    """

    def __init__(
        self,
        profile: HouseholdProfile,
        scenario: TaxScenarioInputs,
        *,
        as_of_year: int,
        tax_law: TaxLawProvider | None = None,
    ) -> None:
        timeline = validate_inputs(profile, scenario, as_of_year)
        if tax_law is None:
            tax_law = PackageTaxLawProvider(inflation_rate=scenario.inflation_rate)
        for year in timeline.years:
            if not tax_law.supports(year):
                tax_law.get_year_data(year)

        self._as_of_year = as_of_year
        self._context = ProjectionContext(
            profile=profile,
            scenario=scenario,
            timeline=timeline,
            tax_law=tax_law,
            state_tax=state_tax_profile(profile.zip_code, scenario.state_tax_rate),
        )
        self._state = HouseholdFinancialState.initialize(scenario, as_of_year)
        self._rows: list[YearlyProjectionResult] = []
        self._status = EngineStatus.NOT_STARTED

    @property
    def status(self) -> EngineStatus:
        return self._status

    @property
    def state(self) -> HouseholdFinancialState:
        """State at the end of the last simulated year."""
        return self._state

    @property
    def timeline(self) -> Timeline:
        return self._context.timeline

    @property
    def rows(self) -> tuple[YearlyProjectionResult, ...]:
        return tuple(self._rows)

    def step(self) -> YearlyProjectionResult:
        """Simulate the next year and return its record.

        Raises:
            SimulationError: If the projection has already completed.
        """
        if self._status is EngineStatus.COMPLETED:
            raise SimulationError("projection already completed")
        timeline = self._context.timeline
        if self._status is EngineStatus.NOT_STARTED:
            logger.info(
                "Starting projection %d-%d (%s)",
                timeline.start_year,
                timeline.end_year,
                self._context.profile.filing_status,
            )
            self._status = EngineStatus.RUNNING

        had_shortfall = any(row.insufficient_funds for row in self._rows)
        self._state, row = advance(self._state, self._context)
        self._rows.append(row)
        logger.debug(
            "Year %d: MAGI %.2f, tax %.2f, conversion %.2f, balance %.2f",
            row.year,
            row.magi,
            row.total_tax,
            row.roth_conversion,
            row.total_balance,
        )
        if row.insufficient_funds and not had_shortfall:
            logger.warning(
                "Insufficient funds in %d: %.2f of expenses unfunded",
                row.year,
                row.unfunded_shortfall,
            )

        if self._state.year >= timeline.end_year:
            self._status = EngineStatus.COMPLETED
            logger.info("Projection completed: %d years", len(self._rows))
        return row

    def run(self) -> ProjectionResult:
        """Step through every remaining year and return the full result."""
        while self._status is not EngineStatus.COMPLETED:
            self.step()
        profile = self._context.profile
        scenario = self._context.scenario
        return ProjectionResult(
            rows=tuple(self._rows),
            profile=profile,
            scenario=scenario,
            as_of_year=self._as_of_year,
            config_hash=compute_config_hash(profile, scenario, self._as_of_year),
            engine_version=__version__,
        )


def project(
    profile: HouseholdProfile,
    scenario: TaxScenarioInputs,
    *,
    as_of_year: int,
    tax_law: TaxLawProvider | None = None,
) -> ProjectionResult:
    """Run a full projection.

    Args:
        profile: Who the plan is for.
        scenario: The household's active tax scenario.
        as_of_year: First projected calendar year.
        tax_law: Tax-law provider; defaults to the packaged tables.

    Returns:
        ProjectionResult with one row per year from ``as_of_year`` through the
        last planned year of the longest-lived member.
    """
    return ProjectionEngine(profile, scenario, as_of_year=as_of_year, tax_law=tax_law).run()


def with_conversions(scenario: TaxScenarioInputs, enabled: bool) -> TaxScenarioInputs:
    """Copy of ``scenario`` with Roth conversions switched on or off."""
    conversion = scenario.roth_conversion.model_copy(update={"enabled": enabled})
    return scenario.model_copy(update={"roth_conversion": conversion})


def project_baseline_and_optimized(
    profile: HouseholdProfile,
    scenario: TaxScenarioInputs,
    *,
    as_of_year: int,
    tax_law: TaxLawProvider | None = None,
) -> tuple[ProjectionResult, ProjectionResult]:
    """Project the scenario without and with Roth conversions.

    Returns:
        ``(baseline, optimized)``.
    """
    if tax_law is None:
        tax_law = PackageTaxLawProvider(inflation_rate=scenario.inflation_rate)
    baseline = project(
        profile, with_conversions(scenario, False), as_of_year=as_of_year, tax_law=tax_law
    )
    optimized = project(
        profile, with_conversions(scenario, True), as_of_year=as_of_year, tax_law=tax_law
    )
    return baseline, optimized
