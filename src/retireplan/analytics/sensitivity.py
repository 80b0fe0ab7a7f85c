"""One-at-a-time sensitivity sweeps over scenario parameters."""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
from pydantic import ValidationError

from retireplan.analytics.summary import summarize
from retireplan.config.schema import HouseholdProfile, TaxScenarioInputs
from retireplan.core.engine import project
from retireplan.taxes.base import TaxLawProvider
from retireplan.taxes.law import PackageTaxLawProvider
from retireplan.utils.exceptions import InvalidInputs

logger = logging.getLogger(__name__)

# Parameters a sweep may vary; dotted names reach into the conversion policy.
SWEEPABLE_PARAMETERS: tuple[str, ...] = (
    "portfolio_growth_rate",
    "inflation_rate",
    "annual_living_expenses",
    "traditional_balance",
    "qcd_amount",
    "ira_withdrawals",
    "state_tax_rate",
    "roth_conversion.fill_to_bracket_top",
    "roth_conversion.irmaa_target_tier",
)


@dataclass(frozen=True)
class SensitivityResult:
    """Outcome of sweeping one parameter.

    Arrays are aligned with ``values``.
    """

    parameter: str
    values: np.ndarray
    lifetime_cost: np.ndarray
    total_roth_converted: np.ndarray
    final_total_balance: np.ndarray
    solvent: np.ndarray

    @property
    def best_value(self) -> float:
        """Value with the lowest lifetime tax-plus-IRMAA cost."""
        return float(self.values[int(np.argmin(self.lifetime_cost))])


def with_parameter(scenario: TaxScenarioInputs, parameter: str, value: float) -> TaxScenarioInputs:
    """Copy of ``scenario`` with one parameter replaced, re-validated.

    Raises:
        InvalidInputs: If the parameter is unknown or the value fails validation.
    """
    if parameter not in SWEEPABLE_PARAMETERS:
        raise InvalidInputs(
            f"cannot sweep {parameter!r}; choose from {', '.join(SWEEPABLE_PARAMETERS)}"
        )
    data: dict[str, Any] = scenario.model_dump()
    head, _, tail = parameter.partition(".")
    if tail:
        data[head] = {**data[head], tail: value}
    else:
        data[head] = value
    try:
        return TaxScenarioInputs.model_validate(data)
    except ValidationError as exc:
        raise InvalidInputs(f"{parameter}={value}: {exc}") from exc


def run_sensitivity(
    profile: HouseholdProfile,
    scenario: TaxScenarioInputs,
    parameter: str,
    values: Sequence[float],
    *,
    as_of_year: int,
    tax_law: TaxLawProvider | None = None,
    max_workers: int | None = None,
) -> SensitivityResult:
    """Project the scenario once per value of ``parameter``.

    Runs share nothing but their tax-law providers, so they execute on a thread
    pool; ``max_workers=1`` runs them sequentially.

    Args:
        profile: Household profile.
        scenario: Base scenario.
        parameter: One of :data:`SWEEPABLE_PARAMETERS`.
        values: Values to try.
        as_of_year: First projected year.
        tax_law: Shared provider; defaults to the packaged tables, built
            once per distinct inflation rate.
        max_workers: Thread-pool size.

    Raises:
        InvalidInputs: If the parameter or any value is invalid. Every
            scenario is validated before any projection runs.
    """
    scenarios = [with_parameter(scenario, parameter, v) for v in values]
    # Packaged tables extrapolate with the run's own inflation rate, so each
    # distinct rate gets its own provider; an explicit provider is shared.
    providers: dict[float, TaxLawProvider] = {}
    for s in scenarios:
        if tax_law is None and s.inflation_rate not in providers:
            providers[s.inflation_rate] = PackageTaxLawProvider(inflation_rate=s.inflation_rate)
    jobs = [
        (s, tax_law if tax_law is not None else providers[s.inflation_rate]) for s in scenarios
    ]
    logger.info("Sweeping %s over %d values", parameter, len(scenarios))

    def run_one(job: tuple[TaxScenarioInputs, TaxLawProvider]) -> tuple[float, float, float, bool]:
        s, provider = job
        summary = summarize(project(profile, s, as_of_year=as_of_year, tax_law=provider))
        return (
            summary.lifetime_cost,
            summary.total_roth_converted,
            summary.final_total_balance,
            summary.first_shortfall_year is None,
        )

    if max_workers == 1:
        outcomes = [run_one(job) for job in jobs]
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            outcomes = list(executor.map(run_one, jobs))

    columns = np.array([o[:3] for o in outcomes], dtype=float).reshape(len(outcomes), 3)
    return SensitivityResult(
        parameter=parameter,
        values=np.asarray(values, dtype=float),
        lifetime_cost=columns[:, 0],
        total_roth_converted=columns[:, 1],
        final_total_balance=columns[:, 2],
        solvent=np.array([o[3] for o in outcomes], dtype=bool),
    )
