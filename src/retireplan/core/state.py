"""Household financial state carried from one projected year to the next."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from retireplan.config.schema import TaxScenarioInputs
from retireplan.utils.exceptions import SimulationError


@dataclass(frozen=True)
class HouseholdFinancialState:
    """Snapshot of a household at the end of ``year``.

    Each projected year folds one state into the next, so any historical
    state can seed a replay. NOT Pydantic: it is engine-internal, derived
    fresh for every run and never persisted.

    Attributes:
        year: Last completed year (the year before the plan starts for the
            initial state).
        traditional: Tax-deferred balance.
        roth: Roth balance.
        taxable: Taxable brokerage balance.
        other: Other invested assets (grow, never drawn).
        cumulative_rmd: RMDs taken so far in the run.
        collecting_ss: ``(primary, spouse)`` collecting Social Security.
        on_medicare: ``(primary, spouse)`` enrolled in Medicare.
        magi_history: MAGI by calendar year, seeded with pre-plan actuals.
    """

    year: int
    traditional: float
    roth: float
    taxable: float
    other: float
    cumulative_rmd: float = 0.0
    collecting_ss: tuple[bool, bool] = (False, False)
    on_medicare: tuple[bool, bool] = (False, False)
    magi_history: Mapping[int, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("traditional", "roth", "taxable", "other"):
            if getattr(self, name) < 0:
                raise SimulationError(f"{name} balance went negative in {self.year}")
        object.__setattr__(self, "magi_history", MappingProxyType(dict(self.magi_history)))

    @classmethod
    def initialize(cls, scenario: TaxScenarioInputs, as_of_year: int) -> HouseholdFinancialState:
        """Initial state: starting balances as of the end of the prior year."""
        traditional, roth, taxable, other = scenario.starting_balances
        return cls(
            year=as_of_year - 1,
            traditional=traditional,
            roth=roth,
            taxable=taxable,
            other=other,
            magi_history=scenario.magi_history,
        )

    @property
    def total_wealth(self) -> float:
        """Sum of all investable balances."""
        return self.traditional + self.roth + self.taxable + self.other

    def lookback_magi(self, year: int, lookback_years: int = 2) -> float | None:
        """MAGI recorded for ``year - lookback_years``, if known."""
        return self.magi_history.get(year - lookback_years)
