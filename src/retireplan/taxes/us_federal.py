"""US federal income tax: brackets, capital-gains stacking, SS inclusion, NIIT."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from retireplan.taxes.law import Bracket, YearlyTaxLawTable

NIIT_RATE: float = 0.038
NIIT_THRESHOLDS: dict[str, float] = {
    "single": 200_000,
    "married_jointly": 250_000,
}

# Statutory inclusion rates for Social Security benefits.
_SS_FIRST_TIER_RATE = 0.50
_SS_MAX_INCLUSION = 0.85


def ordinary_tax(taxable_income: float, brackets: Sequence[Bracket]) -> float:
    """Compute tax on ordinary taxable income using marginal brackets.

    Zero for non-positive income; monotonic and continuous in income.
    """
    if taxable_income <= 0:
        return 0.0
    tax = 0.0
    for bracket in brackets:
        taxable_in_bracket = min(taxable_income, bracket.upper()) - bracket.floor
        if taxable_in_bracket <= 0:
            break
        tax += taxable_in_bracket * bracket.rate
    return tax


def ordinary_tax_vectorized(
    taxable_income: NDArray[np.floating[Any]],
    brackets: Sequence[Bracket],
) -> NDArray[np.floating[Any]]:
    """Vectorized :func:`ordinary_tax` over an array of incomes."""
    tax: NDArray[np.floating[Any]] = np.zeros_like(taxable_income, dtype=float)
    for bracket in brackets:
        taxable_in_bracket = np.minimum(taxable_income, bracket.upper()) - bracket.floor
        tax += np.maximum(taxable_in_bracket, 0.0) * bracket.rate
    return tax


def capital_gains_tax(
    ordinary_taxable_income: float,
    net_capital_gains: float,
    cg_brackets: Sequence[Bracket],
) -> float:
    """Tax on preferential gains stacked on top of ordinary taxable income.

    Ordinary income fills the capital-gains brackets first, so each dollar of
    gains lands in the bracket reached by ``ordinary + gains so far``.

    Args:
        ordinary_taxable_income: Taxable income excluding the gains.
        net_capital_gains: Preferential gains included in taxable income.
        cg_brackets: 0% / 15% / 20% brackets for the filing status.
    """
    if net_capital_gains <= 0:
        return 0.0
    base = max(0.0, ordinary_taxable_income)
    top = base + net_capital_gains
    tax = 0.0
    for bracket in cg_brackets:
        in_bracket = min(top, bracket.upper()) - max(base, bracket.floor)
        if in_bracket > 0:
            tax += in_bracket * bracket.rate
    return tax


def taxable_social_security(
    provisional_income: float,
    ss_benefit: float,
    thresholds: Mapping[str, tuple[float, float]],
    filing_status: str,
) -> float:
    """Taxable portion of Social Security benefits (two-tier 50% / 85% rule).

    Args:
        provisional_income: Non-SS income plus half of the SS benefit.
        ss_benefit: Gross annual benefit.
        thresholds: ``(first, second)`` provisional-income thresholds by status.
        filing_status: ``"single"`` or ``"married_jointly"``.

    Returns:
        Included amount, always within ``[0, 0.85 * ss_benefit]``.
    """
    if ss_benefit <= 0:
        return 0.0
    first, second = thresholds[filing_status]
    if provisional_income <= first:
        return 0.0
    half_benefit = _SS_FIRST_TIER_RATE * ss_benefit
    if provisional_income <= second:
        return min(half_benefit, _SS_FIRST_TIER_RATE * (provisional_income - first))
    first_tier_amount = min(half_benefit, _SS_FIRST_TIER_RATE * (second - first))
    return min(
        _SS_MAX_INCLUSION * ss_benefit,
        _SS_MAX_INCLUSION * (provisional_income - second) + first_tier_amount,
    )


def net_investment_income_tax(
    magi: float,
    net_investment_income: float,
    filing_status: str,
) -> float:
    """3.8% surtax on the lesser of NII and MAGI above the filing threshold."""
    excess = max(0.0, magi - NIIT_THRESHOLDS[filing_status])
    return max(0.0, min(net_investment_income, excess)) * NIIT_RATE


def bracket_ceiling(target_rate: float, brackets: Sequence[Bracket]) -> float:
    """Top of the highest bracket whose rate is at or below ``target_rate``.

    Expressed in taxable income (before adding back the standard deduction).
    Returns ``inf`` when the target reaches the unbounded top bracket and 0
    when even the first bracket's rate exceeds the target.
    """
    ceiling = 0.0
    for bracket in brackets:
        if bracket.rate > target_rate + 1e-12:
            break
        ceiling = bracket.upper()
    return ceiling


def marginal_rate(taxable_income: float, brackets: Sequence[Bracket]) -> float:
    """Return the marginal ordinary rate at ``taxable_income``."""
    for bracket in brackets:
        if bracket.ceiling is None or taxable_income < bracket.ceiling:
            return bracket.rate
    return brackets[-1].rate


@dataclass(frozen=True, slots=True)
class FederalTaxBreakdown:
    """Federal tax components for one year."""

    provisional_income: float
    taxable_social_security: float
    magi: float
    taxable_income: float
    ordinary_taxable_income: float
    preferential_taxable_income: float
    ordinary_tax: float
    capital_gains_tax: float
    niit: float

    @property
    def total(self) -> float:
        return self.ordinary_tax + self.capital_gains_tax + self.niit


def compute_federal_taxes(
    table: YearlyTaxLawTable,
    filing_status: str,
    ordinary_income: float,
    preferential_income: float,
    ss_benefit: float,
    net_investment_income: float = 0.0,
    include_niit: bool = False,
) -> FederalTaxBreakdown:
    """Compute a year's federal taxes from its income composition.

    The standard deduction is absorbed by ordinary income first; preferential
    income (qualified dividends, long-term gains) is taxed by stacking on top
    of the ordinary slice.

    Args:
        table: Tax-law table for the year.
        filing_status: ``"single"`` or ``"married_jointly"``.
        ordinary_income: Ordinary income excluding Social Security.
        preferential_income: Qualified dividends and long-term gains.
        ss_benefit: Gross Social Security benefit.
        net_investment_income: Income subject to NIIT.
        include_niit: Whether to add the Net Investment Income Tax.
    """
    provisional = ordinary_income + preferential_income + 0.5 * ss_benefit
    taxable_ss = taxable_social_security(
        provisional, ss_benefit, table.ss_thresholds, filing_status
    )
    magi = ordinary_income + preferential_income + taxable_ss
    taxable_income = max(0.0, magi - table.standard_deduction[filing_status])
    preferential_taxable = min(max(0.0, preferential_income), taxable_income)
    ordinary_taxable = taxable_income - preferential_taxable

    ord_tax = ordinary_tax(ordinary_taxable, table.ordinary_brackets[filing_status])
    cg_tax = capital_gains_tax(
        ordinary_taxable, preferential_taxable, table.capital_gains_brackets[filing_status]
    )
    niit = (
        net_investment_income_tax(magi, net_investment_income, filing_status)
        if include_niit
        else 0.0
    )
    return FederalTaxBreakdown(
        provisional_income=provisional,
        taxable_social_security=taxable_ss,
        magi=magi,
        taxable_income=taxable_income,
        ordinary_taxable_income=ordinary_taxable,
        preferential_taxable_income=preferential_taxable,
        ordinary_tax=ord_tax,
        capital_gains_tax=cg_tax,
        niit=niit,
    )
