"""Roth-conversion policy: fill a tax bracket or an IRMAA tier, never past it."""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass

from retireplan.config.schema import ConversionWindow, RothConversionConfig
from retireplan.taxes.law import YearlyTaxLawTable
from retireplan.taxes.medicare import tier_ceiling
from retireplan.taxes.us_federal import (
    FederalTaxBreakdown,
    bracket_ceiling,
    taxable_social_security,
)
from retireplan.utils.exceptions import InvalidInputs

# Float slack when comparing against a ceiling.
_EPS = 1e-9


@dataclass(frozen=True, slots=True)
class ConversionContext:
    """Everything the policy needs to know about the decision year.

    Attributes:
        year: Decision year.
        filing_status: Filing status for the year.
        ordinary_income: Ordinary income before any conversion (taxable RMD
            included, Social Security excluded).
        preferential_income: Qualified dividends and long-term gains.
        ss_benefit: Gross household Social Security benefit.
        traditional_available: Tax-deferred balance left after the RMD.
        ss_start_year: Primary member's first benefit year, if any.
        rmd_start_year: Primary member's first RMD year.
    """

    year: int
    filing_status: str
    ordinary_income: float
    preferential_income: float
    ss_benefit: float
    traditional_available: float
    ss_start_year: int | None = None
    rmd_start_year: int | None = None


def in_conversion_window(
    window: ConversionWindow,
    year: int,
    ss_start_year: int | None = None,
    rmd_start_year: int | None = None,
) -> bool:
    """Whether conversions are allowed in ``year``.

    ``before_ss`` and ``before_rmd`` are open-ended when the anchor year is
    unknown; ``years`` is the half-open range ``[start_year, stop_year)``.
    """
    if window.mode == "before_ss":
        return ss_start_year is None or year < ss_start_year
    if window.mode == "before_rmd":
        return rmd_start_year is None or year < rmd_start_year
    if window.mode == "years":
        if window.start_year is None or window.stop_year is None:
            raise InvalidInputs("window mode 'years' needs start_year and stop_year")
        return window.start_year <= year < window.stop_year
    return True


def _income_growth(
    context: ConversionContext, table: YearlyTaxLawTable
) -> tuple[Callable[[float], float], float]:
    """Build ``h(x)``: conversion plus the taxable SS it pulls in."""
    base = context.ordinary_income + context.preferential_income + 0.5 * context.ss_benefit
    thresholds = table.ss_thresholds
    status = context.filing_status
    benefit = context.ss_benefit

    def h(x: float) -> float:
        return x + taxable_social_security(base + x, benefit, thresholds, status)

    return h, base


def _breakpoints(context: ConversionContext, table: YearlyTaxLawTable, base: float) -> list[float]:
    """Conversion amounts where ``h`` changes slope."""
    benefit = context.ss_benefit
    if benefit <= 0:
        return [0.0]
    first, second = table.ss_thresholds[context.filing_status]
    first_tier = min(0.5 * benefit, 0.5 * (second - first))
    provisional = [
        first,
        second,
        first + benefit,
        second + (0.85 * benefit - first_tier) / 0.85,
    ]
    points = {0.0}
    points.update(p - base for p in provisional if p - base > 0)
    return sorted(points)


def max_conversion_under(
    limit: float,
    context: ConversionContext,
    table: YearlyTaxLawTable,
) -> float:
    """Largest cent amount ``x`` with ``h(x) <= limit``, capped at availability.

    ``h`` is strictly increasing and piecewise linear, so the segment holding
    ``limit`` is found by walking the breakpoints and inverted exactly.
    """
    available = max(0.0, context.traditional_available)
    if available <= 0:
        return 0.0
    if math.isinf(limit):
        return math.floor(available * 100) / 100
    h, base = _income_growth(context, table)
    if limit < 0 or h(0.0) > limit + _EPS:
        return 0.0

    points = _breakpoints(context, table, base)
    x = math.inf
    for start, end in zip(points, points[1:]):
        h_start, h_end = h(start), h(end)
        if h_end >= limit:
            x = start + (limit - h_start) * (end - start) / (h_end - h_start)
            break
    if math.isinf(x):
        start = points[-1]
        slope = h(start + 1.0) - h(start)
        x = start + (limit - h(start)) / slope

    # Float error may leave x a hair under an exact cent.
    x = math.floor((min(x, available) + 1e-7) * 100) / 100
    x = min(x, math.floor(available * 100) / 100)
    while x > 0 and h(x) > limit + _EPS:
        x = round(x - 0.01, 2)
    return max(0.0, x)


def conversion_ceiling(
    config: RothConversionConfig,
    table: YearlyTaxLawTable,
    filing_status: str,
    premium_table: YearlyTaxLawTable | None = None,
) -> float:
    """The income ceiling the policy fills to, ``inf`` when unbounded.

    Ordinary taxable income for ``fill_bracket``; MAGI for ``irmaa_tier``,
    read from ``premium_table`` when given.
    """
    if config.strategy == "fill_bracket":
        return bracket_ceiling(config.fill_to_bracket_top, table.ordinary_brackets[filing_status])
    brackets = (premium_table or table).irmaa_brackets[filing_status]
    tier = min(config.irmaa_target_tier, len(brackets) - 1)
    magi_ceiling = tier_ceiling(tier, brackets)
    return math.inf if magi_ceiling is None else magi_ceiling


def target_income(config: RothConversionConfig, breakdown: FederalTaxBreakdown) -> float:
    """The part of a year's tax picture held against ``conversion_ceiling``."""
    if config.strategy == "fill_bracket":
        return breakdown.ordinary_taxable_income
    return breakdown.magi


def fit_conversion(amount: float, within: Callable[[float], bool]) -> float:
    """Largest cent amount in ``[0, amount]`` that ``within`` accepts.

    ``within`` must be monotone: once an amount fails, every larger one does.
    Returns 0.0 when nothing is accepted.
    """
    low, high = 0, int(math.floor(amount * 100 + 1e-7))
    if high <= 0 or not within(0.0):
        return 0.0
    if within(high / 100):
        return high / 100
    while high - low > 1:
        mid = (low + high) // 2
        if within(mid / 100):
            low = mid
        else:
            high = mid
    return low / 100


def recommend_conversion(
    context: ConversionContext,
    table: YearlyTaxLawTable,
    config: RothConversionConfig,
    premium_table: YearlyTaxLawTable | None = None,
) -> float:
    """Recommend a Roth conversion for the decision year.

    Args:
        context: Pre-conversion income picture for the year.
        table: Tax-law table of the decision year.
        config: Conversion policy.
        premium_table: Table of the year whose premiums the conversion year's
            MAGI will set (``year + lookback``); falls back to ``table``.

    Returns:
        Dollars to move from traditional to Roth: the largest amount that keeps
        ordinary taxable income at or below the target bracket's top
        (``fill_bracket``) or MAGI at or below the target IRMAA tier's ceiling
        (``irmaa_tier``). Zero when disabled, outside the window, already past
        the ceiling, or nothing is available. Income the year still has to
        realize to pay its bills is not known here; see ``fit_conversion``.
    """
    if not config.enabled or context.traditional_available <= 0:
        return 0.0
    if not in_conversion_window(
        config.window, context.year, context.ss_start_year, context.rmd_start_year
    ):
        return 0.0

    status = context.filing_status
    ceiling = conversion_ceiling(config, table, status, premium_table)
    if config.strategy == "fill_bracket":
        limit = ceiling + table.standard_deduction[status] - context.ordinary_income
    else:
        limit = ceiling - context.ordinary_income - context.preferential_income
    return max_conversion_under(limit, context, table)
