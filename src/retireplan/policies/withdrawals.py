"""Withdrawal ordering policy: taxable -> traditional -> roth."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

WITHDRAWAL_ORDER: tuple[str, ...] = ("taxable", "traditional", "roth")

# Cent-level tolerance for the traditional gross-up iteration.
_TOLERANCE = 0.005
_MAX_ITERATIONS = 200


@dataclass(frozen=True, slots=True)
class DrawResult:
    """Outcome of funding a cash shortfall.

    Attributes:
        taxable: Drawn from the taxable account.
        traditional: Drawn from the tax-deferred account (ordinary income).
        roth: Drawn from the Roth account.
        unfunded: Part of the shortfall no account could cover.
    """

    taxable: float = 0.0
    traditional: float = 0.0
    roth: float = 0.0
    unfunded: float = 0.0

    @property
    def total(self) -> float:
        return self.taxable + self.traditional + self.roth


def draw_in_order(
    balances: Mapping[str, float],
    amount: float,
    order: Sequence[str] = WITHDRAWAL_ORDER,
) -> tuple[dict[str, float], float]:
    """Take ``amount`` from accounts in priority order, without tax effects.

    Args:
        balances: Available balance per account name.
        amount: Cash needed.
        order: Priority list of account names.

    Returns:
        ``(draws, remaining)``: amount drawn per account and the part of
        ``amount`` left uncovered.
    """
    remaining = max(0.0, amount)
    draws: dict[str, float] = {}
    for account in order:
        draw = min(remaining, max(0.0, balances.get(account, 0.0)))
        draws[account] = draw
        remaining -= draw
    return draws, remaining


def settle_shortfall(
    shortfall: float,
    balances: Mapping[str, float],
    extra_tax: Callable[[float], float],
) -> DrawResult:
    """Fund a shortfall taxable first, then traditional, then Roth.

    A traditional draw is itself ordinary income, so the draw is grossed up
    until it covers both the remaining shortfall and the tax it causes. The
    iteration ``d = remaining + extra_tax(d)`` converges because the marginal
    tax on an extra dollar is below one dollar.

    Args:
        shortfall: Cash still needed after the year's income.
        balances: Balances available per account (``taxable``, ``traditional``,
            ``roth``).
        extra_tax: Additional tax for the year if ``d`` more is drawn from
            the traditional account.
    """
    if shortfall <= 0:
        return DrawResult()

    taxable_draws, remaining = draw_in_order(balances, shortfall, ("taxable",))
    taxable_draw = taxable_draws["taxable"]

    traditional_available = max(0.0, balances.get("traditional", 0.0))
    traditional_draw = 0.0
    tax = 0.0
    if remaining > 0 and traditional_available > 0:
        draw = min(traditional_available, remaining)
        for _ in range(_MAX_ITERATIONS):
            tax = extra_tax(draw)
            next_draw = min(traditional_available, remaining + tax)
            if abs(next_draw - draw) < _TOLERANCE:
                draw = next_draw
                break
            draw = next_draw
        else:
            logger.warning("Traditional gross-up did not settle after %d passes", _MAX_ITERATIONS)
        traditional_draw = draw
        tax = extra_tax(traditional_draw)
        remaining = remaining + tax - traditional_draw
        if remaining < _TOLERANCE:
            remaining = 0.0

    roth_draws, remaining = draw_in_order(balances, remaining, ("roth",))
    return DrawResult(
        taxable=taxable_draw,
        traditional=traditional_draw,
        roth=roth_draws["roth"],
        unfunded=remaining,
    )
