"""Medicare premiums and the income-related monthly adjustment (IRMAA)."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from retireplan.taxes.law import IrmaaBracket


@dataclass(frozen=True, slots=True)
class IrmaaTier:
    """Bracket selected by a look-back MAGI.

    Attributes:
        tier: 0 for the standard premium, 1+ for surcharge tiers.
        part_b_premium: Monthly Part B premium per enrollee.
        part_d_surcharge: Monthly Part D surcharge per enrollee.
        base_part_b_premium: Standard (tier 0) monthly Part B premium.
    """

    tier: int
    part_b_premium: float
    part_d_surcharge: float
    base_part_b_premium: float

    @property
    def monthly_surcharge(self) -> float:
        """Per-enrollee monthly amount above the standard premium."""
        return self.part_b_premium - self.base_part_b_premium + self.part_d_surcharge


def irmaa_tier(magi: float, brackets: Sequence[IrmaaBracket]) -> IrmaaTier:
    """Find the IRMAA bracket for a look-back MAGI.

    A bracket covers ``income_floor < magi <= income_ceiling``: a MAGI exactly
    at a ceiling stays in the lower tier. The first bracket also covers zero
    and negative MAGI; the last bracket has no ceiling.

    Args:
        magi: MAGI from the look-back year (two years before the premium year).
        brackets: IRMAA brackets of the premium year for the filing status.
    """
    base = brackets[0].part_b_premium
    for tier, bracket in enumerate(brackets):
        if bracket.income_ceiling is None or magi <= bracket.income_ceiling:
            return IrmaaTier(tier, bracket.part_b_premium, bracket.part_d_surcharge, base)
    last = brackets[-1]
    return IrmaaTier(len(brackets) - 1, last.part_b_premium, last.part_d_surcharge, base)


def tier_ceiling(tier: int, brackets: Sequence[IrmaaBracket]) -> float | None:
    """Highest MAGI that still lands in ``tier`` (None for the top tier)."""
    if not 0 <= tier < len(brackets):
        raise ValueError(f"IRMAA tier {tier} out of range 0..{len(brackets) - 1}")
    return brackets[tier].income_ceiling


def annual_premiums(tier: IrmaaTier, enrollees: int) -> tuple[float, float]:
    """Annual Medicare premium and IRMAA surcharge for ``enrollees`` members.

    Returns:
        ``(total_premium, surcharge_above_standard)``, both annual.
    """
    if enrollees <= 0:
        return 0.0, 0.0
    monthly = tier.part_b_premium + tier.part_d_surcharge
    return monthly * 12 * enrollees, tier.monthly_surcharge * 12 * enrollees
