"""State income tax: ZIP code to state to flat effective rate."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from retireplan.io.yaml_loader import load_package_yaml


@dataclass(frozen=True, slots=True)
class StateTaxProfile:
    """Flat effective state income tax for a retiree.

    Attributes:
        state: Two-letter state code, or None when the ZIP is unrecognized.
        rate: Effective rate applied to the state tax base.
        retirement_exempt: Social Security and IRA/401(k)/pension
            distributions are excluded from the base.
    """

    state: str | None
    rate: float
    retirement_exempt: bool = False

    def tax(
        self,
        magi: float,
        taxable_social_security: float = 0.0,
        retirement_distributions: float = 0.0,
    ) -> float:
        """State tax on total income, capital gains included."""
        base = magi
        if self.retirement_exempt:
            base -= taxable_social_security + retirement_distributions
        return max(0.0, base) * self.rate


@lru_cache(maxsize=1)
def _state_data() -> tuple[tuple[tuple[int, int, str], ...], dict[str, tuple[float, bool]]]:
    data: dict[str, Any] = load_package_yaml("taxes/tables/state_income_tax.yaml")
    ranges = tuple((int(lo), int(hi), str(code)) for lo, hi, code in data["zip3_ranges"])
    states = {
        str(code): (float(info["rate"]), bool(info["retirement_exempt"]))
        for code, info in data["states"].items()
    }
    return ranges, states


def state_for_zip(zip_code: str) -> str | None:
    """Map a US ZIP (or ZIP+4) code to its two-letter state, if known."""
    digits = re.sub(r"\D", "", zip_code)
    if len(digits) < 5:
        return None
    prefix = int(digits[:3])
    ranges, _ = _state_data()
    for lo, hi, code in ranges:
        if lo <= prefix <= hi:
            return code
    return None


def state_tax_profile(zip_code: str, rate_override: float | None = None) -> StateTaxProfile:
    """Effective state tax profile for a household ZIP code.

    Args:
        zip_code: Household ZIP code.
        rate_override: Explicit rate that replaces the table rate.
    """
    state = state_for_zip(zip_code)
    _, states = _state_data()
    rate, exempt = states.get(state, (0.0, False)) if state else (0.0, False)
    if rate_override is not None:
        rate = rate_override
    return StateTaxProfile(state=state, rate=rate, retirement_exempt=exempt)
