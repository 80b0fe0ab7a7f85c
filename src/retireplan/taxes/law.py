"""Per-year tax-law reference tables and the package-data provider."""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from retireplan.io.yaml_loader import list_package_files, load_package_yaml
from retireplan.utils.exceptions import ConfigError, UnsupportedYear

logger = logging.getLogger(__name__)

FILING_STATUSES: tuple[str, ...] = ("single", "married_jointly")

_TABLES_DIR = "taxes/tables"
_FEDERAL_PREFIX = "us_federal_"


@dataclass(frozen=True, slots=True)
class Bracket:
    """One marginal-rate bracket. ``ceiling`` is None for the top bracket."""

    floor: float
    ceiling: float | None
    rate: float

    def upper(self) -> float:
        """Ceiling as a float, ``inf`` for the unbounded bracket."""
        return math.inf if self.ceiling is None else self.ceiling


@dataclass(frozen=True, slots=True)
class IrmaaBracket:
    """Medicare income bracket with monthly premiums for one enrollee."""

    income_floor: float
    income_ceiling: float | None
    part_b_premium: float
    part_d_surcharge: float


@dataclass(frozen=True)
class YearlyTaxLawTable:
    """Tax-law constants for a single calendar year.

    Attributes:
        year: Calendar year the table applies to.
        ordinary_brackets: Ordinary-income brackets per filing status.
        capital_gains_brackets: Long-term gains brackets per filing status.
        standard_deduction: Standard deduction per filing status.
        ss_thresholds: ``(first, second)`` provisional-income thresholds.
        irmaa_brackets: Medicare IRMAA brackets per filing status.
        irmaa_lookback_years: Years between the MAGI year and premium year.
        part_d_oop_cap: Annual Part D out-of-pocket cap.
        qcd_limit: Annual per-person QCD limit.
        rmd_divisors: Uniform Lifetime Table, age to divisor.
        rmd_start_ages: ``(last_birth_year, start_age)`` pairs; a None birth
            year covers everyone born later.
        extrapolated: True when inflated forward from a published table.
    """

    year: int
    ordinary_brackets: Mapping[str, tuple[Bracket, ...]]
    capital_gains_brackets: Mapping[str, tuple[Bracket, ...]]
    standard_deduction: Mapping[str, float]
    ss_thresholds: Mapping[str, tuple[float, float]]
    irmaa_brackets: Mapping[str, tuple[IrmaaBracket, ...]]
    irmaa_lookback_years: int
    part_d_oop_cap: float
    qcd_limit: float
    rmd_divisors: Mapping[int, float] = field(default_factory=dict)
    rmd_start_ages: tuple[tuple[int | None, int], ...] = ()
    extrapolated: bool = False

    def __post_init__(self) -> None:
        for status in FILING_STATUSES:
            _check_brackets(
                [(b.floor, b.ceiling) for b in self.ordinary_brackets[status]],
                f"{self.year} ordinary brackets ({status})",
            )
            _check_brackets(
                [(b.floor, b.ceiling) for b in self.capital_gains_brackets[status]],
                f"{self.year} capital-gains brackets ({status})",
            )
            _check_brackets(
                [(b.income_floor, b.income_ceiling) for b in self.irmaa_brackets[status]],
                f"{self.year} IRMAA brackets ({status})",
            )

    def inflated(self, factor: float, year: int) -> YearlyTaxLawTable:
        """Return a copy with dollar thresholds scaled by ``factor``.

        Rates, the statutory SS thresholds and RMD divisors are unchanged.
        """

        def scale(value: float | None) -> float | None:
            return None if value is None else round(value * factor, 2)

        def scale_brackets(brackets: tuple[Bracket, ...]) -> tuple[Bracket, ...]:
            return tuple(
                Bracket(round(b.floor * factor, 2), scale(b.ceiling), b.rate) for b in brackets
            )

        return replace(
            self,
            year=year,
            ordinary_brackets=_freeze(
                {s: scale_brackets(brackets) for s, brackets in self.ordinary_brackets.items()}
            ),
            capital_gains_brackets=_freeze(
                {s: scale_brackets(b) for s, b in self.capital_gains_brackets.items()}
            ),
            standard_deduction=_freeze(
                {s: round(v * factor, 2) for s, v in self.standard_deduction.items()}
            ),
            irmaa_brackets=_freeze(
                {
                    s: tuple(
                        IrmaaBracket(
                            round(b.income_floor * factor, 2),
                            scale(b.income_ceiling),
                            round(b.part_b_premium * factor, 2),
                            round(b.part_d_surcharge * factor, 2),
                        )
                        for b in brackets
                    )
                    for s, brackets in self.irmaa_brackets.items()
                }
            ),
            part_d_oop_cap=round(self.part_d_oop_cap * factor, 2),
            qcd_limit=round(self.qcd_limit * factor, 2),
            extrapolated=True,
        )


def _freeze(mapping: dict[Any, Any]) -> Mapping[Any, Any]:
    return MappingProxyType(mapping)


def _check_brackets(bounds: list[tuple[float, float | None]], label: str) -> None:
    """Brackets must start at 0, be contiguous and increasing, and end unbounded."""
    if not bounds:
        raise ConfigError(f"{label}: no brackets")
    if bounds[0][0] != 0:
        raise ConfigError(f"{label}: first bracket must start at 0")
    for i, (lo, hi) in enumerate(bounds):
        last = i == len(bounds) - 1
        if hi is None:
            if not last:
                raise ConfigError(f"{label}: only the last bracket may be unbounded")
            continue
        if last:
            raise ConfigError(f"{label}: last bracket must be unbounded")
        if hi <= lo:
            raise ConfigError(f"{label}: bracket {i} ceiling {hi} not above floor {lo}")
        if bounds[i + 1][0] != hi:
            raise ConfigError(f"{label}: gap between bracket {i} and {i + 1}")


def _parse_brackets(rows: list[list[Any]]) -> tuple[Bracket, ...]:
    brackets: list[Bracket] = []
    prev = 0.0
    for upper_bound, rate in rows:
        ceiling = None if upper_bound is None else float(upper_bound)
        brackets.append(Bracket(prev, ceiling, float(rate)))
        prev = math.inf if ceiling is None else ceiling
    return tuple(brackets)


def _parse_irmaa(rows: list[list[Any]]) -> tuple[IrmaaBracket, ...]:
    brackets: list[IrmaaBracket] = []
    prev = 0.0
    for upper_bound, part_b, part_d in rows:
        ceiling = None if upper_bound is None else float(upper_bound)
        brackets.append(IrmaaBracket(prev, ceiling, float(part_b), float(part_d)))
        prev = math.inf if ceiling is None else ceiling
    return tuple(brackets)


def load_rmd_data() -> tuple[dict[int, float], tuple[tuple[int | None, int], ...]]:
    """Load the Uniform Lifetime Table and SECURE 2.0 start ages."""
    data: dict[str, Any] = load_package_yaml(f"{_TABLES_DIR}/rmd_divisors.yaml")
    divisors = {int(k): float(v) for k, v in data["divisors"].items()}
    start_ages = tuple(
        (None if birth is None else int(birth), int(age))
        for birth, age in data["start_age_by_birth_year"]
    )
    return divisors, start_ages


def table_from_dict(
    data: Mapping[str, Any],
    rmd_divisors: Mapping[int, float],
    rmd_start_ages: tuple[tuple[int | None, int], ...],
) -> YearlyTaxLawTable:
    """Build a validated table from parsed YAML content.

    Raises:
        ConfigError: If a required key is missing or brackets are malformed.
    """
    try:
        return YearlyTaxLawTable(
            year=int(data["tax_year"]),
            ordinary_brackets=_freeze(
                {s: _parse_brackets(data["ordinary_brackets"][s]) for s in FILING_STATUSES}
            ),
            capital_gains_brackets=_freeze(
                {s: _parse_brackets(data["ltcg_brackets"][s]) for s in FILING_STATUSES}
            ),
            standard_deduction=_freeze(
                {s: float(data["standard_deduction"][s]) for s in FILING_STATUSES}
            ),
            ss_thresholds=_freeze(
                {
                    s: (float(data["ss_thresholds"][s][0]), float(data["ss_thresholds"][s][1]))
                    for s in FILING_STATUSES
                }
            ),
            irmaa_brackets=_freeze(
                {s: _parse_irmaa(data["irmaa_brackets"][s]) for s in FILING_STATUSES}
            ),
            irmaa_lookback_years=int(data.get("irmaa_lookback_years", 2)),
            part_d_oop_cap=float(data["part_d_oop_cap"]),
            qcd_limit=float(data["qcd_limit"]),
            rmd_divisors=_freeze(dict(rmd_divisors)),
            rmd_start_ages=rmd_start_ages,
        )
    except KeyError as exc:
        raise ConfigError(f"tax-law table is missing key {exc}") from exc


def published_years() -> tuple[int, ...]:
    """Calendar years with a shipped ``us_federal_<year>.yaml`` table."""
    years = [
        int(path.stem.removeprefix(_FEDERAL_PREFIX))
        for path in list_package_files(_TABLES_DIR, f"{_FEDERAL_PREFIX}*.yaml")
    ]
    return tuple(sorted(years))


class PackageTaxLawProvider:
    """Tax-law provider backed by the YAML tables shipped with the package.

    Extrapolation policy: a year later than the newest published table is
    served by inflating that table by ``(1 + inflation_rate) ** gap`` when
    ``extrapolate`` is True, and rejected otherwise. Years before the oldest
    published table are always rejected.

    Tables are loaded lazily and cached; the cache is lock-protected so one
    provider can serve concurrent projection runs.
    """

    def __init__(self, inflation_rate: float = 0.025, extrapolate: bool = True) -> None:
        self._inflation_rate = inflation_rate
        self._extrapolate = extrapolate
        self._years = published_years()
        if not self._years:
            raise ConfigError("no published tax-law tables found")
        self._cache: dict[int, YearlyTaxLawTable] = {}
        self._lock = threading.Lock()
        self._rmd: tuple[dict[int, float], tuple[tuple[int | None, int], ...]] | None = None

    @property
    def years(self) -> tuple[int, ...]:
        """Published calendar years."""
        return self._years

    @property
    def inflation_rate(self) -> float:
        """Annual rate used to extrapolate beyond the newest table."""
        return self._inflation_rate

    def supports(self, year: int) -> bool:
        """Whether a table is published or can be extrapolated for ``year``."""
        if year in self._years:
            return True
        return self._extrapolate and year > self._years[-1]

    def get_year_data(self, year: int) -> YearlyTaxLawTable:
        """Return the table for ``year``, extrapolating when permitted.

        Raises:
            UnsupportedYear: If ``year`` is outside the supported range.
        """
        if not self.supports(year):
            raise UnsupportedYear(year, self._years)
        with self._lock:
            cached = self._cache.get(year)
            if cached is not None:
                return cached
            if year in self._years:
                table = self._load(year)
            else:
                latest = self._years[-1]
                base = self._cache.get(latest) or self._load(latest)
                self._cache[latest] = base
                factor = (1.0 + self._inflation_rate) ** (year - latest)
                table = base.inflated(factor, year)
                logger.debug(
                    "Extrapolated %d tax-law table from %d (factor %.4f)", year, latest, factor
                )
            self._cache[year] = table
            return table

    def _load(self, year: int) -> YearlyTaxLawTable:
        if self._rmd is None:
            self._rmd = load_rmd_data()
        divisors, start_ages = self._rmd
        data: dict[str, Any] = load_package_yaml(f"{_TABLES_DIR}/{_FEDERAL_PREFIX}{year}.yaml")
        return table_from_dict(data, divisors, start_ages)
