"""Custom exceptions for retireplan."""

from __future__ import annotations


class RetireplanError(Exception):
    """Base exception for retireplan."""


class ConfigError(RetireplanError):
    """Invalid configuration or malformed reference data."""


class InvalidInputs(ConfigError, ValueError):
    """Household or scenario inputs failed validation before a run."""


class UnsupportedYear(RetireplanError):
    """No tax-law table exists for the requested calendar year."""

    def __init__(self, year: int, supported: tuple[int, ...] = ()) -> None:
        self.year = year
        self.supported = supported
        if supported:
            msg = f"no tax-law table for {year} (published years: {', '.join(map(str, supported))})"
        else:
            msg = f"no tax-law table for {year}"
        super().__init__(msg)


class NoDivisorForAge(RetireplanError):
    """RMD requested for an age with no Uniform Lifetime Table entry."""

    def __init__(self, age: int) -> None:
        self.age = age
        super().__init__(f"no RMD divisor for age {age}")


class SimulationError(RetireplanError):
    """Error during simulation."""
