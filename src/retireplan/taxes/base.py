"""Base protocol for tax-law table providers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from retireplan.taxes.law import YearlyTaxLawTable


class TaxLawProvider(Protocol):
    """Supplies tax-law reference tables by calendar year.

    The projection engine depends only on this protocol, so tests can inject
    fixed historical tables without touching package data.
    """

    def get_year_data(self, year: int) -> YearlyTaxLawTable:
        """Return the table for ``year``.

        Raises:
            UnsupportedYear: If no table exists and none can be extrapolated.
        """
        ...

    def supports(self, year: int) -> bool:
        """Whether :meth:`get_year_data` would succeed for ``year``."""
        ...
