"""
Tax-rate resolution for invoice lines.

``TaxRateResolver`` is the seam the invoice service depends on;
``StaticTaxRateResolver`` serves rates from a mapping, typically
``ledger_config.bridges.build_tax_rates(config)``.
"""

from collections.abc import Mapping
from decimal import Decimal
from typing import Protocol, runtime_checkable

from ledger_kernel.exceptions import TaxRateNotFoundError, ValidationError


@runtime_checkable
class TaxRateResolver(Protocol):
    """Rate for a tax code, as a fraction (0.10 for 10%)."""

    def rate_for(self, tenant_id: str, company_id: str, tax_code: str) -> Decimal:
        ...


class StaticTaxRateResolver:
    """Same rates for every tenant and company."""

    def __init__(self, rates: Mapping[str, Decimal]):
        for code, rate in rates.items():
            if rate < 0 or rate > 1:
                raise ValidationError("tax_rate", f"{code}: rate must lie in [0, 1]")
        self._rates = dict(rates)

    def rate_for(self, tenant_id: str, company_id: str, tax_code: str) -> Decimal:
        try:
            return self._rates[tax_code]
        except KeyError:
            raise TaxRateNotFoundError(tax_code) from None
