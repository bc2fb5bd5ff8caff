"""
Accounts Receivable Helpers (``ledger_modules.ar.helpers``).

Pure invoice arithmetic.  Every amount is rounded per line to the
currency's minor unit before anything is summed, so the posted legs are
the sum of already-rounded line amounts.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from ledger_kernel.domain.currency import round_money
from ledger_modules.ar.models import InvoiceTotals, LineAmounts


def compute_line(
    quantity: Decimal,
    unit_price: Decimal,
    discount: Decimal,
    tax_rate: Decimal,
    currency: str = "USD",
    rounding: str = ROUND_HALF_UP,
) -> LineAmounts:
    """
    net = round(qty * price - discount), tax = round(net * rate).

    >>> compute_line(Decimal("2"), Decimal("100"), Decimal("0"), Decimal("0.10")).total
    Decimal('220.00')
    """
    gross = round_money(quantity * unit_price, currency, rounding)
    net = round_money(quantity * unit_price - discount, currency, rounding)
    tax = round_money(net * tax_rate, currency, rounding)
    return LineAmounts(
        gross=gross,
        discount=gross - net,
        net=net,
        tax_rate=tax_rate,
        tax=tax,
    )


def compute_totals(
    lines: Sequence[LineAmounts],
    shipping: Decimal = Decimal("0"),
    currency: str = "USD",
    rounding: str = ROUND_HALF_UP,
) -> InvoiceTotals:
    zero = Decimal("0")
    return InvoiceTotals(
        subtotal=sum((line.net for line in lines), zero),
        discount_total=sum((line.discount for line in lines), zero),
        tax_total=sum((line.tax for line in lines), zero),
        shipping=round_money(shipping, currency, rounding),
    )
