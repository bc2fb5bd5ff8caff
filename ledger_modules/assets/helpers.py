"""
Fixed Assets Helpers (``ledger_modules.assets.helpers``).

Responsibility
--------------
Pure calculation functions for monthly depreciation (straight-line,
double-declining balance, sum-of-years'-digits, units-of-production),
period arithmetic and schedule previews.  No side effects.

Architecture position
---------------------
**Modules layer** -- pure helper functions.  No I/O, no session, no
clock, no database access.  Called by ``FixedAssetService`` or from tests.

Invariants enforced
-------------------
* All numeric inputs and outputs use ``Decimal`` -- NEVER ``float``.
* Every monthly amount is quantized to 0.01 (ROUND_HALF_UP) and clamped
  to ``[0, remaining depreciable base]``, so accumulated depreciation is
  non-decreasing and never exceeds ``cost - salvage``.
* Month 0 is the acquisition month.  The last month of the useful life
  takes whatever base remains; months beyond the life depreciate nothing.
  Units-of-production is bounded by the base only.
* Life-years count from the acquisition month (``months // 12 + 1``), not
  calendar years.

Failure modes
-------------
* Unknown method  -> ``UnsupportedDepreciationMethodError``.
* Malformed period string  -> ``ValidationError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from ledger_kernel.exceptions import UnsupportedDepreciationMethodError, ValidationError
from ledger_modules.assets.models import DepreciationMethod, DepreciationTerms, ScheduleRow

_CENT = Decimal("0.01")
_ZERO = Decimal("0")


def quantize_cents(amount: Decimal) -> Decimal:
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------


def period_key(day: date) -> str:
    """``date(2024, 3, 17)`` -> ``"2024-03"``."""
    return f"{day.year:04d}-{day.month:02d}"


def parse_period(period: str) -> date:
    """``"2024-03"`` -> ``date(2024, 3, 1)``; raises ValidationError."""
    try:
        year_text, month_text = period.split("-")
        if len(year_text) != 4 or len(month_text) != 2:
            raise ValueError(period)
        return date(int(year_text), int(month_text), 1)
    except (AttributeError, ValueError):
        raise ValidationError("period", f"expected YYYY-MM, got {period!r}") from None


def add_months(day: date, months: int) -> date:
    """First day of the month ``months`` after ``day``'s month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def months_elapsed(start: date, period_start: date) -> int:
    """Whole months from ``start``'s month to ``period_start``'s month."""
    return (period_start.year - start.year) * 12 + (period_start.month - start.month)


# ---------------------------------------------------------------------------
# Annual amounts
# ---------------------------------------------------------------------------


def straight_line_monthly(terms: DepreciationTerms) -> Decimal:
    return terms.depreciable_base / terms.useful_life_years / 12


def declining_balance_monthly(terms: DepreciationTerms, year_index: int) -> Decimal:
    """
    Double-declining balance at rate ``2 / years``.

    Book value at the start of life-year ``year_index`` is found by
    applying the prior years' annual amounts, each floored so book value
    never drops below salvage.
    """
    rate = Decimal(2) / terms.useful_life_years
    book_value = terms.cost
    for _ in range(year_index - 1):
        book_value -= max(_ZERO, min(book_value * rate, book_value - terms.salvage_value))
    annual = max(_ZERO, min(book_value * rate, book_value - terms.salvage_value))
    return annual / 12


def sum_of_years_monthly(terms: DepreciationTerms, year_index: int) -> Decimal:
    n = terms.useful_life_years
    remaining = n - (year_index - 1)
    if remaining <= 0:
        return _ZERO
    digits = Decimal(n * (n + 1)) / 2
    return terms.depreciable_base * remaining / digits / 12


def units_of_production_amount(terms: DepreciationTerms, units: Decimal) -> Decimal:
    if not terms.total_units:
        return _ZERO
    return terms.depreciable_base / terms.total_units * units


# ---------------------------------------------------------------------------
# Monthly amount
# ---------------------------------------------------------------------------


def monthly_depreciation(
    terms: DepreciationTerms,
    month_index: int,
    accumulated: Decimal,
    units: Decimal | None = None,
) -> Decimal:
    """
    Depreciation for month ``month_index`` of the asset's life.

    Preconditions:
        - ``accumulated`` is the depreciation recorded before this month.
        - ``units`` is the usage for the month (units-of-production only).
    Postconditions:
        - 0 <= result <= cost - salvage - accumulated, quantized to 0.01.
    """
    remaining = terms.depreciable_base - accumulated
    if remaining <= 0 or month_index < 0:
        return _ZERO

    method = terms.method
    if method == DepreciationMethod.UNITS_OF_PRODUCTION:
        raw = units_of_production_amount(terms, units or _ZERO)
    else:
        if month_index >= terms.life_months:
            return _ZERO
        if month_index == terms.life_months - 1:
            return remaining
        year_index = month_index // 12 + 1
        if method == DepreciationMethod.STRAIGHT_LINE:
            raw = straight_line_monthly(terms)
        elif method == DepreciationMethod.DECLINING_BALANCE:
            raw = declining_balance_monthly(terms, year_index)
        elif method == DepreciationMethod.SUM_OF_YEARS:
            raw = sum_of_years_monthly(terms, year_index)
        else:
            raise UnsupportedDepreciationMethodError(str(method))

    return min(max(quantize_cents(raw), _ZERO), remaining)


@dataclass(frozen=True)
class DepreciationState:
    """Accumulated depreciation and net book value after some months."""

    accumulated: Decimal
    net_book_value: Decimal

    @classmethod
    def initial(cls, terms: DepreciationTerms) -> DepreciationState:
        return cls(accumulated=_ZERO, net_book_value=terms.cost)

    def next(self, amount: Decimal) -> DepreciationState:
        return DepreciationState(
            accumulated=self.accumulated + amount,
            net_book_value=self.net_book_value - amount,
        )


def build_schedule(
    terms: DepreciationTerms,
    acquisition_date: date,
    units_by_period: Mapping[str, Decimal] | None = None,
) -> list[ScheduleRow]:
    """
    Month-by-month preview over the useful life.

    Units-of-production without ``units_by_period`` assumes even usage of
    ``total_units`` across the life.
    """
    state = DepreciationState.initial(terms)
    even_units = None
    if terms.method == DepreciationMethod.UNITS_OF_PRODUCTION and terms.total_units:
        even_units = terms.total_units / terms.life_months

    rows: list[ScheduleRow] = []
    for month_index in range(terms.life_months):
        period = period_key(add_months(acquisition_date, month_index))
        units = None
        if terms.method == DepreciationMethod.UNITS_OF_PRODUCTION:
            if units_by_period is not None:
                units = units_by_period.get(period, _ZERO)
            else:
                units = even_units
        amount = monthly_depreciation(terms, month_index, state.accumulated, units)
        state = state.next(amount)
        rows.append(
            ScheduleRow(
                period=period,
                month_index=month_index,
                amount=amount,
                accumulated=state.accumulated,
                net_book_value=state.net_book_value,
            )
        )
    return rows
