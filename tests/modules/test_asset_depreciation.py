"""
Depreciation arithmetic.

Pure functions only; no session.  The property tests check the schedule
invariants over arbitrary terms: monthly amounts are non-negative cents,
accumulated depreciation never decreases and never exceeds cost minus
salvage, and time-based methods land exactly on the depreciable base.
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from ledger_kernel.exceptions import ValidationError
from ledger_modules.assets.helpers import (
    add_months,
    build_schedule,
    monthly_depreciation,
    months_elapsed,
    parse_period,
    period_key,
)
from ledger_modules.assets.models import DepreciationMethod, DepreciationTerms

SL = DepreciationMethod.STRAIGHT_LINE
DDB = DepreciationMethod.DECLINING_BALANCE
SYD = DepreciationMethod.SUM_OF_YEARS
UOP = DepreciationMethod.UNITS_OF_PRODUCTION


class TestStraightLine:

    def test_even_monthly_amount(self):
        terms = DepreciationTerms(Decimal("12000"), Decimal("0"), 5, SL)

        assert monthly_depreciation(terms, 0, Decimal("0")) == Decimal("200.00")
        assert monthly_depreciation(terms, 30, Decimal("6000")) == Decimal("200.00")

    def test_salvage_excluded(self):
        terms = DepreciationTerms(Decimal("13200"), Decimal("1200"), 5, SL)

        assert monthly_depreciation(terms, 0, Decimal("0")) == Decimal("200.00")

    def test_final_month_takes_remainder(self):
        terms = DepreciationTerms(Decimal("1000"), Decimal("0"), 1, SL)

        schedule = build_schedule(terms, date(2024, 1, 10))

        assert [row.amount for row in schedule[:11]] == [Decimal("83.33")] * 11
        assert schedule[-1].amount == Decimal("83.37")
        assert schedule[-1].accumulated == Decimal("1000")
        assert schedule[-1].net_book_value == Decimal("0")
        assert schedule[-1].period == "2024-12"

    def test_nothing_after_useful_life(self):
        terms = DepreciationTerms(Decimal("1200"), Decimal("0"), 1, SL)

        assert monthly_depreciation(terms, 12, Decimal("1100")) == Decimal("0")

    def test_fully_depreciated_asset(self):
        terms = DepreciationTerms(Decimal("1200"), Decimal("0"), 1, SL)

        assert monthly_depreciation(terms, 3, Decimal("1200")) == Decimal("0")

    def test_clamped_to_remaining_base(self):
        terms = DepreciationTerms(Decimal("1200"), Decimal("0"), 1, SL)

        assert monthly_depreciation(terms, 3, Decimal("1150")) == Decimal("50")


class TestAcceleratedMethods:

    def test_double_declining_first_two_years(self):
        terms = DepreciationTerms(Decimal("10000"), Decimal("1000"), 5, DDB)

        # year 1: 10000 * 0.4 / 12; year 2: 6000 * 0.4 / 12
        assert monthly_depreciation(terms, 0, Decimal("0")) == Decimal("333.33")
        assert monthly_depreciation(terms, 12, Decimal("4000")) == Decimal("200.00")

    def test_double_declining_never_below_salvage(self):
        terms = DepreciationTerms(Decimal("10000"), Decimal("1000"), 5, DDB)

        schedule = build_schedule(terms, date(2024, 1, 1))

        assert min(row.net_book_value for row in schedule) == Decimal("1000")

    def test_sum_of_years_digits(self):
        terms = DepreciationTerms(Decimal("15000"), Decimal("0"), 5, SYD)

        # 5/15 then 4/15 of the base per year
        assert monthly_depreciation(terms, 0, Decimal("0")) == Decimal("416.67")
        assert monthly_depreciation(terms, 12, Decimal("5000")) == Decimal("333.33")


class TestUnitsOfProduction:

    def test_amount_follows_usage(self):
        terms = DepreciationTerms(Decimal("10000"), Decimal("0"), 5, UOP, total_units=Decimal("100000"))

        assert monthly_depreciation(terms, 0, Decimal("0"), Decimal("1500")) == Decimal("150.00")
        assert monthly_depreciation(terms, 1, Decimal("150"), None) == Decimal("0")

    def test_bounded_by_base_not_life(self):
        terms = DepreciationTerms(Decimal("10000"), Decimal("0"), 1, UOP, total_units=Decimal("1000"))

        assert monthly_depreciation(terms, 40, Decimal("9990"), Decimal("100")) == Decimal("10")

    def test_schedule_assumes_even_usage(self):
        terms = DepreciationTerms(Decimal("1200"), Decimal("0"), 1, UOP, total_units=Decimal("120"))

        schedule = build_schedule(terms, date(2024, 1, 1))

        assert {row.amount for row in schedule} == {Decimal("100.00")}

    def test_schedule_with_recorded_usage(self):
        terms = DepreciationTerms(Decimal("1200"), Decimal("0"), 1, UOP, total_units=Decimal("120"))

        schedule = build_schedule(terms, date(2024, 1, 1), {"2024-02": Decimal("30")})

        assert schedule[0].amount == Decimal("0")
        assert schedule[1].amount == Decimal("300.00")

    def test_total_units_required(self):
        with pytest.raises(ValidationError):
            DepreciationTerms(Decimal("1000"), Decimal("0"), 1, UOP)


class TestTermsValidation:

    @pytest.mark.parametrize(
        "cost, salvage, years",
        [
            (Decimal("-1"), Decimal("0"), 1),
            (Decimal("100"), Decimal("101"), 1),
            (Decimal("100"), Decimal("-1"), 1),
            (Decimal("100"), Decimal("0"), 0),
        ],
    )
    def test_bad_terms_refused(self, cost, salvage, years):
        with pytest.raises(ValidationError):
            DepreciationTerms(cost, salvage, years, SL)


class TestPeriods:

    def test_period_key(self):
        assert period_key(date(2024, 3, 17)) == "2024-03"

    def test_parse_period(self):
        assert parse_period("2024-03") == date(2024, 3, 1)

    @pytest.mark.parametrize("bad", ["2024-3", "2024/03", "March", "2024-13", "", None])
    def test_parse_period_refuses_malformed(self, bad):
        with pytest.raises(ValidationError) as exc_info:
            parse_period(bad)

        assert exc_info.value.field == "period"

    def test_add_months_crosses_year(self):
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 1)

    def test_months_elapsed(self):
        assert months_elapsed(date(2023, 11, 20), date(2024, 2, 1)) == 3
        assert months_elapsed(date(2024, 2, 20), date(2024, 2, 1)) == 0


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@st.composite
def time_based_terms(draw):
    cost = draw(st.decimals(min_value=Decimal("0"), max_value=Decimal("1000000"), places=2))
    salvage = draw(st.decimals(min_value=Decimal("0"), max_value=cost, places=2))
    years = draw(st.integers(min_value=1, max_value=10))
    method = draw(st.sampled_from([SL, DDB, SYD]))
    return DepreciationTerms(cost, salvage, years, method)


@st.composite
def usage_terms(draw):
    cost = draw(st.decimals(min_value=Decimal("1"), max_value=Decimal("100000"), places=2))
    total_units = draw(st.integers(min_value=1, max_value=100000))
    usage = draw(st.lists(st.integers(min_value=0, max_value=20000), min_size=12, max_size=12))
    terms = DepreciationTerms(cost, Decimal("0"), 1, UOP, total_units=Decimal(total_units))
    return terms, {f"2024-{m:02d}": Decimal(u) for m, u in enumerate(usage, start=1)}


class TestScheduleProperties:

    @settings(max_examples=150, deadline=None)
    @given(terms=time_based_terms())
    def test_time_based_schedule_lands_on_base(self, terms):
        schedule = build_schedule(terms, date(2024, 1, 1))

        previous = Decimal("0")
        for row in schedule:
            assert row.amount >= 0
            assert row.amount == row.amount.quantize(Decimal("0.01"))
            assert row.accumulated >= previous
            assert row.accumulated <= terms.depreciable_base
            assert row.accumulated + row.net_book_value == terms.cost
            previous = row.accumulated
        assert schedule[-1].accumulated == terms.depreciable_base

    @settings(max_examples=100, deadline=None)
    @given(case=usage_terms())
    def test_usage_schedule_never_exceeds_base(self, case):
        terms, usage = case

        schedule = build_schedule(terms, date(2024, 1, 1), usage)

        previous = Decimal("0")
        for row in schedule:
            assert row.accumulated >= previous
            assert row.accumulated <= terms.depreciable_base
            previous = row.accumulated
