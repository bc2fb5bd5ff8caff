"""
Fixed-asset lifecycle through the assets module service.

Acquisition capitalizes the asset, monthly runs post one batch entry per
period, disposal removes cost and accumulated depreciation and books the
gain or loss.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from ledger_kernel.exceptions import (
    AlreadyPostedError,
    AssetDisposedError,
    DuplicateDepreciationPeriodError,
    ImmutabilityViolationError,
    ValidationError,
)
from ledger_kernel.models.audit_event import AuditAction
from ledger_modules.assets.models import (
    AssetStatus,
    DepreciationMethod,
    DisposalMethod,
    DisposalRequest,
    PaymentMethod,
)
from ledger_modules.assets.orm import FixedAssetDepreciationRecord
from ledger_modules.assets.service import FixedAssetService
from tests.conftest import (
    ACCUMULATED_DEPRECIATION,
    AP,
    CASH,
    COMPANY,
    DEPRECIATION_EXPENSE,
    FIXED_ASSET,
    GAIN_ON_DISPOSAL,
    LOSS_ON_DISPOSAL,
    TENANT,
)


@pytest.fixture
def assets(session, settings, clock, chart) -> FixedAssetService:
    return FixedAssetService(session, settings=settings, clock=clock)


@pytest.fixture
def van(assets, actor_id):
    """12000.00 over five years straight-line, no salvage: 200.00 a month."""
    return assets.acquire_asset(
        TENANT, COMPANY, "FA-001", "Delivery van",
        cost=Decimal("12000.00"),
        acquisition_date=date(2024, 1, 1),
        useful_life_years=5,
        actor_id=actor_id,
    )


def _run_year(assets, actor_id, year=2024):
    return [
        assets.run_depreciation(TENANT, COMPANY, f"{year}-{month:02d}", actor_id)
        for month in range(1, 13)
    ]


class TestAcquisition:

    def test_cash_purchase(self, assets, van, journal, actor_id):
        entry = journal.get_entry(van.journal_entry_id)

        assert entry.debit_for(FIXED_ASSET) == Decimal("12000.00")
        assert entry.credit_for(CASH) == Decimal("12000.00")
        assert entry.source_type == "asset_acquisition"
        assert entry.source_ref == "FA-001"
        asset = assets.get_asset(TENANT, COMPANY, van.asset_id)
        assert asset.status == AssetStatus.ACTIVE.value
        assert asset.acquisition_entry_id == van.journal_entry_id

    def test_purchase_on_account(self, assets, journal, actor_id):
        result = assets.acquire_asset(
            TENANT, COMPANY, "FA-002", "Forklift",
            cost=Decimal("8000.00"),
            acquisition_date=date(2024, 2, 1),
            useful_life_years=4,
            actor_id=actor_id,
            payment=PaymentMethod.ACCOUNTS_PAYABLE,
        )

        assert journal.get_entry(result.journal_entry_id).credit_for(AP) == Decimal("8000.00")

    def test_same_asset_number_refused(self, assets, van, actor_id):
        with pytest.raises(AlreadyPostedError):
            assets.acquire_asset(
                TENANT, COMPANY, "FA-001", "Another van",
                cost=Decimal("1.00"),
                acquisition_date=date(2024, 1, 1),
                useful_life_years=1,
                actor_id=actor_id,
            )

    def test_salvage_above_cost_refused(self, assets, actor_id):
        with pytest.raises(ValidationError):
            assets.acquire_asset(
                TENANT, COMPANY, "FA-003", "Laptop",
                cost=Decimal("1000"),
                acquisition_date=date(2024, 1, 1),
                useful_life_years=3,
                actor_id=actor_id,
                salvage_value=Decimal("1001"),
            )

    def test_sub_cent_cost_rounded_before_storing(self, assets, ledger, actor_id):
        result = assets.acquire_asset(
            TENANT, COMPANY, "FA-004", "Scanner",
            cost=Decimal("1200.005"),
            acquisition_date=date(2024, 1, 1),
            useful_life_years=1,
            actor_id=actor_id,
            salvage_value=Decimal("0.004"),
        )

        asset = assets.get_asset(TENANT, COMPANY, result.asset_id)
        assert result.cost == Decimal("1200.01")
        assert Decimal(str(asset.cost)) == Decimal("1200.01")
        assert Decimal(str(asset.salvage_value)) == Decimal("0")
        assert ledger.balance_by_code(TENANT, COMPANY, FIXED_ASSET) == Decimal("1200.01")

        runs = _run_year(assets, actor_id)

        assert runs[0].total == Decimal("100.00")
        assert runs[-1].total == Decimal("100.01")
        assert assets.accumulated_depreciation(result.asset_id) == Decimal("1200.01")

    def test_non_decimal_cost_refused(self, assets, actor_id):
        with pytest.raises(ValidationError):
            assets.acquire_asset(
                TENANT, COMPANY, "FA-005", "Desk",
                cost=1200.5,
                acquisition_date=date(2024, 1, 1),
                useful_life_years=3,
                actor_id=actor_id,
            )


class TestDepreciationRuns:

    def test_twelve_monthly_runs(self, assets, van, ledger, actor_id):
        runs = _run_year(assets, actor_id)

        assert [run.total for run in runs] == [Decimal("200.00")] * 12
        assert runs[0].source_ref == "DEP-company-1-2024-01"
        assert runs[0].records[0].accumulated == Decimal("200.00")
        assert runs[-1].records[0].accumulated == Decimal("2400.00")
        assert ledger.balance_by_code(TENANT, COMPANY, DEPRECIATION_EXPENSE) == Decimal("2400.00")
        assert ledger.balance_by_code(TENANT, COMPANY, ACCUMULATED_DEPRECIATION) == Decimal("-2400.00")
        assert assets.accumulated_depreciation(van.asset_id) == Decimal("2400.00")

    def test_entry_dated_at_period_end(self, assets, van, journal, actor_id):
        run = assets.run_depreciation(TENANT, COMPANY, "2024-02", actor_id)

        entry = journal.get_entry(run.journal_entry_id)
        assert entry.entry_date == date(2024, 2, 29)
        assert entry.debit_for(DEPRECIATION_EXPENSE) == Decimal("200.00")
        assert entry.credit_for(ACCUMULATED_DEPRECIATION) == Decimal("200.00")

    def test_rerun_of_same_period_skips(self, assets, van, journal, actor_id):
        assets.run_depreciation(TENANT, COMPANY, "2024-01", actor_id)

        rerun = assets.run_depreciation(TENANT, COMPANY, "2024-01", actor_id)

        assert rerun.journal_entry_id is None
        assert rerun.total == Decimal("0")
        assert rerun.skipped_asset_ids == (van.asset_id,)
        assert journal.count_entries(TENANT, COMPANY) == 2

    def test_new_asset_in_booked_period_gets_suffixed_reference(self, assets, van, actor_id):
        assets.run_depreciation(TENANT, COMPANY, "2024-01", actor_id)
        printer = assets.acquire_asset(
            TENANT, COMPANY, "FA-010", "Printer",
            cost=Decimal("1200.00"),
            acquisition_date=date(2024, 1, 20),
            useful_life_years=1,
            actor_id=actor_id,
        )

        run = assets.run_depreciation(TENANT, COMPANY, "2024-01", actor_id)

        assert run.source_ref == "DEP-company-1-2024-01-2"
        assert [r.asset_id for r in run.records] == [printer.asset_id]
        assert run.total == Decimal("100.00")

    def test_asset_acquired_after_period_skipped(self, assets, actor_id):
        assets.acquire_asset(
            TENANT, COMPANY, "FA-020", "Server",
            cost=Decimal("1200.00"),
            acquisition_date=date(2024, 6, 1),
            useful_life_years=1,
            actor_id=actor_id,
        )

        run = assets.run_depreciation(TENANT, COMPANY, "2024-05", actor_id)

        assert run.journal_entry_id is None
        assert run.skipped_asset_ids == ()

    def test_back_dated_period_not_reopened(self, assets, van, actor_id):
        assets.run_depreciation(TENANT, COMPANY, "2024-03", actor_id)

        run = assets.run_depreciation(TENANT, COMPANY, "2024-02", actor_id)

        assert run.journal_entry_id is None
        assert run.skipped_asset_ids == (van.asset_id,)

    def test_units_of_production_run(self, assets, actor_id):
        press = assets.acquire_asset(
            TENANT, COMPANY, "FA-030", "Press",
            cost=Decimal("10000.00"),
            acquisition_date=date(2024, 1, 1),
            useful_life_years=5,
            actor_id=actor_id,
            depreciation_method=DepreciationMethod.UNITS_OF_PRODUCTION,
            total_units=Decimal("100000"),
        )

        run = assets.run_depreciation(
            TENANT, COMPANY, "2024-01", actor_id, units_by_asset={press.asset_id: Decimal("1500")}
        )

        assert run.total == Decimal("150.00")

    def test_malformed_period_refused(self, assets, van, actor_id):
        with pytest.raises(ValidationError):
            assets.run_depreciation(TENANT, COMPANY, "2024-1", actor_id)

    def test_run_appends_audit_event(self, assets, van, auditor, actor_id):
        run = assets.run_depreciation(TENANT, COMPANY, "2024-01", actor_id)

        trace = auditor.get_trace("DepreciationRun", run.journal_entry_id)
        assert trace.actions == (AuditAction.DEPRECIATION_RUN,)
        assert trace.entries[0].payload["period"] == "2024-01"
        assert auditor.validate_chain()

    def test_depreciation_records_are_append_only(self, session, assets, van, actor_id):
        assets.run_depreciation(TENANT, COMPANY, "2024-01", actor_id)
        record = session.execute(select(FixedAssetDepreciationRecord)).scalar_one()
        record.amount = Decimal("1.00")

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestSingleAssetDepreciation:

    def test_depreciate_one_asset(self, assets, van, actor_id):
        result = assets.depreciate_asset(TENANT, COMPANY, van.asset_id, "2024-01", actor_id)

        assert result.total == Decimal("200.00")
        assert result.source_ref == "DEP-FA-001-2024-01"

    def test_duplicate_period_refused(self, assets, van, actor_id):
        assets.run_depreciation(TENANT, COMPANY, "2024-01", actor_id)

        with pytest.raises(DuplicateDepreciationPeriodError) as exc_info:
            assets.depreciate_asset(TENANT, COMPANY, van.asset_id, "2024-01", actor_id)

        assert exc_info.value.period == "2024-01"

    def test_disposed_asset_refused(self, assets, van, actor_id):
        assets.dispose_asset(
            TENANT, COMPANY, van.asset_id,
            DisposalRequest(date(2024, 1, 31), DisposalMethod.SCRAP),
            actor_id,
        )

        with pytest.raises(AssetDisposedError):
            assets.depreciate_asset(TENANT, COMPANY, van.asset_id, "2024-02", actor_id)


class TestDisposal:

    def test_sale_at_gain(self, assets, van, journal, ledger, actor_id):
        _run_year(assets, actor_id)

        result = assets.dispose_asset(
            TENANT, COMPANY, van.asset_id,
            DisposalRequest(date(2025, 1, 10), DisposalMethod.SALE, proceeds=Decimal("10000.00")),
            actor_id,
        )

        assert result.net_book_value == Decimal("9600.00")
        assert result.gain_loss == Decimal("400.00")
        assert result.is_gain
        entry = journal.get_entry(result.journal_entry_id)
        assert entry.source_ref == "DISP-FA-001"
        assert entry.debit_for(ACCUMULATED_DEPRECIATION) == Decimal("2400.00")
        assert entry.debit_for(CASH) == Decimal("10000.00")
        assert entry.credit_for(FIXED_ASSET) == Decimal("12000.00")
        assert entry.credit_for(GAIN_ON_DISPOSAL) == Decimal("400.00")
        assert ledger.balance_by_code(TENANT, COMPANY, FIXED_ASSET) == Decimal("0")
        assert ledger.balance_by_code(TENANT, COMPANY, ACCUMULATED_DEPRECIATION) == Decimal("0")

    def test_sale_at_loss_net_of_costs(self, assets, van, journal, actor_id):
        _run_year(assets, actor_id)

        result = assets.dispose_asset(
            TENANT, COMPANY, van.asset_id,
            DisposalRequest(
                date(2025, 1, 10), DisposalMethod.SALE,
                proceeds=Decimal("9000.00"), disposal_costs=Decimal("100.00"),
            ),
            actor_id,
        )

        assert result.gain_loss == Decimal("-700.00")
        assert not result.is_gain
        entry = journal.get_entry(result.journal_entry_id)
        assert entry.debit_for(LOSS_ON_DISPOSAL) == Decimal("700.00")
        assert entry.debit_for(CASH) == Decimal("8900.00")

    def test_sub_cent_proceeds_rounded_before_gain_loss(self, assets, van, journal, actor_id):
        _run_year(assets, actor_id)

        result = assets.dispose_asset(
            TENANT, COMPANY, van.asset_id,
            DisposalRequest(
                date(2025, 1, 10), DisposalMethod.SALE,
                proceeds=Decimal("9600.004"), disposal_costs=Decimal("0.005"),
            ),
            actor_id,
        )

        assert result.gain_loss == Decimal("-0.01")
        entry = journal.get_entry(result.journal_entry_id)
        assert entry.is_balanced
        assert entry.debit_for(CASH) == Decimal("9599.99")
        assert entry.debit_for(LOSS_ON_DISPOSAL) == Decimal("0.01")

    def test_disposed_asset_left_out_of_runs(self, assets, van, actor_id):
        assets.dispose_asset(
            TENANT, COMPANY, van.asset_id,
            DisposalRequest(date(2024, 1, 31), DisposalMethod.WRITE_OFF),
            actor_id,
        )

        run = assets.run_depreciation(TENANT, COMPANY, "2024-02", actor_id)

        assert run.journal_entry_id is None
        assert assets.get_asset(TENANT, COMPANY, van.asset_id).status == AssetStatus.DISPOSED.value

    def test_second_disposal_refused(self, assets, van, actor_id):
        request = DisposalRequest(date(2024, 1, 31), DisposalMethod.SCRAP)
        assets.dispose_asset(TENANT, COMPANY, van.asset_id, request, actor_id)

        with pytest.raises(AssetDisposedError):
            assets.dispose_asset(TENANT, COMPANY, van.asset_id, request, actor_id)

    def test_disposal_audited(self, assets, van, auditor, actor_id):
        result = assets.dispose_asset(
            TENANT, COMPANY, van.asset_id,
            DisposalRequest(date(2024, 1, 31), DisposalMethod.SCRAP, reason="Written off"),
            actor_id,
        )

        trace = auditor.get_trace("FixedAsset", van.asset_id)
        assert trace.last_action == AuditAction.ASSET_DISPOSED
        assert trace.entries[-1].payload["journal_entry_id"] == str(result.journal_entry_id)


class TestReporting:

    def test_schedule_preview(self, assets, van):
        schedule = assets.depreciation_schedule(TENANT, COMPANY, van.asset_id)

        assert len(schedule) == 60
        assert schedule[0].period == "2024-01"
        assert schedule[-1].period == "2028-12"
        assert schedule[-1].accumulated == Decimal("12000.00")

    def test_yearly_summary(self, assets, van, actor_id):
        _run_year(assets, actor_id)
        assets.run_depreciation(TENANT, COMPANY, "2025-01", actor_id)

        summary = assets.depreciation_summary(TENANT, COMPANY, 2024)

        assert summary.total == Decimal("2400.00")
        assert summary.by_month == (Decimal("200.00"),) * 12
        assert [(a.asset_number, a.total) for a in summary.by_asset] == [
            ("FA-001", Decimal("2400.00"))
        ]
