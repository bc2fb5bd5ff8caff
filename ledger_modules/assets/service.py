"""
Fixed Assets Module Service (``ledger_modules.assets.service``).

Responsibility
--------------
Orchestrates fixed-asset operations -- acquisition, monthly depreciation
runs, disposal -- by delegating pure computation to
``ledger_modules.assets.helpers`` and journal persistence to the kernel
``PostingEngine``.  Also serves the read-only schedule preview and the
yearly depreciation summary.

Architecture position
---------------------
**Modules layer** -- thin ERP glue.  ``FixedAssetService`` is the sole
public entry point for fixed-asset operations.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary; the inner
  ``PostingEngine`` runs with ``auto_commit=False`` so journal writes and
  asset rows share a single transaction.
* One depreciation record per (asset, period); a batch run skips assets
  already depreciated for the period and posts one entry for the batch
  total (Dr DEPRECIATION_EXPENSE / Cr ACCUMULATED_DEPRECIATION).
* Accumulated depreciation never exceeds ``cost - salvage``.
* Disposed assets are never depreciated or disposed again.

Failure modes
-------------
* ``AssetDisposedError``, ``DuplicateDepreciationPeriodError`` (state).
* ``ValidationError`` for malformed periods, unknown assets or bad terms.
* Anything the PostingEngine raises; the whole operation is rolled back.

Audit relevance
---------------
Structured log events at start and completion of every operation.  Runs
and disposals append DEPRECIATION_RUN / ASSET_DISPOSED audit events next
to the JOURNAL_POSTED event of their entry.

Usage::

    service = FixedAssetService(session, settings=settings, clock=clock)
    service.acquire_asset(
        tenant_id, company_id, "FA-001", "Delivery van",
        cost=Decimal("12000.00"), acquisition_date=date(2024, 1, 1),
        useful_life_years=5, actor_id=actor_id,
    )
    run = service.run_depreciation(tenant_id, company_id, "2024-01", actor_id)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.accounts import AccountPurpose
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.currency import round_money
from ledger_kernel.domain.posting import PostingLeg, PostingRequest
from ledger_kernel.domain.settings import PostingSettings
from ledger_kernel.exceptions import (
    AssetDisposedError,
    DuplicateDepreciationPeriodError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.audit_event import AuditAction
from ledger_kernel.services.account_service import AccountResolver
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.posting_engine import PostingEngine, find_original_entries
from ledger_modules.assets.helpers import (
    add_months,
    build_schedule,
    monthly_depreciation,
    months_elapsed,
    parse_period,
)
from ledger_modules.assets.models import (
    AcquisitionResult,
    AssetDepreciation,
    AssetDepreciationTotal,
    AssetStatus,
    DepreciationMethod,
    DepreciationRunResult,
    DepreciationSummary,
    DepreciationTerms,
    DisposalRequest,
    DisposalResult,
    PaymentMethod,
    ScheduleRow,
)
from ledger_modules.assets.orm import (
    AssetDisposal,
    FixedAsset,
    FixedAssetDepreciationRecord,
)

logger = get_logger("modules.assets.service")

SOURCE_TYPE_ACQUISITION = "asset_acquisition"
SOURCE_TYPE_DEPRECIATION = "depreciation_run"
SOURCE_TYPE_DISPOSAL = "asset_disposal"

_ZERO = Decimal("0")


def _dec(value) -> Decimal:
    return Decimal(str(value)) if value is not None else _ZERO


def period_end(period_start: date) -> date:
    return add_months(period_start, 1) - timedelta(days=1)


class FixedAssetService(BaseService):
    """
    Orchestrates fixed-asset operations through the kernel PostingEngine.

    Contract
    --------
    * Write methods return frozen result DTOs from ``models.py`` and raise
      typed ``LedgerError`` subclasses on failure.
    * ``depreciation_schedule`` and ``depreciation_summary`` are read-only.

    Non-goals
    ---------
    * Does NOT own account resolution (purposes are resolved by the kernel).
    * No impairment, revaluation or transfers between companies.
    """

    def __init__(
        self,
        session: Session,
        settings: PostingSettings | None = None,
        clock: Clock | None = None,
        resolver: AccountResolver | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, auto_commit=auto_commit)
        self._clock = clock or SystemClock()
        self._settings = settings or PostingSettings()

        # Kernel posting (auto_commit=False -- we own the boundary)
        self._poster = PostingEngine(
            session,
            resolver=resolver,
            settings=self._settings,
            clock=self._clock,
            auto_commit=False,
        )
        self._auditor = AuditorService(session, self._clock)

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_asset(
        self,
        tenant_id: str,
        company_id: str,
        asset_id: UUID,
        lock: bool = False,
    ) -> FixedAsset:
        query = select(FixedAsset).where(
            FixedAsset.id == asset_id,
            FixedAsset.tenant_id == tenant_id,
            FixedAsset.company_id == company_id,
        )
        if lock:
            query = query.with_for_update()
        asset = self.session.execute(query).scalar_one_or_none()
        if asset is None:
            raise ValidationError("asset_id", f"unknown asset {asset_id}")
        return asset

    def _latest_record(self, asset_id: UUID) -> FixedAssetDepreciationRecord | None:
        return self.session.execute(
            select(FixedAssetDepreciationRecord)
            .where(FixedAssetDepreciationRecord.asset_id == asset_id)
            .order_by(FixedAssetDepreciationRecord.period.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _has_record(self, asset_id: UUID, period: str) -> bool:
        return self.session.execute(
            select(FixedAssetDepreciationRecord.id).where(
                FixedAssetDepreciationRecord.asset_id == asset_id,
                FixedAssetDepreciationRecord.period == period,
            )
        ).first() is not None

    def accumulated_depreciation(self, asset_id: UUID) -> Decimal:
        latest = self._latest_record(asset_id)
        return _dec(latest.accumulated) if latest is not None else _ZERO

    def net_book_value(self, asset: FixedAsset) -> Decimal:
        return _dec(asset.cost) - self.accumulated_depreciation(asset.id)

    def _round(self, name: str, amount: Decimal) -> Decimal:
        """Money input rounded to the minor unit of the default currency."""
        if not isinstance(amount, Decimal) or not amount.is_finite():
            raise ValidationError(name, "must be a finite Decimal")
        return round_money(
            amount, self._settings.default_currency, self._settings.rounding
        )

    # =========================================================================
    # Acquisition
    # =========================================================================

    def acquire_asset(
        self,
        tenant_id: str,
        company_id: str,
        asset_number: str,
        name: str,
        cost: Decimal,
        acquisition_date: date,
        useful_life_years: int,
        actor_id: UUID,
        depreciation_method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE,
        salvage_value: Decimal = Decimal("0"),
        total_units: Decimal | None = None,
        payment: PaymentMethod = PaymentMethod.CASH,
    ) -> AcquisitionResult:
        """
        Capitalize an asset: Dr FIXED_ASSET / Cr CASH (or AP).

        The asset number is the source reference, so acquiring the same
        number twice raises AlreadyPostedError.  Cost and salvage value are
        rounded to cents before anything is stored or posted, so the asset
        row always agrees with the FIXED_ASSET balance.
        """
        cost = self._round("cost", cost)
        salvage_value = self._round("salvage_value", salvage_value)
        terms = DepreciationTerms(
            cost=cost,
            salvage_value=salvage_value,
            useful_life_years=useful_life_years,
            method=DepreciationMethod(depreciation_method),
            total_units=total_units,
        )
        credit_purpose = (
            AccountPurpose.AP
            if PaymentMethod(payment) == PaymentMethod.ACCOUNTS_PAYABLE
            else AccountPurpose.CASH
        )

        logger.info("asset_acquisition_started", extra={
            "asset_number": asset_number,
            "cost": str(cost),
            "method": terms.method.value,
            "useful_life_years": useful_life_years,
        })

        with self._atomic("acquire_asset", asset_number):
            posted = self._poster.post(
                PostingRequest(
                    tenant_id=tenant_id,
                    company_id=company_id,
                    entry_date=acquisition_date,
                    source_type=SOURCE_TYPE_ACQUISITION,
                    source_ref=asset_number,
                    actor_id=actor_id,
                    memo=f"Acquisition of {name}",
                    legs=(
                        PostingLeg.debit(AccountPurpose.FIXED_ASSET, cost, name),
                        PostingLeg.credit(credit_purpose, cost, name),
                    ),
                )
            )
            asset = FixedAsset(
                tenant_id=tenant_id,
                company_id=company_id,
                asset_number=asset_number,
                name=name,
                cost=cost,
                salvage_value=salvage_value,
                useful_life_years=useful_life_years,
                depreciation_method=terms.method.value,
                total_units=total_units,
                acquisition_date=acquisition_date,
                status=AssetStatus.ACTIVE.value,
                acquisition_entry_id=posted.journal_entry_id,
                created_by_id=actor_id,
            )
            self.session.add(asset)
            self.session.flush()

        logger.info("asset_acquired", extra={
            "asset_id": str(asset.id),
            "asset_number": asset_number,
            "entry_id": str(posted.journal_entry_id),
        })
        return AcquisitionResult(
            asset_id=asset.id,
            asset_number=asset_number,
            journal_entry_id=posted.journal_entry_id,
            cost=cost,
        )

    # =========================================================================
    # Depreciation
    # =========================================================================

    def _period_amount(
        self,
        asset: FixedAsset,
        period: str,
        period_start: date,
        units: Decimal | None,
    ) -> tuple[Decimal, Decimal]:
        """(amount, accumulated before) for one asset and month."""
        latest = self._latest_record(asset.id)
        accumulated = _dec(latest.accumulated) if latest is not None else _ZERO
        if latest is not None and latest.period > period:
            # Months are booked in order; a back-dated period is not reopened
            return _ZERO, accumulated
        month_index = months_elapsed(asset.acquisition_date, period_start)
        amount = monthly_depreciation(asset.terms(), month_index, accumulated, units)
        return amount, accumulated

    def _run_reference(self, tenant_id: str, company_id: str, base: str) -> str:
        """``base``, or ``base-2``, ``base-3``... when a run already used it."""
        ref = base
        suffix = 1
        while find_original_entries(
            self.session, tenant_id, company_id, SOURCE_TYPE_DEPRECIATION, ref
        ):
            suffix += 1
            ref = f"{base}-{suffix}"
        return ref

    def _book_depreciation(
        self,
        tenant_id: str,
        company_id: str,
        period: str,
        source_ref: str,
        entry_date: date,
        actor_id: UUID,
        planned: list[tuple[FixedAsset, Decimal, Decimal, Decimal | None]],
    ) -> tuple[UUID, Decimal, tuple[AssetDepreciation, ...]]:
        total = sum((amount for _, amount, _, _ in planned), _ZERO)
        posted = self._poster.post(
            PostingRequest(
                tenant_id=tenant_id,
                company_id=company_id,
                entry_date=entry_date,
                source_type=SOURCE_TYPE_DEPRECIATION,
                source_ref=source_ref,
                actor_id=actor_id,
                memo=f"Depreciation for {period}",
                legs=(
                    PostingLeg.debit(AccountPurpose.DEPRECIATION_EXPENSE, total),
                    PostingLeg.credit(AccountPurpose.ACCUMULATED_DEPRECIATION, total),
                ),
            )
        )

        records: list[AssetDepreciation] = []
        for asset, amount, accumulated, units in planned:
            self.session.add(
                FixedAssetDepreciationRecord(
                    tenant_id=tenant_id,
                    company_id=company_id,
                    asset_id=asset.id,
                    period=period,
                    amount=amount,
                    accumulated=accumulated + amount,
                    units=units,
                    journal_entry_id=posted.journal_entry_id,
                    created_by_id=actor_id,
                )
            )
            records.append(
                AssetDepreciation(
                    asset_id=asset.id,
                    asset_number=asset.asset_number,
                    amount=amount,
                    accumulated=accumulated + amount,
                )
            )
        self.session.flush()

        self._auditor.record(
            tenant_id=tenant_id,
            company_id=company_id,
            entity_type="DepreciationRun",
            entity_id=posted.journal_entry_id,
            action=AuditAction.DEPRECIATION_RUN,
            actor_id=actor_id,
            payload={
                "period": period,
                "source_ref": source_ref,
                "asset_count": len(records),
                "total": str(total),
            },
        )
        return posted.journal_entry_id, total, tuple(records)

    def run_depreciation(
        self,
        tenant_id: str,
        company_id: str,
        period: str,
        actor_id: UUID,
        units_by_asset: Mapping[UUID, Decimal] | None = None,
        entry_date: date | None = None,
    ) -> DepreciationRunResult:
        """
        Depreciate every active asset of the company for ``period``.

        Assets already depreciated for the period, acquired after it, or
        fully depreciated are skipped.  When nothing is left to book no
        entry is posted and ``journal_entry_id`` is None.

        Args:
            period: ``YYYY-MM``.
            units_by_asset: Units consumed in the month, for
                units-of-production assets.
            entry_date: Defaults to the last day of the period.
        """
        period_start = parse_period(period)
        entry_date = entry_date or period_end(period_start)
        units_by_asset = units_by_asset or {}

        logger.info("depreciation_run_started", extra={
            "period": period,
            "company_id": company_id,
        })

        with self._atomic("run_depreciation", period):
            assets = self.session.execute(
                select(FixedAsset)
                .where(
                    FixedAsset.tenant_id == tenant_id,
                    FixedAsset.company_id == company_id,
                    FixedAsset.status == AssetStatus.ACTIVE.value,
                    FixedAsset.acquisition_date < add_months(period_start, 1),
                )
                .order_by(FixedAsset.asset_number)
                .with_for_update()
            ).scalars().all()

            planned: list[tuple[FixedAsset, Decimal, Decimal, Decimal | None]] = []
            skipped: list[UUID] = []
            for asset in assets:
                if self._has_record(asset.id, period):
                    skipped.append(asset.id)
                    continue
                units = units_by_asset.get(asset.id)
                amount, accumulated = self._period_amount(
                    asset, period, period_start, units
                )
                if amount == 0:
                    skipped.append(asset.id)
                    continue
                planned.append((asset, amount, accumulated, units))

            if not planned:
                logger.info("depreciation_run_empty", extra={
                    "period": period,
                    "skipped_count": len(skipped),
                })
                return DepreciationRunResult(
                    period=period,
                    source_ref=None,
                    journal_entry_id=None,
                    total=_ZERO,
                    skipped_asset_ids=tuple(skipped),
                )

            source_ref = self._run_reference(
                tenant_id, company_id, f"DEP-{company_id}-{period}"
            )
            entry_id, total, records = self._book_depreciation(
                tenant_id, company_id, period, source_ref, entry_date, actor_id, planned
            )

        logger.info("depreciation_run_completed", extra={
            "period": period,
            "source_ref": source_ref,
            "entry_id": str(entry_id),
            "asset_count": len(records),
            "skipped_count": len(skipped),
            "total": str(total),
        })
        return DepreciationRunResult(
            period=period,
            source_ref=source_ref,
            journal_entry_id=entry_id,
            total=total,
            records=records,
            skipped_asset_ids=tuple(skipped),
        )

    def depreciate_asset(
        self,
        tenant_id: str,
        company_id: str,
        asset_id: UUID,
        period: str,
        actor_id: UUID,
        units: Decimal | None = None,
        entry_date: date | None = None,
    ) -> DepreciationRunResult:
        """
        Depreciate one asset for one month.

        Unlike a batch run this refuses instead of skipping.

        Raises:
            AssetDisposedError: The asset has been disposed.
            DuplicateDepreciationPeriodError: The month is already booked.
        """
        period_start = parse_period(period)
        entry_date = entry_date or period_end(period_start)

        with self._atomic("depreciate_asset", period):
            asset = self.get_asset(tenant_id, company_id, asset_id, lock=True)
            if AssetStatus(asset.status) == AssetStatus.DISPOSED:
                raise AssetDisposedError(str(asset_id))
            if self._has_record(asset.id, period):
                raise DuplicateDepreciationPeriodError(str(asset_id), period)

            amount, accumulated = self._period_amount(asset, period, period_start, units)
            if amount == 0:
                return DepreciationRunResult(
                    period=period,
                    source_ref=None,
                    journal_entry_id=None,
                    total=_ZERO,
                    skipped_asset_ids=(asset.id,),
                )

            source_ref = self._run_reference(
                tenant_id, company_id, f"DEP-{asset.asset_number}-{period}"
            )
            entry_id, total, records = self._book_depreciation(
                tenant_id,
                company_id,
                period,
                source_ref,
                entry_date,
                actor_id,
                [(asset, amount, accumulated, units)],
            )

        logger.info("asset_depreciated", extra={
            "asset_id": str(asset_id),
            "period": period,
            "amount": str(total),
        })
        return DepreciationRunResult(
            period=period,
            source_ref=source_ref,
            journal_entry_id=entry_id,
            total=total,
            records=records,
        )

    # =========================================================================
    # Disposal
    # =========================================================================

    def dispose_asset(
        self,
        tenant_id: str,
        company_id: str,
        asset_id: UUID,
        request: DisposalRequest,
        actor_id: UUID,
    ) -> DisposalResult:
        """
        Remove an asset from the books and recognize the gain or loss.

        Entry:
            Dr ACCUMULATED_DEPRECIATION   accumulated
            Dr CASH                       net proceeds (Cr when negative)
            Cr FIXED_ASSET                cost
            Cr GAIN_ON_DISPOSAL / Dr LOSS_ON_DISPOSAL   net proceeds - NBV
        """
        logger.info("asset_disposal_started", extra={
            "asset_id": str(asset_id),
            "method": request.method.value,
            "proceeds": str(request.proceeds),
        })

        with self._atomic("dispose_asset", str(asset_id)):
            asset = self.get_asset(tenant_id, company_id, asset_id, lock=True)
            if AssetStatus(asset.status) == AssetStatus.DISPOSED:
                raise AssetDisposedError(str(asset_id))

            cost = _dec(asset.cost)
            accumulated = self.accumulated_depreciation(asset.id)
            book_value = cost - accumulated
            proceeds = self._round("proceeds", request.proceeds)
            disposal_costs = self._round("disposal_costs", request.disposal_costs)
            net_proceeds = proceeds - disposal_costs
            gain_loss = net_proceeds - book_value

            legs = [
                PostingLeg.debit(AccountPurpose.ACCUMULATED_DEPRECIATION, accumulated),
                (
                    PostingLeg.debit(AccountPurpose.CASH, net_proceeds, "Disposal proceeds")
                    if net_proceeds >= 0
                    else PostingLeg.credit(AccountPurpose.CASH, -net_proceeds, "Disposal costs")
                ),
                PostingLeg.credit(AccountPurpose.FIXED_ASSET, cost),
            ]
            if gain_loss > 0:
                legs.append(PostingLeg.credit(AccountPurpose.GAIN_ON_DISPOSAL, gain_loss))
            elif gain_loss < 0:
                legs.append(PostingLeg.debit(AccountPurpose.LOSS_ON_DISPOSAL, -gain_loss))

            posted = self._poster.post(
                PostingRequest(
                    tenant_id=tenant_id,
                    company_id=company_id,
                    entry_date=request.disposal_date,
                    source_type=SOURCE_TYPE_DISPOSAL,
                    source_ref=f"DISP-{asset.asset_number}",
                    actor_id=actor_id,
                    memo=f"Disposal of {asset.name} ({request.method.value})",
                    legs=tuple(legs),
                )
            )

            disposal = AssetDisposal(
                tenant_id=tenant_id,
                company_id=company_id,
                asset_id=asset.id,
                disposal_date=request.disposal_date,
                method=request.method.value,
                proceeds=proceeds,
                disposal_costs=disposal_costs,
                net_book_value=book_value,
                gain_loss=gain_loss,
                reason=request.reason,
                journal_entry_id=posted.journal_entry_id,
                created_by_id=actor_id,
            )
            self.session.add(disposal)
            asset.status = AssetStatus.DISPOSED.value
            asset.disposed_on = request.disposal_date
            asset.updated_by_id = actor_id
            self.session.flush()

            self._auditor.record(
                tenant_id=tenant_id,
                company_id=company_id,
                entity_type="FixedAsset",
                entity_id=asset.id,
                action=AuditAction.ASSET_DISPOSED,
                actor_id=actor_id,
                payload={
                    "method": request.method.value,
                    "net_proceeds": str(net_proceeds),
                    "net_book_value": str(book_value),
                    "gain_loss": str(gain_loss),
                    "journal_entry_id": str(posted.journal_entry_id),
                },
            )

        logger.info("asset_disposed", extra={
            "asset_id": str(asset_id),
            "entry_id": str(posted.journal_entry_id),
            "net_book_value": str(book_value),
            "gain_loss": str(gain_loss),
        })
        return DisposalResult(
            asset_id=asset.id,
            disposal_id=disposal.id,
            journal_entry_id=posted.journal_entry_id,
            net_book_value=book_value,
            net_proceeds=net_proceeds,
            gain_loss=gain_loss,
        )

    # =========================================================================
    # Reporting
    # =========================================================================

    def depreciation_schedule(
        self,
        tenant_id: str,
        company_id: str,
        asset_id: UUID,
        units_by_period: Mapping[str, Decimal] | None = None,
    ) -> list[ScheduleRow]:
        """Month-by-month preview over the asset's useful life."""
        asset = self.get_asset(tenant_id, company_id, asset_id)
        return build_schedule(asset.terms(), asset.acquisition_date, units_by_period)

    def depreciation_summary(
        self,
        tenant_id: str,
        company_id: str,
        year: int,
    ) -> DepreciationSummary:
        """Depreciation booked in ``year``: total, per month and per asset."""
        rows = self.session.execute(
            select(FixedAssetDepreciationRecord, FixedAsset)
            .join(FixedAsset, FixedAsset.id == FixedAssetDepreciationRecord.asset_id)
            .where(
                FixedAssetDepreciationRecord.tenant_id == tenant_id,
                FixedAssetDepreciationRecord.company_id == company_id,
                FixedAssetDepreciationRecord.period >= f"{year:04d}-01",
                FixedAssetDepreciationRecord.period <= f"{year:04d}-12",
            )
            .order_by(FixedAsset.asset_number, FixedAssetDepreciationRecord.period)
        ).all()

        by_month = [_ZERO] * 12
        by_asset: dict[UUID, Decimal] = defaultdict(lambda: _ZERO)
        assets: dict[UUID, FixedAsset] = {}
        for record, asset in rows:
            amount = _dec(record.amount)
            by_month[int(record.period[5:7]) - 1] += amount
            by_asset[asset.id] += amount
            assets[asset.id] = asset

        return DepreciationSummary(
            year=year,
            total=sum(by_month, _ZERO),
            by_month=tuple(by_month),
            by_asset=tuple(
                AssetDepreciationTotal(
                    asset_id=asset_id,
                    asset_number=assets[asset_id].asset_number,
                    name=assets[asset_id].name,
                    total=total,
                )
                for asset_id, total in by_asset.items()
            ),
        )
