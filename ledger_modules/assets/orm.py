"""
Fixed Assets ORM Models (``ledger_modules.assets.orm``).

Responsibility
--------------
SQLAlchemy persistence models for fixed assets, their monthly depreciation
records and their disposal.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db`` and
sibling ``models.py``.  MUST NOT be imported by ``ledger_kernel``.

Invariants enforced
-------------------
* One depreciation record per (asset, period) -- unique constraint.
* One disposal per asset -- unique constraint.
* Depreciation records and disposals are append-only once written; they
  are inserted with their journal entry id already set.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TenantScopedMixin, TrackedBase, UUIDString
from ledger_kernel.db.immutability import mark_append_only


# ---------------------------------------------------------------------------
# FixedAsset
# ---------------------------------------------------------------------------


class FixedAsset(TenantScopedMixin, TrackedBase):
    """
    A capitalized asset.

    Table: ``assets_fixed_assets``
    """

    __tablename__ = "assets_fixed_assets"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "company_id", "asset_number", name="uq_assets_asset_number"
        ),
        Index("idx_assets_scope_status", "tenant_id", "company_id", "status"),
    )

    asset_number: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    cost: Mapped[Decimal] = mapped_column(nullable=False)
    salvage_value: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    useful_life_years: Mapped[int] = mapped_column(nullable=False)
    depreciation_method: Mapped[str] = mapped_column(String(50), nullable=False)
    total_units: Mapped[Decimal | None] = mapped_column(nullable=True)
    acquisition_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    acquisition_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True,
    )
    disposed_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    depreciation_records: Mapped[list["FixedAssetDepreciationRecord"]] = relationship(
        back_populates="asset",
        order_by="FixedAssetDepreciationRecord.period",
    )

    def terms(self):
        from ledger_modules.assets.models import DepreciationMethod, DepreciationTerms
        return DepreciationTerms(
            cost=Decimal(str(self.cost)),
            salvage_value=Decimal(str(self.salvage_value)),
            useful_life_years=self.useful_life_years,
            method=DepreciationMethod(self.depreciation_method),
            total_units=(
                Decimal(str(self.total_units)) if self.total_units is not None else None
            ),
        )

    def __repr__(self) -> str:
        return (
            f"<FixedAsset(id={self.id!r}, asset_number={self.asset_number!r}, "
            f"status={self.status!r})>"
        )


# ---------------------------------------------------------------------------
# FixedAssetDepreciationRecord
# ---------------------------------------------------------------------------


class FixedAssetDepreciationRecord(TenantScopedMixin, TrackedBase):
    """
    Depreciation booked for one asset in one month.

    ``accumulated`` is the running total including this record.

    Table: ``assets_depreciation_records``
    """

    __tablename__ = "assets_depreciation_records"

    __table_args__ = (
        UniqueConstraint("asset_id", "period", name="uq_assets_depreciation_period"),
        Index("idx_assets_depreciation_scope_period", "tenant_id", "company_id", "period"),
    )

    asset_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("assets_fixed_assets.id"), nullable=False,
    )
    period: Mapped[str] = mapped_column(String(7), nullable=False)  # YYYY-MM
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    accumulated: Mapped[Decimal] = mapped_column(nullable=False)
    units: Mapped[Decimal | None] = mapped_column(nullable=True)
    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=False,
    )

    asset: Mapped["FixedAsset"] = relationship(back_populates="depreciation_records")

    def __repr__(self) -> str:
        return (
            f"<FixedAssetDepreciationRecord(asset_id={self.asset_id!r}, "
            f"period={self.period!r}, amount={self.amount!r})>"
        )


# ---------------------------------------------------------------------------
# AssetDisposal
# ---------------------------------------------------------------------------


class AssetDisposal(TenantScopedMixin, TrackedBase):
    """
    The disposal of an asset and the gain or loss it realized.

    Table: ``assets_disposals``
    """

    __tablename__ = "assets_disposals"

    __table_args__ = (
        UniqueConstraint("asset_id", name="uq_assets_disposal_asset"),
    )

    asset_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("assets_fixed_assets.id"), nullable=False,
    )
    disposal_date: Mapped[date] = mapped_column(Date, nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    proceeds: Mapped[Decimal] = mapped_column(nullable=False)
    disposal_costs: Mapped[Decimal] = mapped_column(nullable=False)
    net_book_value: Mapped[Decimal] = mapped_column(nullable=False)
    gain_loss: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<AssetDisposal(asset_id={self.asset_id!r}, "
            f"gain_loss={self.gain_loss!r})>"
        )


mark_append_only(FixedAssetDepreciationRecord, "FixedAssetDepreciationRecord")
mark_append_only(AssetDisposal, "AssetDisposal")
