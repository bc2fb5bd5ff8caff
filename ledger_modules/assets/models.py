"""
Fixed Assets Domain Models.

The nouns of fixed assets: depreciation terms, schedules, run results,
disposals and yearly summaries.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.exceptions import ValidationError


class AssetStatus(Enum):
    """Asset lifecycle states."""
    ACTIVE = "active"
    DISPOSED = "disposed"


class DepreciationMethod(Enum):
    """Supported depreciation methods."""
    STRAIGHT_LINE = "straight_line"
    DECLINING_BALANCE = "declining_balance"  # double declining
    SUM_OF_YEARS = "sum_of_years"
    UNITS_OF_PRODUCTION = "units_of_production"


class DisposalMethod(Enum):
    """How the asset left the books."""
    SALE = "sale"
    SCRAP = "scrap"
    TRADE_IN = "trade_in"
    WRITE_OFF = "write_off"


class PaymentMethod(Enum):
    """What the acquisition was paid with."""
    CASH = "cash"
    ACCOUNTS_PAYABLE = "accounts_payable"


@dataclass(frozen=True)
class DepreciationTerms:
    """
    The inputs of every depreciation formula.

    ``total_units`` is required for units-of-production only.
    """
    cost: Decimal
    salvage_value: Decimal
    useful_life_years: int
    method: DepreciationMethod
    total_units: Decimal | None = None

    def __post_init__(self) -> None:
        if self.cost < 0:
            raise ValidationError("cost", "must be non-negative")
        if self.salvage_value < 0 or self.salvage_value > self.cost:
            raise ValidationError("salvage_value", "must lie between 0 and cost")
        if self.useful_life_years <= 0:
            raise ValidationError("useful_life_years", "must be positive")
        if self.method == DepreciationMethod.UNITS_OF_PRODUCTION and not self.total_units:
            raise ValidationError("total_units", "is required for units of production")

    @property
    def depreciable_base(self) -> Decimal:
        return self.cost - self.salvage_value

    @property
    def life_months(self) -> int:
        return self.useful_life_years * 12


@dataclass(frozen=True)
class ScheduleRow:
    """One month of a depreciation schedule preview."""
    period: str
    month_index: int
    amount: Decimal
    accumulated: Decimal
    net_book_value: Decimal


@dataclass(frozen=True)
class AcquisitionResult:
    asset_id: UUID
    asset_number: str
    journal_entry_id: UUID
    cost: Decimal


@dataclass(frozen=True)
class AssetDepreciation:
    """Depreciation recorded for one asset in a run."""
    asset_id: UUID
    asset_number: str
    amount: Decimal
    accumulated: Decimal


@dataclass(frozen=True)
class DepreciationRunResult:
    """
    Outcome of a batch depreciation run.

    ``journal_entry_id`` is None when no asset had anything left to
    depreciate for the period.
    """
    period: str
    source_ref: str | None
    journal_entry_id: UUID | None
    total: Decimal
    records: tuple[AssetDepreciation, ...] = ()
    skipped_asset_ids: tuple[UUID, ...] = ()

    @property
    def processed_count(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class DisposalResult:
    asset_id: UUID
    disposal_id: UUID
    journal_entry_id: UUID
    net_book_value: Decimal
    net_proceeds: Decimal
    gain_loss: Decimal  # positive is a gain

    @property
    def is_gain(self) -> bool:
        return self.gain_loss > 0


@dataclass(frozen=True)
class AssetDepreciationTotal:
    asset_id: UUID
    asset_number: str
    name: str
    total: Decimal


@dataclass(frozen=True)
class DepreciationSummary:
    """Depreciation recorded in one calendar year."""
    year: int
    total: Decimal
    by_month: tuple[Decimal, ...] = field(default_factory=tuple)  # January first
    by_asset: tuple[AssetDepreciationTotal, ...] = ()


@dataclass(frozen=True)
class DisposalRequest:
    """Inputs of dispose_asset()."""
    disposal_date: date
    method: DisposalMethod
    proceeds: Decimal = Decimal("0")
    disposal_costs: Decimal = Decimal("0")
    reason: str | None = None

    def __post_init__(self) -> None:
        if self.proceeds < 0:
            raise ValidationError("proceeds", "must be non-negative")
        if self.disposal_costs < 0:
            raise ValidationError("disposal_costs", "must be non-negative")

    @property
    def net_proceeds(self) -> Decimal:
        return self.proceeds - self.disposal_costs
