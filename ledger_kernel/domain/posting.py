"""
Posting DTOs -- the immutable request and result objects of the posting and
void pipelines.

Responsibility:
    Describes what a caller wants posted (PostingRequest with its legs,
    inventory and sub-ledger instructions) and what the engines report back
    (PostedResult, VoidResult).

Architecture position:
    Kernel > Domain -- pure data, zero I/O, no ORM imports.

Invariants enforced:
    - Leg amounts are Decimal and non-negative; the side carries direction.
    - A leg names exactly one of a purpose or an explicit account id.
    - Inventory quantities are strictly positive (the engine signs them).
    - Required header fields (tenant, company, source type, source ref,
      actor) are present.

Failure modes:
    - ValidationError from __post_init__ on malformed input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.accounts import AccountPurpose
from ledger_kernel.exceptions import ValidationError


class LineSide(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"

    def opposite(self) -> "LineSide":
        return LineSide.CREDIT if self is LineSide.DEBIT else LineSide.DEBIT


def _require_decimal(name: str, value) -> None:
    if not isinstance(value, Decimal):
        raise ValidationError(name, f"must be Decimal, got {type(value).__name__}")
    if not value.is_finite():
        raise ValidationError(name, "must be a finite number")


@dataclass(frozen=True)
class PostingLeg:
    """
    One intended debit or credit.

    Zero-amount legs are allowed and produce no journal line.
    """

    side: LineSide
    amount: Decimal
    purpose: AccountPurpose | None = None
    account_id: UUID | None = None
    memo: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.side, LineSide):
            object.__setattr__(self, "side", LineSide(self.side))
        if (self.purpose is None) == (self.account_id is None):
            raise ValidationError("leg", "exactly one of purpose or account_id is required")
        if self.purpose is not None and not isinstance(self.purpose, AccountPurpose):
            try:
                object.__setattr__(self, "purpose", AccountPurpose(self.purpose))
            except ValueError:
                raise ValidationError("purpose", f"unknown account purpose {self.purpose!r}") from None
        _require_decimal("amount", self.amount)
        if self.amount < 0:
            raise ValidationError("amount", "must be non-negative; use the side for direction")

    @classmethod
    def debit(
        cls,
        target: AccountPurpose | UUID,
        amount: Decimal,
        memo: str | None = None,
    ) -> "PostingLeg":
        return cls._build(LineSide.DEBIT, target, amount, memo)

    @classmethod
    def credit(
        cls,
        target: AccountPurpose | UUID,
        amount: Decimal,
        memo: str | None = None,
    ) -> "PostingLeg":
        return cls._build(LineSide.CREDIT, target, amount, memo)

    @classmethod
    def _build(cls, side, target, amount, memo) -> "PostingLeg":
        if isinstance(target, UUID):
            return cls(side=side, amount=amount, account_id=target, memo=memo)
        return cls(side=side, amount=amount, purpose=target, memo=memo)

    @property
    def target_label(self) -> str:
        return self.purpose.value if self.purpose is not None else str(self.account_id)


@dataclass(frozen=True)
class InventoryInstruction:
    """
    Outflow of a product sold by the document.

    ``quantity`` is the positive number of units leaving stock.
    ``unit_cost`` overrides the product's current unit cost for COGS.
    """

    product_id: UUID
    quantity: Decimal
    unit_cost: Decimal | None = None
    memo: str | None = None

    def __post_init__(self) -> None:
        _require_decimal("quantity", self.quantity)
        if self.quantity <= 0:
            raise ValidationError("quantity", "must be positive")
        if self.unit_cost is not None:
            _require_decimal("unit_cost", self.unit_cost)
            if self.unit_cost < 0:
                raise ValidationError("unit_cost", "must be non-negative")


@dataclass(frozen=True)
class SubledgerInstruction:
    """Summary row to write alongside the entry."""

    transaction_type: str
    amount: Decimal
    description: str | None = None
    party_ref: str | None = None

    def __post_init__(self) -> None:
        if not self.transaction_type:
            raise ValidationError("transaction_type", "is required")
        _require_decimal("amount", self.amount)


@dataclass(frozen=True)
class PostingRequest:
    """
    A business document reduced to legs.

    ``currency=None`` means the configured default currency.
    """

    tenant_id: str
    company_id: str
    entry_date: date
    source_type: str
    source_ref: str
    actor_id: UUID
    legs: tuple[PostingLeg, ...]
    memo: str | None = None
    currency: str | None = None
    inventory: tuple[InventoryInstruction, ...] = ()
    subledger: SubledgerInstruction | None = None

    def __post_init__(self) -> None:
        for name in ("tenant_id", "company_id", "source_type", "source_ref"):
            value = getattr(self, name)
            if not value or not str(value).strip():
                raise ValidationError(name, "is required")
        if self.actor_id is None:
            raise ValidationError("actor_id", "is required")
        if self.entry_date is None:
            raise ValidationError("entry_date", "is required")
        object.__setattr__(self, "legs", tuple(self.legs))
        object.__setattr__(self, "inventory", tuple(self.inventory))
        if not self.legs and not self.inventory:
            raise ValidationError("legs", "at least one leg is required")


@dataclass(frozen=True)
class PostedResult:
    """What a successful post() wrote."""

    journal_entry_id: UUID
    correlation_id: UUID
    source_type: str
    source_ref: str
    line_count: int
    total_debits: Decimal
    inventory_movement_count: int = 0
    cogs_total: Decimal = Decimal("0")
    subledger_transaction_id: UUID | None = None
    provisioned_purposes: tuple[str, ...] = ()


@dataclass(frozen=True)
class VoidResult:
    """What a successful void() wrote."""

    source_type: str
    source_ref: str
    reason: str
    voided_entry_ids: tuple[UUID, ...] = field(default_factory=tuple)
    mirror_entry_ids: tuple[UUID, ...] = field(default_factory=tuple)
    reversed_movement_count: int = 0
    voided_subledger_count: int = 0

    @property
    def reversed_entry_count(self) -> int:
        return len(self.mirror_entry_ids)
