"""
Accounts Receivable Domain Models (``ledger_modules.ar.models``).

Responsibility
--------------
Frozen dataclass value objects for customer invoices: the line input a
caller submits, the computed line amounts, and the results of posting and
voiding an invoice.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``InvoicePostingService`` and returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Line quantities are positive; prices and discounts are non-negative.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.posting import VoidResult
from ledger_kernel.exceptions import ValidationError


class InvoiceStatus(Enum):
    """Invoice lifecycle states."""
    DRAFT = "draft"
    POSTED = "posted"
    VOIDED = "voided"


class InvoiceActivityType(Enum):
    CREATED = "created"
    POSTED = "posted"
    VOIDED = "voided"


@dataclass(frozen=True)
class InvoiceLineInput:
    """
    One line as submitted by the caller.

    ``discount`` is an absolute amount taken off ``quantity * unit_price``.
    ``product_id`` makes the line an inventory line when the product is
    physical.  ``tax_code=None`` means untaxed.
    """
    description: str
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal = Decimal("0")
    tax_code: str | None = None
    product_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValidationError("quantity", "must be positive")
        if self.unit_price < 0:
            raise ValidationError("unit_price", "must be non-negative")
        if self.discount < 0:
            raise ValidationError("discount", "must be non-negative")
        if self.discount > self.quantity * self.unit_price:
            raise ValidationError("discount", "cannot exceed the line amount")


@dataclass(frozen=True)
class LineAmounts:
    """Rounded amounts of one line: net = gross - discount, total = net + tax."""
    gross: Decimal
    discount: Decimal
    net: Decimal
    tax_rate: Decimal
    tax: Decimal

    @property
    def total(self) -> Decimal:
        return self.net + self.tax


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal  # sum of line net amounts
    discount_total: Decimal
    tax_total: Decimal
    shipping: Decimal

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.tax_total + self.shipping


@dataclass(frozen=True)
class InvoicePostingResult:
    invoice_id: UUID
    invoice_number: str
    journal_entry_id: UUID
    correlation_id: UUID
    total: Decimal
    inventory_movement_count: int = 0
    cogs_total: Decimal = Decimal("0")
    subledger_transaction_id: UUID | None = None


@dataclass(frozen=True)
class InvoiceVoidResult:
    invoice_id: UUID
    invoice_number: str
    voided_on: date
    void: VoidResult

    @property
    def voided_entry_ids(self) -> tuple[UUID, ...]:
        return self.void.voided_entry_ids

    @property
    def mirror_entry_ids(self) -> tuple[UUID, ...]:
        return self.void.mirror_entry_ids

    @property
    def reversed_entry_count(self) -> int:
        return self.void.reversed_entry_count

    @property
    def reversed_movement_count(self) -> int:
        return self.void.reversed_movement_count
