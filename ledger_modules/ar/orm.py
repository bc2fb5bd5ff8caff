"""
Accounts Receivable ORM Models (``ledger_modules.ar.orm``).

Responsibility
--------------
SQLAlchemy persistence models for customer invoices, their lines and their
activity history.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db`` and
``ledger_kernel.models``.  MUST NOT be imported by ``ledger_kernel``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TenantScopedMixin, TrackedBase, UUIDString
from ledger_kernel.db.immutability import mark_append_only


# ---------------------------------------------------------------------------
# 1. Invoice
# ---------------------------------------------------------------------------


class Invoice(TenantScopedMixin, TrackedBase):
    """
    A customer invoice.

    Guarantees:
        - invoice_number is unique per (tenant, company) and is the source
          reference of the invoice's journal entry.
        - Totals are stored as computed at creation; posting re-derives the
          legs from the lines, never from the header.

    Table: ``ar_invoices``
    """

    __tablename__ = "ar_invoices"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "company_id", "invoice_number", name="uq_ar_invoices_number"
        ),
        Index("idx_ar_invoices_status", "tenant_id", "company_id", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    customer_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    discount_total: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    tax_total: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    shipping: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    total: Mapped[Decimal] = mapped_column(nullable=False)
    memo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("journal_entries.id"), nullable=True,
    )
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    void_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    lines: Mapped[list["InvoiceLine"]] = relationship(
        back_populates="invoice",
        lazy="selectin",
        order_by="InvoiceLine.line_no",
    )
    activities: Mapped[list["InvoiceActivity"]] = relationship(
        back_populates="invoice",
        order_by="InvoiceActivity.occurred_at",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} status={self.status}>"


# ---------------------------------------------------------------------------
# 2. InvoiceLine
# ---------------------------------------------------------------------------


class InvoiceLine(TrackedBase):
    """
    One invoice line with its rounded amounts.

    Table: ``ar_invoice_lines``
    """

    __tablename__ = "ar_invoice_lines"

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_no", name="uq_ar_invoice_lines_no"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("ar_invoices.id"), nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    product_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=True,
    )
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    discount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    tax_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    tax_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped["Invoice"] = relationship(back_populates="lines")

    @property
    def line_total(self) -> Decimal:
        return self.net_amount + self.tax_amount

    def __repr__(self) -> str:
        return f"<InvoiceLine {self.line_no}: {self.description}>"


# ---------------------------------------------------------------------------
# 3. InvoiceActivity
# ---------------------------------------------------------------------------


class InvoiceActivity(TrackedBase):
    """
    Append-only history of what happened to an invoice and who did it.

    Table: ``ar_invoice_activities``
    """

    __tablename__ = "ar_invoice_activities"

    __table_args__ = (
        Index("idx_ar_invoice_activities_invoice", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("ar_invoices.id"), nullable=False,
    )
    activity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    performed_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    invoice: Mapped["Invoice"] = relationship(back_populates="activities")

    def __repr__(self) -> str:
        return f"<InvoiceActivity {self.activity_type} invoice={self.invoice_id}>"


mark_append_only(InvoiceActivity, "InvoiceActivity")
