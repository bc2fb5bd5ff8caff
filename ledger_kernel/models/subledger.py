"""
Module: ledger_kernel.models.subledger
Responsibility: ORM persistence for the business-facing sub-ledger
    transaction summary that accompanies a journal entry.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - 1:1 with the JournalEntry it originated from
      (UNIQUE journal_entry_id).
    - Carries the posting's correlation id.
    - Financial fields are frozen once written; only ``status`` may move
      POSTED -> VOIDED (ORM listener in db/immutability.py).

Audit relevance:
    Reporting reads amounts from here instead of re-deriving them from
    journal lines.  A voided document leaves its transaction row in place
    with status VOIDED.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TenantScopedMixin, TrackedBase, UUIDString
from ledger_kernel.models.journal import JournalEntry


class SubledgerTransactionStatus(str, Enum):
    POSTED = "posted"
    VOIDED = "voided"


class SubledgerTransaction(TenantScopedMixin, TrackedBase):
    """Summary row (type, amount, currency, date, status) for one posting."""

    __tablename__ = "subledger_transactions"

    __table_args__ = (
        UniqueConstraint("journal_entry_id", name="uq_subledger_txn_entry"),
        Index("idx_subledger_txn_scope", "tenant_id", "company_id"),
        Index("idx_subledger_txn_correlation", "correlation_id"),
    )

    # invoice, payment, asset_acquisition, payroll, ...
    transaction_type: Mapped[str] = mapped_column(String(50), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[SubledgerTransactionStatus] = mapped_column(
        String(10),
        default=SubledgerTransactionStatus.POSTED,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Counterparty reference supplied by the caller (customer, vendor, ...)
    party_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    source_ref: Mapped[str] = mapped_column(String(200), nullable=False)

    correlation_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    journal_entry: Mapped["JournalEntry"] = relationship()

    def __repr__(self) -> str:
        return f"<SubledgerTransaction {self.transaction_type} {self.amount} {self.status}>"

    @property
    def is_voided(self) -> bool:
        return self.status == SubledgerTransactionStatus.VOIDED
