"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines -- the
    single source of financial truth.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Balance: a POSTED entry's debits equal its credits exactly.  Checked by
      JournalWriter before the DRAFT -> POSTED transition; ``is_balanced``
      here is the read-side convenience.
    - Status is monotonic DRAFT -> POSTED -> VOIDED (JournalWriter plus the
      ORM listeners in db/immutability.py).
    - One line carries exactly one non-zero side.
    - Mirror entries point back to the entry they neutralize via
      ``reversal_of_id``; an original has at most one mirror.

Failure modes:
    - UnbalancedEntryError when posting a draft whose lines do not balance.
    - ImmutabilityViolationError on UPDATE/DELETE of posted data.

Audit relevance:
    Nothing here is ever deleted.  A voided entry stays in the table with
    its original lines; the mirror entry cancels its economic effect.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TenantScopedMixin, TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    Transitions are one-way: DRAFT -> POSTED -> VOIDED.
    """

    DRAFT = "draft"
    POSTED = "posted"
    VOIDED = "voided"


VALID_STATUS_TRANSITIONS: dict[JournalEntryStatus, frozenset[JournalEntryStatus]] = {
    JournalEntryStatus.DRAFT: frozenset({JournalEntryStatus.POSTED}),
    JournalEntryStatus.POSTED: frozenset({JournalEntryStatus.VOIDED}),
    JournalEntryStatus.VOIDED: frozenset(),
}


class JournalEntry(TenantScopedMixin, TrackedBase):
    """
    Journal entry header -- the atomic unit of double-entry accounting.

    Contract:
        ``source_type`` + ``source_ref`` tie the entry to the business
        document that produced it; ``correlation_id`` ties it to every other
        record written by the same posting (inventory movements, sub-ledger
        transaction).

    Non-goals:
        - Balance is not enforced at the ORM level; enforcement lives in
          JournalWriter.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("reversal_of_id", name="uq_journal_single_reversal"),
        # One original entry per source document; mirrors are excluded
        Index(
            "uq_journal_source_document",
            "tenant_id",
            "company_id",
            "source_type",
            "source_ref",
            unique=True,
            postgresql_where=text("reversal_of_id IS NULL"),
            sqlite_where=text("reversal_of_id IS NULL"),
        ),
        Index("idx_journal_scope", "tenant_id", "company_id"),
        Index("idx_journal_correlation", "correlation_id"),
        Index("idx_journal_status", "status"),
        Index("idx_journal_entry_date", "entry_date"),
    )

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    memo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Document type (invoice, asset_acquisition, depreciation_run, ...)
    source_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Document number, or VOID-<number> on mirror entries
    source_ref: Mapped[str] = mapped_column(String(200), nullable=False)

    correlation_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(10),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    void_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Set on mirror entries only
    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalLine.line_seq",
    )

    reversal_of: Mapped["JournalEntry | None"] = relationship(
        remote_side="JournalEntry.id",
        foreign_keys=[reversal_of_id],
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.id} {self.source_ref} status={self.status}>"

    @property
    def is_draft(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def is_voided(self) -> bool:
        return self.status == JournalEntryStatus.VOIDED

    @property
    def is_reversal(self) -> bool:
        """True for mirror entries created by a void."""
        return self.reversal_of_id is not None

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        """Exact Decimal comparison of debits and credits."""
        return self.total_debits == self.total_credits


class JournalLine(TrackedBase):
    """
    One debit or credit row within a journal entry.

    Contract:
        Exactly one of ``debit``/``credit`` is non-zero and both are
        non-negative (CHECK constraints).  Lines are owned by their entry and
        never reassigned.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        CheckConstraint("debit >= 0 AND credit >= 0", name="ck_line_non_negative"),
        CheckConstraint(
            "(debit = 0 AND credit > 0) OR (debit > 0 AND credit = 0)",
            name="ck_line_single_side",
        ),
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    debit: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    credit: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    memo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Deterministic ordering within the entry
    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(back_populates="journal_lines")

    def __repr__(self) -> str:
        return f"<JournalLine Dr {self.debit} Cr {self.credit} acct={self.account_id}>"

    @property
    def is_debit(self) -> bool:
        return self.debit > 0

    @property
    def signed_amount(self) -> Decimal:
        """Debits positive, credits negative."""
        return self.debit - self.credit
