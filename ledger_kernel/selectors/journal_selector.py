"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only journal entry queries: by id, by source document,
    and the mirror of a voided entry.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - Lines inside each DTO are ordered by line_seq.
    - Voided entries stay visible; nothing is filtered out by status unless
      the caller asks.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class JournalLineDTO:
    """Data transfer object for a journal line."""

    id: UUID
    account_id: UUID
    account_code: str
    debit: Decimal
    credit: Decimal
    memo: str | None
    line_seq: int


@dataclass(frozen=True)
class JournalEntryDTO:
    """Data transfer object for a journal entry."""

    id: UUID
    tenant_id: str
    company_id: str
    entry_date: date
    source_type: str
    source_ref: str
    correlation_id: UUID
    status: JournalEntryStatus
    currency: str
    memo: str | None
    reversal_of_id: UUID | None
    void_reason: str | None
    posted_at: datetime | None
    voided_at: datetime | None
    lines: tuple[JournalLineDTO, ...]

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    def debit_for(self, account_code: str) -> Decimal:
        """Total debits on one account code within this entry."""
        return sum(
            (line.debit for line in self.lines if line.account_code == account_code),
            Decimal("0"),
        )

    def credit_for(self, account_code: str) -> Decimal:
        """Total credits on one account code within this entry."""
        return sum(
            (line.credit for line in self.lines if line.account_code == account_code),
            Decimal("0"),
        )


class JournalSelector(BaseSelector[JournalEntry]):
    """
    Selector for journal entry queries.

    Non-goals:
        - Balances; use LedgerSelector.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _to_dto(self, entry: JournalEntry) -> JournalEntryDTO:
        lines = tuple(
            JournalLineDTO(
                id=line.id,
                account_id=line.account_id,
                account_code=line.account.code,
                debit=line.debit,
                credit=line.credit,
                memo=line.memo,
                line_seq=line.line_seq,
            )
            for line in sorted(entry.lines, key=lambda x: x.line_seq)
        )

        return JournalEntryDTO(
            id=entry.id,
            tenant_id=entry.tenant_id,
            company_id=entry.company_id,
            entry_date=entry.entry_date,
            source_type=entry.source_type,
            source_ref=entry.source_ref,
            correlation_id=entry.correlation_id,
            status=JournalEntryStatus(entry.status),
            currency=entry.currency,
            memo=entry.memo,
            reversal_of_id=entry.reversal_of_id,
            void_reason=entry.void_reason,
            posted_at=entry.posted_at,
            voided_at=entry.voided_at,
            lines=lines,
        )

    def _entries(self, query) -> list[JournalEntryDTO]:
        query = query.options(
            selectinload(JournalEntry.lines).joinedload(JournalLine.account)
        )
        entries = self.session.execute(query).scalars().all()
        return [self._to_dto(entry) for entry in entries]

    def get_entry(self, journal_entry_id: UUID) -> JournalEntryDTO | None:
        """Get a journal entry by id, or None."""
        entries = self._entries(
            select(JournalEntry).where(JournalEntry.id == journal_entry_id)
        )
        return entries[0] if entries else None

    def get_entries_for_document(
        self,
        tenant_id: str,
        company_id: str,
        source_type: str,
        source_ref: str,
        include_mirrors: bool = True,
    ) -> list[JournalEntryDTO]:
        """
        Entries written for one business document, originals first.

        With ``include_mirrors`` the mirror entries created by a void
        (``VOID-<source_ref>``) are appended after the originals.
        """
        originals = self._entries(
            select(JournalEntry)
            .where(
                JournalEntry.tenant_id == tenant_id,
                JournalEntry.company_id == company_id,
                JournalEntry.source_type == source_type,
                JournalEntry.source_ref == source_ref,
                JournalEntry.reversal_of_id.is_(None),
            )
            .order_by(JournalEntry.created_at, JournalEntry.id)
        )
        if not include_mirrors or not originals:
            return originals

        mirrors = self._entries(
            select(JournalEntry)
            .where(JournalEntry.reversal_of_id.in_([e.id for e in originals]))
            .order_by(JournalEntry.created_at, JournalEntry.id)
        )
        return originals + mirrors

    def get_mirror(self, journal_entry_id: UUID) -> JournalEntryDTO | None:
        """The mirror entry that neutralized ``journal_entry_id``, if voided."""
        entries = self._entries(
            select(JournalEntry).where(JournalEntry.reversal_of_id == journal_entry_id)
        )
        return entries[0] if entries else None

    def get_entries_by_correlation(self, correlation_id: UUID) -> list[JournalEntryDTO]:
        return self._entries(
            select(JournalEntry)
            .where(JournalEntry.correlation_id == correlation_id)
            .order_by(JournalEntry.created_at, JournalEntry.id)
        )

    def count_entries(
        self,
        tenant_id: str,
        company_id: str,
        status: JournalEntryStatus | None = None,
    ) -> int:
        query = select(func.count(JournalEntry.id)).where(
            JournalEntry.tenant_id == tenant_id,
            JournalEntry.company_id == company_id,
        )
        if status is not None:
            query = query.where(JournalEntry.status == status)
        return self.session.execute(query).scalar_one()
