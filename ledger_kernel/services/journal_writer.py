"""
JournalWriter -- builds, checks and transitions journal entries.

Responsibility:
    Turns resolved lines (account id, side, amount) into a DRAFT
    JournalEntry with its JournalLines, asserts the balance invariant,
    moves entries through DRAFT -> POSTED -> VOIDED and writes the mirror
    entry that neutralizes a voided one.

Architecture position:
    Kernel > Services.  Called by PostingEngine and ReversalService; never
    commits.

Invariants enforced:
    - sum(debit) == sum(credit) by exact Decimal comparison, checked before
      anything is added to the session.
    - Zero-amount lines are dropped; an entry with no remaining lines is a
      ZeroValueDocumentError.
    - Status transitions follow VALID_STATUS_TRANSITIONS.
    - A mirror entry swaps debit and credit on every line, element-wise,
      and points back at its original through ``reversal_of_id``.

Failure modes:
    - UnbalancedEntryError, ZeroValueDocumentError before any write.
    - InvalidStatusTransitionError on an illegal transition.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.posting import LineSide
from ledger_kernel.exceptions import (
    InvalidStatusTransitionError,
    UnbalancedEntryError,
    ZeroValueDocumentError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import (
    VALID_STATUS_TRANSITIONS,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
)

logger = get_logger("services.journal_writer")


@dataclass(frozen=True)
class ResolvedLine:
    """A leg after account resolution and rounding."""

    account_id: UUID
    side: LineSide
    amount: Decimal
    memo: str | None = None


def assert_balanced(lines: Sequence[ResolvedLine], currency: str) -> Decimal:
    """
    Check debits equal credits exactly.

    Returns:
        The common total.

    Raises:
        UnbalancedEntryError
    """
    debits = sum((l.amount for l in lines if l.side == LineSide.DEBIT), Decimal("0"))
    credits = sum((l.amount for l in lines if l.side == LineSide.CREDIT), Decimal("0"))
    if debits != credits:
        logger.warning(
            "balance_check_failed",
            extra={"debits": str(debits), "credits": str(credits), "currency": currency},
        )
        raise UnbalancedEntryError(debits, credits, currency)
    return debits


class JournalWriter:
    """Creates journal entries and moves them through their lifecycle."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def create_draft(
        self,
        tenant_id: str,
        company_id: str,
        entry_date: date,
        source_type: str,
        source_ref: str,
        correlation_id: UUID,
        currency: str,
        lines: Sequence[ResolvedLine],
        actor_id: UUID,
        memo: str | None = None,
        reversal_of_id: UUID | None = None,
    ) -> JournalEntry:
        """
        Write a balanced DRAFT entry.

        Preconditions:
            - Line amounts are already rounded to the currency's minor unit.

        Postconditions:
            - The entry and one line per non-zero amount are flushed.
        """
        kept = [line for line in lines if line.amount != 0]
        if not kept:
            raise ZeroValueDocumentError(source_ref)
        assert_balanced(kept, currency)

        entry = JournalEntry(
            tenant_id=tenant_id,
            company_id=company_id,
            entry_date=entry_date,
            source_type=source_type,
            source_ref=source_ref,
            correlation_id=correlation_id,
            currency=currency,
            memo=memo,
            status=JournalEntryStatus.DRAFT,
            reversal_of_id=reversal_of_id,
            created_by_id=actor_id,
        )
        for seq, line in enumerate(kept, start=1):
            entry.lines.append(
                JournalLine(
                    account_id=line.account_id,
                    debit=line.amount if line.side == LineSide.DEBIT else Decimal("0"),
                    credit=line.amount if line.side == LineSide.CREDIT else Decimal("0"),
                    memo=line.memo,
                    line_seq=seq,
                    created_by_id=actor_id,
                )
            )
        self._session.add(entry)
        self._session.flush()

        logger.info(
            "journal_draft_created",
            extra={
                "entry_id": str(entry.id),
                "source_ref": source_ref,
                "line_count": len(kept),
            },
        )
        return entry

    def _transition(self, entry: JournalEntry, to_status: JournalEntryStatus) -> None:
        from_status = JournalEntryStatus(entry.status)
        if to_status not in VALID_STATUS_TRANSITIONS[from_status]:
            raise InvalidStatusTransitionError(
                str(entry.id), from_status.value, to_status.value
            )
        entry.status = to_status

    def post(self, entry: JournalEntry) -> JournalEntry:
        """DRAFT -> POSTED.  Re-checks the balance on the persisted lines."""
        if not entry.is_balanced:
            raise UnbalancedEntryError(entry.total_debits, entry.total_credits, entry.currency)
        self._transition(entry, JournalEntryStatus.POSTED)
        entry.posted_at = self._clock.now()
        self._session.flush()

        logger.info(
            "journal_entry_posted",
            extra={
                "entry_id": str(entry.id),
                "source_type": entry.source_type,
                "source_ref": entry.source_ref,
                "total": str(entry.total_debits),
                "currency": entry.currency,
            },
        )
        return entry

    def mark_voided(self, entry: JournalEntry, reason: str, actor_id: UUID) -> JournalEntry:
        """POSTED -> VOIDED.  Lines stay untouched."""
        self._transition(entry, JournalEntryStatus.VOIDED)
        entry.void_reason = reason
        entry.voided_at = self._clock.now()
        entry.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "journal_entry_voided",
            extra={"entry_id": str(entry.id), "source_ref": entry.source_ref},
        )
        return entry

    def write_mirror(
        self,
        original: JournalEntry,
        source_ref: str,
        correlation_id: UUID,
        entry_date: date,
        actor_id: UUID,
        memo: str | None = None,
    ) -> JournalEntry:
        """
        Write and post the entry that cancels ``original``.

        Each original line becomes one mirror line on the same account with
        debit and credit swapped, in the same order.
        """
        swapped = [
            ResolvedLine(
                account_id=line.account_id,
                side=LineSide.CREDIT if line.is_debit else LineSide.DEBIT,
                amount=line.debit if line.is_debit else line.credit,
                memo=line.memo,
            )
            for line in sorted(original.lines, key=lambda l: l.line_seq)
        ]
        mirror = self.create_draft(
            tenant_id=original.tenant_id,
            company_id=original.company_id,
            entry_date=entry_date,
            source_type=original.source_type,
            source_ref=source_ref,
            correlation_id=correlation_id,
            currency=original.currency,
            lines=swapped,
            actor_id=actor_id,
            memo=memo,
            reversal_of_id=original.id,
        )
        return self.post(mirror)
