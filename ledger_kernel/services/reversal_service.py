"""
ReversalService -- voids a posted business document.

Responsibility:
    For every POSTED original entry of a document: flip it to VOIDED, post
    a mirror entry with debit and credit swapped, invert the inventory
    movements written under its correlation id, mark its sub-ledger
    transaction VOIDED and append an audit event.  All in one unit.

Architecture position:
    Kernel > Services -- imperative shell.  Consumes JournalWriter,
    InventoryLedger and AuditorService.

Invariants enforced:
    - Nothing is deleted.  The original keeps its lines; the mirror
      (``VOID-<source_ref>``, ``reversal_of_id`` set) cancels them.
    - At most one mirror per original (UNIQUE reversal_of_id).
    - Movements are found by correlation id, never by reference text.
    - Stock is restored only for products whose stock is tracked.

Failure modes:
    - ValidationError: blank reason (checked before touching the store).
    - DocumentNotPostedError: no original entry exists for the document.
    - AlreadyVoidedError: every original entry is already VOIDED.
    - ConcurrencyError / PersistenceError: store failure, nothing changed.

Audit relevance:
    JOURNAL_VOIDED audit events record the reason, the mirror entry and
    what was reversed; void_started / void_completed / void_rejected are
    logged with the void's correlation id bound.
"""

import time
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.posting import VoidResult
from ledger_kernel.domain.settings import PostingSettings
from ledger_kernel.exceptions import (
    AlreadyVoidedError,
    DocumentNotPostedError,
    LedgerError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import JournalEntryStatus
from ledger_kernel.models.subledger import (
    SubledgerTransaction,
    SubledgerTransactionStatus,
)
from ledger_kernel.services.auditor_service import AuditorService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.inventory_ledger import InventoryLedger
from ledger_kernel.services.journal_writer import JournalWriter
from ledger_kernel.services.posting_engine import find_original_entries

logger = get_logger("services.reversal")

VOID_PREFIX = "VOID-"


def void_reference(source_ref: str) -> str:
    return f"{VOID_PREFIX}{source_ref}"


class ReversalService(BaseService):
    """
    Neutralizes posted documents with mirror entries.

    Non-goals:
        - Partial voids (line selection).
        - Re-posting a voided document; the caller issues a new document.
    """

    def __init__(
        self,
        session: Session,
        settings: PostingSettings | None = None,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, auto_commit=auto_commit)
        self._settings = settings or PostingSettings()
        self._clock = clock or SystemClock()
        self._auditor = AuditorService(session, self._clock)
        self._writer = JournalWriter(session, self._clock)
        self._inventory = InventoryLedger(session, self._settings)

    def void(
        self,
        tenant_id: str,
        company_id: str,
        source_type: str,
        source_ref: str,
        reason: str,
        actor_id: UUID,
        void_date: date | None = None,
    ) -> VoidResult:
        """
        Void every posted entry of one document.

        ``void_date`` dates the mirror entries and VOID movements; it
        defaults to the clock's today.
        """
        if not reason or not reason.strip():
            raise ValidationError("reason", "a void reason is required")
        reason = reason.strip()

        correlation_id = uuid4()
        with LogContext.bind(
            tenant_id=tenant_id,
            company_id=company_id,
            correlation_id=correlation_id,
            actor_id=actor_id,
        ):
            logger.info(
                "void_started",
                extra={"source_type": source_type, "source_ref": source_ref},
            )
            t0 = time.monotonic()

            try:
                with self._atomic("void", source_ref):
                    result = self._do_void(
                        tenant_id,
                        company_id,
                        source_type,
                        source_ref,
                        reason,
                        actor_id,
                        void_date or self._clock.today(),
                        correlation_id,
                    )
            except LedgerError as exc:
                logger.warning(
                    "void_rejected",
                    extra={"error_code": exc.code, "source_ref": source_ref},
                )
                raise

            logger.info(
                "void_completed",
                extra={
                    "source_ref": source_ref,
                    "reversed_entry_count": result.reversed_entry_count,
                    "reversed_movement_count": result.reversed_movement_count,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return result

    def _do_void(
        self,
        tenant_id: str,
        company_id: str,
        source_type: str,
        source_ref: str,
        reason: str,
        actor_id: UUID,
        void_date: date,
        correlation_id: UUID,
    ) -> VoidResult:
        originals = find_original_entries(
            self.session, tenant_id, company_id, source_type, source_ref, lock=True
        )
        if not originals:
            raise DocumentNotPostedError(source_ref)

        posted = [
            e for e in originals
            if JournalEntryStatus(e.status) == JournalEntryStatus.POSTED
        ]
        if not posted:
            if all(JournalEntryStatus(e.status) == JournalEntryStatus.VOIDED for e in originals):
                raise AlreadyVoidedError(source_ref)
            raise DocumentNotPostedError(source_ref)

        mirror_ref = void_reference(source_ref)
        voided_ids: list[UUID] = []
        mirror_ids: list[UUID] = []
        movement_count = 0
        subledger_count = 0

        for entry in posted:
            self._writer.mark_voided(entry, reason, actor_id)
            mirror = self._writer.write_mirror(
                entry,
                source_ref=mirror_ref,
                correlation_id=correlation_id,
                entry_date=void_date,
                actor_id=actor_id,
                memo=f"Void of {source_ref}: {reason}",
            )

            movements = self._inventory.reverse_correlated(
                entry.correlation_id,
                correlation_id,
                mirror_ref,
                void_date,
                reason,
                actor_id,
            )
            txn_count = self._void_subledger(entry.id, actor_id)

            self._auditor.record_void(
                entry,
                mirror_entry_id=mirror.id,
                reason=reason,
                actor_id=actor_id,
                reversed_movement_count=len(movements),
                voided_subledger_count=txn_count,
            )

            voided_ids.append(entry.id)
            mirror_ids.append(mirror.id)
            movement_count += len(movements)
            subledger_count += txn_count

        return VoidResult(
            source_type=source_type,
            source_ref=source_ref,
            reason=reason,
            voided_entry_ids=tuple(voided_ids),
            mirror_entry_ids=tuple(mirror_ids),
            reversed_movement_count=movement_count,
            voided_subledger_count=subledger_count,
        )

    def _void_subledger(self, journal_entry_id: UUID, actor_id: UUID) -> int:
        txns = self.session.execute(
            select(SubledgerTransaction).where(
                SubledgerTransaction.journal_entry_id == journal_entry_id,
                SubledgerTransaction.status == SubledgerTransactionStatus.POSTED,
            )
        ).scalars().all()
        for txn in txns:
            txn.status = SubledgerTransactionStatus.VOIDED
        self.session.flush()
        return len(txns)
