"""
AuditorService -- tamper-evident audit trail and hash chain maintenance.

Responsibility:
    Creates immutable, hash-chained audit events for postings, voids,
    depreciation runs, disposals and chart-of-accounts changes.  Provides
    chain validation and per-entity traces.

Architecture position:
    Kernel > Services -- called by PostingEngine, ReversalService,
    AccountService and the module services.

Invariants enforced:
    - hash = H(entity_type | entity_id | action | payload_hash | prev_hash).
    - seq is strictly increasing; it is read under the same transaction as
      the insert and a concurrent duplicate fails on the UNIQUE constraint.
    - Append-only (ORM listener on AuditEvent).

Failure modes:
    - AuditChainBrokenError from validate_chain() on any hash mismatch.
    - IntegrityError on a concurrent seq race; the posting engines surface
      it as PersistenceError.

Non-goals:
    - Does NOT commit.  The caller owns the transaction.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import AuditChainBrokenError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.audit_event import AuditAction, AuditEvent
from ledger_kernel.utils.hashing import hash_audit_event, hash_payload, to_json_safe

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: AuditAction
    occurred_at: datetime
    actor_id: UUID
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit events for one entity in chain order."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(entry.action for entry in self.entries)

    @property
    def last_action(self) -> AuditAction | None:
        return self.entries[-1].action if self.entries else None


class AuditorService:
    """Creates and validates hash-chained audit events."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def _last_event(self) -> AuditEvent | None:
        return self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()

    def record(
        self,
        tenant_id: str,
        company_id: str,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """
        Append one audit event to the chain and flush it.

        Postconditions:
            - The new event's prev_hash equals the previous event's hash
              (None for the genesis event).
        """
        last = self._last_event()
        seq = (last.seq + 1) if last is not None else 1
        prev_hash = last.hash if last is not None else None

        payload_data = to_json_safe(payload or {})
        payload_hash = hash_payload(payload_data)
        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=AuditAction(action).value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            seq=seq,
            tenant_id=tenant_id,
            company_id=company_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload=payload_data,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": AuditAction(action).value,
                "seq": seq,
            },
        )
        return audit_event

    # Domain-specific recording methods

    def record_posting(self, entry, actor_id: UUID, line_count: int) -> AuditEvent:
        return self.record(
            tenant_id=entry.tenant_id,
            company_id=entry.company_id,
            entity_type="JournalEntry",
            entity_id=entry.id,
            action=AuditAction.JOURNAL_POSTED,
            actor_id=actor_id,
            payload={
                "source_type": entry.source_type,
                "source_ref": entry.source_ref,
                "correlation_id": str(entry.correlation_id),
                "entry_date": entry.entry_date,
                "line_count": line_count,
                "reversal_of_id": (
                    str(entry.reversal_of_id) if entry.reversal_of_id else None
                ),
            },
        )

    def record_void(
        self,
        entry,
        mirror_entry_id: UUID,
        reason: str,
        actor_id: UUID,
        reversed_movement_count: int,
        voided_subledger_count: int,
    ) -> AuditEvent:
        return self.record(
            tenant_id=entry.tenant_id,
            company_id=entry.company_id,
            entity_type="JournalEntry",
            entity_id=entry.id,
            action=AuditAction.JOURNAL_VOIDED,
            actor_id=actor_id,
            payload={
                "source_type": entry.source_type,
                "source_ref": entry.source_ref,
                "mirror_entry_id": str(mirror_entry_id),
                "reason": reason,
                "reversed_movement_count": reversed_movement_count,
                "voided_subledger_count": voided_subledger_count,
            },
        )

    # Chain validation

    def validate_chain(self) -> bool:
        """
        Recompute every hash in seq order.

        Raises:
            AuditChainBrokenError: On the first mismatch.
        """
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars().all()

        prev_hash: str | None = None
        for event in events:
            if event.prev_hash != prev_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"audit_event_id": str(event.id), "check": "linkage"},
                )
                raise AuditChainBrokenError(
                    str(event.id), prev_hash or "None", event.prev_hash or "None"
                )

            expected_hash = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=str(event.entity_id),
                action=AuditAction(event.action).value,
                payload_hash=hash_payload(event.payload or {}),
                prev_hash=event.prev_hash,
            )
            if event.hash != expected_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"audit_event_id": str(event.id), "check": "hash"},
                )
                raise AuditChainBrokenError(str(event.id), expected_hash, event.hash)

            prev_hash = event.hash

        logger.info("audit_chain_valid", extra={"event_count": len(events)})
        return True

    def get_trace(self, entity_type: str, entity_id: UUID) -> AuditTrace:
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == entity_id,
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()

        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=tuple(
                AuditTraceEntry(
                    seq=event.seq,
                    action=AuditAction(event.action),
                    occurred_at=event.occurred_at,
                    actor_id=event.actor_id,
                    payload=event.payload or {},
                    hash=event.hash,
                )
                for event in events
            ),
        )

    def count_events(self) -> int:
        return self._session.execute(select(func.count(AuditEvent.id))).scalar_one()
