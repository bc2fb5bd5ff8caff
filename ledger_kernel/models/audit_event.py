"""
Module: ledger_kernel.models.audit_event
Responsibility: ORM persistence for the tamper-evident audit hash chain.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (ORM listener).
    - hash = H(entity_type | entity_id | action | payload_hash | prev_hash),
      validated by AuditorService.validate_chain().
    - seq is unique and increasing within the chain.

Audit relevance:
    Every posting, void, depreciation run, disposal and chart change writes
    one AuditEvent.  Retroactive edits break the chain and are detectable.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Auditable actions."""

    # Journal lifecycle
    JOURNAL_POSTED = "journal_posted"
    JOURNAL_VOIDED = "journal_voided"

    # Document lifecycle
    DOCUMENT_VOIDED = "document_voided"
    DEPRECIATION_RUN = "depreciation_run"
    ASSET_DISPOSED = "asset_disposed"

    # Chart of accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_MAPPED = "account_mapped"
    ACCOUNT_DEACTIVATED = "account_deactivated"


class AuditEvent(Base):
    """
    Audit event with hash chain linkage.

    Non-goals:
        - Hash correctness is not checked at INSERT time; that is
          AuditorService's job.
    """

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_scope", "tenant_id", "company_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    company_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # "JournalEntry", "Invoice", "FixedAsset", "Account", ...
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    action: Mapped[AuditAction] = mapped_column(String(50), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Null for the genesis event
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
