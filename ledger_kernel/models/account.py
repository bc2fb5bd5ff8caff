"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts and the
    purpose-to-account mapping table used by account resolution.
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure enums in domain/accounts.py.

Invariants enforced:
    - Account code is unique per (tenant, company).
    - At most one mapping per (tenant, company, purpose); resolution is a
      unique lookup, never a search.
    - Accounts are never physically deleted, only deactivated (ORM
      listener in db/immutability.py).

Failure modes:
    - IntegrityError on duplicate code or duplicate purpose mapping.
    - ImmutabilityViolationError on DELETE.

Audit relevance:
    Every journal line points at an Account row.  Deleting or retyping an
    account would silently change the meaning of historical entries, so
    the row outlives any mapping that once pointed at it.
"""

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TenantScopedMixin, TrackedBase, UUIDString
from ledger_kernel.domain.accounts import AccountPurpose, AccountType

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine

__all__ = ["Account", "AccountMapping", "AccountPurpose", "AccountType"]


class Account(TenantScopedMixin, TrackedBase):
    """
    Chart of accounts entry.

    Contract:
        (tenant_id, company_id, code) is unique.  ``purpose`` is an
        informational tag; the authoritative purpose lookup goes through
        AccountMapping.

    Non-goals:
        - No hierarchy or reporting groups; those belong to reporting.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "company_id", "code", name="uq_account_code"),
        Index("idx_account_scope", "tenant_id", "company_id"),
        Index("idx_account_active", "is_active"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    purpose: Mapped[AccountPurpose | None] = mapped_column(String(40), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        return AccountType(self.account_type).is_debit_normal


class AccountMapping(TenantScopedMixin, TrackedBase):
    """
    Indirection from a process purpose to a concrete account.

    Populated by the account-mapping configuration surface
    (AccountService.map_purpose) or by auto-provisioning.
    """

    __tablename__ = "account_mappings"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "company_id", "purpose", name="uq_account_mapping_purpose"
        ),
    )

    purpose: Mapped[AccountPurpose] = mapped_column(String(40), nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    account: Mapped["Account"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<AccountMapping {self.purpose} -> {self.account_id}>"
