"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for every SQLAlchemy ORM model in the
    ledger.  Provides the UUID primary key convention, the type annotation map
    for monetary precision, and the TrackedBase audit mixin.
Architecture position: Kernel > DB.  Lowest-level import target; MUST NOT
    import from models/, services/, selectors/ or outer packages.

Invariants enforced:
    - UUID primary keys generated by uuid4 and stored as String(36) so the
      schema runs unchanged on PostgreSQL and SQLite.
    - Decimal maps to Numeric(38, 9).  Monetary amounts and quantities are
      NEVER floats anywhere in the schema.
    - Every tracked row records when and by whom it was created.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID stored as String(36) for cross-database portability.

    Converts Python UUID objects to their 36-character string form on the
    way in and back to UUID on the way out.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all ledger models.

    Guarantees:
        - id is a uuid4 UUID.
        - Decimal columns are Numeric(38, 9).
        - datetime columns are timezone-aware.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamps and creator tracking.

    created_at/updated_at/created_by_id/updated_by_id are audit metadata,
    not financial data, so the immutability listeners let them change even
    on posted records.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


class TenantScopedMixin:
    """Tenant and company scope columns shared by every ledger table."""

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False)


UUID = PyUUID
