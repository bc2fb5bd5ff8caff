"""
Module: ledger_kernel.models.inventory
Responsibility: ORM persistence for products and the signed inventory
    movement ledger.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Committed stock of a stock-tracked PHYSICAL product never goes below
      zero (InventoryLedger checks under a row lock; CHECK constraint here).
    - Product.version is the optimistic lock counter; SQLAlchemy adds
      ``WHERE version = :old`` to every UPDATE and raises StaleDataError on
      a lost update.
    - Movements are append-only.  A void appends a VOID movement with the
      inverted sign; the original row is never touched.

Audit relevance:
    The sum of a product's movements explains every change to its stock.
    ``correlation_id`` ties each movement to the journal entry written by
    the same posting.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TenantScopedMixin, TrackedBase, UUIDString


class ProductType(str, Enum):
    PHYSICAL = "physical"
    SERVICE = "service"


class MovementType(str, Enum):
    """Kind of stock movement.  The sign of the quantity carries direction."""

    SALE = "sale"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    VOID = "void"


class Product(TenantScopedMixin, TrackedBase):
    """
    Sellable item.

    ``tracks_stock=False`` means unlimited stock: movements are still
    recorded for physical products but the on-hand quantity is never read
    or mutated.  SERVICE products produce neither movements nor COGS.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("tenant_id", "company_id", "sku", name="uq_product_sku"),
        CheckConstraint("stock_quantity >= 0", name="ck_product_stock_non_negative"),
        Index("idx_product_scope", "tenant_id", "company_id"),
    )

    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    product_type: Mapped[ProductType] = mapped_column(
        String(20),
        default=ProductType.PHYSICAL,
        nullable=False,
    )

    tracks_stock: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    stock_quantity: Mapped[Decimal] = mapped_column(
        default=Decimal("0"),
        nullable=False,
    )

    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Product {self.sku} on_hand={self.stock_quantity}>"

    @property
    def is_physical(self) -> bool:
        return self.product_type == ProductType.PHYSICAL

    @property
    def has_limited_stock(self) -> bool:
        """True when stock must be checked and mutated."""
        return self.is_physical and self.tracks_stock


class InventoryMovement(TenantScopedMixin, TrackedBase):
    """
    One signed stock movement.

    Negative quantity is an outflow (sale), positive an inflow (purchase,
    void of a sale).  VOID movements point at the movement they invert.
    ``stock_applied`` records whether the movement changed on-hand stock
    when it was written; a void restores stock exactly when it is set.
    """

    __tablename__ = "inventory_movements"

    __table_args__ = (
        CheckConstraint("quantity <> 0", name="ck_movement_non_zero"),
        UniqueConstraint("reverses_movement_id", name="uq_movement_single_reversal"),
        Index("idx_movement_product", "product_id"),
        Index("idx_movement_correlation", "correlation_id"),
        Index("idx_movement_source", "tenant_id", "company_id", "source_ref"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    movement_type: Mapped[MovementType] = mapped_column(String(20), nullable=False)

    source_ref: Mapped[str] = mapped_column(String(200), nullable=False)

    correlation_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)

    movement_date: Mapped[date] = mapped_column(Date, nullable=False)

    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    reverses_movement_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_movements.id"),
        nullable=True,
    )

    stock_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    product: Mapped["Product"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<InventoryMovement {self.movement_type} {self.quantity} of {self.product_id}>"
