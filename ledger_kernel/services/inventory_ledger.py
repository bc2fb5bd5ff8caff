"""
InventoryLedger -- signed stock movements tied to postings.

Responsibility:
    Plans and applies the stock outflows of a posting (COGS basis, SALE
    movements, stock decrement), inverts them on void, and records stock
    receipts.

Architecture position:
    Kernel > Services.  Called by PostingEngine and ReversalService; never
    commits.

Invariants enforced:
    - Committed stock of a stock-tracked PHYSICAL product never goes below
      zero.  The product row is read FOR UPDATE and its version counter
      turns a lost update into StaleDataError at flush.
    - Issue planning performs no writes, so a stock shortage aborts the
      posting before anything is persisted.
    - Void movements are located by correlation id and each original
      movement is inverted at most once (UNIQUE reverses_movement_id).
    - SERVICE products produce neither movements nor COGS.

Failure modes:
    - InsufficientStockError when an outflow exceeds on-hand stock.
    - ValidationError for an unknown product in the posting scope.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from ledger_kernel.domain.currency import round_money
from ledger_kernel.domain.posting import InventoryInstruction
from ledger_kernel.domain.settings import PostingSettings
from ledger_kernel.exceptions import InsufficientStockError, ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.inventory import InventoryMovement, MovementType, Product

logger = get_logger("services.inventory")


@dataclass(frozen=True)
class PlannedIssue:
    product: Product
    quantity: Decimal
    unit_cost: Decimal
    cogs: Decimal
    mutates_stock: bool
    memo: str | None = None


@dataclass(frozen=True)
class IssuePlan:
    """Outflows computed and checked, not yet written."""

    issues: tuple[PlannedIssue, ...] = ()

    @property
    def cogs_total(self) -> Decimal:
        return sum((issue.cogs for issue in self.issues), Decimal("0"))

    @property
    def movement_count(self) -> int:
        return len(self.issues)


class InventoryLedger:
    """Stock movements and on-hand quantities."""

    def __init__(
        self,
        session: Session,
        settings: PostingSettings | None = None,
    ):
        self._session = session
        self._settings = settings or PostingSettings()

    def _lock_product(self, tenant_id: str, company_id: str, product_id: UUID) -> Product:
        product = self._session.execute(
            select(Product)
            .where(
                Product.id == product_id,
                Product.tenant_id == tenant_id,
                Product.company_id == company_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if product is None:
            raise ValidationError("product_id", f"unknown product {product_id}")
        return product

    def mutates_stock(self, product: Product) -> bool:
        """
        Stock-tracked physical products below the unlimited threshold have
        their on-hand quantity checked and changed.
        """
        if not product.has_limited_stock:
            return False
        threshold = self._settings.unlimited_stock_threshold
        return threshold is None or product.stock_quantity < threshold

    def plan_issue(
        self,
        tenant_id: str,
        company_id: str,
        instructions: Sequence[InventoryInstruction],
        currency: str,
    ) -> IssuePlan:
        """
        Lock products, price the outflows and check stock.  Writes nothing.

        Quantities for the same product are checked cumulatively.
        """
        issues: list[PlannedIssue] = []
        requested: dict[UUID, Decimal] = {}

        for instruction in instructions:
            product = self._lock_product(tenant_id, company_id, instruction.product_id)
            if not product.is_physical:
                continue

            unit_cost = (
                instruction.unit_cost
                if instruction.unit_cost is not None
                else product.unit_cost
            )
            mutates = self.mutates_stock(product)
            if mutates:
                total = requested.get(product.id, Decimal("0")) + instruction.quantity
                if total > product.stock_quantity:
                    logger.warning(
                        "insufficient_stock",
                        extra={
                            "product_id": str(product.id),
                            "sku": product.sku,
                            "on_hand": str(product.stock_quantity),
                            "requested": str(total),
                        },
                    )
                    raise InsufficientStockError(
                        str(product.id), product.stock_quantity, total
                    )
                requested[product.id] = total

            issues.append(
                PlannedIssue(
                    product=product,
                    quantity=instruction.quantity,
                    unit_cost=unit_cost,
                    cogs=round_money(
                        unit_cost * instruction.quantity,
                        currency,
                        self._settings.rounding,
                    ),
                    mutates_stock=mutates,
                    memo=instruction.memo,
                )
            )

        return IssuePlan(issues=tuple(issues))

    def apply_issue(
        self,
        plan: IssuePlan,
        source_ref: str,
        correlation_id: UUID,
        movement_date: date,
        actor_id: UUID,
    ) -> list[InventoryMovement]:
        """Write one SALE movement per planned line and decrement stock."""
        movements = []
        for issue in plan.issues:
            product = issue.product
            movement = InventoryMovement(
                tenant_id=product.tenant_id,
                company_id=product.company_id,
                product_id=product.id,
                quantity=-issue.quantity,
                movement_type=MovementType.SALE,
                source_ref=source_ref,
                correlation_id=correlation_id,
                unit_cost=issue.unit_cost,
                movement_date=movement_date,
                reason=issue.memo,
                stock_applied=issue.mutates_stock,
                created_by_id=actor_id,
            )
            self._session.add(movement)
            if issue.mutates_stock:
                product.stock_quantity = product.stock_quantity - issue.quantity
                product.updated_by_id = actor_id
            movements.append(movement)

        self._session.flush()
        if movements:
            logger.info(
                "inventory_issued",
                extra={
                    "movement_count": len(movements),
                    "cogs_total": str(plan.cogs_total),
                },
            )
        return movements

    def reverse_correlated(
        self,
        correlation_id: UUID,
        void_correlation_id: UUID,
        source_ref: str,
        movement_date: date,
        reason: str,
        actor_id: UUID,
    ) -> list[InventoryMovement]:
        """
        Append a VOID movement with the inverted sign for every movement
        written under ``correlation_id`` that has not been inverted yet, and
        undo the stock change of every original that applied one.  The
        product's current stock level plays no part in the decision.
        """
        reversal = aliased(InventoryMovement)
        originals = self._session.execute(
            select(InventoryMovement)
            .where(
                InventoryMovement.correlation_id == correlation_id,
                InventoryMovement.movement_type != MovementType.VOID,
                ~select(reversal.id)
                .where(reversal.reverses_movement_id == InventoryMovement.id)
                .exists(),
            )
            .order_by(InventoryMovement.created_at, InventoryMovement.id)
        ).scalars().all()

        voids = []
        for original in originals:
            product = self._lock_product(
                original.tenant_id, original.company_id, original.product_id
            )
            inverted = -original.quantity
            if original.stock_applied:
                restored = product.stock_quantity + inverted
                if restored < 0:
                    raise InsufficientStockError(
                        str(product.id), product.stock_quantity, -inverted
                    )
                product.stock_quantity = restored
                product.updated_by_id = actor_id

            movement = InventoryMovement(
                tenant_id=original.tenant_id,
                company_id=original.company_id,
                product_id=original.product_id,
                quantity=inverted,
                movement_type=MovementType.VOID,
                source_ref=source_ref,
                correlation_id=void_correlation_id,
                unit_cost=original.unit_cost,
                movement_date=movement_date,
                reason=reason,
                reverses_movement_id=original.id,
                stock_applied=original.stock_applied,
                created_by_id=actor_id,
            )
            self._session.add(movement)
            voids.append(movement)

        self._session.flush()
        if voids:
            logger.info(
                "inventory_reversed",
                extra={
                    "original_correlation_id": str(correlation_id),
                    "movement_count": len(voids),
                },
            )
        return voids

    def receive_stock(
        self,
        tenant_id: str,
        company_id: str,
        product_id: UUID,
        quantity: Decimal,
        source_ref: str,
        movement_date: date,
        actor_id: UUID,
        unit_cost: Decimal | None = None,
        reason: str | None = None,
    ) -> InventoryMovement:
        """Record a PURCHASE inflow and raise on-hand stock."""
        if quantity <= 0:
            raise ValidationError("quantity", "must be positive")
        product = self._lock_product(tenant_id, company_id, product_id)
        if not product.is_physical:
            raise ValidationError("product_id", "service products carry no stock")

        applied = self.mutates_stock(product)
        if applied:
            product.stock_quantity = product.stock_quantity + quantity
            product.updated_by_id = actor_id

        movement = InventoryMovement(
            tenant_id=tenant_id,
            company_id=company_id,
            product_id=product.id,
            quantity=quantity,
            movement_type=MovementType.PURCHASE,
            source_ref=source_ref,
            correlation_id=uuid4(),
            unit_cost=unit_cost if unit_cost is not None else product.unit_cost,
            movement_date=movement_date,
            reason=reason,
            stock_applied=applied,
            created_by_id=actor_id,
        )
        self._session.add(movement)
        self._session.flush()

        logger.info(
            "inventory_received",
            extra={"sku": product.sku, "quantity": str(quantity)},
        )
        return movement
