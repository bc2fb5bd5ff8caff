"""
Module: ledger_kernel.selectors.subledger_selector
Responsibility: Read-only queries over the sub-ledgers kept beside the
    journal: inventory movements and sub-ledger transactions.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.models.inventory import InventoryMovement, MovementType, Product
from ledger_kernel.models.subledger import (
    SubledgerTransaction,
    SubledgerTransactionStatus,
)
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class InventoryMovementDTO:
    id: UUID
    product_id: UUID
    quantity: Decimal
    movement_type: MovementType
    unit_cost: Decimal
    source_ref: str
    correlation_id: UUID
    movement_date: date
    reverses_movement_id: UUID | None


@dataclass(frozen=True)
class SubledgerTransactionDTO:
    id: UUID
    transaction_type: str
    amount: Decimal
    currency: str
    transaction_date: date
    status: SubledgerTransactionStatus
    source_ref: str
    party_ref: str | None
    journal_entry_id: UUID
    correlation_id: UUID


class SubledgerSelector(BaseSelector[InventoryMovement]):
    """Inventory and sub-ledger transaction queries."""

    def __init__(self, session: Session):
        super().__init__(session)

    @staticmethod
    def _movement_dto(movement: InventoryMovement) -> InventoryMovementDTO:
        return InventoryMovementDTO(
            id=movement.id,
            product_id=movement.product_id,
            quantity=movement.quantity,
            movement_type=MovementType(movement.movement_type),
            unit_cost=movement.unit_cost,
            source_ref=movement.source_ref,
            correlation_id=movement.correlation_id,
            movement_date=movement.movement_date,
            reverses_movement_id=movement.reverses_movement_id,
        )

    @staticmethod
    def _transaction_dto(txn: SubledgerTransaction) -> SubledgerTransactionDTO:
        return SubledgerTransactionDTO(
            id=txn.id,
            transaction_type=txn.transaction_type,
            amount=txn.amount,
            currency=txn.currency,
            transaction_date=txn.transaction_date,
            status=SubledgerTransactionStatus(txn.status),
            source_ref=txn.source_ref,
            party_ref=txn.party_ref,
            journal_entry_id=txn.journal_entry_id,
            correlation_id=txn.correlation_id,
        )

    def movements_for_correlation(self, correlation_id: UUID) -> list[InventoryMovementDTO]:
        movements = self.session.execute(
            select(InventoryMovement)
            .where(InventoryMovement.correlation_id == correlation_id)
            .order_by(InventoryMovement.created_at, InventoryMovement.id)
        ).scalars().all()
        return [self._movement_dto(m) for m in movements]

    def movements_for_product(self, product_id: UUID) -> list[InventoryMovementDTO]:
        movements = self.session.execute(
            select(InventoryMovement)
            .where(InventoryMovement.product_id == product_id)
            .order_by(InventoryMovement.movement_date, InventoryMovement.created_at)
        ).scalars().all()
        return [self._movement_dto(m) for m in movements]

    def net_movement(self, product_id: UUID, source_refs: list[str] | None = None) -> Decimal:
        """
        Signed sum of movements for a product.

        ``source_refs`` narrows the sum to movements written for the given
        documents (the original and its ``VOID-`` reference).
        """
        query = select(func.coalesce(func.sum(InventoryMovement.quantity), 0)).where(
            InventoryMovement.product_id == product_id
        )
        if source_refs is not None:
            query = query.where(InventoryMovement.source_ref.in_(source_refs))
        total = self.session.execute(query).scalar_one()
        return total if isinstance(total, Decimal) else Decimal(str(total))

    def on_hand(self, product_id: UUID) -> Decimal:
        """Current committed stock quantity of a product."""
        return self.session.execute(
            select(Product.stock_quantity).where(Product.id == product_id)
        ).scalar_one()

    def transaction_for_entry(self, journal_entry_id: UUID) -> SubledgerTransactionDTO | None:
        txn = self.session.execute(
            select(SubledgerTransaction).where(
                SubledgerTransaction.journal_entry_id == journal_entry_id
            )
        ).scalar_one_or_none()
        return self._transaction_dto(txn) if txn is not None else None

    def transactions_for_document(
        self,
        tenant_id: str,
        company_id: str,
        source_ref: str,
    ) -> list[SubledgerTransactionDTO]:
        txns = self.session.execute(
            select(SubledgerTransaction)
            .where(
                SubledgerTransaction.tenant_id == tenant_id,
                SubledgerTransaction.company_id == company_id,
                SubledgerTransaction.source_ref == source_ref,
            )
            .order_by(SubledgerTransaction.created_at)
        ).scalars().all()
        return [self._transaction_dto(t) for t in txns]
