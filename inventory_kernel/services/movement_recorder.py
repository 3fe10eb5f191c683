"""
MovementRecorder -- append-only writer of the stock audit trail.

Responsibility:
    Inserts one StockMovement per ledger mutation.  No update or delete
    method exists, and the ORM listeners in db/immutability.py reject both.

Architecture position:
    Kernel > Services.  Shares the caller's session so the movement commits
    (or rolls back) together with the ledger update it describes.

Non-goals:
    - Does NOT notify.  Fan-out happens after the aggregate commits and is
      the calling engine's job.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.values import StockMovementRecord
from inventory_kernel.exceptions import InvalidQuantityError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.stock_movement import MovementType, StockMovement

logger = get_logger("services.movement_recorder")


class MovementRecorder:
    """Append-only stock movement writer."""

    def __init__(self, session: Session):
        self._session = session

    def record(
        self,
        tenant_id: UUID,
        product_id: UUID,
        sku: str,
        movement_type: MovementType,
        quantity: int,
        actor_id: UUID,
        reference: str | None,
        notes: str | None = None,
    ) -> StockMovementRecord:
        """
        Append one movement.

        Args:
            quantity: Signed change; negative for outflow, never zero.

        Returns:
            The flushed row as a StockMovementRecord.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity == 0:
            raise InvalidQuantityError(quantity)

        kind = MovementType(movement_type)
        movement = StockMovement(
            tenant_id=tenant_id,
            product_id=product_id,
            variant_sku=sku,
            movement_type=kind.value,
            quantity=quantity,
            actor_id=actor_id,
            reference=reference,
            notes=notes,
        )
        self._session.add(movement)
        self._session.flush()

        logger.info(
            "stock_movement_recorded",
            extra={
                "movement_id": str(movement.id),
                "product_id": str(product_id),
                "sku": sku,
                "movement_type": kind.value,
                "quantity": quantity,
                "reference": reference,
            },
        )
        return movement.to_record()

    def list_for_variant(
        self,
        tenant_id: UUID,
        product_id: UUID,
        sku: str,
    ) -> list[StockMovementRecord]:
        """All movements of one variant, oldest first."""
        rows = self._session.execute(
            select(StockMovement)
            .where(
                StockMovement.tenant_id == tenant_id,
                StockMovement.product_id == product_id,
                StockMovement.variant_sku == sku,
            )
            .order_by(StockMovement.created_at, StockMovement.id)
        ).scalars()
        return [row.to_record() for row in rows]

    def list_for_reference(self, tenant_id: UUID, reference: str) -> list[StockMovementRecord]:
        """All movements written for one document (order / PO number)."""
        rows = self._session.execute(
            select(StockMovement)
            .where(
                StockMovement.tenant_id == tenant_id,
                StockMovement.reference == reference,
            )
            .order_by(StockMovement.created_at, StockMovement.id)
        ).scalars()
        return [row.to_record() for row in rows]
