"""
StockMovement -- append-only audit record of a single stock change.

Exactly one row is written per ledger mutation (reserve, release).  Rows are
never updated or deleted; the ORM listeners in db/immutability.py reject any
attempt to do so.  Summing ``quantity`` per variant over all movements
reproduces the net change applied to that variant's stock.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, TenantScoped, UUIDString


class MovementType(str, Enum):
    """Why the stock changed.

    Sign convention: SALE is negative, PURCHASE and RETURN are positive,
    ADJUSTMENT may be either.
    """

    PURCHASE = "PURCHASE"
    SALE = "SALE"
    RETURN = "RETURN"
    ADJUSTMENT = "ADJUSTMENT"


class StockMovement(TenantScoped, Base):
    """
    Immutable stock movement row.

    Guarantees:
        - quantity is signed and never zero.
        - reference names the originating document (order / PO number).
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        Index("idx_movement_tenant_created", "tenant_id", "created_at"),
        Index("idx_movement_tenant_product", "tenant_id", "product_id", "variant_sku"),
        Index("idx_movement_reference", "tenant_id", "reference"),
    )

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    variant_sku: Mapped[str] = mapped_column(String(100), nullable=False)

    movement_type: Mapped[MovementType] = mapped_column(String(20), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def to_record(self):
        from inventory_kernel.domain.values import StockMovementRecord

        return StockMovementRecord(
            id=self.id,
            tenant_id=self.tenant_id,
            product_id=self.product_id,
            sku=self.variant_sku,
            movement_type=str(MovementType(self.movement_type).value),
            quantity=self.quantity,
            actor_id=self.actor_id,
            reference=self.reference,
            notes=self.notes,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.movement_type} {self.variant_sku} "
            f"qty={self.quantity}>"
        )
