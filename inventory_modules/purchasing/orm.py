"""
SQLAlchemy ORM persistence models for the Purchasing module.

Responsibility
--------------
Persist suppliers, purchase orders and their lines.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``PurchaseOrderService``.
Inherits from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* ``(tenant_id, po_number)`` is unique.
* ``0 <= received_quantity <= ordered_quantity`` on every line (CHECK).
* ``version`` is the optimistic concurrency counter.  The service increments
  it on every mutation; SQLAlchemy adds ``WHERE version = :old`` to the
  UPDATE and raises StaleDataError when a concurrent writer got there first.
* Prices and totals use ``Decimal`` -- NEVER float.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TenantScoped, TrackedBase, UUIDString

# ---------------------------------------------------------------------------
# SupplierModel
# ---------------------------------------------------------------------------


class SupplierModel(TenantScoped, TrackedBase):
    """A supplier purchase orders are placed with."""

    __tablename__ = "suppliers"

    __table_args__ = (
        Index("idx_supplier_tenant_name", "tenant_id", "name"),
        CheckConstraint(
            "rating IS NULL OR (rating >= 0 AND rating <= 5)",
            name="ck_supplier_rating_range",
        ),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_terms: Mapped[str | None] = mapped_column(String(100), nullable=True)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def to_dto(self):
        from inventory_modules.purchasing.models import Supplier

        return Supplier(
            id=self.id,
            tenant_id=self.tenant_id,
            name=self.name,
            email=self.email,
            phone=self.phone,
            address=self.address,
            payment_terms=self.payment_terms,
            rating=self.rating,
        )

    def __repr__(self) -> str:
        return f"<SupplierModel {self.name!r}>"


# ---------------------------------------------------------------------------
# PurchaseOrderModel
# ---------------------------------------------------------------------------


class PurchaseOrderModel(TenantScoped, TrackedBase):
    """
    A purchase order.

    Maps to ``PurchaseOrderView`` in ``inventory_modules.purchasing.models``.

    Guarantees:
        - ``status`` follows DRAFT -> SENT -> CONFIRMED -> RECEIVED.
        - ``actual_delivery_date`` is set exactly when status becomes RECEIVED.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("tenant_id", "po_number", name="uq_po_tenant_number"),
        Index("idx_po_tenant_status", "tenant_id", "status"),
        Index("idx_po_supplier", "supplier_id"),
    )

    po_number: Mapped[str] = mapped_column(String(50), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("suppliers.id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    expected_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_delivery_date: Mapped[datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    lines: Mapped[list["PurchaseOrderLineModel"]] = relationship(
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseOrderLineModel.line_number",
    )

    # Bumped explicitly by the service on every mutation
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    def line_for(self, product_id: UUID, sku: str) -> "PurchaseOrderLineModel | None":
        for line in self.lines:
            if line.product_id == product_id and line.variant_sku == sku:
                return line
        return None

    def to_dto(self):
        from inventory_modules.purchasing.models import (
            POStatus,
            PurchaseOrderLine,
            PurchaseOrderView,
        )

        return PurchaseOrderView(
            id=self.id,
            tenant_id=self.tenant_id,
            po_number=self.po_number,
            supplier_id=self.supplier_id,
            status=POStatus(self.status),
            total_amount=self.total_amount,
            expected_delivery_date=self.expected_delivery_date,
            actual_delivery_date=self.actual_delivery_date,
            notes=self.notes,
            created_by_id=self.created_by_id,
            version=self.version,
            lines=tuple(
                PurchaseOrderLine(
                    id=line.id,
                    product_id=line.product_id,
                    sku=line.variant_sku,
                    ordered_quantity=line.ordered_quantity,
                    received_quantity=line.received_quantity,
                    price=line.price,
                )
                for line in self.lines
            ),
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.po_number} [{self.status}]>"


# ---------------------------------------------------------------------------
# PurchaseOrderLineModel
# ---------------------------------------------------------------------------


class PurchaseOrderLineModel(TrackedBase):
    """A line item on a purchase order."""

    __tablename__ = "purchase_order_lines"

    __table_args__ = (
        CheckConstraint("ordered_quantity >= 1", name="ck_po_line_ordered_positive"),
        CheckConstraint(
            "received_quantity >= 0 AND received_quantity <= ordered_quantity",
            name="ck_po_line_received_range",
        ),
        CheckConstraint("price >= 0", name="ck_po_line_price_non_negative"),
        Index("idx_po_line_variant", "product_id", "variant_sku"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    variant_sku: Mapped[str] = mapped_column(String(100), nullable=False)
    ordered_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    received_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[Decimal] = mapped_column(nullable=False)

    purchase_order: Mapped["PurchaseOrderModel"] = relationship(back_populates="lines")

    @property
    def remaining_quantity(self) -> int:
        return self.ordered_quantity - self.received_quantity

    def __repr__(self) -> str:
        return (
            f"<PurchaseOrderLineModel {self.variant_sku} "
            f"{self.received_quantity}/{self.ordered_quantity}>"
        )
