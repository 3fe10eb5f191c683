"""
SQLAlchemy ORM persistence models for the Orders module.

Responsibility
--------------
Persist sales orders and their lines.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``OrderService``.  Inherits from
``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* ``(tenant_id, order_number)`` is unique.
* ``0 <= fulfilled_quantity <= quantity`` on every line (CHECK).
* ``version`` is the optimistic concurrency counter, incremented by the
  service on every mutation.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TenantScoped, TrackedBase, UUIDString


class SalesOrderModel(TenantScoped, TrackedBase):
    """
    A sales order.

    Maps to ``OrderView`` in ``inventory_modules.orders.models``.

    Guarantees:
        - ``total_amount`` equals the sum of line subtotals.
        - ``status`` is FULFILLED iff every line is fully fulfilled.
    """

    __tablename__ = "sales_orders"

    __table_args__ = (
        UniqueConstraint("tenant_id", "order_number", name="uq_order_tenant_number"),
        Index("idx_order_tenant_status", "tenant_id", "status"),
    )

    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="CONFIRMED")
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    customer_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    lines: Mapped[list["SalesOrderLineModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SalesOrderLineModel.line_number",
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    def line_for(self, sku: str, product_id: UUID | None = None) -> "SalesOrderLineModel | None":
        for line in self.lines:
            if line.variant_sku != sku:
                continue
            if product_id is None or line.product_id == product_id:
                return line
        return None

    def to_dto(self):
        from inventory_modules.orders.models import OrderLine, OrderStatus, OrderView

        return OrderView(
            id=self.id,
            tenant_id=self.tenant_id,
            order_number=self.order_number,
            status=OrderStatus(self.status),
            total_amount=self.total_amount,
            customer_name=self.customer_name,
            customer_email=self.customer_email,
            notes=self.notes,
            created_by_id=self.created_by_id,
            version=self.version,
            lines=tuple(
                OrderLine(
                    id=line.id,
                    product_id=line.product_id,
                    sku=line.variant_sku,
                    quantity=line.quantity,
                    fulfilled_quantity=line.fulfilled_quantity,
                    price=line.price,
                )
                for line in self.lines
            ),
        )

    def __repr__(self) -> str:
        return f"<SalesOrderModel {self.order_number} [{self.status}]>"


class SalesOrderLineModel(TrackedBase):
    """A line item on a sales order."""

    __tablename__ = "sales_order_lines"

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_line_quantity_positive"),
        CheckConstraint(
            "fulfilled_quantity >= 0 AND fulfilled_quantity <= quantity",
            name="ck_order_line_fulfilled_range",
        ),
        CheckConstraint("price >= 0", name="ck_order_line_price_non_negative"),
        Index("idx_order_line_variant", "product_id", "variant_sku"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sales_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    variant_sku: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    fulfilled_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[Decimal] = mapped_column(nullable=False)

    order: Mapped["SalesOrderModel"] = relationship(back_populates="lines")

    @property
    def remaining_quantity(self) -> int:
        return self.quantity - self.fulfilled_quantity

    def __repr__(self) -> str:
        return (
            f"<SalesOrderLineModel {self.variant_sku} "
            f"{self.fulfilled_quantity}/{self.quantity}>"
        )
