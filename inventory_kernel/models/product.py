"""
Product and ProductVariant -- the stock-bearing catalogue rows.

A Product groups SKU-level variants (size / colour / ...).  Each variant owns
its own price and stock counter.  The stock column is the one contended
resource in the system: it is mutated ONLY by StockLedger through
single-statement conditional updates, never by loading the row, changing the
attribute and flushing it back.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
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

DEFAULT_LOW_STOCK_THRESHOLD = 10


class Product(TenantScoped, TrackedBase):
    """
    Catalogue product.

    Guarantees:
        - low_stock_threshold is the per-product alarm level shared by all
          of its variants.
    """

    __tablename__ = "products"

    __table_args__ = (
        Index("idx_product_tenant_name", "tenant_id", "name"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    low_stock_threshold: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_LOW_STOCK_THRESHOLD,
    )

    variants: Mapped[list["ProductVariant"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductVariant.sku",
    )

    def variant(self, sku: str) -> "ProductVariant | None":
        """Return the variant with the given SKU, if any."""
        for variant in self.variants:
            if variant.sku == sku:
                return variant
        return None

    def __repr__(self) -> str:
        return f"<Product {self.id} name={self.name!r}>"


class ProductVariant(TenantScoped, TrackedBase):
    """
    SKU-level configuration of a product.

    Contract:
        ``stock`` never goes negative.  The CHECK constraint is the last
        line of defence; StockLedger's conditional decrement is the first.

    Non-goals:
        - tenant_id duplicates the parent's so a ledger UPDATE can filter by
          tenant without a join.  It is set once at creation.
    """

    __tablename__ = "product_variants"

    __table_args__ = (
        UniqueConstraint("product_id", "sku", name="uq_variant_product_sku"),
        CheckConstraint("stock >= 0", name="ck_variant_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_variant_price_non_negative"),
        Index("idx_variant_tenant_product_sku", "tenant_id", "product_id", "sku"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )

    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    # Free-form key/value pairs (size, colour, ...)
    attributes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product: Mapped["Product"] = relationship(back_populates="variants")

    def __repr__(self) -> str:
        return f"<ProductVariant {self.sku} stock={self.stock}>"
