"""
Stock Domain Models.

Catalogue registration requests and read views.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class VariantRequest:
    """One SKU to register under a new product."""
    sku: str
    price: Decimal
    stock: int = 0
    attributes: dict = field(default_factory=dict)


@dataclass(frozen=True)
class VariantView:
    sku: str
    price: Decimal
    stock: int
    attributes: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ProductView:
    id: UUID
    tenant_id: UUID
    name: str
    low_stock_threshold: int
    description: str | None = None
    category: str | None = None
    variants: tuple[VariantView, ...] = field(default_factory=tuple)

    def variant(self, sku: str) -> VariantView | None:
        for variant in self.variants:
            if variant.sku == sku:
                return variant
        return None


@dataclass(frozen=True)
class DashboardSummary:
    """Tenant-wide stock figures for the overview screen."""
    inventory_value: Decimal  # sum of stock x price over every variant
    low_stock_count: int  # net of inbound purchase-order quantity
    product_count: int
    pending_po_count: int  # SENT or CONFIRMED
