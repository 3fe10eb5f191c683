"""Domain models for the inventory kernel."""

from inventory_kernel.models.product import (
    DEFAULT_LOW_STOCK_THRESHOLD,
    Product,
    ProductVariant,
)
from inventory_kernel.models.stock_movement import MovementType, StockMovement
from inventory_kernel.models.sequence import SequenceCounter

__all__ = [
    "DEFAULT_LOW_STOCK_THRESHOLD",
    "Product",
    "ProductVariant",
    "MovementType",
    "StockMovement",
    "SequenceCounter",
]
