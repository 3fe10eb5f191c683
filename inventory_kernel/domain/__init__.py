"""
Pure domain layer.

Value objects and time abstraction with NO dependencies on the ORM,
the database or I/O.
"""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.values import (
    LowStockItem,
    StockMovementRecord,
    VariantStock,
    document_total,
    is_low_stock,
)
from inventory_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Guard",
    "LowStockItem",
    "StockMovementRecord",
    "Transition",
    "VariantStock",
    "Workflow",
    "document_total",
    "is_low_stock",
]
