"""
Orders Module.

Sales orders:
- All-or-nothing creation with stock reservation per line
- Partial and whole-order fulfillment tracking
- Cancellation that returns the full ordered quantity to stock
"""

from inventory_modules.orders.models import (
    FulfillmentRequest,
    OrderItemRequest,
    OrderLine,
    OrderStatus,
    OrderView,
)
from inventory_modules.orders.service import OrderService
from inventory_modules.orders.workflows import ORDER_WORKFLOW

__all__ = [
    "FulfillmentRequest",
    "ORDER_WORKFLOW",
    "OrderItemRequest",
    "OrderLine",
    "OrderService",
    "OrderStatus",
    "OrderView",
]
