"""
Purchasing Module.

Suppliers, purchase orders and goods receipt:
- PO creation with per-tenant atomic numbering
- Externally driven DRAFT -> SENT -> CONFIRMED progression
- Partial receipts with price variance absorption
- Stock release and PURCHASE movements on receipt
"""

from inventory_modules.purchasing.models import (
    POStatus,
    PurchaseOrderItemRequest,
    PurchaseOrderLine,
    PurchaseOrderView,
    ReceivedItem,
    Supplier,
)
from inventory_modules.purchasing.service import PurchaseOrderService
from inventory_modules.purchasing.workflows import PURCHASE_ORDER_WORKFLOW

__all__ = [
    "POStatus",
    "PURCHASE_ORDER_WORKFLOW",
    "PurchaseOrderItemRequest",
    "PurchaseOrderLine",
    "PurchaseOrderService",
    "PurchaseOrderView",
    "ReceivedItem",
    "Supplier",
]
