"""
Inventory Modules.

Thin orchestration layers over the Inventory Kernel.
Each module contains:
- Domain models (the nouns)
- ORM persistence models
- Workflows (state machines)
- A service that runs every mutation through the TransactionCoordinator

Modules:
- Orders: Sales orders, fulfillment, cancellation
- Purchasing: Suppliers, purchase orders, receiving
- Stock: Catalogue registration, adjustments, low-stock report
"""

from inventory_modules import orders, purchasing, stock

__all__ = [
    "orders",
    "purchasing",
    "stock",
]
