"""
Kernel services: stateful infrastructure that the domain modules call.

All services take the caller's session and never commit; the
TransactionCoordinator owns transaction boundaries.
"""

from inventory_kernel.services.movement_recorder import MovementRecorder
from inventory_kernel.services.notifications import (
    CacheInvalidator,
    CacheScope,
    InMemoryCacheInvalidator,
    InMemoryNotifier,
    InventoryEvent,
    Notifier,
    NullCacheInvalidator,
    NullNotifier,
    PendingEffects,
    publish,
)
from inventory_kernel.services.sequence_service import (
    SequenceService,
    format_document_number,
)
from inventory_kernel.services.stock_ledger import StockLedger, require_positive_quantity
from inventory_kernel.services.transaction_coordinator import (
    Disposition,
    DirectStrategy,
    TransactionalStrategy,
    TransactionCoordinator,
    classify_error,
    probe_transaction_support,
)

__all__ = [
    "CacheInvalidator",
    "CacheScope",
    "DirectStrategy",
    "Disposition",
    "InMemoryCacheInvalidator",
    "InMemoryNotifier",
    "InventoryEvent",
    "MovementRecorder",
    "Notifier",
    "NullCacheInvalidator",
    "NullNotifier",
    "PendingEffects",
    "SequenceService",
    "StockLedger",
    "TransactionCoordinator",
    "TransactionalStrategy",
    "classify_error",
    "format_document_number",
    "probe_transaction_support",
    "publish",
    "require_positive_quantity",
]
