"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the HTTP layer, background jobs, tests) must be able to tell an
oversold SKU from a missing order from a storage conflict without parsing
message strings. Every error here:
  1. Has its own class (catch by type, not message)
  2. Carries a class-level CODE attribute (machine-readable, API-safe)
  3. Stores its context as attributes (product_id, sku, requested, ...)

Example:
    try:
        orders.create_order(tenant_id, actor_id, items)
    except InsufficientStockError as e:
        return error_payload(e)   # {"code": "INSUFFICIENT_STOCK", "sku": ...}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryError (base)
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- InvalidPriceError
    |   +-- DuplicateLineItemError
    |   +-- EmptyLineItemsError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- VariantNotFoundError
    |   +-- OrderNotFoundError
    |   +-- OrderLineNotFoundError
    |   +-- PurchaseOrderNotFoundError
    |   +-- ItemNotFoundError
    |   +-- SupplierNotFoundError
    |
    +-- InvalidTransitionError
    |   +-- OrderAlreadyCancelledError
    |   +-- OrderAlreadyFulfilledError
    |   +-- OrderCancelledError
    |   +-- OverFulfillmentError
    |   +-- OverReceiptError
    |   +-- PurchaseOrderAlreadyReceivedError
    |   +-- InvalidStatusTransitionError
    |
    +-- ConcurrencyError
    |   +-- TransientConflictError
    |   +-- OptimisticLockError
    |
    +-- TransactionError
    |   +-- TransactionsUnsupportedError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
DISPOSITION
===============================================================================

Category            | Coordinator behaviour
--------------------|-------------------------------------------------------
ValidationError     | Fail immediately, nothing written
StockError          | Fail, whole unit of work rolled back
NotFoundError       | Fail, whole unit of work rolled back
InvalidTransition   | Fail, rejected before any mutation
ConcurrencyError    | Retried up to max_retries, then TransientConflictError
TransactionsUnsupp. | Not user-facing: coordinator degrades to direct mode
ImmutabilityError   | Fail, programming error (audit trail tampering)

===============================================================================
"""

from typing import Any


class InventoryError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_ERROR"


# Validation exceptions


class ValidationError(InventoryError):
    """Base exception for malformed requests."""

    code: str = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Quantity must be a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: Any, field: str = "quantity"):
        self.quantity = quantity
        self.field = field
        super().__init__(f"{field} must be a positive integer, got {quantity!r}")


class InvalidPriceError(ValidationError):
    """Price must be a non-negative amount at storage precision."""

    code: str = "INVALID_PRICE"

    def __init__(self, price: Any, reason: str = "must be non-negative"):
        self.price = price
        self.reason = reason
        super().__init__(f"price {reason}, got {price!r}")


class DuplicateLineItemError(ValidationError):
    """The same product variant appears on more than one line."""

    code: str = "DUPLICATE_LINE_ITEM"

    def __init__(self, document: str, product_id: str, sku: str):
        self.document = document
        self.product_id = product_id
        self.sku = sku
        super().__init__(
            f"{document} lists {sku} of product {product_id} more than once"
        )


class EmptyLineItemsError(ValidationError):
    """An order or purchase order needs at least one line."""

    code: str = "EMPTY_LINE_ITEMS"

    def __init__(self, document: str):
        self.document = document
        super().__init__(f"{document} must contain at least one item")


# Stock exceptions


class StockError(InventoryError):
    """Base exception for stock-level errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Requested decrement exceeds available stock."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, sku: str, requested: int, available: int):
        self.product_id = product_id
        self.sku = sku
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {sku}: requested {requested}, "
            f"available {available}"
        )


# Not-found exceptions. Rows owned by another tenant are reported the same way.


class NotFoundError(InventoryError):
    """Base exception for missing (or foreign-tenant) entities."""

    code: str = "NOT_FOUND"


class ProductNotFoundError(NotFoundError):
    """Product does not exist for this tenant."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class VariantNotFoundError(NotFoundError):
    """Product variant does not exist for this tenant."""

    code: str = "VARIANT_NOT_FOUND"

    def __init__(self, product_id: str, sku: str):
        self.product_id = product_id
        self.sku = sku
        super().__init__(f"Variant {sku} not found on product {product_id}")


class OrderNotFoundError(NotFoundError):
    """Sales order does not exist for this tenant."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class OrderLineNotFoundError(NotFoundError):
    """Fulfillment references a SKU the order does not contain."""

    code: str = "ORDER_LINE_NOT_FOUND"

    def __init__(self, order_id: str, sku: str):
        self.order_id = order_id
        self.sku = sku
        super().__init__(f"Order {order_id} has no line for {sku}")


class PurchaseOrderNotFoundError(NotFoundError):
    """Purchase order does not exist for this tenant."""

    code: str = "PURCHASE_ORDER_NOT_FOUND"

    def __init__(self, po_id: str):
        self.po_id = po_id
        super().__init__(f"Purchase order not found: {po_id}")


class ItemNotFoundError(NotFoundError):
    """Receipt references a product/SKU the purchase order does not contain."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, po_id: str, product_id: str, sku: str):
        self.po_id = po_id
        self.product_id = product_id
        self.sku = sku
        super().__init__(
            f"Item {product_id}/{sku} not found in purchase order {po_id}"
        )


class SupplierNotFoundError(NotFoundError):
    """Supplier does not exist for this tenant."""

    code: str = "SUPPLIER_NOT_FOUND"

    def __init__(self, supplier_id: str):
        self.supplier_id = supplier_id
        super().__init__(f"Supplier not found: {supplier_id}")


# Transition exceptions


class InvalidTransitionError(InventoryError):
    """Base exception for operations not allowed in the current state."""

    code: str = "INVALID_TRANSITION"


class OrderAlreadyCancelledError(InvalidTransitionError):
    """Order is already cancelled."""

    code: str = "ORDER_ALREADY_CANCELLED"

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order {order_number} is already cancelled")


class OrderAlreadyFulfilledError(InvalidTransitionError):
    """Order is already fulfilled."""

    code: str = "ORDER_ALREADY_FULFILLED"

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order {order_number} is already fulfilled")


class OrderCancelledError(InvalidTransitionError):
    """Cannot fulfil a cancelled order."""

    code: str = "ORDER_CANCELLED"

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Cannot fulfill cancelled order {order_number}")


class OverFulfillmentError(InvalidTransitionError):
    """Fulfillment exceeds the remaining unfulfilled quantity."""

    code: str = "OVER_FULFILLMENT"

    def __init__(self, order_number: str, sku: str, requested: int, remaining: int):
        self.order_number = order_number
        self.sku = sku
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Cannot fulfill {requested} of {sku} on order {order_number}: "
            f"only {remaining} remaining"
        )


class OverReceiptError(InvalidTransitionError):
    """Receipt exceeds the remaining ordered quantity."""

    code: str = "OVER_RECEIPT"

    def __init__(self, po_number: str, sku: str, requested: int, remaining: int):
        self.po_number = po_number
        self.sku = sku
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Cannot receive {requested} of {sku} on {po_number}: "
            f"only {remaining} remaining"
        )


class PurchaseOrderAlreadyReceivedError(InvalidTransitionError):
    """Purchase order is fully received."""

    code: str = "PURCHASE_ORDER_ALREADY_RECEIVED"

    def __init__(self, po_number: str):
        self.po_number = po_number
        super().__init__(f"Purchase order {po_number} is already received")


class InvalidStatusTransitionError(InvalidTransitionError):
    """Requested status change is not a declared workflow transition."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, entity: str, from_status: str, to_status: str):
        self.entity = entity
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"{entity} cannot move from {from_status} to {to_status}"
        )


# Concurrency exceptions


class ConcurrencyError(InventoryError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class TransientConflictError(ConcurrencyError):
    """
    Storage-level write conflict.

    Raised inside a unit of work to request a retry, and raised by the
    coordinator once retries are exhausted. The message never carries
    driver detail.
    """

    code: str = "TRANSIENT_CONFLICT"

    def __init__(self, attempts: int = 0):
        self.attempts = attempts
        if attempts:
            message = f"Write conflict persisted after {attempts} attempt(s)"
        else:
            message = "Write conflict, retry the operation"
        super().__init__(message)


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Transaction exceptions


class TransactionError(InventoryError):
    """Base exception for transaction-scope errors."""

    code: str = "TRANSACTION_ERROR"


class TransactionsUnsupportedError(TransactionError):
    """The storage deployment cannot run multi-statement transactions."""

    code: str = "TRANSACTIONS_UNSUPPORTED"

    def __init__(self, dialect: str, reason: str):
        self.dialect = dialect
        self.reason = reason
        super().__init__(
            f"Transactions unsupported on {dialect} deployment: {reason}"
        )


# Immutability exceptions


class ImmutabilityError(InventoryError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


def error_payload(exc: BaseException) -> dict[str, Any]:
    """
    Render an exception as a structured, API-safe payload.

    Domain errors expose their code, message and public attributes.
    Anything else collapses to a generic INTERNAL_ERROR so storage driver
    detail never reaches the caller.
    """
    if not isinstance(exc, InventoryError):
        return {"code": "INTERNAL_ERROR", "message": "Internal error"}

    payload: dict[str, Any] = {"code": exc.code, "message": str(exc)}
    for key, value in vars(exc).items():
        if not key.startswith("_"):
            payload[key] = value
    return payload
