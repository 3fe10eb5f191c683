"""
ORM-Level Immutability Enforcement for the stock audit trail.

===============================================================================
WHY THIS EXISTS
===============================================================================

StockMovement rows are the audit trail of every stock change.  A movement
that can be edited after the fact is no audit trail at all, so the ORM
refuses to send an UPDATE or DELETE for one:

    session.flush()
         |
         v
    [before_flush]  --> deleted StockMovement?  --> ImmutabilityViolationError
         |
         v
    [before_update] --> dirty StockMovement?    --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Bulk ``update()`` / ``delete()`` statements bypass mapper events; no code
path in this repository issues one against ``stock_movements``.

===============================================================================
USAGE
===============================================================================

Registered by ``create_tables()`` and by the test suite:

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event
from sqlalchemy.orm import Session

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_registered = False


def _reject_movement_update(mapper, connection, target):
    logger.error(
        "immutability_violation",
        extra={"entity_type": "StockMovement", "entity_id": str(target.id)},
    )
    raise ImmutabilityViolationError(
        "StockMovement", str(target.id), "stock movements are append-only"
    )


def _reject_movement_delete(session, flush_context, instances):
    from inventory_kernel.models.stock_movement import StockMovement

    for obj in list(session.deleted):
        if isinstance(obj, StockMovement):
            logger.error(
                "immutability_violation",
                extra={"entity_type": "StockMovement", "entity_id": str(obj.id)},
            )
            raise ImmutabilityViolationError(
                "StockMovement", str(obj.id), "stock movements cannot be deleted"
            )


def register_immutability_listeners() -> None:
    """Register the append-only listeners (idempotent)."""
    global _registered
    from inventory_kernel.models.stock_movement import StockMovement

    if _registered:
        return
    event.listen(StockMovement, "before_update", _reject_movement_update)
    event.listen(Session, "before_flush", _reject_movement_delete)
    _registered = True
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove the append-only listeners. FOR TESTING ONLY."""
    global _registered
    from inventory_kernel.models.stock_movement import StockMovement

    if not _registered:
        return
    event.remove(StockMovement, "before_update", _reject_movement_update)
    event.remove(Session, "before_flush", _reject_movement_delete)
    _registered = False
    logger.debug("immutability_listeners_unregistered")
