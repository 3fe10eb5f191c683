"""
SequenceService -- per-tenant document numbering via atomic counter rows.

Responsibility:
    Hands out strictly increasing numbers per (tenant, sequence name) and
    formats them as document numbers (``ORD-000042``, ``PO-000007``).

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by OrderService and PurchaseOrderService inside the caller's
    unit of work.

Invariants enforced:
    - The counter is incremented with a single ``UPDATE ... SET
      current_value = current_value + 1 RETURNING current_value``.  The
      count-existing-documents-then-format pattern is NEVER used: two
      concurrent creates would both read the same count.
    - The increment is only visible once the caller's transaction commits;
      a rollback returns the value.

Failure modes:
    - IntegrityError: two first-ever allocations for the same tenant race to
      INSERT the counter row.  The loser's unit of work is retried by the
      TransactionCoordinator (unique violation is a retryable conflict), and
      on the retry the row exists.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


def format_document_number(prefix: str, value: int, width: int = 6) -> str:
    """``format_document_number("ORD", 42)`` -> ``"ORD-000042"``."""
    return f"{prefix}-{value:0{width}d}"


class SequenceService:
    """
    Service for generating transactional per-tenant sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Gap-free numbering is not guaranteed in degraded (autocommit)
          mode: a failed unit of work keeps the value it consumed.
    """

    # Well-known sequence names
    SALES_ORDER = "sales_order"
    PURCHASE_ORDER = "purchase_order"

    def __init__(self, session: Session):
        self._session = session

    def next_value(self, tenant_id: UUID, sequence_name: str) -> int:
        """
        Get the next value for a tenant's named sequence.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously returned for (tenant_id, sequence_name).

        Args:
            tenant_id: Owning tenant.
            sequence_name: Name of the sequence.

        Returns:
            The next sequence value (always > 0).
        """
        value = self._session.execute(
            update(SequenceCounter)
            .where(
                SequenceCounter.tenant_id == tenant_id,
                SequenceCounter.name == sequence_name,
            )
            .values(current_value=SequenceCounter.current_value + 1)
            .returning(SequenceCounter.current_value)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

        if value is None:
            # First use of this sequence for the tenant
            self._session.add(
                SequenceCounter(
                    tenant_id=tenant_id,
                    name=sequence_name,
                    current_value=1,
                )
            )
            self._session.flush()
            value = 1

        logger.debug(
            "sequence_allocated",
            extra={
                "tenant_id": str(tenant_id),
                "sequence_name": sequence_name,
                "value": value,
            },
        )
        return value

    def next_document_number(
        self,
        tenant_id: UUID,
        sequence_name: str,
        prefix: str,
        width: int = 6,
    ) -> str:
        """Allocate the next value and format it as a document number."""
        return format_document_number(
            prefix, self.next_value(tenant_id, sequence_name), width
        )

    def current_value(self, tenant_id: UUID, sequence_name: str) -> int | None:
        """
        Get the current value of a sequence without incrementing.

        Returns:
            Current value, or None if the sequence was never used.
        """
        return self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.tenant_id == tenant_id,
                SequenceCounter.name == sequence_name,
            )
        ).scalar_one_or_none()
