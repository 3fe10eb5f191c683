"""
SequenceCounter -- per-tenant named counter rows.

Each row holds the last value handed out for one (tenant, sequence name)
pair, e.g. (tenant A, "sales_order").  SequenceService increments it with a
single UPDATE so two concurrent allocations can never read the same value.
"""

from sqlalchemy import BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, TenantScoped


class SequenceCounter(TenantScoped, Base):
    """Sequence counter table."""

    __tablename__ = "sequence_counters"

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_sequence_tenant_name"),
    )

    # Sequence name (e.g., "sales_order", "purchase_order")
    name: Mapped[str] = mapped_column(String(50), nullable=False)

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"
