"""
Inventory Kernel

Multi-tenant stock core with:
- Atomic, floor-checked stock reservation
- Append-only stock movement audit trail
- Transaction coordinator with bounded retry and degraded mode
- Per-tenant document numbering
"""

__version__ = "0.1.0"
