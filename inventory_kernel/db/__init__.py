"""Database layer - engine, base classes, and append-only enforcement."""

from inventory_kernel.db.base import UUID, Base, TenantScoped, TrackedBase, UUIDString
from inventory_kernel.db.engine import create_tables, get_engine, get_session

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TenantScoped",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
