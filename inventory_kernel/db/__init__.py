"""Database layer - engine, base classes, types, and append-only enforcement."""

from inventory_kernel.db.base import UUID, Base, TenantScopedBase, TrackedBase, UUIDString
from inventory_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from inventory_kernel.db.types import Currency, Money, Quantity, Rate

__all__ = [
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "TenantScopedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Quantity",
    "Rate",
    "Currency",
]
