"""Database layer - engine, base classes, types."""

from billing_kernel.db.base import UUID, Base, TenantScopedBase, TrackedBase, UUIDString
from billing_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from billing_kernel.db.types import MONEY_DECIMAL_PLACES, round_money

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "TenantScopedBase",
    "UUIDString",
    "UUID",
    "MONEY_DECIMAL_PLACES",
    "round_money",
]
