"""Database layer - engine, base classes and session scope."""

from distribution_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from distribution_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "session_scope",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
