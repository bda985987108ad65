"""Database layer - engine, base classes and immutability listeners."""

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_kernel.db.engine import IN_MEMORY_URL, Database, build_engine

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "Database",
    "build_engine",
    "IN_MEMORY_URL",
]
