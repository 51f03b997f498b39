"""Database layer - storage handle, base classes, immutability guards."""

from storefront_kernel.db.base import MONEY, UUID, Base, TimestampedBase, UUIDString
from storefront_kernel.db.engine import Database

__all__ = [
    "Database",
    "Base",
    "TimestampedBase",
    "UUIDString",
    "UUID",
    "MONEY",
]
