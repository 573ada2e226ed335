"""Persistence gateways for affairs and subjects."""

from .base import AffairRepository
from .memory import InMemoryAffairRepository
from .sqlite import SQLiteAffairRepository

__all__ = [
    "AffairRepository",
    "InMemoryAffairRepository",
    "SQLiteAffairRepository",
]
