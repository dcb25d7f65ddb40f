"""Database package for the durable cache layer."""

from cachestack.db.manager import DatabaseManager
from cachestack.db.models import key_value_table

__all__ = [
    "DatabaseManager",
    "key_value_table",
]
