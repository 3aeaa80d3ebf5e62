"""
Persistence layer for watch club data.
No business logic, only the storage contract and its backends.
"""
from .base import Storage, check_cancelled
from .factory import new_storage
from .memory import MemoryStorage
from .sqlite_storage import SQLiteStorage

__all__ = [
    "Storage",
    "check_cancelled",
    "new_storage",
    "MemoryStorage",
    "SQLiteStorage",
]
