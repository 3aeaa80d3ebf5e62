"""
Select a storage backend from a URI string at startup.
Supported: "" or "memory" (in-memory), "sqlite://<path>" (SQLite file).
"""
from __future__ import annotations

from watchclub.errors import ConfigurationError
from watchclub.persistence.base import Storage
from watchclub.persistence.memory import MemoryStorage
from watchclub.persistence.sqlite_storage import SQLiteStorage

SQLITE_PREFIX = "sqlite://"


def new_storage(uri: str) -> Storage:
    if uri in ("", "memory"):
        return MemoryStorage()
    if uri.startswith(SQLITE_PREFIX):
        db_path = uri[len(SQLITE_PREFIX):]
        if not db_path:
            raise ConfigurationError("sqlite URI must include a file path")
        return SQLiteStorage(db_path)
    raise ConfigurationError(f"unsupported storage URI: {uri} (supported: memory, sqlite://path)")
