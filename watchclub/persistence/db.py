"""
Database connection and initialization.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path

from .schema import all_schema_sql

# Seconds a connection waits on a locked database before raising.
BUSY_TIMEOUT = 30.0


def get_connection(db_path: str | Path) -> sqlite3.Connection:
    """
    Return a new SQLite connection.
    Use as context manager or ensure close() is called.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    return conn


def _has_index(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'index' AND name = ?", (name,)
    ).fetchone()
    return row is not None


def init_db(db_path: str | Path) -> None:
    """
    Create or ensure all tables exist.
    Switches the file to WAL so readers do not block the single writer.
    """
    conn = get_connection(db_path)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript(all_schema_sql())
        # Files written before the club_id indexes existed
        for table in ("picks", "scheduled_picks"):
            index = f"ix_{table}_club_id"
            if not _has_index(conn, index):
                conn.execute(f"CREATE INDEX {index} ON {table}(club_id)")
        conn.commit()
    finally:
        conn.close()
