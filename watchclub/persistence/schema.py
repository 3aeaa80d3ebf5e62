"""
SQLite schema for watch club entities.
Each table keeps the whole record as an opaque blob keyed by id; club-scoped
tables add a denormalized club_id column used only as a lookup index.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def users_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        data BLOB NOT NULL
    );
    """


def clubs_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS clubs (
        id TEXT PRIMARY KEY,
        data BLOB NOT NULL
    );
    """


def picks_schema() -> str:
    """club_id duplicates Pick.club_id from the blob for list-by-club queries."""
    return """
    CREATE TABLE IF NOT EXISTS picks (
        id TEXT PRIMARY KEY,
        club_id TEXT NOT NULL,
        data BLOB NOT NULL
    );
    CREATE INDEX IF NOT EXISTS ix_picks_club_id ON picks(club_id);
    """


def scheduled_picks_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS scheduled_picks (
        id TEXT PRIMARY KEY,
        club_id TEXT NOT NULL,
        data BLOB NOT NULL
    );
    CREATE INDEX IF NOT EXISTS ix_scheduled_picks_club_id ON scheduled_picks(club_id);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Order: users, clubs, picks, scheduled_picks."""
    return "\n".join([
        users_schema(),
        clubs_schema(),
        picks_schema(),
        scheduled_picks_schema(),
    ])
