"""
SQLite storage backend.
Every record is stored whole as an encoded blob (see codec.py); there are no
partial-field updates. One short-lived connection per call, one commit per
statement, no multi-statement transactions.
"""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, TypeVar

from watchclub.core.logging import get_logger
from watchclub.errors import AlreadyExists, Internal, NotFound, WatchClubError
from watchclub.models import Club, Pick, ScheduledPick, User
from watchclub.persistence import codec
from watchclub.persistence.base import CancelEvent, Storage, check_cancelled
from watchclub.persistence.db import get_connection, init_db

logger = get_logger(__name__)

R = TypeVar("R")


class SQLiteStorage(Storage):
    """Durable storage in a single SQLite file. Created with its schema on first open."""

    def __init__(self, db_path: str | Path) -> None:
        self._path = Path(db_path)
        try:
            init_db(self._path)
        except sqlite3.Error as e:
            raise Internal(f"failed to initialize database at {self._path}: {e}") from e

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _conn(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Yield a connection; map driver errors to Internal and always close."""
        try:
            conn = get_connection(self._path)
        except sqlite3.Error as e:
            raise Internal(f"{operation}: failed to open database: {e}") from e
        try:
            yield conn
            conn.commit()
        except WatchClubError:
            raise
        except sqlite3.Error as e:
            logger.error("%s failed: %s", operation, e)
            raise Internal(f"{operation} failed") from e
        finally:
            conn.close()

    # ---------- Generic row helpers ----------

    def _insert(
        self,
        table: str,
        entity: str,
        record_id: str,
        blob: bytes,
        club_id: str | None = None,
        *,
        cancel: CancelEvent | None,
    ) -> None:
        check_cancelled(cancel, f"create {entity}")
        with self._conn(f"create {entity}") as conn:
            try:
                if club_id is None:
                    conn.execute(f"INSERT INTO {table} (id, data) VALUES (?, ?)", (record_id, blob))
                else:
                    conn.execute(
                        f"INSERT INTO {table} (id, club_id, data) VALUES (?, ?, ?)",
                        (record_id, club_id, blob),
                    )
            except sqlite3.IntegrityError as e:
                raise AlreadyExists(f"{entity} already exists: {record_id}") from e

    def _get(
        self, table: str, entity: str, cls: type[R], record_id: str, *, cancel: CancelEvent | None
    ) -> R:
        check_cancelled(cancel, f"get {entity}")
        with self._conn(f"get {entity}") as conn:
            row = conn.execute(f"SELECT data FROM {table} WHERE id = ?", (record_id,)).fetchone()
        if row is None:
            raise NotFound(f"{entity} not found: {record_id}")
        return codec.decode(cls, row["data"])

    def _list(
        self,
        table: str,
        entity: str,
        cls: type[R],
        club_id: str | None = None,
        *,
        cancel: CancelEvent | None,
    ) -> list[R]:
        check_cancelled(cancel, f"list {entity}")
        with self._conn(f"list {entity}") as conn:
            if club_id is None:
                rows = conn.execute(f"SELECT data FROM {table} ORDER BY rowid").fetchall()
            else:
                rows = conn.execute(
                    f"SELECT data FROM {table} WHERE club_id = ? ORDER BY rowid", (club_id,)
                ).fetchall()
        result: list[R] = []
        for r in rows:
            check_cancelled(cancel, f"list {entity}")
            result.append(codec.decode(cls, r["data"]))
        return result

    def _scan(
        self,
        table: str,
        entity: str,
        cls: type[R],
        predicate: Callable[[R], bool],
        *,
        cancel: CancelEvent | None,
    ) -> R | None:
        """Full-table scan; first decoded record matching predicate. Undecodable rows are skipped."""
        check_cancelled(cancel, f"scan {entity}")
        with self._conn(f"scan {entity}") as conn:
            rows = conn.execute(f"SELECT id, data FROM {table}").fetchall()
        for r in rows:
            check_cancelled(cancel, f"scan {entity}")
            try:
                record = codec.decode(cls, r["data"])
            except Internal as e:
                logger.warning("skipping unreadable %s %s: %s", entity, r["id"], e)
                continue
            if predicate(record):
                return record
        return None

    def _update(
        self, table: str, entity: str, record_id: str, blob: bytes, *, cancel: CancelEvent | None
    ) -> None:
        check_cancelled(cancel, f"update {entity}")
        with self._conn(f"update {entity}") as conn:
            cur = conn.execute(f"UPDATE {table} SET data = ? WHERE id = ?", (blob, record_id))
            if cur.rowcount == 0:
                raise NotFound(f"{entity} not found: {record_id}")

    def _delete(self, table: str, entity: str, record_id: str, *, cancel: CancelEvent | None) -> None:
        check_cancelled(cancel, f"delete {entity}")
        with self._conn(f"delete {entity}") as conn:
            cur = conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
            if cur.rowcount == 0:
                raise NotFound(f"{entity} not found: {record_id}")

    # ---------- Users ----------

    def create_user(self, user: User, *, cancel: CancelEvent | None = None) -> None:
        self._insert("users", "user", user.id, codec.encode(user), cancel=cancel)

    def get_user(self, user_id: str, *, cancel: CancelEvent | None = None) -> User:
        return self._get("users", "user", User, user_id, cancel=cancel)

    def get_user_by_email(self, email: str, *, cancel: CancelEvent | None = None) -> User:
        user = self._scan("users", "user", User, lambda u: u.email == email, cancel=cancel)
        if user is None:
            raise NotFound(f"user not found with email: {email}")
        return user

    def list_users(self, *, cancel: CancelEvent | None = None) -> list[User]:
        return self._list("users", "user", User, cancel=cancel)

    def delete_user(self, user_id: str, *, cancel: CancelEvent | None = None) -> None:
        self._delete("users", "user", user_id, cancel=cancel)

    # ---------- Clubs ----------

    def create_club(self, club: Club, *, cancel: CancelEvent | None = None) -> None:
        self._insert("clubs", "club", club.id, codec.encode(club), cancel=cancel)

    def get_club(self, club_id: str, *, cancel: CancelEvent | None = None) -> Club:
        return self._get("clubs", "club", Club, club_id, cancel=cancel)

    def list_clubs(self, *, cancel: CancelEvent | None = None) -> list[Club]:
        return self._list("clubs", "club", Club, cancel=cancel)

    def update_club(self, club: Club, *, cancel: CancelEvent | None = None) -> None:
        self._update("clubs", "club", club.id, codec.encode(club), cancel=cancel)

    def delete_club(self, club_id: str, *, cancel: CancelEvent | None = None) -> None:
        self._delete("clubs", "club", club_id, cancel=cancel)

    # ---------- Picks ----------

    def create_pick(self, pick: Pick, *, cancel: CancelEvent | None = None) -> None:
        self._insert("picks", "pick", pick.id, codec.encode(pick), club_id=pick.club_id, cancel=cancel)

    def get_pick(self, pick_id: str, *, cancel: CancelEvent | None = None) -> Pick:
        return self._get("picks", "pick", Pick, pick_id, cancel=cancel)

    def list_picks(self, club_id: str, *, cancel: CancelEvent | None = None) -> list[Pick]:
        return self._list("picks", "pick", Pick, club_id=club_id, cancel=cancel)

    def delete_pick(self, pick_id: str, *, cancel: CancelEvent | None = None) -> None:
        self._delete("picks", "pick", pick_id, cancel=cancel)

    # ---------- Scheduled picks ----------

    def create_scheduled_pick(
        self, scheduled_pick: ScheduledPick, *, cancel: CancelEvent | None = None
    ) -> None:
        self._insert(
            "scheduled_picks", "scheduled pick", scheduled_pick.id, codec.encode(scheduled_pick),
            club_id=scheduled_pick.club_id, cancel=cancel,
        )

    def get_scheduled_pick(
        self, scheduled_pick_id: str, *, cancel: CancelEvent | None = None
    ) -> ScheduledPick:
        return self._get("scheduled_picks", "scheduled pick", ScheduledPick, scheduled_pick_id, cancel=cancel)

    def list_scheduled_picks(
        self, club_id: str, *, cancel: CancelEvent | None = None
    ) -> list[ScheduledPick]:
        return self._list("scheduled_picks", "scheduled pick", ScheduledPick, club_id=club_id, cancel=cancel)

    def delete_scheduled_pick(
        self, scheduled_pick_id: str, *, cancel: CancelEvent | None = None
    ) -> None:
        self._delete("scheduled_picks", "scheduled pick", scheduled_pick_id, cancel=cancel)
