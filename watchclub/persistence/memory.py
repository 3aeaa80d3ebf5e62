"""
In-memory storage backend.
One dict per entity type behind a single reader/writer lock. Volatile: data
lives as long as the process.
"""
from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from typing import Iterator, TypeVar

from watchclub.errors import AlreadyExists, NotFound
from watchclub.models import Club, Pick, ScheduledPick, User
from watchclub.persistence.base import CancelEvent, Storage, check_cancelled

T = TypeVar("T")


class ReadWriteLock:
    """
    Many readers or one writer. Writers waiting block new readers so a steady
    stream of reads cannot starve a write.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _copy(record: T) -> T:
    return copy.deepcopy(record)


class MemoryStorage(Storage):
    """Storage kept in process memory. Records are copied in and out."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._users: dict[str, User] = {}
        self._clubs: dict[str, Club] = {}
        self._picks: dict[str, Pick] = {}
        self._scheduled_picks: dict[str, ScheduledPick] = {}

    # ---------- Users ----------

    def create_user(self, user: User, *, cancel: CancelEvent | None = None) -> None:
        check_cancelled(cancel, "create_user")
        with self._lock.write_locked():
            if user.id in self._users:
                raise AlreadyExists(f"user already exists: {user.id}")
            self._users[user.id] = _copy(user)

    def get_user(self, user_id: str, *, cancel: CancelEvent | None = None) -> User:
        check_cancelled(cancel, "get_user")
        with self._lock.read_locked():
            user = self._users.get(user_id)
            if user is None:
                raise NotFound(f"user not found: {user_id}")
            return _copy(user)

    def get_user_by_email(self, email: str, *, cancel: CancelEvent | None = None) -> User:
        check_cancelled(cancel, "get_user_by_email")
        with self._lock.read_locked():
            for user in self._users.values():
                if user.email == email:
                    return _copy(user)
        raise NotFound(f"user not found with email: {email}")

    def list_users(self, *, cancel: CancelEvent | None = None) -> list[User]:
        check_cancelled(cancel, "list_users")
        with self._lock.read_locked():
            return [_copy(u) for u in self._users.values()]

    def delete_user(self, user_id: str, *, cancel: CancelEvent | None = None) -> None:
        check_cancelled(cancel, "delete_user")
        with self._lock.write_locked():
            if self._users.pop(user_id, None) is None:
                raise NotFound(f"user not found: {user_id}")

    # ---------- Clubs ----------

    def create_club(self, club: Club, *, cancel: CancelEvent | None = None) -> None:
        check_cancelled(cancel, "create_club")
        with self._lock.write_locked():
            if club.id in self._clubs:
                raise AlreadyExists(f"club already exists: {club.id}")
            self._clubs[club.id] = _copy(club)

    def get_club(self, club_id: str, *, cancel: CancelEvent | None = None) -> Club:
        check_cancelled(cancel, "get_club")
        with self._lock.read_locked():
            club = self._clubs.get(club_id)
            if club is None:
                raise NotFound(f"club not found: {club_id}")
            return _copy(club)

    def list_clubs(self, *, cancel: CancelEvent | None = None) -> list[Club]:
        check_cancelled(cancel, "list_clubs")
        with self._lock.read_locked():
            return [_copy(c) for c in self._clubs.values()]

    def update_club(self, club: Club, *, cancel: CancelEvent | None = None) -> None:
        check_cancelled(cancel, "update_club")
        with self._lock.write_locked():
            if club.id not in self._clubs:
                raise NotFound(f"club not found: {club.id}")
            self._clubs[club.id] = _copy(club)

    def delete_club(self, club_id: str, *, cancel: CancelEvent | None = None) -> None:
        check_cancelled(cancel, "delete_club")
        with self._lock.write_locked():
            if self._clubs.pop(club_id, None) is None:
                raise NotFound(f"club not found: {club_id}")

    # ---------- Picks ----------

    def create_pick(self, pick: Pick, *, cancel: CancelEvent | None = None) -> None:
        check_cancelled(cancel, "create_pick")
        with self._lock.write_locked():
            if pick.id in self._picks:
                raise AlreadyExists(f"pick already exists: {pick.id}")
            self._picks[pick.id] = _copy(pick)

    def get_pick(self, pick_id: str, *, cancel: CancelEvent | None = None) -> Pick:
        check_cancelled(cancel, "get_pick")
        with self._lock.read_locked():
            pick = self._picks.get(pick_id)
            if pick is None:
                raise NotFound(f"pick not found: {pick_id}")
            return _copy(pick)

    def list_picks(self, club_id: str, *, cancel: CancelEvent | None = None) -> list[Pick]:
        check_cancelled(cancel, "list_picks")
        with self._lock.read_locked():
            return [_copy(p) for p in self._picks.values() if p.club_id == club_id]

    def delete_pick(self, pick_id: str, *, cancel: CancelEvent | None = None) -> None:
        check_cancelled(cancel, "delete_pick")
        with self._lock.write_locked():
            if self._picks.pop(pick_id, None) is None:
                raise NotFound(f"pick not found: {pick_id}")

    # ---------- Scheduled picks ----------

    def create_scheduled_pick(
        self, scheduled_pick: ScheduledPick, *, cancel: CancelEvent | None = None
    ) -> None:
        check_cancelled(cancel, "create_scheduled_pick")
        with self._lock.write_locked():
            if scheduled_pick.id in self._scheduled_picks:
                raise AlreadyExists(f"scheduled pick already exists: {scheduled_pick.id}")
            self._scheduled_picks[scheduled_pick.id] = _copy(scheduled_pick)

    def get_scheduled_pick(
        self, scheduled_pick_id: str, *, cancel: CancelEvent | None = None
    ) -> ScheduledPick:
        check_cancelled(cancel, "get_scheduled_pick")
        with self._lock.read_locked():
            sp = self._scheduled_picks.get(scheduled_pick_id)
            if sp is None:
                raise NotFound(f"scheduled pick not found: {scheduled_pick_id}")
            return _copy(sp)

    def list_scheduled_picks(
        self, club_id: str, *, cancel: CancelEvent | None = None
    ) -> list[ScheduledPick]:
        check_cancelled(cancel, "list_scheduled_picks")
        with self._lock.read_locked():
            return [_copy(sp) for sp in self._scheduled_picks.values() if sp.club_id == club_id]

    def delete_scheduled_pick(
        self, scheduled_pick_id: str, *, cancel: CancelEvent | None = None
    ) -> None:
        check_cancelled(cancel, "delete_scheduled_pick")
        with self._lock.write_locked():
            if self._scheduled_picks.pop(scheduled_pick_id, None) is None:
                raise NotFound(f"scheduled pick not found: {scheduled_pick_id}")
