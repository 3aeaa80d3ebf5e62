"""
Storage contract every backend satisfies.
The only way the rest of the system touches persisted state.

Per entity: create (AlreadyExists on duplicate id), get (NotFound), list
(empty list when nothing matches, never an error), delete (NotFound when
absent). Clubs also have update_club, a single-step replace.

Every method takes an optional ``cancel`` event. When it is already set the
call raises Cancelled instead of touching storage; long scans check it
between records. A write already handed to the database is not aborted.
"""
from __future__ import annotations

import threading
from abc import ABC, abstractmethod

from watchclub.errors import Cancelled
from watchclub.models import Club, Pick, ScheduledPick, User

CancelEvent = threading.Event


def check_cancelled(cancel: CancelEvent | None, operation: str) -> None:
    """Raise Cancelled if the caller has given up on this operation."""
    if cancel is not None and cancel.is_set():
        raise Cancelled(f"{operation} cancelled")


class Storage(ABC):
    """Persistence interface for users, clubs, picks and scheduled picks."""

    # ---------- Users ----------

    @abstractmethod
    def create_user(self, user: User, *, cancel: CancelEvent | None = None) -> None: ...

    @abstractmethod
    def get_user(self, user_id: str, *, cancel: CancelEvent | None = None) -> User: ...

    @abstractmethod
    def get_user_by_email(self, email: str, *, cancel: CancelEvent | None = None) -> User:
        """Linear scan over all users; NotFound when no user has this email."""

    @abstractmethod
    def list_users(self, *, cancel: CancelEvent | None = None) -> list[User]: ...

    @abstractmethod
    def delete_user(self, user_id: str, *, cancel: CancelEvent | None = None) -> None: ...

    # ---------- Clubs ----------

    @abstractmethod
    def create_club(self, club: Club, *, cancel: CancelEvent | None = None) -> None: ...

    @abstractmethod
    def get_club(self, club_id: str, *, cancel: CancelEvent | None = None) -> Club: ...

    @abstractmethod
    def list_clubs(self, *, cancel: CancelEvent | None = None) -> list[Club]: ...

    @abstractmethod
    def update_club(self, club: Club, *, cancel: CancelEvent | None = None) -> None:
        """Replace the stored club with the same id in one step. NotFound if absent."""

    @abstractmethod
    def delete_club(self, club_id: str, *, cancel: CancelEvent | None = None) -> None: ...

    # ---------- Picks ----------

    @abstractmethod
    def create_pick(self, pick: Pick, *, cancel: CancelEvent | None = None) -> None: ...

    @abstractmethod
    def get_pick(self, pick_id: str, *, cancel: CancelEvent | None = None) -> Pick: ...

    @abstractmethod
    def list_picks(self, club_id: str, *, cancel: CancelEvent | None = None) -> list[Pick]: ...

    @abstractmethod
    def delete_pick(self, pick_id: str, *, cancel: CancelEvent | None = None) -> None: ...

    # ---------- Scheduled picks ----------

    @abstractmethod
    def create_scheduled_pick(
        self, scheduled_pick: ScheduledPick, *, cancel: CancelEvent | None = None
    ) -> None: ...

    @abstractmethod
    def get_scheduled_pick(
        self, scheduled_pick_id: str, *, cancel: CancelEvent | None = None
    ) -> ScheduledPick: ...

    @abstractmethod
    def list_scheduled_picks(
        self, club_id: str, *, cancel: CancelEvent | None = None
    ) -> list[ScheduledPick]: ...

    @abstractmethod
    def delete_scheduled_pick(
        self, scheduled_pick_id: str, *, cancel: CancelEvent | None = None
    ) -> None: ...

    # ---------- Lifecycle ----------

    def close(self) -> None:
        """Release backend resources. Default: nothing to release."""

    def __enter__(self) -> Storage:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
