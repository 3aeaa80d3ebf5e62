"""
Shared fixtures: both storage backends, a recording mail sender and a club
service wired to them.
"""
from __future__ import annotations

import sys
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from watchclub.models import Club, Pick, ScheduledPick, User
from watchclub.notify.dispatcher import NotificationDispatcher
from watchclub.persistence.memory import MemoryStorage
from watchclub.persistence.sqlite_storage import SQLiteStorage
from watchclub.services.club_service import ClubService

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class RecordingSender:
    """Sender that records calls. fail_times makes the first N calls raise."""

    def __init__(self, fail_times: int = 0) -> None:
        self.logins: list[tuple] = []
        self.club_started: list[tuple] = []
        self.fail_times = fail_times
        self._lock = threading.Lock()

    def _maybe_fail(self) -> None:
        with self._lock:
            if self.fail_times > 0:
                self.fail_times -= 1
                raise RuntimeError("smtp unavailable")

    def send_login(self, to, name, user_id, base_url):
        self._maybe_fail()
        with self._lock:
            self.logins.append((to, name, user_id, base_url))

    def send_club_started(self, to, name, club_name, club_id, base_url, calendar):
        self._maybe_fail()
        with self._lock:
            self.club_started.append((to, name, club_name, club_id, base_url, calendar))


def make_user(uid: str = "u1", email: str | None = None) -> User:
    return User(id=uid, name=f"User {uid}", email=email or f"{uid}@example.com", created_at=T0)


def make_club(cid: str = "c1", **kw) -> Club:
    fields = dict(id=cid, name=f"Club {cid}", start_date=T0, created_at=T0)
    fields.update(kw)
    return Club(**fields)


def make_pick(pid: str = "p1", club_id: str = "c1", user_id: str = "u1", **kw) -> Pick:
    fields = dict(id=pid, club_id=club_id, user_id=user_id, title=f"Title {pid}", created_at=T0)
    fields.update(kw)
    return Pick(**fields)


def make_scheduled_pick(sid: str = "s1", club_id: str = "c1", seq: int = 1) -> ScheduledPick:
    return ScheduledPick(
        id=sid, club_id=club_id, sequence_number=seq, start_date=T0,
        pick=make_pick(f"p-{sid}", club_id=club_id),
    )


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    """Each contract test runs once per backend."""
    if request.param == "memory":
        store = MemoryStorage()
    else:
        store = SQLiteStorage(tmp_path / "watchclub.db")
    try:
        yield store
    finally:
        store.close()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def dispatcher():
    d = NotificationDispatcher(workers=2, queue_size=50, max_attempts=3, backoff_seconds=0, sleep=lambda s: None)
    try:
        yield d
    finally:
        d.shutdown(wait=True)


@pytest.fixture
def service(storage, sender, dispatcher):
    return ClubService(storage, sender, dispatcher, base_url="http://club.test/")
