"""
In-memory backend under concurrent access.
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from conftest import make_user
from watchclub.errors import AlreadyExists, NotFound
from watchclub.persistence.memory import MemoryStorage, ReadWriteLock
from watchclub.services.club_service import CLUB_LOCK_STRIPES, ClubService


def test_concurrent_add_pick_no_lost_writes(sender, dispatcher):
    store = MemoryStorage()
    svc = ClubService(store, sender, dispatcher)
    user = svc.create_user("Alice", "alice@example.com")
    club = svc.create_club("Busy", datetime(2024, 1, 1, tzinfo=timezone.utc), max_picks_per_member=0)
    svc.join_club(club.id, user.id)

    with ThreadPoolExecutor(max_workers=20) as pool:
        picks = list(pool.map(lambda i: svc.add_pick(club.id, user.id, f"Film {i}"), range(100)))

    assert len({p.id for p in picks}) == 100
    assert len(store.list_picks(club.id)) == 100


def test_concurrent_creates_distinct_ids():
    store = MemoryStorage()
    with ThreadPoolExecutor(max_workers=16) as pool:
        list(pool.map(lambda i: store.create_user(make_user(f"u{i}")), range(200)))
    assert len(store.list_users()) == 200


def test_pick_cap_holds_under_concurrency(sender, dispatcher):
    svc = ClubService(MemoryStorage(), sender, dispatcher)
    user = svc.create_user("Alice", "alice@example.com")
    club = svc.create_club("Capped", datetime(2024, 1, 1, tzinfo=timezone.utc), max_picks_per_member=3)
    svc.join_club(club.id, user.id)

    def attempt(i):
        try:
            svc.add_pick(club.id, user.id, f"Film {i}")
            return True
        except Exception:
            return False

    with ThreadPoolExecutor(max_workers=10) as pool:
        results = list(pool.map(attempt, range(30)))
    assert sum(results) == 3
    assert len(svc.storage.list_picks(club.id)) == 3


def test_readers_share_lock():
    lock = ReadWriteLock()
    inside = threading.Barrier(3, timeout=2)

    def reader():
        with lock.read_locked():
            inside.wait()

    threads = [threading.Thread(target=reader) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)
    assert not any(t.is_alive() for t in threads)


def test_writer_excludes_readers():
    lock = ReadWriteLock()
    events: list[str] = []
    writer_in = threading.Event()

    def writer():
        with lock.write_locked():
            writer_in.set()
            time.sleep(0.05)
            events.append("write-done")

    def reader():
        writer_in.wait()
        with lock.read_locked():
            events.append("read")

    w = threading.Thread(target=writer)
    r = threading.Thread(target=reader)
    w.start()
    r.start()
    w.join()
    r.join()
    assert events == ["write-done", "read"]


def test_concurrent_duplicate_email_creates_one_user(sender, dispatcher):
    class SlowEmailLookup(MemoryStorage):
        """Holds each email lookup until both callers have reached it."""

        def __init__(self):
            super().__init__()
            self.gate = threading.Barrier(2, timeout=0.5)

        def get_user_by_email(self, email, *, cancel=None):
            try:
                self.gate.wait()
            except threading.BrokenBarrierError:
                pass
            return super().get_user_by_email(email, cancel=cancel)

    store = SlowEmailLookup()
    svc = ClubService(store, sender, dispatcher)

    def attempt(i):
        try:
            svc.create_user(f"A{i}", "same@example.com")
            return "created"
        except AlreadyExists:
            return "duplicate"

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = sorted(pool.map(attempt, range(2)))
    assert outcomes == ["created", "duplicate"]
    assert [u.email for u in store.list_users()] == ["same@example.com"]


def test_club_locks_do_not_grow_with_unknown_clubs(sender, dispatcher):
    svc = ClubService(MemoryStorage(), sender, dispatcher)
    user = svc.create_user("Alice", "alice@example.com")
    for i in range(1000):
        with pytest.raises(NotFound):
            svc.add_pick(f"no-such-club-{i}", user.id, "Film")
    assert len(svc._club_locks) == CLUB_LOCK_STRIPES
