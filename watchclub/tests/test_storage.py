"""
Storage contract tests. Every test runs against both backends via the
parametrized storage fixture.
"""
from __future__ import annotations

import threading

import pytest

from conftest import make_club, make_pick, make_scheduled_pick, make_user
from watchclub.errors import AlreadyExists, Cancelled, NotFound


def test_user_create_get(storage):
    user = make_user("u1")
    storage.create_user(user)
    assert storage.get_user("u1") == user


def test_user_duplicate_id(storage):
    storage.create_user(make_user("u1"))
    with pytest.raises(AlreadyExists):
        storage.create_user(make_user("u1", email="other@example.com"))


def test_user_get_missing(storage):
    with pytest.raises(NotFound):
        storage.get_user("nope")


def test_get_user_by_email(storage):
    storage.create_user(make_user("u1", email="a@example.com"))
    storage.create_user(make_user("u2", email="b@example.com"))
    assert storage.get_user_by_email("b@example.com").id == "u2"


def test_get_user_by_email_missing(storage):
    storage.create_user(make_user("u1"))
    with pytest.raises(NotFound):
        storage.get_user_by_email("ghost@example.com")


def test_list_and_delete_users(storage):
    assert storage.list_users() == []
    storage.create_user(make_user("u1"))
    storage.create_user(make_user("u2"))
    assert {u.id for u in storage.list_users()} == {"u1", "u2"}
    storage.delete_user("u1")
    assert [u.id for u in storage.list_users()] == ["u2"]
    with pytest.raises(NotFound):
        storage.delete_user("u1")


def test_club_roundtrip_and_update(storage):
    club = make_club("c1", member_ids=["u1"], max_picks_per_member=0)
    storage.create_club(club)
    assert storage.get_club("c1") == club
    club.member_ids.append("u2")
    club.started = True
    storage.update_club(club)
    stored = storage.get_club("c1")
    assert stored.member_ids == ["u1", "u2"]
    assert stored.started is True
    assert [c.id for c in storage.list_clubs()] == ["c1"]


def test_club_update_missing(storage):
    with pytest.raises(NotFound):
        storage.update_club(make_club("ghost"))


def test_club_duplicate_and_delete(storage):
    storage.create_club(make_club("c1"))
    with pytest.raises(AlreadyExists):
        storage.create_club(make_club("c1"))
    storage.delete_club("c1")
    with pytest.raises(NotFound):
        storage.get_club("c1")
    with pytest.raises(NotFound):
        storage.delete_club("c1")


def test_picks_scoped_by_club(storage):
    storage.create_pick(make_pick("p1", club_id="c1", year=1999, notes="n", link="http://x"))
    storage.create_pick(make_pick("p2", club_id="c1"))
    storage.create_pick(make_pick("p3", club_id="c2"))
    assert {p.id for p in storage.list_picks("c1")} == {"p1", "p2"}
    assert storage.list_picks("empty") == []
    assert storage.get_pick("p1").year == 1999
    with pytest.raises(AlreadyExists):
        storage.create_pick(make_pick("p1"))
    storage.delete_pick("p1")
    with pytest.raises(NotFound):
        storage.get_pick("p1")
    with pytest.raises(NotFound):
        storage.delete_pick("p1")


def test_scheduled_picks(storage):
    storage.create_scheduled_pick(make_scheduled_pick("s1", club_id="c1", seq=1))
    storage.create_scheduled_pick(make_scheduled_pick("s2", club_id="c1", seq=2))
    storage.create_scheduled_pick(make_scheduled_pick("s3", club_id="c2", seq=1))
    got = storage.get_scheduled_pick("s2")
    assert got == make_scheduled_pick("s2", club_id="c1", seq=2)
    assert {sp.id for sp in storage.list_scheduled_picks("c1")} == {"s1", "s2"}
    assert storage.list_scheduled_picks("none") == []
    with pytest.raises(AlreadyExists):
        storage.create_scheduled_pick(make_scheduled_pick("s1"))
    storage.delete_scheduled_pick("s1")
    with pytest.raises(NotFound):
        storage.get_scheduled_pick("s1")
    with pytest.raises(NotFound):
        storage.delete_scheduled_pick("s1")


def test_returned_records_do_not_alias_storage(storage):
    storage.create_club(make_club("c1", member_ids=["u1"]))
    club = storage.get_club("c1")
    club.member_ids.append("intruder")
    assert storage.get_club("c1").member_ids == ["u1"]


def test_cancelled_event_stops_operations(storage):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(Cancelled):
        storage.create_user(make_user("u1"), cancel=cancel)
    with pytest.raises(Cancelled):
        storage.list_picks("c1", cancel=cancel)
    with pytest.raises(Cancelled):
        storage.get_user_by_email("u1@example.com", cancel=cancel)
    # Nothing was written
    assert storage.list_users() == []


def test_unset_cancel_event_is_ignored(storage):
    cancel = threading.Event()
    storage.create_user(make_user("u1"), cancel=cancel)
    assert storage.get_user("u1", cancel=cancel).id == "u1"
