"""
SQLite backend: durability across reopen, table layout, blob codec and the
storage URI factory.
"""
from __future__ import annotations

import json
import sqlite3
import struct

import pytest

from conftest import make_club, make_pick, make_scheduled_pick, make_user
from watchclub.errors import ConfigurationError, Internal, NotFound
from watchclub.models import Club, ScheduleIntervalUnit, User
from watchclub.persistence import codec
from watchclub.persistence.factory import new_storage
from watchclub.persistence.memory import MemoryStorage
from watchclub.persistence.sqlite_storage import SQLiteStorage


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "data" / "club.db"


def test_records_survive_reopen(db_path):
    user = make_user("u1")
    club = make_club("c1", member_ids=["u1"], started=True, max_picks_per_member=3,
                     schedule_interval_quantity=2, schedule_interval_unit=ScheduleIntervalUnit.MONTHS)
    pick = make_pick("p1", notes="bring snacks", link="https://example.com/film", year=1984)
    sp = make_scheduled_pick("s1", seq=4)
    first = SQLiteStorage(db_path)
    first.create_user(user)
    first.create_club(club)
    first.create_pick(pick)
    first.create_scheduled_pick(sp)
    first.close()

    second = SQLiteStorage(db_path)
    assert second.get_user("u1") == user
    assert second.get_club("c1") == club
    assert second.get_pick("p1") == pick
    assert second.get_scheduled_pick("s1") == sp


def test_table_layout(db_path):
    SQLiteStorage(db_path)
    conn = sqlite3.connect(str(db_path))
    try:
        for table in ("users", "clubs"):
            cols = [r[1] for r in conn.execute(f"PRAGMA table_info({table})")]
            assert cols == ["id", "data"]
        for table in ("picks", "scheduled_picks"):
            cols = [r[1] for r in conn.execute(f"PRAGMA table_info({table})")]
            assert cols == ["id", "club_id", "data"]
            indexes = [r[1] for r in conn.execute(f"PRAGMA index_list({table})")]
            assert f"ix_{table}_club_id" in indexes
    finally:
        conn.close()


def test_club_id_column_matches_record(db_path):
    store = SQLiteStorage(db_path)
    store.create_pick(make_pick("p1", club_id="club-x"))
    conn = sqlite3.connect(str(db_path))
    try:
        row = conn.execute("SELECT club_id FROM picks WHERE id = 'p1'").fetchone()
    finally:
        conn.close()
    assert row[0] == "club-x"


def test_codec_header_and_length():
    blob = codec.encode(make_user("u1"))
    fmt, length = struct.unpack(">BI", blob[:5])
    assert fmt == codec.FORMAT_JSON_V1
    assert length == len(blob) - 5
    assert codec.decode(User, blob) == make_user("u1")


def test_codec_ignores_unknown_and_defaults_missing_keys():
    """A record from a newer writer (extra keys) or older writer (missing optional keys) still decodes."""
    newer = make_club("c1").to_dict()
    newer["theme_color"] = "teal"
    payload = json.dumps(newer).encode()
    assert codec.decode(Club, struct.pack(">BI", 1, len(payload)) + payload) == make_club("c1")

    older = {"id": "c2", "name": "Old", "start_date": "2024-01-01T00:00:00+00:00",
             "created_at": "2024-01-01T00:00:00+00:00"}
    payload = json.dumps(older).encode()
    club = codec.decode(Club, struct.pack(">BI", 1, len(payload)) + payload)
    assert club.member_ids == []
    assert club.started is False
    assert club.schedule_interval_unit == ScheduleIntervalUnit.WEEKS
    assert club.max_picks_per_member == 1
    assert club == make_club("c2", name="Old")


@pytest.mark.parametrize("blob", [b"", b"\x01\x00", b"\x09\x00\x00\x00\x02{}", b"\x01\x00\x00\x00\x09{}"])
def test_codec_rejects_corrupt_blob(blob):
    with pytest.raises(Internal):
        codec.decode(User, blob)


def test_corrupt_row_is_internal_on_get_and_skipped_on_scan(db_path):
    store = SQLiteStorage(db_path)
    store.create_user(make_user("good", email="good@example.com"))
    conn = sqlite3.connect(str(db_path))
    conn.execute("INSERT INTO users (id, data) VALUES ('bad', x'00')")
    conn.commit()
    conn.close()
    with pytest.raises(Internal):
        store.get_user("bad")
    assert store.get_user_by_email("good@example.com").id == "good"
    with pytest.raises(NotFound):
        store.get_user_by_email("nobody@example.com")


@pytest.mark.parametrize("uri", ["", "memory"])
def test_factory_memory(uri):
    assert isinstance(new_storage(uri), MemoryStorage)


def test_factory_sqlite(db_path):
    store = new_storage(f"sqlite://{db_path}")
    assert isinstance(store, SQLiteStorage)
    assert store.path == db_path
    assert db_path.exists()


@pytest.mark.parametrize("uri", ["sqlite://", "postgres://localhost/db", "redis"])
def test_factory_rejects_bad_uri(uri):
    with pytest.raises(ConfigurationError):
        new_storage(uri)
