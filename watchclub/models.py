"""
Data models for the watch club backend.
Domain objects only; no persistence or service logic.

Club-centric: users join clubs and submit picks; starting a club shuffles the
picks into a dated schedule of scheduled picks.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


def _iso(dt: datetime) -> str:
    return dt.isoformat()


def _parse_datetime(s: str) -> datetime:
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


# ---------- Schedule interval unit ----------
class ScheduleIntervalUnit(str, Enum):
    """Length unit of one schedule slot. Unknown values fall back to weeks."""
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"  # fixed 30-day approximation

    @classmethod
    def parse(cls, value: str | ScheduleIntervalUnit | None) -> ScheduleIntervalUnit:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.WEEKS


# ---------- User ----------
@dataclass
class User:
    """A club member. Email is unique across users; never mutated after creation."""
    id: str
    name: str
    email: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> User:
        return cls(
            id=d["id"],
            name=d.get("name", ""),
            email=d.get("email", ""),
            created_at=_parse_datetime(d["created_at"]),
        )


# ---------- Club ----------
@dataclass
class Club:
    """
    A viewing club. Open (accepting members and picks) until started;
    started flips to True exactly once when the schedule is generated.
    max_picks_per_member == 0 means unlimited.
    """
    id: str
    name: str
    start_date: datetime
    created_at: datetime
    member_ids: list[str] = field(default_factory=list)
    started: bool = False
    max_picks_per_member: int = 1
    schedule_interval_quantity: int = 1
    schedule_interval_unit: ScheduleIntervalUnit = ScheduleIntervalUnit.WEEKS

    def is_member(self, user_id: str) -> bool:
        return user_id in self.member_ids

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "member_ids": list(self.member_ids),
            "start_date": _iso(self.start_date),
            "started": self.started,
            "created_at": _iso(self.created_at),
            "max_picks_per_member": self.max_picks_per_member,
            "schedule_interval_quantity": self.schedule_interval_quantity,
            "schedule_interval_unit": self.schedule_interval_unit.value,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Club:
        return cls(
            id=d["id"],
            name=d.get("name", ""),
            member_ids=list(d.get("member_ids") or []),
            start_date=_parse_datetime(d["start_date"]),
            started=bool(d.get("started", False)),
            created_at=_parse_datetime(d["created_at"]),
            max_picks_per_member=int(d.get("max_picks_per_member", 1)),
            schedule_interval_quantity=int(d.get("schedule_interval_quantity", 1)),
            schedule_interval_unit=ScheduleIntervalUnit.parse(d.get("schedule_interval_unit")),
        )


# ---------- Pick ----------
@dataclass
class Pick:
    """
    One member's submission to a club. Deletable by its owner while the club is open.
    year, notes and link are optional.
    """
    id: str
    club_id: str
    user_id: str
    title: str
    created_at: datetime
    year: int | None = None
    notes: str | None = None
    link: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "club_id": self.club_id,
            "user_id": self.user_id,
            "title": self.title,
            "created_at": _iso(self.created_at),
        }
        if self.year is not None:
            d["year"] = self.year
        if self.notes is not None:
            d["notes"] = self.notes
        if self.link is not None:
            d["link"] = self.link
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Pick:
        return cls(
            id=d["id"],
            club_id=d["club_id"],
            user_id=d["user_id"],
            title=d.get("title", ""),
            created_at=_parse_datetime(d["created_at"]),
            year=d.get("year"),
            notes=d.get("notes"),
            link=d.get("link"),
        )


# ---------- ScheduledPick ----------
@dataclass
class ScheduledPick:
    """
    A pick placed in a club's schedule. Created in bulk when the club starts;
    never mutated afterwards. sequence_number is 1-based.
    """
    id: str
    club_id: str
    sequence_number: int
    start_date: datetime
    pick: Pick

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "club_id": self.club_id,
            "sequence_number": self.sequence_number,
            "start_date": _iso(self.start_date),
            "pick": self.pick.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ScheduledPick:
        return cls(
            id=d["id"],
            club_id=d["club_id"],
            sequence_number=int(d["sequence_number"]),
            start_date=_parse_datetime(d["start_date"]),
            pick=Pick.from_dict(d["pick"]),
        )
