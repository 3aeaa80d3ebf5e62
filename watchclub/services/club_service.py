"""
Club service: request validation, club rules and the start-club flow.
Persistence is delegated to a Storage backend; schedule shape to scheduling.py;
mail to a Sender, delivered in the background by a NotificationDispatcher.
"""
from __future__ import annotations

import random
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from watchclub.core.config import Settings, settings as default_settings
from watchclub.core.logging import get_logger
from watchclub.errors import (
    AlreadyExists,
    FailedPrecondition,
    Internal,
    InvalidArgument,
    NotFound,
    PermissionDenied,
    WatchClubError,
)
from watchclub.models import Club, Pick, ScheduledPick, ScheduleIntervalUnit, User
from watchclub.notify.dispatcher import NotificationDispatcher
from watchclub.notify.ics import generate_calendar
from watchclub.notify.sender import LogSender, Sender
from watchclub.persistence.base import Storage
from watchclub.persistence.factory import new_storage
from watchclub.services.scheduling import build_schedule

logger = get_logger(__name__)

LOGIN_EMAIL_MESSAGE = "If an account with that email exists, a login link has been sent."
CLUB_LOCK_STRIPES = 64


# ---------- Request models ----------


class _Request(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class CreateUserRequest(_Request):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")


class CreateClubRequest(_Request):
    name: str = Field(..., min_length=1, max_length=200)
    start_date: datetime
    max_picks_per_member: int = Field(1, ge=0, description="0 = unlimited")
    schedule_interval_quantity: int = 1
    schedule_interval_unit: ScheduleIntervalUnit = ScheduleIntervalUnit.WEEKS

    @field_validator("start_date")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator("schedule_interval_unit", mode="before")
    @classmethod
    def _unit(cls, v: Any) -> ScheduleIntervalUnit:
        # Missing or unknown unit falls back to weeks
        return ScheduleIntervalUnit.parse(v)


class MembershipRequest(_Request):
    club_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)


class AddPickRequest(MembershipRequest):
    title: str = Field(..., min_length=1, max_length=500)
    year: int | None = Field(None, ge=0, le=9999)
    notes: str | None = Field(None, max_length=5000)
    link: str | None = Field(None, max_length=2000)


class DeletePickRequest(_Request):
    pick_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)


def _validate(model: type[BaseModel], **fields: Any) -> Any:
    try:
        return model(**fields)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise InvalidArgument(problems) from e


def _require(value: str, name: str) -> None:
    if not value:
        raise InvalidArgument(f"{name} is required")


# ---------- Results ----------


@dataclass
class ClubDetails:
    club: Club
    members: list[User]
    picks: list[Pick]


@dataclass
class StartClubResult:
    club: Club
    scheduled_picks: list[ScheduledPick]


# ---------- ClubService ----------


class ClubService:
    """
    Domain logic for clubs: membership, picks, starting and the schedule.
    Mutations of one club are serialized by a per-club lock so rule checks
    (started flag, pick cap) and the write that depends on them cannot interleave.
    """

    def __init__(
        self,
        storage: Storage,
        sender: Sender,
        dispatcher: NotificationDispatcher,
        base_url: str = "",
        reject_nonpositive_interval: bool = False,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._storage = storage
        self._sender = sender
        self._dispatcher = dispatcher
        self._base_url = base_url
        self._reject_nonpositive_interval = reject_nonpositive_interval
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # Striped: each club id maps onto one of a fixed set of locks
        self._club_locks = [threading.Lock() for _ in range(CLUB_LOCK_STRIPES)]
        self._users_lock = threading.Lock()

    @classmethod
    def from_settings(cls, s: Settings | None = None, sender: Sender | None = None) -> ClubService:
        """Wire storage, sender and dispatcher from configuration."""
        s = s or default_settings
        dispatcher = NotificationDispatcher(
            workers=s.NOTIFY_WORKERS,
            queue_size=s.NOTIFY_QUEUE_SIZE,
            max_attempts=s.NOTIFY_MAX_ATTEMPTS,
            backoff_seconds=s.NOTIFY_BACKOFF_SECONDS,
        )
        return cls(
            storage=new_storage(s.STORAGE_URI),
            sender=sender or LogSender(s.BASE_URL),
            dispatcher=dispatcher,
            base_url=s.BASE_URL,
            reject_nonpositive_interval=s.REJECT_NONPOSITIVE_INTERVAL,
        )

    @property
    def storage(self) -> Storage:
        return self._storage

    def close(self) -> None:
        """Drain pending notifications, then release storage."""
        self._dispatcher.shutdown(wait=True)
        self._storage.close()

    @contextmanager
    def _club_lock(self, club_id: str) -> Iterator[None]:
        """Serialize mutations of one club. Locks are not reentrant; never nest two."""
        with self._club_locks[hash(club_id) % len(self._club_locks)]:
            yield

    # ---------- Users ----------

    def create_user(self, name: str, email: str) -> User:
        req = _validate(CreateUserRequest, name=name, email=email)
        user = User(id=str(uuid.uuid4()), name=req.name, email=req.email, created_at=self._clock())
        # Email lookup and insert must not interleave with another create
        with self._users_lock:
            try:
                self._storage.get_user_by_email(req.email)
            except NotFound:
                pass
            else:
                raise AlreadyExists("email already registered")
            try:
                self._storage.create_user(user)
            except AlreadyExists as e:
                raise Internal(f"failed to create user: {e}") from e
        logger.info("user created", extra={"user_id": user.id})
        return user

    def get_user(self, user_id: str) -> User:
        _require(user_id, "user_id")
        return self._storage.get_user(user_id)

    # ---------- Clubs ----------

    def create_club(
        self,
        name: str,
        start_date: datetime | None,
        max_picks_per_member: int = 1,
        schedule_interval_quantity: int = 1,
        schedule_interval_unit: ScheduleIntervalUnit | str | None = ScheduleIntervalUnit.WEEKS,
    ) -> Club:
        """
        Create an open club. A non-positive interval quantity is normalized to 1,
        or rejected when reject_nonpositive_interval is set.
        """
        if start_date is None:
            raise InvalidArgument("start_date is required")
        req = _validate(
            CreateClubRequest,
            name=name,
            start_date=start_date,
            max_picks_per_member=max_picks_per_member,
            schedule_interval_quantity=schedule_interval_quantity,
            schedule_interval_unit=schedule_interval_unit,
        )
        quantity = req.schedule_interval_quantity
        if quantity <= 0:
            if self._reject_nonpositive_interval:
                raise InvalidArgument("schedule_interval_quantity must be positive")
            logger.warning("schedule_interval_quantity %d normalized to 1", quantity)
            quantity = 1
        club = Club(
            id=str(uuid.uuid4()),
            name=req.name,
            member_ids=[],
            start_date=req.start_date,
            started=False,
            created_at=self._clock(),
            max_picks_per_member=req.max_picks_per_member,
            schedule_interval_quantity=quantity,
            schedule_interval_unit=req.schedule_interval_unit,
        )
        try:
            self._storage.create_club(club)
        except AlreadyExists as e:
            raise Internal(f"failed to create club: {e}") from e
        logger.info("club created", extra={"club_id": club.id})
        return club

    def join_club(self, club_id: str, user_id: str) -> Club:
        req = _validate(MembershipRequest, club_id=club_id, user_id=user_id)
        with self._club_lock(req.club_id):
            club = self._storage.get_club(req.club_id)
            self._storage.get_user(req.user_id)
            if club.is_member(req.user_id):
                raise AlreadyExists("user already in club")
            club.member_ids.append(req.user_id)
            self._storage.update_club(club)
        logger.info("user joined club", extra={"club_id": club.id, "user_id": req.user_id})
        return club

    def get_club(self, club_id: str) -> ClubDetails:
        _require(club_id, "club_id")
        club = self._storage.get_club(club_id)
        members: list[User] = []
        for member_id in club.member_ids:
            try:
                members.append(self._storage.get_user(member_id))
            except NotFound as e:
                raise Internal(f"failed to get user {member_id}: {e}") from e
        picks = sorted(self._storage.list_picks(club_id), key=lambda p: (p.created_at, p.id))
        return ClubDetails(club=club, members=members, picks=picks)

    def list_clubs_for_user(self, user_id: str) -> list[Club]:
        """Clubs the user has joined, oldest first. Scans every club."""
        _require(user_id, "user_id")
        clubs = [c for c in self._storage.list_clubs() if c.is_member(user_id)]
        return sorted(clubs, key=lambda c: c.created_at)

    # ---------- Picks ----------

    def add_pick(
        self,
        club_id: str,
        user_id: str,
        title: str,
        year: int | None = None,
        notes: str | None = None,
        link: str | None = None,
    ) -> Pick:
        req = _validate(
            AddPickRequest, club_id=club_id, user_id=user_id, title=title,
            year=year, notes=notes, link=link,
        )
        with self._club_lock(req.club_id):
            club = self._storage.get_club(req.club_id)
            if club.started:
                raise FailedPrecondition("cannot add picks after club has started")
            self._storage.get_user(req.user_id)
            if club.max_picks_per_member > 0:
                existing = self._storage.list_picks(req.club_id)
                mine = sum(1 for p in existing if p.user_id == req.user_id)
                if mine >= club.max_picks_per_member:
                    raise FailedPrecondition(
                        f"user has already added maximum number of picks ({club.max_picks_per_member})"
                    )
            pick = Pick(
                id=str(uuid.uuid4()),
                club_id=req.club_id,
                user_id=req.user_id,
                title=req.title,
                created_at=self._clock(),
                year=req.year,
                notes=req.notes,
                link=req.link,
            )
            try:
                self._storage.create_pick(pick)
            except AlreadyExists as e:
                raise Internal(f"failed to create pick: {e}") from e
        return pick

    def delete_pick(self, pick_id: str, user_id: str) -> None:
        """Owner-only, and only while the club is open."""
        req = _validate(DeletePickRequest, pick_id=pick_id, user_id=user_id)
        pick = self._storage.get_pick(req.pick_id)
        if pick.user_id != req.user_id:
            raise PermissionDenied("you can only delete your own picks")
        with self._club_lock(pick.club_id):
            club = self._storage.get_club(pick.club_id)
            if club.started:
                raise FailedPrecondition("cannot delete picks after club has started")
            self._storage.delete_pick(req.pick_id)

    # ---------- Start & schedule ----------

    def start_club(self, club_id: str, rng: random.Random | None = None) -> StartClubResult:
        """
        Shuffle the club's picks into a schedule, persist it, mark the club started
        and queue "club started" mail for every member.

        A storage failure while writing scheduled picks aborts with Internal and
        leaves the already-written rows in place; the club stays open. Those rows
        are cleared by the next start attempt before the new schedule is written.
        """
        _require(club_id, "club_id")
        with self._club_lock(club_id):
            club = self._storage.get_club(club_id)
            if club.started:
                raise FailedPrecondition("club already started")
            picks = sorted(self._storage.list_picks(club_id), key=lambda p: (p.created_at, p.id))
            schedule = build_schedule(club, picks, rng=rng)
            self._clear_partial_schedule(club_id)
            for written, sp in enumerate(schedule):
                try:
                    self._storage.create_scheduled_pick(sp)
                except WatchClubError as e:
                    logger.error(
                        "schedule write failed after %d of %d scheduled picks", written, len(schedule),
                        extra={"club_id": club_id},
                    )
                    raise Internal(
                        f"failed to create scheduled pick {sp.sequence_number} of {len(schedule)}: {e}"
                    ) from e
            club.started = True
            try:
                self._storage.update_club(club)
            except WatchClubError as e:
                raise Internal(f"failed to update club: {e}") from e
        logger.info("club started with %d scheduled picks", len(schedule), extra={"club_id": club_id})
        self._queue_club_started(club, schedule)
        return StartClubResult(club=club, scheduled_picks=schedule)

    def _clear_partial_schedule(self, club_id: str) -> None:
        """Remove rows left by an earlier failed start. Caller holds the club lock."""
        try:
            leftovers = self._storage.list_scheduled_picks(club_id)
            for sp in leftovers:
                self._storage.delete_scheduled_pick(sp.id)
        except WatchClubError as e:
            raise Internal(f"failed to clear partial schedule: {e}") from e
        if leftovers:
            logger.warning(
                "removed %d scheduled picks left by a failed start", len(leftovers),
                extra={"club_id": club_id},
            )

    def _queue_club_started(self, club: Club, schedule: list[ScheduledPick]) -> None:
        """Resolve members and hand one mail task per member to the dispatcher. Never raises."""
        users: dict[str, User] = {}
        for member_id in club.member_ids:
            try:
                users[member_id] = self._storage.get_user(member_id)
            except WatchClubError as e:
                logger.warning("skipping member for club started mail: %s", e, extra={"user_id": member_id})
        calendar = generate_calendar(club, schedule, users, self._base_url)
        for user in users.values():
            if not user.email:
                logger.warning("user has no email address, skipping", extra={"user_id": user.id})
                continue
            self._dispatcher.submit(
                "club_started",
                lambda u=user: self._sender.send_club_started(
                    u.email, u.name, club.name, club.id, self._base_url, calendar
                ),
                description=f"{club.id}->{user.id}",
            )

    def get_scheduled_picks(self, club_id: str) -> list[ScheduledPick]:
        """The club's schedule ordered by sequence number (empty before start)."""
        _require(club_id, "club_id")
        self._storage.get_club(club_id)
        return sorted(self._storage.list_scheduled_picks(club_id), key=lambda sp: sp.sequence_number)

    def get_club_calendar(self, club_id: str) -> bytes:
        _require(club_id, "club_id")
        club = self._storage.get_club(club_id)
        if not club.started:
            raise FailedPrecondition("club must be started to generate calendar")
        schedule = self._storage.list_scheduled_picks(club_id)
        users = {u.id: u for u in self._storage.list_users()}
        return generate_calendar(club, schedule, users, self._base_url)

    # ---------- Login mail ----------

    def send_login_email(self, email: str) -> str:
        """
        Mail a login link if the address is registered. The returned message is
        the same either way so callers cannot tell which addresses are registered.
        """
        _require(email, "email")
        try:
            user = self._storage.get_user_by_email(email)
        except NotFound:
            return LOGIN_EMAIL_MESSAGE
        try:
            self._sender.send_login(user.email, user.name, user.id, self._base_url)
        except Exception as e:
            logger.error("login email failed: %s", e, extra={"user_id": user.id})
            raise Internal(f"failed to send login email: {e}") from e
        return LOGIN_EMAIL_MESSAGE
