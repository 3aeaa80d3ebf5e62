"""
Randomized schedule generation for clubs.

The shape of a schedule is fixed: N picks fill N consecutive slots, slot i
starting at club.start_date + i * interval. Only the order is random. A
uniform shuffle gives every member's pick the same chance at every slot;
fairness is the goal, not unpredictability, so a plain PRNG is enough.

Pass rng to get a reproducible order (tests); by default each call seeds a
fresh generator from the wall clock.
"""
from __future__ import annotations

import random
import time
import uuid
from datetime import timedelta
from typing import Callable, Sequence

from watchclub.errors import FailedPrecondition
from watchclub.models import Club, Pick, ScheduledPick, ScheduleIntervalUnit

# months are approximated, not calendar-aware
_DAYS_PER_UNIT: dict[ScheduleIntervalUnit, int] = {
    ScheduleIntervalUnit.DAYS: 1,
    ScheduleIntervalUnit.WEEKS: 7,
    ScheduleIntervalUnit.MONTHS: 30,
}


def interval_duration(quantity: int, unit: ScheduleIntervalUnit | str | None) -> timedelta:
    """
    Length of one schedule slot. Unknown or missing unit counts as weeks;
    a non-positive quantity counts as 1.
    """
    if quantity <= 0:
        quantity = 1
    days = _DAYS_PER_UNIT[ScheduleIntervalUnit.parse(unit)]
    return timedelta(days=quantity * days)


def shuffle_picks(picks: Sequence[Pick], rng: random.Random | None = None) -> list[Pick]:
    """Return a uniformly shuffled copy of picks; the input is left untouched."""
    if rng is None:
        rng = random.Random(time.time_ns())
    shuffled = list(picks)
    rng.shuffle(shuffled)
    return shuffled


def build_schedule(
    club: Club,
    picks: Sequence[Pick],
    rng: random.Random | None = None,
    id_factory: Callable[[], str] | None = None,
) -> list[ScheduledPick]:
    """
    Shuffle picks and assign sequence numbers 1..N and slot start dates.
    Raises FailedPrecondition if the club has started or there are no picks.
    Does not persist anything.
    """
    if club.started:
        raise FailedPrecondition("club already started")
    if not picks:
        raise FailedPrecondition("no picks to shuffle")
    new_id = id_factory or (lambda: str(uuid.uuid4()))
    interval = interval_duration(club.schedule_interval_quantity, club.schedule_interval_unit)
    return [
        ScheduledPick(
            id=new_id(),
            club_id=club.id,
            sequence_number=i + 1,
            start_date=club.start_date + interval * i,
            pick=pick,
        )
        for i, pick in enumerate(shuffle_picks(picks, rng))
    ]
