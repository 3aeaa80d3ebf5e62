"""
ICS calendar export for a started club: one all-day event per scheduled pick,
each spanning one schedule interval.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Sequence

from watchclub.models import Club, ScheduledPick, User
from watchclub.notify.sender import app_link
from watchclub.services.scheduling import interval_duration

CRLF = "\r\n"


def escape_text(s: str) -> str:
    """Escape an ICS TEXT value (RFC 5545 3.3.11)."""
    return (
        s.replace("\\", "\\\\")
        .replace(",", "\\,")
        .replace(";", "\\;")
        .replace("\r", "")
        .replace("\n", "\\n")
    )


def _date(dt: datetime) -> str:
    return dt.strftime("%Y%m%d")


def _datetime_utc(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def generate_calendar(
    club: Club,
    scheduled_picks: Sequence[ScheduledPick],
    users: Mapping[str, User],
    base_url: str,
    now: datetime | None = None,
) -> bytes:
    """Build the VCALENDAR document. users maps user id to User for picker names."""
    stamp = _datetime_utc(now or datetime.now(timezone.utc))
    interval = interval_duration(club.schedule_interval_quantity, club.schedule_interval_unit)
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//WatchClub//Schedule//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{escape_text(club.name)} - Schedule",
        "X-WR-TIMEZONE:UTC",
    ]
    for sp in sorted(scheduled_picks, key=lambda s: s.sequence_number):
        pick = sp.pick
        picker = users.get(pick.user_id)
        description = "Picked by " + escape_text(picker.name if picker else "Unknown")
        if pick.notes:
            description += "\\n\\nNotes: " + escape_text(pick.notes)
        description += "\\n\\nView details: " + app_link(base_url, f"club/{club.id}/pick/{pick.id}")
        summary = escape_text(pick.title)
        if pick.year:
            summary += f" ({pick.year:04d})"
        lines += [
            "BEGIN:VEVENT",
            f"UID:{pick.id}@watchclub",
            f"DTSTAMP:{stamp}",
            f"DTSTART;VALUE=DATE:{_date(sp.start_date)}",
            f"DTEND;VALUE=DATE:{_date(sp.start_date + interval)}",
            f"SUMMARY:{summary}",
            f"DESCRIPTION:{description}",
        ]
        if pick.link:
            lines += [f"LOCATION:{escape_text(pick.link)}", f"URL:{escape_text(pick.link)}"]
        lines += ["TRANSP:TRANSPARENT", "END:VEVENT"]
    lines.append("END:VCALENDAR")
    return (CRLF.join(lines) + CRLF).encode("utf-8")
