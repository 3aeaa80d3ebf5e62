"""
Outbound mail contract and the development sender.
Real delivery providers live outside this package; anything with these two
methods can be passed to ClubService.
"""
from __future__ import annotations

from typing import Protocol

from watchclub.core.logging import get_logger

logger = get_logger(__name__)


class Sender(Protocol):
    def send_login(self, to: str, name: str, user_id: str, base_url: str) -> None: ...

    def send_club_started(
        self,
        to: str,
        name: str,
        club_name: str,
        club_id: str,
        base_url: str,
        calendar: bytes,
    ) -> None: ...


def app_link(base_url: str, route: str) -> str:
    """Hash-routed frontend URL. base_url may or may not end in a slash."""
    return f"{base_url.rstrip('/')}/#/{route.lstrip('/')}"


def login_link(base_url: str, user_id: str) -> str:
    return app_link(base_url, f"login/{user_id}")


def club_link(base_url: str, club_id: str) -> str:
    return app_link(base_url, f"club/{club_id}")


class LogSender:
    """Development sender: writes each message to the log instead of mailing it."""

    def __init__(self, base_url: str = "") -> None:
        self._base_url = base_url

    def send_login(self, to: str, name: str, user_id: str, base_url: str) -> None:
        link = login_link(base_url or self._base_url, user_id)
        logger.info("[DEV EMAIL] To: %s | Subject: Log back in | Hi %s, open %s to log in", to, name, link)

    def send_club_started(
        self,
        to: str,
        name: str,
        club_name: str,
        club_id: str,
        base_url: str,
        calendar: bytes,
    ) -> None:
        link = club_link(base_url or self._base_url, club_id)
        logger.info(
            "[DEV EMAIL] To: %s | Subject: %s has started | Hi %s, the schedule is at %s (calendar %d bytes)",
            to, club_name, name, link, len(calendar),
        )
