"""
Notification seam: mail sender contract, calendar export and the background
dispatcher that delivers club notifications off the request path.
"""
from .dispatcher import NotificationDispatcher, NotificationTask
from .ics import generate_calendar
from .sender import LogSender, Sender

__all__ = [
    "NotificationDispatcher",
    "NotificationTask",
    "generate_calendar",
    "LogSender",
    "Sender",
]
