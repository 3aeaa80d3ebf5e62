"""
Service layer: club rules and schedule generation.
scheduling is pure; club_service (import it directly) orchestrates storage and notifications.
"""
from .scheduling import build_schedule, interval_duration, shuffle_picks

__all__ = [
    "build_schedule",
    "interval_duration",
    "shuffle_picks",
]
