"""Prometheus metrics for background notification delivery."""
from prometheus_client import Counter, Gauge

NOTIFICATIONS_SENT = Counter(
    "watchclub_notifications_total",
    "Notification tasks finished, by kind and final status",
    ["kind", "status"],
)
NOTIFICATION_RETRIES = Counter(
    "watchclub_notification_retries_total",
    "Notification attempts that failed and were retried",
    ["kind"],
)
NOTIFICATIONS_DROPPED = Counter(
    "watchclub_notifications_dropped_total",
    "Notification tasks rejected because the queue was full",
    ["kind"],
)
NOTIFICATION_QUEUE_DEPTH = Gauge(
    "watchclub_notification_queue_depth",
    "Notification tasks waiting for a worker",
)
